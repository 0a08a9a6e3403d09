"""Shared fixtures: configuration, a fake OPS server and a sleep recorder."""

import httpx
import pytest
import pytest_asyncio

from ops_payloads import AUTH_URL, BASE_URL, FakeOPS, SleepRecorder
from patent_scout.core.config import PatentScoutConfig


@pytest.fixture
def config() -> PatentScoutConfig:
    return PatentScoutConfig(
        EPO_CLIENT_ID="client-id",
        EPO_CLIENT_SECRET="client-secret",
        EPO_OPS_BASE_URL=BASE_URL,
        EPO_OPS_AUTH_URL=AUTH_URL,
        ENRICHMENT_DELAY_SECONDS=0.4,
        SEARCH_RETRY_ATTEMPTS=1,
    )


@pytest.fixture
def fake_ops() -> FakeOPS:
    return FakeOPS()


@pytest_asyncio.fixture
async def http_client(fake_ops: FakeOPS):
    async with httpx.AsyncClient(transport=httpx.MockTransport(fake_ops.handler)) as client:
        yield client


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()
