"""
Search service: the single entry point used by the chat/tool layer.

`PatentSearchService` owns the process-wide `CredentialCache`, wires the
connector and enricher to it, and optionally reruns a whole search when the
failure looks transient.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

from patent_scout.core.config import PatentScoutConfig, get_config
from patent_scout.core.document_id import parse_document_id
from patent_scout.core.models import PatentDocument, SearchResult
from patent_scout.tools.biblio import BibliographicEnricher
from patent_scout.tools.credentials import CredentialCache
from patent_scout.tools.epo_api import EPOConnector
from patent_scout.tools.errors import EnrichmentError, EPOAPIError
from patent_scout.utils.formatting import format_search_result

logger = logging.getLogger("PatentScout")

RETRYABLE_ERROR_KINDS = frozenset({"auth", "request", "rate_limit", "server"})


def is_retryable(result: SearchResult) -> bool:
    """True for failed searches whose cause may go away on a rerun."""
    return not result.success and result.error_kind in RETRYABLE_ERROR_KINDS


class PatentSearchService:
    """
    Dependency-injection root for patent search.

    Construct once per process and share; every search reuses the same
    credential cache.
    """

    retry_wait = wait_exponential(multiplier=1, min=1, max=10)

    def __init__(
        self,
        config: Optional[PatentScoutConfig] = None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        credentials: Optional[CredentialCache] = None,
        enricher: Optional[BibliographicEnricher] = None,
    ) -> None:
        self.config = config or get_config()
        self.credentials = credentials or CredentialCache(
            config=self.config, http_client=http_client
        )
        self.enricher = enricher or BibliographicEnricher(
            config=self.config, http_client=http_client
        )
        self.connector = EPOConnector(
            self.credentials,
            self.enricher,
            config=self.config,
            http_client=http_client,
        )

    async def search(
        self,
        query: str,
        search_range: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> SearchResult:
        """
        Run a patent search, rerunning it up to `SEARCH_RETRY_ATTEMPTS` times
        for transient failures (auth, transport, 429, 5xx).
        """
        search_range = search_range or self.config.default_search_range
        attempts = max(1, int(self.config.search_retry_attempts))
        if attempts == 1:
            return await self.connector.search(query, search_range, cancel_event=cancel_event)

        result: Optional[SearchResult] = None
        try:
            async for attempt in AsyncRetrying(
                wait=self.retry_wait,
                stop=stop_after_attempt(attempts),
                retry=retry_if_result(is_retryable),
            ):
                with attempt:
                    result = await self.connector.search(
                        query, search_range, cancel_event=cancel_event
                    )
                    if is_retryable(result):
                        logger.warning(
                            "Search attempt %s failed (%s): %s",
                            attempt.retry_state.attempt_number,
                            result.error_kind,
                            result.error,
                        )
                if not attempt.retry_state.outcome.failed:
                    attempt.retry_state.set_result(result)
        except RetryError as exc:
            logger.error("Search failed after %s attempts", attempts)
            return exc.last_attempt.result()
        return result

    async def search_text(self, query: str, search_range: Optional[str] = None) -> str:
        """Run a search and return the rendered text block."""
        result = await self.search(query, search_range)
        if not result.success:
            logger.error("Search failed: %s", result.error)
        return format_search_result(result, preview_chars=self.config.abstract_preview_chars)

    async def lookup_document(self, doc_id: str) -> PatentDocument:
        """
        Fetch bibliographic data for a single canonical document id.

        Raises:
            EnrichmentError: If the identifier is malformed or the lookup fails.
            AuthError: If no token can be obtained.
        """
        parsed, ok = parse_document_id(doc_id)
        if not ok:
            raise EnrichmentError(doc_id, "malformed document identifier")
        token = await self.credentials.get_token()
        return await self.enricher.lookup(parsed, token)

    async def health_check(self) -> Dict[str, Any]:
        """
        Validate credential presence and token retrieval without searching.

        Returns:
            Dictionary containing health status details.
        """
        if not self.config.is_epo_configured:
            return {
                "provider": "epo",
                "ok": False,
                "message": "Missing EPO client credentials.",
            }

        self.credentials.invalidate()
        try:
            token = await self.credentials.get_token()
        except EPOAPIError as exc:
            return {
                "provider": "epo",
                "ok": False,
                "message": str(exc),
            }
        return {
            "provider": "epo",
            "ok": bool(token),
            "message": "EPO OAuth token retrieved successfully.",
        }
