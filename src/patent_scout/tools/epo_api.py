"""
European Patent Office (EPO OPS) search connector for Patent Scout.

This module provides the `EPOConnector` class, which runs a CQL search
against OPS `published-data/search`, decomposes each hit into a canonical
document identifier and, when the response carries no bibliographic data,
hands the documents to the `BibliographicEnricher`.

Design goals:
- Primary-path failures (auth, search) are reported in the `SearchResult`,
  never raised.
- Result cardinality is preserved: malformed identifiers yield a document
  with an empty identifier instead of being dropped.
- No internal retries; the caller decides whether to rerun a search.
"""

from __future__ import annotations

import asyncio
import logging
import re
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

import httpx

from patent_scout.core.config import PatentScoutConfig, get_config
from patent_scout.core.document_id import parse_document_id
from patent_scout.core.models import (
    DocumentId,
    EnrichmentStatus,
    PatentDocument,
    SearchRange,
    SearchResult,
)
from patent_scout.tools.biblio import (
    BibliographicEnricher,
    apply_biblio_fields,
    extract_biblio_fields,
)
from patent_scout.tools.credentials import CredentialCache
from patent_scout.tools.errors import AuthError, SearchError
from patent_scout.tools.ops_values import (
    as_list,
    attribute,
    child,
    normalize_ops_date,
    text_value,
    world_patent_data,
)

logger = logging.getLogger("EPOConnector")

DEFAULT_RANGE = "1-25"
RANGE_PATTERN = re.compile(r"^\s*(\d+)\s*-\s*(\d+)\s*$")


def parse_range(value: Optional[str]) -> Optional[SearchRange]:
    """Parse a 1-based inclusive `begin-end` window; None when malformed."""
    match = RANGE_PATTERN.match(value or "")
    if not match:
        return None
    begin, end = int(match.group(1)), int(match.group(2))
    if begin < 1 or end < begin:
        return None
    return SearchRange(begin=begin, end=end)


def parse_total(biblio_search: Any) -> int:
    """Read `@total-result-count`; absent or unparseable counts as 0."""
    raw = attribute(biblio_search, "total-result-count")
    if raw is None:
        return 0
    try:
        return int(raw.strip())
    except ValueError:
        return 0


def parse_publication_reference(reference: Any) -> Tuple[DocumentId, Optional[str], bool]:
    """
    Decompose one `ops:publication-reference` into an identifier.

    Returns:
        `(doc_id, publication_date, ok)`; `doc_id` is empty when `ok` is False.
    """
    doc_ids = as_list(child(reference, "document-id"))
    first = doc_ids[0] if doc_ids else None
    country = text_value(child(first, "country")) or ""
    number = text_value(child(first, "doc-number")) or ""
    kind = text_value(child(first, "kind")) or ""
    date = normalize_ops_date(text_value(child(first, "date")))

    raw_id = f"{country}{number}.{kind}" if kind else f"{country}{number}"
    doc_id, ok = parse_document_id(raw_id)
    return doc_id, date, ok


def embedded_exchange_documents(search_result: Any) -> List[Any]:
    """
    Flatten the optional `exchange-documents` block of a search response.

    OPS `search/biblio` responses carry either one `exchange-documents`
    wrapper holding many `exchange-document` entries or a list of wrappers
    holding one each.
    """
    documents: List[Any] = []
    for wrapper in as_list(child(search_result, "exchange-documents")):
        documents.extend(as_list(child(wrapper, "exchange-document")))
    return documents


class EPOConnector:
    """
    Connector for the EPO Open Patent Services (OPS) search API.

    The connector shares its `CredentialCache` and `BibliographicEnricher`
    with the service layer that constructs it.
    """

    def __init__(
        self,
        credentials: Optional[CredentialCache] = None,
        enricher: Optional[BibliographicEnricher] = None,
        *,
        config: Optional[PatentScoutConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """
        Initialize the EPO connector.

        Args:
            credentials: Token cache. If omitted, one is created from config.
            enricher: Bibliographic enricher. If omitted, one is created from config.
            config: Optional configuration override.
            http_client: Optional shared HTTP client.
        """
        self.config = config or get_config()
        self.search_url = self.config.epo_search_url
        self._http_client = http_client
        self.credentials = credentials or CredentialCache(
            config=self.config, http_client=http_client
        )
        self.enricher = enricher or BibliographicEnricher(
            config=self.config, http_client=http_client
        )

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
            return
        timeout = float(self.config.epo_request_timeout_seconds)
        async with httpx.AsyncClient(timeout=timeout) as client:
            yield client

    async def _fetch_search_payload(
        self,
        query: str,
        search_range: SearchRange,
        token: str,
    ) -> Dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
            "X-OPS-Range": str(search_range),
        }
        logger.info("Searching OPS: q=%r range=%s", query, search_range)

        async with self._client() as client:
            response = await client.get(self.search_url, params={"q": query}, headers=headers)

        logger.debug("OPS search response status: %s", response.status_code)
        if not response.is_success:
            logger.error(
                "EPO search error %s: %s", response.status_code, response.text[:500]
            )
            raise SearchError(response.status_code, response.text)

        payload = response.json()
        return payload if isinstance(payload, dict) else {}

    def _build_documents(self, payload: Dict[str, Any]) -> Tuple[int, List[PatentDocument], bool]:
        """
        Turn a search payload into documents.

        Returns:
            `(total, docs, has_embedded_biblio)`.
        """
        biblio_search = child(world_patent_data(payload), "ops:biblio-search")
        total = parse_total(biblio_search)
        search_result = child(biblio_search, "ops:search-result")
        references = as_list(child(search_result, "ops:publication-reference"))
        logger.debug("Processing %s patent references (total=%s)", len(references), total)

        docs: List[PatentDocument] = []
        for position, reference in enumerate(references, start=1):
            doc_id, date, ok = parse_publication_reference(reference)
            if not ok:
                logger.warning("Unparseable document reference at position %s", position)
            docs.append(PatentDocument(doc_id=doc_id, publication_date=date))

        exchange_documents = embedded_exchange_documents(search_result)
        aligned = bool(exchange_documents) and len(exchange_documents) == len(docs)
        if exchange_documents and not aligned:
            logger.warning(
                "Ignoring %s embedded documents for %s references (length mismatch)",
                len(exchange_documents),
                len(docs),
            )

        if aligned:
            docs = [
                apply_biblio_fields(doc, extract_biblio_fields(exchange_document), EnrichmentStatus.EMBEDDED)
                for doc, exchange_document in zip(docs, exchange_documents)
            ]
        return total, docs, aligned

    async def search(
        self,
        query: str,
        search_range: str = DEFAULT_RANGE,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> SearchResult:
        """
        Execute an OPS search and return a normalized result set.

        Args:
            query: CQL query string (passed through unvalidated).
            search_range: 1-based inclusive window, e.g. `"1-25"`.
            cancel_event: Optional event that stops enrichment early.

        Returns:
            `SearchResult`; failures are reported in `error`, never raised.
        """
        query = query or ""
        if not query.strip():
            return SearchResult.failure(query, "Missing CQL query string for EPO search.", "invalid_input")

        parsed_range = parse_range(search_range)
        if parsed_range is None:
            return SearchResult.failure(
                query,
                f"Invalid result range {search_range!r}; expected 'begin-end'.",
                "invalid_input",
            )

        try:
            token = await self.credentials.get_token()
        except AuthError as exc:
            logger.error("EPO authentication failed: %s", exc)
            return SearchResult.failure(query, str(exc), "auth")

        try:
            payload = await self._fetch_search_payload(query, parsed_range, token)
        except SearchError as exc:
            return SearchResult.failure(query, str(exc), exc.error_kind)
        except httpx.TimeoutException as exc:
            logger.error("EPO request timeout: %s", exc)
            return SearchResult.failure(query, f"EPO request timeout: {exc}", "request")
        except httpx.RequestError as exc:
            logger.error("EPO request error: %s", exc)
            return SearchResult.failure(query, f"EPO request error: {exc}", "request")
        except ValueError as exc:
            logger.error("Failed to parse EPO search response: %s", exc)
            return SearchResult.failure(query, f"Failed to parse EPO search response: {exc}", "parse")

        total, docs, has_embedded = self._build_documents(payload)

        if docs and not has_embedded:
            docs = await self.enricher.enrich(docs, token, cancel_event=cancel_event)

        logger.info("✅ OPS search returned %s documents (total %s)", len(docs), total)
        return SearchResult.ok(query, total, parsed_range, docs)
