"""
Bibliographic data extraction and per-document enrichment for EPO OPS.

Extraction works on the `bibliographic-data` object of an OPS
`exchange-document`, whether it came embedded in a search response or from
the per-document `/biblio` endpoint. Enrichment is strictly sequential with a
fixed pause between calls to stay within OPS fair-use limits.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

import httpx

from patent_scout.core.config import PatentScoutConfig, get_config
from patent_scout.core.document_id import docdb_path
from patent_scout.core.models import DocumentId, EnrichmentStatus, PatentDocument
from patent_scout.tools.errors import EnrichmentError
from patent_scout.tools.ops_values import (
    as_list,
    by_language,
    child,
    normalize_ops_date,
    text_value,
    world_patent_data,
)

logger = logging.getLogger("BibliographicEnricher")


@dataclass
class BiblioFields:
    """Fields recovered from one `bibliographic-data` object."""

    title: Optional[str] = None
    abstract: Optional[str] = None
    applicants: List[str] = field(default_factory=list)
    publication_date: Optional[str] = None


def _first_resolved(candidates: List[Any], resolve: Callable[[Any], Optional[str]]) -> Optional[str]:
    for candidate in by_language(candidates):
        text = resolve(candidate)
        if text:
            return text
    return None


def extract_title(biblio: Any) -> Optional[str]:
    """Return the English invention title, else the first one with text."""
    return _first_resolved(as_list(child(biblio, "invention-title")), text_value)


def _abstract_text(entry: Any) -> Optional[str]:
    if isinstance(entry, str):
        return text_value(entry)
    paragraphs = as_list(child(entry, "p"))
    if not paragraphs:
        return text_value(entry)
    parts = [text_value(paragraph) for paragraph in paragraphs]
    text = " ".join(part for part in parts if part)
    return text or None


def extract_abstract(biblio: Any) -> Optional[str]:
    """
    Return the full English abstract, else the first one with text.

    The paragraph body may be a string, a `$` holder, or a list of
    paragraphs; multiple paragraphs are joined with a single space.
    """
    return _first_resolved(as_list(child(biblio, "abstract")), _abstract_text)


def _applicant_name(applicant: Any) -> Optional[str]:
    names = as_list(child(applicant, "applicant-name"))
    if not names:
        return None
    first = names[0]
    return text_value(child(first, "name")) or text_value(first)


def extract_applicants(biblio: Any) -> List[str]:
    """Return resolvable applicant names in document order."""
    applicants = as_list(child(biblio, "parties", "applicants", "applicant"))
    names = [_applicant_name(applicant) for applicant in applicants]
    return [name for name in names if name]


def extract_publication_date(biblio: Any) -> Optional[str]:
    """Return the publication date from `publication-reference`, if present."""
    for doc_id in as_list(child(biblio, "publication-reference", "document-id")):
        date = text_value(child(doc_id, "date"))
        if date:
            return normalize_ops_date(date)
    return None


def extract_biblio_fields(exchange_document: Any) -> BiblioFields:
    """Extract title/abstract/applicants/date from an `exchange-document`."""
    biblio = child(exchange_document, "bibliographic-data")
    # The abstract is a sibling of bibliographic-data in OPS XML, but some
    # JSON renderings nest it inside; accept both.
    abstract = extract_abstract(biblio) or extract_abstract(exchange_document)
    return BiblioFields(
        title=extract_title(biblio),
        abstract=abstract,
        applicants=extract_applicants(biblio),
        publication_date=extract_publication_date(biblio),
    )


def apply_biblio_fields(
    doc: PatentDocument,
    fields: BiblioFields,
    status: EnrichmentStatus,
) -> PatentDocument:
    """Return a copy of `doc` carrying the extracted fields."""
    return replace(
        doc,
        title=fields.title,
        abstract=fields.abstract,
        applicants=list(fields.applicants),
        publication_date=doc.publication_date or fields.publication_date,
        enrichment_status=status,
    )


class BibliographicEnricher:
    """
    Fills in bibliographic data for documents one lookup at a time.

    A failed lookup only affects its own document; the batch always returns
    the same number of documents in the same order.
    """

    def __init__(
        self,
        config: Optional[PatentScoutConfig] = None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        delay_seconds: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.config = config or get_config()
        self.base_url = self.config.epo_ops_base_url.rstrip("/")
        self.delay_seconds = (
            self.config.enrichment_delay_seconds if delay_seconds is None else delay_seconds
        )
        self._http_client = http_client
        self._sleep = sleep

    def biblio_url(self, doc_id: DocumentId) -> str:
        return f"{self.base_url}/published-data/publication/docdb/{docdb_path(doc_id)}/biblio"

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
            return
        timeout = float(self.config.epo_request_timeout_seconds)
        async with httpx.AsyncClient(timeout=timeout) as client:
            yield client

    async def _fetch_exchange_document(
        self,
        client: httpx.AsyncClient,
        doc_id: DocumentId,
        token: str,
    ) -> Dict[str, Any]:
        url = self.biblio_url(doc_id)
        logger.debug("Fetching biblio for %s from %s", doc_id, url)
        try:
            response = await client.get(
                url,
                headers={
                    "Authorization": f"Bearer {token}",
                    "Accept": "application/json",
                },
            )
        except httpx.RequestError as exc:
            raise EnrichmentError(str(doc_id), f"request error: {exc}") from exc

        if not response.is_success:
            raise EnrichmentError(str(doc_id), f"status {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise EnrichmentError(str(doc_id), "response is not valid JSON") from exc

        documents = as_list(
            child(world_patent_data(payload), "exchange-documents", "exchange-document")
        )
        if not documents or child(documents[0], "bibliographic-data") is None:
            raise EnrichmentError(str(doc_id), "no bibliographic data in response")
        return documents[0]

    async def lookup(self, doc_id: DocumentId, token: str) -> PatentDocument:
        """
        Fetch one document's bibliographic data.

        Raises:
            EnrichmentError: If the lookup fails or returns no bibliographic data.
        """
        if doc_id.is_empty:
            raise EnrichmentError("", "empty document identifier")
        async with self._client() as client:
            exchange_document = await self._fetch_exchange_document(client, doc_id, token)
        fields = extract_biblio_fields(exchange_document)
        return apply_biblio_fields(PatentDocument(doc_id=doc_id), fields, EnrichmentStatus.ENRICHED)

    async def _pause(self, cancel_event: Optional[asyncio.Event]) -> None:
        if cancel_event is None:
            await self._sleep(self.delay_seconds)
            return
        try:
            await asyncio.wait_for(cancel_event.wait(), timeout=self.delay_seconds)
        except asyncio.TimeoutError:
            pass

    async def enrich(
        self,
        docs: List[PatentDocument],
        token: str,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> List[PatentDocument]:
        """
        Enrich documents sequentially, pausing between lookups.

        Args:
            docs: Documents lacking bibliographic data.
            token: Bearer token reused for every lookup.
            cancel_event: Optional event; once set, the remaining documents are
                returned unchanged with status `skipped`.

        Returns:
            New list of documents, same length and order as `docs`.
        """
        if not docs:
            return []

        logger.info("Fetching bibliographic data for %s documents", len(docs))
        enriched: List[PatentDocument] = []
        looked_up = False

        async with self._client() as client:
            for index, doc in enumerate(docs):
                if doc.doc_id.is_empty:
                    logger.debug("Skipping enrichment for document without identifier")
                    enriched.append(replace(doc, enrichment_status=EnrichmentStatus.SKIPPED))
                    continue

                # The gap sits between two real lookups, never after the last one.
                if looked_up:
                    await self._pause(cancel_event)
                if cancel_event is not None and cancel_event.is_set():
                    logger.info(
                        "Enrichment cancelled after %s of %s documents", index, len(docs)
                    )
                    enriched.extend(
                        replace(remaining, enrichment_status=EnrichmentStatus.SKIPPED)
                        for remaining in docs[index:]
                    )
                    break
                looked_up = True

                try:
                    exchange_document = await self._fetch_exchange_document(
                        client, doc.doc_id, token
                    )
                    fields = extract_biblio_fields(exchange_document)
                    enriched.append(apply_biblio_fields(doc, fields, EnrichmentStatus.ENRICHED))
                    logger.debug(
                        "Fetched biblio for %s: title=%r applicants=%s",
                        doc.doc_id,
                        (fields.title or "")[:50],
                        len(fields.applicants),
                    )
                except EnrichmentError as exc:
                    logger.warning("%s", exc)
                    enriched.append(
                        replace(
                            doc,
                            title=None,
                            abstract=None,
                            applicants=[],
                            enrichment_status=EnrichmentStatus.FAILED,
                        )
                    )

        return enriched
