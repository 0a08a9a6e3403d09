"""
Data model for Patent Scout search results.

Records are plain dataclasses with `to_dict`/`to_json` helpers so they can be
handed to the chat layer or written out as artifacts.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


@dataclass
class CredentialState:
    """Cached OPS bearer token and its absolute expiry."""

    access_token: str
    expires_in_seconds: int
    expiry_epoch_millis: int

    def is_usable(self, now_millis: int, skew_millis: int) -> bool:
        return now_millis < self.expiry_epoch_millis - skew_millis


@dataclass(frozen=True)
class DocumentId:
    """
    DOCDB-style document identifier.

    The canonical string form is `COUNTRY+NUMBER[.KIND]`, e.g. `EP1234567.A1`.
    An all-empty identifier marks a search hit whose reference could not be
    parsed.
    """

    country: str
    number: str
    kind: str = ""

    @classmethod
    def empty(cls) -> "DocumentId":
        return cls(country="", number="", kind="")

    @property
    def is_empty(self) -> bool:
        return not (self.country or self.number or self.kind)

    def __str__(self) -> str:
        if self.kind:
            return f"{self.country}{self.number}.{self.kind}"
        return f"{self.country}{self.number}"


class EnrichmentStatus(str, Enum):
    """Where a document's bibliographic fields came from."""

    PENDING = "pending"
    EMBEDDED = "embedded"
    ENRICHED = "enriched"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class PatentDocument:
    """One search hit with whatever bibliographic data could be recovered."""

    doc_id: DocumentId
    title: Optional[str] = None
    abstract: Optional[str] = None
    applicants: List[str] = field(default_factory=list)
    publication_date: Optional[str] = None
    enrichment_status: EnrichmentStatus = EnrichmentStatus.PENDING

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "docId": str(self.doc_id),
            "title": self.title,
            "abstract": self.abstract,
            "applicants": list(self.applicants),
            "publicationDate": self.publication_date,
            "enrichmentStatus": self.enrichment_status.value,
        }


@dataclass(frozen=True)
class SearchRange:
    """1-based, inclusive result window."""

    begin: int
    end: int

    def __str__(self) -> str:
        return f"{self.begin}-{self.end}"


@dataclass
class SearchResult:
    """
    Sole return value of a patent search.

    A successful result always carries `docs` (possibly empty) and no error;
    a failed one carries an error and no `docs`.
    """

    success: bool
    query: str
    total: Optional[int] = None
    range: Optional[SearchRange] = None
    docs: Optional[List[PatentDocument]] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @classmethod
    def ok(
        cls,
        query: str,
        total: int,
        search_range: SearchRange,
        docs: List[PatentDocument],
    ) -> "SearchResult":
        return cls(success=True, query=query, total=total, range=search_range, docs=docs)

    @classmethod
    def failure(cls, query: str, error: str, error_kind: str) -> "SearchResult":
        return cls(success=False, query=query, error=error, error_kind=error_kind)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary; `docs` is omitted for failed searches."""
        payload: Dict[str, Any] = {
            "success": self.success,
            "query": self.query,
        }
        if self.success:
            payload["total"] = self.total
            payload["range"] = (
                {"begin": self.range.begin, "end": self.range.end} if self.range else None
            )
            payload["docs"] = [doc.to_dict() for doc in self.docs or []]
        else:
            payload["error"] = self.error
            payload["errorKind"] = self.error_kind
        return payload

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)
