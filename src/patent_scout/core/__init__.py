"""Core module for Patent Scout."""

from patent_scout.core.config import get_config, reload_config, PatentScoutConfig
from patent_scout.core.document_id import format_document_id, parse_document_id
from patent_scout.core.models import (
    CredentialState,
    DocumentId,
    EnrichmentStatus,
    PatentDocument,
    SearchRange,
    SearchResult,
)

__all__ = [
    "get_config",
    "reload_config",
    "PatentScoutConfig",
    "format_document_id",
    "parse_document_id",
    "CredentialState",
    "DocumentId",
    "EnrichmentStatus",
    "PatentDocument",
    "SearchRange",
    "SearchResult",
]
