"""Parsing and formatting of canonical document identifiers."""

import re
from typing import Tuple

from patent_scout.core.models import DocumentId

DOCUMENT_ID_PATTERN = re.compile(r"^([A-Z]{2})(\d+)(?:\.)?([A-Z]\d)?$")


def format_document_id(doc_id: DocumentId) -> str:
    """Return `COUNTRY+NUMBER[.KIND]`, omitting the kind segment when empty."""
    return str(doc_id)


def parse_document_id(value: str) -> Tuple[DocumentId, bool]:
    """
    Parse a canonical identifier such as `EP1234567.A1` or `US9876543`.

    Returns:
        `(DocumentId, True)` on success, `(DocumentId.empty(), False)` when the
        string does not look like an identifier. Never raises.
    """
    match = DOCUMENT_ID_PATTERN.match((value or "").strip())
    if not match:
        return DocumentId.empty(), False
    country, number, kind = match.groups()
    return DocumentId(country=country, number=number, kind=kind or ""), True


def docdb_path(doc_id: DocumentId) -> str:
    """Build the `CC.NUMBER.KIND` path segment used by OPS docdb lookups."""
    return f"{doc_id.country}.{doc_id.number}.{doc_id.kind}"
