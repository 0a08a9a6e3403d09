"""Plain-text rendering of search results for LLM and terminal consumption."""

from typing import List

from patent_scout.core.models import PatentDocument, SearchResult

ABSTRACT_PREVIEW_CHARS = 200
UNRECOGNIZED_ID_LABEL = "(unrecognized document id)"
FOLLOW_UP_NOTE = (
    "Note: Use these patent document IDs to fetch detailed information "
    "(full claims, descriptions, etc.) if needed."
)


def _preview(text: str, limit: int) -> str:
    if len(text) > limit:
        return text[:limit] + "..."
    return text


def format_document(doc: PatentDocument, preview_chars: int = ABSTRACT_PREVIEW_CHARS) -> List[str]:
    """Render one document as its id line plus the fields that are present."""
    lines = [str(doc.doc_id) or UNRECOGNIZED_ID_LABEL]
    if doc.title:
        lines.append(f"  Title: {doc.title}")
    if doc.applicants:
        lines.append(f"  Applicants: {', '.join(doc.applicants)}")
    if doc.publication_date:
        lines.append(f"  Published: {doc.publication_date}")
    if doc.abstract:
        lines.append(f"  Abstract: {_preview(doc.abstract, preview_chars)}")
    return lines


def format_search_result(result: SearchResult, preview_chars: int = ABSTRACT_PREVIEW_CHARS) -> str:
    """
    Render a search result as a compact text block.

    Missing fields are left out rather than shown as placeholders, and
    abstracts are cut to `preview_chars` characters.
    """
    if not result.success or not result.docs:
        return f"No patents found for query: {result.query}"

    begin = result.range.begin if result.range else None
    end = result.range.end if result.range else None
    lines: List[str] = [
        f'Found {result.total} patents matching query: "{result.query}"',
        f"Showing results {begin}-{end}:",
        "",
    ]

    for doc in result.docs:
        lines.extend(format_document(doc, preview_chars))
        lines.append("")

    lines.append(FOLLOW_UP_NOTE)
    return "\n".join(lines)
