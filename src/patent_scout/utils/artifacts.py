"""
Artifact writing utilities for Patent Scout.
Persists formatted search output or its JSON form for later review.
"""

import logging
from pathlib import Path
from typing import Union

from patent_scout.core.models import SearchResult
from patent_scout.utils.formatting import ABSTRACT_PREVIEW_CHARS, format_search_result

logger = logging.getLogger("Artifacts")


def write_results(file_path: Union[str, Path], content: str) -> Path:
    """
    Write rendered results to a file, creating parent directories as needed.

    Args:
        file_path: Destination path.
        content: Text to write (UTF-8).

    Returns:
        The resolved destination path.
    """
    path = Path(file_path)
    if not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Created directory: %s", path.parent)
    path.write_text(content, encoding="utf-8")
    logger.info("Successfully wrote patent results to %s", path)
    return path


def write_search_result(
    file_path: Union[str, Path],
    result: SearchResult,
    as_json: bool = False,
    preview_chars: int = ABSTRACT_PREVIEW_CHARS,
) -> Path:
    """Write a search result as formatted text or, with `as_json`, as JSON."""
    content = result.to_json() if as_json else format_search_result(result, preview_chars)
    return write_results(file_path, content)
