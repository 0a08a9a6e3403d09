"""
Patent Scout - EPO OPS bibliographic search client.
Command-line entry point.

Usage:
  patent-scout 'ti="neural network" and pd>2020' --range 1-10
  patent-scout 'pa=siemens' --json --output results/siemens.json
  patent-scout --lookup EP1234567.A1
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from patent_scout.core.config import get_config
from patent_scout.services.search import PatentSearchService
from patent_scout.tools.errors import EPOAPIError
from patent_scout.utils.artifacts import write_results, write_search_result
from patent_scout.utils.formatting import format_document, format_search_result

logger = logging.getLogger("PatentScout")


def configure_logging(level: str) -> None:
    """Configure console logging for the CLI."""
    logging.basicConfig(
        level=getattr(logging, (level or "INFO").upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        force=True,
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="patent-scout",
        description="Search EPO OPS with a CQL query and print bibliographic results",
    )
    p.add_argument("query", nargs="?", help="CQL query, e.g. 'ti=\"neural network\"'")
    p.add_argument("--range", dest="search_range", default=None, help="Result window 'begin-end' (default from config, 1-25)")
    p.add_argument("--lookup", metavar="DOCID", default=None, help="Fetch bibliographic data for one document id, e.g. EP1234567.A1")
    p.add_argument("--json", action="store_true", help="Print the result as JSON instead of text")
    p.add_argument("--output", default=None, help="Also write the output to this file")
    p.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    args = p.parse_args(argv)
    if not args.query and not args.lookup:
        p.error("a query or --lookup DOCID is required")
    return args


async def run(args: argparse.Namespace) -> int:
    config = get_config()
    service = PatentSearchService(config)

    if args.lookup:
        try:
            doc = await service.lookup_document(args.lookup)
        except EPOAPIError as exc:
            logger.error("Lookup failed: %s", exc)
            print(f"Error: {exc}")
            return 1
        if args.json:
            output = json.dumps(doc.to_dict(), indent=2, ensure_ascii=False)
        else:
            output = "\n".join(format_document(doc, preview_chars=len(doc.abstract or "")))
    else:
        result = await service.search(args.query, args.search_range)
        if args.json:
            output = result.to_json()
        elif result.success:
            output = format_search_result(result, preview_chars=config.abstract_preview_chars)
        else:
            output = f"Error searching patents: {result.error}"
        if not result.success:
            print(output)
            return 1
        print(output)
        if args.output:
            write_search_result(
                args.output,
                result,
                as_json=args.json,
                preview_chars=config.abstract_preview_chars,
            )
        return 0

    print(output)
    if args.output:
        write_results(args.output, output)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level or get_config().log_level)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
