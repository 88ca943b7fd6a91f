"""
Command-line search.

    sourcecrate "machine learning" --limit 10 --sources arxiv,crossref
    python -m sourcecrate "RMS Titanic" --pdf-only --json

Progress for each source is written to stderr as it settles; the ranked
list (or JSON with ``--json``) goes to stdout.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from collections.abc import Sequence
from typing import TextIO

from sourcecrate.application.search import (
    ResultsEvent,
    SearchCallbacks,
    SearchOutcome,
    SearchStatus,
    SearchSummary,
    SortMode,
    SourceCompleteEvent,
)
from sourcecrate.container import create_container
from sourcecrate.shared.exceptions import InvalidQueryError, SourceCrateError

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sourcecrate",
        description="Search academic sources in parallel and rank the merged results.",
    )
    parser.add_argument("query", help="Search query")
    parser.add_argument("--limit", type=int, default=None, help="Results per source (default: 10)")
    parser.add_argument("--pdf-only", action="store_true", help="Only show papers with a PDF link")
    parser.add_argument(
        "--min-relevance",
        type=float,
        default=None,
        help="Minimum 0-100 relevance score (default: 35)",
    )
    parser.add_argument("--sources", default=None, help="Comma-separated source names (default: all)")
    parser.add_argument(
        "--sort",
        choices=[mode.value for mode in SortMode],
        default=SortMode.RELEVANCE.value,
        help="Result ordering",
    )
    parser.add_argument("--email", default=None, help="Contact email sent to polite-pool APIs")
    parser.add_argument("--json", action="store_true", help="Print results as JSON")
    return parser


def _progress_callbacks(stream: TextIO) -> SearchCallbacks:
    def on_results(event: ResultsEvent) -> None:
        print(f"  + {event.count} new/updated from {event.source}", file=stream)

    def on_source_complete(event: SourceCompleteEvent) -> None:
        status = f"error: {event.error}" if event.error else f"{event.count} results"
        print(f"[{event.completed}/{event.total}] {event.source}: {status}", file=stream)

    def on_complete(summary: SearchSummary) -> None:
        origin = " (cached)" if summary.from_cache else ""
        print(
            f"Done{origin}: {summary.unique_results} unique papers from "
            f"{summary.sources_successful}/{summary.sources_searched} sources in {summary.elapsed_ms}ms",
            file=stream,
        )

    return SearchCallbacks(
        on_results=on_results,
        on_source_complete=on_source_complete,
        on_complete=on_complete,
    )


def format_outcome(outcome: SearchOutcome) -> str:
    """Plain-text ranked list."""
    if not outcome.papers:
        return "No results."
    lines = []
    for rank, paper in enumerate(outcome.papers, 1):
        score = f"{paper.relevance_score:5.1f}" if paper.relevance_score is not None else "  n/a"
        year = f" ({paper.year})" if paper.year else ""
        lines.append(f"{rank:>3}. [{score}] {paper.title}{year}")
        if paper.authors:
            authors = ", ".join(paper.authors[:3])
            if len(paper.authors) > 3:
                authors += " et al."
            lines.append(f"       {authors}")
        lines.append(f"       Sources: {', '.join(paper.sources)}")
        link = paper.best_pdf_url or paper.doi_url or paper.url
        if link:
            lines.append(f"       {link}")
    return "\n".join(lines)


def outcome_to_dict(outcome: SearchOutcome) -> dict:
    return {
        "query": outcome.query,
        "status": outcome.status.value,
        "relevance_threshold": outcome.relevance_threshold,
        "summary": outcome.summary.to_dict() if outcome.summary else None,
        "papers": [paper.to_dict() for paper in outcome.papers],
    }


async def run(args: argparse.Namespace, *, out: TextIO | None = None, err: TextIO | None = None) -> int:
    out = out or sys.stdout
    err = err or sys.stderr
    container = create_container(email=args.email)
    service = container.search_service()
    sources = [name for name in args.sources.split(",") if name.strip()] if args.sources else None
    try:
        outcome = await service.search(
            args.query,
            limit=args.limit,
            pdf_only=args.pdf_only,
            min_relevance=args.min_relevance,
            sources=sources,
            callbacks=None if args.json else _progress_callbacks(err),
            sort_mode=SortMode(args.sort),
        )
    finally:
        await container.source_registry().close()

    if outcome.status is SearchStatus.EMPTY_QUERY:
        raise InvalidQueryError(args.query)

    if args.json:
        print(json.dumps(outcome_to_dict(outcome), indent=2, ensure_ascii=False), file=out)
    else:
        print(format_outcome(outcome), file=out)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Run the CLI and return the process exit code."""
    logging.basicConfig(
        level=os.environ.get("SOURCECRATE_LOG_LEVEL", "WARNING").upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(run(args))
    except SourceCrateError as e:
        logger.error(f"Search failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


__all__ = ["build_parser", "format_outcome", "main", "outcome_to_dict", "run"]
