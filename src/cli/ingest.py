# =============================================================================
# src/cli/ingest.py: Ingestion / search CLI
# =============================================================================
#
# Operator tool for the scrape-index corpus, built on the same wiring as the
# API server (src.main._build_all), so both use identical providers, chunk
# parameters and vector collection.
#
# Subcommands:
#
#   url: Extract one or more URLs and ingest them
#   file: Ingest local plain-text files (one document per file)
#   search: Semantic search over indexed jobs
#   stats: Job counts per status and vector collection size
#
# Usage examples:
#   python -m src.cli.ingest url https://example.com/a https://example.com/b --source blog
#   python -m src.cli.ingest file notes.txt --title "Release notes"
#   python -m src.cli.ingest search "vector databases" --top-k 5 --tag infra
#   python -m src.cli.ingest stats
# =============================================================================

"""Standalone CLI for ingesting documents and querying the index."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any

from src.config.settings import Settings
from src.models.document import StructuredDocument
from src.utils.errors import ScrapeIndexError
from src.utils.logging import configure_logging


async def _run(args: argparse.Namespace, app_settings: Settings) -> int:
    # Deferred so `--help` does not construct SDK clients.
    from src.main import _build_all, shutdown, startup

    components = _build_all(app_settings)
    connect_task = await startup(components)
    try:
        if args.command == "url":
            return await _handle_url(args, components)
        if args.command == "file":
            return await _handle_file(args, components)
        if args.command == "search":
            return await _handle_search(args, components)
        return await _handle_stats(components)
    finally:
        await shutdown(components, connect_task)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_url(args: argparse.Namespace, components: dict[str, Any]) -> int:
    service = components["ingestion_service"]
    failures = 0
    for url in args.urls:
        try:
            result = await service.ingest_url(url, args.source)
        except ScrapeIndexError as exc:
            print(f"  FAILED  {url}: {exc}", file=sys.stderr)
            failures += 1
            continue
        _print_result(result)
    return 1 if failures else 0


async def _handle_file(args: argparse.Namespace, components: dict[str, Any]) -> int:
    documents: list[StructuredDocument] = []
    for raw_path in args.files:
        path = Path(raw_path)
        if not path.is_file():
            print(f"Error: {path} is not a file", file=sys.stderr)
            return 1
        documents.append(
            StructuredDocument(
                url=path.resolve().as_uri(),
                title=args.title or path.stem,
                content_text=path.read_text(encoding="utf-8"),
            )
        )

    results, failures = await components["ingestion_service"].ingest_many(
        documents, args.source
    )
    for result in results:
        _print_result(result)
    for label, exc in failures:
        print(f"  FAILED  {label}: {exc}", file=sys.stderr)
    return 1 if failures else 0


async def _handle_search(args: argparse.Namespace, components: dict[str, Any]) -> int:
    filters: dict[str, Any] = {}
    if args.source:
        filters["source"] = args.source
    if args.language:
        filters["language"] = args.language
    if args.tag:
        filters["tags"] = args.tag

    await components["vector_index"].wait_until_ready(
        timeout=components["settings"].ready_timeout
    )
    jobs = await components["search_service"].search(args.query, filters, args.top_k)
    if not jobs:
        print("No matching jobs.")
        return 0
    for rank, job in enumerate(jobs, start=1):
        print(f"{rank:>3}. {job.title or '(untitled)'}")
        print(f"     {job.url}")
        print(f"     id={job.id}  source={job.source or '-'}  status={job.status.value}")
    return 0


async def _handle_stats(components: dict[str, Any]) -> int:
    app_settings: Settings = components["settings"]
    counts = await components["record_store"].count_jobs()
    vector_index = components["vector_index"]
    await vector_index.wait_until_ready(timeout=app_settings.ready_timeout)
    stats = await vector_index.get_stats(app_settings.vector_collection)

    print("Index Statistics")
    print("=" * 40)
    print(f"  Backend:       {vector_index.get_provider_name()}")
    print(f"  Collection:    {app_settings.vector_collection}")
    print(f"  Vectors:       {stats.vector_count}")
    print(f"  Dimension:     {stats.dimension}")
    print("\n  Jobs by status:")
    for status, count in counts.items():
        print(f"    {status:<12} {count}")
    return 0


def _print_result(result: Any) -> None:
    tag = "DUP" if result.deduplicated else "OK"
    print(
        f"  {tag:<7} {result.url}  job={result.job_id}  "
        f"status={result.status.value}  chunks={result.chunk_count}  "
        f"time={result.ingestion_time:.2f}s"
    )


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m src.cli.ingest",
        description="Ingest documents into the scrape-index and query it.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    url_parser = subparsers.add_parser("url", help="Extract and ingest web pages")
    url_parser.add_argument("urls", nargs="+", help="URLs to ingest")
    url_parser.add_argument("--source", default="", help="Source label stored on the job")

    file_parser = subparsers.add_parser("file", help="Ingest local text files")
    file_parser.add_argument("files", nargs="+", help="Paths to UTF-8 text files")
    file_parser.add_argument("--title", default="", help="Title (defaults to file name)")
    file_parser.add_argument("--source", default="file", help="Source label (default: file)")

    search_parser = subparsers.add_parser("search", help="Semantic search over jobs")
    search_parser.add_argument("query", help="Free-text query")
    search_parser.add_argument("--top-k", type=int, default=10, dest="top_k")
    search_parser.add_argument("--source", default=None, help="Filter by source label")
    search_parser.add_argument("--language", default=None, help="Filter by language code")
    search_parser.add_argument(
        "--tag", action="append", default=None, help="Filter by tag (repeatable, any-of)"
    )

    subparsers.add_parser("stats", help="Show job and vector statistics")
    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = Settings()
    configure_logging(log_level=app_settings.log_level, json_output=False)

    try:
        exit_code = asyncio.run(_run(args, app_settings))
    except ScrapeIndexError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
