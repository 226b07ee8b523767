"""Unit tests for the ingestion CLI (src.cli.ingest)."""

from __future__ import annotations

from argparse import Namespace
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.cli.ingest import _build_parser, _handle_file, _handle_search, _handle_url, main
from src.config.settings import Settings
from src.models.job import IngestionResult, Job, JobStatus
from src.models.vector import CollectionStats
from src.services.fingerprint import ContentFingerprinter
from src.utils.errors import ConfigurationError, ExtractionError


# ======================================================================
# Shared helpers
# ======================================================================


def _result(url: str, deduplicated: bool = False) -> IngestionResult:
    return IngestionResult(
        job_id="job-1",
        url=url,
        status=JobStatus.INDEXED,
        chunk_count=2,
        deduplicated=deduplicated,
    )


def _components() -> dict:
    ingestion = MagicMock()
    ingestion.ingest_url = AsyncMock(side_effect=lambda url, source: _result(url))
    ingestion.ingest_many = AsyncMock(return_value=([], []))

    search = MagicMock()
    search.search = AsyncMock(return_value=[])

    vector_index = MagicMock()
    vector_index.wait_until_ready = AsyncMock()
    vector_index.get_stats = AsyncMock(return_value=CollectionStats(vector_count=3, dimension=8))
    vector_index.get_provider_name.return_value = "memory"

    record_store = MagicMock()
    record_store.count_jobs = AsyncMock(
        return_value={"PENDING": 0, "PROCESSING": 0, "INDEXED": 1, "FAILED": 0}
    )

    return {
        "settings": Settings(_env_file=None),
        "ingestion_service": ingestion,
        "search_service": search,
        "vector_index": vector_index,
        "record_store": record_store,
    }


# ======================================================================
# Parser
# ======================================================================


class TestParser:
    def test_search_arguments(self) -> None:
        args = _build_parser().parse_args(
            ["search", "python jobs", "--top-k", "5", "--tag", "remote", "--tag", "senior"]
        )
        assert args.command == "search"
        assert args.top_k == 5
        assert args.tag == ["remote", "senior"]

    def test_file_source_default(self) -> None:
        args = _build_parser().parse_args(["file", "a.txt"])
        assert args.source == "file"

    def test_no_command_exits(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 1


# ======================================================================
# Handlers
# ======================================================================


class TestHandlers:
    @pytest.mark.asyncio
    async def test_url_partial_failure(self, capsys: pytest.CaptureFixture[str]) -> None:
        components = _components()
        components["ingestion_service"].ingest_url.side_effect = [
            _result("https://e.com/a"),
            ExtractionError(message="HTTP 404", reason="http_status"),
        ]

        code = await _handle_url(
            Namespace(urls=["https://e.com/a", "https://e.com/b"], source="blog"), components
        )

        assert code == 1
        out, err = capsys.readouterr()
        assert "https://e.com/a" in out
        assert "FAILED" in err and "https://e.com/b" in err

    @pytest.mark.asyncio
    async def test_file_builds_documents(self, tmp_path: Path) -> None:
        path = tmp_path / "notes.txt"
        path.write_text("Release notes body", encoding="utf-8")
        components = _components()

        code = await _handle_file(
            Namespace(files=[str(path)], title="", source="file"), components
        )

        assert code == 0
        documents, source = components["ingestion_service"].ingest_many.call_args.args
        assert source == "file"
        assert documents[0].title == "notes"
        assert documents[0].content_text == "Release notes body"
        assert documents[0].url.startswith("file://")

    @pytest.mark.asyncio
    async def test_file_missing(self, tmp_path: Path) -> None:
        code = await _handle_file(
            Namespace(files=[str(tmp_path / "nope.txt")], title="", source="file"), _components()
        )
        assert code == 1

    @pytest.mark.asyncio
    async def test_search_passes_filters(self, capsys: pytest.CaptureFixture[str]) -> None:
        components = _components()
        job = Job(
            id="job-1",
            fingerprint=ContentFingerprinter().fingerprint("x"),
            url="https://e.com/1",
            title="Python engineer",
            source="blog",
        )
        components["search_service"].search.return_value = [job]

        code = await _handle_search(
            Namespace(query="python", top_k=3, source="blog", language=None, tag=["remote"]),
            components,
        )

        assert code == 0
        components["search_service"].search.assert_awaited_once_with(
            "python", {"source": "blog", "tags": ["remote"]}, 3
        )
        assert "Python engineer" in capsys.readouterr().out


# ======================================================================
# Entry point
# ======================================================================


class TestMain:
    def test_stats_runs_through_shared_wiring(self, capsys: pytest.CaptureFixture[str]) -> None:
        components = _components()
        with (
            patch("src.main._build_all", return_value=components) as build_all,
            patch("src.main.startup", new=AsyncMock(return_value=None)),
            patch("src.main.shutdown", new=AsyncMock()) as shutdown,
            patch("src.cli.ingest.configure_logging"),
        ):
            with pytest.raises(SystemExit) as exc_info:
                main(["stats"])

        assert exc_info.value.code == 0
        build_all.assert_called_once()
        shutdown.assert_awaited_once()
        out = capsys.readouterr().out
        assert "Vectors:       3" in out
        assert "INDEXED" in out

    def test_configuration_error_exits_nonzero(self, capsys: pytest.CaptureFixture[str]) -> None:
        with (
            patch("src.main._build_all", side_effect=ConfigurationError(message="No API key")),
            patch("src.cli.ingest.configure_logging"),
        ):
            with pytest.raises(SystemExit) as exc_info:
                main(["stats"])

        assert exc_info.value.code == 1
        assert "No API key" in capsys.readouterr().err
