"""Tests for the media-catalog CLI."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
from conftest import create_test_image, create_test_video
from sqlalchemy import select
from typer.testing import CliRunner

from media_catalog import cli
from media_catalog.config import Settings
from media_catalog.context import create_context
from media_catalog.models import FileRecord

runner = CliRunner()


@pytest.fixture
def cli_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Settings:
    settings = Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}",
        blob_root=tmp_path / "blobs",
        public_base_url="http://test/media",
        log_level="WARNING",
    )
    monkeypatch.setattr(cli, "settings", settings)
    return settings


@pytest.fixture
def upload_dir(tmp_path: Path) -> Path:
    root = tmp_path / "recital"
    (root / "day1").mkdir(parents=True)
    (root / "day1" / "a.jpg").write_bytes(create_test_image())
    (root / "day1" / "b.mp4").write_bytes(create_test_video())
    (root / "notes.txt").write_bytes(b"programme notes\n")
    (root / ".DS_Store").write_bytes(b"\x00\x00\x00\x01Bud1")
    return root


def _records(settings: Settings) -> list[FileRecord]:
    async def _load() -> list[FileRecord]:
        ctx = create_context(settings)
        try:
            async with ctx.session_factory() as session:
                result = await session.execute(select(FileRecord))
                return list(result.scalars().all())
        finally:
            await ctx.aclose()

    return asyncio.run(_load())


class TestCollectFiles:
    def test_walk_skips_hidden_files(self, upload_dir: Path) -> None:
        found = cli.collect_files(upload_dir, recursive=True)
        assert [relative for _, relative in found] == ["day1/a.jpg", "day1/b.mp4", "notes.txt"]

    def test_non_recursive(self, upload_dir: Path) -> None:
        found = cli.collect_files(upload_dir, recursive=False)
        assert [relative for _, relative in found] == ["notes.txt"]

    def test_single_file(self, upload_dir: Path) -> None:
        found = cli.collect_files(upload_dir / "notes.txt", recursive=True)
        assert found == [(upload_dir / "notes.txt", "notes.txt")]


class TestIngestCommand:
    def test_ingest_directory(self, cli_settings: Settings, upload_dir: Path) -> None:
        result = runner.invoke(cli.app, ["ingest", str(upload_dir), "--folder-name", "Recital"])

        assert result.exit_code == 0, result.output
        assert "3 ingested, 0 duplicates, 0 failed" in result.output
        records = _records(cli_settings)
        assert sorted(r.storage_path.split("/", 1)[1] for r in records) == [
            "day1/a.jpg", "day1/b.mp4", "notes.txt",
        ]
        assert (cli_settings.blob_root / records[0].storage_path).exists()

    def test_second_run_reports_duplicates(
        self, cli_settings: Settings, upload_dir: Path
    ) -> None:
        runner.invoke(cli.app, ["ingest", str(upload_dir), "-f", "Recital"])
        result = runner.invoke(cli.app, ["ingest", str(upload_dir), "-f", "Recital"])

        assert result.exit_code == 0, result.output
        assert "0 ingested, 3 duplicates, 0 failed" in result.output
        assert "SKIP" in result.output

    def test_missing_path(self, cli_settings: Settings, tmp_path: Path) -> None:
        result = runner.invoke(cli.app, ["ingest", str(tmp_path / "missing")])
        assert result.exit_code == 1
        assert "Path does not exist" in result.output


class TestQueryCommands:
    def test_folders(self, cli_settings: Settings, upload_dir: Path) -> None:
        runner.invoke(cli.app, ["ingest", str(upload_dir), "-f", "Recital"])

        result = runner.invoke(cli.app, ["folders"])

        assert result.exit_code == 0, result.output
        assert "Recital" in result.output

    def test_files_page(self, cli_settings: Settings, upload_dir: Path) -> None:
        runner.invoke(cli.app, ["ingest", str(upload_dir), "-f", "Recital"])
        folder_id = _records(cli_settings)[0].folder_id

        result = runner.invoke(
            cli.app, ["files", str(folder_id), "--page-size", "2", "--page", "2"]
        )

        assert result.exit_code == 0, result.output
        assert "Page 2" in result.output

    def test_files_beyond_the_end(self, cli_settings: Settings, upload_dir: Path) -> None:
        runner.invoke(cli.app, ["ingest", str(upload_dir), "-f", "Recital"])
        folder_id = _records(cli_settings)[0].folder_id

        result = runner.invoke(
            cli.app, ["files", str(folder_id), "--page-size", "2", "--page", "9"]
        )

        assert result.exit_code == 0, result.output
        assert "Page 9 does not exist" in result.output

    def test_files_bad_folder_id(self, cli_settings: Settings) -> None:
        result = runner.invoke(cli.app, ["files", "not-a-uuid"])
        assert result.exit_code == 1


class TestMaintenanceCommands:
    def test_fix_content_types(self, cli_settings: Settings, tmp_path: Path) -> None:
        source = tmp_path / "clips"
        source.mkdir()
        (source / "clip.dat").write_bytes(create_test_video())
        runner.invoke(cli.app, ["ingest", str(source), "-f", "Clips"])
        record = _records(cli_settings)[0]
        assert record.content_type == "video/mp4"

        # The local copy turns out to be a JPEG after all
        (source / "clip.dat").write_bytes(create_test_image())
        dry = runner.invoke(
            cli.app, ["fix-content-types", str(source), "-f", "Clips", "--dry-run"]
        )
        assert "1 would update" in dry.output
        assert _records(cli_settings)[0].content_type == "video/mp4"

        result = runner.invoke(cli.app, ["fix-content-types", str(source), "-f", "Clips"])

        assert result.exit_code == 0, result.output
        assert "1 updated, 0 not in catalog" in result.output
        assert _records(cli_settings)[0].content_type == "image/jpeg"

    def test_fix_content_types_unknown_folder(
        self, cli_settings: Settings, upload_dir: Path
    ) -> None:
        result = runner.invoke(cli.app, ["fix-content-types", str(upload_dir), "-f", "Nope"])
        assert result.exit_code == 1
        assert "Unknown folder" in result.output

    def test_delete(self, cli_settings: Settings, upload_dir: Path) -> None:
        runner.invoke(cli.app, ["ingest", str(upload_dir), "-f", "Recital"])
        record = _records(cli_settings)[0]

        result = runner.invoke(cli.app, ["delete", str(record.file_id)])

        assert result.exit_code == 0, result.output
        assert len(_records(cli_settings)) == 2
        assert not (cli_settings.blob_root / record.storage_path).exists()

    def test_delete_unknown(self, cli_settings: Settings) -> None:
        result = runner.invoke(
            cli.app, ["delete", "00000000-0000-0000-0000-000000000000"]
        )
        assert result.exit_code == 1
        assert "not found" in result.output
