"""Command-line behaviour exercised through Typer's test runner."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from snapshot_helpers import tree_state
from typer.testing import CliRunner

from SnapshotChangelog import __version__
from SnapshotChangelog.cli import app, cli_main

runner = CliRunner()


def _process_args(snapshot_dir: Path, *extra: str, to_version: str = "v2") -> list[str]:
    return [
        "process",
        "v1",
        to_version,
        "--base-dir",
        str(snapshot_dir),
        "--changelog",
        str(snapshot_dir.parent / "CHANGELOG.md"),
        *extra,
    ]


def test_version_flag() -> None:
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert f"snapshot-changelog {__version__}" in result.output


@pytest.mark.usefixtures("fake_engine_env")
def test_process_writes_artifacts(snapshot_dir: Path) -> None:
    result = runner.invoke(app, _process_args(snapshot_dir))

    assert result.exit_code == 0, result.output
    assert (snapshot_dir / "patch-changes-v1-v2.json").is_file()
    assert (snapshot_dir / "patch-fix-v1.json").is_file()
    assert (snapshot_dir / "20250103T000000Z-v2-fix.json").is_file()
    changelog = (snapshot_dir.parent / "CHANGELOG.md").read_text(encoding="utf-8")
    assert changelog.startswith("# Changelog\n\n## v2 - ")


@pytest.mark.usefixtures("fake_engine_env")
def test_process_honours_output_dir(snapshot_dir: Path, tmp_path: Path) -> None:
    out = tmp_path / "patches"

    result = runner.invoke(app, _process_args(snapshot_dir, "--output-dir", str(out)))

    assert result.exit_code == 0, result.output
    assert (out / "patch-changes-v1-v2.json").is_file()
    assert not (snapshot_dir / "patch-changes-v1-v2.json").exists()


@pytest.mark.usefixtures("fake_engine_env")
def test_missing_version_exits_1_without_writing(snapshot_dir: Path) -> None:
    before = tree_state(snapshot_dir.parent)

    result = runner.invoke(app, _process_args(snapshot_dir, to_version="v3"))

    assert result.exit_code == 1
    assert "[ERROR]" in result.output
    assert "v3" in result.output
    assert tree_state(snapshot_dir.parent) == before


@pytest.mark.usefixtures("fake_engine_env")
def test_dry_run_creates_nothing(snapshot_dir: Path) -> None:
    before = tree_state(snapshot_dir.parent)

    result = runner.invoke(
        app,
        _process_args(
            snapshot_dir,
            "--dry-run",
            "--llm-endpoint",
            "https://llm.example.test/v1/chat/completions",
            "--webhook-url",
            "https://hooks.example.test/x",
        ),
    )

    assert result.exit_code == 0, result.output
    assert "DRY-RUN MODE" in result.output
    assert "Would run:" in result.output
    assert "Would post to webhook" in result.output
    assert tree_state(snapshot_dir.parent) == before


@pytest.mark.usefixtures("fake_engine_env")
def test_llm_endpoint_falls_back_to_environment(snapshot_dir: Path) -> None:
    result = runner.invoke(
        app,
        _process_args(snapshot_dir, "-n"),
        env={"LLM_ENDPOINT": "https://env-llm.example.test/v1"},
    )

    assert result.exit_code == 0, result.output
    assert "Would request summary from https://env-llm.example.test/v1" in result.output


def test_invalid_webhook_url_is_a_usage_error(snapshot_dir: Path) -> None:
    result = runner.invoke(app, _process_args(snapshot_dir, "--webhook-url", "ftp://nope"))

    assert result.exit_code == 1
    assert "[ERROR] Invalid arguments" in result.output


@pytest.mark.usefixtures("fake_engine_env")
def test_log_file_receives_json_lines(snapshot_dir: Path, tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "run.jsonl"

    result = runner.invoke(app, _process_args(snapshot_dir, "--log-file", str(log_file)))

    assert result.exit_code == 0, result.output
    records = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
    assert records
    assert all("run_id" in record for record in records)


def test_versions_lists_discovered_snapshots(snapshot_dir: Path) -> None:
    result = runner.invoke(app, ["versions", "--base-dir", str(snapshot_dir)])

    assert result.exit_code == 0
    assert "v1" in result.output and "v2" in result.output
    assert "fix" in result.output


def test_versions_rejects_missing_directory(tmp_path: Path) -> None:
    result = runner.invoke(app, ["versions", "--base-dir", str(tmp_path / "absent")])

    assert result.exit_code == 1
    assert "[ERROR]" in result.output


def test_cli_main_maps_usage_errors_to_1() -> None:
    assert cli_main(["process"]) == 1
    assert cli_main(["--version"]) == 0


def test_unexpected_pipeline_error_prints_one_error_line(
    snapshot_dir: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    def explode(*args, **kwargs):
        raise RuntimeError("engine output was garbled")

    monkeypatch.setattr("SnapshotChangelog.cli.process", explode)

    result = runner.invoke(app, _process_args(snapshot_dir))

    assert result.exit_code == 1
    assert "[ERROR] engine output was garbled" in result.output
    assert "Traceback" not in result.output


def test_cli_main_reports_missing_arguments(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli_main(["process", "v1"]) == 1
    assert "Missing" in capsys.readouterr().err
