"""Changelog store: heading handling, newest-first ordering, dry runs, failures."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from SnapshotChangelog.changelog import (
    CHANGELOG_HEADING,
    NO_SUMMARY_TEXT,
    ChangelogEntry,
    ChangelogStore,
    insert_entry,
)

T0 = datetime(2025, 1, 3, 9, 0, tzinfo=timezone.utc)


def test_creates_file_with_heading(tmp_path: Path) -> None:
    path = tmp_path / "docs" / "CHANGELOG.md"

    assert ChangelogStore(path).append("First release.", "v1", now=T0) is True

    assert path.read_text(encoding="utf-8") == (
        "# Changelog\n\n## v1 - 2025-01-03T09:00:00Z\n\nFirst release.\n\n"
    )


def test_newest_entry_goes_first(tmp_path: Path) -> None:
    path = tmp_path / "CHANGELOG.md"
    store = ChangelogStore(path)
    for index, version in enumerate(["v2", "v3", "v4"]):
        store.append(f"Changes for {version}.", version, now=T0 + timedelta(days=index))

    content = path.read_text(encoding="utf-8")

    assert content.startswith(CHANGELOG_HEADING + "\n")
    assert content.count(CHANGELOG_HEADING) == 1
    assert content.index("## v4") < content.index("## v3") < content.index("## v2")


def test_missing_heading_is_added_above_existing_content(tmp_path: Path) -> None:
    path = tmp_path / "CHANGELOG.md"
    path.write_text("Some notes kept by hand.\n", encoding="utf-8")

    ChangelogStore(path).append("New.", "v2", now=T0)

    content = path.read_text(encoding="utf-8")
    assert content.startswith("# Changelog\n\n## v2 - ")
    assert content.rstrip().endswith("Some notes kept by hand.")


def test_preamble_before_heading_is_preserved() -> None:
    existing = "<!-- managed -->\n# Changelog\n\n## v1 - 2025-01-01T00:00:00Z\n\nOld.\n"
    entry = ChangelogEntry("v2", "2025-01-02T00:00:00Z", "New.")

    updated = insert_entry(existing, entry)

    assert updated.startswith("<!-- managed -->\n# Changelog\n\n## v2 - 2025-01-02T00:00:00Z\n\nNew.\n\n## v1")


def test_empty_text_renders_placeholder(tmp_path: Path) -> None:
    path = tmp_path / "CHANGELOG.md"

    ChangelogStore(path).append(None, "v2", now=T0)

    assert NO_SUMMARY_TEXT in path.read_text(encoding="utf-8")


def test_naive_timestamps_are_treated_as_utc(tmp_path: Path) -> None:
    path = tmp_path / "CHANGELOG.md"

    ChangelogStore(path).append("x", "v2", now=datetime(2025, 6, 1, 12, 0, 0))

    assert "## v2 - 2025-06-01T12:00:00Z" in path.read_text(encoding="utf-8")


def test_dry_run_leaves_file_untouched(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="SnapshotChangelog")
    path = tmp_path / "CHANGELOG.md"

    assert ChangelogStore(path, dry_run=True).append("x", "v2", now=T0) is False

    assert not path.exists()
    assert any(message.startswith("Would prepend changelog entry for v2") for message in caplog.messages)


def test_write_failure_is_logged_not_raised(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.ERROR, logger="SnapshotChangelog")
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("", encoding="utf-8")

    assert ChangelogStore(blocker / "CHANGELOG.md").append("x", "v2", now=T0) is False
    assert any("Could not update changelog" in message for message in caplog.messages)


def test_undecodable_changelog_is_logged_not_raised(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.ERROR, logger="SnapshotChangelog")
    path = tmp_path / "CHANGELOG.md"
    path.write_bytes(b"# Changelog\n\ncaf\xe9\n")

    assert ChangelogStore(path).append("x", "v2", now=T0) is False
    assert path.read_bytes() == b"# Changelog\n\ncaf\xe9\n"
    assert any("Could not update changelog" in message for message in caplog.messages)
