# === NAVMAP v1 ===
# {
#   "module": "SnapshotChangelog.changelog",
#   "purpose": "Most-recent-first changelog persistence.",
#   "sections": [
#     {"id": "changelogentry", "name": "ChangelogEntry", "anchor": "class-changelogentry", "kind": "class"},
#     {"id": "insert-entry", "name": "insert_entry", "anchor": "function-insert-entry", "kind": "function"},
#     {"id": "changelogstore", "name": "ChangelogStore", "anchor": "class-changelogstore", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""Most-recent-first changelog persistence.

The changelog is a Markdown document whose first line is ``# Changelog``.
Every run inserts one entry directly below that heading::

    # Changelog

    ## v3 - 2025-01-04T10:00:00Z

    <summary>

    ## v2 - 2025-01-03T09:00:00Z
    ...

Updates are a read-modify-write of the whole file, replaced atomically.
Write failures are logged and reported through the return value only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .errors import ChangelogWriteFailure
from .io_utils import atomic_write_text

__all__ = [
    "CHANGELOG_HEADING",
    "NO_SUMMARY_TEXT",
    "ChangelogEntry",
    "ChangelogStore",
    "insert_entry",
]

logger = logging.getLogger(__name__)

CHANGELOG_HEADING = "# Changelog"
NO_SUMMARY_TEXT = "_No human-readable summary was generated for this version._"


def _utc_timestamp(now: Optional[datetime] = None) -> str:
    moment = now or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True, slots=True)
class ChangelogEntry:
    version: str
    timestamp: str
    text: str

    def render(self) -> str:
        body = self.text.strip() or NO_SUMMARY_TEXT
        return f"## {self.version} - {self.timestamp}\n\n{body}\n\n"


def insert_entry(existing: str, entry: ChangelogEntry) -> str:
    """Return ``existing`` with ``entry`` placed right after the leading heading."""

    if not existing.strip():
        return f"{CHANGELOG_HEADING}\n\n{entry.render()}"

    lines = existing.splitlines(keepends=True)
    heading_index = next(
        (index for index, line in enumerate(lines) if line.rstrip("\r\n") == CHANGELOG_HEADING),
        None,
    )
    if heading_index is None:
        return f"{CHANGELOG_HEADING}\n\n{entry.render()}{existing.lstrip()}"

    head = "".join(lines[: heading_index + 1])
    if not head.endswith("\n"):
        head += "\n"
    rest = "".join(lines[heading_index + 1 :]).lstrip("\r\n")
    return f"{head}\n{entry.render()}{rest}"


class ChangelogStore:
    """Append entries to a changelog file, newest first."""

    def __init__(self, path: Path, *, dry_run: bool = False) -> None:
        self.path = path
        self.dry_run = dry_run

    def append(self, text: Optional[str], version: str, *, now: Optional[datetime] = None) -> bool:
        """Insert an entry for ``version``; return whether the file was updated."""

        if self.dry_run:
            logger.info(
                "Would prepend changelog entry for %s to %s",
                version,
                self.path,
                extra={"stage": "changelog"},
            )
            return False

        entry = ChangelogEntry(version=version, timestamp=_utc_timestamp(now), text=text or "")
        try:
            try:
                existing = self.path.read_text(encoding="utf-8")
            except FileNotFoundError:
                existing = ""
                logger.info("Creating changelog %s", self.path, extra={"stage": "changelog"})
            atomic_write_text(self.path, insert_entry(existing, entry))
        except (OSError, UnicodeError) as exc:
            failure = ChangelogWriteFailure(f"Could not update changelog {self.path}: {exc}")
            logger.error("%s", failure, extra={"stage": "changelog"})
            return False
        logger.info(
            "Recorded changelog entry for %s in %s",
            version,
            self.path,
            extra={"stage": "changelog"},
        )
        return True
