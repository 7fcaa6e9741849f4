# === NAVMAP v1 ===
# {
#   "module": "SnapshotChangelog.locator",
#   "purpose": "Filesystem discovery of timestamped snapshot files per version.",
#   "sections": [
#     {"id": "snapshotfile", "name": "SnapshotFile", "anchor": "class-snapshotfile", "kind": "class"},
#     {"id": "versionfileset", "name": "VersionFileSet", "anchor": "class-versionfileset", "kind": "class"},
#     {"id": "discover-snapshots", "name": "discover_snapshots", "anchor": "function-discover-snapshots", "kind": "function"},
#     {"id": "locate-version-files", "name": "locate_version_files", "anchor": "function-locate-version-files", "kind": "function"},
#     {"id": "require-version-files", "name": "require_version_files", "anchor": "function-require-version-files", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Filesystem discovery of timestamped snapshot files.

Snapshots live anywhere below a base directory and are named
``<YYYYMMDDTHHMMSSZ>-<version>.json``; an optional correction overlay for the
same version carries an extra ``-fix`` suffix before ``.json``.  The locator
translates that naming scheme into :class:`VersionFileSet` records.

When several files match the same version, selection never depends on the
order the operating system returns directory entries: candidates are ranked
by timestamp (newest first) and then by relative path, so repeated runs over
an unchanged tree always pick the same file.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path

from .errors import MissingArtifact

__all__ = [
    "SNAPSHOT_PATTERN",
    "SnapshotFile",
    "VersionFileSet",
    "discover_snapshots",
    "locate_version_files",
    "require_version_files",
]

logger = logging.getLogger(__name__)

_TIMESTAMP = r"\d{8}T\d{6}Z"
SNAPSHOT_PATTERN = re.compile(
    rf"^(?P<timestamp>{_TIMESTAMP})-(?P<version>.+?)(?P<fix>-fix)?\.json$"
)


@dataclass(frozen=True, slots=True)
class SnapshotFile:
    """One parsed snapshot file name."""

    path: Path
    timestamp: str
    version: str
    is_fix: bool

    @property
    def kind(self) -> str:
        return "fix" if self.is_fix else "regular"


@dataclass(frozen=True, slots=True)
class VersionFileSet:
    """Artifacts located for one named version."""

    version: str
    regular: Path | None = None
    fix: Path | None = None

    @property
    def has_fix(self) -> bool:
        return self.fix is not None


def _version_patterns(version: str) -> tuple[re.Pattern[str], re.Pattern[str]]:
    escaped = re.escape(version)
    regular = re.compile(rf"^(?P<timestamp>{_TIMESTAMP})-{escaped}\.json$")
    fix = re.compile(rf"^(?P<timestamp>{_TIMESTAMP})-{escaped}-fix\.json$")
    return regular, fix


def _iter_json_files(base_dir: Path) -> Iterator[Path]:
    for path in sorted(base_dir.rglob("*.json"), key=lambda p: p.relative_to(base_dir).as_posix()):
        if path.is_file():
            yield path


def _select(candidates: Sequence[tuple[str, Path]], base_dir: Path) -> Path | None:
    """Pick the newest candidate; ties resolve on the smallest relative path."""

    if not candidates:
        return None
    ranked = sorted(candidates, key=lambda item: item[1].relative_to(base_dir).as_posix())
    ranked.sort(key=lambda item: item[0], reverse=True)
    if len(ranked) > 1:
        logger.debug(
            "multiple snapshots matched; selected newest",
            extra={
                "stage": "locate",
                "extra_fields": {
                    "selected": str(ranked[0][1]),
                    "candidates": [str(path) for _, path in ranked],
                },
            },
        )
    return ranked[0][1]


def discover_snapshots(base_dir: Path) -> list[SnapshotFile]:
    """Return every snapshot file below ``base_dir`` in a stable order."""

    snapshots: list[SnapshotFile] = []
    for path in _iter_json_files(base_dir):
        match = SNAPSHOT_PATTERN.match(path.name)
        if match is None:
            continue
        snapshots.append(
            SnapshotFile(
                path=path,
                timestamp=match.group("timestamp"),
                version=match.group("version"),
                is_fix=match.group("fix") is not None,
            )
        )
    snapshots.sort(key=lambda item: (item.timestamp, item.version, item.is_fix))
    return snapshots


def locate_version_files(base_dir: Path, version: str) -> VersionFileSet:
    """Scan ``base_dir`` recursively and return the files recorded for ``version``."""

    regular_pattern, fix_pattern = _version_patterns(version)
    regular: list[tuple[str, Path]] = []
    fixes: list[tuple[str, Path]] = []
    if base_dir.is_dir():
        for path in _iter_json_files(base_dir):
            match = regular_pattern.match(path.name)
            if match is not None:
                regular.append((match.group("timestamp"), path))
                continue
            match = fix_pattern.match(path.name)
            if match is not None:
                fixes.append((match.group("timestamp"), path))
    return VersionFileSet(
        version=version,
        regular=_select(regular, base_dir),
        fix=_select(fixes, base_dir),
    )


def require_version_files(
    base_dir: Path, from_version: str, to_version: str
) -> tuple[VersionFileSet, VersionFileSet]:
    """Locate both versions, failing when either lacks a regular snapshot.

    Raises:
        MissingArtifact: Naming every version without a regular file.
    """

    source = locate_version_files(base_dir, from_version)
    target = locate_version_files(base_dir, to_version)
    missing = [files.version for files in (source, target) if files.regular is None]
    if missing:
        names = ", ".join(f"'{version}'" for version in dict.fromkeys(missing))
        raise MissingArtifact(
            f"Missing artifacts: no snapshot file found for version {names} under {base_dir}",
            versions=missing,
        )
    return source, target
