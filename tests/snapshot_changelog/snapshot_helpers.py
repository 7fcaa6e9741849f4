"""Test doubles and filesystem helpers for the snapshot_changelog suite."""

from __future__ import annotations

import json
import shlex
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import httpx

from SnapshotChangelog.engine import applied_fix_path, changes_patch_name, fix_patch_name
from SnapshotChangelog.errors import EngineInvocationError

FAKE_ENGINE = Path(__file__).with_name("fake_jd.py")


def fake_engine_commands(*extra: str) -> dict[str, str]:
    """Engine command templates that run ``fake_jd.py`` with this interpreter."""

    prefix = " ".join(shlex.quote(part) for part in (sys.executable, str(FAKE_ENGINE), *extra))
    return {
        "diff_command": f"{prefix} -f patch {{source}} {{target}}",
        "apply_command": f"{prefix} -p -f patch {{patch}} {{target}}",
    }


def write_snapshot(base: Path, name: str, payload: dict[str, Any]) -> Path:
    path = base / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return path


def tree_state(root: Path) -> dict[str, bytes]:
    return {
        path.relative_to(root).as_posix(): path.read_bytes()
        for path in sorted(root.rglob("*"))
        if path.is_file()
    }


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


@dataclass
class FakeEngine:
    """Records engine calls and writes small placeholder artifacts."""

    output_dir: Path
    write: bool = True
    fail_on: str | None = None
    fail_with: type[Exception] | None = None
    calls: list[tuple[str, tuple[Path, ...]]] = field(default_factory=list)

    def _emit(self, name: str, destination: Path, *paths: Path) -> Path:
        self.calls.append((name, paths))
        if self.fail_on == name:
            if self.fail_with is not None:
                raise self.fail_with(f"{name} could not start")
            raise EngineInvocationError(f"{name} could not start", command=name)
        if self.write:
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_text(json.dumps([{"op": "test", "path": "", "value": name}]))
        return destination

    def compute_changes_patch(self, from_path, to_path, *, from_version, to_version):
        return self._emit(
            "changes",
            self.output_dir / changes_patch_name(from_version, to_version),
            from_path,
            to_path,
        )

    def compute_fix_patch(self, regular_path, fix_path, *, version):
        return self._emit("fix", self.output_dir / fix_patch_name(version), regular_path, fix_path)

    def apply_fix_patch(self, target_path, patch_path):
        return self._emit("apply", applied_fix_path(target_path), target_path, patch_path)


@dataclass
class RecordingNotifier:
    payloads: list[dict] = field(default_factory=list)

    def post(self, payload: dict) -> bool:
        self.payloads.append(dict(payload))
        return True


@dataclass
class StaticSummarizer:
    text: str = "Bumped count and added tags."
    seen: list[str] = field(default_factory=list)

    def summarize(self, patch_text: str) -> str:
        self.seen.append(patch_text)
        return self.text
