# === NAVMAP v1 ===
# {
#   "module": "SnapshotChangelog.engine",
#   "purpose": "Adapter around the external JSON diff/patch engine subprocess.",
#   "sections": [
#     {"id": "commandresult", "name": "CommandResult", "anchor": "class-commandresult", "kind": "class"},
#     {"id": "run-command", "name": "run_command", "anchor": "function-run-command", "kind": "function"},
#     {"id": "patchengine", "name": "PatchEngine", "anchor": "class-patchengine", "kind": "class"},
#     {"id": "subprocesspatchengine", "name": "SubprocessPatchEngine", "anchor": "class-subprocesspatchengine", "kind": "class"},
#     {"id": "artifact-names", "name": "changes_patch_name", "anchor": "function-changes-patch-name", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Adapter around the external JSON diff/patch engine.

The engine is a separate executable (``jd`` by default) that either prints a
JSON Patch describing the difference between two documents, or prints the
result of applying a patch to a document.  Every invocation goes through
:func:`run_command`, which is the only place a subprocess is started:

* in dry-run mode it logs ``Would run: <command>`` and returns immediately;
* otherwise it captures stdout, stderr, and the exit status.  A non-zero
  status is logged and tolerated unless strict mode is enabled, because
  ``jd`` itself exits 1 whenever the documents differ;
* an executable that cannot be started raises
  :class:`~SnapshotChangelog.errors.EngineInvocationError`.

:class:`SubprocessPatchEngine` turns captured stdout into patch artifacts on
disk and returns their paths.  Tests substitute any object satisfying the
:class:`PatchEngine` protocol.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Protocol, Sequence

from .errors import EngineInvocationError
from .io_utils import atomic_write_text
from .settings import EngineSettings

__all__ = [
    "CommandResult",
    "PatchEngine",
    "SubprocessPatchEngine",
    "applied_fix_path",
    "build_command",
    "changes_patch_name",
    "fix_patch_name",
    "run_command",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Outcome of one engine invocation."""

    command: str
    returncode: Optional[int]
    stdout: str
    stderr: str
    executed: bool

    @property
    def succeeded(self) -> bool:
        return self.executed and self.returncode == 0


def changes_patch_name(from_version: str, to_version: str) -> str:
    return f"patch-changes-{from_version}-{to_version}.json"


def fix_patch_name(version: str) -> str:
    return f"patch-fix-{version}.json"


def applied_fix_path(target_path: Path) -> Path:
    """Sibling of ``target_path`` with ``.json`` replaced by ``-fix.json``."""
    return target_path.with_name(f"{target_path.stem}-fix.json")


def build_command(template: str, values: Mapping[str, object]) -> list[str]:
    """Split ``template`` into argv and substitute ``{placeholders}`` per token.

    Substitution happens after splitting so paths containing spaces remain a
    single argument.
    """

    tokens = shlex.split(template)
    try:
        return [token.format(**{key: str(value) for key, value in values.items()})
                for token in tokens]
    except (KeyError, IndexError) as exc:
        raise EngineInvocationError(
            f"Engine command template {template!r} references unknown placeholder {exc}",
            command=template,
        ) from exc


def run_command(
    argv: Sequence[str],
    *,
    dry_run: bool,
    timeout: Optional[float] = None,
    strict: bool = False,
    ok_exit_codes: Sequence[int] = (0, 1),
) -> CommandResult:
    """Execute ``argv`` with captured output, or only log it in dry-run mode.

    Raises:
        EngineInvocationError: If the executable cannot be started, times out,
            or (in strict mode) exits with a status outside ``ok_exit_codes``.
    """

    command = shlex.join(argv)
    if dry_run:
        logger.info("Would run: %s", command, extra={"stage": "engine"})
        return CommandResult(command=command, returncode=None, stdout="", stderr="", executed=False)

    logger.debug("Running: %s", command, extra={"stage": "engine"})
    try:
        completed = subprocess.run(  # noqa: PLW1510 - exit status handled below
            list(argv),
            capture_output=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
        )
    except FileNotFoundError as exc:
        raise EngineInvocationError(
            f"Diff/patch engine '{argv[0]}' not found; is it installed and on PATH?",
            command=command,
        ) from exc
    except subprocess.TimeoutExpired as exc:
        raise EngineInvocationError(
            f"Diff/patch engine timed out after {timeout}s: {command}",
            command=command,
        ) from exc
    except OSError as exc:
        raise EngineInvocationError(
            f"Diff/patch engine could not be started: {exc}",
            command=command,
        ) from exc

    result = CommandResult(
        command=command,
        returncode=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
        executed=True,
    )
    if completed.returncode != 0:
        logger.warning(
            "Engine exited with status %s: %s",
            completed.returncode,
            command,
            extra={
                "stage": "engine",
                "extra_fields": {"returncode": completed.returncode, "stderr": result.stderr[-2000:]},
            },
        )
        if strict and completed.returncode not in set(ok_exit_codes):
            message = f"Diff/patch engine failed with status {completed.returncode}"
            stderr_lines = result.stderr.strip().splitlines()
            if stderr_lines:
                message = f"{message}: {stderr_lines[-1]}"
            raise EngineInvocationError(
                message,
                command=command,
                returncode=completed.returncode,
            )
    return result


class PatchEngine(Protocol):
    """Narrow interface the pipeline needs from a diff/patch engine."""

    def compute_changes_patch(
        self, from_path: Path, to_path: Path, *, from_version: str, to_version: str
    ) -> Path: ...

    def compute_fix_patch(self, regular_path: Path, fix_path: Path, *, version: str) -> Path: ...

    def apply_fix_patch(self, target_path: Path, patch_path: Path) -> Path: ...


class SubprocessPatchEngine:
    """:class:`PatchEngine` backed by an external executable."""

    def __init__(
        self,
        settings: EngineSettings,
        *,
        output_dir: Path,
        dry_run: bool = False,
    ) -> None:
        self._settings = settings
        self._output_dir = output_dir
        self._dry_run = dry_run

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    def _invoke(self, template: str, values: Mapping[str, object]) -> CommandResult:
        return run_command(
            build_command(template, values),
            dry_run=self._dry_run,
            timeout=self._settings.timeout_sec,
            strict=self._settings.strict,
            ok_exit_codes=self._settings.ok_exit_codes,
        )

    def _store(self, result: CommandResult, destination: Path) -> Path:
        if not result.executed:
            logger.info("Would write %s", destination, extra={"stage": "engine"})
            return destination
        try:
            atomic_write_text(destination, result.stdout)
        except OSError as exc:
            raise EngineInvocationError(
                f"Could not store engine output at {destination}: {exc}",
                command=result.command,
                returncode=result.returncode,
            ) from exc
        logger.debug("Wrote %s", destination, extra={"stage": "engine"})
        return destination

    def compute_changes_patch(
        self, from_path: Path, to_path: Path, *, from_version: str, to_version: str
    ) -> Path:
        """Diff two full snapshots into ``patch-changes-<from>-<to>.json``."""

        result = self._invoke(self._settings.diff_command, {"source": from_path, "target": to_path})
        return self._store(result, self._output_dir / changes_patch_name(from_version, to_version))

    def compute_fix_patch(self, regular_path: Path, fix_path: Path, *, version: str) -> Path:
        """Diff a version against its fix overlay into ``patch-fix-<version>.json``."""

        result = self._invoke(
            self._settings.diff_command, {"source": regular_path, "target": fix_path}
        )
        return self._store(result, self._output_dir / fix_patch_name(version))

    def apply_fix_patch(self, target_path: Path, patch_path: Path) -> Path:
        """Apply ``patch_path`` to ``target_path`` and write the ``-fix.json`` sibling."""

        result = self._invoke(
            self._settings.apply_command, {"patch": patch_path, "target": target_path}
        )
        return self._store(result, applied_fix_path(target_path))
