"""Exception hierarchy shared across snapshot discovery, patching, and publishing.

The pipeline spans filesystem discovery, an external diff/patch subprocess,
an LLM summarizer, changelog persistence, and webhook delivery.  Failures are
grouped into two families so the orchestrator can react to categories rather
than individual classes: :class:`FatalPipelineError` subclasses abort the run,
while :class:`RecoverableStepError` subclasses are absorbed by the component
that produced them and surface only as log records or degraded output.
"""

from __future__ import annotations

from typing import Optional, Sequence

__all__ = [
    "SnapshotChangelogError",
    "ConfigurationError",
    "FatalPipelineError",
    "MissingArtifact",
    "EngineInvocationError",
    "RecoverableStepError",
    "SummarizationFailure",
    "ChangelogWriteFailure",
    "NotificationFailure",
]


class SnapshotChangelogError(RuntimeError):
    """Base exception for snapshot changelog failures."""


class ConfigurationError(SnapshotChangelogError):
    """Raised when CLI arguments or settings are invalid."""


class FatalPipelineError(SnapshotChangelogError):
    """Failure that aborts the remaining pipeline steps."""


class MissingArtifact(FatalPipelineError):
    """Raised when no regular snapshot exists for a required version."""

    def __init__(self, message: str, *, versions: Optional[Sequence[str]] = None) -> None:
        super().__init__(message)
        self.versions = tuple(versions or ())


class EngineInvocationError(FatalPipelineError):
    """Raised when the diff/patch engine cannot be started or fails in strict mode."""

    def __init__(
        self,
        message: str,
        *,
        command: Optional[str] = None,
        returncode: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.command = command
        self.returncode = returncode


class RecoverableStepError(SnapshotChangelogError):
    """Failure caught at a component boundary; never aborts the pipeline."""


class SummarizationFailure(RecoverableStepError):
    """Raised internally when the summarizer endpoint cannot produce text."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ChangelogWriteFailure(RecoverableStepError):
    """Raised internally when the changelog document cannot be updated."""


class NotificationFailure(RecoverableStepError):
    """Raised internally when the webhook rejects or never receives a payload."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
# === NAVMAP v1 ===
# {
#   "module": "SnapshotChangelog.errors",
#   "purpose": "Define the exception hierarchy used across discovery, patching, and publishing",
#   "sections": [
#     {"id": "base", "name": "Base Exceptions", "anchor": "BAS", "kind": "api"},
#     {"id": "fatal", "name": "Fatal Pipeline Errors", "anchor": "FAT", "kind": "api"},
#     {"id": "recoverable", "name": "Recoverable Step Errors", "anchor": "REC", "kind": "api"}
#   ]
# }
# === /NAVMAP ===
