# === NAVMAP v1 ===
# {
#   "module": "SnapshotChangelog",
#   "purpose": "Package initialization for SnapshotChangelog",
#   "sections": []
# }
# === /NAVMAP ===

"""Public API for the JSON snapshot changelog pipeline.

The package locates timestamped snapshots of a JSON document, asks an
external engine for the JSON Patch between two versions, forward-applies any
correction overlay, summarizes the change through an LLM endpoint, records a
changelog entry, and notifies a webhook.  :func:`process` runs the whole
pipeline for one :class:`PipelineConfig`.
"""

from __future__ import annotations

__version__ = "0.1.0"

from .context import PipelineContext
from .errors import (
    ChangelogWriteFailure,
    ConfigurationError,
    EngineInvocationError,
    FatalPipelineError,
    MissingArtifact,
    NotificationFailure,
    SnapshotChangelogError,
    SummarizationFailure,
)
from .locator import VersionFileSet, locate_version_files
from .pipeline import PipelineResult, process, run_pipeline
from .settings import PipelineConfig, Settings, build_pipeline_config

__all__ = [
    "__version__",
    "ChangelogWriteFailure",
    "ConfigurationError",
    "EngineInvocationError",
    "FatalPipelineError",
    "MissingArtifact",
    "NotificationFailure",
    "PipelineConfig",
    "PipelineContext",
    "PipelineResult",
    "Settings",
    "SnapshotChangelogError",
    "SummarizationFailure",
    "VersionFileSet",
    "build_pipeline_config",
    "locate_version_files",
    "process",
    "run_pipeline",
]
