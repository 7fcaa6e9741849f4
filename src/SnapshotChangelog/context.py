# === NAVMAP v1 ===
# {
#   "module": "SnapshotChangelog.context",
#   "purpose": "Append-only runtime context threaded through pipeline steps.",
#   "sections": [
#     {
#       "id": "pipelinecontext",
#       "name": "PipelineContext",
#       "anchor": "class-pipelinecontext",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Append-only runtime context threaded through pipeline steps.

:class:`PipelineContext` starts with the validated run configuration and
gains derived artifacts (located files, patch paths, summary text) as steps
complete.  It is frozen: a step produces a successor through
:meth:`PipelineContext.evolve`, which refuses to replace a field that already
holds a value.  Any step can therefore be re-run or logged from the exact
snapshot it received.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from .locator import VersionFileSet
from .logging_utils import mask_sensitive_data
from .settings import DEFAULT_CHANGELOG, DEFAULT_LLM_MODEL, PipelineConfig

__all__ = ["PipelineContext"]


@dataclass(frozen=True, slots=True)
class PipelineContext:
    """Runtime record describing one ``process`` invocation."""

    from_version: str
    to_version: str
    base_dir: Path
    output_dir: Path
    changelog_path: Path = DEFAULT_CHANGELOG
    dry_run: bool = False
    verbose: bool = False
    llm_endpoint: Optional[str] = None
    llm_api_key: Optional[str] = None
    llm_model: str = DEFAULT_LLM_MODEL
    webhook_url: Optional[str] = None
    webhook_token: Optional[str] = None
    run_id: Optional[str] = None
    # Derived fields, filled in by pipeline steps.
    from_files: Optional[VersionFileSet] = None
    to_files: Optional[VersionFileSet] = None
    changes_patch_path: Optional[Path] = None
    fix_patch_path: Optional[Path] = None
    fix_applied_path: Optional[Path] = None
    human_readable_text: Optional[str] = None
    summary_path: Optional[Path] = None

    @classmethod
    def from_config(cls, config: PipelineConfig, *, run_id: Optional[str] = None) -> PipelineContext:
        return cls(
            from_version=config.from_version,
            to_version=config.to_version,
            base_dir=config.base_dir,
            output_dir=config.resolved_output_dir,
            changelog_path=config.changelog_path,
            dry_run=config.dry_run,
            verbose=config.verbose,
            llm_endpoint=config.llm_endpoint,
            llm_api_key=config.llm_api_key,
            llm_model=config.llm_model,
            webhook_url=config.webhook_url,
            webhook_token=config.webhook_token,
            run_id=run_id,
        )

    def evolve(self, **fields: Any) -> PipelineContext:
        """Return a copy with ``fields`` added.

        Raises:
            ValueError: If a field is unknown or already holds a value.
        """

        known = {item.name for item in dataclasses.fields(self)}
        for name, value in fields.items():
            if name not in known:
                raise ValueError(f"PipelineContext has no field '{name}'")
            current = getattr(self, name)
            if current is not None and current != value:
                raise ValueError(f"PipelineContext field '{name}' is already set")
        return dataclasses.replace(self, **fields)

    @property
    def target_regular(self) -> Optional[Path]:
        return self.to_files.regular if self.to_files is not None else None

    @property
    def source_fix(self) -> Optional[Path]:
        return self.from_files.fix if self.from_files is not None else None

    def describe(self) -> dict[str, Any]:
        """Manifest-friendly view of the set fields with secrets masked."""

        payload: dict[str, Any] = {}
        for item in dataclasses.fields(self):
            value = getattr(self, item.name)
            if value is None:
                continue
            if isinstance(value, Path):
                value = str(value)
            elif isinstance(value, VersionFileSet):
                value = {
                    "regular": str(value.regular) if value.regular else None,
                    "fix": str(value.fix) if value.fix else None,
                }
            payload[item.name] = value
        return mask_sensitive_data(payload)
