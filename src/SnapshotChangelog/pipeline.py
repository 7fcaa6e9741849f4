# === NAVMAP v1 ===
# {
#   "module": "SnapshotChangelog.pipeline",
#   "purpose": "Guarded, linear orchestration of the versioned-patch pipeline.",
#   "sections": [
#     {"id": "pipelinestep", "name": "PipelineStep", "anchor": "class-pipelinestep", "kind": "class"},
#     {"id": "pipelineservices", "name": "PipelineServices", "anchor": "class-pipelineservices", "kind": "class"},
#     {"id": "pipelineresult", "name": "PipelineResult", "anchor": "class-pipelineresult", "kind": "class"},
#     {"id": "steps", "name": "Step Functions", "anchor": "STP", "kind": "api"},
#     {"id": "failure-notification", "name": "failure_notification", "anchor": "function-failure-notification", "kind": "function"},
#     {"id": "run-pipeline", "name": "run_pipeline", "anchor": "function-run-pipeline", "kind": "function"},
#     {"id": "build-services", "name": "build_services", "anchor": "function-build-services", "kind": "function"},
#     {"id": "process", "name": "process", "anchor": "function-process", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Guarded, linear orchestration of the versioned-patch pipeline.

A run is a single pass over :data:`DEFAULT_STEPS`, an ordered table of
``(name, guard, step)`` entries:

==========================  =========================================
step                        guard
==========================  =========================================
``locate``                  always
``compute_changes_patch``   always
``compute_fix_patch``       the source version has a fix snapshot
``apply_fix_patch``         a fix patch was produced
``summarize``               an LLM endpoint is configured
``update_changelog``        always
``notify``                  a webhook URL is configured
==========================  =========================================

Each step maps a :class:`~SnapshotChangelog.context.PipelineContext` to its
successor; a skipped step leaves the context untouched.  Steps signal
expected failures with :class:`~SnapshotChangelog.errors.FatalPipelineError`.
When that or any unexpected exception escapes a step,
:func:`failure_notification` logs it and, outside dry-run mode, posts one
failure message to the webhook before re-raising.
Summarizer, changelog, and notifier failures are absorbed by those
components and never reach the orchestrator.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Sequence
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol

import httpx

from .changelog import ChangelogStore
from .context import PipelineContext
from .engine import PatchEngine, SubprocessPatchEngine
from .errors import FatalPipelineError
from .http import build_http_client
from .io_utils import atomic_write_text, read_text_if_exists
from .locator import require_version_files
from .logging_utils import generate_run_id
from .notifier import WebhookNotifier, build_failure_message, build_success_message
from .settings import PipelineConfig, Settings, get_settings
from .summarizer import ChatCompletionSummarizer, Summarizer

__all__ = [
    "DEFAULT_STEPS",
    "Notifier",
    "PipelineResult",
    "PipelineServices",
    "PipelineStep",
    "build_services",
    "failure_notification",
    "process",
    "run_pipeline",
    "summary_path_for",
]

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def post(self, payload: dict) -> bool: ...


@dataclass(slots=True)
class PipelineServices:
    """Collaborators used by the steps; tests replace them with fakes."""

    engine: PatchEngine
    changelog: ChangelogStore
    summarizer: Optional[Summarizer] = None
    notifier: Optional[Notifier] = None


StepFn = Callable[[PipelineContext, PipelineServices], PipelineContext]
GuardFn = Callable[[PipelineContext], bool]


def _always(context: PipelineContext) -> bool:
    return True


@dataclass(frozen=True, slots=True)
class PipelineStep:
    name: str
    run: StepFn
    guard: GuardFn = _always


@dataclass(slots=True)
class PipelineResult:
    context: PipelineContext
    executed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def _log_extra(context: PipelineContext, stage: str, **fields: object) -> dict:
    extra: dict = {"stage": stage, "run_id": context.run_id}
    if fields:
        extra["extra_fields"] = fields
    return extra


def summary_path_for(context: PipelineContext) -> Optional[Path]:
    """``<target stem>-changes.md`` beside the target snapshot."""
    target = context.target_regular
    if target is None:
        return None
    return target.with_name(f"{target.stem}-changes.md")


# --- Step functions -------------------------------------------------------


def locate(context: PipelineContext, services: PipelineServices) -> PipelineContext:
    source, target = require_version_files(
        context.base_dir, context.from_version, context.to_version
    )
    logger.info(
        "Located %s -> %s",
        source.regular,
        target.regular,
        extra=_log_extra(context, "locate", source_fix=str(source.fix) if source.fix else None),
    )
    return context.evolve(from_files=source, to_files=target)


def compute_changes_patch(context: PipelineContext, services: PipelineServices) -> PipelineContext:
    assert context.from_files is not None and context.to_files is not None
    path = services.engine.compute_changes_patch(
        context.from_files.regular,
        context.to_files.regular,
        from_version=context.from_version,
        to_version=context.to_version,
    )
    return context.evolve(changes_patch_path=path)


def compute_fix_patch(context: PipelineContext, services: PipelineServices) -> PipelineContext:
    assert context.from_files is not None
    path = services.engine.compute_fix_patch(
        context.from_files.regular,
        context.from_files.fix,
        version=context.from_version,
    )
    return context.evolve(fix_patch_path=path)


def apply_fix_patch(context: PipelineContext, services: PipelineServices) -> PipelineContext:
    path = services.engine.apply_fix_patch(context.target_regular, context.fix_patch_path)
    return context.evolve(fix_applied_path=path)


def summarize(context: PipelineContext, services: PipelineServices) -> PipelineContext:
    if services.summarizer is None:
        logger.warning(
            "LLM endpoint configured but no summarizer available",
            extra=_log_extra(context, "summarize"),
        )
        return context
    patch_text = read_text_if_exists(context.changes_patch_path)
    text = services.summarizer.summarize(patch_text)

    summary_path = None
    destination = summary_path_for(context)
    if destination is not None and text:
        if context.dry_run:
            logger.info("Would write %s", destination, extra=_log_extra(context, "summarize"))
        else:
            try:
                atomic_write_text(destination, text + "\n")
                summary_path = destination
            except OSError as exc:
                logger.warning(
                    "Could not write summary file %s: %s",
                    destination,
                    exc,
                    extra=_log_extra(context, "summarize"),
                )
    return context.evolve(human_readable_text=text, summary_path=summary_path)


def update_changelog(context: PipelineContext, services: PipelineServices) -> PipelineContext:
    services.changelog.append(context.human_readable_text, context.to_version)
    return context


def notify(context: PipelineContext, services: PipelineServices) -> PipelineContext:
    if services.notifier is None:
        logger.warning(
            "Webhook URL configured but no notifier available",
            extra=_log_extra(context, "notify"),
        )
        return context
    patch_text = read_text_if_exists(context.changes_patch_path)
    payload = build_success_message(context.to_version, context.human_readable_text, patch_text)
    services.notifier.post(payload)
    return context


DEFAULT_STEPS: tuple[PipelineStep, ...] = (
    PipelineStep("locate", locate),
    PipelineStep("compute_changes_patch", compute_changes_patch),
    PipelineStep("compute_fix_patch", compute_fix_patch, lambda ctx: ctx.source_fix is not None),
    PipelineStep("apply_fix_patch", apply_fix_patch, lambda ctx: ctx.fix_patch_path is not None),
    PipelineStep("summarize", summarize, lambda ctx: ctx.llm_endpoint is not None),
    PipelineStep("update_changelog", update_changelog),
    PipelineStep("notify", notify, lambda ctx: ctx.webhook_url is not None),
)


# --- Orchestration ---------------------------------------------------------


@contextmanager
def failure_notification(context: PipelineContext, services: PipelineServices) -> Iterator[None]:
    """Log fatal failures and post one best-effort failure message, then re-raise."""

    try:
        yield
    except FatalPipelineError as exc:
        logger.error("Pipeline aborted: %s", exc, extra=_log_extra(context, "failure"))
        _post_failure(context, services, exc)
        raise
    except Exception as exc:
        logger.exception(
            "Pipeline aborted by unexpected error: %s", exc, extra=_log_extra(context, "failure")
        )
        _post_failure(context, services, exc)
        raise


def _post_failure(context: PipelineContext, services: PipelineServices, exc: BaseException) -> None:
    if not context.dry_run and services.notifier is not None:
        services.notifier.post(build_failure_message(exc))


def run_pipeline(
    context: PipelineContext,
    services: PipelineServices,
    steps: Sequence[PipelineStep] = DEFAULT_STEPS,
) -> PipelineResult:
    """Run ``steps`` once, in order, threading ``context`` through them.

    Raises:
        FatalPipelineError: If a step cannot complete; remaining steps are not run.
    """

    result = PipelineResult(context=context)
    if context.dry_run:
        logger.info("Dry run: no files will be written and no requests sent")
    with failure_notification(context, services):
        for step in steps:
            if not step.guard(result.context):
                logger.debug("Skipping %s", step.name, extra=_log_extra(context, step.name))
                result.skipped.append(step.name)
                continue
            logger.debug("Running %s", step.name, extra=_log_extra(context, step.name))
            result.context = step.run(result.context, services)
            result.executed.append(step.name)
    logger.info(
        "Processed %s -> %s",
        context.from_version,
        context.to_version,
        extra=_log_extra(context, "complete", executed=result.executed, skipped=result.skipped),
    )
    return result


def build_services(
    context: PipelineContext,
    settings: Settings,
    *,
    http_client: Optional[httpx.Client] = None,
) -> PipelineServices:
    """Wire the default collaborators for ``context``."""

    summarizer = None
    notifier = None
    if context.llm_endpoint is not None or context.webhook_url is not None:
        client = http_client if http_client is not None else build_http_client(settings.http)
        if context.llm_endpoint is not None:
            summarizer = ChatCompletionSummarizer(
                context.llm_endpoint,
                model=context.llm_model,
                client=client,
                api_key=context.llm_api_key,
                dry_run=context.dry_run,
            )
        if context.webhook_url is not None:
            notifier = WebhookNotifier(
                context.webhook_url,
                client=client,
                token=context.webhook_token,
                dry_run=context.dry_run,
            )
    return PipelineServices(
        engine=SubprocessPatchEngine(
            settings.engine, output_dir=context.output_dir, dry_run=context.dry_run
        ),
        changelog=ChangelogStore(context.changelog_path, dry_run=context.dry_run),
        summarizer=summarizer,
        notifier=notifier,
    )


def process(
    config: PipelineConfig,
    *,
    settings: Optional[Settings] = None,
    http_client: Optional[httpx.Client] = None,
    services: Optional[PipelineServices] = None,
) -> PipelineResult:
    """Build a context from ``config`` and run the default pipeline once."""

    context = PipelineContext.from_config(config, run_id=generate_run_id())
    logger.debug("Context: %s", context.describe(), extra=_log_extra(context, "start"))
    with ExitStack() as stack:
        if services is None:
            settings = settings or get_settings()
            if http_client is None and (config.llm_endpoint or config.webhook_url):
                http_client = stack.enter_context(build_http_client(settings.http))
            services = build_services(context, settings, http_client=http_client)
        return run_pipeline(context, services)
