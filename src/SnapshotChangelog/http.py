# === NAVMAP v1 ===
# {
#   "module": "SnapshotChangelog.http",
#   "purpose": "HTTPX client with Tenacity-driven retries for outbound calls.",
#   "sections": [
#     {"id": "retryafterwait", "name": "_RetryAfterWait", "anchor": "class-retryafterwait", "kind": "class"},
#     {"id": "retryingclient", "name": "RetryingClient", "anchor": "class-retryingclient", "kind": "class"},
#     {"id": "parse-retry-after-header", "name": "_parse_retry_after_header", "anchor": "function-parse-retry-after-header", "kind": "function"},
#     {"id": "build-http-client", "name": "build_http_client", "anchor": "function-build-http-client", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""HTTP client used for the summarizer and webhook calls.

Both outbound integrations make at most a couple of POST requests per run.
This module wraps ``httpx`` with a small Tenacity retry loop for transport
errors and transient statuses so callers only deal with the final response
(or the final exception).
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from contextlib import suppress
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

import httpx
from tenacity import (
    Retrying,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_random_exponential,
)
from tenacity.wait import wait_base

from . import __version__
from .settings import HttpSettings

__all__ = ["RetryingClient", "build_http_client"]

logger = logging.getLogger(__name__)

USER_AGENT = f"snapshot-changelog/{__version__}"


def _parse_retry_after_header(value: str | None) -> float | None:
    if not value:
        return None
    candidate = value.strip()
    if not candidate:
        return None
    try:
        seconds = float(candidate)
    except ValueError:
        try:
            retry_time = parsedate_to_datetime(candidate)
        except (TypeError, ValueError, IndexError):
            return None
        if retry_time is None:
            return None
        if retry_time.tzinfo is None:
            retry_time = retry_time.replace(tzinfo=timezone.utc)
        seconds = (retry_time - datetime.now(timezone.utc)).total_seconds()
    return max(float(seconds), 0.0)


class _RetryAfterWait(wait_base):
    """Tenacity wait strategy that honours Retry-After headers when present."""

    def __init__(self, *, backoff_factor: float, max_delay: float = 30.0) -> None:
        self._fallback_wait = wait_random_exponential(multiplier=max(backoff_factor, 0.0))
        self._max_delay = max_delay

    def __call__(self, retry_state) -> float:  # type: ignore[override]
        delay = float(self._fallback_wait(retry_state))
        outcome = retry_state.outcome
        if outcome is not None and not outcome.failed:
            response = outcome.result()
            if isinstance(response, httpx.Response):
                retry_after = _parse_retry_after_header(response.headers.get("Retry-After"))
                if retry_after is not None:
                    delay = max(delay, retry_after)
        return min(max(delay, 0.0), self._max_delay)


class RetryingClient(httpx.Client):
    """`httpx.Client` subclass that delegates retries to Tenacity."""

    def __init__(
        self,
        *,
        retry_total: int = 2,
        retry_backoff: float = 0.5,
        status_forcelist: Sequence[int] = (429, 500, 502, 503, 504),
        **kwargs: Any,
    ) -> None:
        kwargs.setdefault("follow_redirects", True)
        super().__init__(**kwargs)
        self._retry_total = max(0, int(retry_total))
        self._status_forcelist = frozenset(int(code) for code in status_forcelist)
        self._wait_strategy = _RetryAfterWait(backoff_factor=float(retry_backoff))

    def request(self, method: str, url: httpx.URL | str, **kwargs: Any) -> httpx.Response:
        if self._retry_total <= 0:
            return super().request(method, url, **kwargs)

        def _send() -> httpx.Response:
            return super(RetryingClient, self).request(method, url, **kwargs)

        return self._build_retrying()(_send)

    def _build_retrying(self) -> Retrying:
        retry_predicate = retry_if_exception_type(httpx.TransportError)
        if self._status_forcelist:
            retry_predicate = retry_predicate | retry_if_result(
                lambda response: isinstance(response, httpx.Response)
                and response.status_code in self._status_forcelist
            )
        return Retrying(
            retry=retry_predicate,
            wait=self._wait_strategy,
            stop=stop_after_attempt(self._retry_total + 1),
            sleep=time.sleep,
            reraise=True,
            retry_error_callback=lambda state: state.outcome.result(),
            before_sleep=self._before_sleep,
        )

    def _before_sleep(self, retry_state) -> None:
        outcome = retry_state.outcome
        if outcome is not None and not outcome.failed:
            response = outcome.result()
            if isinstance(response, httpx.Response):
                with suppress(Exception):
                    response.close()

        if not logger.isEnabledFor(logging.DEBUG):
            return

        delay = 0.0
        if retry_state.next_action is not None and retry_state.next_action.sleep is not None:
            with suppress(TypeError, ValueError):
                delay = max(float(retry_state.next_action.sleep), 0.0)

        exc = outcome.exception() if outcome is not None and outcome.failed else None
        logger.debug(
            "HTTP retry",
            extra={
                "stage": "http",
                "extra_fields": {
                    "attempt": retry_state.attempt_number,
                    "delay": round(delay, 3),
                    "exception": repr(exc) if exc is not None else None,
                },
            },
        )


def build_http_client(settings: HttpSettings, **kwargs: Any) -> RetryingClient:
    """Construct a :class:`RetryingClient` from :class:`HttpSettings`."""

    timeout = httpx.Timeout(
        settings.timeout_sec,
        connect=settings.connect_timeout_sec,
    )
    headers = {"User-Agent": USER_AGENT}
    headers.update(kwargs.pop("headers", None) or {})
    return RetryingClient(
        retry_total=settings.retry_total,
        retry_backoff=settings.retry_backoff,
        status_forcelist=settings.status_forcelist,
        timeout=timeout,
        headers=headers,
        **kwargs,
    )
