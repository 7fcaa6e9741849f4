"""Best-effort webhook notifications for completed and failed runs."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

import httpx

from .errors import NotificationFailure

__all__ = ["WebhookNotifier", "build_failure_message", "build_success_message", "format_patch"]

logger = logging.getLogger(__name__)


def format_patch(patch_text: str) -> str:
    """Pretty-print ``patch_text`` when it is JSON, otherwise return it unchanged."""

    if not patch_text.strip():
        return patch_text
    try:
        return json.dumps(json.loads(patch_text), indent=2, ensure_ascii=False)
    except ValueError:
        return patch_text


def build_success_message(version: str, text: Optional[str], patch_text: str) -> dict[str, Any]:
    lines = [f"*JSON snapshot {version} published*"]
    if text:
        lines.extend(["", text.strip()])
    lines.extend(["", "```", format_patch(patch_text).strip() or "[]", "```"])
    return {"text": "\n".join(lines)}


def build_failure_message(error: BaseException | str, *, when: Optional[datetime] = None) -> dict[str, Any]:
    moment = (when or datetime.now(timezone.utc)).astimezone(timezone.utc)
    stamp = moment.strftime("%Y-%m-%dT%H:%M:%SZ")
    return {"text": f":x: Snapshot changelog pipeline failed at {stamp}: {error}"}


class WebhookNotifier:
    """POST JSON payloads to a webhook without ever raising."""

    def __init__(
        self,
        url: str,
        *,
        client: httpx.Client,
        token: Optional[str] = None,
        dry_run: bool = False,
    ) -> None:
        self.url = url
        self._client = client
        self._token = token
        self.dry_run = dry_run

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _send(self, payload: Mapping[str, Any]) -> None:
        try:
            response = self._client.post(self.url, json=dict(payload), headers=self._headers())
        except httpx.HTTPError as exc:
            raise NotificationFailure(f"webhook request to {self.url} failed: {exc}") from exc
        if not response.is_success:
            raise NotificationFailure(
                f"webhook returned HTTP {response.status_code}: {response.text.strip()[:500]}".rstrip(),
                status_code=response.status_code,
            )

    def post(self, payload: Mapping[str, Any]) -> bool:
        """Deliver ``payload``; return ``True`` only when the webhook accepted it."""

        if self.dry_run:
            logger.info(
                "Would post to webhook %s: %s",
                self.url,
                json.dumps(dict(payload), sort_keys=True, ensure_ascii=False),
                extra={"stage": "notify"},
            )
            return False
        try:
            self._send(payload)
        except NotificationFailure as exc:
            logger.warning(
                "Notification failed: %s",
                exc,
                extra={"stage": "notify", "extra_fields": {"status_code": exc.status_code}},
            )
            return False
        logger.info("Posted notification to %s", self.url, extra={"stage": "notify"})
        return True
