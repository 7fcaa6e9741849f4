"""Turn a JSON Patch into prose through an OpenAI-compatible chat endpoint.

Summarization is best-effort: any transport error, non-2xx status, or
malformed response is converted into a visible fallback string that ends up
in the changelog instead of aborting the run.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

import httpx

from .errors import SummarizationFailure

__all__ = [
    "DRY_RUN_SUMMARY",
    "FAILURE_PREFIX",
    "SUMMARY_PREAMBLE",
    "ChatCompletionSummarizer",
    "Summarizer",
    "build_request_payload",
]

logger = logging.getLogger(__name__)

SUMMARY_PREAMBLE = (
    "You are given a JSON Patch (RFC 6902) describing the changes between two "
    "versions of a JSON document. Summarize the changes for a changelog in a few "
    "short bullet points aimed at a human reader. Mention added, removed, and "
    "modified entries by name where possible and do not repeat the raw patch.\n\n"
)
DRY_RUN_SUMMARY = "[dry-run] Human-readable summary was not generated."
FAILURE_PREFIX = "Failed to generate human-readable text: "


class Summarizer(Protocol):
    def summarize(self, patch_text: str) -> str: ...


def build_request_payload(model: str, patch_text: str) -> dict:
    """Chat-completions body with a single user message: preamble plus patch."""
    return {
        "model": model,
        "messages": [{"role": "user", "content": SUMMARY_PREAMBLE + patch_text}],
    }


class ChatCompletionSummarizer:
    """:class:`Summarizer` posting to a chat-completions endpoint."""

    def __init__(
        self,
        endpoint: str,
        *,
        model: str,
        client: httpx.Client,
        api_key: Optional[str] = None,
        dry_run: bool = False,
    ) -> None:
        self._endpoint = endpoint
        self._model = model
        self._client = client
        self._api_key = api_key
        self._dry_run = dry_run

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _request(self, patch_text: str) -> str:
        try:
            response = self._client.post(
                self._endpoint,
                json=build_request_payload(self._model, patch_text),
                headers=self._headers(),
            )
        except httpx.HTTPError as exc:
            raise SummarizationFailure(f"request to {self._endpoint} failed: {exc}") from exc

        if not response.is_success:
            body = response.text.strip()
            raise SummarizationFailure(
                f"endpoint returned HTTP {response.status_code}: {body[:500]}".rstrip(),
                status_code=response.status_code,
            )
        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise SummarizationFailure(
                f"unexpected response body from {self._endpoint}: {exc!r}",
                status_code=response.status_code,
            ) from exc
        if not isinstance(content, str):
            raise SummarizationFailure(
                f"completion content is {type(content).__name__}, expected text",
                status_code=response.status_code,
            )
        return content.strip()

    def summarize(self, patch_text: str) -> str:
        """Return prose for ``patch_text``; never raises."""

        if self._dry_run:
            logger.info(
                "Would request summary from %s (model %s)",
                self._endpoint,
                self._model,
                extra={"stage": "summarize"},
            )
            return DRY_RUN_SUMMARY
        try:
            text = self._request(patch_text)
        except SummarizationFailure as exc:
            logger.warning(
                "Summarization failed: %s",
                exc,
                extra={"stage": "summarize", "extra_fields": {"status_code": exc.status_code}},
            )
            return f"{FAILURE_PREFIX}{exc}"
        logger.debug("Received %d characters of summary", len(text), extra={"stage": "summarize"})
        return text
