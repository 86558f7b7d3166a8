"""Content-generation client: structured JSON from a chat-completion backend.

The pipeline injects a content provider matching the protocol:

    async def __call__(self, stage: str, prompt: PromptSpec,
                       schema: type[M]) -> M: ...

`stage` identifies the calling generation step (e.g. "narrative_outline",
"node_script") and is used for logging. `schema` is the pydantic model the
reply must conform to; providers return a validated instance of it.

HttpContentProvider is the real client. Tests use stub providers (defined in
the test helpers) instead.

Every transport and HTTP failure is raised as ProviderError with the status,
code and type fields storycast.retry classifies on:

    HTTP 4xx/5xx         status=<code>, code/type from the error body
    timeout              code="ETIMEDOUT", type="timeout"
    connection failure   code="ECONNRESET"
    bad JSON / schema    type="invalid_response" (never retried)
"""

from __future__ import annotations

import logging
from typing import Protocol, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from storycast.errors import ProviderError
from storycast.prompts import PromptSpec
from storycast.retry import COMPLETION_POLICY, RetryPolicy, execute

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------

class ContentProvider(Protocol):
    async def __call__(self, stage: str, prompt: PromptSpec, schema: type[M]) -> M: ...


# ---------------------------------------------------------------------------
# HTTP error mapping, shared with storycast.speech
# ---------------------------------------------------------------------------

def http_error(e: httpx.HTTPError, backend: str, timeout: float) -> ProviderError:
    """Translate an httpx failure into a classifiable ProviderError."""
    if isinstance(e, httpx.HTTPStatusError):
        status = e.response.status_code
        code = error_type = nested = None
        try:
            body = e.response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            err = body["error"]
            code = err.get("code")
            error_type = err.get("type")
            nested = err.get("message")
        return ProviderError(
            f"{backend} returned HTTP {status}" + (f": {nested}" if nested else ""),
            status=status, code=code, type=error_type, nested_message=nested,
        )
    if isinstance(e, httpx.TimeoutException):
        return ProviderError(
            f"{backend} timed out after {timeout}s", code="ETIMEDOUT", type="timeout",
        )
    if isinstance(e, (httpx.NetworkError, httpx.RemoteProtocolError)):
        return ProviderError(f"Connection to {backend} failed: {e}", code="ECONNRESET")
    return ProviderError(f"{backend} request failed: {e}")


# ---------------------------------------------------------------------------
# HttpContentProvider
# ---------------------------------------------------------------------------

class HttpContentProvider:
    """Async client for OpenAI-compatible chat-completion backends.

    POST {base_url}/v1/chat/completions with a json_schema response_format
    built from the requested pydantic model. The reply's message content is
    validated against that model.

    Args:
        base_url:    Base URL of the backend, e.g. "https://api.openai.com".
        api_key:     Bearer token, or empty string if not required.
        model:       Model identifier.
        timeout:     HTTP timeout in seconds. Defaults to 120.
        temperature: Sampling temperature.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        model: str = "gpt-4o",
        timeout: float = 120.0,
        temperature: float = 0.7,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._model = model
        self._timeout = timeout
        self._temperature = temperature

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_body(self, prompt: PromptSpec, schema: type[BaseModel]) -> dict:
        return {
            "model": self._model,
            "temperature": self._temperature,
            "messages": [
                {"role": "system", "content": prompt.system},
                {"role": "user", "content": prompt.user},
            ],
            "response_format": {
                "type": "json_schema",
                "json_schema": {
                    "name": schema.__name__,
                    "schema": schema.model_json_schema(),
                    "strict": False,
                },
            },
        }

    def _parse_response(self, data: dict, schema: type[M]) -> M:
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(
                "Unexpected response format from content backend", type="invalid_response",
            ) from e
        if not content:
            raise ProviderError("Content backend returned an empty reply", type="invalid_response")
        try:
            return schema.model_validate_json(content)
        except ValidationError as e:
            raise ProviderError(
                f"Content backend reply does not match {schema.__name__}: "
                f"{e.error_count()} validation error(s)",
                type="invalid_response",
            ) from e

    async def __call__(self, stage: str, prompt: PromptSpec, schema: type[M]) -> M:
        url = f"{self._base_url}/v1/chat/completions"
        body = self._build_body(prompt, schema)
        logger.debug(
            "content call stage=%s schema=%s prompt_len=%d",
            stage, schema.__name__, len(prompt.system) + len(prompt.user),
        )

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.HTTPError as e:
            raise http_error(e, "Content backend", self._timeout) from e

        try:
            data = resp.json()
        except ValueError as e:
            raise ProviderError(
                "Content backend returned invalid JSON", type="invalid_response",
            ) from e
        result = self._parse_response(data, schema)
        logger.debug("content response stage=%s", stage)
        return result


# ---------------------------------------------------------------------------
# Retrying call
# ---------------------------------------------------------------------------

async def generate(
    content: ContentProvider,
    stage: str,
    prompt: PromptSpec,
    schema: type[M],
    policy: RetryPolicy = COMPLETION_POLICY,
) -> M:
    """One content call through the resilient executor."""
    return await execute(lambda: content(stage, prompt, schema), policy)
