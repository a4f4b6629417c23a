from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from swa.config import Settings
from swa.errors import ConfigurationError, UpstreamShapeError, UpstreamTransportError


logger = logging.getLogger(__name__)


class ChatCompletionClient:
    """Async client for an OpenAI-compatible `POST /chat/completions` endpoint.

    Every attempt, body included, must finish within `timeout_s`. Connection
    errors, timeouts and 5xx answers are retried up to `max_retries` times; 4xx answers are not.
    """

    def __init__(
        self,
        *,
        api_key: str,
        api_url: str,
        model: str,
        max_tokens: int = 300,
        timeout_s: float = 30.0,
        max_retries: int = 1,
        retry_pause_s: float = 0.25,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_url = api_url
        self.model = model
        self.max_tokens = max_tokens
        self.timeout_s = timeout_s
        self.max_retries = max(0, int(max_retries))
        self.retry_pause_s = retry_pause_s
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(timeout_s), transport=transport)

    @classmethod
    def from_settings(
        cls, settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None
    ) -> ChatCompletionClient:
        if not settings.deepseek_key:
            raise ConfigurationError("DEEPSEEK_KEY is not configured")
        return cls(
            api_key=settings.deepseek_key,
            api_url=settings.deepseek_api_url,
            model=settings.deepseek_model,
            max_tokens=settings.max_tokens,
            timeout_s=settings.upstream_timeout_s,
            max_retries=settings.upstream_max_retries,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def complete(self, prompt: str) -> str:
        body = await self.create(messages=[{"role": "user", "content": prompt}])
        return extract_completion_text(body)

    async def create(self, *, messages: list[dict[str, str]]) -> Any:
        payload = {
            "model": self.model,
            "messages": messages,
            "max_tokens": self.max_tokens,
        }

        last_exc: Exception | None = None
        for attempt in range(self.max_retries + 1):
            try:
                resp = await asyncio.wait_for(
                    self._client.post(self.api_url, headers=self._headers, json=payload),
                    self.timeout_s,
                )
                resp.raise_for_status()
            except httpx.HTTPStatusError as exc:
                if exc.response.status_code < 500:
                    raise UpstreamTransportError(describe_transport_error(exc)) from exc
                last_exc = exc
            except (httpx.TransportError, asyncio.TimeoutError) as exc:
                last_exc = exc
            else:
                break

            if attempt < self.max_retries:
                logger.warning(
                    "Upstream attempt %d/%d failed: %s; retrying",
                    attempt + 1,
                    self.max_retries + 1,
                    describe_transport_error(last_exc),
                )
                await asyncio.sleep(self.retry_pause_s)
        else:
            raise UpstreamTransportError(describe_transport_error(last_exc)) from last_exc

        try:
            body = resp.json()
        except ValueError as exc:
            raise UpstreamShapeError("upstream body is not JSON") from exc

        logger.debug("Upstream response: %s", body)
        return body


def extract_completion_text(body: Any) -> str:
    """Return the first choice's message content or raise UpstreamShapeError."""
    choices = body.get("choices") if isinstance(body, dict) else None
    if not isinstance(choices, list) or not choices:
        raise UpstreamShapeError("upstream response has no choices")

    first = choices[0]
    message = first.get("message") if isinstance(first, dict) else None
    content = message.get("content") if isinstance(message, dict) else None
    if not isinstance(content, str):
        raise UpstreamShapeError("first choice has no message content")
    # Escaped lone surrogates decode to str but cannot be re-encoded as UTF-8.
    return content.encode("utf-8", "replace").decode("utf-8")


def describe_transport_error(exc: Exception | None) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        detail = _error_message(exc.response)
        return f"upstream returned HTTP {status}: {detail}" if detail else f"upstream returned HTTP {status}"
    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError)):
        return "upstream request timed out"
    if exc is None:
        return "upstream request failed"
    text = str(exc).strip()
    return f"{exc.__class__.__name__}: {text}" if text else exc.__class__.__name__


def _error_message(resp: httpx.Response) -> str:
    try:
        payload = resp.json()
    except ValueError:
        return (resp.text or "").strip().replace("\n", " ")[:200]
    err = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(err, dict):
        return str(err.get("message", "")).strip()
    if isinstance(err, str):
        return err.strip()
    return ""
