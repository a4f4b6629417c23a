from __future__ import annotations

import logging

import httpx

from swa.analysis.parsing import error_verdict, fallback_verdict, parse_verdict
from swa.analysis.prompt import build_prompt
from swa.api.schemas import AnalysisVerdict, AnalyzeRequest
from swa.config import Settings
from swa.errors import (
    ConfigurationError,
    ModelOutputParseError,
    UpstreamShapeError,
    UpstreamTransportError,
)
from swa.llm.chat_completions import ChatCompletionClient


logger = logging.getLogger(__name__)


class AnalysisService:
    """Turns one sensor payload into one verdict via the upstream model.

    `analyze` never raises: every failure path ends in a verdict plus the
    HTTP status the route should answer with.
    """

    def __init__(self, settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._settings = settings
        self._client: ChatCompletionClient | None = None
        if settings.deepseek_key:
            self._client = ChatCompletionClient.from_settings(settings, transport=transport)

    @property
    def upstream_configured(self) -> bool:
        return self._client is not None

    async def start(self) -> None:
        if self._client is None:
            logger.warning("No DEEPSEEK_KEY configured; /api/analyze will answer with error verdicts")
        else:
            logger.info("Upstream API key loaded (model=%s)", self._settings.deepseek_model)

    async def stop(self) -> None:
        if self._client is not None:
            await self._client.aclose()

    async def analyze(self, req: AnalyzeRequest) -> tuple[AnalysisVerdict, int]:
        try:
            return await self._analyze(req), 200
        except ConfigurationError as e:
            return error_verdict("AI backend is not configured.", str(e)), e.status_code
        except UpstreamTransportError as e:
            logger.error("Upstream call failed: %s", e)
            return error_verdict("AI backend request failed.", str(e)), e.status_code
        except UpstreamShapeError as e:
            logger.warning("Upstream returned an unusable body: %s", e)
            return (
                error_verdict("AI backend returned invalid response.", "No usable data from model."),
                e.status_code,
            )
        except Exception as e:
            logger.exception("Unexpected error while analyzing payload")
            return error_verdict("Server error.", str(e) or e.__class__.__name__), 500

    async def _analyze(self, req: AnalyzeRequest) -> AnalysisVerdict:
        if self._client is None:
            raise ConfigurationError("DEEPSEEK_KEY is not configured")

        prompt = build_prompt(req)
        text = await self._client.complete(prompt)

        try:
            return parse_verdict(text)
        except ModelOutputParseError as e:
            logger.warning("Model reply not usable as a verdict (%s); falling back to raw text", e)
            return fallback_verdict(text)
