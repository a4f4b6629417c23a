import asyncio
import json

import httpx
import pytest

from swa.config import Settings
from swa.errors import ConfigurationError, UpstreamShapeError, UpstreamTransportError
from swa.llm.chat_completions import ChatCompletionClient, describe_transport_error, extract_completion_text


API_URL = "https://llm.test/chat/completions"


def _client(handler, *, max_retries: int = 1) -> ChatCompletionClient:
    return ChatCompletionClient(
        api_key="test-key",
        api_url=API_URL,
        model="deepseek-chat",
        max_retries=max_retries,
        retry_pause_s=0.0,
        transport=httpx.MockTransport(handler),
    )


def _completion(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def _run(client: ChatCompletionClient, prompt: str = "hi"):
    async def go():
        try:
            return await client.complete(prompt)
        finally:
            await client.aclose()

    return asyncio.run(go())


def test_complete_posts_chat_completion_request() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_completion("hello"))

    assert _run(_client(handler), "analyze this") == "hello"

    assert len(seen) == 1
    req = seen[0]
    assert str(req.url) == API_URL
    assert req.headers["Authorization"] == "Bearer test-key"
    assert json.loads(req.content) == {
        "model": "deepseek-chat",
        "messages": [{"role": "user", "content": "analyze this"}],
        "max_tokens": 300,
    }


def test_complete_retries_once_on_server_error() -> None:
    responses = [httpx.Response(502, text="bad gateway"), httpx.Response(200, json=_completion("ok"))]

    def handler(request: httpx.Request) -> httpx.Response:
        return responses.pop(0)

    assert _run(_client(handler)) == "ok"
    assert responses == []


def test_complete_retries_once_on_connect_error_then_gives_up() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamTransportError, match="ConnectError: connection refused"):
        _run(_client(handler, max_retries=1))

    assert len(calls) == 2


def test_complete_does_not_retry_client_errors() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(401, json={"error": {"message": "Authentication Fails"}})

    with pytest.raises(UpstreamTransportError, match="HTTP 401: Authentication Fails"):
        _run(_client(handler))

    assert len(calls) == 1


def test_complete_raises_shape_error_for_non_json_body() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>oops</html>")

    with pytest.raises(UpstreamShapeError):
        _run(_client(handler))


@pytest.mark.parametrize(
    "body",
    [
        None,
        {},
        {"choices": []},
        {"choices": ["nope"]},
        {"choices": [{"message": {}}]},
        {"choices": [{"message": {"content": None}}]},
    ],
)
def test_extract_completion_text_rejects_bad_shapes(body) -> None:
    with pytest.raises(UpstreamShapeError):
        extract_completion_text(body)


def test_describe_transport_error_for_timeout() -> None:
    exc = httpx.ReadTimeout("timed out", request=httpx.Request("POST", API_URL))

    assert describe_transport_error(exc) == "upstream request timed out"


def test_complete_cuts_off_slow_attempts_and_retries() -> None:
    calls = []

    async def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        await asyncio.sleep(5)
        return httpx.Response(200, json=_completion("too late"))

    client = ChatCompletionClient(
        api_key="test-key",
        api_url=API_URL,
        model="deepseek-chat",
        timeout_s=0.05,
        max_retries=1,
        retry_pause_s=0.0,
        transport=httpx.MockTransport(handler),
    )

    with pytest.raises(UpstreamTransportError, match="upstream request timed out"):
        _run(client)

    assert len(calls) == 2


def test_extract_completion_text_replaces_lone_surrogates() -> None:
    body = {"choices": [{"message": {"content": "dry soil \ud800 here"}}]}

    assert extract_completion_text(body) == "dry soil ? here"


def test_from_settings_requires_api_key() -> None:
    with pytest.raises(ConfigurationError):
        ChatCompletionClient.from_settings(Settings(_env_file=None, deepseek_key=None))
