import json

import httpx
import pytest

from notes_rag.core.cancellation import CancellationToken
from notes_rag.core.errors import LLMError
from notes_rag.llm.client import LLMClient


def _client(handler):
    return LLMClient(
        api_key="sk-test",
        model="gpt-test",
        base_url="https://provider.test/v1",
        transport=httpx.MockTransport(handler),
    )


def _sse(*events):
    lines = []
    for event in events:
        payload = event if isinstance(event, str) else json.dumps(event)
        lines.append(f"data: {payload}\n\n")
    return "".join(lines).encode()


def _delta(text):
    return {"choices": [{"delta": {"content": text}}]}


async def _collect(agen):
    return [item async for item in agen]


@pytest.mark.asyncio
async def test_chat_returns_stripped_content():
    seen = {}

    def handler(request):
        seen.update(json.loads(request.content))
        return httpx.Response(200, json={"choices": [{"message": {"content": "  Hi there \n"}}]})

    answer = await _client(handler).chat("be brief", [{"role": "user", "content": "hi"}], max_tokens=50)

    assert answer == "Hi there"
    assert seen["model"] == "gpt-test"
    assert seen["messages"][0] == {"role": "system", "content": "be brief"}
    assert seen["max_tokens"] == 50
    assert "stream" not in seen


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(429, json={"error": "rate limited"}),
        httpx.Response(200, json={"choices": []}),
        httpx.Response(200, json={"choices": [{"message": {"content": "   "}}]}),
    ],
)
async def test_chat_failures_raise_llm_error(response):
    with pytest.raises(LLMError):
        await _client(lambda request: response).chat("sys", [])


@pytest.mark.asyncio
async def test_stream_yields_fragments_until_done():
    def handler(request):
        assert json.loads(request.content)["stream"] is True
        body = _sse(
            {"choices": [{"delta": {"role": "assistant"}}]},
            _delta("Hel"),
            _delta("lo"),
            "[DONE]",
            _delta("ignored"),
        )
        return httpx.Response(200, content=body, headers={"content-type": "text/event-stream"})

    fragments = await _collect(_client(handler).stream_chat("sys", []))

    assert fragments == ["Hel", "lo"]


@pytest.mark.asyncio
async def test_stream_error_event_raises():
    def handler(request):
        body = _sse(_delta("partial"), {"error": {"message": "context length exceeded"}})
        return httpx.Response(200, content=body)

    received = []
    with pytest.raises(LLMError) as excinfo:
        async for fragment in _client(handler).stream_chat("sys", []):
            received.append(fragment)

    assert received == ["partial"]
    assert "context length exceeded" in excinfo.value.message


@pytest.mark.asyncio
async def test_stream_rejected_status_raises():
    def handler(request):
        return httpx.Response(401, json={"error": "bad key"})

    with pytest.raises(LLMError):
        await _collect(_client(handler).stream_chat("sys", []))


@pytest.mark.asyncio
async def test_stream_stops_when_cancelled():
    cancel = CancellationToken()

    def handler(request):
        return httpx.Response(200, content=_sse(_delta("one"), _delta("two"), _delta("three")))

    received = []
    async for fragment in _client(handler).stream_chat("sys", [], cancel=cancel):
        received.append(fragment)
        cancel.cancel()

    assert received == ["one"]
