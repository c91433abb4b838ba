"""Tests for HTTP-based adapters."""

import asyncio
import json
from types import SimpleNamespace

import httpx
import openai
import pytest

from meal_planner.adapters.fdc_client import HttpxFdcClient
from meal_planner.adapters.openai_chat_client import OpenAIChatClient
from meal_planner.errors import GenerationFailedError, GenerationTimeoutError

_REQUEST = httpx.Request("POST", "https://api.test/chat/completions")


class _FakeCompletions:
    def __init__(self, response: object = None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.last_payload: dict[str, object] | None = None

    async def create(self, **kwargs):  # type: ignore[no-untyped-def]
        self.last_payload = kwargs
        if self.error is not None:
            raise self.error
        return self.response


class _FakeOpenAI:
    def __init__(self, completions: _FakeCompletions) -> None:
        self.chat = SimpleNamespace(completions=completions)


def _response(content: str | None, tool_calls: list[object] | None = None) -> object:
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(
        choices=[
            SimpleNamespace(message=message, finish_reason="tool_calls" if tool_calls else "stop")
        ]
    )


def _complete(client: OpenAIChatClient) -> object:
    return asyncio.run(
        client.complete(
            messages=[{"role": "user", "content": "Plan my day"}],
            tools=[{"type": "function", "function": {"name": "search_generic_food"}}],
            temperature=0.4,
            max_tokens=4000,
        )
    )


def test_openai_chat_client_returns_tool_calls() -> None:
    call = SimpleNamespace(
        id="call-1",
        function=SimpleNamespace(name="search_generic_food", arguments='{"query": "rice"}'),
    )
    completions = _FakeCompletions(response=_response(None, [call]))
    client = OpenAIChatClient(client=_FakeOpenAI(completions), model="gpt-4o")

    turn = _complete(client)

    assert turn.tool_calls[0].name == "search_generic_food"
    assert turn.tool_calls[0].arguments == '{"query": "rice"}'
    assert turn.finish_reason == "tool_calls"
    assert completions.last_payload["model"] == "gpt-4o"
    assert completions.last_payload["tool_choice"] == "auto"
    assert completions.last_payload["temperature"] == 0.4


def test_openai_chat_client_returns_content() -> None:
    completions = _FakeCompletions(response=_response('{"meals": []}'))
    client = OpenAIChatClient(client=_FakeOpenAI(completions), model="gpt-4o")

    turn = _complete(client)

    assert turn.content == '{"meals": []}'
    assert turn.tool_calls == ()


def test_openai_chat_client_maps_timeouts() -> None:
    completions = _FakeCompletions(error=openai.APITimeoutError(request=_REQUEST))
    client = OpenAIChatClient(client=_FakeOpenAI(completions), model="gpt-4o")

    with pytest.raises(GenerationTimeoutError):
        _complete(client)


def test_openai_chat_client_maps_api_errors() -> None:
    completions = _FakeCompletions(
        error=openai.APIConnectionError(message="connection reset", request=_REQUEST)
    )
    client = OpenAIChatClient(client=_FakeOpenAI(completions), model="gpt-4o")

    with pytest.raises(GenerationFailedError, match="connection reset"):
        _complete(client)


def test_openai_chat_client_rejects_empty_choices() -> None:
    completions = _FakeCompletions(response=SimpleNamespace(choices=[]))
    client = OpenAIChatClient(client=_FakeOpenAI(completions), model="gpt-4o")

    with pytest.raises(GenerationFailedError):
        _complete(client)


def test_fdc_client_search_and_get() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path.endswith("/foods/search"):
            return httpx.Response(200, json={"foods": []})
        return httpx.Response(200, json={"fdcId": 1, "foodNutrients": []})

    transport = httpx.MockTransport(handler)
    async_client = httpx.AsyncClient(transport=transport)
    client = HttpxFdcClient(
        api_key="key",
        base_url="https://api.test",
        http_client=async_client,
    )

    search = asyncio.run(
        client.search_foods("rice", data_types=["Branded"], brand_owner="Uncle Ben's")
    )
    food = asyncio.run(client.get_food(1))

    assert search == {"foods": []}
    assert food["fdcId"] == 1
    body = json.loads(seen[0].content.decode())
    assert body == {
        "query": "rice",
        "pageSize": 5,
        "dataType": ["Branded"],
        "brandOwner": "Uncle Ben's",
    }
    assert seen[0].url.params["api_key"] == "key"
    assert seen[1].url.path == "/food/1"


def test_fdc_client_raises_for_status() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(429, json={}))
    client = HttpxFdcClient(
        api_key="key",
        base_url="https://api.test",
        http_client=httpx.AsyncClient(transport=transport),
    )

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(client.get_food(1))
