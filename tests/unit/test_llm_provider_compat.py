from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from prepwise.llm.providers import LLMProvider, ProviderConfig, parse_json


class DummyAPIError(Exception):
    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class FakeResponsePayload:
    def __init__(self, *, output_text: str = "", raw: dict | None = None):
        self.output_text = output_text
        self._raw = raw or {}

    def model_dump(self) -> dict:
        return self._raw


class FakeChatPayload:
    def __init__(self, *, content: str, raw: dict | None = None):
        self.choices = [SimpleNamespace(message=SimpleNamespace(content=content))]
        self._raw = raw or {}

    def model_dump(self) -> dict:
        return self._raw


class FakeAsyncAPI:
    def __init__(self, fn):
        self._fn = fn

    async def create(self, **kwargs):
        return self._fn(**kwargs)


class FakeClient:
    def __init__(self, *, responses_fn, chat_fn):
        self.responses = FakeAsyncAPI(responses_fn)
        self.chat = SimpleNamespace(completions=FakeAsyncAPI(chat_fn))


def _provider_with_fake_client(fake_client: FakeClient) -> LLMProvider:
    provider = LLMProvider(
        ProviderConfig(
            name="openai",
            base_url="http://localhost:9999/v1",
            api_key="dummy",
            timeout_sec=5,
        )
    )
    provider.client = fake_client
    return provider


def _complete(provider: LLMProvider):
    return asyncio.run(provider.complete_text(model="gpt-4o", system="Return JSON", prompt="ping", max_tokens=100))


def test_complete_text_uses_responses_when_available() -> None:
    chat_called = {"value": False}
    seen: dict = {}

    def responses_fn(**kwargs):
        seen.update(kwargs)
        return FakeResponsePayload(output_text="RESP_OK", raw={"id": "resp_1"})

    def chat_fn(**kwargs):
        chat_called["value"] = True
        return FakeChatPayload(content="CHAT_OK", raw={"id": "chat_1"})

    result = _complete(_provider_with_fake_client(FakeClient(responses_fn=responses_fn, chat_fn=chat_fn)))

    assert result.content == "RESP_OK"
    assert result.raw["api_path"] == "responses"
    assert chat_called["value"] is False
    assert seen["instructions"] == "Return JSON"
    assert seen["max_output_tokens"] == 100
    assert seen["text"] == {"format": {"type": "json_object"}}


def test_complete_text_falls_back_to_chat_on_responses_not_found() -> None:
    seen: dict = {}

    def responses_fn(**kwargs):
        raise DummyAPIError("Not found", status_code=404)

    def chat_fn(**kwargs):
        seen.update(kwargs)
        return FakeChatPayload(content="CHAT_OK", raw={"id": "chat_1"})

    result = _complete(_provider_with_fake_client(FakeClient(responses_fn=responses_fn, chat_fn=chat_fn)))

    assert result.content == "CHAT_OK"
    assert result.raw["api_path"] == "chat_completions"
    assert seen["messages"][0] == {"role": "system", "content": "Return JSON"}
    assert seen["response_format"] == {"type": "json_object"}


def test_complete_text_does_not_fall_back_on_other_errors() -> None:
    def responses_fn(**kwargs):
        raise DummyAPIError("rate limited", status_code=429)

    def chat_fn(**kwargs):
        raise AssertionError("chat path must not be used")

    with pytest.raises(DummyAPIError, match="rate limited"):
        _complete(_provider_with_fake_client(FakeClient(responses_fn=responses_fn, chat_fn=chat_fn)))


def test_complete_text_raises_when_fallback_path_also_fails() -> None:
    def responses_fn(**kwargs):
        raise DummyAPIError("Not found", status_code=404)

    def chat_fn(**kwargs):
        raise RuntimeError("chat path failed")

    with pytest.raises(RuntimeError, match="chat path failed"):
        _complete(_provider_with_fake_client(FakeClient(responses_fn=responses_fn, chat_fn=chat_fn)))


@pytest.mark.parametrize(
    ("content", "expected"),
    [
        ('{"status": "ok"}', {"status": "ok"}),
        ('```json\n{"status": "fenced"}\n```', {"status": "fenced"}),
        ('Sure! Here is the result: {"status": "noisy"} Hope it helps.', {"status": "noisy"}),
        ("not json", {}),
        ("[1, 2, 3]", {}),
        ("", {}),
    ],
)
def test_parse_json_tolerates_fences_and_noise(content: str, expected: dict) -> None:
    assert parse_json(content) == expected
