import os
from types import SimpleNamespace
from typing import Any

import httpx
import openai
import pytest
import requests

from src.infra.clients import llm
from src.infra.clients.llm import (
    AnthropicMessagesProvider,
    OpenAIChatProvider,
    create_analysis_provider,
)
from src.shared.errors import AnalysisError, AnalysisErrorKind, ConfigurationError


class _FakeHTTPResponse:
    def __init__(self, status_code: int, payload: Any = None, *, text: str | None = None) -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else str(payload)

    def json(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class _RecordingPost:
    def __init__(self, response: _FakeHTTPResponse) -> None:
        self.response = response
        self.calls: list[dict[str, Any]] = []

    def __call__(self, url: str, **kwargs: Any) -> _FakeHTTPResponse:
        self.calls.append({"url": url, **kwargs})
        return self.response


def _fail_if_called(*args: Any, **kwargs: Any) -> None:
    raise AssertionError("network must not be used")


def test_anthropic_missing_credential_skips_network(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(llm.requests, "post", _fail_if_called)

    with pytest.raises(AnalysisError) as exc_info:
        AnthropicMessagesProvider().analyze("", "claude-test", "prompt")

    assert exc_info.value.kind is AnalysisErrorKind.MISSING_CREDENTIAL


def test_anthropic_sends_messages_request(monkeypatch: pytest.MonkeyPatch) -> None:
    post = _RecordingPost(
        _FakeHTTPResponse(
            200,
            {
                "model": "claude-test",
                "content": [{"type": "text", "text": "no issues found"}],
                "usage": {"input_tokens": 10, "output_tokens": 4},
            },
        )
    )
    monkeypatch.setattr(llm.requests, "post", post)

    provider = AnthropicMessagesProvider(base_url="https://api.example.com/", timeout_seconds=5)
    result = provider.analyze("secret-key", "claude-test", "review this")

    assert result["content"] == "no issues found"
    assert result["provider"] == "anthropic"
    assert result["model"] == "claude-test"
    assert result["input_tokens"] == 10
    assert result["output_tokens"] == 4
    assert result["total_tokens"] == 14

    assert len(post.calls) == 1
    call = post.calls[0]
    assert call["url"] == "https://api.example.com/v1/messages"
    assert call["headers"]["x-api-key"] == "secret-key"
    assert call["headers"]["anthropic-version"] == "2023-06-01"
    assert call["timeout"] == 5
    assert call["json"] == {
        "model": "claude-test",
        "max_tokens": 1024,
        "system": llm.SYSTEM_INSTRUCTION,
        "messages": [{"role": "user", "content": "review this"}],
    }


def test_anthropic_non_2xx_is_remote_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        llm.requests, "post", _RecordingPost(_FakeHTTPResponse(500, {"error": "boom"}))
    )

    with pytest.raises(AnalysisError) as exc_info:
        AnthropicMessagesProvider().analyze("key", "claude-test", "prompt")

    assert exc_info.value.kind is AnalysisErrorKind.REMOTE_REJECTED
    assert exc_info.value.status_code == 500


def test_anthropic_empty_content_is_empty_response(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        llm.requests, "post", _RecordingPost(_FakeHTTPResponse(200, {"content": []}))
    )

    with pytest.raises(AnalysisError) as exc_info:
        AnthropicMessagesProvider().analyze("key", "claude-test", "prompt")

    assert exc_info.value.kind is AnalysisErrorKind.EMPTY_RESPONSE


def test_anthropic_invalid_json_is_decode_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        llm.requests,
        "post",
        _RecordingPost(_FakeHTTPResponse(200, ValueError("bad json"), text="<html>")),
    )

    with pytest.raises(AnalysisError) as exc_info:
        AnthropicMessagesProvider().analyze("key", "claude-test", "prompt")

    assert exc_info.value.kind is AnalysisErrorKind.DECODE


def test_anthropic_transport_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    def _raise(*args: Any, **kwargs: Any) -> None:
        raise requests.ConnectionError("offline")

    monkeypatch.setattr(llm.requests, "post", _raise)

    with pytest.raises(AnalysisError) as exc_info:
        AnthropicMessagesProvider().analyze("key", "claude-test", "prompt")

    assert exc_info.value.kind is AnalysisErrorKind.TRANSPORT


class _DummyOpenAI:
    """Stands in for ``openai.OpenAI``; records init kwargs and create() params."""

    last_init_kwargs: dict[str, Any] | None = None
    last_create_kwargs: dict[str, Any] | None = None
    response: Any = None
    error: Exception | None = None

    def __init__(self, **kwargs: Any) -> None:
        _DummyOpenAI.last_init_kwargs = kwargs
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **kwargs: Any) -> Any:
        _DummyOpenAI.last_create_kwargs = kwargs
        if _DummyOpenAI.error is not None:
            raise _DummyOpenAI.error
        return _DummyOpenAI.response


def _completion(content: str | None, *, choices: bool = True) -> SimpleNamespace:
    return SimpleNamespace(
        model="gpt-4-turbo",
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))] if choices else [],
        usage=SimpleNamespace(prompt_tokens=7, completion_tokens=3, total_tokens=10),
    )


@pytest.fixture()
def dummy_openai(monkeypatch: pytest.MonkeyPatch) -> type[_DummyOpenAI]:
    _DummyOpenAI.last_init_kwargs = None
    _DummyOpenAI.last_create_kwargs = None
    _DummyOpenAI.response = _completion("looks fine")
    _DummyOpenAI.error = None
    monkeypatch.setattr(llm, "OpenAI", _DummyOpenAI)
    return _DummyOpenAI


def test_openai_chat_request_shape(dummy_openai: type[_DummyOpenAI]) -> None:
    provider = OpenAIChatProvider(timeout_seconds=30)

    result = provider.analyze("sk-test", "gpt-4-turbo", "review this")

    assert result["content"] == "looks fine"
    assert result["provider"] == "openai"
    assert result["total_tokens"] == 10
    assert dummy_openai.last_init_kwargs == {"api_key": "sk-test", "max_retries": 0, "timeout": 30}
    assert dummy_openai.last_create_kwargs == {
        "model": "gpt-4-turbo",
        "messages": [
            {"role": "system", "content": llm.SYSTEM_INSTRUCTION},
            {"role": "user", "content": "review this"},
        ],
        "max_tokens": 1024,
    }


def test_openai_reasoning_models_use_max_completion_tokens(
    dummy_openai: type[_DummyOpenAI],
) -> None:
    OpenAIChatProvider(base_url="https://proxy.example.com/v1").analyze("sk", "gpt-5-mini", "p")

    assert dummy_openai.last_init_kwargs["base_url"] == "https://proxy.example.com/v1"
    assert dummy_openai.last_create_kwargs["max_completion_tokens"] == 1024
    assert "max_tokens" not in dummy_openai.last_create_kwargs


def test_openai_missing_credential_skips_client(dummy_openai: type[_DummyOpenAI]) -> None:
    with pytest.raises(AnalysisError) as exc_info:
        OpenAIChatProvider().analyze("", "gpt-4-turbo", "p")

    assert exc_info.value.kind is AnalysisErrorKind.MISSING_CREDENTIAL
    assert dummy_openai.last_init_kwargs is None


def test_openai_empty_choices_is_empty_response(dummy_openai: type[_DummyOpenAI]) -> None:
    dummy_openai.response = _completion(None, choices=False)

    with pytest.raises(AnalysisError) as exc_info:
        OpenAIChatProvider().analyze("sk", "gpt-4-turbo", "p")

    assert exc_info.value.kind is AnalysisErrorKind.EMPTY_RESPONSE


def test_openai_status_error_is_remote_rejected(dummy_openai: type[_DummyOpenAI]) -> None:
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    dummy_openai.error = openai.APIStatusError(
        "rate limited",
        response=httpx.Response(429, request=request),
        body=None,
    )

    with pytest.raises(AnalysisError) as exc_info:
        OpenAIChatProvider().analyze("sk", "gpt-4-turbo", "p")

    assert exc_info.value.kind is AnalysisErrorKind.REMOTE_REJECTED
    assert exc_info.value.status_code == 429


def test_openai_connection_error_is_transport(dummy_openai: type[_DummyOpenAI]) -> None:
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    dummy_openai.error = openai.APIConnectionError(request=request)

    with pytest.raises(AnalysisError) as exc_info:
        OpenAIChatProvider().analyze("sk", "gpt-4-turbo", "p")

    assert exc_info.value.kind is AnalysisErrorKind.TRANSPORT


def test_create_analysis_provider_variants() -> None:
    assert isinstance(create_analysis_provider("anthropic"), AnthropicMessagesProvider)
    assert isinstance(create_analysis_provider("OpenAI"), OpenAIChatProvider)


def test_create_analysis_provider_unknown_raises() -> None:
    with pytest.raises(ConfigurationError):
        create_analysis_provider("gemini")


@pytest.mark.integration
def test_anthropic_analysis_with_real_api() -> None:
    api_key = os.getenv("ANTHROPIC_API_KEY")
    if not api_key:
        pytest.skip("ANTHROPIC_API_KEY is not set; skipping integration test.")

    result = AnthropicMessagesProvider().analyze(
        api_key,
        "claude-3-5-sonnet-20240620",
        "=== File: a.txt ===\n--- main:a.txt\n+++ feat:a.txt\n@@ -1 +1 @@\n-foo\n+bar\n",
    )

    assert result["content"].strip()
