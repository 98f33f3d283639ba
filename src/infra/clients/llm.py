from __future__ import annotations

import json
import logging
from enum import Enum
from time import perf_counter
from typing import Any, Dict, List, Protocol

import openai
import requests
from openai import OpenAI

from src.shared.errors import AnalysisError, AnalysisErrorKind, ConfigurationError
from src.shared.types import ChatMessageDict, LLMReviewResult


logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = (
    "You are an expert at identifying potential bugs in code changes. "
    "Be concise and focus only on likely issues."
)
MAX_OUTPUT_TOKENS = 1024

ANTHROPIC_API_VERSION = "2023-06-01"
DEFAULT_ANTHROPIC_BASE_URL = "https://api.anthropic.com"

# model families that reject `max_tokens` on chat completions
_MAX_COMPLETION_TOKENS_PREFIXES = ("gpt-5", "o1", "o3", "o4")


class LLMProvider(str, Enum):
    ANTHROPIC = "anthropic"
    OPENAI = "openai"


class AnalysisProvider(Protocol):
    @property
    def provider_name(self) -> str: ...

    def analyze(self, credential: str, model: str, prompt: str) -> LLMReviewResult: ...


def _build_messages(prompt: str) -> List[ChatMessageDict]:
    return [
        {"role": "system", "content": SYSTEM_INSTRUCTION},
        {"role": "user", "content": prompt},
    ]


def _require_credential(provider: LLMProvider, credential: str) -> None:
    if not credential or not credential.strip():
        raise AnalysisError(
            AnalysisErrorKind.MISSING_CREDENTIAL,
            f"{provider.value} API key is required",
        )


def _apply_token_usage(
    result: LLMReviewResult,
    *,
    input_tokens: Any,
    output_tokens: Any,
    total_tokens: Any = None,
) -> None:
    if total_tokens is None and input_tokens is not None and output_tokens is not None:
        total_tokens = int(input_tokens) + int(output_tokens)

    if input_tokens is not None:
        result["input_tokens"] = int(input_tokens)
    if output_tokens is not None:
        result["output_tokens"] = int(output_tokens)
    if total_tokens is not None:
        result["total_tokens"] = int(total_tokens)


class AnthropicMessagesProvider:
    """Anthropic Messages API called directly over HTTP."""

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_ANTHROPIC_BASE_URL,
        timeout_seconds: float | None = None,
    ) -> None:
        self._endpoint = f"{base_url.rstrip('/')}/v1/messages"
        self._timeout_seconds = timeout_seconds

    @property
    def provider_name(self) -> str:
        return LLMProvider.ANTHROPIC.value

    @staticmethod
    def _build_payload(model: str, prompt: str) -> Dict[str, Any]:
        return {
            "model": model,
            "max_tokens": MAX_OUTPUT_TOKENS,
            "system": SYSTEM_INSTRUCTION,
            "messages": [{"role": "user", "content": prompt}],
        }

    @staticmethod
    def _headers(credential: str) -> Dict[str, str]:
        return {
            "content-type": "application/json",
            "x-api-key": credential,
            "anthropic-version": ANTHROPIC_API_VERSION,
        }

    def analyze(self, credential: str, model: str, prompt: str) -> LLMReviewResult:
        _require_credential(LLMProvider.ANTHROPIC, credential)

        payload = self._build_payload(model, prompt)
        logger.info("Sending analysis request: provider=anthropic, model=%s", model)
        logger.debug("Anthropic request payload: %s", json.dumps(payload))

        started_at = perf_counter()
        try:
            response = requests.post(
                self._endpoint,
                headers=self._headers(credential),
                json=payload,
                timeout=self._timeout_seconds,
            )
        except requests.RequestException as exc:
            raise AnalysisError(
                AnalysisErrorKind.TRANSPORT,
                f"Failed to send request to {self._endpoint}",
            ) from exc
        elapsed = perf_counter() - started_at

        if not 200 <= response.status_code < 300:
            logger.error(
                "Anthropic API rejected request: status_code=%s, body=%s",
                response.status_code,
                response.text,
            )
            raise AnalysisError(
                AnalysisErrorKind.REMOTE_REJECTED,
                f"API request failed with status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise AnalysisError(
                AnalysisErrorKind.DECODE,
                f"Failed to decode response: {response.text[:200]}",
            ) from exc
        logger.debug("Anthropic response body: %s", data)

        if not isinstance(data, dict):
            raise AnalysisError(AnalysisErrorKind.DECODE, "Response body is not a JSON object")

        content = data.get("content") or []
        if not isinstance(content, list):
            raise AnalysisError(AnalysisErrorKind.DECODE, "Response 'content' must be a list")
        if not content:
            raise AnalysisError(AnalysisErrorKind.EMPTY_RESPONSE, "empty response from Anthropic")

        first = content[0] if isinstance(content[0], dict) else {}
        result: LLMReviewResult = {
            "content": str(first.get("text") or ""),
            "provider": self.provider_name,
            "model": str(data.get("model") or model),
            "elapsed_seconds": elapsed,
        }

        usage = data.get("usage")
        if isinstance(usage, dict):
            _apply_token_usage(
                result,
                input_tokens=usage.get("input_tokens"),
                output_tokens=usage.get("output_tokens"),
            )
        return result


class OpenAIChatProvider:
    """OpenAI chat completions through the official SDK."""

    def __init__(
        self,
        *,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self._base_url = base_url
        self._timeout_seconds = timeout_seconds

    @property
    def provider_name(self) -> str:
        return LLMProvider.OPENAI.value

    def _create_client(self, credential: str) -> OpenAI:
        kwargs: Dict[str, Any] = {"api_key": credential, "max_retries": 0}
        if self._timeout_seconds is not None:
            kwargs["timeout"] = self._timeout_seconds
        if self._base_url:
            kwargs["base_url"] = self._base_url
        return OpenAI(**kwargs)

    @staticmethod
    def _build_request_params(model: str, prompt: str) -> Dict[str, Any]:
        request_params: Dict[str, Any] = {
            "model": model,
            "messages": _build_messages(prompt),
        }
        if model.startswith(_MAX_COMPLETION_TOKENS_PREFIXES):
            logger.info(
                "Model %s does not accept max_tokens; sending max_completion_tokens",
                model,
            )
            request_params["max_completion_tokens"] = MAX_OUTPUT_TOKENS
        else:
            request_params["max_tokens"] = MAX_OUTPUT_TOKENS
        return request_params

    def analyze(self, credential: str, model: str, prompt: str) -> LLMReviewResult:
        _require_credential(LLMProvider.OPENAI, credential)

        client = self._create_client(credential)
        request_params = self._build_request_params(model, prompt)
        logger.info("Sending analysis request: provider=openai, model=%s", model)

        started_at = perf_counter()
        try:
            response = client.chat.completions.create(**request_params)
        except openai.APIStatusError as exc:
            raise AnalysisError(
                AnalysisErrorKind.REMOTE_REJECTED,
                "failed to get OpenAI analysis",
                status_code=exc.status_code,
            ) from exc
        except openai.OpenAIError as exc:
            raise AnalysisError(
                AnalysisErrorKind.TRANSPORT,
                "failed to get OpenAI analysis",
            ) from exc
        elapsed = perf_counter() - started_at

        choices = getattr(response, "choices", None) or []
        if not choices:
            raise AnalysisError(AnalysisErrorKind.EMPTY_RESPONSE, "empty response from OpenAI")

        message = choices[0].message
        result: LLMReviewResult = {
            "content": str(message.content or ""),
            "provider": self.provider_name,
            "model": str(getattr(response, "model", None) or model),
            "elapsed_seconds": elapsed,
        }

        usage = getattr(response, "usage", None)
        if usage is not None:
            _apply_token_usage(
                result,
                input_tokens=getattr(usage, "prompt_tokens", None),
                output_tokens=getattr(usage, "completion_tokens", None),
                total_tokens=getattr(usage, "total_tokens", None),
            )
        return result


def create_analysis_provider(
    name: str,
    *,
    timeout_seconds: float | None = None,
    anthropic_base_url: str = DEFAULT_ANTHROPIC_BASE_URL,
    openai_base_url: str | None = None,
) -> AnalysisProvider:
    try:
        provider = LLMProvider((name or "").strip().lower())
    except ValueError as exc:
        raise ConfigurationError(
            f"Unknown provider: {name}. Use 'anthropic' or 'openai'"
        ) from exc

    logger.info("Creating analysis provider: provider=%s", provider.value)

    if provider is LLMProvider.ANTHROPIC:
        return AnthropicMessagesProvider(
            base_url=anthropic_base_url,
            timeout_seconds=timeout_seconds,
        )
    return OpenAIChatProvider(
        base_url=openai_base_url,
        timeout_seconds=timeout_seconds,
    )
