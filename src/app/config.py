from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

from src.shared.errors import ConfigurationError


SUPPORTED_PROVIDERS = ("anthropic", "openai")

DEFAULT_MODELS = {
    "anthropic": "claude-3-5-sonnet-20240620",
    "openai": "gpt-4-turbo",
}

CREDENTIAL_ENV_VARS = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
}


def _clean_optional(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _get_optional_str(name: str) -> str | None:
    return _clean_optional(os.environ.get(name))


def _get_float(name: str, default: float, *, min_value: float | None = None) -> float:
    raw = _clean_optional(os.environ.get(name))
    if raw is None:
        value = default
    else:
        try:
            value = float(raw)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid float for {name}: {raw}") from exc

    if min_value is not None and value < min_value:
        raise ConfigurationError(f"{name} must be >= {min_value}")
    return value


def normalize_provider(raw: str | None) -> str:
    provider = (_clean_optional(raw) or "anthropic").lower()
    if provider not in SUPPORTED_PROVIDERS:
        raise ConfigurationError(
            f"Unknown provider: {provider}. Use 'anthropic' or 'openai'"
        )
    return provider


def default_model_for(provider: str) -> str:
    try:
        return DEFAULT_MODELS[provider]
    except KeyError as exc:
        raise ConfigurationError(f"Unknown provider: {provider}") from exc


def resolve_credential(
    provider: str,
    explicit: str | None,
    *,
    environ: Mapping[str, str] | None = None,
) -> str:
    """Explicit value first, then the provider's environment variable."""

    value = _clean_optional(explicit)
    if value is not None:
        return value

    try:
        env_name = CREDENTIAL_ENV_VARS[provider]
    except KeyError as exc:
        raise ConfigurationError(f"Unknown provider: {provider}") from exc

    source = os.environ if environ is None else environ
    value = _clean_optional(source.get(env_name))
    if value is None:
        raise ConfigurationError(
            f"{env_name} environment variable not set. "
            "Use --key flag or set the environment variable."
        )
    return value


@dataclass(frozen=True)
class AppSettings:
    log_level: str

    llm_provider: str
    llm_model: str | None
    llm_timeout_seconds: float

    anthropic_base_url: str
    openai_base_url: str | None

    def model_for(self, provider: str) -> str:
        if self.llm_model is not None:
            return self.llm_model
        return default_model_for(provider)

    @classmethod
    def from_env(cls) -> "AppSettings":
        return cls(
            log_level=(_get_optional_str("LOG_LEVEL") or "INFO").upper(),
            llm_provider=normalize_provider(_get_optional_str("LLM_PROVIDER")),
            llm_model=_get_optional_str("LLM_MODEL"),
            llm_timeout_seconds=_get_float("LLM_TIMEOUT_SECONDS", 300.0, min_value=0.001),
            anthropic_base_url=_get_optional_str("ANTHROPIC_BASE_URL")
            or "https://api.anthropic.com",
            openai_base_url=_get_optional_str("OPENAI_BASE_URL"),
        )
