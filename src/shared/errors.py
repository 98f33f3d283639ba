from __future__ import annotations

from enum import Enum


class ConfigurationError(ValueError):
    """Raised when required settings or request inputs are missing or invalid."""


class RevisionFetchError(RuntimeError):
    """Raised when a file cannot be read from a revision of the repository."""

    def __init__(self, *, path: str, revision: str, cause: str) -> None:
        super().__init__(
            f"Failed to read '{path}' at revision '{revision}': {cause}"
        )
        self.path = path
        self.revision = revision
        self.cause = cause


class DiffGenerationError(RuntimeError):
    """Raised when the diff utility fails (distinct from "no change")."""


class AnalysisErrorKind(str, Enum):
    MISSING_CREDENTIAL = "missing_credential"
    REMOTE_REJECTED = "remote_rejected"
    EMPTY_RESPONSE = "empty_response"
    TRANSPORT = "transport"
    DECODE = "decode"


class AnalysisError(RuntimeError):
    """Raised when the LLM analysis call fails or returns malformed output."""

    def __init__(
        self,
        kind: AnalysisErrorKind,
        message: str,
        *,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code is not None:
            return f"{base} (kind={self.kind.value}, status={self.status_code})"
        return f"{base} (kind={self.kind.value})"
