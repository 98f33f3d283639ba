from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Tuple

from src.shared.errors import ConfigurationError
from src.shared.types import LLMReviewResult


@dataclass(frozen=True)
class AnalysisRequest:
    file_paths: Tuple[str, ...]
    source_revision: str
    target_revision: str
    provider: str
    model: str
    credential: str = field(repr=False)

    def __post_init__(self) -> None:
        # accept any sequence but store an immutable tuple
        object.__setattr__(self, "file_paths", tuple(self.file_paths))

        if not self.file_paths or any(not path.strip() for path in self.file_paths):
            raise ConfigurationError("At least one file path is required")
        if not self.source_revision.strip() or not self.target_revision.strip():
            raise ConfigurationError("File path, source branch, and target branch are required")


@dataclass(frozen=True)
class FileDiffResult:
    path: str
    diff: str = ""
    failure: str | None = None

    @property
    def is_usable(self) -> bool:
        return self.failure is None and bool(self.diff)


@dataclass(frozen=True)
class ReviewOutcome:
    file_results: List[FileDiffResult]
    analysis: LLMReviewResult | None = None

    @property
    def usable_results(self) -> List[FileDiffResult]:
        return [result for result in self.file_results if result.is_usable]

    @property
    def skipped_results(self) -> List[FileDiffResult]:
        return [result for result in self.file_results if not result.is_usable]

    @property
    def has_changes(self) -> bool:
        return self.analysis is not None
