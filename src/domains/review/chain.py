from __future__ import annotations

from typing import Sequence

from src.domains.review.prompt import FileDiff, generate_review_prompt
from src.infra.clients.llm import AnalysisProvider
from src.shared.types import LLMReviewResult


class ReviewChain:
    """Prompt -> LLM pipeline wrapper."""

    def __init__(self, *, analysis_provider: AnalysisProvider) -> None:
        self._analysis_provider = analysis_provider

    def invoke(
        self,
        file_diffs: Sequence[FileDiff],
        *,
        credential: str,
        model: str,
    ) -> LLMReviewResult:
        prompt = generate_review_prompt(file_diffs)
        return self._analysis_provider.analyze(credential, model, prompt)
