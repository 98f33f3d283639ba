from __future__ import annotations

import logging
from typing import Callable, List

from src.domains.review.chain import ReviewChain
from src.domains.review.models import AnalysisRequest, FileDiffResult, ReviewOutcome
from src.infra.clients.diff import DiffTool
from src.infra.clients.git import GitRevisionReader
from src.infra.clients.llm import AnalysisProvider
from src.shared.errors import DiffGenerationError, RevisionFetchError
from src.shared.time_utils import format_seconds


logger = logging.getLogger(__name__)

ProviderFactory = Callable[[str], AnalysisProvider]


class BatchReviewService:
    """Diffs every requested file between two revisions and reviews them in one LLM call.

    Files are processed one after another. A file whose fetch or diff fails is
    recorded and skipped; the batch carries on. The provider is called at most
    once, after every file has been processed, and its failures propagate.
    """

    def __init__(
        self,
        *,
        revision_reader: GitRevisionReader,
        diff_tool: DiffTool,
        provider_factory: ProviderFactory,
    ) -> None:
        self._revision_reader = revision_reader
        self._diff_tool = diff_tool
        self._provider_factory = provider_factory

    def run(self, request: AnalysisRequest) -> ReviewOutcome:
        # unknown providers must fail before any git activity
        analysis_provider = self._provider_factory(request.provider)

        logger.info(
            "Running batch review: files=%s, source=%s, target=%s",
            len(request.file_paths),
            request.source_revision,
            request.target_revision,
        )

        file_results: List[FileDiffResult] = [
            self._diff_file(path, request.source_revision, request.target_revision)
            for path in request.file_paths
        ]
        outcome = ReviewOutcome(file_results=file_results)

        for skipped in outcome.skipped_results:
            logger.info(
                "Skipping file: path=%s, reason=%s",
                skipped.path,
                skipped.failure or "no change",
            )

        usable = outcome.usable_results
        if not usable:
            logger.info("No changes detected across %s file(s)", len(file_results))
            return outcome

        chain = ReviewChain(analysis_provider=analysis_provider)
        llm_result = chain.invoke(
            [(result.path, result.diff) for result in usable],
            credential=request.credential,
            model=request.model,
        )
        logger.info(
            "Analysis complete: provider=%s, model=%s, files=%s, elapsed=%s",
            llm_result.get("provider"),
            llm_result.get("model"),
            len(usable),
            format_seconds(llm_result.get("elapsed_seconds")),
        )
        for key in ("input_tokens", "output_tokens", "total_tokens"):
            if key in llm_result:
                logger.info("Token usage: %s=%s", key, llm_result[key])

        return ReviewOutcome(file_results=file_results, analysis=llm_result)

    def _diff_file(self, path: str, source: str, target: str) -> FileDiffResult:
        try:
            source_content = self._revision_reader.show_file(path, source)
            target_content = self._revision_reader.show_file(path, target)
        except RevisionFetchError as exc:
            logger.warning("Failed to fetch file: path=%s, error=%s", path, exc)
            return FileDiffResult(path=path, failure=str(exc))

        try:
            diff = self._diff_tool.unified_diff(
                source_content,
                target_content,
                f"{source}:{path}",
                f"{target}:{path}",
            )
        except DiffGenerationError as exc:
            logger.warning("Failed to generate diff: path=%s, error=%s", path, exc)
            return FileDiffResult(path=path, failure=str(exc))

        logger.info("Diff generated: path=%s, length=%s", path, len(diff))
        return FileDiffResult(path=path, diff=diff)
