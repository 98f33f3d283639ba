from __future__ import annotations

import argparse
import functools
import logging
import sys
from pathlib import Path
from typing import List, Sequence

from dotenv import load_dotenv

from src.app.config import AppSettings, normalize_provider, resolve_credential
from src.app.file_picker import pick_files
from src.domains.review.models import AnalysisRequest
from src.domains.review.service import BatchReviewService
from src.infra.clients.diff import DiffTool
from src.infra.clients.git import GitRevisionReader
from src.infra.clients.llm import create_analysis_provider
from src.shared.errors import AnalysisError, ConfigurationError, RevisionFetchError


VERSION = "1.0.0"
VERSION_BANNER = f"Safeguard - Code Change Analysis Tool v{VERSION}"

logger = logging.getLogger(__name__)


def _setup_logging(log_level_name: str) -> None:
    level = getattr(logging, log_level_name.upper(), None)
    if not isinstance(level, int):
        logging.basicConfig(level=logging.INFO)
        logger.warning("Invalid LOG_LEVEL '%s', defaulting to INFO", log_level_name)
        return

    logging.basicConfig(level=level)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="safeguard",
        description="Diff files between two git revisions and ask an LLM for likely bugs.",
    )
    parser.add_argument(
        "-f",
        "--file",
        dest="files",
        action="append",
        default=[],
        help="Path to a file to analyze. Repeat or comma-separate for several files.",
    )
    parser.add_argument("-s", "--source", default="", help="Source branch or revision")
    parser.add_argument("-t", "--target", default="", help="Target branch or revision")
    parser.add_argument(
        "-p",
        "--provider",
        help="LLM provider (anthropic or openai). Defaults to LLM_PROVIDER or anthropic.",
    )
    parser.add_argument(
        "-m",
        "--model",
        help="Model to use (claude-3-5-sonnet-20240620 for Anthropic, gpt-4-turbo for OpenAI)",
    )
    parser.add_argument("-k", "--key", help="API key for the provider")
    parser.add_argument(
        "-i",
        "--interactive",
        action="store_true",
        help="Pick the files to analyze from the tracked files of the repository.",
    )
    parser.add_argument("--log-level", help="Overrides LOG_LEVEL (DEBUG, INFO, WARNING, ...)")
    parser.add_argument("--version", action="version", version=VERSION_BANNER)
    return parser


def _split_files(raw_values: Sequence[str]) -> List[str]:
    files: List[str] = []
    for raw in raw_values:
        files.extend(part.strip() for part in raw.split(",") if part.strip())
    return files


def main(argv: Sequence[str] | None = None) -> int:
    env_path = Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(dotenv_path=env_path, override=False)

    args = _build_parser().parse_args(argv)

    try:
        settings = AppSettings.from_env()
    except ConfigurationError as exc:
        _setup_logging(args.log_level or "INFO")
        logger.error("Error: %s", exc)
        return 1

    _setup_logging(args.log_level or settings.log_level)
    logger.info(VERSION_BANNER)

    revision_reader = GitRevisionReader()

    try:
        provider = normalize_provider(args.provider or settings.llm_provider)
        model = args.model or settings.model_for(provider)
        logger.info("Using model: %s", model)
        credential = resolve_credential(provider, args.key)

        files = _split_files(args.files)
        if args.interactive:
            if not args.source.strip() or not args.target.strip():
                raise ConfigurationError("Source branch and target branch are required")
            files = pick_files(revision_reader.list_tracked_files())
            if not files:
                logger.error("Error: no files selected")
                return 1

        request = AnalysisRequest(
            file_paths=tuple(files),
            source_revision=args.source,
            target_revision=args.target,
            provider=provider,
            model=model,
            credential=credential,
        )
    except (ConfigurationError, RevisionFetchError) as exc:
        logger.error("Error: %s", exc)
        return 1

    service = BatchReviewService(
        revision_reader=revision_reader,
        diff_tool=DiffTool(),
        provider_factory=functools.partial(
            create_analysis_provider,
            timeout_seconds=settings.llm_timeout_seconds,
            anthropic_base_url=settings.anthropic_base_url,
            openai_base_url=settings.openai_base_url,
        ),
    )

    try:
        outcome = service.run(request)
    except ConfigurationError as exc:
        logger.error("Error: %s", exc)
        return 1
    except AnalysisError as exc:
        logger.error("Error getting analysis: %s", exc)
        return 1

    if outcome.analysis is None:
        print(
            f"No changes detected between {request.source_revision} "
            f"and {request.target_revision}."
        )
        return 0

    print(outcome.analysis.get("content", ""))
    return 0


if __name__ == "__main__":
    sys.exit(main())
