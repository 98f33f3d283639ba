from __future__ import annotations

import logging
import os
import subprocess
from typing import List

from src.shared.errors import RevisionFetchError


logger = logging.getLogger(__name__)


class GitRevisionReader:
    """Reads file contents and tracked paths from a local git repository."""

    def __init__(self, repo_dir: str | None = None, *, git_executable: str = "git") -> None:
        self._repo_dir = repo_dir
        self._git_executable = git_executable

    def _run(self, args: List[str]) -> subprocess.CompletedProcess[bytes]:
        # bytes, so carriage returns survive decoding
        return subprocess.run(
            [self._git_executable, *args],
            cwd=self._repo_dir,
            capture_output=True,
            check=False,
        )

    @staticmethod
    def _decode(raw: bytes) -> str:
        return raw.decode("utf-8", errors="replace")

    def show_file(self, path: str, revision: str) -> str:
        logger.info("Fetching file: path=%s, revision=%s", path, revision)
        if path.startswith("~"):
            path = os.path.expanduser(path)

        try:
            result = self._run(["show", f"{revision}:{path}"])
        except OSError as exc:
            raise RevisionFetchError(path=path, revision=revision, cause=str(exc)) from exc

        if result.returncode != 0:
            raise RevisionFetchError(
                path=path,
                revision=revision,
                cause=(
                    f"git show exited with {result.returncode}: "
                    f"{self._decode(result.stderr).strip()}"
                ),
            )
        return self._decode(result.stdout)

    def list_tracked_files(self) -> List[str]:
        try:
            result = self._run(["ls-files"])
        except OSError as exc:
            raise RevisionFetchError(path=".", revision="index", cause=str(exc)) from exc

        if result.returncode != 0:
            raise RevisionFetchError(
                path=".",
                revision="index",
                cause=(
                    f"git ls-files exited with {result.returncode}: "
                    f"{self._decode(result.stderr).strip()}"
                ),
            )
        return [line for line in self._decode(result.stdout).splitlines() if line.strip()]
