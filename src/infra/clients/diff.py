from __future__ import annotations

import logging
import os
import subprocess
import tempfile

from src.shared.errors import DiffGenerationError


logger = logging.getLogger(__name__)


class DiffTool:
    """Wraps the external ``diff -u`` utility.

    Both texts are written to scratch files inside a temporary directory that
    is removed before ``unified_diff`` returns, whether or not the tool ran
    successfully. Exit status 0 (identical) and 1 (differences) are success;
    anything else is a tool failure.
    """

    def __init__(self, *, executable: str = "diff", scratch_dir: str | None = None) -> None:
        self._executable = executable
        self._scratch_dir = scratch_dir

    def unified_diff(
        self,
        before: str,
        after: str,
        before_label: str,
        after_label: str,
    ) -> str:
        if before == after:
            return ""

        try:
            with tempfile.TemporaryDirectory(prefix="safeguard-", dir=self._scratch_dir) as workdir:
                before_path = os.path.join(workdir, "source")
                after_path = os.path.join(workdir, "target")
                with open(before_path, "w", encoding="utf-8", newline="") as handle:
                    handle.write(before)
                with open(after_path, "w", encoding="utf-8", newline="") as handle:
                    handle.write(after)

                result = self._run(before_path, after_path, before_label, after_label)
        except OSError as exc:
            raise DiffGenerationError(f"Failed to prepare diff scratch files: {exc}") from exc

        if result.returncode not in (0, 1):
            raise DiffGenerationError(
                f"diff command failed with exit status {result.returncode}: "
                f"{result.stderr.decode('utf-8', errors='replace').strip()}"
            )

        output = result.stdout.decode("utf-8", errors="replace")
        logger.debug(
            "Generated diff: before_label=%s, after_label=%s, length=%s",
            before_label,
            after_label,
            len(output),
        )
        return output

    def _run(
        self,
        before_path: str,
        after_path: str,
        before_label: str,
        after_label: str,
    ) -> subprocess.CompletedProcess[bytes]:
        try:
            return subprocess.run(
                [
                    self._executable,
                    "-u",
                    "--label",
                    before_label,
                    "--label",
                    after_label,
                    before_path,
                    after_path,
                ],
                capture_output=True,
                check=False,
            )
        except FileNotFoundError as exc:
            raise DiffGenerationError(f"diff utility not found: {self._executable}") from exc
