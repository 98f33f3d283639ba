from __future__ import annotations

from typing import List, Sequence, Tuple


FileDiff = Tuple[str, str]

FOCUS_AREAS = [
    "Logic errors",
    "Race conditions",
    "Memory leaks",
    "Security vulnerabilities",
    "API contract violations",
    "Edge cases",
    "Performance issues",
]
CROSS_FILE_FOCUS = "Cross-file interaction effects"


def format_file_section(path: str, diff: str) -> str:
    return f"=== File: {path} ===\n{diff}"


def generate_review_prompt(file_diffs: Sequence[FileDiff]) -> str:
    """Combine per-file unified diffs into a single bug-review request.

    Every entry must carry a non-empty diff; unchanged or failed files are
    filtered out by the caller. Output is deterministic and keeps input order.
    """

    if not file_diffs:
        raise ValueError("generate_review_prompt requires at least one file diff")

    paths = ", ".join(path for path, _ in file_diffs)
    header = (
        "You are an expert code reviewer specializing in finding bugs. "
        f"Analyze the following changes in {paths} to identify potential bugs, "
        "logic errors, edge cases, and performance issues."
    )

    sections: List[str] = [format_file_section(path, diff) for path, diff in file_diffs]

    focus = list(FOCUS_AREAS)
    if len(file_diffs) > 1:
        focus.append(CROSS_FILE_FOCUS)
    focus_lines = "\n".join(f"{index}. {item}" for index, item in enumerate(focus, 1))

    return (
        header
        + "\n\n"
        + "\n\n".join(sections)
        + f"\n\nFocus on:\n{focus_lines}\n\n"
        "Provide a concise analysis listing only potential issues. "
        "If there are no issues, state that explicitly."
    )
