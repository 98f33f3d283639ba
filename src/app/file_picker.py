from __future__ import annotations

import logging
from typing import List, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table


logger = logging.getLogger(__name__)

HELP_TEXT = (
    "Enter numbers to toggle files ([cyan]1,3,5-7[/cyan]), "
    "[cyan]/text[/cyan] to filter, [cyan]/[/cyan] to clear the filter, "
    "[cyan]a[/cyan] to select all shown, [cyan]Enter[/cyan] to confirm, "
    "[cyan]q[/cyan] to quit."
)


def parse_selection(raw: str, count: int) -> List[int]:
    """Turn ``"1,3,5-7"`` into zero-based indexes, keeping the typed order."""

    indexes: List[int] = []
    for token in raw.replace(" ", "").split(","):
        if not token:
            continue
        if "-" in token:
            start_raw, end_raw = token.split("-", 1)
            start, end = int(start_raw), int(end_raw)
            if start > end:
                start, end = end, start
            numbers = range(start, end + 1)
        else:
            numbers = range(int(token), int(token) + 1)

        for number in numbers:
            if not 1 <= number <= count:
                raise ValueError(f"{number} is out of range")
            indexes.append(number - 1)
    return indexes


def _render(console: Console, shown: Sequence[str], selected: Sequence[str], query: str) -> None:
    title = "Select files to analyze"
    if query:
        title += f" (filter: {query})"

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("No.", style="dim", width=6, justify="center")
    table.add_column("", width=3)
    table.add_column("Path", style="cyan")
    for number, path in enumerate(shown, 1):
        table.add_row(str(number), "[green]✓[/green]" if path in selected else "", path)

    console.print(Panel(table, title=f"[bold cyan]{title}", border_style="cyan"))

    summary = f"Selected: {len(selected)} files"
    if selected:
        preview = ", ".join(selected[:3])
        summary += f" ({preview}{'...' if len(selected) > 3 else ''})"
    console.print(f"[bold green]{summary}")


def pick_files(paths: Sequence[str], console: Console | None = None) -> List[str]:
    """Let the user choose files from ``paths``; returns them in selection order.

    An empty list means the user quit or confirmed without choosing anything.
    """

    console = console or Console()
    candidates = [path for path in paths if path.strip()]
    if not candidates:
        console.print("[bold red]No tracked files found")
        return []

    selected: List[str] = []
    query = ""

    while True:
        shown = [path for path in candidates if query.lower() in path.lower()]
        _render(console, shown, selected, query)
        console.print(HELP_TEXT)
        choice = console.input("[bold cyan]>>> ").strip()

        if choice.lower() == "q":
            return []
        if not choice:
            break
        if choice.startswith("/"):
            query = choice[1:].strip()
            continue
        if choice.lower() == "a":
            for path in shown:
                if path not in selected:
                    selected.append(path)
            continue

        try:
            indexes = parse_selection(choice, len(shown))
        except ValueError:
            console.print("[bold red]Please enter valid numbers")
            continue

        for index in indexes:
            path = shown[index]
            if path in selected:
                selected.remove(path)
            else:
                selected.append(path)

    logger.info("Selected %s file(s) interactively", len(selected))
    return selected
