from __future__ import annotations


def format_seconds(seconds: float | None) -> str:
    """Render an elapsed duration for log lines (``850ms``, ``2.41s``, ``1m 5s``)."""
    if seconds is None:
        return "n/a"
    if seconds < 0:
        return "0ms"
    if seconds < 1:
        return f"{int(seconds * 1000)}ms"
    if seconds < 60:
        return f"{seconds:.2f}s"

    minutes, remainder = divmod(int(seconds), 60)
    if minutes < 60:
        return f"{minutes}m {remainder}s"

    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes}m {remainder}s"
