from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from typing import TYPE_CHECKING, TextIO

if TYPE_CHECKING:
    from pydbi.common import DBResult

_logger = logging.getLogger(__name__)


def _render(line: Callable[[], str]) -> str | None:
    try:
        return line()
    except Exception:
        # Diagnostics must not fail because a driver does.
        _logger.debug("Failed to render result summary line.", exc_info=True)
        return None


def _is_valid(result: DBResult) -> bool | None:
    try:
        return bool(result.is_valid)
    except Exception:
        _logger.debug("Failed to check result validity.", exc_info=True)
        return None


def format_result(result: DBResult) -> list[str]:
    """Render a short human readable summary of a result.

    Example:
        >>> print("\\n".join(format_result(result)))
        <SQLiteResult>
          SQL  SELECT * FROM many_rows
          ROWS Fetched: 10 [incomplete]
               Changed: 0

    A result that is no longer valid renders as ``EXPIRED``. A line whose
    accessor raises is left out, so a partially broken driver still gets a
    summary and this function never raises.
    """
    lines = [f"<{type(result).__name__}>"]
    if _is_valid(result) is False:
        lines.append("EXPIRED")
        return lines
    renderers: list[Callable[[], str]] = [
        lambda: f"  SQL  {result.statement}",
        lambda: (
            f"  ROWS Fetched: {result.row_count} "
            f"[{'complete' if result.has_completed else 'incomplete'}]"
        ),
        lambda: f"       Changed: {result.rows_affected}",
    ]
    for renderer in renderers:
        line = _render(renderer)
        if line is not None:
            lines.append(line)
    return lines


def show_result(result: DBResult, file: TextIO | None = None) -> None:
    """Write the summary of :func:`format_result` to ``file`` (stdout by default)."""
    out = file if file is not None else sys.stdout
    for line in format_result(result):
        out.write(line + "\n")
