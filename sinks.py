"""Output sinks for PRINT.

Every sink exposes ``emit(row, col, text)``. The interpreter only ever sees
that callable, so a sink can be swapped without touching the executor.
"""

from __future__ import annotations

import sys
from typing import List, Optional, TextIO, Tuple

import numpy as np
from numpy.typing import NDArray


DEFAULT_ROWS = 24
DEFAULT_COLS = 80


class StreamSink:
    """Writes one ``row col text`` line per PRINT."""

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self.stream = stream

    def emit(self, row: int, col: int, text: str) -> None:
        stream = self.stream if self.stream is not None else sys.stdout
        stream.write(f"{row} {col} {text}\n")


class ScreenSink:
    """Coordinate-addressed character surface.

    Text starting at ``(row, col)`` wraps onto the following rows the way a
    curses ``mvprintw`` does, and whatever runs past the bottom-right cell is
    dropped. A start position outside the surface writes nothing.
    """

    def __init__(self, rows: int = DEFAULT_ROWS, cols: int = DEFAULT_COLS) -> None:
        if rows <= 0 or cols <= 0:
            raise ValueError("screen dimensions must be positive")
        self.rows = rows
        self.cols = cols
        self.grid: NDArray[np.str_] = np.full((rows, cols), " ", dtype="<U1")

    def emit(self, row: int, col: int, text: str) -> None:
        if not (0 <= row < self.rows and 0 <= col < self.cols):
            return
        flat = self.grid.reshape(-1)
        start = row * self.cols + col
        count = min(len(text), flat.size - start)
        flat[start:start + count] = list(text[:count])

    def clear(self) -> None:
        self.grid[:, :] = " "

    def row_text(self, row: int) -> str:
        return "".join(self.grid[row]).rstrip()

    def render(self) -> str:
        lines = [self.row_text(r) for r in range(self.rows)]
        while lines and lines[-1] == "":
            lines.pop()
        return "\n".join(lines)


class RecordingSink:
    """Keeps every PRINT as a ``(row, col, text)`` tuple in ``calls``."""

    def __init__(self) -> None:
        self.calls: List[Tuple[int, int, str]] = []

    def emit(self, row: int, col: int, text: str) -> None:
        self.calls.append((row, col, text))
