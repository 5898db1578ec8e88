"""
Character grids produced by the converter.

A ``ConvertedFrame`` stores its glyphs and colors as numpy arrays; cells
are materialized on access.
"""

from collections import Counter
from dataclasses import dataclass

import numpy as np

from ..core.colors import Color

RESET = "\033[0m"


# =============================================================================
# Cell and Frame
# =============================================================================

@dataclass(frozen=True)
class Cell:
    """A single grid cell with character and colors."""
    char: str = " "
    fg: Color = Color(255, 255, 255)
    bg: Color = Color(0, 0, 0)

    def render(self) -> str:
        """Render cell to ANSI string."""
        return f"{self.bg.ansi_bg()}{self.fg.ansi_fg()}{self.char}{RESET}"


class ConvertedFrame:
    """Fixed-size grid of cells plus the duration it is shown for."""

    def __init__(self, chars: np.ndarray, fg: np.ndarray, bg: np.ndarray, duration_ms: int):
        self.chars = chars          # (height, width) '<U1'
        self.fg = fg                # (height, width, 3) uint8
        self.bg = bg                # (height, width, 3) uint8
        self.duration_ms = duration_ms
        self.height, self.width = chars.shape

    def __getitem__(self, pos: tuple[int, int]) -> Cell:
        x, y = pos
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"Cell ({x}, {y}) outside {self.width}x{self.height} grid")
        return Cell(
            str(self.chars[y, x]),
            Color(*(int(c) for c in self.fg[y, x])),
            Color(*(int(c) for c in self.bg[y, x])),
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, ConvertedFrame):
            return NotImplemented
        return (
            self.duration_ms == other.duration_ms
            and np.array_equal(self.chars, other.chars)
            and np.array_equal(self.fg, other.fg)
            and np.array_equal(self.bg, other.bg)
        )

    def rows(self) -> list[str]:
        return ["".join(row) for row in self.chars]

    def to_grid(self) -> list[list[Cell]]:
        return [[self[x, y] for x in range(self.width)] for y in range(self.height)]

    def render(self) -> str:
        """Render grid to ANSI string (truecolor)."""
        lines = []
        for y in range(self.height):
            parts = []
            prev = None
            for x in range(self.width):
                key = (tuple(self.fg[y, x]), tuple(self.bg[y, x]))
                if key != prev:
                    parts.append(
                        f"\033[48;2;{key[1][0]};{key[1][1]};{key[1][2]}m"
                        f"\033[38;2;{key[0][0]};{key[0][1]};{key[0][2]}m"
                    )
                    prev = key
                parts.append(str(self.chars[y, x]))
            parts.append(RESET)
            lines.append("".join(parts))
        return "\n".join(lines)

    def render_plain(self) -> str:
        """Render grid without colors (plain text)."""
        return "\n".join(self.rows())

    def character_usage(self) -> dict[str, int]:
        return dict(Counter(self.chars.ravel().tolist()))

    def unique_colors(self) -> set[Color]:
        colors = np.concatenate([self.fg.reshape(-1, 3), self.bg.reshape(-1, 3)])
        return {Color(int(r), int(g), int(b)) for r, g, b in np.unique(colors, axis=0)}
