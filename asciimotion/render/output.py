"""Host-facing result of a run: converted frames plus how to apply them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from ..core.errors import InvalidParameter
from .canvas import ConvertedFrame

OUTPUT_MODES = ("overwrite", "append")


@dataclass(frozen=True)
class FrameOutput:
    """Ordered ``(grid, duration)`` frames for the host's frame store.

    The core never touches the host sequence; ``apply_to`` returns the new
    sequence and leaves its input unchanged.
    """
    frames: tuple[ConvertedFrame, ...]
    mode: str = "overwrite"
    start_index: int = 0

    def __post_init__(self):
        if self.mode not in OUTPUT_MODES:
            raise InvalidParameter(f"Output mode must be one of {', '.join(OUTPUT_MODES)}, got {self.mode!r}")
        if self.start_index < 0:
            raise InvalidParameter(f"start_index must be >= 0, got {self.start_index}")

    def pairs(self) -> list[tuple[ConvertedFrame, int]]:
        return [(frame, frame.duration_ms) for frame in self.frames]

    def apply_to(self, sequence: Sequence) -> list:
        """Overwrite from ``start_index`` (extending as needed) or append at the end."""
        existing = list(sequence)
        if self.mode == "append":
            return existing + list(self.frames)
        start = min(self.start_index, len(existing))
        end = start + len(self.frames)
        return existing[:start] + list(self.frames) + existing[end:]
