"""Typed generation errors and the structured result returned to hosts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


class GeneratorError(Exception):
    """Base class for every failure a generation run can report."""

    kind = "generator-error"


class InvalidParameter(GeneratorError):
    """A setting cannot be clamped into a meaningful value (e.g. min > max)."""

    kind = "invalid-parameter"


class GenerationTimeout(GeneratorError):
    """A run took longer than the configured time budget."""

    kind = "generation-timeout"


class CanvasSizeMismatch(GeneratorError):
    """Requested grid dimensions are zero or exceed the configured maxima."""

    kind = "canvas-size-mismatch"


class NumericInstability(GeneratorError):
    """NaN or infinity was detected in simulation state or a pixel buffer."""

    kind = "numeric-instability"


@dataclass
class GenerationResult:
    """Outcome of one generation run. Never raised, always returned."""

    success: bool
    frames: list = field(default_factory=list)
    converted: list = field(default_factory=list)
    processing_time_ms: float = 0.0
    error: Optional[BaseException] = None

    @property
    def frame_count(self) -> int:
        return len(self.frames)

    @property
    def error_kind(self) -> Optional[str]:
        if self.error is None:
            return None
        return getattr(self.error, "kind", "internal")

    @property
    def error_message(self) -> Optional[str]:
        return None if self.error is None else str(self.error)

    @classmethod
    def failed(cls, error: BaseException, processing_time_ms: float = 0.0) -> "GenerationResult":
        return cls(success=False, processing_time_ms=processing_time_ms, error=error)
