"""
Base protocols and classes for generators.
"""

from abc import ABC, abstractmethod
from typing import ClassVar, Iterator, Optional, Protocol

from ..core.config import EngineConfig, get_config
from ..core.rng import SeededRandom
from ..render.raster import PixelBuffer
from .settings import GeneratorSettings


class SimulationState(Protocol):
    """Instantaneous state of one frame, able to draw itself."""

    frame_index: int

    def render(self, buffer: PixelBuffer) -> None:
        """Draw this state into *buffer*."""
        ...


class Generator(ABC):
    """
    Base class for procedural generators.

    A generator owns one immutable settings snapshot and a fixed grid size.
    Frame *n* is a pure function of ``(settings, n)``: stateful simulations
    always start at ``first_frame`` and are stepped forward, so asking for a
    later window replays the same stream of random draws.

    Subclasses must implement:
    - simulate(): Yield one state per frame index in a window
    """

    settings_type: ClassVar[type] = GeneratorSettings

    def __init__(self, settings: GeneratorSettings, width: int, height: int,
                 config: Optional[EngineConfig] = None):
        self.config = config or get_config()
        self.settings = settings.clamped(self.config.limits)
        self.width = width
        self.height = height
        self.aspect = self.config.render.cell_aspect_ratio

    @property
    def blend_frames(self) -> int:
        """Pre-roll length used by loop smoothing, 0 when it is off."""
        s = self.settings
        if not (s.loop_smoothing and s.supports_loop_smoothing):
            return 0
        count, _ = s.resolve_timing(limits=self.config.limits)
        blend = self.config.preview.clamp_blend_frames(s.blend_frames)
        return max(0, min(blend, count // 2))

    @property
    def first_frame(self) -> int:
        return -self.blend_frames

    def rng(self) -> SeededRandom:
        return SeededRandom(self.settings.seed)

    @abstractmethod
    def simulate(self, start: int, stop: int) -> Iterator[SimulationState]:
        """Yield states for frame indices ``start..stop-1`` (start >= first_frame)."""
        ...

    def render_frame(self, n: int) -> PixelBuffer:
        """Render a single frame into a fresh buffer."""
        buffer = PixelBuffer(self.width, self.height)
        for state in self.simulate(n, n + 1):
            state.render(buffer)
        return buffer
