"""
Turbulent noise - an animated fractal noise field.

Every pixel is sampled directly from the noise library; time enters as
the third axis, so frames are independent of each other.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

import numpy as np

from ..core.noise import NoiseField
from ..render.raster import PixelBuffer
from .base import Generator
from .settings import TurbulentNoiseSettings


@dataclass
class NoiseState:
    frame_index: int
    generator: "TurbulentNoiseGenerator"
    z: float

    def render(self, buffer: PixelBuffer) -> None:
        s = self.generator.settings
        value = self.generator.sample_grid(self.z)
        intensity = ((value * 0.5 + 0.5) - 0.5) * s.contrast + 0.5 + s.brightness
        buffer.combine_max(np.clip(intensity, 0.0, 1.0))


class TurbulentNoiseGenerator(Generator):
    """Fractal noise scrolled through time by ``evolution_speed``."""

    settings_type = TurbulentNoiseSettings

    def __init__(self, settings: TurbulentNoiseSettings, width: int, height: int, config=None):
        super().__init__(settings, width, height, config)
        s = self.settings
        self.field = NoiseField(s.seed, s.noise_type)
        self.frame_count, _ = s.resolve_timing(limits=self.config.limits)
        # Same sampling scale on both axes, with columns aspect corrected
        scale = s.base_frequency / max(width, height) * 4.0
        self.xs = (np.arange(width) * self.aspect + s.offset_x) * scale
        self.ys = (np.arange(height) + s.offset_y) * scale

    def z_for(self, n: int) -> float:
        return n / self.frame_count * self.settings.evolution_speed

    def sample(self, x: float, y: float, z: float) -> float:
        """``amplitude * fractal`` at one coordinate in noise space."""
        s = self.settings
        return s.amplitude * self.field.fractal(x, y, z, s.octaves, s.persistence, s.lacunarity)

    def sample_grid(self, z: float) -> np.ndarray:
        s = self.settings
        grid = self.field.fractal_grid(self.xs, self.ys, z, s.octaves, s.persistence, s.lacunarity)
        return s.amplitude * grid

    def simulate(self, start: int, stop: int) -> Iterator[NoiseState]:
        for n in range(start, stop):
            yield NoiseState(n, self, self.z_for(n))
