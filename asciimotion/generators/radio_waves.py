"""
Radio waves - concentric shapes expanding from an origin.

Waves are spawned on a fixed lattice of frames (one every
``frame_rate / frequency`` frames, extending into negative frame indices),
so the set of live waves at frame *n* is computed directly instead of
being carried between frames.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterator

import numpy as np

from ..render.raster import PixelBuffer, cell_grid
from .base import Generator
from .settings import RadioWavesSettings

POLYGON_SIDES = {"triangle": 3, "square": 4, "pentagon": 5, "hexagon": 6, "octagon": 8}
STAR_POINTS = 5
STAR_INNER_RATIO = 0.382

# Oldest waves beyond this are dropped when speed is tiny
MAX_ACTIVE_WAVES = 256


def shape_boundary(shape: str, theta: np.ndarray) -> np.ndarray:
    """Boundary radius of a unit shape along each polar angle."""
    if shape in POLYGON_SIDES:
        k = POLYGON_SIDES[shape]
        half = math.pi / k
        phi = np.mod(theta + half, 2.0 * half) - half
        return math.cos(half) / np.cos(phi)
    if shape == "star":
        half = math.pi / STAR_POINTS
        rel = np.mod(theta + math.pi / 2.0, 2.0 * half)
        rel = np.where(rel < half, rel, 2.0 * half - rel)
        inner = STAR_INNER_RATIO
        return inner * math.sin(half) / (np.sin(rel) + inner * np.sin(half - rel))
    return np.ones_like(theta)


def profile_intensity(profile: str, t: np.ndarray) -> np.ndarray:
    """Opacity across the band; t=0 at the outer edge and t=1 at the inner edge."""
    if profile == "fade-out":
        return 1.0 - t
    if profile == "fade-in":
        return t
    if profile == "fade-in-out":
        return 1.0 - np.abs(t - 0.5) * 2.0
    return np.ones_like(t)


@dataclass
class Wave:
    spawn_frame: float
    radius: float
    life_ratio: float   # radius / max_radius


@dataclass
class WaveState:
    """Live waves at one frame."""
    frame_index: int
    generator: "RadioWavesGenerator"
    waves: list[Wave] = field(default_factory=list)

    def render(self, buffer: PixelBuffer) -> None:
        g = self.generator
        s = g.settings
        for wave in self.waves:
            ratio = wave.life_ratio
            thickness = s.start_thickness + (s.end_thickness - s.start_thickness) * ratio
            half = max(thickness / 2.0, 0.5)

            rotation = math.radians(s.start_rotation + (s.end_rotation - s.start_rotation) * ratio)
            if s.wave_shape == "circle":
                rho = g.distance
            else:
                rho = g.distance / shape_boundary(s.wave_shape, g.angle - rotation)

            offset = rho - wave.radius
            band = np.abs(offset) <= half
            if not band.any():
                continue
            t = np.clip(0.5 - offset / (2.0 * half), 0.0, 1.0)
            amplitude = max(0.0, 1.0 - ratio * s.decay_rate) if s.decay_rate > 0 else 1.0
            layer = np.where(band, profile_intensity(s.profile_shape, t) * amplitude, 0.0)
            buffer.combine_max(layer)


class RadioWavesGenerator(Generator):
    """Emits waves from ``(origin_x, origin_y)`` on a fixed cadence."""

    settings_type = RadioWavesSettings

    def __init__(self, settings: RadioWavesSettings, width: int, height: int, config=None):
        super().__init__(settings, width, height, config)
        s = self.settings
        dx, dy = cell_grid(width, height, self.aspect, s.origin_x, s.origin_y)
        self.distance = np.hypot(dx, dy)
        self.angle = np.arctan2(dy, dx)

        corners_x = np.array([0.0, width - 1, 0.0, width - 1]) - s.origin_x
        corners_y = np.array([0.0, 0.0, height - 1, height - 1]) - s.origin_y
        max_distance = float(np.max(np.hypot(corners_x * self.aspect, corners_y)))
        self.max_radius = max(max_distance, 1.0) * s.lifetime
        self.spawn_interval = s.frame_rate / s.frequency

    def active_waves(self, n: int) -> list[Wave]:
        """Waves alive at frame *n*, newest last."""
        s = self.settings
        speed = abs(s.propagation_speed)
        interval = self.spawn_interval
        newest = math.floor(n / interval)

        if speed == 0.0:
            return [Wave(newest * interval, 0.0, 0.0)]

        life = self.max_radius / speed
        oldest = max(math.ceil((n - life) / interval), newest - MAX_ACTIVE_WAVES + 1)
        waves = []
        for k in range(oldest, newest + 1):
            spawn = k * interval
            travelled = speed * (n - spawn)
            if travelled > self.max_radius:
                continue
            if s.propagation_speed < 0:
                radius = self.max_radius - travelled
            else:
                radius = travelled
            waves.append(Wave(spawn, radius, radius / self.max_radius))
        return waves

    def simulate(self, start: int, stop: int) -> Iterator[WaveState]:
        for n in range(start, stop):
            yield WaveState(n, self, self.active_waves(n))
