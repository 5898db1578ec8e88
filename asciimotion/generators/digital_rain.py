"""
Digital rain - luminous trails falling across the grid.

Each trail is bright at its head and fades toward its tail. Overlapping
trails combine by max. An optional noise overlay perturbs luminosity.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterator

import numpy as np
from numba import njit

from ..core.noise import NoiseField
from ..core.rng import SeededRandom
from ..render.raster import PixelBuffer
from .base import Generator
from .settings import DigitalRainSettings

PRE_RUN_FACTOR = 0.5
PRE_RUN_CAP = 50


@njit(cache=True)
def _draw_trails(
    values: np.ndarray,
    t_x: np.ndarray, t_y: np.ndarray,
    t_len: np.ndarray, t_width: np.ndarray,
    n: int,
    dir_x: float, dir_y: float,
    fade: float,
    noise: np.ndarray, noise_strength: float,
):
    height, width = values.shape
    for t in range(n):
        length = t_len[t]
        half = int(np.floor(t_width[t] / 2.0))
        for i in range(length):
            cx = t_x[t] - dir_x * i
            cy = t_y[t] - dir_y * i
            pos = i / max(length - 1, 1)
            if fade <= 0.0 or pos <= 1.0 - fade:
                base = 1.0
            else:
                base = 1.0 - (pos - (1.0 - fade)) / fade
            for ox in range(-half, half + 1):
                for oy in range(-half, half + 1):
                    px = int(np.rint(cx + ox))
                    py = int(np.rint(cy + oy))
                    if px < 0 or px >= width or py < 0 or py >= height:
                        continue
                    dist = np.sqrt(ox * ox + oy * oy)
                    edge = 0.0 if dist > half else 1.0 - dist / (half + 1) * 0.3
                    lum = base * edge
                    if noise_strength > 0.0:
                        lum += noise[py, px] * noise_strength
                        if lum < 0.0:
                            lum = 0.0
                        elif lum > 1.0:
                            lum = 1.0
                    if lum > values[py, px]:
                        values[py, px] = lum


@dataclass
class TrailState:
    """Live view of the trail arena at one frame. Render before advancing."""
    frame_index: int
    generator: "DigitalRainGenerator"
    count: int

    def render(self, buffer: PixelBuffer) -> None:
        self.generator.render_trails(buffer, self.frame_index)


class DigitalRainGenerator(Generator):
    """Trails spawn just outside the edge they travel away from."""

    settings_type = DigitalRainSettings

    def __init__(self, settings: DigitalRainSettings, width: int, height: int, config=None):
        super().__init__(settings, width, height, config)
        s = self.settings
        self.capacity = self.config.limits.max_trails
        theta = math.radians(s.direction_angle)
        self.dir_x = math.sin(theta)
        self.dir_y = -math.cos(theta)
        self.reach = math.hypot(width, height) + s.RANGES["trail_length"][1] + 2.0
        self.noise = NoiseField(s.seed, "perlin") if s.noise_amount > 0 else None
        self._noise_xs = np.arange(width) * s.noise_scale
        self._noise_ys = np.arange(height) * s.noise_scale
        self._init_trail_arrays()

    def _init_trail_arrays(self) -> None:
        n = self.capacity
        self.t_x = np.zeros(n, dtype=np.float64)
        self.t_y = np.zeros(n, dtype=np.float64)
        self.t_speed = np.zeros(n, dtype=np.float64)
        self.t_len = np.zeros(n, dtype=np.int64)
        self.t_width = np.zeros(n, dtype=np.float64)
        self.t_count = 0

    def _spawn_origin(self, length: int, rng: SeededRandom) -> tuple[float, float]:
        angle = self.settings.direction_angle % 360.0
        if 135.0 <= angle <= 225.0:
            return rng.next() * self.width, -float(length)
        if angle >= 315.0 or angle <= 45.0:
            return rng.next() * self.width, float(self.height + length)
        if angle < 180.0:
            return -float(length), rng.next() * self.height
        return float(self.width + length), rng.next() * self.height

    def _add_trail(self, rng: SeededRandom, scatter: bool) -> None:
        s = self.settings
        if self.t_count >= self.capacity:
            return
        length = max(1, int(round(rng.vary(s.trail_length, s.trail_length_randomness))))
        speed = max(0.01, rng.vary(s.speed, s.speed_randomness))
        width = s.trail_width
        if s.width_randomness:
            width = rng.uniform(s.width_min, s.width_max)
        if scatter:
            x, y = rng.next() * self.width, rng.next() * self.height
        else:
            x, y = self._spawn_origin(length, rng)
        i = self.t_count
        self.t_x[i] = x
        self.t_y[i] = y
        self.t_speed[i] = speed
        self.t_len[i] = length
        self.t_width[i] = width
        self.t_count += 1

    def _pre_run(self, rng: SeededRandom) -> None:
        """Seed the grid with a steady-state population of trails."""
        s = self.settings
        per_frame = s.frequency / s.frame_rate
        lifetime = (max(self.width, self.height) + s.trail_length) / s.speed
        count = min(int(per_frame * lifetime * PRE_RUN_FACTOR), self.capacity, PRE_RUN_CAP)
        for _ in range(count):
            self._add_trail(rng, scatter=True)

    def _advance(self) -> None:
        """Move every trail and compact out the ones that left the grid."""
        cx = self.width / 2.0
        cy = self.height / 2.0
        write_idx = 0
        for i in range(self.t_count):
            self.t_x[i] += self.dir_x * self.t_speed[i]
            self.t_y[i] += self.dir_y * self.t_speed[i]
            if math.hypot(self.t_x[i] - cx, self.t_y[i] - cy) > self.reach:
                continue
            if write_idx != i:
                self.t_x[write_idx] = self.t_x[i]
                self.t_y[write_idx] = self.t_y[i]
                self.t_speed[write_idx] = self.t_speed[i]
                self.t_len[write_idx] = self.t_len[i]
                self.t_width[write_idx] = self.t_width[i]
            write_idx += 1
        self.t_count = write_idx

    def step(self, n: int, rng: SeededRandom) -> None:
        s = self.settings
        expected = s.frequency / s.frame_rate
        spawn = int(math.floor(expected))
        if rng.chance(expected - spawn):
            spawn += 1
        for _ in range(spawn):
            self._add_trail(rng, scatter=False)
        self._advance()

    def noise_overlay(self, n: int) -> np.ndarray:
        s = self.settings
        if self.noise is None:
            return np.zeros((self.height, self.width), dtype=np.float64)
        z = n * s.noise_speed / 100.0 if s.animated_noise else 0.0
        return self.noise.fractal_grid(self._noise_xs, self._noise_ys, z)

    def render_trails(self, buffer: PixelBuffer, n: int) -> None:
        s = self.settings
        if self.t_count == 0:
            return
        _draw_trails(
            buffer.values,
            self.t_x, self.t_y, self.t_len, self.t_width,
            self.t_count,
            self.dir_x, self.dir_y,
            s.fade_amount,
            self.noise_overlay(n), s.noise_amount / 100.0,
        )

    def simulate(self, start: int, stop: int) -> Iterator[TrailState]:
        rng = self.rng()
        self._init_trail_arrays()
        if self.settings.pre_run:
            self._pre_run(rng)
        for n in range(self.first_frame, stop):
            self.step(n, rng)
            if n >= start:
                yield TrailState(n, self, self.t_count)
