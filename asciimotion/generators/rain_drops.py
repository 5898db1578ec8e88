"""
Rain drops - stochastic point sources emitting decaying ripples.

Ripples live in a fixed-capacity arena (swap-free compaction, live prefix
``[0, count)``). With interference on, contributions at a pixel are
summed; with it off the contribution of largest magnitude wins.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterator

import numpy as np
from numba import njit

from ..core.errors import NumericInstability
from ..core.rng import SeededRandom
from ..render.raster import PixelBuffer
from .base import Generator
from .settings import RainDropsSettings

logger = logging.getLogger(__name__)

MIN_AMPLITUDE = 0.01


# =============================================================================
# Numba JIT-compiled ripple field
# =============================================================================

@njit(cache=True)
def _ripple_field(
    out: np.ndarray,
    r_x: np.ndarray, r_y: np.ndarray,
    r_age: np.ndarray, r_amp: np.ndarray, r_decay: np.ndarray,
    n: int,
    speed: float, birth_size: float,
    wavelength: float, falloff: float,
    aspect: float, interference: bool,
):
    """Signed wave height per pixel, clamped to [-1, 1]."""
    height, width = out.shape
    band = wavelength * falloff
    two_pi = 2.0 * np.pi
    for y in range(height):
        for x in range(width):
            total = 0.0
            for i in range(n):
                dx = (x - r_x[i]) * aspect
                dy = y - r_y[i]
                d = np.sqrt(dx * dx + dy * dy)
                offset = d - (birth_size + speed * r_age[i])
                if abs(offset) >= band:
                    continue
                envelope = np.cos(two_pi * offset / wavelength) * (1.0 - abs(offset) / band)
                c = envelope * r_amp[i] * np.exp(-r_decay[i] * r_age[i])
                if interference:
                    total += c
                elif abs(c) > abs(total):
                    total = c
            if total > 1.0:
                total = 1.0
            elif total < -1.0:
                total = -1.0
            out[y, x] = total


@njit(cache=True)
def _sweep_ripples(
    r_x: np.ndarray, r_y: np.ndarray,
    r_age: np.ndarray, r_amp: np.ndarray, r_decay: np.ndarray,
    n: int,
    speed: float, birth_size: float, reach: float,
) -> int:
    """Age every ripple by one frame and drop the spent ones. Returns new count."""
    write_idx = 0
    for i in range(n):
        r_age[i] += 1
        amplitude = r_amp[i] * np.exp(-r_decay[i] * r_age[i])
        radius = birth_size + speed * r_age[i]
        alive = abs(amplitude) >= MIN_AMPLITUDE and radius <= reach
        if alive:
            if write_idx != i:
                r_x[write_idx] = r_x[i]
                r_y[write_idx] = r_y[i]
                r_age[write_idx] = r_age[i]
                r_amp[write_idx] = r_amp[i]
                r_decay[write_idx] = r_decay[i]
            write_idx += 1
    return write_idx


# =============================================================================
# Simulation
# =============================================================================

@dataclass
class RippleState:
    """Live view of the ripple arena at one frame. Render before advancing."""
    frame_index: int
    generator: "RainDropsGenerator"
    count: int
    spawned: int

    def render(self, buffer: PixelBuffer) -> None:
        self.generator.render_ripples(buffer)


class RainDropsGenerator(Generator):
    """Spawns ripples at random positions at ``drop_frequency`` per second."""

    settings_type = RainDropsSettings

    def __init__(self, settings: RainDropsSettings, width: int, height: int, config=None):
        super().__init__(settings, width, height, config)
        s = self.settings
        self.capacity = self.config.limits.max_ripples
        band = s.ripple_wavelength * s.ripple_falloff_width
        self.reach = math.hypot(width * self.aspect, height) + band
        self._field = np.zeros((height, width), dtype=np.float64)
        self._init_ripple_arrays()

    def _init_ripple_arrays(self) -> None:
        n = self.capacity
        self.r_x = np.zeros(n, dtype=np.float64)
        self.r_y = np.zeros(n, dtype=np.float64)
        self.r_age = np.zeros(n, dtype=np.float64)
        self.r_amp = np.zeros(n, dtype=np.float64)
        self.r_decay = np.zeros(n, dtype=np.float64)
        self.r_count = 0
        self.spawned = 0

    def add_ripple(self, x: float, y: float, amplitude: float = 1.0, decay: float = 0.0,
                   age: float = 0.0) -> bool:
        """Place a ripple directly. Returns False when the arena is full."""
        if self.r_count >= self.capacity:
            return False
        i = self.r_count
        self.r_x[i] = x
        self.r_y[i] = y
        self.r_age[i] = age
        self.r_amp[i] = amplitude
        self.r_decay[i] = max(0.0, decay)
        self.r_count += 1
        self.spawned += 1
        return True

    def spawn_count(self, rng: SeededRandom) -> int:
        """Drops this frame: integer part of the expected count plus a Bernoulli remainder."""
        s = self.settings
        expected = s.drop_frequency / s.frame_rate * max(0.0, rng.vary(1.0, s.drop_frequency_randomness))
        whole = int(math.floor(expected))
        if rng.chance(expected - whole):
            whole += 1
        return whole

    def _spawn(self, count: int, rng: SeededRandom) -> None:
        s = self.settings
        for _ in range(count):
            x = rng.next() * self.width
            y = rng.next() * self.height
            amplitude = max(0.0, rng.vary(s.ripple_amplitude, s.ripple_amplitude_randomness))
            decay = max(0.0, rng.vary(s.ripple_decay, s.ripple_decay_randomness))
            if not self.add_ripple(x, y, amplitude, decay):
                logger.debug("Ripple arena full (%d), dropping drop", self.capacity)

    def step(self, n: int, rng: SeededRandom) -> None:
        s = self.settings
        self.r_count = _sweep_ripples(
            self.r_x, self.r_y, self.r_age, self.r_amp, self.r_decay,
            self.r_count, s.ripple_speed, s.ripple_birth_size, self.reach,
        )
        self._spawn(self.spawn_count(rng), rng)

    def field(self) -> np.ndarray:
        """Signed wave height of the current arena, in [-1, 1]."""
        s = self.settings
        _ripple_field(
            self._field,
            self.r_x, self.r_y, self.r_age, self.r_amp, self.r_decay,
            self.r_count,
            s.ripple_speed, s.ripple_birth_size,
            s.ripple_wavelength, s.ripple_falloff_width,
            self.aspect, s.interference_enabled,
        )
        if not np.all(np.isfinite(self._field)):
            raise NumericInstability("Ripple field became non-finite")
        return self._field

    def render_ripples(self, buffer: PixelBuffer) -> None:
        s = self.settings
        level = (self.field() + 1.0) * 0.5
        intensity = (level - 0.5) * s.contrast + 0.5 + s.brightness
        buffer.combine_max(np.clip(intensity, 0.0, 1.0))

    def simulate(self, start: int, stop: int) -> Iterator[RippleState]:
        rng = self.rng()
        self._init_ripple_arrays()
        for n in range(self.first_frame, stop):
            self.step(n, rng)
            if n >= start:
                yield RippleState(n, self, self.r_count, self.spawned)
