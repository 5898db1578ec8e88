"""
Particle physics - emitter, integration, edge bounce and self collision.

Particles live in a fixed-capacity struct-of-arrays arena. Dead particles
are swept out by in-place compaction after every step, so the live set is
always the prefix ``[0, count)`` and no per-frame allocation happens.
Uses Numba JIT compilation for the integration and the O(n^2) collision
pass.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterator

import numpy as np
from numba import njit

from ..core.errors import NumericInstability
from ..core.noise import NoiseField
from ..core.rng import SeededRandom
from ..render.raster import SHAPE_IDS, PixelBuffer, stamp_particles
from .base import Generator
from .settings import ParticlePhysicsSettings

logger = logging.getLogger(__name__)

MAX_CLOUD_BLOBS = 9
TURBULENCE_SCALE = 0.1
TURBULENCE_TIME_STEP = 0.05


# =============================================================================
# Numba JIT-compiled particle physics
# =============================================================================

@njit(cache=True)
def _integrate(
    p_x: np.ndarray, p_y: np.ndarray,
    p_vx: np.ndarray, p_vy: np.ndarray,
    p_age: np.ndarray,
    p_bounce: np.ndarray,
    force_x: np.ndarray, force_y: np.ndarray,
    n: int,
    gravity: float, drag: float,
    width: float, height: float,
    edge_bounce: bool, edge_friction: float,
):
    """One integration step: forces, drag, motion, then edge response."""
    max_x = width - 1.0
    max_y = height - 1.0
    for i in range(n):
        p_vx[i] += force_x[i]
        p_vy[i] += gravity + force_y[i]
        p_vx[i] *= 1.0 - drag
        p_vy[i] *= 1.0 - drag
        p_x[i] += p_vx[i]
        p_y[i] += p_vy[i]
        p_age[i] += 1

        if edge_bounce:
            b = p_bounce[i]
            if p_x[i] < 0.0:
                p_x[i] = 0.0
                p_vx[i] = abs(p_vx[i]) * b
                p_vy[i] *= 1.0 - edge_friction
            elif p_x[i] > max_x:
                p_x[i] = max_x
                p_vx[i] = -abs(p_vx[i]) * b
                p_vy[i] *= 1.0 - edge_friction
            if p_y[i] < 0.0:
                p_y[i] = 0.0
                p_vy[i] = abs(p_vy[i]) * b
                p_vx[i] *= 1.0 - edge_friction
            elif p_y[i] > max_y:
                p_y[i] = max_y
                p_vy[i] = -abs(p_vy[i]) * b
                p_vx[i] *= 1.0 - edge_friction


@njit(cache=True)
def _collide(
    p_x: np.ndarray, p_y: np.ndarray,
    p_vx: np.ndarray, p_vy: np.ndarray,
    p_radius: np.ndarray, p_bounce: np.ndarray,
    n: int, aspect: float,
) -> int:
    """Pairwise impulse response for overlapping particles. Returns contact count."""
    contacts = 0
    for i in range(n):
        for j in range(i + 1, n):
            dx = (p_x[j] - p_x[i]) * aspect
            dy = p_y[j] - p_y[i]
            reach = p_radius[i] + p_radius[j]
            dist_sq = dx * dx + dy * dy
            if dist_sq >= reach * reach or dist_sq < 1e-12:
                continue
            dist = np.sqrt(dist_sq)
            nx = dx / dist
            ny = dy / dist
            rel = (p_vx[j] - p_vx[i]) * nx + (p_vy[j] - p_vy[i]) * ny
            if rel < 0.0:
                restitution = 0.5 * (p_bounce[i] + p_bounce[j])
                impulse = -(1.0 + restitution) * rel * 0.5
                p_vx[i] -= impulse * nx
                p_vy[i] -= impulse * ny
                p_vx[j] += impulse * nx
                p_vy[j] += impulse * ny
            overlap = (reach - dist) * 0.5
            p_x[i] -= overlap * nx / aspect
            p_y[i] -= overlap * ny
            p_x[j] += overlap * nx / aspect
            p_y[j] += overlap * ny
            contacts += 1
    return contacts


@njit(cache=True)
def _compact(
    p_x: np.ndarray, p_y: np.ndarray,
    p_vx: np.ndarray, p_vy: np.ndarray,
    p_age: np.ndarray, p_lifespan: np.ndarray,
    p_size: np.ndarray, p_bounce: np.ndarray, p_noise: np.ndarray,
    cloud_dx: np.ndarray, cloud_dy: np.ndarray, cloud_r: np.ndarray, cloud_n: np.ndarray,
    n: int,
    width: float, height: float, keep_offscreen: bool,
) -> int:
    """Remove expired or lost particles. Returns new particle count."""
    write_idx = 0
    for i in range(n):
        alive = p_age[i] < p_lifespan[i]
        if alive and not keep_offscreen:
            alive = (
                p_x[i] > -width and p_x[i] < 2.0 * width and
                p_y[i] > -height and p_y[i] < 2.0 * height
            )
        if alive:
            if write_idx != i:
                p_x[write_idx] = p_x[i]
                p_y[write_idx] = p_y[i]
                p_vx[write_idx] = p_vx[i]
                p_vy[write_idx] = p_vy[i]
                p_age[write_idx] = p_age[i]
                p_lifespan[write_idx] = p_lifespan[i]
                p_size[write_idx] = p_size[i]
                p_bounce[write_idx] = p_bounce[i]
                p_noise[write_idx] = p_noise[i]
                cloud_n[write_idx] = cloud_n[i]
                for k in range(cloud_dx.shape[1]):
                    cloud_dx[write_idx, k] = cloud_dx[i, k]
                    cloud_dy[write_idx, k] = cloud_dy[i, k]
                    cloud_r[write_idx, k] = cloud_r[i, k]
            write_idx += 1
    return write_idx


# =============================================================================
# Simulation
# =============================================================================

@dataclass
class ParticleState:
    """Live view of the arena at one frame. Render before advancing."""
    frame_index: int
    generator: "ParticlePhysicsGenerator"
    count: int
    spawned: int

    def render(self, buffer: PixelBuffer) -> None:
        self.generator.render_particles(buffer)


class ParticlePhysicsGenerator(Generator):
    """Spawns up to ``particle_count`` particles and integrates them."""

    settings_type = ParticlePhysicsSettings

    def __init__(self, settings: ParticlePhysicsSettings, width: int, height: int, config=None):
        super().__init__(settings, width, height, config)
        s = self.settings
        self.frame_count, _ = s.resolve_timing(limits=self.config.limits)
        self.capacity = min(s.particle_count, self.config.limits.max_particles)
        self.shape = SHAPE_IDS[s.particle_shape]
        self.turbulence = NoiseField(s.seed, "perlin") if s.turbulence_enabled else None
        self._init_particle_arrays()

    def _init_particle_arrays(self) -> None:
        """Initialize pre-allocated NumPy arrays for particles."""
        n = max(self.capacity, 1)
        self.p_x = np.zeros(n, dtype=np.float64)
        self.p_y = np.zeros(n, dtype=np.float64)
        self.p_vx = np.zeros(n, dtype=np.float64)
        self.p_vy = np.zeros(n, dtype=np.float64)
        self.p_age = np.zeros(n, dtype=np.int64)
        self.p_lifespan = np.zeros(n, dtype=np.int64)
        self.p_size = np.zeros(n, dtype=np.float64)
        self.p_bounce = np.zeros(n, dtype=np.float64)
        self.p_noise = np.zeros(n, dtype=np.float64)
        self.cloud_dx = np.zeros((n, MAX_CLOUD_BLOBS), dtype=np.float64)
        self.cloud_dy = np.zeros((n, MAX_CLOUD_BLOBS), dtype=np.float64)
        self.cloud_r = np.zeros((n, MAX_CLOUD_BLOBS), dtype=np.float64)
        self.cloud_n = np.zeros(n, dtype=np.int64)
        self.p_count = 0
        self.spawned = 0
        self._spawn_debt = 0.0
        # Per-frame scratch
        self._force_x = np.zeros(n, dtype=np.float64)
        self._force_y = np.zeros(n, dtype=np.float64)
        self._frame = 0

    # ------------------------------------------------------------------
    # Spawning
    # ------------------------------------------------------------------

    def spawn_count(self, n: int) -> int:
        """How many particles the emitter releases at frame *n*."""
        s = self.settings
        remaining = self.capacity - self.spawned
        if remaining <= 0:
            return 0
        if s.emitter_mode == "burst":
            return remaining if n == 0 else 0
        self._spawn_debt += self.capacity / self.frame_count
        count = int(self._spawn_debt + 1e-9)
        self._spawn_debt -= count
        return min(count, remaining)

    def _emitter_position(self, rng: SeededRandom) -> tuple[float, float]:
        s = self.settings
        size = s.emitter_size
        if s.emitter_shape == "vertical-line":
            return s.origin_x, s.origin_y + rng.signed() * size / 2.0
        if s.emitter_shape == "horizontal-line":
            return s.origin_x + rng.signed() * size / 2.0 / self.aspect, s.origin_y
        if s.emitter_shape == "square":
            x = s.origin_x + rng.signed() * size / 2.0 / self.aspect
            return x, s.origin_y + rng.signed() * size / 2.0
        if s.emitter_shape == "circle":
            radius = size / 2.0 * math.sqrt(rng.next())
            theta = rng.next() * 2.0 * math.pi
            return s.origin_x + math.cos(theta) * radius / self.aspect, s.origin_y + math.sin(theta) * radius
        return s.origin_x, s.origin_y

    def _spawn_batch(self, count: int, rng: SeededRandom) -> None:
        """Append *count* particles to the arena, drawing in a fixed order."""
        s = self.settings
        for _ in range(count):
            i = self.p_count
            x, y = self._emitter_position(rng)

            speed = max(0.0, rng.vary(s.velocity_magnitude, s.velocity_speed_randomness))
            angle = math.radians(s.velocity_angle + rng.signed() * s.velocity_angle_randomness * 180.0)

            if s.particle_size_randomness:
                size = rng.uniform(s.particle_size_min, s.particle_size_max)
            else:
                size = s.particle_size

            lifespan = s.lifespan
            if s.lifespan_randomness:
                lifespan = max(1, int(round(rng.vary(s.lifespan, s.lifespan_randomness_amount))))

            self.p_x[i] = x
            self.p_y[i] = y
            self.p_vx[i] = math.cos(angle) * speed
            self.p_vy[i] = math.sin(angle) * speed
            self.p_age[i] = 0
            self.p_lifespan[i] = lifespan
            self.p_size[i] = size
            self.p_bounce[i] = min(1.0, max(0.0, rng.vary(s.bounciness, s.bounciness_randomness)))
            self.p_noise[i] = rng.next() * 100.0

            if self.shape == SHAPE_IDS["cloudlet"]:
                blobs = rng.integer(5, MAX_CLOUD_BLOBS)
                self.cloud_n[i] = blobs
                for k in range(blobs):
                    self.cloud_dx[i, k] = rng.signed() * 0.5
                    self.cloud_dy[i, k] = rng.signed() * 0.5
                    self.cloud_r[i, k] = rng.uniform(0.3, 0.6)

            self.p_count += 1
            self.spawned += 1

    # ------------------------------------------------------------------
    # Stepping
    # ------------------------------------------------------------------

    def _noise_coords(self):
        count = self.p_count
        freq = self.settings.turbulence_frequency * TURBULENCE_SCALE
        xs = self.p_x[:count] * freq + self.p_noise[:count]
        ys = self.p_y[:count] * freq
        return xs, ys, self._frame * TURBULENCE_TIME_STEP

    def _apply_turbulence_force(self) -> None:
        count = self.p_count
        if self.turbulence is None:
            self._force_x[:count] = 0.0
            self._force_y[:count] = 0.0
            return
        xs, ys, z = self._noise_coords()
        strength = self.settings.turbulence_affects_position * 0.1
        self._force_x[:count] = self.turbulence.sample_points(xs, ys, z) * strength
        self._force_y[:count] = self.turbulence.sample_points(xs + 100.0, ys + 100.0, z) * strength

    def _turbulence_scale(self) -> np.ndarray:
        if self.turbulence is None:
            return np.ones(self.p_count, dtype=np.float64)
        xs, ys, z = self._noise_coords()
        scale = self.turbulence.sample_points(xs + 200.0, ys + 200.0, z)
        return np.maximum(0.0, 1.0 + scale * self.settings.turbulence_affects_scale)

    def _current_radius(self) -> np.ndarray:
        s = self.settings
        count = self.p_count
        t = self.p_age[:count] / np.maximum(self.p_lifespan[:count], 1)
        multiplier = s.start_size_multiplier + (s.end_size_multiplier - s.start_size_multiplier) * t
        return np.maximum(0.0, self.p_size[:count] * multiplier * self._turbulence_scale() * 0.5)

    def _current_opacity(self) -> np.ndarray:
        s = self.settings
        count = self.p_count
        t = self.p_age[:count] / np.maximum(self.p_lifespan[:count], 1)
        return np.clip(s.start_opacity + (s.end_opacity - s.start_opacity) * t, 0.0, 1.0)

    def step(self, n: int, rng: SeededRandom) -> None:
        """Spawn, integrate, collide and sweep for frame *n*."""
        s = self.settings
        self._frame = n
        spawn = self.spawn_count(n)
        if spawn:
            self._spawn_batch(spawn, rng)

        if self.p_count == 0:
            return

        self._apply_turbulence_force()
        _integrate(
            self.p_x, self.p_y, self.p_vx, self.p_vy, self.p_age, self.p_bounce,
            self._force_x, self._force_y, self.p_count,
            s.gravity * 0.1, s.drag,
            float(self.width), float(self.height),
            s.edge_bounce, s.edge_friction,
        )
        if s.self_collisions and self.p_count > 1:
            _collide(
                self.p_x, self.p_y, self.p_vx, self.p_vy,
                np.ascontiguousarray(self._current_radius()), self.p_bounce,
                self.p_count, self.aspect,
            )

        count = self.p_count
        if not (np.all(np.isfinite(self.p_x[:count])) and np.all(np.isfinite(self.p_y[:count]))):
            raise NumericInstability(f"Particle position became non-finite at frame {n}")

        self.p_count = _compact(
            self.p_x, self.p_y, self.p_vx, self.p_vy,
            self.p_age, self.p_lifespan, self.p_size, self.p_bounce, self.p_noise,
            self.cloud_dx, self.cloud_dy, self.cloud_r, self.cloud_n,
            self.p_count, float(self.width), float(self.height), s.edge_bounce,
        )

    def render_particles(self, buffer: PixelBuffer) -> None:
        count = self.p_count
        if count == 0:
            return
        stamp_particles(
            buffer.values,
            self.p_x, self.p_y,
            np.ascontiguousarray(self._current_radius()),
            np.ascontiguousarray(self._current_opacity()),
            self.cloud_dx, self.cloud_dy, self.cloud_r, self.cloud_n,
            count, self.shape, self.aspect,
        )

    def simulate(self, start: int, stop: int) -> Iterator[ParticleState]:
        rng = self.rng()
        self._init_particle_arrays()
        for n in range(self.first_frame, stop):
            self.step(n, rng)
            if n >= start:
                yield ParticleState(n, self, self.p_count, self.spawned)
