"""
Frame rasterizer - turns simulation state into RGBA pixel frames.

Generators draw grayscale intensity into a ``PixelBuffer``; the buffer is
validated and quantized into an immutable ``GeneratorFrame``. Shape stamp
kernels (disc, square, soft cloud) are Numba JIT compiled and combine
overlapping shapes by max.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numba import njit

from ..core.errors import CanvasSizeMismatch, NumericInstability

SHAPE_CIRCLE = 0
SHAPE_SQUARE = 1
SHAPE_CLOUDLET = 2

SHAPE_IDS = {"circle": SHAPE_CIRCLE, "square": SHAPE_SQUARE, "cloudlet": SHAPE_CLOUDLET}


# =============================================================================
# Frame Types
# =============================================================================

@dataclass(frozen=True)
class GeneratorFrame:
    """One rasterized output frame: ``width*height*4`` RGBA bytes."""
    width: int
    height: int
    data: bytes
    duration_ms: int

    def __post_init__(self):
        if self.width < 1 or self.height < 1:
            raise CanvasSizeMismatch(f"Frame size {self.width}x{self.height} must be at least 1x1")
        if len(self.data) != self.width * self.height * 4:
            raise CanvasSizeMismatch(
                f"Frame buffer holds {len(self.data)} bytes, expected {self.width * self.height * 4}"
            )

    def pixels(self) -> np.ndarray:
        """Read-only (height, width, 4) uint8 view of the buffer."""
        return np.frombuffer(self.data, dtype=np.uint8).reshape(self.height, self.width, 4)

    @classmethod
    def from_pixels(cls, pixels: np.ndarray, duration_ms: int) -> "GeneratorFrame":
        pixels = np.ascontiguousarray(pixels, dtype=np.uint8)
        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise CanvasSizeMismatch(f"Expected (height, width, 4) pixels, got {pixels.shape}")
        return cls(pixels.shape[1], pixels.shape[0], pixels.tobytes(), int(duration_ms))


class PixelBuffer:
    """Mutable grayscale intensity canvas in [0, 1], one float per pixel."""

    def __init__(self, width: int, height: int):
        self.width = width
        self.height = height
        self.values = np.zeros((height, width), dtype=np.float64)

    def clear(self) -> None:
        self.values.fill(0.0)

    def combine_max(self, layer: np.ndarray) -> None:
        np.maximum(self.values, layer, out=self.values)

    def check_finite(self) -> None:
        if not np.all(np.isfinite(self.values)):
            raise NumericInstability("Non-finite value in pixel buffer")

    def to_pixels(self) -> np.ndarray:
        self.check_finite()
        level = np.rint(np.clip(self.values, 0.0, 1.0) * 255.0).astype(np.uint8)
        out = np.empty((self.height, self.width, 4), dtype=np.uint8)
        out[..., 0] = level
        out[..., 1] = level
        out[..., 2] = level
        out[..., 3] = 255
        return out

    def to_frame(self, duration_ms: int) -> GeneratorFrame:
        return GeneratorFrame.from_pixels(self.to_pixels(), duration_ms)


def rasterize(state, width: int, height: int, duration_ms: int) -> GeneratorFrame:
    """Render one simulation state into a fresh frame."""
    buffer = PixelBuffer(width, height)
    state.render(buffer)
    return buffer.to_frame(duration_ms)


def cell_grid(width: int, height: int, aspect: float, origin_x: float = 0.0, origin_y: float = 0.0):
    """Aspect-corrected (dx, dy) offsets of every cell from an origin."""
    dx = (np.arange(width, dtype=np.float64) - origin_x) * aspect
    dy = np.arange(height, dtype=np.float64) - origin_y
    return np.broadcast_to(dx[None, :], (height, width)), np.broadcast_to(dy[:, None], (height, width))


# =============================================================================
# Numba JIT-compiled stamp kernels
# =============================================================================

@njit(cache=True)
def _stamp(
    values: np.ndarray, cx: float, cy: float, radius: float,
    value: float, aspect: float, shape: int,
):
    """Hard-edged disc or square. Radius is in rows; columns are aspect scaled."""
    height, width = values.shape
    r = max(radius, 0.5)
    span_x = r / aspect
    x0 = max(0, int(np.floor(cx - span_x)))
    x1 = min(width - 1, int(np.ceil(cx + span_x)))
    y0 = max(0, int(np.floor(cy - r)))
    y1 = min(height - 1, int(np.ceil(cy + r)))
    for y in range(y0, y1 + 1):
        dy = y - cy
        for x in range(x0, x1 + 1):
            dx = (x - cx) * aspect
            if shape == 1:
                inside = abs(dx) <= r and abs(dy) <= r
            else:
                inside = dx * dx + dy * dy <= r * r
            if inside and value > values[y, x]:
                values[y, x] = value


@njit(cache=True)
def _stamp_soft(
    values: np.ndarray, cx: float, cy: float, radius: float,
    value: float, aspect: float,
):
    """Soft blob with quadratic falloff to zero at *radius*."""
    height, width = values.shape
    r = max(radius, 0.75)
    span_x = r / aspect
    x0 = max(0, int(np.floor(cx - span_x)))
    x1 = min(width - 1, int(np.ceil(cx + span_x)))
    y0 = max(0, int(np.floor(cy - r)))
    y1 = min(height - 1, int(np.ceil(cy + r)))
    for y in range(y0, y1 + 1):
        dy = y - cy
        for x in range(x0, x1 + 1):
            dx = (x - cx) * aspect
            d = np.sqrt(dx * dx + dy * dy) / r
            if d < 1.0:
                v = value * (1.0 - d) * (1.0 - d)
                if v > values[y, x]:
                    values[y, x] = v


@njit(cache=True)
def stamp_particles(
    values: np.ndarray,
    xs: np.ndarray, ys: np.ndarray,
    sizes: np.ndarray, opacities: np.ndarray,
    cloud_dx: np.ndarray, cloud_dy: np.ndarray, cloud_r: np.ndarray,
    cloud_n: np.ndarray,
    n: int, shape: int, aspect: float,
):
    """Draw the first *n* particles; cloud arrays are (capacity, 9) offsets in size units."""
    for i in range(n):
        size = sizes[i]
        opacity = opacities[i]
        if opacity <= 0.0 or size <= 0.0:
            continue
        if shape == 2:
            for k in range(cloud_n[i]):
                _stamp_soft(
                    values,
                    xs[i] + cloud_dx[i, k] * size / aspect,
                    ys[i] + cloud_dy[i, k] * size,
                    cloud_r[i, k] * size,
                    opacity, aspect,
                )
        else:
            _stamp(values, xs[i], ys[i], size, opacity, aspect, shape)
