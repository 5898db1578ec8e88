"""
ASCII conversion pipeline - pixel frames to character grids.

Stages, each independently switchable:
1. resample to the target grid (area averaging, or nearest sampling)
2. brightness / contrast adjustment
3. per-cell brightness (Rec.709 luma, gamma luminance, or edge weighted)
4. optional character dithering (noise, Bayer, Floyd-Steinberg)
5. character selection (ramp bucket, or custom threshold map)
6. foreground / background palette mapping

``convert`` is pure: the same frame and settings always give the same grid.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Mapping, Optional, Sequence, Union

import numpy as np
from numba import njit

from ..core.colors import Palette, get_palette, nearest_palette_indices, two_nearest
from ..core.config import EngineConfig, get_config
from ..core.errors import CanvasSizeMismatch, InvalidParameter
from .canvas import ConvertedFrame
from .raster import GeneratorFrame

MAPPING_MODES = ("brightness", "luminance", "edge")
DITHER_MODES = ("none", "noise", "bayer2x2", "bayer4x4", "floyd-steinberg")
COLOR_MODES = ("closest", "by-index", "noise-dither", "bayer2x2", "bayer4x4")

EDGE_THRESHOLD = 0.3

BAYER_2X2 = np.array([[0, 2], [3, 1]], dtype=np.float64)
BAYER_4X4 = np.array([
    [0, 8, 2, 10],
    [12, 4, 14, 6],
    [3, 11, 1, 9],
    [15, 7, 13, 5],
], dtype=np.float64)


# =============================================================================
# Settings
# =============================================================================

@dataclass(frozen=True)
class ColorMapping:
    """Palette mapping for one color target (foreground or background)."""
    enabled: bool = False
    palette: Union[Palette, str, None] = None
    mode: str = "closest"
    dither_strength: float = 0.5

    def resolve_palette(self) -> Optional[Palette]:
        if isinstance(self.palette, str):
            return get_palette(self.palette)
        return self.palette


@dataclass(frozen=True)
class ConversionSettings:
    """How a pixel frame becomes a character grid."""
    width: int = 80
    height: int = 24
    downsample: bool = True
    character_mapping: bool = True
    character_set: Optional[Sequence[str]] = None     # None uses the configured default ramp
    mapping_mode: str = "brightness"
    invert_density: bool = False
    custom_mapping: Optional[Mapping[Union[int, str], str]] = None
    dither_mode: str = "none"
    dither_strength: float = 0.5
    brightness_adjustment: float = 0.0      # -100..100
    contrast_enhancement: float = 1.0       # 0..2, sigmoid curve when != 1
    foreground: ColorMapping = field(default_factory=ColorMapping)
    background: ColorMapping = field(default_factory=ColorMapping)

    def resolved(self, config: Optional[EngineConfig] = None) -> "ConversionSettings":
        """Copy with the character ramp filled in from config when unset."""
        if self.character_set is not None:
            return self
        ramp = (config or get_config()).render.default_character_set
        return replace(self, character_set=tuple(ramp))

    def validate(self, config: Optional[EngineConfig] = None) -> None:
        limits = (config or get_config()).limits
        if not (1 <= self.width <= limits.max_width and 1 <= self.height <= limits.max_height):
            raise CanvasSizeMismatch(
                f"Grid {self.width}x{self.height} outside 1x1..{limits.max_width}x{limits.max_height}"
            )
        charset = self.resolved(config).character_set
        if len(charset) == 0:
            raise InvalidParameter("character_set must not be empty")
        for glyph in charset:
            if not isinstance(glyph, str) or len(glyph) != 1:
                raise InvalidParameter(f"character_set entry {glyph!r} is not a single character")
        if self.mapping_mode not in MAPPING_MODES:
            raise InvalidParameter(f"Unknown mapping mode '{self.mapping_mode}'")
        if self.dither_mode not in DITHER_MODES:
            raise InvalidParameter(f"Unknown dither mode '{self.dither_mode}'")
        for target in (self.foreground, self.background):
            if target.mode not in COLOR_MODES:
                raise InvalidParameter(f"Unknown color mapping mode '{target.mode}'")
        if self.custom_mapping:
            for key in self.custom_mapping:
                try:
                    level = int(key)
                except (TypeError, ValueError):
                    raise InvalidParameter(f"Custom mapping key {key!r} is not a brightness level") from None
                if not 0 <= level <= 255:
                    raise InvalidParameter(f"Custom mapping key {level} outside 0..255")
                glyph = self.custom_mapping[key]
                if not isinstance(glyph, str) or len(glyph) != 1:
                    raise InvalidParameter(f"Custom mapping value {glyph!r} is not a single character")


# =============================================================================
# Resampling
# =============================================================================

def _area_weights(src: int, dst: int) -> np.ndarray:
    """(dst, src) matrix of overlap fractions; each row sums to 1."""
    edges = np.arange(dst + 1, dtype=np.float64) * src / dst
    lo = edges[:-1, None]
    hi = edges[1:, None]
    j = np.arange(src, dtype=np.float64)[None, :]
    overlap = np.clip(np.minimum(hi, j + 1.0) - np.maximum(lo, j), 0.0, None)
    return overlap / overlap.sum(axis=1, keepdims=True)


def resample(pixels: np.ndarray, width: int, height: int, area: bool = True) -> np.ndarray:
    """Resize (H, W, C) pixels to (height, width, C) floats."""
    src_h, src_w = pixels.shape[:2]
    img = pixels.astype(np.float64)
    if not area:
        ys = np.minimum(((np.arange(height) + 0.5) * src_h / height).astype(np.int64), src_h - 1)
        xs = np.minimum(((np.arange(width) + 0.5) * src_w / width).astype(np.int64), src_w - 1)
        return img[ys][:, xs]
    wy = _area_weights(src_h, height)
    wx = _area_weights(src_w, width)
    rows = np.einsum("ys,sxc->yxc", wy, img)
    return np.einsum("yxc,wx->ywc", rows, wx)


# =============================================================================
# Brightness
# =============================================================================

def adjust(rgb: np.ndarray, brightness: float, contrast: float) -> np.ndarray:
    """Additive brightness (percent of full scale) then a sigmoid contrast curve."""
    out = rgb
    if brightness != 0:
        out = np.clip(out + brightness * 2.55, 0.0, 255.0)
    if contrast != 1:
        normalized = out / 255.0
        out = np.clip(np.rint(255.0 / (1.0 + np.exp(-contrast * (normalized - 0.5) * 6.0))), 0.0, 255.0)
    return out


def luma(rgb: np.ndarray) -> np.ndarray:
    return 0.2126 * rgb[..., 0] + 0.7152 * rgb[..., 1] + 0.0722 * rgb[..., 2]


def gamma_luminance(rgb: np.ndarray) -> np.ndarray:
    c = np.power(rgb / 255.0, 2.2)
    return np.power(0.299 * c[..., 0] + 0.587 * c[..., 1] + 0.114 * c[..., 2], 1.0 / 2.2) * 255.0


def gradient_magnitude(level: np.ndarray) -> np.ndarray:
    """Sobel magnitude with edge-replicated borders, clipped to 0..255."""
    p = np.pad(level, 1, mode="edge")
    gx = (p[:-2, 2:] + 2 * p[1:-1, 2:] + p[2:, 2:]) - (p[:-2, :-2] + 2 * p[1:-1, :-2] + p[2:, :-2])
    gy = (p[2:, :-2] + 2 * p[2:, 1:-1] + p[2:, 2:]) - (p[:-2, :-2] + 2 * p[:-2, 1:-1] + p[:-2, 2:])
    return np.clip(np.hypot(gx, gy) / 4.0, 0.0, 255.0)


# =============================================================================
# Dithering
# =============================================================================

def position_noise(width: int, height: int, salt: int = 0) -> np.ndarray:
    """Deterministic per-cell noise in [0, 1) from an integer hash of (x, y)."""
    y, x = np.mgrid[0:height, 0:width].astype(np.uint32)
    v = x * np.uint32(374761393) + y * np.uint32(668265263) + np.uint32(salt)
    v = (v ^ (v >> np.uint32(13))) * np.uint32(1274126177)
    v = v ^ (v >> np.uint32(16))
    return (v & np.uint32(0xFFFF)).astype(np.float64) / 65536.0


def bayer_threshold(width: int, height: int, matrix: np.ndarray) -> np.ndarray:
    """Tiled ordered-dither thresholds in (0, 1)."""
    k = matrix.shape[0]
    tile = (matrix + 0.5) / (k * k)
    return np.tile(tile, (height // k + 1, width // k + 1))[:height, :width]


def dither_thresholds(mode: str, width: int, height: int, salt: int = 0) -> np.ndarray:
    if mode in ("noise", "noise-dither"):
        return position_noise(width, height, salt)
    if mode == "bayer2x2":
        return bayer_threshold(width, height, BAYER_2X2)
    return bayer_threshold(width, height, BAYER_4X4)


@njit(cache=True)
def _error_diffuse(level: np.ndarray, buckets: int, strength: float) -> np.ndarray:
    """Floyd-Steinberg quantization of 0..255 levels into bucket indices."""
    height, width = level.shape
    work = level.copy()
    out = np.empty((height, width), dtype=np.int64)
    step = 256.0 / buckets
    for y in range(height):
        for x in range(width):
            v = work[y, x]
            i = int(np.floor(v / step))
            if i < 0:
                i = 0
            elif i > buckets - 1:
                i = buckets - 1
            out[y, x] = i
            err = (v - (i + 0.5) * step) * strength
            if x + 1 < width:
                work[y, x + 1] += err * 7.0 / 16.0
            if y + 1 < height:
                if x > 0:
                    work[y + 1, x - 1] += err * 3.0 / 16.0
                work[y + 1, x] += err * 5.0 / 16.0
                if x + 1 < width:
                    work[y + 1, x + 1] += err * 1.0 / 16.0
    return out


def bucket_indices(level: np.ndarray, buckets: int, dither_mode: str = "none",
                   strength: float = 0.0) -> np.ndarray:
    """Quantize 0..255 levels to ``min(n-1, floor(level/256*n))``, optionally dithered."""
    height, width = level.shape
    if dither_mode == "floyd-steinberg" and strength > 0:
        return _error_diffuse(np.ascontiguousarray(level, dtype=np.float64), buckets, float(strength))
    if dither_mode != "none" and strength > 0:
        thresholds = dither_thresholds(dither_mode, width, height)
        level = level + (thresholds - 0.5) * strength * (256.0 / buckets)
    idx = np.floor(np.clip(level, 0.0, 255.999) / 256.0 * buckets).astype(np.int64)
    return np.clip(idx, 0, buckets - 1)


# =============================================================================
# Character and Color Selection
# =============================================================================

def select_characters(level: np.ndarray, settings: ConversionSettings,
                      edges: Optional[np.ndarray] = None) -> np.ndarray:
    height, width = level.shape
    if not settings.character_mapping:
        return np.full((height, width), settings.character_set[0], dtype="<U1")

    if settings.custom_mapping:
        keys = np.array(sorted(int(k) for k in settings.custom_mapping), dtype=np.float64)
        lookup = {int(k): v for k, v in settings.custom_mapping.items()}
        glyphs = np.array([lookup[int(k)] for k in keys], dtype="<U1")
        pos = np.searchsorted(keys, np.floor(level), side="right") - 1
        return glyphs[np.clip(pos, 0, len(keys) - 1)]

    ramp = list(settings.character_set)
    if settings.invert_density:
        ramp.reverse()
    glyphs = np.array(ramp, dtype="<U1")
    n = len(glyphs)
    idx = bucket_indices(level, n, settings.dither_mode, settings.dither_strength)
    if edges is not None:
        strength = edges / 255.0
        # Luma weights sum to just under 1, so full strength lands a hair below n - 1
        edge_idx = np.maximum(n * 0.5, np.floor(strength * (n - 1) + 1e-9)).astype(np.int64)
        idx = np.where(strength > EDGE_THRESHOLD, np.clip(edge_idx, 0, n - 1), idx)
    return glyphs[idx]


def map_colors(source: np.ndarray, adjusted: np.ndarray, level: np.ndarray,
               mapping: ColorMapping, salt: int) -> np.ndarray:
    """Quantize colors for one target; disabled or empty palettes pass *source* through."""
    palette = mapping.resolve_palette() if mapping.enabled else None
    if palette is None or len(palette) == 0:
        return source
    table = palette.as_array()
    height, width = level.shape
    flat = adjusted.reshape(-1, 3)

    if mapping.mode == "by-index":
        idx = bucket_indices(level, len(table)).ravel()
    elif mapping.mode == "closest":
        idx = nearest_palette_indices(flat, table)
    else:
        first, second, d1, d2 = two_nearest(flat, table)
        total = d1 + d2
        ratio = np.divide(d1, total, out=np.zeros_like(d1), where=total > 0)
        thresholds = dither_thresholds(mapping.mode, width, height, salt).ravel()
        idx = np.where(thresholds < ratio * mapping.dither_strength, second, first)
    return table[idx].reshape(height, width, 3)


def convert(frame: GeneratorFrame, settings: ConversionSettings,
            config: Optional[EngineConfig] = None) -> ConvertedFrame:
    """Map one pixel frame onto a ``settings.width x settings.height`` grid."""
    config = config or get_config()
    settings = settings.resolved(config)
    settings.validate(config)
    width, height = settings.width, settings.height

    cells = resample(frame.pixels(), width, height, area=settings.downsample)
    source = np.clip(np.rint(cells[..., :3]), 0, 255).astype(np.uint8)
    adjusted = adjust(source.astype(np.float64), settings.brightness_adjustment,
                      settings.contrast_enhancement)

    if settings.mapping_mode == "luminance":
        level = gamma_luminance(adjusted)
    else:
        level = luma(adjusted)
    edges = gradient_magnitude(level) if settings.mapping_mode == "edge" else None

    chars = select_characters(level, settings, edges)
    transparent = cells[..., 3] < 128
    if transparent.any():
        chars = np.where(transparent, settings.character_set[0], chars)

    fg = map_colors(source, adjusted, level, settings.foreground, salt=1)
    bg = map_colors(source, adjusted, level, settings.background, salt=2)
    return ConvertedFrame(chars.astype("<U1"), fg.astype(np.uint8), bg.astype(np.uint8),
                          frame.duration_ms)


def convert_all(frames: Sequence[GeneratorFrame], settings: ConversionSettings,
                config: Optional[EngineConfig] = None) -> list[ConvertedFrame]:
    return [convert(frame, settings, config) for frame in frames]
