"""Color values, palettes and perceptual palette matching.

Palettes are ordered lists of candidate colors the converter quantizes
into. A handful of retro palettes ship built in:
- grayscale: 8 evenly spaced grays
- c64: Commodore 64 palette
- crt-amber: Classic amber phosphor CRT
- crt-green: Classic green phosphor CRT
- synthwave: 80s neon
- matrix: 90s hacker green-on-black
- ansi16: the 16 standard terminal colors

Hosts can add their own with ``register_palette``.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .errors import InvalidParameter


@dataclass(frozen=True)
class Color:
    """8-bit RGB color."""
    r: int
    g: int
    b: int

    @property
    def rgb(self) -> Tuple[int, int, int]:
        return (self.r, self.g, self.b)

    @property
    def hex(self) -> str:
        """Get hex color string."""
        return f"#{self.r:02x}{self.g:02x}{self.b:02x}"

    @classmethod
    def from_hex(cls, value: str) -> "Color":
        text = value.lstrip("#")
        if len(text) == 3:
            text = "".join(ch * 2 for ch in text)
        if len(text) != 6:
            raise InvalidParameter(f"Invalid hex color '{value}'")
        try:
            return cls(int(text[0:2], 16), int(text[2:4], 16), int(text[4:6], 16))
        except ValueError:
            raise InvalidParameter(f"Invalid hex color '{value}'") from None

    def ansi_fg(self) -> str:
        """Get ANSI truecolor foreground escape code."""
        return f"\033[38;2;{self.r};{self.g};{self.b}m"

    def ansi_bg(self) -> str:
        """Get ANSI truecolor background escape code."""
        return f"\033[48;2;{self.r};{self.g};{self.b}m"


@dataclass(frozen=True)
class Palette:
    """Ordered candidate colors, referenced by id."""
    id: str
    colors: Tuple[Color, ...]
    name: Optional[str] = None

    @classmethod
    def from_hex(cls, id: str, values: Sequence[str], name: Optional[str] = None) -> "Palette":
        return cls(id=id, colors=tuple(Color.from_hex(v) for v in values), name=name)

    def __len__(self) -> int:
        return len(self.colors)

    def as_array(self) -> np.ndarray:
        """(K, 3) uint8 array of the palette colors."""
        if not self.colors:
            return np.zeros((0, 3), dtype=np.uint8)
        return np.array([c.rgb for c in self.colors], dtype=np.uint8)


# =============================================================================
# Built-in Palettes
# =============================================================================

PALETTES: Dict[str, Palette] = {
    "grayscale": Palette.from_hex("grayscale", [
        "#000000", "#242424", "#494949", "#6d6d6d",
        "#929292", "#b6b6b6", "#dbdbdb", "#ffffff",
    ], "Grayscale"),
    "c64": Palette.from_hex("c64", [
        "#000000", "#ffffff", "#880000", "#aaffee",
        "#cc44cc", "#00cc55", "#0000aa", "#eeee77",
        "#dd8855", "#664400", "#ff7777", "#333333",
        "#777777", "#aaff66", "#0088ff", "#bbbbbb",
    ], "Commodore 64"),
    "crt-amber": Palette.from_hex("crt-amber", [
        "#1a0f00", "#664000", "#996600", "#cc9900", "#ffb300", "#ffcc33",
    ], "CRT Amber"),
    "crt-green": Palette.from_hex("crt-green", [
        "#001a00", "#004d00", "#008000", "#00b300", "#00e600", "#33ff66",
    ], "CRT Green"),
    "synthwave": Palette.from_hex("synthwave", [
        "#1a0033", "#4b0082", "#ff00ff", "#ff1493", "#00ffff", "#ffd700",
    ], "Synthwave"),
    "matrix": Palette.from_hex("matrix", [
        "#000000", "#003b00", "#008f11", "#00ff41", "#ccffcc",
    ], "Matrix"),
    "ansi16": Palette.from_hex("ansi16", [
        "#000000", "#800000", "#008000", "#808000",
        "#000080", "#800080", "#008080", "#c0c0c0",
        "#808080", "#ff0000", "#00ff00", "#ffff00",
        "#0000ff", "#ff00ff", "#00ffff", "#ffffff",
    ], "ANSI 16"),
}

DEFAULT_PALETTE = "grayscale"


def get_available_palettes() -> List[str]:
    """Get list of registered palette ids."""
    return list(PALETTES.keys())


def get_palette(palette_id: str) -> Palette:
    try:
        return PALETTES[palette_id]
    except KeyError:
        raise InvalidParameter(
            f"Unknown palette '{palette_id}'. Available: {', '.join(PALETTES)}"
        ) from None


def register_palette(palette: Palette) -> None:
    """Add or replace a palette in the registry."""
    PALETTES[palette.id] = palette


# =============================================================================
# Perceptual Distance (CIE L*a*b*, CIE76)
# =============================================================================

_RGB_TO_XYZ = np.array([
    [0.4124564, 0.3575761, 0.1804375],
    [0.2126729, 0.7151522, 0.0721750],
    [0.0193339, 0.1191920, 0.9503041],
])
_WHITE_D65 = np.array([0.95047, 1.0, 1.08883])


def rgb_to_lab(rgb: np.ndarray) -> np.ndarray:
    """Convert (..., 3) 0-255 RGB to CIE L*a*b*."""
    c = np.asarray(rgb, dtype=np.float64) / 255.0
    linear = np.where(c > 0.04045, ((c + 0.055) / 1.055) ** 2.4, c / 12.92)
    xyz = (linear @ _RGB_TO_XYZ.T) / _WHITE_D65
    f = np.where(xyz > 0.008856, np.cbrt(xyz), 7.787 * xyz + 16.0 / 116.0)
    lab = np.empty_like(f)
    lab[..., 0] = 116.0 * f[..., 1] - 16.0
    lab[..., 1] = 500.0 * (f[..., 0] - f[..., 1])
    lab[..., 2] = 200.0 * (f[..., 1] - f[..., 2])
    return lab


def palette_distances(rgb: np.ndarray, palette: np.ndarray) -> np.ndarray:
    """Delta-E between (N, 3) colors and (K, 3) palette entries, shape (N, K)."""
    lab = rgb_to_lab(np.asarray(rgb).reshape(-1, 3))
    plab = rgb_to_lab(np.asarray(palette).reshape(-1, 3))
    diff = lab[:, None, :] - plab[None, :, :]
    return np.sqrt(np.sum(diff * diff, axis=-1))


def nearest_palette_indices(rgb: np.ndarray, palette: np.ndarray) -> np.ndarray:
    """Index of the perceptually closest palette entry for each color."""
    return np.argmin(palette_distances(rgb, palette), axis=1)


def two_nearest(rgb: np.ndarray, palette: np.ndarray):
    """Closest and runner-up indices with their distances, for dithering."""
    dist = palette_distances(rgb, palette)
    rows = np.arange(dist.shape[0])
    if dist.shape[1] == 1:
        zeros = np.zeros(dist.shape[0], dtype=np.int64)
        return zeros, zeros, dist[:, 0], dist[:, 0]
    order = np.argsort(dist, axis=1, kind="stable")[:, :2]
    first, second = order[:, 0], order[:, 1]
    return first, second, dist[rows, first], dist[rows, second]
