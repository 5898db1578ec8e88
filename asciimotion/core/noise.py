"""
Fractal noise library: Perlin, Simplex and Worley in three dimensions.

The third axis is time. Generators pass ``z = elapsed * evolution_speed``
so animated noise needs no per-frame state. Every kernel is Numba JIT
compiled and every public value is clamped to [-1, 1].
"""

from functools import lru_cache

import numpy as np
from numba import njit

from .errors import InvalidParameter
from .rng import SeededRandom

NOISE_KINDS = {"perlin": 0, "simplex": 1, "worley": 2}

_F3 = 1.0 / 3.0
_G3 = 1.0 / 6.0

_GRAD3 = np.array([
    [1, 1, 0], [-1, 1, 0], [1, -1, 0], [-1, -1, 0],
    [1, 0, 1], [-1, 0, 1], [1, 0, -1], [-1, 0, -1],
    [0, 1, 1], [0, -1, 1], [0, 1, -1], [0, -1, -1],
], dtype=np.float64)


# =============================================================================
# Numba JIT-compiled kernels
# =============================================================================

@njit(cache=True)
def _fade(t: float) -> float:
    return t * t * t * (t * (t * 6.0 - 15.0) + 10.0)


@njit(cache=True)
def _lerp(t: float, a: float, b: float) -> float:
    return a + t * (b - a)


@njit(cache=True)
def _grad(h: int, x: float, y: float, z: float) -> float:
    h = h & 15
    u = x if h < 8 else y
    if h < 4:
        v = y
    elif h == 12 or h == 14:
        v = x
    else:
        v = z
    return (u if (h & 1) == 0 else -u) + (v if (h & 2) == 0 else -v)


@njit(cache=True)
def _perlin3(perm: np.ndarray, x: float, y: float, z: float) -> float:
    xf = np.floor(x)
    yf = np.floor(y)
    zf = np.floor(z)
    xi = int(xf) & 255
    yi = int(yf) & 255
    zi = int(zf) & 255
    x -= xf
    y -= yf
    z -= zf
    u = _fade(x)
    v = _fade(y)
    w = _fade(z)

    a = perm[xi] + yi
    aa = perm[a] + zi
    ab = perm[a + 1] + zi
    b = perm[xi + 1] + yi
    ba = perm[b] + zi
    bb = perm[b + 1] + zi

    return _lerp(w,
        _lerp(v,
            _lerp(u, _grad(perm[aa], x, y, z), _grad(perm[ba], x - 1, y, z)),
            _lerp(u, _grad(perm[ab], x, y - 1, z), _grad(perm[bb], x - 1, y - 1, z))),
        _lerp(v,
            _lerp(u, _grad(perm[aa + 1], x, y, z - 1), _grad(perm[ba + 1], x - 1, y, z - 1)),
            _lerp(u, _grad(perm[ab + 1], x, y - 1, z - 1), _grad(perm[bb + 1], x - 1, y - 1, z - 1))))


@njit(cache=True)
def _corner(perm: np.ndarray, gi: int, x: float, y: float, z: float) -> float:
    t = 0.6 - x * x - y * y - z * z
    if t <= 0.0:
        return 0.0
    g = perm[gi] % 12
    t *= t
    return t * t * (_GRAD3[g, 0] * x + _GRAD3[g, 1] * y + _GRAD3[g, 2] * z)


@njit(cache=True)
def _simplex3(perm: np.ndarray, xin: float, yin: float, zin: float) -> float:
    s = (xin + yin + zin) * _F3
    i = np.floor(xin + s)
    j = np.floor(yin + s)
    k = np.floor(zin + s)
    t = (i + j + k) * _G3
    x0 = xin - (i - t)
    y0 = yin - (j - t)
    z0 = zin - (k - t)

    if x0 >= y0:
        if y0 >= z0:
            i1, j1, k1, i2, j2, k2 = 1, 0, 0, 1, 1, 0
        elif x0 >= z0:
            i1, j1, k1, i2, j2, k2 = 1, 0, 0, 1, 0, 1
        else:
            i1, j1, k1, i2, j2, k2 = 0, 0, 1, 1, 0, 1
    else:
        if y0 < z0:
            i1, j1, k1, i2, j2, k2 = 0, 0, 1, 0, 1, 1
        elif x0 < z0:
            i1, j1, k1, i2, j2, k2 = 0, 1, 0, 0, 1, 1
        else:
            i1, j1, k1, i2, j2, k2 = 0, 1, 0, 1, 1, 0

    x1 = x0 - i1 + _G3
    y1 = y0 - j1 + _G3
    z1 = z0 - k1 + _G3
    x2 = x0 - i2 + 2.0 * _G3
    y2 = y0 - j2 + 2.0 * _G3
    z2 = z0 - k2 + 2.0 * _G3
    x3 = x0 - 1.0 + 3.0 * _G3
    y3 = y0 - 1.0 + 3.0 * _G3
    z3 = z0 - 1.0 + 3.0 * _G3

    ii = int(i) & 255
    jj = int(j) & 255
    kk = int(k) & 255

    n = _corner(perm, ii + perm[jj + perm[kk]], x0, y0, z0)
    n += _corner(perm, ii + i1 + perm[jj + j1 + perm[kk + k1]], x1, y1, z1)
    n += _corner(perm, ii + i2 + perm[jj + j2 + perm[kk + k2]], x2, y2, z2)
    n += _corner(perm, ii + 1 + perm[jj + 1 + perm[kk + 1]], x3, y3, z3)
    return 32.0 * n


@njit(cache=True)
def _worley3(perm: np.ndarray, x: float, y: float, z: float) -> float:
    """Distance to the nearest feature point, mapped so near=1 and far=-1."""
    xi = int(np.floor(x))
    yi = int(np.floor(y))
    zi = int(np.floor(z))
    best = 1e9
    for dx in range(-1, 2):
        for dy in range(-1, 2):
            for dz in range(-1, 2):
                cx = xi + dx
                cy = yi + dy
                cz = zi + dz
                h = perm[perm[perm[cx & 255] + (cy & 255)] + (cz & 255)]
                fx = cx + perm[h] / 256.0
                fy = cy + perm[h + 1] / 256.0
                fz = cz + perm[h + 2] / 256.0
                d = (fx - x) ** 2 + (fy - y) ** 2 + (fz - z) ** 2
                if d < best:
                    best = d
    dist = np.sqrt(best)
    if dist > 1.0:
        dist = 1.0
    return 1.0 - 2.0 * dist


@njit(cache=True)
def _sample(perm: np.ndarray, kind: int, x: float, y: float, z: float) -> float:
    if kind == 0:
        v = _perlin3(perm, x, y, z)
    elif kind == 1:
        v = _simplex3(perm, x, y, z)
    else:
        v = _worley3(perm, x, y, z)
    if v > 1.0:
        return 1.0
    if v < -1.0:
        return -1.0
    return v


@njit(cache=True)
def _fractal(
    perm: np.ndarray, kind: int,
    x: float, y: float, z: float,
    octaves: int, persistence: float, lacunarity: float,
) -> float:
    total = 0.0
    weight = 0.0
    freq = 1.0
    amp = 1.0
    for _ in range(octaves):
        total += _sample(perm, kind, x * freq, y * freq, z) * amp
        weight += amp
        freq *= lacunarity
        amp *= persistence
    if weight <= 0.0:
        return 0.0
    v = total / weight
    if v > 1.0:
        return 1.0
    if v < -1.0:
        return -1.0
    return v


@njit(cache=True)
def _fractal_grid(
    perm: np.ndarray, kind: int,
    xs: np.ndarray, ys: np.ndarray, z: float,
    octaves: int, persistence: float, lacunarity: float,
    out: np.ndarray,
):
    for r in range(ys.shape[0]):
        for c in range(xs.shape[0]):
            out[r, c] = _fractal(perm, kind, xs[c], ys[r], z, octaves, persistence, lacunarity)


@njit(cache=True)
def _fractal_points(
    perm: np.ndarray, kind: int,
    xs: np.ndarray, ys: np.ndarray, zs: np.ndarray,
    octaves: int, persistence: float, lacunarity: float,
    out: np.ndarray,
):
    for i in range(xs.shape[0]):
        out[i] = _fractal(perm, kind, xs[i], ys[i], zs[i], octaves, persistence, lacunarity)


# =============================================================================
# Public API
# =============================================================================

def noise_kind(noise_type: str) -> int:
    try:
        return NOISE_KINDS[noise_type]
    except KeyError:
        raise InvalidParameter(
            f"Unknown noise type '{noise_type}'. Available: {', '.join(NOISE_KINDS)}"
        ) from None


class NoiseField:
    """Seeded noise source. The permutation table is the only state."""

    def __init__(self, seed: int = 0, noise_type: str = "perlin"):
        self.seed = seed
        self.noise_type = noise_type
        self._kind = noise_kind(noise_type)
        base = SeededRandom(seed).permutation(256)
        self.perm = np.concatenate([base, base]).astype(np.int64)

    def sample(self, x: float, y: float, z: float = 0.0) -> float:
        return float(_sample(self.perm, self._kind, float(x), float(y), float(z)))

    def fractal(
        self, x: float, y: float, z: float = 0.0,
        octaves: int = 1, persistence: float = 0.5, lacunarity: float = 2.0,
    ) -> float:
        return float(_fractal(
            self.perm, self._kind, float(x), float(y), float(z),
            max(1, int(octaves)), float(persistence), float(lacunarity),
        ))

    def fractal_grid(
        self, xs: np.ndarray, ys: np.ndarray, z: float = 0.0,
        octaves: int = 1, persistence: float = 0.5, lacunarity: float = 2.0,
    ) -> np.ndarray:
        """Evaluate on the outer product of *ys* (rows) and *xs* (columns)."""
        xs = np.ascontiguousarray(xs, dtype=np.float64)
        ys = np.ascontiguousarray(ys, dtype=np.float64)
        out = np.empty((ys.shape[0], xs.shape[0]), dtype=np.float64)
        _fractal_grid(
            self.perm, self._kind, xs, ys, float(z),
            max(1, int(octaves)), float(persistence), float(lacunarity), out,
        )
        return out

    def sample_points(
        self, xs: np.ndarray, ys: np.ndarray, zs,
        octaves: int = 1, persistence: float = 0.5, lacunarity: float = 2.0,
    ) -> np.ndarray:
        """Evaluate at paired coordinates; *zs* may be a scalar."""
        xs = np.ascontiguousarray(xs, dtype=np.float64)
        ys = np.ascontiguousarray(ys, dtype=np.float64)
        zs = np.ascontiguousarray(np.broadcast_to(np.asarray(zs, dtype=np.float64), xs.shape))
        out = np.empty(xs.shape[0], dtype=np.float64)
        _fractal_points(
            self.perm, self._kind, xs, ys, zs,
            max(1, int(octaves)), float(persistence), float(lacunarity), out,
        )
        return out


@lru_cache(maxsize=32)
def get_noise_field(seed: int = 0, noise_type: str = "perlin") -> NoiseField:
    return NoiseField(seed, noise_type)


def sample(noise_type: str, x: float, y: float, z: float = 0.0, seed: int = 0) -> float:
    """Single noise value in [-1, 1]."""
    return get_noise_field(seed, noise_type).sample(x, y, z)


def fractal(
    noise_type: str, x: float, y: float, z: float = 0.0,
    octaves: int = 1, persistence: float = 0.5, lacunarity: float = 2.0, seed: int = 0,
) -> float:
    """Octave sum normalized by total weight, in [-1, 1]."""
    return get_noise_field(seed, noise_type).fractal(x, y, z, octaves, persistence, lacunarity)
