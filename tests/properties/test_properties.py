"""Property-based tests using Hypothesis."""

import numpy as np
from hypothesis import HealthCheck, given, settings, strategies as st

from asciimotion.core.noise import NoiseField
from asciimotion.core.rng import SeededRandom
from asciimotion.generators.engine import generate_frames
from asciimotion.generators.particles import ParticlePhysicsGenerator
from asciimotion.generators.settings import (
    ParticlePhysicsSettings,
    RadioWavesSettings,
    RainDropsSettings,
    TurbulentNoiseSettings,
)
from asciimotion.render.converter import ConversionSettings, convert, resample
from asciimotion.render.output import FrameOutput
from asciimotion.render.raster import GeneratorFrame

# Numba compilation makes the first example slow; the autouse config fixture is idempotent
slow = settings(max_examples=15, deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
fast = settings(deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])

coords = st.floats(min_value=-500, max_value=500, allow_nan=False, allow_infinity=False)


def _random_frame(seed, width, height):
    pixels = np.random.default_rng(seed).integers(0, 256, (height, width, 4), dtype=np.uint8)
    pixels[..., 3] = 255
    return GeneratorFrame.from_pixels(pixels, 33)


class TestNoiseProperties:
    """Property tests for noise sampling."""

    @fast
    @given(
        noise_type=st.sampled_from(["perlin", "simplex", "worley"]),
        x=coords, y=coords,
        z=st.floats(min_value=0, max_value=100, allow_nan=False),
        octaves=st.integers(min_value=1, max_value=6),
    )
    def test_fractal_in_range(self, noise_type, x, y, z, octaves):
        """Fractal noise is always within [-1, 1]."""
        v = NoiseField(1, noise_type).fractal(x, y, z, octaves=octaves)
        assert -1.0 <= v <= 1.0


class TestRandomProperties:
    """Property tests for the seeded stream."""

    @fast
    @given(
        seed=st.integers(min_value=0, max_value=2**32),
        base=st.floats(min_value=0, max_value=1000, allow_nan=False),
        amount=st.floats(min_value=0, max_value=1, allow_nan=False),
    )
    def test_vary_bounds(self, seed, base, amount):
        v = SeededRandom(seed).vary(base, amount)
        assert base * (1 - amount) - 1e-9 <= v <= base * (1 + amount) + 1e-9


class TestConversionProperties:
    """Property tests for the converter."""

    @slow
    @given(
        seed=st.integers(min_value=0, max_value=1000),
        src=st.tuples(st.integers(1, 24), st.integers(1, 16)),
        dst=st.tuples(st.integers(1, 30), st.integers(1, 12)),
        charset=st.text(alphabet=" .:-=+*#%@abc", min_size=1, max_size=10),
        dither=st.sampled_from(["none", "noise", "bayer2x2", "bayer4x4", "floyd-steinberg"]),
        invert=st.booleans(),
    )
    def test_grid_shape_and_charset(self, seed, src, dst, charset, dither, invert):
        """Every output cell is a character from the set, on the requested grid."""
        frame = _random_frame(seed, *src)
        conversion = ConversionSettings(width=dst[0], height=dst[1], character_set=tuple(charset),
                                        dither_mode=dither, invert_density=invert)
        out = convert(frame, conversion)
        assert out.chars.shape == (dst[1], dst[0])
        assert set(out.character_usage()) <= set(charset)

    @fast
    @given(
        seed=st.integers(min_value=0, max_value=1000),
        src=st.tuples(st.integers(1, 20), st.integers(1, 20)),
        dst=st.tuples(st.integers(1, 20), st.integers(1, 20)),
    )
    def test_resample_stays_in_source_range(self, seed, src, dst):
        pixels = np.random.default_rng(seed).integers(0, 256, (src[1], src[0], 3))
        out = resample(pixels, dst[0], dst[1])
        assert out.shape == (dst[1], dst[0], 3)
        assert out.min() >= pixels.min() - 1e-9
        assert out.max() <= pixels.max() + 1e-9


class TestGeneratorProperties:
    """Property tests for generator determinism and bounds."""

    @slow
    @given(
        seed=st.integers(min_value=0, max_value=10**6),
        factory=st.sampled_from([RadioWavesSettings, TurbulentNoiseSettings, RainDropsSettings]),
    )
    def test_same_seed_same_frames(self, seed, factory):
        s = factory(seed=seed, frame_count=3)
        a = generate_frames(s, 16, 8)
        b = generate_frames(s, 16, 8)
        assert a.success
        assert [f.data for f in a.frames] == [f.data for f in b.frames]

    @slow
    @given(
        count=st.integers(min_value=0, max_value=80),
        mode=st.sampled_from(["continuous", "burst"]),
        seed=st.integers(min_value=0, max_value=1000),
    )
    def test_particle_population_bounded(self, count, mode, seed):
        """Live particles never exceed particle_count."""
        s = ParticlePhysicsSettings(particle_count=count, emitter_mode=mode, seed=seed, frame_count=30)
        gen = ParticlePhysicsGenerator(s, 20, 10)
        for state in gen.simulate(0, 30):
            assert 0 <= state.count <= state.spawned <= count


class TestOutputProperties:
    """Property tests for applying frames to a host sequence."""

    @fast
    @given(
        existing=st.lists(st.integers(), max_size=10),
        frames=st.lists(st.integers(), max_size=10),
        start=st.integers(min_value=0, max_value=15),
    )
    def test_overwrite_length(self, existing, frames, start):
        out = FrameOutput(tuple(frames), "overwrite", start).apply_to(existing)
        assert len(out) == max(len(existing), min(start, len(existing)) + len(frames))
        assert out[:min(start, len(existing))] == existing[:start]

    @fast
    @given(existing=st.lists(st.integers(), max_size=10), frames=st.lists(st.integers(), max_size=10))
    def test_append_preserves_existing(self, existing, frames):
        out = FrameOutput(tuple(frames), "append").apply_to(existing)
        assert out == existing + frames
