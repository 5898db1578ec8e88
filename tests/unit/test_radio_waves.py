"""Tests for the radio waves generator."""

import math

import numpy as np
import pytest

from asciimotion.generators.engine import generate_frames
from asciimotion.generators.radio_waves import (
    MAX_ACTIVE_WAVES,
    STAR_INNER_RATIO,
    RadioWavesGenerator,
    profile_intensity,
    shape_boundary,
)
from asciimotion.generators.settings import RadioWavesSettings


@pytest.fixture
def settings():
    return RadioWavesSettings(
        origin_x=40, origin_y=12, frequency=1.0, propagation_speed=2.0,
        frame_count=90, frame_rate=30, seed=42,
    )


def _level(generator, n, x, y):
    return generator.render_frame(n).to_pixels()[y, x, 0]


class TestShapes:
    """Tests for shape boundaries and band profiles."""

    def test_circle_is_unit(self):
        theta = np.linspace(-math.pi, math.pi, 9)
        assert np.all(shape_boundary("circle", theta) == 1.0)

    def test_square_edge_and_vertex(self):
        assert shape_boundary("square", np.array([0.0]))[0] == pytest.approx(math.cos(math.pi / 4))
        assert shape_boundary("square", np.array([math.pi / 4]))[0] == pytest.approx(1.0)

    def test_star_points_up(self):
        half = math.pi / 5
        assert shape_boundary("star", np.array([-math.pi / 2]))[0] == pytest.approx(1.0)
        assert shape_boundary("star", np.array([-math.pi / 2 + half]))[0] == pytest.approx(STAR_INNER_RATIO)

    def test_profiles(self):
        t = np.array([0.0, 0.5, 1.0])
        assert profile_intensity("solid", t).tolist() == [1.0, 1.0, 1.0]
        assert profile_intensity("fade-out", t).tolist() == [1.0, 0.5, 0.0]
        assert profile_intensity("fade-in", t).tolist() == [0.0, 0.5, 1.0]
        assert profile_intensity("fade-in-out", t).tolist() == [0.0, 1.0, 0.0]


class TestWaveLattice:
    """Tests for which waves are alive at a frame."""

    def test_first_wave_at_origin(self, settings):
        gen = RadioWavesGenerator(settings, 80, 24)
        waves = gen.active_waves(0)
        assert len(waves) == 1
        assert waves[0].radius == 0.0

    def test_radius_grows_with_speed(self, settings):
        gen = RadioWavesGenerator(settings, 80, 24)
        assert gen.active_waves(10)[-1].radius == pytest.approx(20.0)

    def test_max_radius_is_farthest_corner(self, settings):
        gen = RadioWavesGenerator(settings, 80, 24)
        assert gen.max_radius == pytest.approx(math.hypot(40 * 0.6, 12))

    def test_negative_speed_contracts(self, settings):
        gen = RadioWavesGenerator(settings.with_changes(propagation_speed=-2.0), 80, 24)
        assert gen.active_waves(0)[0].radius == pytest.approx(gen.max_radius)
        assert gen.active_waves(5)[0].radius == pytest.approx(gen.max_radius - 10.0)

    def test_zero_speed_single_wave(self, settings):
        gen = RadioWavesGenerator(settings.with_changes(propagation_speed=0.0), 80, 24)
        assert len(gen.active_waves(45)) == 1

    def test_active_wave_cap(self, settings):
        gen = RadioWavesGenerator(settings.with_changes(propagation_speed=0.01, frequency=10.0), 80, 24)
        assert len(gen.active_waves(2000)) <= MAX_ACTIVE_WAVES


class TestRendering:
    """Tests for rasterized waves."""

    def test_origin_lit_on_spawn(self, settings):
        gen = RadioWavesGenerator(settings, 80, 24)
        assert _level(gen, 0, 40, 12) == 255

    def test_ring_moves_outward(self, settings):
        gen = RadioWavesGenerator(settings, 80, 24)
        # radius 10 rows after 5 frames; 17 columns * 0.6 aspect = 10.2
        assert _level(gen, 5, 57, 12) == 255
        assert _level(gen, 5, 40, 12) == 0

    def test_decay_dims_older_waves(self, settings):
        gen = RadioWavesGenerator(settings.with_changes(decay_rate=1.0), 80, 24)
        assert _level(gen, 2, 47, 12) > _level(gen, 12, 79, 12) > 0

    def test_frames_are_pure(self, settings):
        """Frame n does not depend on which frames were rendered before it."""
        gen = RadioWavesGenerator(settings, 80, 24)
        direct = gen.render_frame(45).values.copy()
        for n in range(45):
            gen.render_frame(n)
        assert np.array_equal(gen.render_frame(45).values, direct)

    def test_regeneration_identical(self, settings):
        a = generate_frames(settings, 80, 24)
        b = generate_frames(settings, 80, 24)
        assert a.success and b.success
        assert a.frame_count == 90
        assert a.frames[45].data == b.frames[45].data
        assert a.frames[0].duration_ms == 33

    @pytest.mark.parametrize("shape", ["square", "triangle", "hexagon", "octagon", "star"])
    def test_shapes_render(self, settings, shape):
        gen = RadioWavesGenerator(settings.with_changes(wave_shape=shape, start_rotation=30.0), 80, 24)
        assert gen.render_frame(6).values.max() == 1.0
