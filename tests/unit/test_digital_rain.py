"""Tests for the digital rain generator."""

import numpy as np
import pytest

from asciimotion.core.errors import InvalidParameter
from asciimotion.generators.digital_rain import DigitalRainGenerator, _draw_trails
from asciimotion.generators.engine import generate_frames
from asciimotion.generators.settings import DigitalRainSettings


def _draw(length=5, width=1.0, fade=1.0, noise_strength=0.0):
    values = np.zeros((20, 10))
    _draw_trails(
        values,
        np.array([5.0]), np.array([10.0]),
        np.array([length], dtype=np.int64), np.array([width]),
        1, 0.0, 1.0, fade,
        np.zeros((20, 10)), noise_strength,
    )
    return values


class TestTrailKernel:
    """Tests for trail rasterization."""

    def test_head_to_tail_fade(self):
        values = _draw()
        assert values[10, 5] == pytest.approx(1.0)
        assert values[9, 5] == pytest.approx(0.75)
        assert values[8, 5] == pytest.approx(0.5)
        assert values[6, 5] == 0.0
        assert values[11, 5] == 0.0

    def test_no_fade_is_solid(self):
        values = _draw(fade=0.0)
        assert values[6:11, 5].tolist() == [1.0] * 5

    def test_wide_trail_has_soft_edges(self):
        values = _draw(width=3.0, fade=0.0)
        assert values[10, 5] == 1.0
        assert 0.0 < values[10, 4] < 1.0
        assert values[10, 2] == 0.0


class TestDigitalRain:
    """Tests for DigitalRainGenerator."""

    def test_direction_vector(self):
        gen = DigitalRainGenerator(DigitalRainSettings(direction_angle=180.0), 20, 10)
        assert gen.dir_x == pytest.approx(0.0, abs=1e-12)
        assert gen.dir_y == pytest.approx(1.0)
        east = DigitalRainGenerator(DigitalRainSettings(direction_angle=90.0), 20, 10)
        assert east.dir_x == pytest.approx(1.0)

    def test_no_trails_is_black(self):
        settings = DigitalRainSettings(frequency=0.0, pre_run=False, frame_count=10)
        result = generate_frames(settings, 30, 15)
        assert result.success
        assert all(not frame.pixels()[..., 0].any() for frame in result.frames)

    def test_pre_run_fills_first_frame(self):
        settings = DigitalRainSettings(frequency=30.0, pre_run=True, frame_count=10)
        gen = DigitalRainGenerator(settings, 40, 20)
        assert gen.render_frame(0).values.max() > 0.0

    def test_trails_enter_from_top(self):
        settings = DigitalRainSettings(frequency=60.0, pre_run=False, frame_count=60,
                                       speed=1.0, speed_randomness=0.0)
        gen = DigitalRainGenerator(settings, 30, 15)
        values = gen.render_frame(40).values
        assert values.max() > 0.0

    def test_trails_leave_the_grid(self):
        """One trail spawns per frame; fast trails are swept once out of reach."""
        settings = DigitalRainSettings(frequency=30.0, frame_rate=30, pre_run=False,
                                       speed=10.0, frame_count=60)
        gen = DigitalRainGenerator(settings, 20, 10)
        states = list(gen.simulate(0, 60))
        assert states[0].count == 1
        assert states[-1].count < 60

    def test_population_capped(self):
        settings = DigitalRainSettings(frequency=60.0, speed=0.05, frame_count=200, frame_rate=10)
        gen = DigitalRainGenerator(settings, 20, 10)
        assert all(state.count <= gen.capacity for state in gen.simulate(0, 200))

    def test_noise_overlay(self):
        settings = DigitalRainSettings(noise_amount=100.0, animated_noise=True, frame_count=10)
        gen = DigitalRainGenerator(settings, 20, 10)
        assert gen.noise_overlay(0).shape == (10, 20)
        assert not np.array_equal(gen.noise_overlay(0), gen.noise_overlay(5))

    def test_width_pair_validated(self):
        with pytest.raises(InvalidParameter):
            DigitalRainGenerator(DigitalRainSettings(width_min=5.0, width_max=2.0), 20, 10)

    def test_regeneration_identical(self):
        settings = DigitalRainSettings(width_randomness=True, frame_count=15, seed=12)
        a = generate_frames(settings, 30, 15)
        b = generate_frames(settings, 30, 15)
        assert [f.data for f in a.frames] == [f.data for f in b.frames]
