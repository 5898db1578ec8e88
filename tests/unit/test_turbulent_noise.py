"""Tests for the turbulent noise generator."""

import numpy as np
import pytest

from asciimotion.generators.engine import generate_frames
from asciimotion.generators.settings import TurbulentNoiseSettings
from asciimotion.generators.turbulent_noise import TurbulentNoiseGenerator


class TestTurbulentNoise:
    """Tests for TurbulentNoiseGenerator sampling and rendering."""

    def test_amplitude_bounds_samples(self):
        """With amplitude 0.5 every sample lies in [-0.5, 0.5]."""
        settings = TurbulentNoiseSettings(noise_type="perlin", octaves=1, amplitude=0.5, seed=4)
        gen = TurbulentNoiseGenerator(settings, 40, 20)
        for n in (0, 7, 30):
            grid = gen.sample_grid(gen.z_for(n))
            assert grid.min() >= -0.5 and grid.max() <= 0.5
        for x in np.linspace(0, 3, 10):
            assert -0.5 <= gen.sample(x, x * 0.7, 0.2) <= 0.5

    def test_time_axis(self):
        gen = TurbulentNoiseGenerator(TurbulentNoiseSettings(frame_count=60, evolution_speed=2.0), 10, 10)
        assert gen.z_for(0) == 0.0
        assert gen.z_for(30) == pytest.approx(1.0)

    def test_frozen_in_time(self):
        """evolution_speed 0 gives a static field."""
        settings = TurbulentNoiseSettings(evolution_speed=0.0, frame_count=5)
        result = generate_frames(settings, 30, 12)
        assert result.success
        assert len({frame.data for frame in result.frames}) == 1

    def test_evolves_over_time(self):
        result = generate_frames(TurbulentNoiseSettings(frame_count=10, seed=1), 30, 12)
        assert result.frames[0].data != result.frames[9].data

    def test_zero_amplitude_is_mid_grey(self):
        gen = TurbulentNoiseGenerator(TurbulentNoiseSettings(amplitude=0.0), 8, 4)
        assert np.all(gen.render_frame(0).to_pixels()[..., 0] == 128)

    def test_brightness_and_contrast(self):
        dark = TurbulentNoiseGenerator(TurbulentNoiseSettings(brightness=-1.0, seed=2), 16, 8)
        assert not dark.render_frame(3).values.any()
        flat = TurbulentNoiseGenerator(TurbulentNoiseSettings(contrast=0.0, seed=2), 16, 8)
        np.testing.assert_allclose(flat.render_frame(3).values, 0.5)

    @pytest.mark.parametrize("noise_type", ["perlin", "simplex", "worley"])
    def test_noise_types(self, noise_type):
        result = generate_frames(TurbulentNoiseSettings(noise_type=noise_type, frame_count=3), 20, 10)
        assert result.success
        assert result.frame_count == 3
