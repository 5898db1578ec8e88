"""Tests for the particle physics generator."""

import numpy as np
import pytest

from asciimotion.core.config import EngineConfig, LimitsConfig
from asciimotion.core.errors import NumericInstability
from asciimotion.core.rng import SeededRandom
from asciimotion.generators.engine import generate_preview, PreviewRequest
from asciimotion.generators.particles import ParticlePhysicsGenerator, _collide
from asciimotion.generators.settings import ParticlePhysicsSettings
from asciimotion.render.converter import ConversionSettings


def _still(**changes):
    """A single motionless particle at the origin."""
    base = dict(
        particle_count=1, emitter_mode="burst", velocity_magnitude=0.0, gravity=0.0,
        drag=0.0, lifespan=100, lifespan_randomness=False, particle_size=6.0,
        origin_x=20.0, origin_y=10.0, frame_count=5,
    )
    base.update(changes)
    return ParticlePhysicsSettings(**base)


class TestEmission:
    """Tests for spawning and population bounds."""

    def test_zero_particles_blank(self):
        """particle_count 0 produces only blank cells."""
        request = PreviewRequest(
            ParticlePhysicsSettings(particle_count=0, frame_count=20),
            ConversionSettings(width=40, height=20),
        )
        result = generate_preview(request)
        assert result.success
        assert result.frame_count == 20
        for frame in result.frames:
            assert not frame.pixels()[..., 0].any()
        for grid in result.converted:
            assert grid.character_usage() == {" ": 800}

    def test_continuous_population_bounded(self):
        settings = ParticlePhysicsSettings(particle_count=40, frame_count=60, lifespan=500,
                                           lifespan_randomness=False, seed=3)
        gen = ParticlePhysicsGenerator(settings, 40, 20)
        spawned = []
        for state in gen.simulate(0, 60):
            assert state.count <= 40
            spawned.append(state.spawned)
        assert spawned == sorted(spawned)
        assert 39 <= spawned[-1] <= 40

    def test_burst_spawns_everything_at_once(self):
        settings = ParticlePhysicsSettings(particle_count=25, emitter_mode="burst", frame_count=10)
        states = list(ParticlePhysicsGenerator(settings, 40, 20).simulate(0, 3))
        assert states[0].spawned == 25
        assert states[0].count == 25
        assert states[2].spawned == 25

    def test_capacity_follows_configured_limit(self):
        config = EngineConfig(limits=LimitsConfig(max_particles=2000))
        settings = ParticlePhysicsSettings(particle_count=1500, emitter_mode="burst", frame_count=2)
        gen = ParticlePhysicsGenerator(settings, 40, 20, config)
        assert gen.settings.particle_count == 1500
        assert gen.capacity == 1500

    def test_particles_expire(self):
        settings = ParticlePhysicsSettings(particle_count=10, emitter_mode="burst", lifespan=5,
                                           lifespan_randomness=False, frame_count=10)
        counts = [state.count for state in ParticlePhysicsGenerator(settings, 40, 20).simulate(0, 10)]
        assert counts[0] == 10
        assert counts[5] == 0

    @pytest.mark.parametrize("shape", ["point", "vertical-line", "horizontal-line", "square", "circle"])
    def test_emitter_shapes_stay_near_origin(self, shape):
        settings = _still(particle_count=30, emitter_shape=shape, emitter_size=6.0)
        gen = ParticlePhysicsGenerator(settings, 40, 20)
        next(iter(gen.simulate(0, 1)))
        assert np.all(np.abs(gen.p_y[:gen.p_count] - 10.0) <= 3.0 + 1e-9)
        assert np.all(np.abs(gen.p_x[:gen.p_count] - 20.0) <= 3.0 / 0.6 + 1e-9)


class TestMotion:
    """Tests for integration and edge handling."""

    def test_edge_bounce_keeps_particles_inside(self):
        settings = ParticlePhysicsSettings(particle_count=50, emitter_mode="burst", gravity=5.0,
                                           velocity_magnitude=8.0, frame_count=40, seed=9)
        gen = ParticlePhysicsGenerator(settings, 30, 15)
        for state in gen.simulate(0, 40):
            xs = gen.p_x[:state.count]
            ys = gen.p_y[:state.count]
            assert np.all((xs >= 0) & (xs <= 29))
            assert np.all((ys >= 0) & (ys <= 14))

    def test_without_bounce_particles_fall_away(self):
        settings = ParticlePhysicsSettings(particle_count=20, emitter_mode="burst", gravity=5.0,
                                           edge_bounce=False, lifespan=500, frame_count=60)
        states = list(ParticlePhysicsGenerator(settings, 40, 24).simulate(0, 60))
        assert states[-1].count < states[-1].spawned

    def test_still_particle_rendered_at_origin(self):
        gen = ParticlePhysicsGenerator(_still(), 40, 20)
        values = gen.render_frame(0).values
        assert values[10, 20] == 1.0
        assert values[0, 0] == 0.0

    @pytest.mark.parametrize("shape", ["circle", "square", "cloudlet"])
    def test_particle_shapes(self, shape):
        values = ParticlePhysicsGenerator(_still(particle_shape=shape), 40, 20).render_frame(2).values
        assert values.max() > 0.0

    def test_opacity_fades_over_life(self):
        gen = ParticlePhysicsGenerator(_still(start_opacity=1.0, end_opacity=0.0, lifespan=10), 40, 20)
        early = gen.render_frame(0).values.max()
        late = gen.render_frame(7).values.max()
        assert early > late

    def test_turbulence_moves_still_particles(self):
        gen = ParticlePhysicsGenerator(
            _still(turbulence_enabled=True, turbulence_affects_position=10.0, frame_count=20), 40, 20)
        states = list(gen.simulate(0, 20))
        assert states[-1].count == 1
        assert (gen.p_x[0], gen.p_y[0]) != (20.0, 10.0)

    def test_non_finite_state_raises(self):
        gen = ParticlePhysicsGenerator(_still(), 40, 20)
        rng = SeededRandom(0)
        gen.step(0, rng)
        gen.p_x[0] = np.nan
        with pytest.raises(NumericInstability):
            gen.step(1, rng)

    def test_deterministic(self):
        settings = ParticlePhysicsSettings(particle_count=60, self_collisions=True, seed=5, frame_count=30)
        a = [ParticlePhysicsGenerator(settings, 40, 20).render_frame(n).values for n in (0, 15, 29)]
        b = [ParticlePhysicsGenerator(settings, 40, 20).render_frame(n).values for n in (0, 15, 29)]
        for x, y in zip(a, b):
            assert np.array_equal(x, y)


class TestCollisions:
    """Tests for the pairwise collision kernel."""

    def test_head_on_exchange(self):
        x = np.array([0.0, 1.0])
        y = np.zeros(2)
        vx = np.array([1.0, -1.0])
        vy = np.zeros(2)
        contacts = _collide(x, y, vx, vy, np.ones(2), np.ones(2), 2, 1.0)
        assert contacts == 1
        assert vx.tolist() == pytest.approx([-1.0, 1.0])
        assert x.tolist() == pytest.approx([-0.5, 1.5])

    def test_separating_pair_keeps_velocity(self):
        x = np.array([0.0, 1.0])
        vx = np.array([-1.0, 1.0])
        _collide(x, np.zeros(2), vx, np.zeros(2), np.ones(2), np.ones(2), 2, 1.0)
        assert vx.tolist() == [-1.0, 1.0]

    def test_distant_pair_untouched(self):
        x = np.array([0.0, 5.0])
        assert _collide(x, np.zeros(2), np.zeros(2), np.zeros(2), np.ones(2), np.ones(2), 2, 1.0) == 0
