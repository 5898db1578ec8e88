"""
Generator settings - one immutable snapshot type per generator.

Each variant declares its clamp bounds (``RANGES``), enumerated string
fields (``CHOICES``) and ordered min/max pairs (``PAIRS``). Out-of-range
numbers are clamped; values that cannot be clamped meaningfully raise
``InvalidParameter``.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, fields, replace, asdict
from typing import ClassVar, Optional

from ..core.config import LimitsConfig
from ..core.errors import InvalidParameter

logger = logging.getLogger(__name__)

TIMING_MODES = ("duration", "frameCount", "both")
WAVE_SHAPES = ("circle", "square", "triangle", "pentagon", "hexagon", "octagon", "star")
PROFILE_SHAPES = ("solid", "fade-out", "fade-in", "fade-in-out")
NOISE_TYPES = ("perlin", "simplex", "worley")
EMITTER_SHAPES = ("point", "vertical-line", "horizontal-line", "square", "circle")
EMITTER_MODES = ("continuous", "burst")
PARTICLE_SHAPES = ("circle", "square", "cloudlet")

_CAMEL = re.compile(r"(?<!^)(?=[A-Z])")


def snake_case(name: str) -> str:
    return _CAMEL.sub("_", name).lower()


# =============================================================================
# Common Settings
# =============================================================================

@dataclass(frozen=True)
class GeneratorSettings:
    """Timing, seed and loop smoothing shared by every generator."""
    generator_id: ClassVar[str] = ""
    supports_loop_smoothing: ClassVar[bool] = True

    duration: int = 3000            # ms, used by "duration" and "both" timing
    frame_rate: int = 30
    frame_count: int = 90
    timing_mode: str = "frameCount"
    seed: int = 0
    loop_smoothing: bool = False
    blend_frames: int = 4

    RANGES: ClassVar[dict] = {
        "duration": (100, 30000),
        "frame_rate": (1, 60),
        "frame_count": (1, 500),
        "blend_frames": (2, 10),
    }
    # Fields whose bounds come from LimitsConfig when one is given (None keeps RANGES)
    LIMITS: ClassVar[dict] = {
        "duration": ("min_duration_ms", "max_duration_ms"),
        "frame_rate": ("min_frame_rate", "max_frame_rate"),
        "frame_count": ("min_frame_count", "max_frame_count"),
    }
    CHOICES: ClassVar[dict] = {"timing_mode": TIMING_MODES}
    PAIRS: ClassVar[tuple] = ()

    @classmethod
    def from_dict(cls, d: dict) -> "GeneratorSettings":
        """Build from snake_case or camelCase keys; unknown keys are ignored."""
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in d.items():
            name = key if key in known else snake_case(key)
            if name in known:
                kwargs[name] = value
        return cls(**kwargs)

    def to_dict(self) -> dict:
        return asdict(self)

    def with_changes(self, **changes) -> "GeneratorSettings":
        return replace(self, **changes)

    def bounds(self, limits: Optional[LimitsConfig] = None) -> dict:
        """Clamp bounds per field, with configured limits replacing the built-in ones."""
        result = dict(self.RANGES)
        if limits is None:
            return result
        for name, (low_attr, high_attr) in self.LIMITS.items():
            low, high = result[name]
            if low_attr is not None:
                low = getattr(limits, low_attr)
            if high_attr is not None:
                high = getattr(limits, high_attr)
            result[name] = (low, high)
        return result

    def clamped(self, limits: Optional[LimitsConfig] = None) -> "GeneratorSettings":
        """Copy with every numeric field clamped into its valid range."""
        ranges = self.bounds(limits)
        changes = {}
        for f in fields(self):
            value = getattr(self, f.name)
            expected = type(f.default)
            if expected is bool:
                if not isinstance(value, bool):
                    raise InvalidParameter(f"{f.name} must be a boolean, got {value!r}")
                continue
            if expected is str:
                choices = self.CHOICES.get(f.name)
                if choices is not None and value not in choices:
                    raise InvalidParameter(
                        f"{f.name} must be one of {', '.join(choices)}, got {value!r}"
                    )
                continue
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidParameter(f"{f.name} must be a number, got {value!r}")
            if not math.isfinite(value):
                raise InvalidParameter(f"{f.name} must be finite, got {value!r}")
            bounds = ranges.get(f.name)
            clamped = value
            if bounds is not None:
                clamped = min(max(value, bounds[0]), bounds[1])
            if expected is int:
                clamped = int(round(clamped))
            else:
                clamped = float(clamped)
            if clamped != value:
                logger.debug("Clamped %s.%s: %r -> %r", type(self).__name__, f.name, value, clamped)
            changes[f.name] = clamped

        result = replace(self, **changes)
        for low, high in self.PAIRS:
            if getattr(result, low) > getattr(result, high):
                raise InvalidParameter(
                    f"{low} ({getattr(result, low)}) must not exceed {high} ({getattr(result, high)})"
                )
        return result

    def resolve_timing(self, frame_duration_ms: Optional[int] = None,
                       limits: Optional[LimitsConfig] = None) -> tuple[int, int]:
        """Return ``(frame_count, per_frame_duration_ms)`` for the timing mode."""
        if self.timing_mode == "duration":
            count = max(1, int(round(self.duration * self.frame_rate / 1000.0)))
            count = min(count, self.bounds(limits)["frame_count"][1])
            frame_ms = max(1, self.duration // count)
        elif self.timing_mode == "both":
            count = self.frame_count
            frame_ms = max(1, self.duration // count)
        else:
            count = self.frame_count
            frame_ms = max(1, int(round(1000.0 / self.frame_rate)))
        if frame_duration_ms is not None:
            frame_ms = int(frame_duration_ms)
        return count, frame_ms


# =============================================================================
# Variants
# =============================================================================

@dataclass(frozen=True)
class RadioWavesSettings(GeneratorSettings):
    """Concentric shapes expanding from an origin."""
    generator_id: ClassVar[str] = "radio-waves"

    origin_x: float = 40.0
    origin_y: float = 12.0
    frequency: float = 1.0          # waves per second
    start_thickness: float = 2.0
    end_thickness: float = 2.0
    propagation_speed: float = 0.3  # rows per frame; negative contracts
    lifetime: float = 1.0           # fraction of the canvas diagonal
    wave_shape: str = "circle"
    profile_shape: str = "solid"
    start_rotation: float = 0.0     # degrees
    end_rotation: float = 0.0
    decay_rate: float = 0.0

    RANGES: ClassVar[dict] = {
        **GeneratorSettings.RANGES,
        "origin_x": (-1000.0, 1000.0),
        "origin_y": (-1000.0, 1000.0),
        "frequency": (0.1, 10.0),
        "start_thickness": (0.1, 20.0),
        "end_thickness": (0.1, 20.0),
        "propagation_speed": (-2.0, 2.0),
        "lifetime": (0.1, 1.0),
        "start_rotation": (0.0, 360.0),
        "end_rotation": (0.0, 360.0),
        "decay_rate": (0.0, 5.0),
    }
    CHOICES: ClassVar[dict] = {
        **GeneratorSettings.CHOICES,
        "wave_shape": WAVE_SHAPES,
        "profile_shape": PROFILE_SHAPES,
    }


@dataclass(frozen=True)
class TurbulentNoiseSettings(GeneratorSettings):
    """Animated fractal noise field."""
    generator_id: ClassVar[str] = "turbulent-noise"

    noise_type: str = "perlin"
    base_frequency: float = 1.0
    octaves: int = 3
    persistence: float = 0.5
    lacunarity: float = 2.0
    amplitude: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0
    brightness: float = 0.0
    contrast: float = 1.0
    evolution_speed: float = 1.0

    RANGES: ClassVar[dict] = {
        **GeneratorSettings.RANGES,
        "base_frequency": (0.1, 8.0),
        "octaves": (1, 6),
        "persistence": (0.0, 1.0),
        "lacunarity": (1.0, 4.0),
        "amplitude": (0.0, 2.0),
        "offset_x": (-10000.0, 10000.0),
        "offset_y": (-10000.0, 10000.0),
        "brightness": (-1.0, 1.0),
        "contrast": (0.0, 4.0),
        "evolution_speed": (0.0, 10.0),
    }
    CHOICES: ClassVar[dict] = {**GeneratorSettings.CHOICES, "noise_type": NOISE_TYPES}


@dataclass(frozen=True)
class ParticlePhysicsSettings(GeneratorSettings):
    """Emitter plus integrated particles. Free running, never loop smoothed."""
    generator_id: ClassVar[str] = "particle-physics"
    supports_loop_smoothing: ClassVar[bool] = False

    frame_count: int = 150
    duration: int = 5000

    origin_x: float = 40.0
    origin_y: float = 12.0
    emitter_shape: str = "point"
    emitter_size: float = 5.0
    emitter_mode: str = "continuous"
    particle_count: int = 100

    particle_shape: str = "circle"
    particle_size: float = 2.0
    particle_size_randomness: bool = False
    particle_size_min: float = 1.0
    particle_size_max: float = 4.0
    start_size_multiplier: float = 1.0
    end_size_multiplier: float = 1.0
    start_opacity: float = 1.0
    end_opacity: float = 1.0
    lifespan: int = 60
    lifespan_randomness: bool = True
    lifespan_randomness_amount: float = 0.3

    velocity_magnitude: float = 2.0
    velocity_angle: float = 270.0       # degrees, 270 points up
    velocity_angle_randomness: float = 0.3
    velocity_speed_randomness: float = 0.2

    gravity: float = 0.2
    drag: float = 0.02

    edge_bounce: bool = True
    bounciness: float = 0.8
    bounciness_randomness: float = 0.0
    edge_friction: float = 0.1
    self_collisions: bool = False

    turbulence_enabled: bool = False
    turbulence_frequency: float = 1.0
    turbulence_affects_position: float = 2.0
    turbulence_affects_scale: float = 0.5

    RANGES: ClassVar[dict] = {
        **GeneratorSettings.RANGES,
        "origin_x": (-1000.0, 1000.0),
        "origin_y": (-1000.0, 1000.0),
        "emitter_size": (1.0, 200.0),
        "particle_count": (0, 1000),
        "particle_size": (0.0, 50.0),
        "particle_size_min": (0.0, 50.0),
        "particle_size_max": (0.0, 50.0),
        "start_size_multiplier": (0.0, 2.0),
        "end_size_multiplier": (0.0, 2.0),
        "start_opacity": (0.0, 1.0),
        "end_opacity": (0.0, 1.0),
        "lifespan": (1, 1000),
        "lifespan_randomness_amount": (0.0, 1.0),
        "velocity_magnitude": (0.0, 20.0),
        "velocity_angle": (0.0, 360.0),
        "velocity_angle_randomness": (0.0, 1.0),
        "velocity_speed_randomness": (0.0, 1.0),
        "gravity": (-5.0, 5.0),
        "drag": (0.0, 1.0),
        "bounciness": (0.0, 1.0),
        "bounciness_randomness": (0.0, 1.0),
        "edge_friction": (0.0, 1.0),
        "turbulence_frequency": (0.1, 10.0),
        "turbulence_affects_position": (0.0, 10.0),
        "turbulence_affects_scale": (0.0, 2.0),
    }
    CHOICES: ClassVar[dict] = {
        **GeneratorSettings.CHOICES,
        "emitter_shape": EMITTER_SHAPES,
        "emitter_mode": EMITTER_MODES,
        "particle_shape": PARTICLE_SHAPES,
    }
    LIMITS: ClassVar[dict] = {
        **GeneratorSettings.LIMITS,
        "particle_count": (None, "max_particles"),
    }
    PAIRS: ClassVar[tuple] = (("particle_size_min", "particle_size_max"),)


@dataclass(frozen=True)
class RainDropsSettings(GeneratorSettings):
    """Stochastic ripple sources with optional additive interference."""
    generator_id: ClassVar[str] = "rain-drops"

    frame_count: int = 120
    duration: int = 4000

    drop_frequency: float = 5.0     # drops per second
    drop_frequency_randomness: float = 0.3
    ripple_speed: float = 0.7
    ripple_birth_size: float = 0.0
    ripple_amplitude: float = 1.0
    ripple_amplitude_randomness: float = 0.3
    ripple_decay: float = 0.05
    ripple_decay_randomness: float = 0.3
    ripple_wavelength: float = 2.0
    ripple_falloff_width: float = 3.0   # trailing rings, in wavelengths
    interference_enabled: bool = True
    brightness: float = 0.0
    contrast: float = 1.0

    RANGES: ClassVar[dict] = {
        **GeneratorSettings.RANGES,
        "drop_frequency": (0.0, 60.0),
        "drop_frequency_randomness": (0.0, 1.0),
        "ripple_speed": (0.05, 5.0),
        "ripple_birth_size": (0.0, 20.0),
        "ripple_amplitude": (0.0, 2.0),
        "ripple_amplitude_randomness": (0.0, 1.0),
        "ripple_decay": (0.0, 1.0),
        "ripple_decay_randomness": (0.0, 1.0),
        "ripple_wavelength": (0.5, 20.0),
        "ripple_falloff_width": (0.5, 10.0),
        "brightness": (-1.0, 1.0),
        "contrast": (0.0, 4.0),
    }


@dataclass(frozen=True)
class DigitalRainSettings(GeneratorSettings):
    """Falling luminous trails that fade from head to tail."""
    generator_id: ClassVar[str] = "digital-rain"

    frame_count: int = 120
    duration: int = 4000

    direction_angle: float = 180.0  # compass degrees, 0 up and 180 down
    frequency: float = 10.0         # trails per second
    trail_length: int = 12
    trail_length_randomness: float = 0.3
    speed: float = 0.8              # cells per frame
    speed_randomness: float = 0.3
    trail_width: float = 1.0
    width_randomness: bool = False
    width_min: float = 1.0
    width_max: float = 3.0
    fade_amount: float = 1.0        # tail fraction that fades out
    noise_amount: float = 0.0       # 0-200 percent
    noise_scale: float = 0.1
    animated_noise: bool = False
    noise_speed: float = 10.0
    pre_run: bool = True

    RANGES: ClassVar[dict] = {
        **GeneratorSettings.RANGES,
        "direction_angle": (0.0, 360.0),
        "frequency": (0.0, 60.0),
        "trail_length": (1, 100),
        "trail_length_randomness": (0.0, 1.0),
        "speed": (0.05, 10.0),
        "speed_randomness": (0.0, 1.0),
        "trail_width": (1.0, 10.0),
        "width_min": (1.0, 10.0),
        "width_max": (1.0, 10.0),
        "fade_amount": (0.0, 1.0),
        "noise_amount": (0.0, 200.0),
        "noise_scale": (0.01, 2.0),
        "noise_speed": (0.0, 100.0),
    }
    PAIRS: ClassVar[tuple] = (("width_min", "width_max"),)


SETTINGS_TYPES: dict[str, type] = {
    cls.generator_id: cls
    for cls in (
        RadioWavesSettings,
        TurbulentNoiseSettings,
        ParticlePhysicsSettings,
        RainDropsSettings,
        DigitalRainSettings,
    )
}


def settings_from_dict(generator_id: str, d: Optional[dict] = None) -> GeneratorSettings:
    """Build the settings variant for *generator_id*."""
    try:
        cls = SETTINGS_TYPES[generator_id]
    except KeyError:
        raise InvalidParameter(
            f"Unknown generator '{generator_id}'. Available: {', '.join(SETTINGS_TYPES)}"
        ) from None
    return cls.from_dict(d or {})
