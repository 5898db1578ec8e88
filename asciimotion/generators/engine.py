"""
Generation engine - runs a generator over all frames.

``generate_frames`` and ``generate_preview`` never raise generation errors;
every failure is reported through ``GenerationResult`` with its kind.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

import numpy as np

from ..core.config import EngineConfig, get_config
from ..core.errors import (
    CanvasSizeMismatch,
    GenerationResult,
    GenerationTimeout,
    GeneratorError,
    InvalidParameter,
)
from ..render.converter import ConversionSettings, convert_all
from ..render.output import FrameOutput
from ..render.raster import GeneratorFrame, PixelBuffer
from .base import Generator
from .digital_rain import DigitalRainGenerator
from .particles import ParticlePhysicsGenerator
from .radio_waves import RadioWavesGenerator
from .rain_drops import RainDropsGenerator
from .settings import GeneratorSettings
from .turbulent_noise import TurbulentNoiseGenerator

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass(frozen=True)
class GeneratorDefinition:
    id: str
    name: str
    description: str


GENERATORS: dict[str, type] = {
    cls.settings_type.generator_id: cls
    for cls in (
        RadioWavesGenerator,
        TurbulentNoiseGenerator,
        ParticlePhysicsGenerator,
        RainDropsGenerator,
        DigitalRainGenerator,
    )
}

GENERATOR_DEFINITIONS: list[GeneratorDefinition] = [
    GeneratorDefinition("radio-waves", "Radio Waves",
                        "Concentric wave propagation from a selectable origin"),
    GeneratorDefinition("turbulent-noise", "Turbulent Noise",
                        "Animated fractal noise field with configurable parameters"),
    GeneratorDefinition("particle-physics", "Particle Physics",
                        "Particle emitter with velocity, gravity, bounce, and friction"),
    GeneratorDefinition("rain-drops", "Rain Drops",
                        "Rippling raindrop interactions with interference"),
    GeneratorDefinition("digital-rain", "Digital Rain",
                        "Falling luminous trails that fade from head to tail"),
]


def create_generator(settings: GeneratorSettings, width: int, height: int,
                     config: Optional[EngineConfig] = None) -> Generator:
    try:
        cls = GENERATORS[settings.generator_id]
    except KeyError:
        raise InvalidParameter(f"No generator registered for '{settings.generator_id}'") from None
    if not isinstance(settings, cls.settings_type):
        raise InvalidParameter(
            f"{cls.__name__} needs {cls.settings_type.__name__}, got {type(settings).__name__}"
        )
    return cls(settings, width, height, config)


def validate_generation_params(width: int, height: int, frame_count: int, frame_duration_ms: int,
                               config: Optional[EngineConfig] = None) -> None:
    limits = (config or get_config()).limits
    if not (1 <= width <= limits.max_width and 1 <= height <= limits.max_height):
        raise CanvasSizeMismatch(
            f"Canvas {width}x{height} outside 1x1..{limits.max_width}x{limits.max_height}"
        )
    if not limits.min_frame_count <= frame_count <= limits.max_frame_count:
        raise InvalidParameter(
            f"Frame count {frame_count} outside {limits.min_frame_count}..{limits.max_frame_count}"
        )
    if frame_duration_ms < limits.min_frame_duration_ms:
        raise InvalidParameter(
            f"Frame duration {frame_duration_ms}ms below {limits.min_frame_duration_ms}ms"
        )


# =============================================================================
# Frame Loop
# =============================================================================

def render_frames(generator: Generator, frame_count: int, frame_duration_ms: int,
                  clock: Clock = time.monotonic, deadline: Optional[float] = None) -> list[GeneratorFrame]:
    """Rasterize frames ``0..frame_count-1``, cross-fading the tail into the pre-roll.

    With loop smoothing the simulation starts ``B`` frames early. Output frame
    ``frame_count - B + k`` is blended toward pre-roll frame ``k - B`` with
    weight ``(k + 1) / (B + 1)``, so the last frame leads into frame 0.
    """
    blend = generator.blend_frames
    pre_roll: list[np.ndarray] = []
    frames: list[GeneratorFrame] = []
    buffer = PixelBuffer(generator.width, generator.height)

    for state in generator.simulate(generator.first_frame, frame_count):
        if deadline is not None and clock() > deadline:
            raise GenerationTimeout(
                f"Generation exceeded its time budget at frame {state.frame_index}/{frame_count}"
            )
        buffer.clear()
        state.render(buffer)
        buffer.check_finite()

        n = state.frame_index
        if n < 0:
            pre_roll.append(buffer.values.copy())
            continue

        k = n - (frame_count - blend)
        if blend and k >= 0:
            weight = (k + 1) / (blend + 1)
            buffer.values *= 1.0 - weight
            buffer.values += pre_roll[k] * weight
        frames.append(buffer.to_frame(frame_duration_ms))
    return frames


def generate_frames(
    settings: GeneratorSettings,
    width: int,
    height: int,
    frame_duration_ms: Optional[int] = None,
    config: Optional[EngineConfig] = None,
    clock: Clock = time.monotonic,
) -> GenerationResult:
    """Run one generator to completion. Failures come back as a result, never raised."""
    config = config or get_config()
    started = clock()
    deadline = started + config.preview.generation_timeout_s

    def elapsed_ms() -> float:
        return (clock() - started) * 1000.0

    try:
        settings = settings.clamped(config.limits)
        frame_count, frame_ms = settings.resolve_timing(frame_duration_ms, config.limits)
        validate_generation_params(width, height, frame_count, frame_ms, config)
        generator = create_generator(settings, width, height, config)
        logger.info("Generating %s: %dx%d, %d frames @ %dms",
                    settings.generator_id, width, height, frame_count, frame_ms)
        frames = render_frames(generator, frame_count, frame_ms, clock, deadline)
    except GeneratorError as e:
        logger.warning("Generation failed (%s): %s", e.kind, e)
        return GenerationResult.failed(e, elapsed_ms())
    except Exception as e:
        logger.exception("Unexpected error during generation")
        return GenerationResult.failed(e, elapsed_ms())

    result = GenerationResult(success=True, frames=frames, processing_time_ms=elapsed_ms())
    logger.info("Generated %d frames in %.1fms", result.frame_count, result.processing_time_ms)
    return result


# =============================================================================
# Previews
# =============================================================================

@dataclass(frozen=True)
class PreviewRequest:
    """Immutable snapshot of everything a preview run needs."""
    settings: GeneratorSettings
    conversion: ConversionSettings = field(default_factory=ConversionSettings)
    frame_duration_ms: Optional[int] = None

    @property
    def width(self) -> int:
        return self.conversion.width

    @property
    def height(self) -> int:
        return self.conversion.height


def generate_preview(request: PreviewRequest, config: Optional[EngineConfig] = None,
                     clock: Clock = time.monotonic) -> GenerationResult:
    """Generate pixel frames and convert them to character grids."""
    config = config or get_config()
    result = generate_frames(request.settings, request.width, request.height,
                             request.frame_duration_ms, config, clock)
    if not result.success:
        return result
    try:
        result.converted = convert_all(result.frames, request.conversion, config)
    except GeneratorError as e:
        logger.warning("Conversion failed (%s): %s", e.kind, e)
        return GenerationResult.failed(e, result.processing_time_ms)
    except Exception as e:
        logger.exception("Unexpected error during conversion")
        return GenerationResult.failed(e, result.processing_time_ms)
    return result


def to_output(result: GenerationResult, mode: str = "overwrite", start_index: int = 0) -> FrameOutput:
    """Package a successful preview for the host frame store."""
    if not result.success:
        raise InvalidParameter("Cannot apply a failed generation result")
    return FrameOutput(tuple(result.converted), mode, start_index)
