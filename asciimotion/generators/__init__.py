"""Procedural generators and the engine that runs them."""

from .engine import (
    GENERATOR_DEFINITIONS,
    GENERATORS,
    PreviewRequest,
    create_generator,
    generate_frames,
    generate_preview,
    to_output,
)
from .settings import (
    DigitalRainSettings,
    GeneratorSettings,
    ParticlePhysicsSettings,
    RadioWavesSettings,
    RainDropsSettings,
    TurbulentNoiseSettings,
    settings_from_dict,
)

__all__ = [
    "GENERATOR_DEFINITIONS",
    "GENERATORS",
    "PreviewRequest",
    "create_generator",
    "generate_frames",
    "generate_preview",
    "to_output",
    "GeneratorSettings",
    "RadioWavesSettings",
    "TurbulentNoiseSettings",
    "ParticlePhysicsSettings",
    "RainDropsSettings",
    "DigitalRainSettings",
    "settings_from_dict",
]
