"""Core utilities - seeded randomness, noise, colors, config, errors and scheduling."""

from .config import EngineConfig, get_config, set_config
from .colors import Color, Palette, get_palette, register_palette
from .errors import (
    CanvasSizeMismatch,
    GenerationResult,
    GenerationTimeout,
    GeneratorError,
    InvalidParameter,
    NumericInstability,
)
from .noise import NoiseField
from .rng import SeededRandom
from .scheduler import PreviewScheduler

__all__ = [
    # Config
    "EngineConfig",
    "get_config",
    "set_config",
    # Colors
    "Color",
    "Palette",
    "get_palette",
    "register_palette",
    # Errors
    "GeneratorError",
    "InvalidParameter",
    "GenerationTimeout",
    "CanvasSizeMismatch",
    "NumericInstability",
    "GenerationResult",
    # Randomness
    "SeededRandom",
    "NoiseField",
    # Scheduling
    "PreviewScheduler",
]
