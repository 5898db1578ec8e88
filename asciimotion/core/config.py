"""Engine configuration: limits, preview timing and render constants."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

CONFIG_PATH = Path.home() / ".config" / "asciimotion" / "config.json"

DEFAULT_CHARACTER_SET = " .:-=+*#%@"


def _known(cls, d: dict) -> dict:
    if not isinstance(d, dict):
        return {}
    names = {f.name for f in cls.__dataclass_fields__.values()}
    return {k: v for k, v in d.items() if k in names}


@dataclass
class LimitsConfig:
    """Hard bounds for grids, timing and simulation populations."""
    max_width: int = 200
    max_height: int = 100
    min_frame_count: int = 1
    max_frame_count: int = 500
    min_frame_rate: int = 1
    max_frame_rate: int = 60
    min_duration_ms: int = 100
    max_duration_ms: int = 30000
    min_frame_duration_ms: int = 16
    max_particles: int = 1000
    max_ripples: int = 50
    max_trails: int = 100


@dataclass
class PreviewConfig:
    """Live preview scheduling."""
    debounce_ms: int = 200
    generation_timeout_s: float = 30.0
    blend_frames: int = 4
    min_blend_frames: int = 2
    max_blend_frames: int = 10
    autoplay: bool = True

    def clamp_blend_frames(self, value: int) -> int:
        return max(self.min_blend_frames, min(self.max_blend_frames, int(value)))


@dataclass
class RenderConfig:
    """Raster constants shared by every generator."""
    # Monospace cells are taller than wide; x distances are scaled by this
    cell_aspect_ratio: float = 0.6
    default_character_set: str = DEFAULT_CHARACTER_SET


@dataclass
class EngineConfig:
    """Main configuration combining all sections."""
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    preview: PreviewConfig = field(default_factory=PreviewConfig)
    render: RenderConfig = field(default_factory=RenderConfig)

    def to_dict(self) -> dict:
        return {
            "limits": asdict(self.limits),
            "preview": asdict(self.preview),
            "render": asdict(self.render),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "EngineConfig":
        if not isinstance(d, dict):
            return cls()
        return cls(
            limits=LimitsConfig(**_known(LimitsConfig, d.get("limits", {}))),
            preview=PreviewConfig(**_known(PreviewConfig, d.get("preview", {}))),
            render=RenderConfig(**_known(RenderConfig, d.get("render", {}))),
        )

    def save(self, path: Path = CONFIG_PATH):
        path.parent.mkdir(parents=True, exist_ok=True)
        temp = path.with_suffix(".tmp")
        temp.write_text(json.dumps(self.to_dict(), indent=2))
        temp.rename(path)

    @classmethod
    def load(cls, path: Path = CONFIG_PATH) -> "EngineConfig":
        try:
            if path.exists():
                return cls.from_dict(json.loads(path.read_text()))
        except (json.JSONDecodeError, IOError, TypeError) as e:
            logger.warning("Ignoring unreadable config %s: %s", path, e)
        return cls()


_config: Optional[EngineConfig] = None


def get_config() -> EngineConfig:
    """Get the process-wide configuration, loading it on first use."""
    global _config
    if _config is None:
        _config = EngineConfig.load()
    return _config


def set_config(config: Optional[EngineConfig]) -> None:
    """Replace the process-wide configuration (None reloads lazily)."""
    global _config
    _config = config
