"""
Settings
Resource limits and worker configuration, persisted as JSON
"""

import json
import logging
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict

from ..core.texture_atlas import SpritesheetOptions

log = logging.getLogger(__name__)


@dataclass
class Settings:
    """Limits applied while loading, compositing and packing"""

    max_file_size: int = 64 * 1024 * 1024
    # Applies to each decompressed cel or tileset payload
    max_decompressed_size: int = 256 * 1024 * 1024
    max_atlas_dimension: int = 16384
    composite_workers: int = 1
    log_unknown_chunks: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        """
        Build settings from a plain dictionary

        Unknown keys are ignored with a warning. A value whose type does not
        match the field's raises ValueError.
        """
        known = {f.name: f for f in fields(cls)}
        values = {}
        for key, value in data.items():
            if key not in known:
                log.warning("Ignoring unknown setting '%s'", key)
                continue
            expected = type(getattr(cls(), key))
            # bool is an int subclass; keep the two apart
            if isinstance(value, bool) != (expected is bool) or not isinstance(value, expected):
                raise ValueError(
                    f"Setting '{key}' must be {expected.__name__}, got {type(value).__name__}"
                )
            if expected is int and value < (1 if key == "composite_workers" else 0):
                raise ValueError(f"Setting '{key}' is out of range: {value}")
            values[key] = value
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def spritesheet_options(self, **overrides) -> SpritesheetOptions:
        """SpritesheetOptions bounded by max_atlas_dimension"""
        overrides.setdefault("max_dimension", self.max_atlas_dimension)
        return SpritesheetOptions(**overrides)


def load_settings(path: str) -> Settings:
    """
    Load settings from a JSON file

    Args:
        path: Path to the JSON file

    Returns:
        Settings with defaults for missing keys
    """
    with open(path, 'r') as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Settings file {path} must hold a JSON object")
    return Settings.from_dict(data)


def save_settings(path: str, settings: Settings):
    """Write settings to a JSON file"""
    with open(path, 'w') as f:
        json.dump(settings.to_dict(), f, indent=2, sort_keys=True)
