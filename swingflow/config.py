"""Configuration loading and call-time analysis options."""

import enum
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/config.yaml"


class PlayerLevel(str, enum.Enum):
    """Competitive level, used for leak-severity floors."""
    YOUTH = "youth"
    HIGH_SCHOOL = "high_school"
    COLLEGE = "college"
    PRO = "pro"


class Handedness(str, enum.Enum):
    """Batting side. A right-handed hitter leads with the left arm."""
    RIGHT = "right"
    LEFT = "left"


def load_config(config_path: Union[str, Path] = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """
    Load configuration from a YAML file.

    Args:
        config_path: Path to the configuration file.

    Returns:
        Configuration dictionary; empty if the file does not exist.
    """
    config_file = Path(config_path)
    if not config_file.exists():
        logger.debug(f"No configuration file at {config_file}, using defaults")
        return {}

    with open(config_file) as f:
        return yaml.safe_load(f) or {}


@dataclass(frozen=True)
class AnalysisOptions:
    """
    Call-time options for a single analysis.

    Attributes:
        player_height_inches: Hitter's height; rescales distance features.
        player_level: Competitive level, selects the leak-severity floor.
        manual_contact_frame_index: Trusted contact position in the series.
        handedness: Batting side, selects the lead arm.
    """
    player_height_inches: Optional[float] = None
    player_level: Optional[PlayerLevel] = None
    manual_contact_frame_index: Optional[int] = None
    handedness: Handedness = Handedness.RIGHT

    def __post_init__(self):
        if self.player_level is not None:
            object.__setattr__(self, "player_level", PlayerLevel(self.player_level))
        object.__setattr__(self, "handedness", Handedness(self.handedness))
        if self.player_height_inches is not None and self.player_height_inches <= 0:
            raise ValueError(
                f"player_height_inches must be positive, got {self.player_height_inches}"
            )

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "AnalysisOptions":
        """Build options from a config section, ignoring unknown keys and null values."""
        data = data or {}
        known = {
            k: v for k, v in data.items()
            if k in cls.__dataclass_fields__ and v is not None
        }
        return cls(**known)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format."""
        data = asdict(self)
        data["player_level"] = self.player_level.value if self.player_level else None
        data["handedness"] = self.handedness.value
        return data
