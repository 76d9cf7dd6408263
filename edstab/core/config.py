"""
Configuration management for the stabilization engine.

Settings are plain dataclasses that can be loaded from and saved to JSON
files, with optional overrides from environment variables.
"""

import json
import os
from dataclasses import dataclass, field, asdict, fields
from pathlib import Path
from typing import Any

from edstab.core.errors import ConfigError


@dataclass
class EngineConfig:
    """Tunables shared by the matcher, estimator, stabilizer and locator."""
    ratio_threshold: float = 0.75
    ransac_reproj_threshold_px: float = 3.0
    ed_threshold_px: float = 0.5
    min_inliers: int = 10
    smoothing_window_frames: int = 15
    detector_feature_cap: int = 2000
    detection_smoothing_alpha: float = 0.4
    
    def validate(self) -> "EngineConfig":
        """
        Check every value against its legal range.
        
        Returns:
            self, for chaining
            
        Raises:
            ConfigError: On the first out-of-range value
        """
        if not 0.0 < self.ratio_threshold < 1.0:
            raise ConfigError(
                f"ratio_threshold must be in (0, 1), got {self.ratio_threshold}"
            )
        if self.ransac_reproj_threshold_px <= 0:
            raise ConfigError(
                "ransac_reproj_threshold_px must be > 0, "
                f"got {self.ransac_reproj_threshold_px}"
            )
        if self.ed_threshold_px <= 0:
            raise ConfigError(
                f"ed_threshold_px must be > 0, got {self.ed_threshold_px}"
            )
        if self.ed_threshold_px > self.ransac_reproj_threshold_px:
            raise ConfigError(
                "ed_threshold_px must not exceed ransac_reproj_threshold_px "
                f"({self.ed_threshold_px} > {self.ransac_reproj_threshold_px})"
            )
        if self.min_inliers < 4:
            raise ConfigError(f"min_inliers must be >= 4, got {self.min_inliers}")
        if self.smoothing_window_frames < 0:
            raise ConfigError(
                "smoothing_window_frames must be >= 0, "
                f"got {self.smoothing_window_frames}"
            )
        if self.detector_feature_cap < 1:
            raise ConfigError(
                f"detector_feature_cap must be >= 1, got {self.detector_feature_cap}"
            )
        if not 0.0 < self.detection_smoothing_alpha <= 1.0:
            raise ConfigError(
                "detection_smoothing_alpha must be in (0, 1], "
                f"got {self.detection_smoothing_alpha}"
            )
        return self


@dataclass
class OutputConfig:
    """Crop and frame-loop settings."""
    crop_width: int = 1920
    crop_height: int = 1080
    log_interval: int = 30
    skip_invalid_frames: bool = True
    
    def validate(self) -> "OutputConfig":
        if self.crop_width < 1 or self.crop_height < 1:
            raise ConfigError(
                f"Crop size must be positive, got {self.crop_width}x{self.crop_height}"
            )
        if self.log_interval < 1:
            raise ConfigError(f"log_interval must be >= 1, got {self.log_interval}")
        return self


@dataclass
class Config:
    """
    Main configuration container.
    
    Example:
        config = Config.load("edstab.json")
        stabilizer = EDRansacStabilizer(config.engine)
    """
    engine: EngineConfig = field(default_factory=EngineConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    
    @classmethod
    def load(cls, path: str | Path) -> "Config":
        """Load configuration from a JSON file."""
        return load_config(path)
    
    def save(self, path: str | Path) -> None:
        """Save configuration to a JSON file."""
        save_config(self, path)
    
    def validate(self) -> "Config":
        self.engine.validate()
        self.output.validate()
        return self
    
    def to_dict(self) -> dict:
        """Convert configuration to a dictionary."""
        return {
            "engine": asdict(self.engine),
            "output": asdict(self.output),
        }


def _build(cls, data: dict[str, Any], section: str):
    """Build a settings dataclass, rejecting unknown keys."""
    known = {f.name: f for f in fields(cls)}
    unknown = set(data) - set(known)
    if unknown:
        raise ConfigError(f"Unknown {section} settings: {', '.join(sorted(unknown))}")
    
    kwargs = {}
    for key, value in data.items():
        kwargs[key] = _coerce(known[key].type, value, f"{section}.{key}")
    return cls(**kwargs)


def _coerce(type_name: Any, value: Any, key: str) -> Any:
    """Coerce a JSON or environment value to a field's declared type."""
    type_name = getattr(type_name, "__name__", type_name)
    try:
        if type_name == "bool":
            if isinstance(value, str):
                return value.strip().lower() in ("true", "yes", "1", "on")
            return bool(value)
        if type_name == "int":
            return int(value)
        if type_name == "float":
            return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value for {key}: {value!r}") from e
    return value


def load_config(path: str | Path) -> Config:
    """
    Load configuration from a JSON file.
    
    Missing sections and keys fall back to their defaults.
    
    Args:
        path: Path to the JSON configuration file
        
    Returns:
        Parsed and validated Config object
        
    Raises:
        FileNotFoundError: If the config file doesn't exist
        json.JSONDecodeError: If the JSON is invalid
        ConfigError: If a value is unknown or out of range
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")
    
    with open(path, "r") as f:
        data = json.load(f)
    
    config = Config(
        engine=_build(EngineConfig, data.get("engine", {}), "engine"),
        output=_build(OutputConfig, data.get("output", {}), "output"),
    )
    return config.validate()


def save_config(config: Config, path: str | Path) -> None:
    """
    Save configuration to a JSON file.
    
    Args:
        config: Configuration object to save
        path: Output path for the JSON file
    """
    path = Path(path)
    with open(path, "w") as f:
        json.dump(config.to_dict(), f, indent=2)


def get_env_config(prefix: str = "EDSTAB_") -> dict[str, Any]:
    """
    Get configuration from environment variables.
    
    All environment variables starting with the prefix will be included.
    Variable names are converted to lowercase with the prefix removed.
    
    Example:
        EDSTAB_MIN_INLIERS=12 -> {"min_inliers": "12"}
    """
    config = {}
    for key, value in os.environ.items():
        if key.startswith(prefix):
            config_key = key[len(prefix):].lower()
            config[config_key] = value
    return config


def apply_env_overrides(config: Config, prefix: str = "EDSTAB_") -> Config:
    """
    Override settings from environment variables.
    
    Keys are matched against the engine section first, then the output
    section. Unrecognized variables are ignored.
    """
    env = get_env_config(prefix)
    for section_name in ("engine", "output"):
        section = getattr(config, section_name)
        for f in fields(section):
            if f.name in env:
                value = _coerce(f.type, env[f.name], f"{section_name}.{f.name}")
                setattr(section, f.name, value)
    return config.validate()
