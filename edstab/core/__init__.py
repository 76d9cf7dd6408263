"""
Core module - Frame types, configuration, errors, and shared abstractions.
"""

from edstab.core.base import BaseLocator, BaseStabilizer, FrameSink
from edstab.core.config import (
    Config,
    EngineConfig,
    OutputConfig,
    apply_env_overrides,
    load_config,
    save_config,
)
from edstab.core.errors import (
    ConfigError,
    DegenerateGeometry,
    EdstabError,
    InsufficientCorrespondences,
    InsufficientInliers,
    InvalidFrameError,
    OutOfBoundsProjection,
    RegistrationError,
)
from edstab.core.frame import (
    CroppedFrame,
    DetectionResult,
    FeatureCache,
    FeatureSet,
    Frame,
    StabilizedFrame,
)
from edstab.core.video import VideoProperties, VideoReader

__all__ = [
    "BaseLocator",
    "BaseStabilizer",
    "FrameSink",
    "Config",
    "EngineConfig",
    "OutputConfig",
    "apply_env_overrides",
    "load_config",
    "save_config",
    "ConfigError",
    "DegenerateGeometry",
    "EdstabError",
    "InsufficientCorrespondences",
    "InsufficientInliers",
    "InvalidFrameError",
    "OutOfBoundsProjection",
    "RegistrationError",
    "CroppedFrame",
    "DetectionResult",
    "FeatureCache",
    "FeatureSet",
    "Frame",
    "StabilizedFrame",
    "VideoProperties",
    "VideoReader",
]
