"""
edstab - ED-RANSAC Video Stabilization
======================================

Keeps a tracked object centered in a stabilized, cropped video stream
despite camera jitter and platform motion.

Main modules:
- edstab.core: Frame types, configuration, errors, video capture
- edstab.registration: Feature matching, ED-RANSAC, trajectory, stabilizer
- edstab.outputs: Cropping and output sinks
- edstab.pipeline: Sequential frame-loop orchestration

Quick start:
    >>> from edstab import EDRansacStabilizer, VideoReader
    >>> stab = EDRansacStabilizer()
    >>> with VideoReader("input.mp4") as reader:
    ...     for frame in reader:
    ...         out = stab.stabilize(frame)
"""

__version__ = "0.1.0"

# Convenience imports
from edstab.core import Config, EngineConfig, Frame, VideoReader
from edstab.registration import EDRansacStabilizer, ObjectLocator, ReferenceObject
from edstab.outputs import FrameCropper, SinkManager
from edstab.pipeline import Pipeline, build_pipeline

__all__ = [
    "__version__",
    "Config",
    "EngineConfig",
    "Frame",
    "VideoReader",
    "EDRansacStabilizer",
    "ObjectLocator",
    "ReferenceObject",
    "FrameCropper",
    "SinkManager",
    "Pipeline",
    "build_pipeline",
]
