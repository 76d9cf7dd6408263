"""
Output module - Cropping and output sinks.

This module provides:
- FrameCropper / compute_roi: Clamped crop window around the object center
- VideoFileSink: Encoded video file
- WindowSink: Live preview window
- CSVSink: Per-frame crop rectangles
- SinkManager: Fan frames out to several sinks from spec strings

Example:
    >>> from edstab.outputs import SinkManager
    >>> manager = SinkManager()
    >>> manager.add_output("video=filename=stabilized.mp4:fps=30")
    >>> manager.add_output("csv=filename=crops.csv")
"""

from edstab.outputs.base import BaseSink, OutputSpec
from edstab.outputs.cropper import FrameCropper, compute_roi
from edstab.outputs.sinks import CSVSink, MemorySink, VideoFileSink, WindowSink
from edstab.outputs.manager import SinkManager, register_sink_type

__all__ = [
    "BaseSink",
    "OutputSpec",
    "FrameCropper",
    "compute_roi",
    "CSVSink",
    "MemorySink",
    "VideoFileSink",
    "WindowSink",
    "SinkManager",
    "register_sink_type",
]
