"""
Frame-loop orchestration: capture -> locate -> stabilize -> crop -> sinks.

Frames are processed strictly one at a time in arrival order; a frame's
registration completes before the next frame is pulled from the source.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

import numpy as np

from edstab.core.base import BaseLocator, BaseStabilizer, FrameSink
from edstab.core.config import Config
from edstab.core.errors import InvalidFrameError
from edstab.core.frame import CroppedFrame, DetectionResult, Frame, StabilizedFrame
from edstab.outputs.cropper import FrameCropper
from edstab.registration.features import FeatureExtractor
from edstab.registration.locator import ObjectLocator, ReferenceObject
from edstab.registration.stabilizer import EDRansacStabilizer, PassThroughStabilizer

logger = logging.getLogger(__name__)


@dataclass
class PipelineStats:
    """Counters from a pipeline run."""
    frames_in: int = 0
    frames_out: int = 0
    skipped_invalid: int = 0
    detections: int = 0
    identity_fallbacks: int = 0
    
    def to_dict(self) -> dict[str, int]:
        return {
            "frames_in": self.frames_in,
            "frames_out": self.frames_out,
            "skipped_invalid": self.skipped_invalid,
            "detections": self.detections,
            "identity_fallbacks": self.identity_fallbacks,
        }


class Pipeline:
    """
    Drives frames from a source through the processing stages.
    
    Example:
        >>> with VideoReader("input.mp4") as reader:
        ...     pipeline = Pipeline(reader, EDRansacStabilizer(), FrameCropper(1920, 1080))
        ...     stats = pipeline.run(on_frame=lambda out: show(out.data))
    """
    
    def __init__(
        self,
        source: Iterable[Frame],
        stabilizer: BaseStabilizer,
        cropper: FrameCropper | None = None,
        locator: BaseLocator | None = None,
        sinks: Sequence[FrameSink] = (),
        skip_invalid_frames: bool = True,
        log_interval: int = 30,
    ):
        """
        Initialize the pipeline.
        
        Args:
            source: Iterable of raw frames in arrival order
            stabilizer: Stabilization stage
            cropper: Crop stage; frames are passed whole if None
            locator: Optional object locator feeding the stabilizer
            sinks: Consumers of the cropped frames
            skip_invalid_frames: Log and skip invalid frames instead of raising
            log_interval: Emit a progress line every N frames
        """
        self.source = source
        self.stabilizer = stabilizer
        self.cropper = cropper
        self.locator = locator
        self.sinks = list(sinks)
        self.skip_invalid_frames = skip_invalid_frames
        self.log_interval = log_interval
        
        self.stats = PipelineStats()
        self._stop = threading.Event()
        self._running = False
    
    @property
    def is_running(self) -> bool:
        return self._running
    
    def stop(self) -> None:
        """Ask the loop to exit after the current frame. Safe from other threads."""
        self._stop.set()
    
    def process(self, frame: Frame) -> CroppedFrame:
        """
        Run one frame through locate, stabilize and crop.
        
        Raises:
            InvalidFrameError: If the frame has no usable pixels
        """
        frame.validate()
        detection = self.locator.locate(frame) if self.locator else DetectionResult.invalid()
        if detection.valid:
            self.stats.detections += 1
        
        stabilized = self.stabilizer.stabilize(frame, detection)
        report = getattr(self.stabilizer, "last_report", None)
        if report is not None and report.used_identity:
            self.stats.identity_fallbacks += 1
        
        return self._crop(stabilized)
    
    def _crop(self, stabilized: StabilizedFrame) -> CroppedFrame:
        if self.cropper is None:
            return CroppedFrame(
                stabilized.data,
                (0, 0, stabilized.width, stabilized.height),
                stabilized.pts_ns,
            )
        return self.cropper.crop(stabilized)
    
    def _emit(self, out: CroppedFrame, on_frame) -> None:
        for sink in self.sinks:
            sink.write(out)
        if on_frame is not None:
            on_frame(out)
        self.stats.frames_out += 1
    
    def run(self, on_frame: Callable[[CroppedFrame], None] | None = None) -> PipelineStats:
        """
        Process frames until the source ends, stop() is called or a sink closes.
        
        Args:
            on_frame: Called with every output frame after the sinks
            
        Returns:
            PipelineStats for this run
        """
        self._stop.clear()
        self._running = True
        try:
            for frame in self.source:
                if self._stop.is_set():
                    break
                self.stats.frames_in += 1
                
                try:
                    out = self.process(frame)
                except InvalidFrameError as e:
                    if not self.skip_invalid_frames:
                        raise
                    self.stats.skipped_invalid += 1
                    logger.warning("Skipping invalid frame at %d ns: %s", frame.pts_ns, e)
                    continue
                
                self._emit(out, on_frame)
                
                if self.stats.frames_in % self.log_interval == 0:
                    logger.info("Processed %d frames | ROI: %s",
                                self.stats.frames_in, out.src_roi)
                
                if any(not sink.is_open for sink in self.sinks):
                    logger.info("Output closed, stopping")
                    break
            
            for stabilized in self.stabilizer.flush():
                self._emit(self._crop(stabilized), on_frame)
        finally:
            self._running = False
            for sink in self.sinks:
                sink.close()
        
        logger.info("Done. Total frames processed: %d", self.stats.frames_in)
        return self.stats


def build_pipeline(
    source: Iterable[Frame],
    config: Config | None = None,
    reference_image: np.ndarray | None = None,
    sinks: Sequence[FrameSink] = (),
    stabilize: bool = True,
) -> Pipeline:
    """
    Wire the standard pipeline from a configuration.
    
    The locator and stabilizer share one feature extractor so features
    computed for detection are reused for registration.
    
    Args:
        source: Iterable of raw frames
        config: Settings (defaults if None)
        reference_image: Image of the object to follow; no locator if None
        sinks: Output sinks
        stabilize: Use the ED-RANSAC stabilizer, or pass frames through
    """
    config = (config or Config()).validate()
    extractor = FeatureExtractor(config.engine.detector_feature_cap)
    
    locator = None
    if reference_image is not None:
        reference = ReferenceObject.from_image(reference_image, extractor)
        locator = ObjectLocator(reference, extractor, config.engine)
    
    if stabilize:
        stabilizer = EDRansacStabilizer(config.engine, extractor,
                                        log_interval=config.output.log_interval)
    else:
        stabilizer = PassThroughStabilizer()
    
    return Pipeline(
        source,
        stabilizer,
        cropper=FrameCropper(config.output.crop_width, config.output.crop_height),
        locator=locator,
        sinks=sinks,
        skip_invalid_frames=config.output.skip_invalid_frames,
        log_interval=config.output.log_interval,
    )
