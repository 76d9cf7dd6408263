"""
Frame-to-frame stabilization driven by ED-RANSAC registration.

Each raw frame is registered against the previous raw frame, the
inter-frame homography is accumulated into a trajectory, and the frame is
warped from its cumulative position onto a causally smoothed one. The
tracked object's center is carried through the same warp.
"""

import logging
from dataclasses import dataclass
from enum import IntEnum

import cv2
import numpy as np

from edstab.core.base import BaseStabilizer
from edstab.core.config import EngineConfig
from edstab.core.errors import RegistrationError
from edstab.core.frame import DetectionResult, FeatureSet, Frame, StabilizedFrame
from edstab.registration.features import FeatureExtractor, ensure_features
from edstab.registration.homography import estimate_homography
from edstab.registration.matcher import match_descriptors
from edstab.registration.trajectory import Trajectory, identity

logger = logging.getLogger(__name__)


class StabilizerState(IntEnum):
    """Per-stream stabilizer states."""
    UNINITIALIZED = 0
    RUNNING = 1


@dataclass
class FrameReport:
    """Registration statistics for one frame."""
    frame_index: int
    matches: int = 0
    ransac_inliers: int = 0
    refined_inliers: int = 0
    cache_hit: bool = False
    fallback_reason: str | None = None
    
    @property
    def used_identity(self) -> bool:
        return self.fallback_reason is not None
    
    def to_dict(self) -> dict:
        return {
            "frame": self.frame_index,
            "matches": self.matches,
            "ransac_inliers": self.ransac_inliers,
            "refined_inliers": self.refined_inliers,
            "cache_hit": self.cache_hit,
            "fallback": self.fallback_reason,
        }


def is_identity(matrix: np.ndarray, atol: float = 1e-9) -> bool:
    return bool(np.allclose(matrix, np.eye(3), rtol=0.0, atol=atol))


class EDRansacStabilizer(BaseStabilizer):
    """
    Homography-based video stabilizer.
    
    Registration always chains raw frame to raw frame; the warp is applied
    to output pixels only. Any registration failure degrades to an
    identity inter-frame transform for that step.
    
    Attributes:
        config: Engine tunables
        extractor: Feature extractor, possibly shared with a locator
        trajectory: Cumulative transforms, one per processed frame
        state: Current StabilizerState
        last_report: FrameReport for the most recent frame
        last_inter_frame: Most recent inter-frame homography
        last_warp: Most recent corrective warp
        
    Example:
        >>> stab = EDRansacStabilizer(EngineConfig(smoothing_window_frames=15))
        >>> for frame in reader:
        ...     out = stab.stabilize(frame, locator.locate(frame))
    """
    
    def __init__(
        self,
        config: EngineConfig | None = None,
        extractor: FeatureExtractor | None = None,
        log_interval: int = 30,
    ):
        """
        Initialize the stabilizer.
        
        Args:
            config: Engine tunables (defaults if None)
            extractor: Shared feature extractor; one is created if None
            log_interval: Emit a progress log line every N frames
        """
        self.config = (config or EngineConfig()).validate()
        if extractor is None:
            extractor = FeatureExtractor(self.config.detector_feature_cap)
            logger.info("No shared extractor, created own (%d features)",
                        self.config.detector_feature_cap)
        self.extractor = extractor
        self.log_interval = log_interval
        
        self.trajectory = Trajectory()
        self.state = StabilizerState.UNINITIALIZED
        self.frame_index = 0
        self.last_report: FrameReport | None = None
        self.last_inter_frame = identity()
        self.last_warp = identity()
        
        self._prev_features: FeatureSet | None = None
    
    def reset(self) -> None:
        """Return to UNINITIALIZED and drop all per-stream state."""
        self.trajectory.clear()
        self.state = StabilizerState.UNINITIALIZED
        self.frame_index = 0
        self.last_report = None
        self.last_inter_frame = identity()
        self.last_warp = identity()
        self._prev_features = None
    
    def stabilize(
        self,
        frame: Frame,
        detection: DetectionResult | None = None,
    ) -> StabilizedFrame:
        """
        Stabilize the next frame of the stream.
        
        Args:
            frame: Raw frame; its feature cache is filled if empty
            detection: Object center in raw frame space, if any
            
        Returns:
            StabilizedFrame whose suggested center lies inside the frame
            
        Raises:
            InvalidFrameError: If the frame has no usable pixels
        """
        frame.validate()
        if detection is None:
            detection = DetectionResult.invalid()
        
        cache_hit = frame.has_features
        features = ensure_features(frame, self.extractor)
        report = FrameReport(self.frame_index, cache_hit=cache_hit)
        
        if self.state == StabilizerState.UNINITIALIZED or self._prev_features is None:
            return self._start(frame, detection, features, report)
        
        H_inter = self._register(features, report)
        cumulative = self.trajectory.accumulate(H_inter)
        smoothed = self.trajectory.smooth(
            len(self.trajectory) - 1, self.config.smoothing_window_frames
        )
        
        try:
            warp = smoothed @ np.linalg.inv(cumulative)
        except np.linalg.LinAlgError:
            logger.warning("Singular cumulative transform at frame %d, not warping",
                           self.frame_index)
            warp = identity()
        
        stabilized = self._apply_warp(frame.data, warp)
        center = self._project_center(frame, detection, warp)
        
        # Chain registration against the raw frame, never the warped one
        self._prev_features = features
        self.last_inter_frame = H_inter
        self.last_warp = warp
        self.last_report = report
        logger.debug("Frame report: %s", report.to_dict())
        
        if self.frame_index % self.log_interval == 0:
            logger.info("Frame %d | raw matches: %d | inliers: %d | cache hit: %s",
                        self.frame_index, report.matches, report.refined_inliers,
                        "yes" if cache_hit else "no")
        
        self.frame_index += 1
        return StabilizedFrame(stabilized, center, frame.pts_ns)
    
    def _start(
        self,
        frame: Frame,
        detection: DetectionResult,
        features: FeatureSet,
        report: FrameReport,
    ) -> StabilizedFrame:
        """Seed the trajectory and pass the first frame through."""
        self.trajectory.seed()
        self._prev_features = features
        self.state = StabilizerState.RUNNING
        self.last_inter_frame = identity()
        self.last_warp = identity()
        self.last_report = report
        self.frame_index = 1
        
        center = self._project_center(frame, detection, identity())
        return StabilizedFrame(frame.data.copy(), center, frame.pts_ns)
    
    def _register(self, features: FeatureSet, report: FrameReport) -> np.ndarray:
        """Estimate the previous-to-current homography, or identity on failure."""
        cfg = self.config
        matches = match_descriptors(
            self._prev_features.descriptors, features.descriptors, cfg.ratio_threshold
        )
        report.matches = len(matches)
        
        if len(matches) < cfg.min_inliers:
            report.fallback_reason = f"too few matches ({len(matches)})"
            logger.warning("Too few matches (%d) at frame %d - using identity",
                           len(matches), self.frame_index)
            return identity()
        
        pts_prev = self._prev_features.points([m.query_idx for m in matches])
        pts_curr = features.points([m.train_idx for m in matches])
        try:
            estimate = estimate_homography(
                pts_prev,
                pts_curr,
                min_inliers=cfg.min_inliers,
                ransac_threshold=cfg.ransac_reproj_threshold_px,
                ed_threshold=cfg.ed_threshold_px,
            )
        except RegistrationError as e:
            report.fallback_reason = str(e)
            logger.warning("ED-RANSAC failed at frame %d (%s) - using identity",
                           self.frame_index, e)
            return identity()
        
        report.ransac_inliers = estimate.ransac_inliers
        report.refined_inliers = estimate.refined_inliers
        return estimate.matrix
    
    @staticmethod
    def _apply_warp(data: np.ndarray, warp: np.ndarray) -> np.ndarray:
        """Warp pixels with edge replication; identity is an exact copy."""
        if is_identity(warp):
            return data.copy()
        h, w = data.shape[:2]
        return cv2.warpPerspective(
            data, warp, (w, h),
            flags=cv2.INTER_LINEAR,
            borderMode=cv2.BORDER_REPLICATE,
        )
    
    @staticmethod
    def _project_center(
        frame: Frame,
        detection: DetectionResult,
        warp: np.ndarray,
    ) -> tuple[float, float]:
        if not detection.valid:
            return frame.center
        return detection.project(warp, frame.width, frame.height).center


class PassThroughStabilizer(BaseStabilizer):
    """Forwards frames unchanged; the detection center is only clamped."""
    
    def stabilize(
        self,
        frame: Frame,
        detection: DetectionResult | None = None,
    ) -> StabilizedFrame:
        frame.validate()
        if detection is not None and detection.valid:
            center = detection.project(identity(), frame.width, frame.height).center
        else:
            center = frame.center
        return StabilizedFrame(frame.data, center, frame.pts_ns)
