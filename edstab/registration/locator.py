"""
Object localization against a fixed reference image.

The reference object's features are computed once. Each frame is matched
against them, the matches are verified with ED-RANSAC, and the reference
image's center is projected into the frame. Accepted centers are
exponentially smoothed across frames.
"""

import logging
from dataclasses import dataclass

import numpy as np

from edstab.core.base import BaseLocator
from edstab.core.config import EngineConfig
from edstab.core.errors import (
    InvalidFrameError,
    OutOfBoundsProjection,
    RegistrationError,
)
from edstab.core.frame import DetectionResult, FeatureSet, Frame, project_point
from edstab.registration.features import FeatureExtractor, ensure_features
from edstab.registration.homography import estimate_homography
from edstab.registration.matcher import match_descriptors

logger = logging.getLogger(__name__)


@dataclass
class ReferenceObject:
    """Features and size of the reference image of the tracked object."""
    features: FeatureSet
    width: int
    height: int
    
    @property
    def center(self) -> tuple[float, float]:
        return (self.width / 2.0, self.height / 2.0)
    
    @classmethod
    def from_image(
        cls,
        image: np.ndarray,
        extractor: FeatureExtractor,
    ) -> "ReferenceObject":
        """
        Compute the reference feature set from an image.
        
        Args:
            image: BGR or grayscale reference image
            extractor: Extractor shared with the per-frame pipeline
            
        Raises:
            ValueError: If the image is empty, malformed or yields no keypoints
        """
        if image is None or image.size == 0:
            raise ValueError("Reference image is empty")
        frame = Frame(image)
        try:
            frame.validate()
        except InvalidFrameError as e:
            raise ValueError(f"Unusable reference image: {e}") from e
        features = extractor.compute(frame.gray())
        if features.is_empty:
            raise ValueError("No keypoints found in reference image")
        logger.info("Reference object: %d keypoints, %dx%d",
                    len(features), frame.width, frame.height)
        return cls(features, frame.width, frame.height)


class ObjectLocator(BaseLocator):
    """
    Homography-verified reference object locator.
    
    Example:
        >>> extractor = FeatureExtractor(2000)
        >>> ref = ReferenceObject.from_image(cv2.imread("object.jpg"), extractor)
        >>> locator = ObjectLocator(ref, extractor)
        >>> result = locator.locate(frame)
        >>> if result.valid:
        ...     print(result.center, result.confidence)
    """
    
    def __init__(
        self,
        reference: ReferenceObject,
        extractor: FeatureExtractor | None = None,
        config: EngineConfig | None = None,
    ):
        self.reference = reference
        self.config = (config or EngineConfig()).validate()
        self.extractor = extractor or FeatureExtractor(self.config.detector_feature_cap)
        self.smoothed_center: tuple[float, float] | None = None
        self.last_error: RegistrationError | None = None
    
    def reset(self) -> None:
        self.smoothed_center = None
        self.last_error = None
    
    def locate(self, frame: Frame) -> DetectionResult:
        """
        Find the reference object in a frame.
        
        Raises:
            InvalidFrameError: If the frame has no usable pixels
        """
        frame.validate()
        features = ensure_features(frame, self.extractor)
        try:
            center, confidence = self._measure(frame, features)
        except RegistrationError as e:
            self.last_error = e
            logger.debug("Object not located at %d ns: %s", frame.pts_ns, e)
            return DetectionResult.invalid()
        
        self.last_error = None
        alpha = self.config.detection_smoothing_alpha
        if self.smoothed_center is None:
            self.smoothed_center = center
        else:
            px, py = self.smoothed_center
            self.smoothed_center = (
                alpha * center[0] + (1.0 - alpha) * px,
                alpha * center[1] + (1.0 - alpha) * py,
            )
        return DetectionResult(self.smoothed_center, confidence, True)
    
    def _measure(
        self,
        frame: Frame,
        features: FeatureSet,
    ) -> tuple[tuple[float, float], float]:
        """Raw projected center and confidence for one frame."""
        cfg = self.config
        ref = self.reference.features
        matches = match_descriptors(features.descriptors, ref.descriptors,
                                    cfg.ratio_threshold)
        
        pts_ref = ref.points([m.train_idx for m in matches])
        pts_frame = features.points([m.query_idx for m in matches])
        estimate = estimate_homography(
            pts_ref,
            pts_frame,
            min_inliers=cfg.min_inliers,
            ransac_threshold=cfg.ransac_reproj_threshold_px,
            ed_threshold=cfg.ed_threshold_px,
        )
        
        x, y = project_point(estimate.matrix, self.reference.center)
        if not (np.isfinite(x) and np.isfinite(y)
                and 0 <= x < frame.width and 0 <= y < frame.height):
            raise OutOfBoundsProjection((x, y), frame.width, frame.height)
        
        confidence = min(max(estimate.refined_inliers / len(matches), 0.0), 1.0)
        return (x, y), confidence


class FrameCenterLocator(BaseLocator):
    """Always reports the frame's geometric center."""
    
    def locate(self, frame: Frame) -> DetectionResult:
        frame.validate()
        return DetectionResult(frame.center, 1.0, True)
