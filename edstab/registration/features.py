"""
Keypoint detection and the per-frame feature cache.

A single FeatureExtractor is shared by the locator and the stabilizer so
that features cached on a frame by one stage are valid for the other.
"""

import logging

import cv2
import numpy as np

from edstab.core.frame import FeatureSet, Frame

logger = logging.getLogger(__name__)


class FeatureExtractor:
    """
    ORB keypoint detector and binary descriptor extractor.
    
    Attributes:
        max_features: Maximum number of keypoints retained per image
        
    Example:
        >>> extractor = FeatureExtractor(max_features=2000)
        >>> features = extractor.compute(gray)
        >>> len(features) <= 2000
        True
    """
    
    def __init__(self, max_features: int = 2000, **orb_params):
        """
        Initialize the extractor.
        
        Args:
            max_features: Maximum number of keypoints per image
            **orb_params: Extra keyword arguments for cv2.ORB_create
        """
        self.max_features = max_features
        self._orb = cv2.ORB_create(nfeatures=max_features, **orb_params)
    
    def compute(self, gray: np.ndarray) -> FeatureSet:
        """Detect keypoints and compute descriptors on a grayscale image."""
        keypoints, descriptors = self._orb.detectAndCompute(gray, None)
        if descriptors is None or len(keypoints) == 0:
            return FeatureSet()
        return FeatureSet(keypoints, descriptors)


def ensure_features(frame: Frame, extractor: FeatureExtractor) -> FeatureSet:
    """
    Return the frame's features, computing and caching them on first use.
    
    Subsequent calls on the same frame return the cached set without
    touching the extractor, whichever stage computed it first.
    
    Args:
        frame: Frame whose cache is consulted and, if empty, filled
        extractor: Extractor used when nothing is cached yet
        
    Returns:
        The frame's FeatureSet
        
    Raises:
        InvalidFrameError: If the frame has no usable pixels
    """
    cache = frame.cache
    if cache.features is not None:
        cache.hits += 1
        return cache.features
    
    frame.validate()
    cache.features = extractor.compute(frame.gray())
    logger.debug("Computed %d features for frame at %d ns",
                 len(cache.features), frame.pts_ns)
    return cache.features
