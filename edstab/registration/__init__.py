"""
Registration module - Feature matching, ED-RANSAC and stabilization.

This module provides:
- FeatureExtractor / ensure_features: ORB features cached per frame
- match_descriptors: Nearest-neighbour matching with Lowe's ratio test
- estimate_homography: Two-pass ED-RANSAC homography estimation
- Trajectory: Cumulative transforms with trailing-window smoothing
- EDRansacStabilizer: Stabilize frames and carry the object center along
- ObjectLocator: Find a reference object via verified homography

Example:
    >>> from edstab.registration import EDRansacStabilizer
    >>> stab = EDRansacStabilizer()
    >>> for frame in reader:
    ...     out = stab.stabilize(frame)
"""

from edstab.registration.features import FeatureExtractor, ensure_features
from edstab.registration.matcher import Correspondence, match_descriptors
from edstab.registration.homography import (
    HomographyEstimate,
    estimate_homography,
    reprojection_errors,
)
from edstab.registration.trajectory import Trajectory, accumulate, smooth
from edstab.registration.stabilizer import (
    EDRansacStabilizer,
    FrameReport,
    PassThroughStabilizer,
    StabilizerState,
)
from edstab.registration.locator import (
    FrameCenterLocator,
    ObjectLocator,
    ReferenceObject,
)

__all__ = [
    "FeatureExtractor",
    "ensure_features",
    "Correspondence",
    "match_descriptors",
    "HomographyEstimate",
    "estimate_homography",
    "reprojection_errors",
    "Trajectory",
    "accumulate",
    "smooth",
    "EDRansacStabilizer",
    "FrameReport",
    "PassThroughStabilizer",
    "StabilizerState",
    "FrameCenterLocator",
    "ObjectLocator",
    "ReferenceObject",
]
