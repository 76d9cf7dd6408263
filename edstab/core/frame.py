"""
Frame and result types passed between pipeline stages.

A Frame's pixels and timestamp are fixed once it is produced. Computed
features live in an explicit FeatureCache owned by the frame, so a later
stage can reuse what an earlier stage already extracted.
"""

from dataclasses import dataclass, field
from typing import Sequence

import cv2
import numpy as np

from edstab.core.errors import InvalidFrameError


@dataclass(eq=False)
class FeatureSet:
    """
    Keypoints paired 1:1 with their descriptors.
    
    Attributes:
        keypoints: Detected cv2.KeyPoint objects
        descriptors: (N, D) descriptor matrix, or None when N == 0
    """
    keypoints: tuple[cv2.KeyPoint, ...] = ()
    descriptors: np.ndarray | None = None
    
    def __post_init__(self):
        self.keypoints = tuple(self.keypoints)
        n_desc = 0 if self.descriptors is None else len(self.descriptors)
        if n_desc != len(self.keypoints):
            raise ValueError(
                f"{len(self.keypoints)} keypoints but {n_desc} descriptors"
            )
    
    def __len__(self) -> int:
        return len(self.keypoints)
    
    @property
    def is_empty(self) -> bool:
        return len(self.keypoints) == 0
    
    def points(self, indices: Sequence[int] | None = None) -> np.ndarray:
        """Return keypoint locations as an (N, 2) float32 array."""
        if indices is None:
            indices = range(len(self.keypoints))
        pts = [self.keypoints[i].pt for i in indices]
        return np.array(pts, dtype=np.float32).reshape(-1, 2)


@dataclass(eq=False)
class FeatureCache:
    """Mutable per-frame cache, written at most once per entry."""
    gray: np.ndarray | None = None
    features: FeatureSet | None = None
    hits: int = 0


@dataclass(frozen=True, eq=False)
class Frame:
    """
    A raw BGR frame with its capture timestamp.
    
    Example:
        >>> frame = Frame(image, pts_ns=33_366_667)
        >>> frame.width, frame.height
        (3840, 2160)
    """
    data: np.ndarray
    pts_ns: int = 0
    cache: FeatureCache = field(default_factory=FeatureCache, repr=False)
    
    @property
    def width(self) -> int:
        return int(self.data.shape[1]) if self._has_shape() else 0
    
    @property
    def height(self) -> int:
        return int(self.data.shape[0]) if self._has_shape() else 0
    
    @property
    def center(self) -> tuple[float, float]:
        """Geometric center of the frame in pixel coordinates."""
        return (self.width / 2.0, self.height / 2.0)
    
    @property
    def has_features(self) -> bool:
        return self.cache.features is not None
    
    def _has_shape(self) -> bool:
        return isinstance(self.data, np.ndarray) and self.data.ndim >= 2
    
    def validate(self) -> None:
        """
        Reject structurally invalid frames.
        
        Raises:
            InvalidFrameError: If the buffer is missing or empty, is not
                uint8 grayscale or BGR/BGRA, or has a zero dimension
        """
        if not isinstance(self.data, np.ndarray):
            raise InvalidFrameError("Frame has no pixel buffer")
        if self.data.ndim not in (2, 3):
            raise InvalidFrameError(f"Frame buffer has rank {self.data.ndim}")
        if self.data.ndim == 3 and self.data.shape[2] not in (3, 4):
            raise InvalidFrameError(f"Frame has {self.data.shape[2]} channels")
        if self.data.dtype != np.uint8:
            raise InvalidFrameError(f"Frame buffer has dtype {self.data.dtype}")
        if self.data.size == 0 or self.width == 0 or self.height == 0:
            raise InvalidFrameError(
                f"Frame has zero size ({self.width}x{self.height})"
            )
    
    def gray(self) -> np.ndarray:
        """Grayscale version of the frame, computed once."""
        if self.cache.gray is None:
            if self.data.ndim == 2:
                self.cache.gray = self.data
            elif self.data.shape[2] == 4:
                self.cache.gray = cv2.cvtColor(self.data, cv2.COLOR_BGRA2GRAY)
            else:
                self.cache.gray = cv2.cvtColor(self.data, cv2.COLOR_BGR2GRAY)
        return self.cache.gray


@dataclass(frozen=True)
class DetectionResult:
    """
    A detected object center in the current frame's pixel space.
    
    Instances are never mutated; projecting through a transform yields a
    new result.
    """
    center: tuple[float, float] = (0.0, 0.0)
    confidence: float = 0.0
    valid: bool = False
    
    @classmethod
    def invalid(cls) -> "DetectionResult":
        return cls()
    
    def project(
        self,
        transform: np.ndarray,
        width: int,
        height: int,
    ) -> "DetectionResult":
        """
        Map the center through a 3x3 transform and clamp it to the frame.
        
        Args:
            transform: 3x3 homography
            width: Frame width in pixels
            height: Frame height in pixels
            
        Returns:
            New DetectionResult with the projected, clamped center
        """
        x, y = project_point(transform, self.center)
        if not (np.isfinite(x) and np.isfinite(y)):
            x, y = width / 2.0, height / 2.0
        return DetectionResult(
            center=clamp_point((x, y), width, height),
            confidence=self.confidence,
            valid=self.valid,
        )


@dataclass
class StabilizedFrame:
    """A stabilized frame with the crop center in its coordinate space."""
    data: np.ndarray
    suggested_center: tuple[float, float]
    pts_ns: int = 0
    
    @property
    def width(self) -> int:
        return int(self.data.shape[1])
    
    @property
    def height(self) -> int:
        return int(self.data.shape[0])


@dataclass
class CroppedFrame:
    """Final output region cut from a stabilized frame."""
    data: np.ndarray
    src_roi: tuple[int, int, int, int]
    pts_ns: int = 0


def project_point(
    transform: np.ndarray,
    point: tuple[float, float],
) -> tuple[float, float]:
    """Apply a 3x3 projective transform to a single point."""
    src = np.array([[point]], dtype=np.float64)
    dst = cv2.perspectiveTransform(src, np.asarray(transform, dtype=np.float64))
    return float(dst[0, 0, 0]), float(dst[0, 0, 1])


def clamp_point(
    point: tuple[float, float],
    width: int,
    height: int,
) -> tuple[float, float]:
    """Clamp a point into [0, width-1] x [0, height-1]."""
    x = min(max(float(point[0]), 0.0), float(width - 1))
    y = min(max(float(point[1]), 0.0), float(height - 1))
    return (x, y)
