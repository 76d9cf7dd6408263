"""
Shared fixtures: synthetic frames and feature sets.

Features are injected straight into a frame's cache so registration can be
tested with known correspondences instead of ORB responses.
"""

import cv2
import numpy as np
import pytest

from edstab.core.frame import FeatureSet, Frame
from edstab.registration.features import FeatureExtractor


def _descriptors(n: int, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(n, 32), dtype=np.uint8)


def _features(points, descriptors) -> FeatureSet:
    keypoints = [cv2.KeyPoint(float(x), float(y), 7.0) for x, y in points]
    return FeatureSet(keypoints, descriptors)


def _grid(cols: int, rows: int, x0: float, y0: float, x1: float, y1: float) -> np.ndarray:
    xs = np.linspace(x0, x1, cols)
    ys = np.linspace(y0, y1, rows)
    return np.array([(x, y) for y in ys for x in xs], dtype=np.float32)


@pytest.fixture
def descriptors():
    """Factory for distinct random ORB-like binary descriptors."""
    return _descriptors


@pytest.fixture
def make_features():
    """Factory building a FeatureSet from points and descriptors."""
    return _features


@pytest.fixture
def grid_points():
    """Factory for a well-distributed grid of points."""
    return _grid


@pytest.fixture
def make_frame():
    """Factory for a noise-textured BGR frame, optionally with cached features."""
    def factory(width=100, height=100, pts_ns=0, features=None, seed=0):
        rng = np.random.default_rng(seed)
        data = rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)
        frame = Frame(data, pts_ns=pts_ns)
        if features is not None:
            frame.cache.features = features
        return frame
    return factory


class CountingExtractor(FeatureExtractor):
    """Extractor that records how often it computes features."""
    
    def __init__(self, max_features: int = 500):
        super().__init__(max_features)
        self.calls = 0
    
    def compute(self, gray):
        self.calls += 1
        return super().compute(gray)


@pytest.fixture
def counting_extractor():
    return CountingExtractor()
