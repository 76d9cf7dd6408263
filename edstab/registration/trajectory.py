"""
Cumulative camera trajectory and causal smoothing.

Entry i of a trajectory maps frame 0's coordinate space into frame i's.
Smoothing is an entry-wise arithmetic mean of the 3x3 matrices over a
trailing window. This is not a true mean of projective transforms; it is
accurate enough for the small inter-frame motion of a distant scene, and
drift grows with the window radius.
"""

from typing import Sequence

import numpy as np


def identity() -> np.ndarray:
    return np.eye(3, dtype=np.float64)


def accumulate(prev_cumulative: np.ndarray, inter_frame: np.ndarray) -> np.ndarray:
    """New cumulative transform: inter_frame composed after prev_cumulative."""
    return np.asarray(inter_frame, dtype=np.float64) @ np.asarray(prev_cumulative, dtype=np.float64)


def smooth(transforms: Sequence[np.ndarray], index: int, radius: int) -> np.ndarray:
    """
    Trailing-window mean of transforms[max(0, index - radius) : index + 1].
    
    Args:
        transforms: Cumulative transforms
        index: Index of the current entry
        radius: Number of earlier entries to include; 0 disables averaging
        
    Returns:
        Entry-wise mean 3x3 matrix
    """
    if radius < 0:
        raise ValueError(f"radius must be >= 0, got {radius}")
    if not 0 <= index < len(transforms):
        raise IndexError(f"index {index} out of range for {len(transforms)} transforms")
    
    start = max(0, index - radius)
    window = np.stack(transforms[start:index + 1])
    return window.mean(axis=0)


class Trajectory:
    """
    Append-only list of cumulative transforms, one per processed frame.
    
    Example:
        >>> traj = Trajectory()
        >>> traj.seed()
        >>> traj.accumulate(H_01)
        >>> smoothed = traj.smooth(len(traj) - 1, radius=15)
    """
    
    def __init__(self):
        self._transforms: list[np.ndarray] = []
    
    def __len__(self) -> int:
        return len(self._transforms)
    
    def __getitem__(self, index: int) -> np.ndarray:
        return self._transforms[index].copy()
    
    @property
    def current(self) -> np.ndarray:
        """The most recent cumulative transform."""
        if not self._transforms:
            raise IndexError("Trajectory is empty")
        return self._transforms[-1].copy()
    
    def seed(self) -> np.ndarray:
        """Start a fresh trajectory at the identity."""
        self._transforms = [identity()]
        return identity()
    
    def accumulate(self, inter_frame: np.ndarray) -> np.ndarray:
        """
        Append the composition of inter_frame with the current entry.
        
        Raises:
            ValueError: If the trajectory has not been seeded
        """
        if not self._transforms:
            raise ValueError("Trajectory has not been seeded")
        cumulative = accumulate(self._transforms[-1], inter_frame)
        self._transforms.append(cumulative)
        return cumulative.copy()
    
    def smooth(self, index: int, radius: int) -> np.ndarray:
        """Smoothed cumulative transform at index over a trailing radius."""
        return smooth(self._transforms, index, radius)
    
    def clear(self) -> None:
        self._transforms.clear()
