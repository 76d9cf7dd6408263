"""
Descriptor matching with Lowe's ratio test.
"""

from dataclasses import dataclass

import cv2
import numpy as np


@dataclass(frozen=True)
class Correspondence:
    """A matched pair: query index into set A, train index into set B."""
    query_idx: int
    train_idx: int
    distance: float


def descriptor_norm(descriptors: np.ndarray) -> int:
    """Hamming distance for binary descriptors, L2 for float ones."""
    return cv2.NORM_HAMMING if descriptors.dtype == np.uint8 else cv2.NORM_L2


def match_descriptors(
    desc_a: np.ndarray | None,
    desc_b: np.ndarray | None,
    ratio: float = 0.75,
) -> list[Correspondence]:
    """
    Match every descriptor in A to its nearest neighbour in B.
    
    A match is kept only if best_distance < ratio * second_best_distance.
    Each descriptor in A yields at most one correspondence.
    
    Args:
        desc_a: (N, D) query descriptors
        desc_b: (M, D) train descriptors
        ratio: Ratio test threshold in (0, 1); lower is stricter
        
    Returns:
        List of correspondences, empty if A is empty or B has fewer than 2
        
    Raises:
        ValueError: If the two descriptor sets are incompatible
    """
    if not 0.0 < ratio < 1.0:
        raise ValueError(f"ratio must be in (0, 1), got {ratio}")
    if desc_a is None or desc_b is None or len(desc_a) == 0 or len(desc_b) < 2:
        return []
    if desc_a.dtype != desc_b.dtype or desc_a.shape[1:] != desc_b.shape[1:]:
        raise ValueError(
            f"Incompatible descriptors: {desc_a.dtype}{desc_a.shape[1:]} vs "
            f"{desc_b.dtype}{desc_b.shape[1:]}"
        )
    
    if desc_a.dtype != np.uint8:
        desc_a = desc_a.astype(np.float32)
        desc_b = desc_b.astype(np.float32)
    
    matcher = cv2.BFMatcher(descriptor_norm(desc_a), crossCheck=False)
    knn_matches = matcher.knnMatch(desc_a, desc_b, k=2)
    
    good = []
    for pair in knn_matches:
        if len(pair) < 2:
            continue
        best, second = pair[0], pair[1]
        if best.distance < ratio * second.distance:
            good.append(Correspondence(best.queryIdx, best.trainIdx, float(best.distance)))
    return good
