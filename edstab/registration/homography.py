"""
Two-pass robust homography estimation (ED-RANSAC).

Pass 1 runs RANSAC at a loose pixel threshold. Pass 2 reprojects the
RANSAC inliers through the pass-1 model and keeps only those within a much
tighter Euclidean distance, removing the false positives RANSAC accepts at
its own threshold. The final model is an ordinary least-squares fit over
the points that survive both passes.
"""

from dataclasses import dataclass

import cv2
import numpy as np

from edstab.core.errors import (
    DegenerateGeometry,
    InsufficientCorrespondences,
    InsufficientInliers,
)


@dataclass
class HomographyEstimate:
    """
    Result of a successful ED-RANSAC estimation.
    
    Attributes:
        matrix: Final 3x3 homography mapping A into B
        ransac_matrix: Pass-1 RANSAC homography
        total: Number of input correspondences
        ransac_inliers: Correspondences kept by pass 1
        refined_inliers: Correspondences kept by pass 2
        inlier_mask: Boolean mask over the input marking the refined set
    """
    matrix: np.ndarray
    ransac_matrix: np.ndarray
    total: int
    ransac_inliers: int
    refined_inliers: int
    inlier_mask: np.ndarray


def reprojection_errors(
    homography: np.ndarray,
    pts_a: np.ndarray,
    pts_b: np.ndarray,
) -> np.ndarray:
    """Euclidean distance between H(pts_a) and pts_b, per point."""
    pts_a = np.asarray(pts_a, dtype=np.float64).reshape(-1, 1, 2)
    pts_b = np.asarray(pts_b, dtype=np.float64).reshape(-1, 2)
    if len(pts_a) == 0:
        return np.zeros(0)
    projected = cv2.perspectiveTransform(pts_a, homography).reshape(-1, 2)
    return np.linalg.norm(projected - pts_b, axis=1)


def _normalize(homography: np.ndarray | None) -> np.ndarray | None:
    """Scale so H[2, 2] == 1; None if the matrix is unusable."""
    if homography is None or homography.shape != (3, 3):
        return None
    if not np.all(np.isfinite(homography)) or abs(homography[2, 2]) < 1e-12:
        return None
    homography = homography / homography[2, 2]
    if abs(np.linalg.det(homography)) < 1e-12:
        return None
    return homography


def _find_homography(pts_a, pts_b, method, threshold=0.0):
    try:
        return cv2.findHomography(pts_a, pts_b, method, threshold)
    except cv2.error as e:
        raise DegenerateGeometry(f"Homography fit failed: {e}") from e


def estimate_homography(
    pts_a: np.ndarray,
    pts_b: np.ndarray,
    min_inliers: int = 10,
    ransac_threshold: float = 3.0,
    ed_threshold: float = 0.5,
) -> HomographyEstimate:
    """
    Estimate the homography mapping pts_a onto pts_b.
    
    Args:
        pts_a: (N, 2) source points
        pts_b: (N, 2) destination points
        min_inliers: Minimum points required at every gate
        ransac_threshold: Pass-1 RANSAC reprojection threshold in pixels
        ed_threshold: Pass-2 Euclidean distance threshold in pixels
        
    Returns:
        HomographyEstimate with the least-squares model over the clean set
        
    Raises:
        ValueError: If the point arrays differ in length
        InsufficientCorrespondences: If fewer than min_inliers points are given
        DegenerateGeometry: If no model could be fitted
        InsufficientInliers: If either pass leaves fewer than min_inliers points
    """
    pts_a = np.asarray(pts_a, dtype=np.float32).reshape(-1, 2)
    pts_b = np.asarray(pts_b, dtype=np.float32).reshape(-1, 2)
    if len(pts_a) != len(pts_b):
        raise ValueError(f"Point count mismatch: {len(pts_a)} vs {len(pts_b)}")
    
    total = len(pts_a)
    if total < max(min_inliers, 4):
        raise InsufficientCorrespondences(total, max(min_inliers, 4))
    
    # Pass 1: RANSAC
    H, mask = _find_homography(pts_a, pts_b, cv2.RANSAC, ransac_threshold)
    H = _normalize(H)
    if H is None or mask is None:
        raise DegenerateGeometry("RANSAC found no consistent model")
    
    ransac_mask = mask.ravel().astype(bool)
    ransac_count = int(ransac_mask.sum())
    if ransac_count < min_inliers:
        raise InsufficientInliers("ransac", ransac_count, min_inliers)
    
    # Pass 2: Euclidean distance filter over the RANSAC inliers
    errors = np.full(total, np.inf)
    errors[ransac_mask] = reprojection_errors(H, pts_a[ransac_mask], pts_b[ransac_mask])
    refined_mask = errors <= ed_threshold
    refined_count = int(refined_mask.sum())
    if refined_count < min_inliers:
        raise InsufficientInliers("euclidean", refined_count, min_inliers)
    
    # Final: plain least squares on the clean set
    H_final, _ = _find_homography(pts_a[refined_mask], pts_b[refined_mask], 0)
    H_final = _normalize(H_final)
    if H_final is None:
        raise DegenerateGeometry("Least-squares refit produced no model")
    
    return HomographyEstimate(
        matrix=H_final,
        ransac_matrix=H,
        total=total,
        ransac_inliers=ransac_count,
        refined_inliers=refined_count,
        inlier_mask=refined_mask,
    )
