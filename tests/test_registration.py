"""
Tests for feature caching, matching, ED-RANSAC and trajectories.
"""

import cv2
import numpy as np
import pytest

from edstab.core.errors import (
    DegenerateGeometry,
    InsufficientCorrespondences,
    InsufficientInliers,
    InvalidFrameError,
    RegistrationError,
)
from edstab.core.frame import FeatureSet, Frame
from edstab.registration.features import FeatureExtractor, ensure_features
from edstab.registration.homography import estimate_homography, reprojection_errors
from edstab.registration.matcher import match_descriptors
from edstab.registration.trajectory import Trajectory, accumulate, smooth


H_TRUE = np.array([
    [1.01, 0.02, 3.0],
    [-0.015, 0.99, -2.0],
    [1e-5, 2e-5, 1.0],
])


def project(H, pts):
    pts = np.asarray(pts, dtype=np.float64).reshape(-1, 1, 2)
    return cv2.perspectiveTransform(pts, H).reshape(-1, 2)


def translation(dx, dy):
    return np.array([[1.0, 0.0, dx], [0.0, 1.0, dy], [0.0, 0.0, 1.0]])


class TestFeatureCache:
    """Tests for ensure_features."""
    
    def test_computed_once(self, make_frame, counting_extractor):
        frame = make_frame(200, 200)
        first = ensure_features(frame, counting_extractor)
        second = ensure_features(frame, counting_extractor)
        
        assert counting_extractor.calls == 1
        assert first is second
        assert frame.cache.hits == 1
    
    def test_injected_features_returned_unchanged(self, make_frame, counting_extractor):
        injected = FeatureSet()
        frame = make_frame(features=injected)
        
        assert ensure_features(frame, counting_extractor) is injected
        assert counting_extractor.calls == 0
    
    def test_invalid_frame_rejected_before_extraction(self, counting_extractor):
        frame = Frame(np.zeros((0, 0, 3), dtype=np.uint8))
        with pytest.raises(InvalidFrameError):
            ensure_features(frame, counting_extractor)
        assert counting_extractor.calls == 0
        assert frame.cache.features is None
    
    def test_orb_respects_feature_cap(self, make_frame):
        extractor = FeatureExtractor(max_features=50)
        features = ensure_features(make_frame(320, 240), extractor)
        
        assert 0 < len(features) <= 50
        assert features.descriptors.dtype == np.uint8
        assert features.descriptors.shape == (len(features), 32)
        assert features.points().shape == (len(features), 2)
    
    def test_blank_frame_has_no_features(self):
        frame = Frame(np.zeros((120, 160, 3), dtype=np.uint8))
        features = ensure_features(frame, FeatureExtractor(100))
        assert features.is_empty
        assert features.descriptors is None
    
    def test_mismatched_feature_set(self, descriptors):
        with pytest.raises(ValueError):
            FeatureSet([cv2.KeyPoint(1.0, 2.0, 7.0)], descriptors(2))


class TestMatcher:
    """Tests for match_descriptors and the ratio test."""
    
    def test_identical_sets_match_one_to_one(self, descriptors):
        desc = descriptors(40)
        matches = match_descriptors(desc, desc.copy())
        
        assert len(matches) == 40
        assert all(m.query_idx == m.train_idx for m in matches)
        assert all(m.distance == 0 for m in matches)
    
    def test_permuted_sets(self, descriptors):
        desc = descriptors(30, seed=3)
        order = np.random.default_rng(1).permutation(30)
        matches = match_descriptors(desc, desc[order])
        
        assert len(matches) == 30
        for m in matches:
            assert order[m.train_idx] == m.query_idx
    
    def test_at_most_one_match_per_query(self, descriptors):
        desc_a = descriptors(25, seed=1)
        desc_b = np.vstack([desc_a, descriptors(25, seed=2)])
        matches = match_descriptors(desc_a, desc_b)
        queries = [m.query_idx for m in matches]
        assert len(queries) == len(set(queries))
    
    def test_ambiguous_match_rejected(self, descriptors):
        d = descriptors(1)
        matches = match_descriptors(d, np.vstack([d, d]))
        assert matches == []
    
    def test_empty_inputs(self, descriptors):
        desc = descriptors(5)
        assert match_descriptors(None, desc) == []
        assert match_descriptors(desc[:0], desc) == []
        assert match_descriptors(desc, desc[:1]) == []
        assert match_descriptors(desc, None) == []
    
    def test_float_descriptors_use_l2(self):
        a = np.array([[0.0, 0.0], [10.0, 10.0]], dtype=np.float32)
        b = np.array([[0.1, 0.0], [10.0, 10.2], [50.0, 50.0]], dtype=np.float32)
        matches = match_descriptors(a, b)
        assert [(m.query_idx, m.train_idx) for m in matches] == [(0, 0), (1, 1)]
    
    def test_invalid_ratio(self, descriptors):
        with pytest.raises(ValueError):
            match_descriptors(descriptors(5), descriptors(5), ratio=1.5)
    
    def test_incompatible_descriptors(self, descriptors):
        with pytest.raises(ValueError):
            match_descriptors(descriptors(5), descriptors(5)[:, :16])


class TestEDRansac:
    """Tests for estimate_homography."""
    
    def test_recovers_known_homography_with_outliers(self):
        rng = np.random.default_rng(11)
        pts_a = rng.uniform((0, 0), (640, 480), size=(60, 2))
        pts_b = project(H_TRUE, pts_a)
        outliers = rng.uniform((0, 0), (640, 480), size=(20, 2))
        pts_a = np.vstack([pts_a, rng.uniform((0, 0), (640, 480), size=(20, 2))])
        pts_b = np.vstack([pts_b, outliers])
        
        est = estimate_homography(pts_a, pts_b)
        
        held_out = rng.uniform((0, 0), (640, 480), size=(50, 2))
        errors = reprojection_errors(est.matrix, held_out, project(H_TRUE, held_out))
        assert errors.max() < 0.1
        assert est.total == 80
        assert est.refined_inliers >= 60
        assert est.matrix[2, 2] == pytest.approx(1.0)
    
    def test_euclidean_pass_tightens_estimate(self):
        rng = np.random.default_rng(5)
        pts_a = rng.uniform((0, 0), (640, 480), size=(80, 2))
        noise = np.clip(rng.normal(0.0, 0.05, size=(80, 2)), -0.15, 0.15)
        pts_b = project(H_TRUE, pts_a) + noise
        
        # Near-outliers inside the RANSAC threshold but outside the ED one
        angles = rng.uniform(0, 2 * np.pi, size=20)
        pts_b[:20] += 2.5 * np.column_stack([np.cos(angles), np.sin(angles)])
        
        est = estimate_homography(pts_a, pts_b, min_inliers=10,
                                  ransac_threshold=3.0, ed_threshold=0.5)
        
        gx, gy = np.meshgrid(np.linspace(0, 640, 10), np.linspace(0, 480, 10))
        held_out = np.column_stack([gx.ravel(), gy.ravel()])
        truth = project(H_TRUE, held_out)
        ransac_error = reprojection_errors(est.ransac_matrix, held_out, truth).mean()
        final_error = reprojection_errors(est.matrix, held_out, truth).mean()
        
        assert final_error < ransac_error
        assert est.refined_inliers < est.ransac_inliers
        assert not est.inlier_mask[:20].any()
    
    def test_translation(self, grid_points):
        pts_a = grid_points(10, 5, 10, 10, 80, 90)
        est = estimate_homography(pts_a, pts_a + (5.0, 0.0))
        
        assert est.matrix[0, 2] == pytest.approx(5.0, abs=0.5)
        assert est.matrix[1, 2] == pytest.approx(0.0, abs=0.5)
        np.testing.assert_allclose(est.matrix[:2, :2], np.eye(2), atol=1e-3)
    
    @pytest.mark.parametrize("count", [0, 1, 4, 9])
    def test_too_few_correspondences(self, count):
        pts = np.random.default_rng(0).uniform(0, 100, size=(count, 2))
        with pytest.raises(InsufficientCorrespondences):
            estimate_homography(pts, pts, min_inliers=10)
    
    def test_random_correspondences_rejected(self):
        rng = np.random.default_rng(2)
        pts_a = rng.uniform((0, 0), (640, 480), size=(40, 2))
        pts_b = rng.uniform((0, 0), (640, 480), size=(40, 2))
        with pytest.raises((InsufficientInliers, DegenerateGeometry)):
            estimate_homography(pts_a, pts_b, min_inliers=10)
    
    def test_collinear_points_fail(self):
        xs = np.linspace(0, 100, 20)
        pts = np.column_stack([xs, 2 * xs + 1])
        with pytest.raises(RegistrationError):
            estimate_homography(pts, pts + 1.0, min_inliers=10)
    
    def test_euclidean_gate(self):
        rng = np.random.default_rng(9)
        pts_a = rng.uniform((0, 0), (640, 480), size=(30, 2))
        angles = rng.uniform(0, 2 * np.pi, size=30)
        pts_b = project(H_TRUE, pts_a) + 2.0 * np.column_stack([np.cos(angles), np.sin(angles)])
        
        with pytest.raises(InsufficientInliers) as exc_info:
            estimate_homography(pts_a, pts_b, min_inliers=10,
                                ransac_threshold=10.0, ed_threshold=0.5)
        assert exc_info.value.stage == "euclidean"
    
    def test_length_mismatch(self):
        with pytest.raises(ValueError):
            estimate_homography(np.zeros((12, 2)), np.zeros((11, 2)))


class TestTrajectory:
    """Tests for trajectory accumulation and smoothing."""
    
    def test_accumulate_order(self):
        T1 = H_TRUE
        T2 = translation(4.0, -1.0) @ np.diag([1.1, 0.9, 1.0])
        result = accumulate(accumulate(np.eye(3), T1), T2)
        np.testing.assert_allclose(result, T2 @ T1 @ np.eye(3))
    
    def test_trajectory_starts_at_identity(self):
        traj = Trajectory()
        traj.seed()
        traj.accumulate(translation(5.0, 0.0))
        traj.accumulate(translation(5.0, 2.0))
        
        assert len(traj) == 3
        np.testing.assert_array_equal(traj[0], np.eye(3))
        np.testing.assert_allclose(traj.current, translation(10.0, 2.0))
    
    def test_zero_radius_is_current(self):
        traj = Trajectory()
        traj.seed()
        traj.accumulate(H_TRUE)
        traj.accumulate(translation(1.5, -3.0))
        np.testing.assert_array_equal(traj.smooth(2, 0), traj[2])
    
    def test_trailing_window_mean(self):
        transforms = [translation(float(i), 0.0) for i in range(6)]
        np.testing.assert_allclose(smooth(transforms, 5, 2), translation(4.0, 0.0))
        np.testing.assert_allclose(smooth(transforms, 1, 15), translation(0.5, 0.0))
    
    def test_unseeded_accumulate(self):
        with pytest.raises(ValueError):
            Trajectory().accumulate(np.eye(3))
    
    def test_invalid_smoothing_arguments(self):
        transforms = [np.eye(3)]
        with pytest.raises(ValueError):
            smooth(transforms, 0, -1)
        with pytest.raises(IndexError):
            smooth(transforms, 1, 0)
    
    def test_entries_are_copies(self):
        traj = Trajectory()
        traj.seed()
        traj[0][0, 2] = 99.0
        np.testing.assert_array_equal(traj[0], np.eye(3))
