"""
Tests for indicator features and the character CRF feature generator.
"""

import numpy as np
import pytest

from cliquecrf import Feature, FeatureSet, ModelParams, count_params, generate_all_features


class TestFeature:
    def test_is_active(self):
        feature = Feature((0, 2), (1, 0), 4)
        assert feature.is_active([1, 5, 0])
        assert not feature.is_active([1, 5, 1])

    def test_param_groups_collect_tied_features(self):
        features = (
            Feature((0,), (0,), 1),
            Feature((1,), (0,), 0),
            Feature((2,), (0,), 1),
        )
        feature_set = FeatureSet(num_params=3, features=features)
        assert feature_set.param_groups() == {1: [0, 2], 0: [1]}
        np.testing.assert_array_equal(feature_set.param_indices, [1, 0, 1])


class TestGenerateAllFeatures:
    def setup_method(self):
        self.params = ModelParams(num_hidden_states=3, num_observed_states=2, lam=0.0)
        self.X = np.array([[0, 1, 0, 1], [0, 0, 1, 1], [0, 1, 1, 0]], dtype=np.int64)

    def test_num_params(self):
        feature_set = generate_all_features(self.X, self.params)
        assert feature_set.num_params == count_params(self.params, 4) == 3 * 2 * 4 + 3 + 9

    def test_feature_counts_per_family(self):
        feature_set = generate_all_features(self.X, self.params)
        n_chars, n_image_features, K = 3, 4, 3
        expected = n_chars * n_image_features * K + n_chars * K + (n_chars - 1) * K * K
        assert len(feature_set.features) == expected

    def test_param_indices_in_range(self):
        feature_set = generate_all_features(self.X, self.params)
        indices = feature_set.param_indices
        assert indices.min() >= 0
        assert indices.max() < feature_set.num_params

    def test_pair_features_tied_across_positions(self):
        feature_set = generate_all_features(self.X, self.params)
        pairs = [f for f in feature_set.features if len(f.scope) == 2]
        by_assignment = {}
        for f in pairs:
            by_assignment.setdefault(f.assignment, set()).add(f.param_idx)
        assert len(by_assignment) == 9
        assert all(len(indices) == 1 for indices in by_assignment.values())
        groups = feature_set.param_groups()
        assert all(len(groups[next(iter(p))]) == 2 for p in by_assignment.values())

    def test_conditioned_singletons_follow_observations(self):
        feature_set = generate_all_features(self.X, self.params)
        # characters 0 and 2 both observe 1 at pixel 1 and share parameters there
        first = [f.param_idx for f in feature_set.features[:12] if f.scope == (0,)]
        third = [f.param_idx for f in feature_set.features[24:36] if f.scope == (2,)]
        assert first[3:6] == third[3:6]
        second = [f.param_idx for f in feature_set.features[12:24]]
        assert first[3:6] != second[3:6]

    @pytest.mark.parametrize("n_chars", [1, 2, 5])
    def test_every_character_covered(self, n_chars):
        X = np.zeros((n_chars, 2), dtype=np.int64)
        feature_set = generate_all_features(X, self.params)
        covered = {v for f in feature_set.features for v in f.scope}
        assert covered == set(range(n_chars))
