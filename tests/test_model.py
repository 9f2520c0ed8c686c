"""
Tests for the CRF model class and synthetic data generation.
"""

import numpy as np
import pytest

from cliquecrf import CRF, ModelParams, datagen_ocr_instances, generate_all_features


@pytest.fixture
def params():
    return ModelParams(num_hidden_states=3, num_observed_states=2, lam=0.01)


@pytest.fixture
def instances():
    return datagen_ocr_instances(4, 3, 5, 3, 2, noise=0.05, seed=0)


class TestDatagen:
    def test_shapes_and_ranges(self):
        data = datagen_ocr_instances(3, 4, 6, 5, 2, seed=1)
        assert len(data) == 3
        for X, y in data:
            assert X.shape == (4, 6) and y.shape == (4,)
            assert X.dtype == np.int64 and y.dtype == np.int64
            assert X.min() >= 0 and X.max() < 2
            assert y.min() >= 0 and y.max() < 5
            np.testing.assert_array_equal(X[:, 0], 0)

    def test_reproducible(self):
        a = datagen_ocr_instances(2, 3, 4, 3, 2, seed=5)
        b = datagen_ocr_instances(2, 3, 4, 3, 2, seed=5)
        for (Xa, ya), (Xb, yb) in zip(a, b):
            np.testing.assert_array_equal(Xa, Xb)
            np.testing.assert_array_equal(ya, yb)


class TestCRF:
    def test_num_params(self, params):
        model = CRF(params, n_image_features=5)
        assert model.num_params == 3 * 2 * 5 + 3 + 9
        np.testing.assert_array_equal(model.theta, 0.0)

    def test_random_init(self, params):
        model = CRF(params, n_image_features=5, init_scale=0.1, seed=3)
        assert model.theta.std() > 0

    def test_nll_matches_evaluate(self, params, instances):
        model = CRF(params, n_image_features=5, init_scale=0.1)
        X, y = instances[0]
        nll, grad = model.evaluate(X, y)
        assert model.nll(X, y) == nll
        assert grad.shape == (model.num_params,)

    def test_gradient_descent_decreases_nll(self, params, instances):
        model = CRF(params, n_image_features=5)
        before = model.mean_nll(instances)
        convergence = model.learn_gd(instances, n_iter=10, learning_rate=0.2)
        assert convergence[0] == pytest.approx(before)
        assert model.mean_nll(instances) < before
        assert all(b < a for a, b in zip(convergence, convergence[1:]))

    def test_posterior_rows_sum_to_one(self, params, instances):
        model = CRF(params, n_image_features=5, init_scale=0.3)
        X, _ = instances[0]
        posterior = model.posterior(X)
        assert posterior.shape == (3, 3)
        np.testing.assert_allclose(posterior.sum(1), 1.0)

    def test_decode_matches_brute_force(self, params, instances, brute_force):
        model = CRF(params, n_image_features=5, init_scale=1.0, seed=11)
        X, _ = instances[1]
        feature_set = generate_all_features(X, params)
        truth = brute_force(feature_set.features, model.theta, 3, 3)
        np.testing.assert_array_equal(model.decode(X), truth.map_assignment())

    def test_training_improves_accuracy(self, params, instances):
        model = CRF(params, n_image_features=5)
        model.learn_gd(instances, n_iter=30, learning_rate=0.2)
        assert model.accuracy(instances) > 0.5

    @pytest.mark.parametrize("method", ["posterior", "decode"])
    def test_rejects_out_of_range_observations(self, method):
        model = CRF(ModelParams(num_hidden_states=2, num_observed_states=2), n_image_features=2)
        X = np.array([[0, 3], [0, 1]])
        with pytest.raises(ValueError, match="X values"):
            getattr(model, method)(X)
