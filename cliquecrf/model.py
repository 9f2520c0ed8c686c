"""CRF model class for character-sequence labeling."""

from __future__ import annotations

import logging
import sys

import numpy as np
from tqdm import trange

from .factors import factors_from_features
from .features import count_params, generate_all_features
from .inference import calibrate, create_clique_tree, variable_marginals
from .learning import evaluate
from .utils import validate_observations

logger = logging.getLogger(__name__)


class CRF:
    """Chain CRF over characters with parameters tied across positions.

    Parameters
    ----------
    model_params : ModelParams
        Number of hidden/observed states and regularization strength
    n_image_features : int
        Number of observed features per character, including the intercept
    init_scale : float, default=0.0
        Standard deviation of the random initial parameters
    seed : int, default=42
        Random seed for initialization
    """

    def __init__(self, model_params, n_image_features, init_scale=0.0, seed=42):
        """Construct a CRF object."""
        np.random.seed(seed)
        assert n_image_features > 0
        assert init_scale >= 0.0, "The initialization scale should be non-negative"
        self.model_params = model_params
        self.n_image_features = n_image_features
        self.num_params = count_params(model_params, n_image_features)
        self.theta = init_scale * np.random.randn(self.num_params)
        logger.info("CRF with %d tied parameters", self.num_params)

    def evaluate(self, X, y):
        """Negative log-likelihood of (X, y) and its gradient w.r.t. theta."""
        return evaluate(X, y, self.theta, self.model_params)

    def nll(self, X, y):
        return self.evaluate(X, y)[0]

    def mean_nll(self, instances):
        """Average NLL over a list of (X, y) pairs."""
        return float(np.mean([self.nll(X, y) for X, y in instances]))

    def learn_gd(self, instances, n_iter=100, learning_rate=0.1, term_early=True):
        """Fit theta by full-batch gradient descent on the mean NLL.

        Parameters
        ----------
        instances : list of (np.ndarray, np.ndarray)
            Training pairs (X, y)
        n_iter : int, default=100
            Maximum number of gradient steps
        learning_rate : float, default=0.1
            Step size
        term_early : bool, default=True
            If True, terminate when the mean NLL stops decreasing

        Returns
        -------
        convergence : list
            Mean NLL before each step
        """
        assert len(instances) > 0 and n_iter > 0
        sys.stdout.flush()
        convergence = []
        pbar = trange(n_iter, position=0)
        nll_old = np.inf
        for _ in pbar:
            nll = 0.0
            grad = np.zeros(self.num_params)
            for X, y in instances:
                nll_i, grad_i = self.evaluate(X, y)
                nll += nll_i
                grad += grad_i
            nll /= len(instances)
            grad /= len(instances)
            convergence.append(nll)
            pbar.set_postfix(train_nll=nll)
            if nll >= nll_old and term_early:
                break
            nll_old = nll
            self.theta = self.theta - learning_rate * grad
        logger.info("Gradient descent stopped after %d steps, nll=%.4f", len(convergence), nll)
        return convergence

    def _calibrated(self, X, is_max):
        X = np.asarray(X)
        validate_observations(X, self.model_params)
        assert X.shape[1] == self.n_image_features
        feature_set = generate_all_features(X, self.model_params)
        factors = factors_from_features(
            feature_set.features, self.theta, self.model_params.num_hidden_states
        )
        tree, _ = calibrate(create_clique_tree(factors), is_max=is_max)
        return tree

    def posterior(self, X):
        """Marginal distribution of every character's label.

        Returns
        -------
        marginals : np.ndarray
            Shape (n_chars, num_hidden_states)
        """
        return variable_marginals(self._calibrated(X, is_max=False), len(X))

    def decode(self, X):
        """Compute the MAP labels using max-product calibration.

        Returns
        -------
        labels : np.ndarray
            Shape (n_chars,)
        """
        max_marginals = variable_marginals(self._calibrated(X, is_max=True), len(X), is_max=True)
        return max_marginals.argmax(1)

    def accuracy(self, instances):
        """Fraction of characters whose decoded label is correct."""
        correct = total = 0
        for X, y in instances:
            correct += int((self.decode(X) == np.asarray(y)).sum())
            total += len(y)
        return correct / total
