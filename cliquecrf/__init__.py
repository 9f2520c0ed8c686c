"""Clique-tree CRF - exact likelihood and gradient for CRFs with tied parameters.

This package implements a discrete conditional random field where:
- Each feature is a binary indicator over the joint state of a few variables
- Many features share (tie) one parameter
- Inference is exact, by calibrating a clique tree with message passing

Main components:
- evaluate: negative log-likelihood and gradient of one labeled instance
- Factors: log-space factor tables, products and marginalization
- Inference: clique-tree construction, sum-product and max-product calibration
- CRF: model class with gradient-descent training and MAP decoding
- Data generation: utilities for generating synthetic character sequences
"""

from .config import ModelParams
from .datagen import datagen_ocr_instances
from .factors import (
    Factor,
    factor_marginalize,
    factor_product,
    factor_reorder,
    factors_from_features,
    logsumexp,
)
from .features import Feature, FeatureSet, count_params, generate_all_features
from .inference import (
    CliqueTree,
    calibrate,
    create_clique_tree,
    is_calibrated,
    variable_marginals,
)
from .learning import (
    empirical_counts,
    evaluate,
    evaluate_features,
    expected_counts,
    feature_counts,
    gradient,
    neg_log_likelihood,
    numerical_gradient,
    regularization_cost,
    regularization_gradient,
)
from .model import CRF
from .utils import assignment_to_index, index_to_assignment

__all__ = [
    # Main model
    "CRF",
    "ModelParams",
    # Likelihood and gradient
    "evaluate",
    "evaluate_features",
    "neg_log_likelihood",
    "gradient",
    "feature_counts",
    "empirical_counts",
    "expected_counts",
    "regularization_cost",
    "regularization_gradient",
    "numerical_gradient",
    # Features and factors
    "Feature",
    "FeatureSet",
    "generate_all_features",
    "count_params",
    "Factor",
    "factor_product",
    "factor_marginalize",
    "factor_reorder",
    "factors_from_features",
    "logsumexp",
    # Inference
    "CliqueTree",
    "create_clique_tree",
    "calibrate",
    "is_calibrated",
    "variable_marginals",
    # Utilities
    "assignment_to_index",
    "index_to_assignment",
    # Data generation
    "datagen_ocr_instances",
]

__version__ = "0.1.0"
