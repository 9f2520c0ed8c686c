"""Synthetic character-recognition data for the CRF."""

from __future__ import annotations

import numpy as np


def datagen_ocr_instances(
    n_instances: int,
    n_chars: int,
    n_image_features: int,
    num_hidden_states: int,
    num_observed_states: int,
    noise: float = 0.1,
    seed: int = 42,
) -> list[tuple[np.ndarray, np.ndarray]]:
    """Generate labeled character sequences from noisy per-label templates.

    Every hidden state owns a random template of observed states. A
    character's image is its label's template with each pixel replaced by a
    uniformly random state with probability noise.

    Parameters
    ----------
    n_instances : int
        Number of sequences to generate.
    n_chars : int
        Number of characters per sequence.
    n_image_features : int
        Number of observed features per character, including the intercept
        in column 0.
    num_hidden_states : int
        Number of labels.
    num_observed_states : int
        Number of values an image feature can take.
    noise : float, default=0.1
        Per-pixel corruption probability.
    seed : int, default=42
        Random seed for reproducibility.

    Returns
    -------
    instances : list of (X, y)
        X has shape (n_chars, n_image_features), y has shape (n_chars,)
    """
    assert n_instances > 0 and n_chars > 0 and n_image_features > 0
    assert 0.0 <= noise <= 1.0
    np.random.seed(seed)
    templates = np.random.randint(num_observed_states, size=(num_hidden_states, n_image_features))
    templates[:, 0] = 0  # intercept

    instances = []
    for _ in range(n_instances):
        y = np.random.randint(num_hidden_states, size=n_chars).astype(np.int64)
        X = templates[y].astype(np.int64)
        flip = np.random.random(X.shape) < noise
        flip[:, 0] = False
        X[flip] = np.random.randint(num_observed_states, size=flip.sum())
        instances.append((X, y))
    return instances
