"""Model hyperparameters for the tied-parameter CRF."""

from __future__ import annotations

from dataclasses import dataclass

# Character recognition setup: 26 letters, binary pixels.
NUM_HIDDEN_STATES = 26
NUM_OBSERVED_STATES = 2
LAMBDA = 0.003


@dataclass(frozen=True)
class ModelParams:
    """Hyperparameters shared by every instance of a CRF.

    Parameters
    ----------
    num_hidden_states : int
        Number of label values each hidden variable can take
    num_observed_states : int
        Number of values each observed image feature can take
    lam : float
        L2 regularization strength
    """

    num_hidden_states: int = NUM_HIDDEN_STATES
    num_observed_states: int = NUM_OBSERVED_STATES
    lam: float = LAMBDA

    def __post_init__(self):
        if self.num_hidden_states < 1:
            raise ValueError(f"num_hidden_states must be positive, got {self.num_hidden_states}")
        if self.num_observed_states < 1:
            raise ValueError(
                f"num_observed_states must be positive, got {self.num_observed_states}"
            )
        if self.lam < 0:
            raise ValueError(f"lam must be non-negative, got {self.lam}")
