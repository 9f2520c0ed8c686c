"""Log-space discrete factors and the operations used by clique-tree inference."""

from __future__ import annotations

import numpy as np

from .utils import assignment_to_index


def logsumexp(a, axis=None):
    """Stable log(sum(exp(a))) over the given axes; all -inf inputs give -inf."""
    a = np.asarray(a, dtype=np.float64)
    a_max = np.max(a, axis=axis, keepdims=True)
    a_max = np.where(np.isfinite(a_max), a_max, 0.0)
    with np.errstate(divide="ignore"):
        out = np.log(np.sum(np.exp(a - a_max), axis=axis, keepdims=True)) + a_max
    if axis is None:
        return float(out.reshape(-1)[0])
    return np.squeeze(out, axis=axis)


class Factor:
    """Non-negative function over the joint states of a set of variables.

    Values are kept as logarithms in a flat table indexed by
    assignment_to_index, i.e. the first variable of the scope varies fastest.

    Parameters
    ----------
    scope : sequence of int
        Variable ids, no repeats
    card : sequence of int
        Number of states of each variable in scope
    log_val : np.ndarray, optional
        Flat table of log values, shape (prod(card),). Defaults to zeros,
        which is the all-ones factor.
    """

    __slots__ = ("scope", "card", "log_val")

    def __init__(self, scope, card, log_val=None):
        self.scope = tuple(int(v) for v in scope)
        self.card = np.asarray(card, dtype=np.int64).reshape(-1)
        assert len(self.scope) == self.card.shape[0]
        assert len(set(self.scope)) == len(self.scope), "Repeated variable in factor scope"
        size = int(np.prod(self.card))
        if log_val is None:
            log_val = np.zeros(size, dtype=np.float64)
        self.log_val = np.asarray(log_val, dtype=np.float64).reshape(-1)
        assert self.log_val.shape[0] == size

    @classmethod
    def from_table(cls, scope, card, table):
        """Build a factor from a log table with one axis per scope variable."""
        return cls(scope, card, np.asarray(table, dtype=np.float64).ravel(order="F"))

    @property
    def table(self):
        """Log values shaped (card[0], card[1], ...)."""
        return self.log_val.reshape(tuple(self.card), order="F")

    @property
    def val(self):
        """Flat table of linear-space values."""
        return np.exp(self.log_val)

    def _index(self, assignment):
        return assignment_to_index(np.asarray(assignment, dtype=np.int64), self.card)

    def get_value(self, assignment):
        return float(np.exp(self.log_val[self._index(assignment)]))

    def get_log_value(self, assignment):
        return float(self.log_val[self._index(assignment)])

    def set_log_value(self, assignment, value):
        self.log_val[self._index(assignment)] = value

    def normalized(self):
        """Copy of this factor whose values sum to one."""
        log_z = logsumexp(self.log_val)
        assert np.isfinite(log_z), "Cannot normalize a factor with zero mass"
        return Factor(self.scope, self.card, self.log_val - log_z)

    def __repr__(self):
        return f"Factor(scope={self.scope}, card={self.card.tolist()})"


def factor_product(a: Factor, b: Factor) -> Factor:
    """Product of two factors.

    The result's scope is a.scope followed by the variables that appear only
    in b.
    """
    card_of = dict(zip(a.scope, a.card.tolist()))
    for v, c in zip(b.scope, b.card.tolist()):
        assert card_of.setdefault(v, c) == c, f"Cardinality mismatch for variable {v}"
    b_only = tuple(v for v in b.scope if v not in a.scope)
    scope = a.scope + b_only
    card = [card_of[v] for v in scope]

    table_a = a.table.reshape(tuple(a.card) + (1,) * len(b_only))
    # lay b's axes out in the order its variables take in the product scope
    b_order = [v for v in scope if v in b.scope]
    table_b = b.table.transpose([b.scope.index(v) for v in b_order])
    table_b = table_b[tuple(slice(None) if v in b.scope else np.newaxis for v in scope)]
    return Factor.from_table(scope, card, table_a + table_b)


def factor_marginalize(f: Factor, variables, is_max: bool = False) -> Factor:
    """Sum (or max, if is_max) the given variables out of f.

    Variables not in f's scope are ignored. The remaining variables keep
    their relative order.
    """
    eliminate = set(variables)
    axes = tuple(k for k, v in enumerate(f.scope) if v in eliminate)
    if not axes:
        return Factor(f.scope, f.card, f.log_val.copy())
    keep = [k for k in range(len(f.scope)) if k not in axes]
    if is_max:
        table = f.table.max(axis=axes)
    else:
        table = logsumexp(f.table, axis=axes)
    return Factor.from_table([f.scope[k] for k in keep], f.card[keep], table)


def factor_reorder(f: Factor, scope) -> Factor:
    """Return f with its variables permuted into the given scope order."""
    scope = tuple(scope)
    if sorted(scope) != sorted(f.scope):
        raise ValueError(f"Scope {scope} is not a permutation of {f.scope}")
    permutation = [f.scope.index(v) for v in scope]
    return Factor.from_table(scope, f.card[permutation], f.table.transpose(permutation))


def factors_from_features(features, theta, num_hidden_states: int) -> list[Factor]:
    """Build one indicator factor per feature, in feature order.

    Every entry is 1 except the one addressed by the feature's assignment,
    which is exp(theta[param_idx]).

    Parameters
    ----------
    features : sequence of Feature
        Indicator features
    theta : np.ndarray
        Tied parameters, shape (num_params,)
    num_hidden_states : int
        Cardinality of every variable

    Returns
    -------
    factors : list of Factor
    """
    factors = []
    for feature in features:
        factor = Factor(feature.scope, [num_hidden_states] * len(feature.scope))
        factor.set_log_value(feature.assignment, theta[feature.param_idx])
        factors.append(factor)
    return factors
