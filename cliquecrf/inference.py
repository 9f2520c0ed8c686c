"""Exact inference for discrete CRFs: clique-tree construction and calibration."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass

import numpy as np

from .factors import Factor, factor_marginalize, factor_product, factor_reorder, logsumexp

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CliqueTree:
    """Cliques with their (log-space) potentials and the tree edges between them.

    edges[i] holds the indices of the cliques adjacent to clique i. The
    structure may be a forest when the model has independent components.
    """

    cliques: tuple[Factor, ...]
    edges: tuple[frozenset, ...]


def _eliminate(card_of, neighbors):
    """Greedy min-neighbors variable elimination.

    Returns the clique scope created by each elimination step and, for every
    variable, the step at which it was eliminated.
    """
    scopes = []
    eliminated_at = {}
    remaining = set(card_of)
    while remaining:
        v = min(remaining, key=lambda u: (len(neighbors[u]), u))
        nbrs = neighbors.pop(v)
        scopes.append((v, tuple(sorted(nbrs | {v}))))
        eliminated_at[v] = len(scopes) - 1
        for u in nbrs:
            neighbors[u] |= nbrs - {u}
            neighbors[u].discard(v)
        remaining.remove(v)
    return scopes, eliminated_at


def _prune(scopes, edges):
    """Fold every clique that is a subset of a neighbor into that neighbor."""
    alive = set(range(len(scopes)))
    pruned = True
    while pruned:
        pruned = False
        for i in sorted(alive):
            for j in sorted(edges[i]):
                if set(scopes[i]) <= set(scopes[j]):
                    for k in edges[i] - {j}:
                        edges[k].discard(i)
                        edges[k].add(j)
                        edges[j].add(k)
                    edges[j].discard(i)
                    edges[i] = set()
                    alive.remove(i)
                    pruned = True
                    break
            if pruned:
                break
    return sorted(alive)


def create_clique_tree(factors) -> CliqueTree:
    """Build a clique tree whose cliques cover the scope of every factor.

    Each factor is multiplied into the first clique that covers its scope.

    Parameters
    ----------
    factors : sequence of Factor

    Returns
    -------
    tree : CliqueTree
        Uncalibrated tree, cliques holding their initial potentials
    """
    card_of = {}
    neighbors = {}
    for factor in factors:
        for v, c in zip(factor.scope, factor.card.tolist()):
            assert card_of.setdefault(v, c) == c, f"Cardinality mismatch for variable {v}"
            neighbors.setdefault(v, set()).update(u for u in factor.scope if u != v)

    steps, eliminated_at = _eliminate(card_of, neighbors)
    scopes = [scope for _, scope in steps]

    # link each clique to the one eliminating the first of its remaining variables
    edges = [set() for _ in scopes]
    for i, (v, scope) in enumerate(steps):
        rest = [u for u in scope if u != v]
        if rest:
            j = min(eliminated_at[u] for u in rest)
            edges[i].add(j)
            edges[j].add(i)

    alive = _prune(scopes, edges)
    position = {old: new for new, old in enumerate(alive)}
    cliques = [Factor(scopes[i], [card_of[v] for v in scopes[i]]) for i in alive]
    tree_edges = tuple(frozenset(position[j] for j in edges[i]) for i in alive)

    members = [set(c.scope) for c in cliques]
    for factor in factors:
        c = next(c for c, m in enumerate(members) if m.issuperset(factor.scope))
        cliques[c] = factor_product(cliques[c], factor)

    if cliques:
        logger.debug(
            "Clique tree with %d cliques over %d variables, width %d",
            len(cliques),
            len(card_of),
            max(len(c.scope) for c in cliques),
        )
    return CliqueTree(cliques=tuple(cliques), edges=tree_edges)


def _schedule(edges):
    """Order cliques so that every parent precedes its children, per component."""
    order, parent, roots = [], {}, []
    for root in range(len(edges)):
        if root in parent:
            continue
        roots.append(root)
        parent[root] = None
        stack = [root]
        while stack:
            i = stack.pop()
            order.append(i)
            for j in sorted(edges[i]):
                if j not in parent:
                    parent[j] = i
                    stack.append(j)
    return order, parent, roots


def calibrate(tree: CliqueTree, is_max: bool = False):
    """Calibrate a clique tree by two-pass message passing.

    Messages are collected towards a root and then distributed from it, on
    every connected component. All computation is in log-space.

    Parameters
    ----------
    tree : CliqueTree
        Tree holding the initial clique potentials. Not modified.
    is_max : bool, default=False
        If True, run max-product instead of sum-product

    Returns
    -------
    calibrated : CliqueTree
        Tree with the same structure whose cliques hold the calibrated beliefs
    log_z : float
        Log partition function (sum-product) or log-potential of the MAP
        assignment (max-product)
    """
    cliques, edges = tree.cliques, tree.edges
    order, parent, roots = _schedule(edges)
    messages = {}

    def send(i, j):
        message = cliques[i]
        for k in edges[i]:
            if k != j:
                message = factor_product(message, messages[k, i])
        sepset = set(cliques[j].scope)
        message = factor_marginalize(
            message, [v for v in message.scope if v not in sepset], is_max=is_max
        )
        messages[i, j] = message

    # upward pass
    for i in reversed(order):
        if parent[i] is not None:
            send(i, parent[i])
    # downward pass
    for i in order:
        for j in edges[i]:
            if parent[j] == i:
                send(i, j)

    beliefs = []
    for i, clique in enumerate(cliques):
        belief = clique
        for k in edges[i]:
            belief = factor_product(belief, messages[k, i])
        beliefs.append(factor_reorder(belief, clique.scope))

    log_z = 0.0
    for root in roots:
        root_val = beliefs[root].log_val
        log_z += root_val.max() if is_max else logsumexp(root_val)
    assert np.isfinite(log_z), "Clique tree has zero total mass"
    return CliqueTree(cliques=tuple(beliefs), edges=edges), float(log_z)


def is_calibrated(tree: CliqueTree, is_max: bool = False, atol: float = 1e-8) -> bool:
    """Check that neighboring cliques agree on their sepset (max-)marginals."""
    for i, clique in enumerate(tree.cliques):
        for j in tree.edges[i]:
            if j < i:
                continue
            other = tree.cliques[j]
            sepset = [v for v in clique.scope if v in other.scope]
            mu_i = factor_marginalize(
                clique, [v for v in clique.scope if v not in sepset], is_max=is_max
            )
            mu_j = factor_marginalize(
                other, [v for v in other.scope if v not in sepset], is_max=is_max
            )
            mu_j = factor_reorder(mu_j, mu_i.scope)
            if not np.allclose(mu_i.normalized().val, mu_j.normalized().val, atol=atol):
                return False
    return True


def variable_marginals(tree: CliqueTree, n_variables: int, is_max: bool = False) -> np.ndarray:
    """Normalized marginal of every variable, read from the first clique holding it.

    Parameters
    ----------
    tree : CliqueTree
        Calibrated tree
    n_variables : int
        Variables are 0..n_variables-1, all with the same cardinality
    is_max : bool, default=False
        If True, the tree is max-calibrated and max-marginals are returned

    Returns
    -------
    marginals : np.ndarray
        Shape (n_variables, n_states)
    """
    containing = variable_owners(tree)
    rows = []
    for v in range(n_variables):
        if not containing[v]:
            raise ValueError(f"Variable {v} is not in any clique")
        clique = tree.cliques[min(containing[v])]
        marginal = factor_marginalize(clique, [u for u in clique.scope if u != v], is_max=is_max)
        rows.append(marginal.normalized().val)
    return np.array(rows)


def variable_owners(tree: CliqueTree):
    """Map each variable to the indices of the cliques containing it."""
    containing = defaultdict(set)
    for c, clique in enumerate(tree.cliques):
        for v in clique.scope:
            containing[v].add(c)
    return containing
