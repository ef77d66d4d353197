import math

import numpy as np

from ..engine.result import SimulationResult
from ..engine.tree import SearchTree


def expected_return(rewards):
    r = np.asarray(rewards, dtype=float)
    if r.size == 0:
        return 0.0
    return float(r.mean())


def confidence_interval(rewards, lower_q: float = 0.05, upper_q: float = 0.95):
    """Empirical interval read straight off the sorted rewards.

    Uses the order statistics at ``floor(n*q)`` (clamped to the last index)
    rather than interpolated percentiles. ``(0.0, 0.0)`` for no rewards.
    """
    r = np.sort(np.asarray(rewards, dtype=float))
    n = r.size
    if n == 0:
        return 0.0, 0.0
    lo = min(int(math.floor(n * lower_q)), n - 1)
    hi = min(int(math.floor(n * upper_q)), n - 1)
    return float(r[lo]), float(r[hi])


def coefficient_of_variation(rewards):
    """Population stdev divided by the mean; 0.0 when the mean is exactly 0
    or there are no rewards. A negative mean gives a negative value."""
    r = np.asarray(rewards, dtype=float)
    if r.size == 0:
        return 0.0
    mean = r.mean()
    if mean == 0:
        return 0.0
    return float(r.std(ddof=0) / mean)


def optimal_path(tree: SearchTree):
    """Follow the best-mean child (no exploration term) from the root."""
    index = SearchTree.ROOT
    states, actions = [tree[index].state], []
    while tree[index].children:
        index = tree.best_child(index, 0.0)
        states.append(tree[index].state)
        actions.append(tree[index].action)
    return tuple(states), tuple(actions)


def summarize(tree: SearchTree, rewards, stopped_early: bool = False) -> SimulationResult:
    states, actions = optimal_path(tree)
    return SimulationResult(
        expected_return=expected_return(rewards),
        risk_assessment=coefficient_of_variation(rewards),
        confidence_interval=confidence_interval(rewards),
        optimal_path=states,
        iterations=len(rewards),
        optimal_actions=actions,
        stopped_early=stopped_early,
    )
