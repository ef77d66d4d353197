import logging
import time
from typing import Callable, List, Optional, Sequence

import numpy as np

from ..analytics.metrics import confidence_interval, summarize
from ..config import SearchConfig
from .result import SimulationResult
from .state import Action, FinancialState, apply_action
from .tree import SearchTree

logger = logging.getLogger(__name__)

ActionGenerator = Callable[[FinancialState], Sequence[Action]]
RewardFunction = Callable[[FinancialState], float]
Transition = Callable[[FinancialState, Action], FinancialState]


class MonteCarloTreeSearch:
    """Selection / expansion / rollout / backpropagation over portfolio states.

    ``rng`` is a ``numpy.random.Generator``; when omitted one is seeded from
    ``config.seed`` (system entropy if that is None). Identical seeds, inputs
    and config give identical results.
    """

    def __init__(
        self,
        action_generator: ActionGenerator,
        reward_function: RewardFunction,
        config: Optional[SearchConfig] = None,
        rng: Optional[np.random.Generator] = None,
        transition: Transition = apply_action,
    ):
        self.config = (config or SearchConfig()).validate()
        self.action_generator = action_generator
        self.reward_function = reward_function
        self.transition = transition
        self.rng = rng if rng is not None else np.random.default_rng(self.config.seed)

    def select(self, tree: SearchTree) -> int:
        index = SearchTree.ROOT
        c = self.config.exploration_constant
        while not tree[index].untried_actions and tree[index].children:
            index = tree.best_child(index, c)
        return index

    def expand(self, tree: SearchTree, index: int) -> int:
        node = tree[index]
        action = node.untried_actions.pop()
        state = self.transition(node.state, action)
        return tree.add_child(index, state, action, list(self.action_generator(state)))

    def rollout(self, state: FinancialState) -> FinancialState:
        for _ in range(self.config.max_rollout_depth):
            actions = self.action_generator(state)
            if not actions:
                break
            action = actions[int(self.rng.integers(len(actions)))]
            state = self.transition(state, action)
        return state

    def iterate(self, tree: SearchTree) -> float:
        """One full pass; returns the reward that was backpropagated."""
        index = self.select(tree)
        if tree[index].untried_actions:
            index = self.expand(tree, index)
        terminal = self.rollout(tree[index].state)
        reward = float(self.reward_function(terminal))
        tree.backpropagate(index, reward)
        return reward

    def start(self, initial_state: FinancialState) -> "SearchRun":
        return SearchRun(self, initial_state)

    def run(
        self,
        initial_state: FinancialState,
        should_stop: Optional[Callable[[], bool]] = None,
        on_progress: Optional[Callable[["SearchRun"], None]] = None,
    ) -> SimulationResult:
        """Search until ``max_iterations``, the time budget, or ``should_stop()``."""
        run = self.start(initial_state)
        logger.info(
            "Starting MCTS: max_iterations=%d c=%.3f rollout_depth=%d",
            self.config.max_iterations, self.config.exploration_constant, self.config.max_rollout_depth,
        )
        interval = self.config.progress_interval
        while not run.is_complete:
            if should_stop is not None and should_stop():
                run.stop("cancelled")
                break
            if run.step(1) and run.iterations % interval == 0:
                logger.debug("MCTS progress %.1f%% (%d nodes)", 100 * run.progress, len(run.tree))
                if on_progress is not None:
                    on_progress(run)
        result = run.result()
        logger.info(
            "MCTS finished after %d iterations: expected_return=%.4f risk=%.4f",
            result.iterations, result.expected_return, result.risk_assessment,
        )
        return result


class SearchRun:
    """An in-progress search that can be stepped, stopped and summarised at any point."""

    def __init__(self, search: MonteCarloTreeSearch, initial_state: FinancialState):
        self.search = search
        self.tree = SearchTree(initial_state, list(search.action_generator(initial_state)))
        self.rewards: List[float] = []
        self.started_at = time.monotonic()
        self.stop_reason: Optional[str] = None

    @property
    def iterations(self) -> int:
        return len(self.rewards)

    @property
    def progress(self) -> float:
        return self.iterations / self.search.config.max_iterations

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started_at

    @property
    def is_complete(self) -> bool:
        if self.stop_reason is not None:
            return True
        if self.iterations >= self.search.config.max_iterations:
            return True
        budget = self.search.config.time_budget_s
        if budget is not None and self.elapsed >= budget:
            self.stop("time budget exhausted")
            return True
        return False

    def stop(self, reason: str = "stopped") -> None:
        if self.stop_reason is None:
            logger.warning("MCTS stopped after %d iterations: %s", self.iterations, reason)
            self.stop_reason = reason

    def step(self, n: int = 100) -> int:
        """Run up to ``n`` more iterations; returns how many actually ran."""
        done = 0
        while done < n and not self.is_complete:
            self.rewards.append(self.search.iterate(self.tree))
            done += 1
        return done

    def stats(self):
        """Progress payload: counts, running 90% interval and a naive ETA (None before the first iteration)."""
        elapsed = self.elapsed
        remaining = self.search.config.max_iterations - self.iterations
        eta = elapsed / self.iterations * remaining if self.iterations else None
        return {
            "iterations": self.iterations,
            "progress": self.progress,
            "node_count": len(self.tree),
            "max_depth": self.tree.max_depth,
            "root_visits": self.tree.root.visits,
            "elapsed_s": elapsed,
            "eta_s": eta,
            "confidence_interval": confidence_interval(self.rewards),
        }

    def result(self) -> SimulationResult:
        return summarize(self.tree, self.rewards, stopped_early=self.stop_reason is not None)
