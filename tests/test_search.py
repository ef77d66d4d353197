"""Tests for the MCTS controller and incremental search runs."""

from __future__ import annotations

import itertools
from types import SimpleNamespace

import numpy as np
import pytest

import portfolio_mcts.engine.search as search_module
from portfolio_mcts.analytics.metrics import confidence_interval
from portfolio_mcts.config import SearchConfig
from portfolio_mcts.engine.search import MonteCarloTreeSearch
from portfolio_mcts.engine.state import BuyAsset, FinancialState, SellAsset
from portfolio_mcts.errors import ConfigurationError
from portfolio_mcts.policy.portfolio import PortfolioPolicy


def grow_or_shrink(state: FinancialState):
    return [BuyAsset("x", 0.5), SellAsset("x", 0.5)]


def total_value(state: FinancialState) -> float:
    return state.total_value


class TestConfiguration:
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_iterations": 0},
            {"max_iterations": -5},
            {"exploration_constant": 0.0},
            {"exploration_constant": -1.0},
            {"max_rollout_depth": 0},
            {"time_budget_s": 0.0},
        ],
    )
    def test_invalid_config_fails_before_search(self, kwargs) -> None:
        with pytest.raises(ConfigurationError):
            MonteCarloTreeSearch(grow_or_shrink, total_value, SearchConfig(**kwargs))

    def test_configuration_error_is_a_value_error(self) -> None:
        with pytest.raises(ValueError, match="max_iterations"):
            SearchConfig(max_iterations=0).validate()

    def test_defaults(self) -> None:
        cfg = SearchConfig()
        assert cfg.max_iterations == 10_000
        assert cfg.exploration_constant == pytest.approx(1.41)
        assert cfg.max_rollout_depth == 10


class TestPhases:
    def test_expand_pops_last_untried_action(self) -> None:
        search = MonteCarloTreeSearch(grow_or_shrink, total_value, SearchConfig(seed=0))
        run = search.start(FinancialState(assets={"x": 1.0}))
        child = search.expand(run.tree, 0)
        assert run.tree[child].action == SellAsset("x", 0.5)
        assert run.tree[child].state.assets["x"] == pytest.approx(0.5)
        assert run.tree.root.untried_actions == [BuyAsset("x", 0.5)]
        assert len(run.tree[child].untried_actions) == 2

    def test_rollout_respects_depth_and_leaves_tree_alone(self) -> None:
        seen = []

        def counting_actions(state):
            seen.append(state)
            return grow_or_shrink(state)

        search = MonteCarloTreeSearch(counting_actions, total_value, SearchConfig(max_rollout_depth=4, seed=1))
        run = search.start(FinancialState(assets={"x": 1.0}))
        seen.clear()
        search.rollout(run.tree.root.state)
        assert len(seen) == 4
        assert len(run.tree) == 1

    def test_rollout_stops_when_no_actions(self) -> None:
        search = MonteCarloTreeSearch(lambda s: [], total_value, SearchConfig(seed=1))
        start = FinancialState(assets={"x": 1.0})
        assert search.rollout(start) is start

    def test_selection_descends_fully_expanded_nodes(self) -> None:
        search = MonteCarloTreeSearch(grow_or_shrink, total_value, SearchConfig(seed=3))
        run = search.start(FinancialState(assets={"x": 1.0}))
        run.step(2)
        assert not run.tree.root.untried_actions
        selected = search.select(run.tree)
        assert run.tree[selected].parent == 0


class TestRun:
    def test_root_visits_equal_iterations(self, policy: PortfolioPolicy, two_asset_state, small_config) -> None:
        search = MonteCarloTreeSearch(policy.actions, policy.reward, small_config, transition=policy.transition)
        run = search.start(two_asset_state)
        run.step(small_config.max_iterations)
        assert run.tree.root.visits == small_config.max_iterations
        assert run.is_complete

    def test_children_never_outvisit_parent(self, policy: PortfolioPolicy, two_asset_state, small_config) -> None:
        search = MonteCarloTreeSearch(policy.actions, policy.reward, small_config, transition=policy.transition)
        run = search.start(two_asset_state)
        run.step(small_config.max_iterations)
        for node in run.tree.nodes:
            assert sum(run.tree[c].visits for c in node.children) <= node.visits
            assert node.visits >= 1

    def test_same_seed_same_result(self, policy: PortfolioPolicy, two_asset_state, small_config) -> None:
        results = [
            MonteCarloTreeSearch(policy.actions, policy.reward, small_config, transition=policy.transition).run(
                two_asset_state
            )
            for _ in range(2)
        ]
        assert results[0] == results[1]

    def test_injected_generator_matches_seed(self, policy: PortfolioPolicy, two_asset_state) -> None:
        cfg = SearchConfig(max_iterations=200, seed=11)
        seeded = MonteCarloTreeSearch(policy.actions, policy.reward, cfg).run(two_asset_state)
        injected = MonteCarloTreeSearch(
            policy.actions, policy.reward, SearchConfig(max_iterations=200), rng=np.random.default_rng(11)
        ).run(two_asset_state)
        assert seeded == injected

    def test_terminal_root_is_reused_as_expansion_point(self) -> None:
        search = MonteCarloTreeSearch(lambda s: [], lambda s: 1.0, SearchConfig(max_iterations=25, seed=0))
        result = search.run(FinancialState(assets={"x": 1.0}))
        assert result.iterations == 25
        assert result.expected_return == 1.0
        assert result.confidence_interval == (1.0, 1.0)
        assert result.risk_assessment == 0.0
        assert len(result.optimal_path) == 1
        assert result.optimal_actions == ()

    def test_optimal_path_starts_at_initial_state(self, policy: PortfolioPolicy, two_asset_state, small_config) -> None:
        result = MonteCarloTreeSearch(
            policy.actions, policy.reward, small_config, transition=policy.transition
        ).run(two_asset_state)
        assert result.optimal_path[0] == two_asset_state
        assert len(result.optimal_path) == len(result.optimal_actions) + 1
        assert len(result.optimal_path) >= 2
        assert not result.stopped_early


class TestBudgets:
    def test_should_stop_cancels_with_partial_result(self) -> None:
        calls = itertools.count(1)
        search = MonteCarloTreeSearch(grow_or_shrink, total_value, SearchConfig(max_iterations=1000, seed=0))
        result = search.run(FinancialState(assets={"x": 1.0}), should_stop=lambda: next(calls) > 50)
        assert result.iterations == 50
        assert result.stopped_early

    def test_cancel_before_first_iteration(self) -> None:
        search = MonteCarloTreeSearch(grow_or_shrink, total_value, SearchConfig(max_iterations=10, seed=0))
        result = search.run(FinancialState(assets={"x": 1.0}), should_stop=lambda: True)
        assert result.iterations == 0
        assert result.expected_return == 0.0
        assert result.confidence_interval == (0.0, 0.0)
        assert len(result.optimal_path) == 1

    def test_time_budget(self, monkeypatch) -> None:
        ticks = itertools.count()
        monkeypatch.setattr(search_module, "time", SimpleNamespace(monotonic=lambda: float(next(ticks))))
        cfg = SearchConfig(max_iterations=1000, time_budget_s=5.0, seed=0)
        result = MonteCarloTreeSearch(grow_or_shrink, total_value, cfg).run(FinancialState(assets={"x": 1.0}))
        assert result.stopped_early
        assert 0 < result.iterations < cfg.max_iterations

    def test_progress_callback(self) -> None:
        seen = []
        cfg = SearchConfig(max_iterations=250, progress_interval=100, seed=0)
        search = MonteCarloTreeSearch(grow_or_shrink, total_value, cfg)
        search.run(FinancialState(assets={"x": 1.0}), on_progress=lambda run: seen.append(run.iterations))
        assert seen == [100, 200]

    def test_step_reports_work_done(self, monkeypatch) -> None:
        now = [0.0]
        monkeypatch.setattr(search_module, "time", SimpleNamespace(monotonic=lambda: now[0]))
        search = MonteCarloTreeSearch(grow_or_shrink, total_value, SearchConfig(max_iterations=30, seed=0))
        run = search.start(FinancialState(assets={"x": 1.0}))
        before = run.stats()
        assert before["eta_s"] is None
        assert before["confidence_interval"] == (0.0, 0.0)

        assert run.step(20) == 20
        assert run.progress == pytest.approx(20 / 30)
        now[0] = 4.0
        midway = run.stats()
        assert midway["elapsed_s"] == pytest.approx(4.0)
        assert midway["eta_s"] == pytest.approx(4.0 / 20 * 10)
        assert midway["confidence_interval"] == confidence_interval(run.rewards)
        lo, hi = midway["confidence_interval"]
        assert lo <= hi

        assert run.step(20) == 10
        assert run.is_complete
        stats = run.stats()
        assert stats["iterations"] == 30
        assert stats["root_visits"] == 30
        assert stats["node_count"] == len(run.tree)
        assert stats["eta_s"] == 0.0
