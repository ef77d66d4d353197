"""Shared fixtures for the portfolio-mcts test suite."""

from __future__ import annotations

import pytest

from portfolio_mcts.config import AssetAssumption, MarketData, SearchConfig
from portfolio_mcts.engine.state import FinancialState
from portfolio_mcts.policy.portfolio import PortfolioPolicy


@pytest.fixture
def two_asset_market() -> MarketData:
    """A{8%, 20% vol} and B{5%, 10% vol}, rf 2%, no scenarios."""
    return MarketData(
        assets={
            "A": AssetAssumption(expected_return=0.08, volatility=0.2),
            "B": AssetAssumption(expected_return=0.05, volatility=0.1),
        },
        risk_free_rate=0.02,
    )


@pytest.fixture
def scenario_market() -> MarketData:
    return MarketData(
        assets={
            "A": AssetAssumption(expected_return=0.08, volatility=0.2, recession_factor=0.5),
            "B": AssetAssumption(expected_return=0.05, volatility=0.1),
        },
        risk_free_rate=0.02,
        scenarios=({"recession": True}, {"recession": False}),
    )


@pytest.fixture
def policy(two_asset_market: MarketData) -> PortfolioPolicy:
    return PortfolioPolicy(two_asset_market, risk_tolerance=0.5)


@pytest.fixture
def two_asset_state(policy: PortfolioPolicy) -> FinancialState:
    return policy.initial_state({"A": 0.6, "B": 0.4}, "long")


@pytest.fixture
def small_config() -> SearchConfig:
    return SearchConfig(max_iterations=300, seed=7)
