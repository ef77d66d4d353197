"""Asset-allocation policy for the tree search.

Supplies the action generator, reward function and transition used by
:class:`~portfolio_mcts.engine.search.MonteCarloTreeSearch` when the
states are portfolios described by a :class:`~portfolio_mcts.config.MarketData`.
"""
import logging
import math
from typing import Dict, List, Mapping, Optional

import numpy as np

from ..config import AssetAssumption, MarketData, PolicyConfig, SearchConfig
from ..engine.result import SimulationResult
from ..engine.search import MonteCarloTreeSearch
from ..engine.state import Action, BuyAsset, FinancialState, MarketChange, SellAsset, apply_action
from ..errors import ConfigurationError

logger = logging.getLogger(__name__)


def diversification(assets: Mapping[str, float]) -> float:
    """``1 - sum(w^2)`` over portfolio weights (HHI complement); 0.0 when empty."""
    total = sum(assets.values())
    if total <= 0:
        return 0.0
    w = np.array([v / total for v in assets.values()], dtype=float)
    return float(1.0 - np.sum(w * w))


class PortfolioPolicy:
    def __init__(self, market_data: MarketData, risk_tolerance: float, config: Optional[PolicyConfig] = None):
        if not 0.0 <= risk_tolerance <= 1.0:
            raise ConfigurationError("risk_tolerance must lie in [0, 1]", "risk_tolerance", risk_tolerance)
        self.market = market_data
        self.risk_tolerance = float(risk_tolerance)
        self.cfg = (config or PolicyConfig()).validate()

    def _assumption(self, asset: str) -> AssetAssumption:
        return self.market.assets.get(asset, self.cfg.default_asset)

    def target_metrics(self) -> Dict[str, float]:
        return {
            "target_return": self.market.risk_free_rate + self.risk_tolerance * self.cfg.target_return_spread,
            "max_drawdown": self.risk_tolerance * self.cfg.drawdown_scale,
            "diversification_target": self.cfg.diversification_target,
        }

    def initial_risks(self, assets: Mapping[str, float]) -> Dict[str, float]:
        """Volatility under a constant pairwise correlation, normal VaR95, drawdown proxy.

        Variance is the full ``w.T @ Sigma @ w`` with ``rho`` off the diagonal, so
        each cross term ``w_i w_j s_i s_j rho`` enters once per ordered pair. Adding
        ``2 * w_i w_j s_i s_j rho`` for every ordered pair instead would count the
        cross terms twice and report a higher volatility and VaR.
        """
        risks = {"volatility": 0.0, "var_95": 0.0, "max_drawdown": 0.0}
        total = sum(assets.values())
        if total <= 0:
            return risks
        names = list(assets)
        w = np.array([assets[a] / total for a in names], dtype=float)
        vol = np.array([self._assumption(a).volatility for a in names], dtype=float)
        corr = np.full((len(names), len(names)), self.cfg.asset_correlation)
        np.fill_diagonal(corr, 1.0)
        wv = w * vol
        variance = float(wv @ corr @ wv)
        volatility = math.sqrt(max(variance, 0.0))
        risks["volatility"] = volatility
        risks["var_95"] = self.cfg.var_z * volatility * total
        risks["max_drawdown"] = self.cfg.drawdown_multiplier * volatility
        return risks

    def initial_state(self, portfolio: Mapping[str, float], investment_horizon: str = "medium") -> FinancialState:
        assets = {}
        for asset, amount in portfolio.items():
            amount = float(amount)
            if amount < 0:
                raise ConfigurationError(f"negative allocation for {asset!r}", "initial_portfolio", amount)
            assets[asset] = amount
        return FinancialState(
            assets=assets,
            timeframe=str(investment_horizon),
            risks=self.initial_risks(assets),
            market_conditions=dict(self.market.current_conditions),
            target_metrics=self.target_metrics(),
        )

    def actions(self, state: FinancialState) -> List[Action]:
        out: List[Action] = []
        for asset in self.market.assets:
            out.extend(BuyAsset(asset, f) for f in self.cfg.buy_steps)
            if state.assets.get(asset, 0.0) > 0:
                out.extend(SellAsset(asset, f) for f in self.cfg.sell_steps if f < 1.0)
                out.append(SellAsset(asset, 1.0))
        out.extend(MarketChange(dict(s)) for s in self.market.scenarios)
        return out

    def transition(self, state: FinancialState, action: Action) -> FinancialState:
        asset = getattr(action, "asset", None)
        if asset is not None and asset not in self.market.assets:
            logger.warning("Ignoring %s on %r: asset not in market data", type(action).__name__, asset)
            return state
        return apply_action(state, action)

    def reward(self, state: FinancialState) -> float:
        """Sharpe-like score minus shortfall / excess-risk / concentration penalties.

        Returns ``empty_portfolio_reward`` for an empty portfolio and uses a
        Sharpe term of 0.0 when the weighted risk is zero.
        """
        total = state.total_value
        if total <= 0:
            return self.cfg.empty_portfolio_reward

        in_recession = bool(state.market_conditions.get("recession"))
        exp_ret = 0.0
        risk = 0.0
        for asset, amount in state.assets.items():
            w = amount / total
            a = self._assumption(asset)
            r = a.expected_return
            if in_recession and a.recession_factor is not None:
                r *= a.recession_factor
            exp_ret += w * r
            risk += w * a.volatility

        div = diversification(state.assets)
        sharpe = (exp_ret - self.market.risk_free_rate) / risk if risk > 0 else 0.0

        targets = state.target_metrics or self.target_metrics()
        penalties = 0.0
        target_return = targets.get("target_return", self.market.risk_free_rate)
        if exp_ret < target_return:
            penalties += target_return - exp_ret
        if risk > self.risk_tolerance:
            penalties += (risk - self.risk_tolerance) * self.cfg.risk_penalty_weight
        div_target = targets.get("diversification_target", self.cfg.diversification_target)
        if div < div_target:
            penalties += div_target - div
        return float(sharpe - penalties)


def optimize_portfolio(
    initial_portfolio: Mapping[str, float],
    market_data: MarketData,
    risk_tolerance: float,
    investment_horizon: str = "medium",
    search_config: Optional[SearchConfig] = None,
    policy_config: Optional[PolicyConfig] = None,
    rng: Optional[np.random.Generator] = None,
    **run_kwargs,
) -> SimulationResult:
    """Run the tree search over ``initial_portfolio`` with the allocation policy.

    ``run_kwargs`` (``should_stop``, ``on_progress``) are forwarded to
    :meth:`MonteCarloTreeSearch.run`.
    """
    policy = PortfolioPolicy(market_data, risk_tolerance, policy_config)
    search = MonteCarloTreeSearch(
        policy.actions, policy.reward, config=search_config, rng=rng, transition=policy.transition
    )
    return search.run(policy.initial_state(initial_portfolio, investment_horizon), **run_kwargs)
