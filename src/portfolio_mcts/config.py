import numbers
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Tuple

from .errors import ConfigurationError


@dataclass(frozen=True)
class AssetAssumption:
    expected_return: float              # annualised, e.g. 0.08
    volatility: float                   # annualised stdev, e.g. 0.20
    recession_factor: Optional[float] = None  # multiplies expected_return in a recession


@dataclass(frozen=True)
class MarketData:
    assets: Mapping[str, AssetAssumption]
    risk_free_rate: float = 0.02
    scenarios: Tuple[Mapping[str, Any], ...] = ()   # each: condition -> value
    current_conditions: Mapping[str, Any] = field(default_factory=dict)

    def tickers(self):
        return list(self.assets)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "MarketData":
        """Build from the plain-mapping shape an API layer would send."""
        assets = {
            name: AssetAssumption(
                expected_return=float(a.get("expected_return", 0.0)),
                volatility=float(a.get("volatility", 0.0)),
                recession_factor=a.get("recession_factor"),
            )
            for name, a in raw.get("assets", {}).items()
        }
        scenarios = []
        for s in raw.get("scenarios", ()):
            # accept either {"conditions": {...}} or a bare condition mapping
            scenarios.append(dict(s.get("conditions", s)))
        return cls(
            assets=assets,
            risk_free_rate=float(raw.get("risk_free_rate", 0.0)),
            scenarios=tuple(scenarios),
            current_conditions=dict(raw.get("current_conditions") or {}),
        )


@dataclass(frozen=True)
class SearchConfig:
    max_iterations: int = 10_000
    exploration_constant: float = 1.41
    max_rollout_depth: int = 10
    seed: Optional[int] = None
    time_budget_s: Optional[float] = None   # wall-clock cap on top of max_iterations
    progress_interval: int = 100            # iterations between on_progress callbacks

    def validate(self) -> "SearchConfig":
        for name in ("max_iterations", "max_rollout_depth", "progress_interval"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Integral):
                raise ConfigurationError(f"{name} must be an integer", name, value)
        if self.max_iterations < 1:
            raise ConfigurationError("max_iterations must be >= 1", "max_iterations", self.max_iterations)
        if not self.exploration_constant > 0:
            raise ConfigurationError(
                "exploration_constant must be > 0", "exploration_constant", self.exploration_constant
            )
        if self.max_rollout_depth < 1:
            raise ConfigurationError("max_rollout_depth must be >= 1", "max_rollout_depth", self.max_rollout_depth)
        if self.time_budget_s is not None and not self.time_budget_s > 0:
            raise ConfigurationError("time_budget_s must be > 0", "time_budget_s", self.time_budget_s)
        if self.progress_interval < 1:
            raise ConfigurationError("progress_interval must be >= 1", "progress_interval", self.progress_interval)
        return self


@dataclass(frozen=True)
class PolicyConfig:
    buy_steps: Tuple[float, ...] = (0.05, 0.10, 0.20)    # fraction of portfolio value
    sell_steps: Tuple[float, ...] = (0.05, 0.10, 0.20)   # fraction of the position
    asset_correlation: float = 0.3          # constant pairwise correlation
    risk_penalty_weight: float = 2.0        # multiplier on risk above tolerance
    diversification_target: float = 0.7
    target_return_spread: float = 0.05      # target = rf + tolerance * spread
    drawdown_scale: float = 0.1             # max drawdown target = tolerance * scale
    var_z: float = 1.645                    # one-sided 95% normal quantile
    drawdown_multiplier: float = 2.5
    empty_portfolio_reward: float = -1.0
    default_asset: AssetAssumption = AssetAssumption(expected_return=0.0, volatility=0.5)

    def validate(self) -> "PolicyConfig":
        for name in ("buy_steps", "sell_steps"):
            steps = getattr(self, name)
            if any(not 0 < s <= 1 for s in steps):
                raise ConfigurationError(f"{name} must lie in (0, 1]", name, steps)
        if not -1.0 <= self.asset_correlation <= 1.0:
            raise ConfigurationError("asset_correlation must lie in [-1, 1]", "asset_correlation", self.asset_correlation)
        if self.empty_portfolio_reward > -1.0:
            raise ConfigurationError(
                "empty_portfolio_reward must be <= -1", "empty_portfolio_reward", self.empty_portfolio_reward
            )
        if self.risk_penalty_weight < 0:
            raise ConfigurationError("risk_penalty_weight must be >= 0", "risk_penalty_weight", self.risk_penalty_weight)
        return self
