from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Union


@dataclass(frozen=True)
class FinancialState:
    """Snapshot of a portfolio at one node of the search.

    Immutable by convention: the mappings are plain dicts, but nothing in
    this package writes into them after construction. Transitions build new
    dicts and a new state via ``dataclasses.replace``.
    """
    assets: Dict[str, float]                      # asset -> allocated amount (>= 0)
    timeframe: str = "medium"
    risks: Dict[str, float] = field(default_factory=dict)
    market_conditions: Dict[str, Any] = field(default_factory=dict)
    target_metrics: Dict[str, float] = field(default_factory=dict)

    @property
    def total_value(self) -> float:
        return float(sum(self.assets.values()))

    def to_dict(self):
        return {
            "assets": dict(self.assets),
            "timeframe": self.timeframe,
            "risks": dict(self.risks),
            "market_conditions": dict(self.market_conditions),
            "target_metrics": dict(self.target_metrics),
        }


@dataclass(frozen=True)
class BuyAsset:
    asset: str
    fraction: float     # of current portfolio value


@dataclass(frozen=True)
class SellAsset:
    asset: str
    fraction: float     # of the current position; 1.0 sells everything


@dataclass(frozen=True)
class MarketChange:
    changes: Mapping[str, Any]


Action = Union[BuyAsset, SellAsset, MarketChange]


def action_to_dict(action: Action) -> Dict[str, Any]:
    if isinstance(action, BuyAsset):
        return {"type": "buy_asset", "asset": action.asset, "fraction": action.fraction}
    if isinstance(action, SellAsset):
        return {"type": "sell_asset", "asset": action.asset, "fraction": action.fraction}
    return {"type": "market_change", "changes": dict(action.changes)}


def apply_action(state: FinancialState, action: Action) -> FinancialState:
    """Return the state reached by taking ``action``; ``state`` is left untouched.

    Buys add ``fraction`` of the current total value (one portfolio unit when
    the portfolio is empty). Sells remove ``fraction`` of the held position,
    and a full sale drops the asset from the mapping.
    """
    if isinstance(action, BuyAsset):
        total = state.total_value
        base = total if total > 0 else 1.0
        assets = dict(state.assets)
        assets[action.asset] = assets.get(action.asset, 0.0) + max(action.fraction, 0.0) * base
        return replace(state, assets=assets)

    if isinstance(action, SellAsset):
        held = state.assets.get(action.asset, 0.0)
        frac = min(max(action.fraction, 0.0), 1.0)
        assets = dict(state.assets)
        if frac >= 1.0 or held <= 0:
            assets.pop(action.asset, None)
        else:
            assets[action.asset] = held * (1.0 - frac)
        return replace(state, assets=assets)

    if isinstance(action, MarketChange):
        conditions = dict(state.market_conditions)
        conditions.update(action.changes)
        return replace(state, market_conditions=conditions)

    raise TypeError(f"Unknown action type: {type(action).__name__}")
