from dataclasses import dataclass
from typing import Tuple

from .state import Action, FinancialState, action_to_dict


@dataclass(frozen=True)
class SimulationResult:
    expected_return: float
    risk_assessment: float                   # coefficient of variation of rewards
    confidence_interval: Tuple[float, float]  # (5th, 95th) percentile rewards
    optimal_path: Tuple[FinancialState, ...]  # root state first
    iterations: int
    optimal_actions: Tuple[Action, ...] = ()  # len(optimal_path) - 1 entries
    stopped_early: bool = False

    def to_dict(self):
        return {
            "expected_return": self.expected_return,
            "risk_assessment": self.risk_assessment,
            "confidence_interval": list(self.confidence_interval),
            "optimal_path": [s.to_dict() for s in self.optimal_path],
            "optimal_actions": [action_to_dict(a) for a in self.optimal_actions],
            "iterations": self.iterations,
            "stopped_early": self.stopped_early,
        }
