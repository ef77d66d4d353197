from dataclasses import dataclass
from typing import List

from ..engine.result import SimulationResult


@dataclass(frozen=True)
class ResultSummary:
    risk_warnings: List[str]
    suggestions: List[str]
    confidence_score: float     # 0..1, higher = steadier rewards


def summarize_result(result: SimulationResult, risk_threshold: float = 0.3, growth_threshold: float = 0.05):
    warnings, suggestions = [], []
    if result.risk_assessment > risk_threshold:
        warnings.append("High risk detected - consider risk management measures")
        suggestions.append("Implement position sizing based on volatility")
    if result.expected_return < growth_threshold:
        suggestions.append("Consider more aggressive growth strategies")
    if result.stopped_early:
        warnings.append(f"Search stopped early after {result.iterations} iterations; estimates are partial")
    confidence = min(max(1.0 - result.risk_assessment, 0.0), 1.0)
    return ResultSummary(risk_warnings=warnings, suggestions=suggestions, confidence_score=confidence)
