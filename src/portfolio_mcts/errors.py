"""Exception family for portfolio-mcts.

Only configuration problems are surfaced to callers; degenerate portfolio
states are handled inside the engine with documented sentinel values.
"""
from typing import Any, Dict, Optional


class PortfolioMCTSError(Exception):
    """Base class for every error raised by this package."""

    def __init__(self, message: str = "", details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details: Dict[str, Any] = details or {}


class ConfigurationError(PortfolioMCTSError, ValueError):
    """Invalid engine or policy configuration, raised before a search starts."""

    def __init__(self, message: str = "Invalid configuration", field: str = "", value: Any = None):
        super().__init__(message, {"field": field, "value": value})
        self.field = field
        self.value = value


class MarketDataError(PortfolioMCTSError):
    """Fetched or estimated market data cannot be turned into assumptions."""
