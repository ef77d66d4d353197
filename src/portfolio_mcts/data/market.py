"""Turn historical month-end prices into the per-asset assumptions the search uses."""
import logging

import numpy as np
import pandas as pd

from ..config import AssetAssumption, MarketData
from ..errors import MarketDataError
from .fetchers import fetch_fred_series, fetch_prices_monthly

logger = logging.getLogger(__name__)

MONTHS_PER_YEAR = 12


def monthly_returns(prices_m: pd.DataFrame, start=None, end=None) -> pd.DataFrame:
    """Trim to dates, force common overlap and compute monthly simple returns."""
    prices_m = prices_m.sort_index()
    if start:
        prices_m = prices_m[prices_m.index >= pd.to_datetime(start)]
    if end:
        prices_m = prices_m[prices_m.index <= pd.to_datetime(end)]
    prices_m = prices_m.dropna(axis=1, how="all").dropna(how="any")
    return prices_m.pct_change().dropna()


def risk_free_from_tb3ms(tb3: pd.DataFrame) -> float:
    """Latest 3-month T-bill yield (percent, FRED TB3MS) as an annual decimal rate."""
    s = tb3["TB3MS"].dropna() if isinstance(tb3, pd.DataFrame) else tb3.dropna()
    if s.empty:
        raise MarketDataError("TB3MS series is empty")
    return float(s.iloc[-1]) / 100.0


def estimate_market_data(
    prices_m: pd.DataFrame,
    risk_free_rate: float,
    scenarios=(),
    recession_factors=None,
    current_conditions=None,
    start=None,
    end=None,
) -> MarketData:
    """Annualised mean (x12) and volatility (x sqrt 12) of monthly simple returns."""
    rets = monthly_returns(prices_m, start=start, end=end)
    if len(rets) < 2:
        raise MarketDataError("Need at least two months of overlapping returns", {"rows": len(rets)})
    recession_factors = recession_factors or {}
    mean = rets.mean() * MONTHS_PER_YEAR
    vol = rets.std(ddof=1) * np.sqrt(MONTHS_PER_YEAR)
    assets = {}
    for ticker in rets.columns:
        assets[str(ticker)] = AssetAssumption(
            expected_return=float(mean[ticker]),
            volatility=float(vol[ticker]),
            recession_factor=recession_factors.get(ticker),
        )
    logger.info("Estimated assumptions for %d assets over %d months", len(assets), len(rets))
    return MarketData(
        assets=assets,
        risk_free_rate=float(risk_free_rate),
        scenarios=tuple(dict(s) for s in scenarios),
        current_conditions=dict(current_conditions or {}),
    )


def load_market_data(tickers, start=None, end=None, risk_free_rate=None, **kwargs) -> MarketData:
    """Fetch prices (and TB3MS when no risk-free rate is given) and estimate assumptions."""
    prices_m = fetch_prices_monthly(tickers, start=start, end=end)
    if risk_free_rate is None:
        risk_free_rate = risk_free_from_tb3ms(fetch_fred_series("TB3MS", start=start, end=end))
    return estimate_market_data(prices_m, risk_free_rate, start=start, end=end, **kwargs)
