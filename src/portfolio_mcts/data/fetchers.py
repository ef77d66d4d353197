import io
import logging

import certifi
import pandas as pd
import requests
import yfinance as yf

from ..errors import MarketDataError
from .cache import key_path

logger = logging.getLogger(__name__)

FRED_URLS = (
    "https://fred.stlouisfed.org/series/{sid}/downloaddata/{sid}.csv&frequency=m",
    "https://fred.stlouisfed.org/graph/fredgraph.csv?id={sid}&frequency=m",
)


def _cache_read(path):
    if path.exists():
        return pd.read_csv(path, index_col=0, parse_dates=True)
    return None


def _cache_write(df, path):
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path)


def _extract_close_frame(data, tickers):
    if isinstance(data, pd.DataFrame) and isinstance(data.columns, pd.MultiIndex):
        lvl0 = set(data.columns.get_level_values(0))
        if "Close" in lvl0:
            return data["Close"].copy()
        if "Adj Close" in lvl0:
            return data["Adj Close"].copy()
        for fld in ("Close", "Adj Close"):
            try:
                return data.xs(fld, level=1, axis=1).copy()
            except KeyError:
                pass
    if isinstance(data, pd.DataFrame):
        for fld in ("Close", "Adj Close"):
            if fld in data.columns:
                return data[[fld]].rename(columns={fld: tickers[0]}).copy()
    raise MarketDataError(f"Could not find Close/Adj Close columns. Columns={list(data.columns)}")


def fetch_prices_monthly(tickers, start=None, end=None):
    """Download daily auto-adjusted prices from Yahoo and resample to month-end."""
    tickers = list(tickers)
    logger.info("Downloading from Yahoo Finance: %s", tickers)
    data = yf.download(
        tickers,
        auto_adjust=True,
        progress=False,
        interval="1d",
        group_by="column",
        period="max",
    )
    px_daily = _extract_close_frame(data, tickers)
    present = [t for t in tickers if t in px_daily.columns]
    if not present:
        raise MarketDataError("None of the requested tickers returned price data.", {"tickers": tickers})
    missing = sorted(set(tickers) - set(present))
    if missing:
        logger.warning("No price data for %s", missing)
    px_daily = px_daily[present]
    if start is not None:
        px_daily = px_daily[px_daily.index >= pd.to_datetime(start)]
    if end is not None:
        px_daily = px_daily[px_daily.index <= pd.to_datetime(end)]
    return px_daily.resample("ME").last().dropna(how="all")


def _parse_fred_csv(text, series_id):
    df = pd.read_csv(io.StringIO(text))
    if "observation_date" not in df.columns:
        raise ValueError("CSV missing observation_date column")
    df["observation_date"] = pd.to_datetime(df["observation_date"])
    if series_id not in df.columns:
        # fredgraph.csv names the value column differently
        value_cols = [c for c in df.columns if c != "observation_date"]
        if not value_cols:
            raise ValueError("CSV missing value column")
        df = df.rename(columns={value_cols[0]: series_id})
    df[series_id] = pd.to_numeric(df[series_id], errors="coerce")
    return df.dropna(subset=[series_id]).set_index("observation_date")[[series_id]]


def fetch_fred_series(series_id, start=None, end=None, session=None):
    """
    Fetch a FRED series via the keyless CSV endpoints, bypassing system proxies.
    Results are cached as month-end data under ``data_cache/``.
    """
    path = key_path("fred", f"{series_id}|{start}|{end}")
    cached = _cache_read(path)
    if cached is not None:
        return cached

    sess = session or requests.Session()
    # ignore proxy environment variables that may be misconfigured
    sess.trust_env = False
    headers = {"User-Agent": "portfolio-mcts/0.1"}

    last_exc = None
    for template in FRED_URLS:
        url = template.format(sid=series_id)
        try:
            r = sess.get(
                url,
                timeout=30,
                verify=certifi.where(),
                headers=headers,
                allow_redirects=True,
                proxies={"http": None, "https": None},
            )
            r.raise_for_status()
            df = _parse_fred_csv(r.text, series_id)
        except (requests.RequestException, ValueError) as e:
            logger.debug("FRED attempt failed for %s via %s: %s", series_id, url, e)
            last_exc = e
            continue

        if start is not None:
            df = df[df.index >= pd.to_datetime(start)]
        if end is not None:
            df = df[df.index <= pd.to_datetime(end)]
        df = df.resample("ME").last()
        _cache_write(df, path)
        return df

    raise MarketDataError(f"Failed to fetch FRED series {series_id}: {last_exc}", {"series_id": series_id})
