import logging
import time
from datetime import date, timedelta
from typing import Callable, List, Optional, Protocol

import numpy as np
import pandas as pd
import yfinance as yf

from ..config import DataConfig, PricePoint
from ..errors import MarketDataError
from .cache import ExpiringCache, key_path

logger = logging.getLogger(__name__)

POINT_COLUMNS = ["date", "close", "adjusted_close", "dividend_per_share", "split_ratio"]


class PriceProvider(Protocol):
    def get_history(self, ticker: str, start: date, end: date) -> List[PricePoint]:
        ...


def _cache_read(path, max_age_seconds: float) -> Optional[pd.DataFrame]:
    if not path.exists():
        return None
    if time.time() - path.stat().st_mtime > max_age_seconds:
        return None
    frame = pd.read_csv(path, parse_dates=["date"])
    frame["date"] = frame["date"].dt.date
    return frame


def _cache_write(df, path):
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)


def frame_to_price_points(data: pd.DataFrame, start: date, end: date) -> List[PricePoint]:
    """
    Convert a daily ``Ticker.history(auto_adjust=False, actions=True)`` frame
    into PricePoints inside [start, end], ascending by date.
    Missing Close falls back to Adj Close and vice versa; rows without a
    finite price are dropped. A 0 in "Stock Splits" means no split.
    """
    cols = set(data.columns)
    if "Close" not in cols and "Adj Close" not in cols:
        raise MarketDataError(f"Could not find Close/Adj Close columns. Columns={list(data.columns)}")

    close = data["Close"] if "Close" in cols else data["Adj Close"]
    adjusted = data["Adj Close"] if "Adj Close" in cols else close
    close, adjusted = close.fillna(adjusted), adjusted.fillna(close)

    zeros = pd.Series(0.0, index=data.index)
    dividends = pd.to_numeric(data.get("Dividends", zeros), errors="coerce").fillna(0.0)
    splits = pd.to_numeric(data.get("Stock Splits", zeros), errors="coerce").fillna(0.0)

    frame = pd.DataFrame({
        "date": [ts.date() for ts in data.index],
        "close": close.astype(float).to_numpy(),
        "adjusted_close": adjusted.astype(float).to_numpy(),
        "dividend_per_share": dividends.clip(lower=0.0).to_numpy(),
        "split_ratio": np.where(splits.to_numpy() > 0, splits.to_numpy(), 1.0),
    })
    frame = frame[np.isfinite(frame["close"]) & np.isfinite(frame["adjusted_close"])]
    frame = frame[(frame["date"] >= start) & (frame["date"] <= end)]
    frame = frame.drop_duplicates(subset="date", keep="last").sort_values("date")
    return _frame_points(frame)


def _frame_points(frame: pd.DataFrame) -> List[PricePoint]:
    return [
        PricePoint(row.date, float(row.close), float(row.adjusted_close),
                   float(row.dividend_per_share), float(row.split_ratio))
        for row in frame.itertuples(index=False)
    ]


def _points_frame(points: List[PricePoint]) -> pd.DataFrame:
    return pd.DataFrame(
        [(p.date, p.close, p.adjusted_close, p.dividend_per_share, p.split_ratio) for p in points],
        columns=POINT_COLUMNS,
    )


class YahooPriceProvider:
    """
    Daily price history from Yahoo Finance through yfinance.

    Retries each download on the configured delay schedule and caches
    results in the injected ExpiringCache under ticker + date range. When
    ``config.cache_dir`` is set, results are also kept as CSV on disk.
    """

    def __init__(self, cache: ExpiringCache, config: DataConfig = None,
                 ticker_factory: Callable = yf.Ticker, sleep: Callable[[float], None] = time.sleep):
        self.cache = cache
        self.config = config or DataConfig()
        self._ticker_factory = ticker_factory
        self._sleep = sleep

    @staticmethod
    def cache_key(ticker: str, start: date, end: date) -> str:
        return f"yahoo:{ticker}:{start.isoformat()}:{end.isoformat()}"

    def get_history(self, ticker: str, start: date, end: date) -> List[PricePoint]:
        symbol = (ticker or "").strip().upper()
        if not symbol:
            raise MarketDataError("Ticker is required")

        key = self.cache_key(symbol, start, end)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Cache hit for %s", key)
            return list(cached)

        disk = key_path(self.config.cache_dir, "yahoo", key) if self.config.cache_dir else None
        frame = _cache_read(disk, self.config.cache_ttl_seconds) if disk is not None else None
        if frame is not None:
            points = _frame_points(frame)
        else:
            data = self._download(symbol, start, end)
            if data is None or data.empty:
                raise MarketDataError(f"No price history available for {symbol}")
            points = frame_to_price_points(data, start, end)
            if not points:
                raise MarketDataError(f"No adjusted close values found for {symbol}")
            if disk is not None:
                _cache_write(_points_frame(points), disk)

        self.cache.set(key, tuple(points), self.config.cache_ttl_seconds)
        return points

    def _download(self, symbol: str, start: date, end: date) -> pd.DataFrame:
        delays = list(self.config.retry_delays)
        last_exc = None
        for attempt in range(len(delays) + 1):
            try:
                logger.debug("Downloading %s %s..%s (attempt %d)", symbol, start, end, attempt + 1)
                # yfinance treats ``end`` as exclusive
                return self._ticker_factory(symbol).history(
                    start=start.isoformat(),
                    end=(end + timedelta(days=1)).isoformat(),
                    interval="1d",
                    auto_adjust=False,
                    actions=True,
                )
            except Exception as e:
                last_exc = e
                logger.warning("Yahoo download for %s failed: %s", symbol, e)
                if attempt < len(delays):
                    self._sleep(delays[attempt])
        raise MarketDataError(f"Failed to fetch {symbol} from Yahoo Finance: {last_exc}") from last_exc
