"""Market data service for cached MEXC candle series."""

import logging
from typing import Dict, List, Sequence

import pandas as pd

from .models import Candle

logger = logging.getLogger(__name__)

KLINE_COLUMNS = ['Open_time', 'Open', 'High', 'Low', 'Close', 'Volume', 'Close_time', 'Quote_asset_volume']
VALID_INTERVALS = ['1m', '5m', '15m', '30m', '60m', '4h', '1d', '1W', '1M']


def cache_key(symbol: str, timeframe: str) -> str:
    return f"{symbol}-{timeframe}"


def split_cache_key(key: str):
    """'BTCUSDT-4h' -> ('BTCUSDT', '4h'); keys without a dash get 'Unknown'."""
    symbol, dash, timeframe = key.rpartition('-')
    if not dash:
        return key, 'Unknown'
    return symbol, timeframe


class MarketDataService:
    """Fetches MEXC klines into an in-memory cache of candle series."""

    def __init__(self, public_client=None):
        self._public_client = public_client
        self.cache: Dict[str, List[Candle]] = {}

    @property
    def public_client(self):
        """Lazy initialization of the public MEXC spot client."""
        if self._public_client is None:
            from pymexc import spot
            self._public_client = spot.HTTP()
        return self._public_client

    def validate_timeframe(self, timeframe: str) -> str:
        if timeframe not in VALID_INTERVALS:
            logger.warning(f"{timeframe} is not a valid MEXC interval. Using 1m as default.")
            return '1m'
        return timeframe

    def fetch_market_dataframe(self, symbol: str, timeframe: str, limit: int = 100) -> pd.DataFrame:
        """
        Fetch klines and return them as a processed DataFrame.

        Args:
            symbol: Trading pair symbol (e.g., 'BTCUSDT')
            timeframe: Time interval (e.g., '1m', '4h')
            limit: Number of klines to fetch

        Returns:
            DataFrame with OHLCV columns, empty if nothing was returned
        """
        klines = self.public_client.klines(symbol=symbol, interval=timeframe, limit=limit)
        if not klines:
            return pd.DataFrame()

        df = pd.DataFrame([row[:len(KLINE_COLUMNS)] for row in klines])
        df.columns = KLINE_COLUMNS[:df.shape[1]]

        df['Open_time'] = pd.to_datetime(df['Open_time'], unit='ms')
        for col in ['Open', 'High', 'Low', 'Close', 'Volume']:
            df[col] = pd.to_numeric(df[col])

        return df

    @staticmethod
    def dataframe_to_candles(df: pd.DataFrame) -> List[Candle]:
        if df.empty:
            return []
        return [
            Candle(
                date=row.Open_time.to_pydatetime(),
                open=float(row.Open),
                high=float(row.High),
                low=float(row.Low),
                close=float(row.Close),
                volume=float(row.Volume),
            )
            for row in df.itertuples(index=False)
        ]

    def refresh(self, symbol: str, timeframe: str, limit: int = 100) -> str:
        """Fetch a series into the cache and return its cache key."""
        timeframe = self.validate_timeframe(timeframe)
        key = cache_key(symbol, timeframe)
        self.cache[key] = self.dataframe_to_candles(self.fetch_market_dataframe(symbol, timeframe, limit))
        logger.info(f"Cached {len(self.cache[key])} candles for {key}")
        return key

    def select(self, keys: Sequence[str]) -> Dict[str, List[Candle]]:
        """The subset of cached series named by `keys`; unknown keys are skipped."""
        return {key: self.cache[key] for key in keys if key in self.cache}

    def summary(self) -> Dict[str, int]:
        return {key: len(candles) for key, candles in self.cache.items()}
