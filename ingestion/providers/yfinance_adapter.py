"""
yfinance adapter - daily closes from Yahoo Finance.
Network IO allowed here, but minimal business logic.
"""

from datetime import date, timedelta
from typing import Any, Mapping, Optional

import pandas as pd
import yfinance as yf

from ingestion.providers.base import ProviderClient, ProviderError, ProviderErrorKind, build_series
from ingestion.transforms.validators import ValidationError, parse_positive


class YFinanceHistoryClient(ProviderClient):
    """
    Daily close history via yfinance.download.

    yfinance is not a plain JSON endpoint, so this client implements
    `fetch` directly; it keeps the same error contract and every failure
    surfaces as ProviderError.
    """

    name = 'yfinance'

    def __init__(self, timeout: float = 15.0, today: Optional[date] = None):
        super().__init__(timeout=timeout)
        self._today = today

    def fetch(self, params: Mapping[str, Any]):
        symbol = params['symbol']
        limit = int(params.get('limit', 30))

        end = self._today or date.today()
        # Calendar days cover weekends and holidays around the trading days wanted
        start = end - timedelta(days=limit * 2 + 7)

        try:
            # yfinance uses exclusive end dates, so add 1 day
            data = yf.download(
                symbol,
                start=start.isoformat(),
                end=(end + timedelta(days=1)).isoformat(),
                progress=False,
                timeout=self.timeout
            )
        except Exception as e:
            raise ProviderError(ProviderErrorKind.TRANSIENT, f"Download failed: {e}", self.name) from e

        try:
            labels, values = frame_to_closes(data)
            return build_series(params['key'], labels[-limit:], values[-limit:])
        except (ValueError, TypeError, OverflowError) as e:
            raise ProviderError(ProviderErrorKind.INVALID_RESPONSE, str(e), self.name) from e


def frame_to_closes(data: Optional[pd.DataFrame]):
    """
    Extract (labels, closes) from a yfinance frame.

    Rows with a NaN close are skipped (non-trading placeholders);
    an infinite or non-positive close fails the whole frame.

    Raises:
        ValidationError: If the frame is empty or has no Close column
    """
    if data is None or len(data) == 0:
        raise ValidationError("yfinance returned no rows")

    # Handle multi-level columns (when yfinance returns ticker-specific columns)
    if isinstance(data.columns, pd.MultiIndex):
        data = data.copy()
        data.columns = data.columns.get_level_values(0)

    if 'Close' not in data.columns:
        raise ValidationError("yfinance frame has no Close column")

    closes = data['Close']
    if isinstance(closes, pd.DataFrame):
        closes = closes.iloc[:, 0]

    labels = []
    values = []
    for date_idx, close in closes.items():
        if pd.isna(close):
            continue
        labels.append(date_idx.strftime('%Y-%m-%d'))
        values.append(parse_positive(float(close), 'Close'))

    return labels, values
