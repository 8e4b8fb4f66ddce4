"""
Alpaca market data adapter - daily stock and crypto bars.
Requests carry both the key id and secret as headers.
"""

from typing import Any, Dict, List, Mapping, Optional

from dateutil import parser as date_parser

from ingestion.providers.base import HttpProviderClient, build_series
from ingestion.transforms.validators import (
    ValidationError,
    first_present,
    parse_finite,
    parse_positive,
    require_list,
    require_mapping,
)


class _AlpacaClient(HttpProviderClient):

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str],
        api_secret: Optional[str],
        timeout: float = 15.0,
        session=None
    ):
        super().__init__(timeout=timeout, session=session)
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.api_secret = api_secret

    def _headers(self) -> Dict[str, str]:
        return {
            'APCA-API-KEY-ID': self._require_key(self.api_key, 'ALPACA_API_KEY'),
            'APCA-API-SECRET-KEY': self._require_key(self.api_secret, 'ALPACA_API_SECRET'),
        }


class AlpacaStockBarsClient(_AlpacaClient):
    """Daily closing prices for an equity from /v2/stocks/{symbol}/bars."""

    name = 'alpaca'

    def _request(self, params: Mapping[str, Any]):
        symbol = params['symbol']
        url = f"{self.base_url}/v2/stocks/{symbol}/bars"
        query = {'timeframe': '1Day', 'limit': params.get('limit', 30)}
        return url, query, self._headers()

    def _parse(self, payload: Any, params: Mapping[str, Any]):
        body = require_mapping(payload, 'Alpaca bars response')
        # Some deployments nest bars under "data"
        bars = body.get('bars')
        if bars is None and isinstance(body.get('data'), dict):
            bars = body['data'].get('bars')

        labels, values = parse_bars(require_list(bars, 'Alpaca bars'))
        return build_series(params['key'], labels, values)


class AlpacaCryptoBarsClient(_AlpacaClient):
    """Daily closing prices for a coin from /v1beta1/crypto/bars (e.g. BTCUSD)."""

    name = 'alpaca_crypto'

    def _request(self, params: Mapping[str, Any]):
        pair = crypto_pair(params['coin'])
        url = f"{self.base_url}/v1beta1/crypto/bars"
        query = {'symbols': pair, 'timeframe': '1Day', 'limit': params.get('limit', 30)}
        return url, query, self._headers()

    def _parse(self, payload: Any, params: Mapping[str, Any]):
        body = require_mapping(payload, 'Alpaca crypto response')
        bars_by_pair = require_mapping(body.get('bars'), 'Alpaca crypto bars')
        pair = crypto_pair(params['coin'])

        labels, values = parse_bars(require_list(bars_by_pair.get(pair), f"Alpaca {pair} bars"))
        return build_series(params['key'], labels, values)


class AlpacaQuoteClient(_AlpacaClient):
    """Latest price and daily % change from the last two daily bars."""

    name = 'alpaca_quote'

    def _request(self, params: Mapping[str, Any]):
        symbol = params['symbol']
        url = f"{self.base_url}/v2/stocks/{symbol}/bars"
        return url, {'timeframe': '1Day', 'limit': 2}, self._headers()

    def _parse(self, payload: Any, params: Mapping[str, Any]) -> Dict[str, Any]:
        body = require_mapping(payload, 'Alpaca bars response')
        bars = body.get('bars')
        if bars is None and isinstance(body.get('data'), dict):
            bars = body['data'].get('bars')
        bars = require_list(bars, 'Alpaca bars')

        last = require_mapping(bars[-1], 'Alpaca bar')
        price = parse_positive(first_present(last, ('c', 'close')), 'close')

        change = None
        if len(bars) > 1:
            prev = require_mapping(bars[-2], 'Alpaca bar')
            prev_close = parse_finite(first_present(prev, ('c', 'close')), 'close')
            if prev_close != 0:
                change = (price - prev_close) / prev_close * 100

        return {'symbol': params['symbol'], 'price': price, 'change': change}


def crypto_pair(coin: str) -> str:
    """Alpaca pair symbol for a coin id or ticker ('bitcoin' -> 'BTCUSD')."""
    tickers = {'bitcoin': 'BTC', 'ethereum': 'ETH', 'solana': 'SOL'}
    base = tickers.get(coin.lower(), coin.upper())
    return f"{base}USD"


def parse_bars(bars: List[Any]):
    """
    Extract (labels, closes) from Alpaca bar objects.

    Each bar has a timestamp under t/timestamp/start and a close under c/close.

    Raises:
        ValidationError: If any bar lacks a timestamp or a finite close
    """
    labels = []
    values = []
    for bar in bars:
        bar = require_mapping(bar, 'Alpaca bar')

        timestamp = first_present(bar, ('t', 'timestamp', 'start'))
        if not isinstance(timestamp, str) or not timestamp:
            raise ValidationError(f"Alpaca bar missing timestamp: {bar}")
        try:
            label = date_parser.isoparse(timestamp).date().isoformat()
        except ValueError:
            raise ValidationError(f"Alpaca bar timestamp unparseable: {timestamp!r}")

        labels.append(label)
        values.append(parse_positive(first_present(bar, ('c', 'close')), 'close'))

    return labels, values
