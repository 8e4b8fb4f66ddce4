"""
CoinGecko adapter - coin price history, global market metrics and a top-coin snapshot.
The public API needs no key.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Mapping

from ingestion.providers.base import HttpProviderClient, build_series
from ingestion.transforms.validators import (
    ValidationError,
    parse_finite,
    parse_optional_finite,
    parse_positive,
    require_key,
    require_list,
    require_mapping,
)

# Coins in the crypto-top snapshot
TOP_COINS = ('bitcoin', 'ethereum', 'solana')


class CoinGeckoMarketChartClient(HttpProviderClient):
    """/coins/{id}/market_chart daily prices in USD."""

    name = 'coingecko'

    def __init__(self, base_url: str, timeout: float = 15.0, session=None):
        super().__init__(timeout=timeout, session=session)
        self.base_url = base_url.rstrip('/')

    def _request(self, params: Mapping[str, Any]):
        url = f"{self.base_url}/coins/{params['coin']}/market_chart"
        query = {'vs_currency': 'usd', 'days': params.get('days', 30), 'interval': 'daily'}
        return url, query, None

    def _parse(self, payload: Any, params: Mapping[str, Any]):
        body = require_mapping(payload, 'CoinGecko response')
        points = require_list(body.get('prices'), 'CoinGecko prices')

        by_day = {}
        for point in points:
            if not isinstance(point, list) or len(point) < 2:
                raise ValidationError(f"CoinGecko price point must be [ms, price], got {point!r}")
            label = _utc_day(parse_finite(point[0], 'timestamp'))
            # The final point is the current intraday price; keep the latest per day
            by_day[label] = parse_positive(point[1], 'price')

        labels = sorted(by_day)
        return build_series(params['key'], labels, [by_day[label] for label in labels])


class CoinGeckoGlobalClient(HttpProviderClient):
    """/global total market cap, volume and 24h change."""

    name = 'coingecko_global'

    def __init__(self, base_url: str, timeout: float = 15.0, session=None):
        super().__init__(timeout=timeout, session=session)
        self.base_url = base_url.rstrip('/')

    def _request(self, params: Mapping[str, Any]):
        return f"{self.base_url}/global", None, None

    def _parse(self, payload: Any, params: Mapping[str, Any]) -> Dict[str, Any]:
        body = require_mapping(payload, 'CoinGecko response')
        data = require_mapping(require_key(body, 'data', 'CoinGecko response'), 'CoinGecko data')

        market_cap = require_mapping(data.get('total_market_cap'), 'total_market_cap')
        volume = require_mapping(data.get('total_volume'), 'total_volume')

        return {
            'total_market_cap': parse_positive(market_cap.get('usd'), 'total_market_cap.usd'),
            'total_volume': parse_positive(volume.get('usd'), 'total_volume.usd'),
            'market_cap_change_24h': parse_optional_finite(
                data.get('market_cap_change_percentage_24h_usd'),
                'market_cap_change_percentage_24h_usd'
            ),
        }


class CoinGeckoSimplePriceClient(HttpProviderClient):
    """
    /simple/price snapshot for a fixed set of coins.

    Record shape: {coin: {'price', 'market_cap', 'change'}}, change is the
    24h percent change. Every requested coin must be present.
    """

    name = 'coingecko_top'

    def __init__(self, base_url: str, timeout: float = 15.0, session=None):
        super().__init__(timeout=timeout, session=session)
        self.base_url = base_url.rstrip('/')

    def _request(self, params: Mapping[str, Any]):
        query = {
            'ids': ','.join(params.get('coins', TOP_COINS)),
            'vs_currencies': 'usd',
            'include_market_cap': 'true',
            'include_24hr_change': 'true',
        }
        return f"{self.base_url}/simple/price", query, None

    def _parse(self, payload: Any, params: Mapping[str, Any]) -> Dict[str, Any]:
        body = require_mapping(payload, 'CoinGecko response')

        record = {}
        for coin in params.get('coins', TOP_COINS):
            quote = require_mapping(require_key(body, coin, 'CoinGecko simple price'), coin)
            record[coin] = {
                'price': parse_positive(quote.get('usd'), f"{coin}.usd"),
                'market_cap': parse_optional_finite(quote.get('usd_market_cap'), f"{coin}.usd_market_cap"),
                'change': parse_optional_finite(quote.get('usd_24h_change'), f"{coin}.usd_24h_change"),
            }
        return record


def _utc_day(millis: float) -> str:
    """ISO date (UTC) of a millisecond epoch timestamp."""
    try:
        return datetime.fromtimestamp(millis / 1000, tz=timezone.utc).date().isoformat()
    except (ValueError, OverflowError, OSError):
        raise ValidationError(f"timestamp out of range: {millis}")
