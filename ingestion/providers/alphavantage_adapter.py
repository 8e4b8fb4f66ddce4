"""
Alpha Vantage adapter - daily series, global quote and company overview.
All three share one query endpoint selected by the `function` parameter.
"""

from typing import Any, Dict, Mapping, Optional

from ingestion.providers.base import HttpProviderClient, ProviderError, ProviderErrorKind, build_series
from ingestion.transforms.validators import (
    ValidationError,
    parse_optional_finite,
    parse_positive,
    require_key,
    require_mapping,
)

# Values Alpha Vantage uses for "not reported"
MISSING_MARKERS = ('None', '-', '')


class _AlphaVantageClient(HttpProviderClient):

    function = ''

    def __init__(self, base_url: str, api_key: Optional[str], timeout: float = 15.0, session=None):
        super().__init__(timeout=timeout, session=session)
        self.base_url = base_url
        self.api_key = api_key

    def _request(self, params: Mapping[str, Any]):
        query = {
            'function': self.function,
            'symbol': params['symbol'],
            'apikey': self._require_key(self.api_key, 'ALPHA_VANTAGE_API_KEY'),
        }
        return self.base_url, query, None

    def _get_json(self, url, query=None, headers=None):
        payload = super()._get_json(url, query, headers)

        # Errors come back as HTTP 200 with a message body
        if isinstance(payload, dict):
            if 'Note' in payload or 'Information' in payload:
                message = payload.get('Note') or payload.get('Information')
                raise ProviderError(ProviderErrorKind.RATE_LIMITED, str(message), self.name)
            if 'Error Message' in payload:
                raise ProviderError(
                    ProviderErrorKind.INVALID_RESPONSE, str(payload['Error Message']), self.name
                )

        return payload


class AlphaVantageDailyClient(_AlphaVantageClient):
    """TIME_SERIES_DAILY closes, oldest first, trimmed to `limit`."""

    name = 'alphavantage'
    function = 'TIME_SERIES_DAILY'

    def _parse(self, payload: Any, params: Mapping[str, Any]):
        body = require_mapping(payload, 'Alpha Vantage response')
        by_date = require_mapping(
            require_key(body, 'Time Series (Daily)', 'Alpha Vantage response'),
            'Time Series (Daily)'
        )
        if not by_date:
            raise ValidationError("Time Series (Daily) is empty")

        labels = sorted(by_date.keys())[-int(params.get('limit', 30)):]
        values = []
        for label in labels:
            day = require_mapping(by_date[label], f"Alpha Vantage day {label}")
            values.append(parse_positive(day.get('4. close'), '4. close'))

        return build_series(params['key'], labels, values)


class AlphaVantageQuoteClient(_AlphaVantageClient):
    """GLOBAL_QUOTE price and percent change."""

    name = 'alphavantage_quote'
    function = 'GLOBAL_QUOTE'

    def _parse(self, payload: Any, params: Mapping[str, Any]) -> Dict[str, Any]:
        body = require_mapping(payload, 'Alpha Vantage response')
        quote = require_mapping(
            require_key(body, 'Global Quote', 'Alpha Vantage response'), 'Global Quote'
        )
        if not quote:
            raise ValidationError(f"No quote for {params['symbol']}")

        return {
            'symbol': params['symbol'],
            'price': parse_positive(quote.get('05. price'), '05. price'),
            'change': parse_optional_finite(
                quote.get('10. change percent'), '10. change percent', MISSING_MARKERS
            ),
        }


class AlphaVantageOverviewClient(_AlphaVantageClient):
    """OVERVIEW fundamentals. Unreported fields are None."""

    name = 'alphavantage_overview'
    function = 'OVERVIEW'

    FIELDS = {
        'pe': 'PERatio',
        'market_cap': 'MarketCapitalization',
        'eps': 'EPS',
        'beta': 'Beta',
        'dividend_yield': 'DividendYield',
    }

    def _parse(self, payload: Any, params: Mapping[str, Any]) -> Dict[str, Any]:
        body = require_mapping(payload, 'Alpha Vantage response')
        # Unknown symbols return an empty object
        if not body or 'Symbol' not in body:
            raise ValidationError(f"No overview for {params['symbol']}")

        record = {'symbol': params['symbol']}
        for name, field in self.FIELDS.items():
            record[name] = parse_optional_finite(body.get(field), field, MISSING_MARKERS)

        return record
