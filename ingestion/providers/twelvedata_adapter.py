"""
Twelve Data adapter - daily time series.
"""

from typing import Any, Mapping, Optional

from ingestion.providers.base import HttpProviderClient, ProviderError, ProviderErrorKind, build_series
from ingestion.transforms.validators import (
    ValidationError,
    check_label_uniqueness,
    parse_positive,
    require_list,
    require_mapping,
)


class TwelveDataSeriesClient(HttpProviderClient):
    """/time_series daily closes. The API returns newest first."""

    name = 'twelvedata'

    def __init__(self, base_url: str, api_key: Optional[str], timeout: float = 15.0, session=None):
        super().__init__(timeout=timeout, session=session)
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key

    def _request(self, params: Mapping[str, Any]):
        query = {
            'symbol': params['symbol'],
            'interval': '1day',
            'outputsize': params.get('limit', 30),
            'apikey': self._require_key(self.api_key, 'TWELVE_DATA_API_KEY'),
        }
        return f"{self.base_url}/time_series", query, None

    def _parse(self, payload: Any, params: Mapping[str, Any]):
        body = require_mapping(payload, 'Twelve Data response')

        if body.get('status') == 'error':
            code = body.get('code')
            message = body.get('message', 'unknown error')
            if code == 429:
                raise ProviderError(ProviderErrorKind.RATE_LIMITED, message, self.name)
            if code in (401, 403):
                raise ProviderError(ProviderErrorKind.AUTH, message, self.name)
            raise ValidationError(f"Twelve Data error: {message}")

        rows = require_list(body.get('values'), 'Twelve Data values')

        labels = []
        values = []
        for row in reversed(rows):
            row = require_mapping(row, 'Twelve Data row')
            label = row.get('datetime')
            if not isinstance(label, str) or not label:
                raise ValidationError(f"Twelve Data row missing datetime: {row}")
            labels.append(label[:10])
            values.append(parse_positive(row.get('close'), 'close'))

        check_label_uniqueness(labels, 'Twelve Data values')
        return build_series(params['key'], labels, values)
