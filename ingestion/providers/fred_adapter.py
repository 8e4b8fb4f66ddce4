"""
FRED adapter - macroeconomic observations (CPI, unemployment, rates, ...).
"""

from typing import Any, Mapping, Optional

from ingestion.providers.base import HttpProviderClient, build_series
from ingestion.transforms.validators import (
    ValidationError,
    parse_optional_finite,
    require_list,
    require_mapping,
)


class FredObservationsClient(HttpProviderClient):
    """
    /series/observations for one FRED series id.

    FRED reports a missing observation as the string "." - those become
    absent points rather than failing the response.
    """

    name = 'fred'

    def __init__(self, base_url: str, api_key: Optional[str], timeout: float = 15.0, session=None):
        super().__init__(timeout=timeout, session=session)
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key

    def _request(self, params: Mapping[str, Any]):
        query = {
            'series_id': params['series'],
            'api_key': self._require_key(self.api_key, 'FRED_API_KEY'),
            'file_type': 'json',
            'sort_order': 'asc',
            'observation_start': params.get('observation_start', '2015-01-01'),
        }
        return f"{self.base_url}/series/observations", query, None

    def _parse(self, payload: Any, params: Mapping[str, Any]):
        body = require_mapping(payload, 'FRED response')
        rows = require_list(body.get('observations'), 'FRED observations')

        labels = []
        values = []
        for row in rows:
            row = require_mapping(row, 'FRED observation')
            label = row.get('date')
            if not isinstance(label, str) or not label:
                raise ValidationError(f"FRED observation missing date: {row}")
            labels.append(label)
            values.append(parse_optional_finite(row.get('value'), 'value', ('.',)))

        limit = params.get('limit')
        if limit:
            labels = labels[-int(limit):]
            values = values[-int(limit):]

        return build_series(params['key'], labels, values)
