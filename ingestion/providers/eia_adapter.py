"""
EIA adapter - energy spot price series (WTI crude, Henry Hub gas) and the
monthly electricity fuel mix.
"""

from collections import defaultdict
from typing import Any, Dict, Mapping, Optional

from ingestion.providers.base import HttpProviderClient, build_series
from ingestion.transforms.validators import (
    ValidationError,
    check_label_uniqueness,
    parse_optional_finite,
    require_key,
    require_list,
    require_mapping,
)

# Named series available as energy:<name>
SERIES_IDS = {
    'oil': 'PET.RWTC.D',
    'gas': 'NG.RNGWHHD.D',
}

# EIA accepts this key for low-volume anonymous use
DEMO_KEY = 'DEMO_KEY'


class EIASeriesClient(HttpProviderClient):
    """/v2/seriesid/{id} observations, oldest first, trimmed to `limit`."""

    name = 'eia'

    def __init__(self, base_url: str, api_key: Optional[str], timeout: float = 15.0, session=None):
        super().__init__(timeout=timeout, session=session)
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key or DEMO_KEY

    def _request(self, params: Mapping[str, Any]):
        series_id = SERIES_IDS.get(params['series'], params['series'])
        return f"{self.base_url}/seriesid/{series_id}", {'api_key': self.api_key}, None

    def _parse(self, payload: Any, params: Mapping[str, Any]):
        body = require_mapping(payload, 'EIA response')
        response = require_mapping(require_key(body, 'response', 'EIA response'), 'EIA response')
        rows = require_list(response.get('data'), 'EIA data')

        points = []
        for row in rows:
            row = require_mapping(row, 'EIA row')
            period = row.get('period')
            if not isinstance(period, str) or not period:
                raise ValidationError(f"EIA row missing period: {row}")
            points.append((period, parse_optional_finite(row.get('value'), 'value')))

        points.sort(key=lambda p: p[0])
        points = points[-int(params.get('limit', 365)):]

        labels = [p[0] for p in points]
        check_label_uniqueness(labels, 'EIA data')
        return build_series(params['key'], labels, [p[1] for p in points])


class EIAFuelMixClient(HttpProviderClient):
    """
    Monthly electricity generation by fuel type for one balancing authority.

    Record shape: {'labels': ['YYYY-MM', ...], 'datasets': {fueltype: [...]}}.
    Rows for the same month and fuel are summed; a fuel with no row for a
    month gets 0. Fuels keep the order they first appear in.
    """

    name = 'eia_mix'

    def __init__(self, base_url: str, api_key: Optional[str], timeout: float = 15.0, session=None):
        super().__init__(timeout=timeout, session=session)
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key or DEMO_KEY

    def _request(self, params: Mapping[str, Any]):
        query = {
            'api_key': self.api_key,
            'frequency': 'monthly',
            'data[0]': 'value',
            'facets[respondent][]': params.get('respondent', 'ERCO'),
            'start': params.get('start', '2023-01'),
            'end': params.get('end', '2024-01'),
        }
        return f"{self.base_url}/electricity/rto/fuel-type-data/data/", query, None

    def _parse(self, payload: Any, params: Mapping[str, Any]) -> Dict[str, Any]:
        body = require_mapping(payload, 'EIA response')
        response = require_mapping(require_key(body, 'response', 'EIA response'), 'EIA response')
        rows = require_list(response.get('data'), 'EIA data')

        totals = defaultdict(dict)
        fuels = []
        for row in rows:
            row = require_mapping(row, 'EIA row')
            period = row.get('period')
            fuel = row.get('fueltype')
            if not isinstance(period, str) or len(period) < 7:
                raise ValidationError(f"EIA row has no monthly period: {row}")
            if not isinstance(fuel, str) or not fuel:
                raise ValidationError(f"EIA row missing fueltype: {row}")

            value = parse_optional_finite(row.get('value'), 'value')
            if fuel not in fuels:
                fuels.append(fuel)
            month = totals[period[:7]]
            month[fuel] = month.get(fuel, 0.0) + (value or 0.0)

        labels = sorted(totals)
        return {
            'labels': labels,
            'datasets': {fuel: [totals[label].get(fuel, 0.0) for label in labels] for fuel in fuels},
        }
