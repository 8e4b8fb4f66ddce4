"""
Polygon adapter - option chain snapshot for one underlying.
The chain client keeps the nearest expiration; the surface client keeps
the first few.
"""

from collections import defaultdict
from typing import Any, Dict, Mapping, Optional

from ingestion.providers.base import HttpProviderClient
from ingestion.transforms.validators import (
    ValidationError,
    parse_finite,
    parse_optional_finite,
    require_list,
    require_mapping,
)

GREEKS = ('delta', 'gamma', 'theta', 'vega')


class PolygonOptionChainClient(HttpProviderClient):
    """
    /v3/snapshot/options/{underlying} decoded into a chain record.

    Record shape:
        {'underlying', 'expiration',
         'contracts': [{'strike', 'iv', 'open_interest', 'delta', 'gamma', 'theta', 'vega'}]}

    iv is in percent. Contracts are sorted by strike; greeks Polygon did
    not compute are None.
    """

    name = 'polygon'

    def __init__(self, base_url: str, api_key: Optional[str], timeout: float = 15.0, session=None):
        super().__init__(timeout=timeout, session=session)
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key

    def _request(self, params: Mapping[str, Any]):
        url = f"{self.base_url}/v3/snapshot/options/{params['symbol']}"
        query = {
            'limit': params.get('limit', 100),
            'apiKey': self._require_key(self.api_key, 'POLYGON_API_KEY'),
        }
        return url, query, None

    def _parse(self, payload: Any, params: Mapping[str, Any]) -> Dict[str, Any]:
        body = require_mapping(payload, 'Polygon response')
        results = require_list(body.get('results'), 'Polygon results')

        by_expiry = defaultdict(list)
        for option in results:
            option = require_mapping(option, 'Polygon option')
            # Contract terms sit under "details" (v3) or "option" (older snapshots)
            details = require_mapping(
                option.get('details') or option.get('option'), 'Polygon option details'
            )
            expiry = details.get('expiration_date')
            if not isinstance(expiry, str) or not expiry:
                raise ValidationError(f"Polygon option missing expiration_date: {details}")
            contract = _parse_contract(option, details)
            # Contracts without a quoted IV or open interest are not charted
            if contract['iv'] is None or contract['open_interest'] is None:
                continue
            by_expiry[expiry].append(contract)

        if not by_expiry:
            raise ValidationError("Polygon results contain no priced contracts")

        # ISO dates sort chronologically
        expiration = min(by_expiry)
        contracts = sorted(by_expiry[expiration], key=lambda c: c['strike'])

        return {
            'underlying': params['symbol'],
            'expiration': expiration,
            'contracts': contracts,
        }


def _parse_contract(option: Dict[str, Any], details: Dict[str, Any]) -> Dict[str, Any]:
    iv = parse_optional_finite(option.get('implied_volatility'), 'implied_volatility')

    greeks = option.get('greeks') or {}
    greeks = require_mapping(greeks, 'Polygon greeks')

    contract = {
        'strike': parse_finite(details.get('strike_price'), 'strike_price'),
        'iv': None if iv is None else iv * 100,
        'open_interest': parse_optional_finite(option.get('open_interest'), 'open_interest'),
    }
    for greek in GREEKS:
        contract[greek] = parse_optional_finite(greeks.get(greek), greek)

    return contract



class PolygonOptionSurfaceClient(HttpProviderClient):
    """
    Implied-volatility surface across the nearest expirations.

    Record shape:
        {'underlying', 'strikes', 'expiries', 'iv_by_expiry': {expiry: [iv or None]}}

    strikes is the sorted union over the selected expiries; each IV row is
    aligned to it, with None where that expiry has no quoted contract.
    """

    name = 'polygon_surface'

    def __init__(self, base_url: str, api_key: Optional[str], timeout: float = 15.0, session=None):
        super().__init__(timeout=timeout, session=session)
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key

    def _request(self, params: Mapping[str, Any]):
        url = f"{self.base_url}/v3/snapshot/options/{params['symbol']}"
        query = {
            'limit': params.get('limit', 500),
            'apiKey': self._require_key(self.api_key, 'POLYGON_API_KEY'),
        }
        return url, query, None

    def _parse(self, payload: Any, params: Mapping[str, Any]) -> Dict[str, Any]:
        body = require_mapping(payload, 'Polygon response')
        results = require_list(body.get('results'), 'Polygon results')

        by_expiry = defaultdict(dict)
        for option in results:
            option = require_mapping(option, 'Polygon option')
            details = require_mapping(
                option.get('details') or option.get('option'), 'Polygon option details'
            )
            expiry = details.get('expiration_date')
            if not isinstance(expiry, str) or not expiry:
                raise ValidationError(f"Polygon option missing expiration_date: {details}")

            iv = parse_optional_finite(option.get('implied_volatility'), 'implied_volatility')
            if iv is None:
                continue
            strike = parse_finite(details.get('strike_price'), 'strike_price')
            by_expiry[expiry][strike] = iv * 100

        if not by_expiry:
            raise ValidationError("Polygon results contain no contracts with implied volatility")

        expiries = sorted(by_expiry)[:int(params.get('expiries', 3))]
        strikes = sorted({strike for expiry in expiries for strike in by_expiry[expiry]})

        return {
            'underlying': params['symbol'],
            'strikes': strikes,
            'expiries': expiries,
            'iv_by_expiry': {
                expiry: [by_expiry[expiry].get(strike) for strike in strikes] for expiry in expiries
            },
        }
