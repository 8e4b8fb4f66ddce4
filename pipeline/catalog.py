"""
Logical key catalogue - maps a key such as 'equity:AAPL' to its provider
chain and request parameters.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import requests

from ingestion.providers.alpaca_adapter import (
    AlpacaCryptoBarsClient,
    AlpacaQuoteClient,
    AlpacaStockBarsClient,
)
from ingestion.providers.alphavantage_adapter import (
    AlphaVantageDailyClient,
    AlphaVantageOverviewClient,
    AlphaVantageQuoteClient,
)
from ingestion.providers.base import ProviderClient
from ingestion.providers.coingecko_adapter import (
    CoinGeckoGlobalClient,
    CoinGeckoMarketChartClient,
    CoinGeckoSimplePriceClient,
)
from ingestion.providers.eia_adapter import EIAFuelMixClient, EIASeriesClient
from ingestion.providers.fred_adapter import FredObservationsClient
from ingestion.providers.polygon_adapter import PolygonOptionChainClient, PolygonOptionSurfaceClient
from ingestion.providers.twelvedata_adapter import TwelveDataSeriesClient
from ingestion.providers.yfinance_adapter import YFinanceHistoryClient
from pipeline.settings import Settings


class CatalogError(ValueError):
    """Raised for a logical key the catalogue does not know."""
    pass


SERIES = 'series'
RECORD = 'record'


@dataclass(frozen=True)
class CatalogEntry:
    """How to resolve one logical key."""
    key: str
    kind: str
    chain: Tuple[ProviderClient, ...]
    params: Dict[str, Any] = field(default_factory=dict)


class ProviderCatalog:
    """
    Builds provider clients once from settings and hands out chains.

    Args:
        settings: Loaded settings (base URLs, API keys, lookbacks)
        session: Shared HTTP session for every client
    """

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        self.settings = settings
        session = session or requests.Session()
        timeout = settings.timeout

        alpaca = dict(
            base_url=settings.base_url('alpaca'),
            api_key=settings.api_key('alpaca_key'),
            api_secret=settings.api_key('alpaca_secret'),
            timeout=timeout,
            session=session,
        )
        alphavantage = dict(
            base_url=settings.base_url('alphavantage'),
            api_key=settings.api_key('alphavantage'),
            timeout=timeout,
            session=session,
        )

        self.alpaca_stock = AlpacaStockBarsClient(**alpaca)
        self.alpaca_crypto = AlpacaCryptoBarsClient(**alpaca)
        self.alpaca_quote = AlpacaQuoteClient(**alpaca)
        self.alphavantage_daily = AlphaVantageDailyClient(**alphavantage)
        self.alphavantage_quote = AlphaVantageQuoteClient(**alphavantage)
        self.alphavantage_overview = AlphaVantageOverviewClient(**alphavantage)
        self.twelvedata = TwelveDataSeriesClient(
            settings.base_url('twelvedata'), settings.api_key('twelvedata'), timeout, session
        )
        self.yfinance = YFinanceHistoryClient(timeout=timeout)
        self.coingecko = CoinGeckoMarketChartClient(settings.base_url('coingecko'), timeout, session)
        self.coingecko_global = CoinGeckoGlobalClient(settings.base_url('coingecko'), timeout, session)
        self.coingecko_top = CoinGeckoSimplePriceClient(settings.base_url('coingecko'), timeout, session)
        self.eia = EIASeriesClient(settings.base_url('eia'), settings.api_key('eia'), timeout, session)
        self.eia_mix = EIAFuelMixClient(settings.base_url('eia'), settings.api_key('eia'), timeout, session)
        self.fred = FredObservationsClient(settings.base_url('fred'), settings.api_key('fred'), timeout, session)
        self.polygon = PolygonOptionChainClient(
            settings.base_url('polygon'), settings.api_key('polygon'), timeout, session
        )
        self.polygon_surface = PolygonOptionSurfaceClient(
            settings.base_url('polygon'), settings.api_key('polygon'), timeout, session
        )

    def lookup(self, key: str) -> CatalogEntry:
        """
        Resolve a logical key to its chain and parameters.

        Supported keys: equity:<SYM>, crypto:<coingecko id>, energy:oil,
        energy:gas, energy:<EIA series id>, macro:<FRED id>, quote:<SYM>,
        fundamentals:<SYM>, crypto-global, crypto-top, energy-mix,
        options:<SYM>, options-surface:<SYM>.

        Raises:
            CatalogError: If the key prefix is unknown or the identifier is empty
        """
        if key == 'crypto-global':
            return CatalogEntry(key=key, kind=RECORD, chain=(self.coingecko_global,))

        if key == 'crypto-top':
            return CatalogEntry(
                key=key,
                kind=RECORD,
                chain=(self.coingecko_top,),
                params={'coins': tuple(self.settings.values['top_coins'])},
            )

        if key == 'energy-mix':
            return CatalogEntry(
                key=key,
                kind=RECORD,
                chain=(self.eia_mix,),
                params=dict(self.settings.section('energy_mix')),
            )

        prefix, sep, ident = key.partition(':')
        if not sep or not ident:
            raise CatalogError(f"Malformed logical key: {key!r}")

        lookback = self.settings.section('series')

        if prefix == 'equity':
            return CatalogEntry(
                key=key,
                kind=SERIES,
                chain=(self.alpaca_stock, self.alphavantage_daily, self.twelvedata, self.yfinance),
                params={'symbol': ident.upper(), 'limit': lookback['equity_bars']},
            )

        if prefix == 'crypto':
            return CatalogEntry(
                key=key,
                kind=SERIES,
                chain=(self.alpaca_crypto, self.coingecko),
                params={
                    'coin': ident.lower(),
                    'limit': lookback['crypto_days'],
                    'days': lookback['crypto_days'],
                },
            )

        if prefix == 'energy':
            return CatalogEntry(
                key=key,
                kind=SERIES,
                chain=(self.eia,),
                params={'series': ident, 'limit': lookback['energy_days']},
            )

        if prefix == 'macro':
            return CatalogEntry(
                key=key,
                kind=SERIES,
                chain=(self.fred,),
                params={
                    'series': ident.upper(),
                    'observation_start': lookback['macro_observation_start'],
                    'limit': lookback['macro_observations'],
                },
            )

        if prefix == 'quote':
            return CatalogEntry(
                key=key,
                kind=RECORD,
                chain=(self.alpaca_quote, self.alphavantage_quote),
                params={'symbol': ident.upper()},
            )

        if prefix == 'fundamentals':
            return CatalogEntry(
                key=key,
                kind=RECORD,
                chain=(self.alphavantage_overview,),
                params={'symbol': ident.upper()},
            )

        if prefix == 'options':
            return CatalogEntry(
                key=key,
                kind=RECORD,
                chain=(self.polygon,),
                params={'symbol': ident.upper(), 'limit': lookback['option_contracts']},
            )

        if prefix == 'options-surface':
            return CatalogEntry(
                key=key,
                kind=RECORD,
                chain=(self.polygon_surface,),
                params={
                    'symbol': ident.upper(),
                    'limit': lookback['surface_contracts'],
                    'expiries': lookback['surface_expiries'],
                },
            )

        raise CatalogError(f"Unknown logical key prefix: {prefix!r}")
