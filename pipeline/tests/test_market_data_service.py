"""
Tests for the market data service - integration test with real catalog,
resolver and in-memory cache; provider clients are stubbed per test.
"""

import random
import sqlite3
from unittest.mock import patch

import pytest

from analysis.portfolio_analytics import PortfolioHolding
from ingestion.providers.base import ProviderError, ProviderErrorKind
from ingestion.series import Provenance, TimeSeries
from ingestion.synthetic import SyntheticGenerator
from pipeline.catalog import CatalogError
from pipeline.market_data_service import MarketDataService
from pipeline.settings import Settings
from storage.cache_store import CacheStore, init_cache_table


@pytest.fixture
def in_memory_db():
    """Create in-memory SQLite database for testing."""
    conn = sqlite3.connect(':memory:', check_same_thread=False)
    init_cache_table(conn)
    return conn


@pytest.fixture
def service(in_memory_db):
    settings = Settings()
    settings.values['watchlist'] = ['AAPL', 'MSFT']
    service = MarketDataService(
        settings=settings,
        cache=CacheStore(conn=in_memory_db),
        generator=SyntheticGenerator(seed=3),
    )
    yield service
    service.close()


def down(params):
    raise ProviderError(ProviderErrorKind.TRANSIENT, "offline")


def all_providers_down(service):
    """Make every client in the catalogue fail."""
    catalog = service.catalog
    for name in vars(catalog):
        client = getattr(catalog, name)
        if hasattr(client, 'fetch'):
            client.fetch = down


def series_from(values):
    def fetch(params):
        labels = [f"2024-01-{15 + i}" for i in range(len(values))]
        return TimeSeries(key=params['key'], labels=tuple(labels), values=tuple(values))
    return fetch


class TestGetSeries:
    """Tests for get_series and get_record."""

    def test_live_from_first_provider(self, service):
        all_providers_down(service)
        service.catalog.yfinance.fetch = series_from([470.0, 472.5, 471.0])

        result = service.get_series('equity:SPY')

        assert result.provenance == Provenance.LIVE
        assert result.provider == 'yfinance'
        assert service.cache.load('equity:SPY')['values'] == [470.0, 472.5, 471.0]

    def test_offline_is_synthetic(self, service):
        all_providers_down(service)

        result = service.get_series('equity:XYZ')

        assert result.provenance == Provenance.SYNTHETIC
        assert len(result.values) == 30

    def test_record_key_rejected(self, service):
        with pytest.raises(CatalogError, match="get_record"):
            service.get_series('quote:AAPL')

    def test_series_key_rejected(self, service):
        with pytest.raises(CatalogError, match="get_series"):
            service.get_record('equity:AAPL')

    def test_get_dispatches_by_kind(self, service):
        all_providers_down(service)

        assert service.get('quote:AAPL').data['symbol'] == 'AAPL'
        assert service.get('equity:AAPL').key == 'equity:AAPL'

    def test_dashboard_records_offline(self, service):
        all_providers_down(service)

        top = service.get_record('crypto-top')
        mix = service.get_record('energy-mix')
        surface = service.get_record('options-surface:nvda')

        assert top.provenance == Provenance.SYNTHETIC
        assert set(top.data) == {'bitcoin', 'ethereum', 'solana'}
        assert len(mix.data['labels']) == 12
        assert surface.data['underlying'] == 'NVDA'
        assert len(surface.data['expiries']) == 6


class TestGetMany:
    """Tests for get_many and get_comparison."""

    def test_duplicates_resolved_once(self, service):
        all_providers_down(service)

        with patch.object(service.resolver, 'resolve', wraps=service.resolver.resolve) as resolve:
            result = service.get_many(['equity:SPY', 'equity:SPY', 'crypto:bitcoin'])

        assert set(result) == {'equity:SPY', 'crypto:bitcoin'}
        assert resolve.call_count == 2

    def test_bad_key_fails_before_fetching(self, service):
        with patch.object(service.resolver, 'resolve') as resolve:
            with pytest.raises(CatalogError):
                service.get_many(['equity:SPY', 'bonds:US10Y'])

        resolve.assert_not_called()

    def test_comparison_rebased(self, service):
        all_providers_down(service)
        service.catalog.alpaca_stock.fetch = series_from([200.0, 210.0, 220.0])
        service.cache.save('crypto:bitcoin', {
            'key': 'crypto:bitcoin',
            'labels': ['2024-01-15', '2024-01-16', '2024-01-17'],
            'values': [40000.0, 44000.0, 38000.0],
        })

        result = service.get_comparison(['equity:SPY', 'crypto:bitcoin'])

        assert result['equity:SPY'].values == pytest.approx((100.0, 105.0, 110.0))
        assert result['crypto:bitcoin'].values == pytest.approx((100.0, 110.0, 95.0))
        assert result['equity:SPY'].provenance == Provenance.LIVE
        assert result['crypto:bitcoin'].provenance == Provenance.STALE


class TestAnalyticsAndOptions:
    """Tests for get_analytics and get_option_stats."""

    def test_analytics_resolves_missing_series(self, service):
        all_providers_down(service)
        holdings = [PortfolioHolding('SPY', 0.6, 470.0), PortfolioHolding('AAPL', 0.4, 185.0)]

        result = service.get_analytics(holdings)

        assert set(result.assets) == {'SPY', 'AAPL'}
        assert result.benchmark == 'SPY'

    def test_option_stats_synthetic(self, service):
        all_providers_down(service)

        stats = service.get_option_stats('tsla')

        assert stats['underlying'] == 'TSLA'
        assert stats['provenance'] == 'synthetic'
        assert stats['contracts'] == 9
        assert stats['average_iv'] > 0


class TestBuildScheduler:
    """Tests for build_scheduler."""

    def test_configured_jobs(self, service):
        scheduler = service.build_scheduler(clock=lambda: 0.0, rng=random.Random(0))

        jobs = {job.name: job for job in scheduler.jobs}

        assert jobs['markets'].keys == ('equity:SPY', 'equity:QQQ', 'crypto:bitcoin', 'crypto:ethereum')
        assert jobs['markets'].interval_s == 60
        assert jobs['watchlist'].keys == ('quote:AAPL', 'quote:MSFT')
        assert jobs['watchlist'].interval_s == 300
        assert jobs['watchlist'].jitter_s == 5
        scheduler.stop()
