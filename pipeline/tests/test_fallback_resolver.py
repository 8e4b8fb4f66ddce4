"""
Tests for the fallback resolver - provider order, write-through, stale and
synthetic tiers, superseded writes.
Uses stub providers with real cache and synthetic generator.
"""

import math
import sqlite3
import threading
import time
from datetime import datetime, timezone
from unittest.mock import Mock

import pytest

from ingestion.providers.base import ProviderError, ProviderErrorKind
from ingestion.providers.coingecko_adapter import CoinGeckoMarketChartClient
from ingestion.series import Provenance, TimeSeries
from ingestion.synthetic import SyntheticGenerator
from pipeline.fallback_resolver import FallbackResolver
from storage.cache_store import CacheStore, init_cache_table


CACHED_AT = datetime(2024, 1, 16, 9, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def in_memory_db():
    """Create in-memory SQLite database for testing."""
    conn = sqlite3.connect(':memory:', check_same_thread=False)
    init_cache_table(conn)
    return conn


@pytest.fixture
def cache(in_memory_db):
    return CacheStore(conn=in_memory_db, clock=lambda: CACHED_AT)


@pytest.fixture
def resolver(cache):
    return FallbackResolver(cache, SyntheticGenerator(seed=1))


def make_series(key, values=(1.0, 2.0, 3.0)):
    labels = tuple(f"2024-01-{15 + i}" for i in range(len(values)))
    return TimeSeries(key=key, labels=labels, values=tuple(values))


def ok_client(name, result):
    client = Mock()
    client.name = name
    client.fetch.return_value = result
    return client


def failing_client(name, kind=ProviderErrorKind.TRANSIENT):
    client = Mock()
    client.name = name
    client.fetch.side_effect = ProviderError(kind, "boom", name)
    return client


class TestResolveSeries:
    """Tests for resolve."""

    def test_first_success_wins(self, resolver, cache):
        """Test A fails, B succeeds, C is never called; B's series is cached."""
        series = make_series('equity:SPY')
        a = failing_client('a')
        b = ok_client('b', series)
        c = ok_client('c', make_series('equity:SPY', (9.0,)))

        result = resolver.resolve('equity:SPY', [a, b, c], {'symbol': 'SPY'})

        assert result.series == series
        assert result.provenance == Provenance.LIVE
        assert result.provider == 'b'
        a.fetch.assert_called_once()
        c.fetch.assert_not_called()
        assert cache.load('equity:SPY') == series.to_payload()

    def test_params_carry_key(self, resolver):
        client = ok_client('a', make_series('equity:SPY'))

        resolver.resolve('equity:SPY', [client], {'symbol': 'SPY'})

        assert client.fetch.call_args[0][0] == {'symbol': 'SPY', 'key': 'equity:SPY'}

    def test_stale_returned_unmodified(self, resolver, cache):
        """Test cache is returned as stored, tagged with its write time."""
        stored = make_series('equity:SPY', (10.0, None, 12.0))
        cache.save('equity:SPY', stored.to_payload())

        result = resolver.resolve('equity:SPY', [failing_client('a'), failing_client('b')])

        assert result.series == stored
        assert result.provenance == Provenance.STALE
        assert result.cached_at == CACHED_AT
        assert result.provider is None

    def test_exhausted_chain_synthetic(self, resolver, cache):
        """Test no provider and no cache gives a 30-point positive series."""
        result = resolver.resolve('equity:XYZ', [failing_client('a'), failing_client('b')], {'symbol': 'XYZ'})

        assert result.provenance == Provenance.SYNTHETIC
        assert len(result.labels) == 30
        assert all(v is not None and math.isfinite(v) and v > 0 for v in result.values)
        # Synthetic data is never written back
        assert cache.load('equity:XYZ') is None

    def test_empty_chain(self, resolver):
        result = resolver.resolve('equity:XYZ', [])

        assert result.provenance == Provenance.SYNTHETIC

    def test_corrupt_cache_falls_through(self, resolver, cache):
        """Test a malformed cached payload is skipped for synthetic."""
        cache.save('equity:SPY', {'labels': ['d1'], 'values': [1.0, 2.0]})

        result = resolver.resolve('equity:SPY', [failing_client('a')])

        assert result.provenance == Provenance.SYNTHETIC

    def test_wrong_result_type_treated_as_failure(self, resolver):
        bad = ok_client('bad', {'not': 'a series'})
        good = ok_client('good', make_series('equity:SPY'))

        result = resolver.resolve('equity:SPY', [bad, good])

        assert result.provider == 'good'

    def test_result_rekeyed(self, resolver):
        """Test a client series with a different key is stored under the logical key."""
        result = resolver.resolve('equity:SPY', [ok_client('a', make_series('SPY'))])

        assert result.key == 'equity:SPY'

    def test_cache_failure_does_not_fail_resolve(self, resolver, cache):
        """Test a dropped cache write still returns live data."""
        cache.close()

        result = resolver.resolve('equity:SPY', [ok_client('a', make_series('equity:SPY'))])

        assert result.provenance == Provenance.LIVE


class TestGenerationGuard:
    """Tests for per-key single-flight writes."""

    def test_generations_increase_per_key(self, resolver):
        assert resolver.next_generation('a') == 1
        assert resolver.next_generation('a') == 2
        assert resolver.next_generation('b') == 1

    def test_superseded_write_discarded(self, resolver, cache):
        """Test an older generation finishing last does not overwrite newer data."""
        old_gen = resolver.next_generation('equity:SPY')
        new_gen = resolver.next_generation('equity:SPY')

        newer = make_series('equity:SPY', (2.0, 2.0))
        older = make_series('equity:SPY', (1.0, 1.0))

        resolver.resolve('equity:SPY', [ok_client('a', newer)], generation=new_gen)
        result = resolver.resolve('equity:SPY', [ok_client('a', older)], generation=old_gen)

        # Caller still gets the live data it fetched
        assert result.provenance == Provenance.LIVE
        assert result.series == older
        assert cache.load('equity:SPY') == newer.to_payload()

    def test_slow_tick_cannot_overwrite(self, resolver, cache):
        """Test a slow first refresh racing a fast second refresh."""
        release = threading.Event()
        slow_series = make_series('equity:SPY', (1.0,))
        fast_series = make_series('equity:SPY', (2.0,))

        def slow_fetch(params):
            release.wait(timeout=5)
            return slow_series

        slow = Mock()
        slow.name = 'slow'
        slow.fetch.side_effect = slow_fetch

        thread = threading.Thread(target=resolver.resolve, args=('equity:SPY', [slow]))
        thread.start()

        # Wait until the slow refresh has reserved its generation
        for _ in range(500):
            if resolver._issued.get('equity:SPY'):
                break
            time.sleep(0.01)

        resolver.resolve('equity:SPY', [ok_client('fast', fast_series)])
        release.set()
        thread.join(timeout=5)

        assert cache.load('equity:SPY') == fast_series.to_payload()


class TestResolveRecord:
    """Tests for resolve_record."""

    def test_live_record_cached(self, resolver, cache):
        record = {'symbol': 'AAPL', 'price': 185.0, 'change': 1.2}

        result = resolver.resolve_record('quote:AAPL', [failing_client('a'), ok_client('b', record)])

        assert result.provenance == Provenance.LIVE
        assert result.data == record
        assert cache.load('quote:AAPL') == record

    def test_stale_record(self, resolver, cache):
        cache.save('quote:AAPL', {'symbol': 'AAPL', 'price': 180.0, 'change': None})

        result = resolver.resolve_record('quote:AAPL', [failing_client('a', ProviderErrorKind.RATE_LIMITED)])

        assert result.provenance == Provenance.STALE
        assert result.data['price'] == 180.0
        assert result.cached_at == CACHED_AT

    def test_synthetic_record(self, resolver):
        result = resolver.resolve_record('quote:AAPL', [failing_client('a')], {'symbol': 'AAPL'})

        assert result.provenance == Provenance.SYNTHETIC
        assert result.data['symbol'] == 'AAPL'
        assert result.data['price'] > 0


class TestOutOfRangeProviderData:
    """Tests that a real client fed out-of-range numbers still resolves."""

    def chart_client(self, payload):
        session = Mock()
        response = Mock()
        response.status_code = 200
        response.json.return_value = payload
        session.get.return_value = response
        return CoinGeckoMarketChartClient('https://api.example.test', session=session)

    @pytest.mark.parametrize('payload', [
        {'prices': [[1e20, 100.0]]},
        {'prices': [[1700000000000, 10 ** 400]]},
    ])
    def test_synthetic_instead_of_raising(self, resolver, cache, payload):
        result = resolver.resolve(
            'crypto:bitcoin', [self.chart_client(payload)], {'coin': 'bitcoin', 'days': 30}
        )

        assert result.provenance == Provenance.SYNTHETIC
        assert all(math.isfinite(v) and v > 0 for v in result.values)
        assert cache.load('crypto:bitcoin') is None
