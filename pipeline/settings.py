"""
Settings loader - non-secret settings from YAML, secrets from the environment.
YAML values are merged over built-in defaults so a missing file still works.
"""

import copy
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Set up logger
logger = logging.getLogger(__name__)


class SettingsError(Exception):
    """Raised when the settings file cannot be used."""
    pass


DEFAULT_SETTINGS: Dict[str, Any] = {
    'cache': {
        'db_path': './data/cache.db',
        'namespace': 'investHubCache',
    },
    'requests': {
        'timeout_s': 15,
    },
    'providers': {
        'alpaca': {'base_url': 'https://data.alpaca.markets'},
        'alphavantage': {'base_url': 'https://www.alphavantage.co/query'},
        'twelvedata': {'base_url': 'https://api.twelvedata.com'},
        'coingecko': {'base_url': 'https://api.coingecko.com/api/v3'},
        'eia': {'base_url': 'https://api.eia.gov/v2'},
        'fred': {'base_url': 'https://api.stlouisfed.org/fred'},
        'polygon': {'base_url': 'https://api.polygon.io'},
    },
    'series': {
        'equity_bars': 30,
        'crypto_days': 30,
        'energy_days': 365,
        'macro_observation_start': '2015-01-01',
        'macro_observations': 20,
        'option_contracts': 100,
        'surface_contracts': 500,
        'surface_expiries': 3,
    },
    'energy_mix': {
        'respondent': 'ERCO',
        'start': '2023-01',
        'end': '2024-01',
    },
    'refresh': {
        'quotes_interval_s': 60,
        'watchlist_interval_s': 300,
        'jitter_s': 5,
        'max_workers': 4,
    },
    'markets': ['equity:SPY', 'equity:QQQ', 'crypto:bitcoin', 'crypto:ethereum'],
    'watchlist': ['AAPL', 'MSFT', 'TSLA'],
    'top_coins': ['bitcoin', 'ethereum', 'solana'],
}


# Environment variable per provider secret
API_KEY_ENV = {
    'alpaca_key': 'ALPACA_API_KEY',
    'alpaca_secret': 'ALPACA_API_SECRET',
    'alphavantage': 'ALPHA_VANTAGE_API_KEY',
    'twelvedata': 'TWELVE_DATA_API_KEY',
    'fred': 'FRED_API_KEY',
    'eia': 'EIA_API_KEY',
    'polygon': 'POLYGON_API_KEY',
}


@dataclass
class Settings:
    """Resolved settings for one process."""
    values: Dict[str, Any] = field(default_factory=lambda: copy.deepcopy(DEFAULT_SETTINGS))
    api_keys: Dict[str, Optional[str]] = field(default_factory=dict)

    def section(self, name: str) -> Dict[str, Any]:
        return self.values.get(name, {})

    def base_url(self, provider: str) -> str:
        return self.values['providers'][provider]['base_url'].rstrip('/')

    def api_key(self, name: str) -> Optional[str]:
        return self.api_keys.get(name)

    @property
    def timeout(self) -> float:
        return float(self.values['requests']['timeout_s'])


def load_settings(config_path: Optional[str] = None) -> Settings:
    """
    Load settings from YAML merged over defaults, plus API keys from env.

    Args:
        config_path: Path to YAML file (defaults to MARKET_DATA_CONFIG or
            ./config/market_data.yml)

    Returns:
        Settings instance

    Raises:
        SettingsError: If the file exists but is not a valid mapping
    """
    if config_path is None:
        config_path = os.getenv('MARKET_DATA_CONFIG', './config/market_data.yml')

    values = copy.deepcopy(DEFAULT_SETTINGS)

    config_file = Path(config_path)
    if config_file.exists():
        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise SettingsError(f"Failed to parse settings file {config_path}: {e}")

        if not isinstance(loaded, dict):
            raise SettingsError(f"Settings file {config_path} must contain a mapping")

        values = _deep_merge(values, loaded)
    else:
        logger.info(f"Settings file not found, using defaults: {config_path}")

    # Environment overrides
    timeout = os.getenv('REQUESTS_TIMEOUT_S')
    if timeout:
        try:
            values['requests']['timeout_s'] = float(timeout)
        except ValueError:
            raise SettingsError(f"Invalid REQUESTS_TIMEOUT_S: {timeout}. Must be numeric.")

    cache_db = os.getenv('MARKET_CACHE_DB')
    if cache_db:
        values['cache']['db_path'] = cache_db

    api_keys = {}
    for name, env_var in API_KEY_ENV.items():
        value = os.getenv(env_var, '').strip()
        api_keys[name] = value or None

    return Settings(values=values, api_keys=api_keys)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged
