"""
Provider client base - one HTTP GET, one response-shape parser, per source.
Network IO allowed here, but minimal business logic.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Mapping, Optional

import requests

from ingestion.series import TimeSeries
from ingestion.transforms.validators import ValidationError

# Set up logger
logger = logging.getLogger(__name__)


class ProviderErrorKind(str, Enum):
    """Why a provider call failed."""
    TRANSIENT = 'transient'
    INVALID_RESPONSE = 'invalid_response'
    RATE_LIMITED = 'rate_limited'
    AUTH = 'auth'


class ProviderError(Exception):
    """Raised when a provider cannot produce a valid result."""

    def __init__(self, kind: ProviderErrorKind, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.kind = ProviderErrorKind(kind)
        self.provider = provider

    def __str__(self) -> str:
        prefix = f"[{self.provider}] " if self.provider else ''
        return f"{prefix}{self.kind.value}: {self.args[0]}"


class ProviderClient(ABC):
    """
    Base class for every data source in a fallback chain.

    `fetch` either returns a TimeSeries / dict or raises ProviderError;
    no other exception may escape for bad data.
    """

    name = 'provider'

    def __init__(self, timeout: float = 15.0):
        self.timeout = timeout

    @abstractmethod
    def fetch(self, params: Mapping[str, Any]) -> Any:
        """Fetch one result. Raises ProviderError on any failure."""
        pass


class HttpProviderClient(ProviderClient):
    """
    Base class for JSON-over-HTTP providers.

    Subclasses build the request in `_request` and decode the body in
    `_parse`. `fetch` owns the HTTP call and maps every failure onto
    ProviderError so callers only ever see one exception type.
    """

    def __init__(self, timeout: float = 15.0, session: Optional[requests.Session] = None):
        super().__init__(timeout=timeout)
        self.session = session or requests.Session()

    def fetch(self, params: Mapping[str, Any]) -> Any:
        """
        Fetch and decode one response.

        Args:
            params: Request parameters (symbol, limit, date range, ...)

        Returns:
            TimeSeries for series clients, dict for record clients

        Raises:
            ProviderError: On network, HTTP, auth or shape failure
        """
        url, query, headers = self._request(params)
        payload = self._get_json(url, query, headers)

        try:
            return self._parse(payload, params)
        except ValidationError as e:
            raise ProviderError(ProviderErrorKind.INVALID_RESPONSE, str(e), self.name) from e
        except (ValueError, TypeError, OverflowError, OSError) as e:
            # Conversions on out-of-range values (huge ints, timestamps) in the body
            raise ProviderError(
                ProviderErrorKind.INVALID_RESPONSE, f"Unparseable response: {e}", self.name
            ) from e

    @abstractmethod
    def _request(self, params: Mapping[str, Any]):
        """Return (url, query_params, headers) for one call."""
        pass

    @abstractmethod
    def _parse(self, payload: Any, params: Mapping[str, Any]) -> Any:
        """Decode a JSON body. Raise ValidationError on any unexpected shape."""
        pass

    def _require_key(self, value: Optional[str], env_var: str) -> str:
        if not value:
            raise ProviderError(
                ProviderErrorKind.AUTH,
                f"{env_var} environment variable is required",
                self.name
            )
        return value

    def _get_json(
        self,
        url: str,
        query: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> Any:
        try:
            response = self.session.get(url, params=query, headers=headers, timeout=self.timeout)
        except (requests.ConnectionError, requests.Timeout) as e:
            raise ProviderError(ProviderErrorKind.TRANSIENT, f"Request failed: {e}", self.name) from e
        except requests.RequestException as e:
            raise ProviderError(ProviderErrorKind.INVALID_RESPONSE, f"Request failed: {e}", self.name) from e

        status = response.status_code
        if status in (401, 403):
            raise ProviderError(ProviderErrorKind.AUTH, f"HTTP {status}", self.name)
        if status == 429:
            raise ProviderError(ProviderErrorKind.RATE_LIMITED, f"HTTP {status}", self.name)
        if status >= 500:
            raise ProviderError(ProviderErrorKind.TRANSIENT, f"HTTP {status}", self.name)
        if status >= 400:
            raise ProviderError(ProviderErrorKind.INVALID_RESPONSE, f"HTTP {status}", self.name)

        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(
                ProviderErrorKind.INVALID_RESPONSE, f"Response is not JSON: {e}", self.name
            ) from e


def build_series(key: str, labels, values) -> TimeSeries:
    """Build a TimeSeries, turning shape violations into ValidationError."""
    if not labels:
        raise ValidationError(f"{key}: no observations")
    try:
        return TimeSeries(key=key, labels=tuple(labels), values=tuple(values))
    except ValueError as e:
        raise ValidationError(str(e)) from e
