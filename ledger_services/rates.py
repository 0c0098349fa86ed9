"""
Exchange-rate sources and the TTL rate cache.

Responsibility:
    ``RateSource`` implementations fetch the raw rate for a currency pair:
    ``HttpRateSource`` from the exchange-rate endpoint over HTTP (httpx,
    bounded timeout), ``StaticRateSource`` from a fixed table.  ``RateCache``
    holds fetched rates for a bounded time.

Architecture position:
    Services -- I/O boundary for exchange rates.  Consumed only by
    ``CurrencyConversionService``; ledger amounts never pass through here.

Failure modes:
    - Sources raise ``RateSourceError`` for any network, HTTP or payload
      failure.  The conversion service recovers from it.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Mapping, Protocol

import httpx

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.exceptions import RateSourceError
from ledger_kernel.logging_config import get_logger

logger = get_logger("services.rates")


def pair_key(base: str, quote: str) -> str:
    """Cache and table key for a currency pair, e.g. ``"USD_GHS"``."""
    return f"{base}_{quote}"


class RateSource(Protocol):
    """Anything that can supply a raw (un-marked-up) rate for a pair."""

    name: str

    def fetch_rate(self, base: str, quote: str) -> Decimal:
        """
        Return the rate such that 1 ``base`` = rate ``quote``.

        Raises:
            RateSourceError: The rate is unavailable.
        """
        ...


class StaticRateSource:
    """
    Rates from a fixed table keyed ``"BASE_QUOTE"``.

    When only the inverse pair is present, its reciprocal is used.
    """

    name = "static"

    def __init__(self, table: Mapping[str, Decimal]):
        self._table = {key: Decimal(str(rate)) for key, rate in table.items()}

    def fetch_rate(self, base: str, quote: str) -> Decimal:
        direct = self._table.get(pair_key(base, quote))
        if direct is not None:
            return direct
        inverse = self._table.get(pair_key(quote, base))
        if inverse is not None and inverse != 0:
            return Decimal("1") / inverse
        raise RateSourceError(base, quote, "pair not in static rate table")


class HttpRateSource:
    """
    Rates from the exchange-rate HTTP endpoint.

    Contract:
        ``GET {url}?base=USD&quote=GHS`` answering
        ``{"data": {"rate": "12.34"}}``.  Every request is bounded by
        ``timeout`` seconds.

    Guarantees:
        - Any transport error, non-2xx status, or malformed payload is
          reported as RateSourceError.
    """

    name = "http"

    def __init__(
        self,
        url: str,
        timeout: float = 5.0,
        client: httpx.Client | None = None,
    ):
        self._url = url
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)

    def fetch_rate(self, base: str, quote: str) -> Decimal:
        try:
            response = self._client.get(self._url, params={"base": base, "quote": quote})
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise RateSourceError(base, quote, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise RateSourceError(base, quote, f"request failed: {e}") from e
        except ValueError as e:
            raise RateSourceError(base, quote, "response is not JSON") from e

        try:
            rate = Decimal(str(payload["data"]["rate"]))
        except (KeyError, TypeError, InvalidOperation) as e:
            raise RateSourceError(base, quote, "response has no data.rate") from e
        if not rate.is_finite() or rate <= 0:
            raise RateSourceError(base, quote, f"non-positive rate {rate}")
        return rate

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> HttpRateSource:
        return self

    def __exit__(self, *exc) -> None:
        self.close()


@dataclass(frozen=True, slots=True)
class CachedRate:
    rate: Decimal
    stored_at: datetime


class RateCache:
    """
    Process-wide rate cache with a fixed time-to-live.

    Contract:
        Keys are pair keys (``"USD_GHS"``).  An entry is served while
        ``now - stored_at < ttl``.  Concurrent writers are serialized by a
        lock; the last write wins.

    Non-goals:
        - No size bound; the supported currency set keeps it tiny.
    """

    def __init__(self, ttl_seconds: int = 3600, clock: Clock | None = None):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock or SystemClock()
        self._entries: dict[str, CachedRate] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Decimal | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock.now() - entry.stored_at >= self._ttl:
                del self._entries[key]
                return None
            return entry.rate

    def put(self, key: str, rate: Decimal) -> None:
        with self._lock:
            self._entries[key] = CachedRate(rate=rate, stored_at=self._clock.now())

    def invalidate(self, key: str | None = None) -> None:
        """Drop one entry, or every entry when ``key`` is None."""
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
