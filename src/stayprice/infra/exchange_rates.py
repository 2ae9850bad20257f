"""Exchange rate gateway - daily conversion tables behind a TTL/LRU cache.

Tables come from the public, date-keyed currency API:

    GET {RATES_BASE_URL}@{YYYY-MM-DD}/v1/currencies/{base}.json
    -> {"date": "2026-10-19", "usd": {"eur": 0.92, "jpy": 149.3, ...}}

Any transport failure, non-2xx status or malformed body is raised as
ExchangeRateUnavailable. There is no stale-data fallback and no internal
retry; callers decide whether to retry.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Mapping, Protocol

import requests

from stayprice.domain.errors import PricingError
from stayprice.infra.rate_cache import RateCache
from stayprice.infra.time import utc_now
from stayprice.observability.logging import get_logger, log_fields

logger = get_logger(__name__)

RATES_BASE_URL = os.environ.get(
    "RATES_BASE_URL",
    "https://cdn.jsdelivr.net/npm/@fawazahmed0/currency-api",
)
RATES_HTTP_TIMEOUT = float(os.environ.get("RATES_HTTP_TIMEOUT", "10"))


class ExchangeRateUnavailable(PricingError):
    """Rate source unreachable or returned an unusable table."""

    retryable = True

    def __init__(self, base_currency: str, detail: str):
        super().__init__(
            "exchange_rate_unavailable",
            {"base_currency": base_currency, "detail": detail},
        )


@dataclass(frozen=True)
class RateTable:
    """Conversion table for one base currency.

    ``rates`` maps lower-cased ISO codes to units of that currency per one
    unit of ``base_currency``.
    """

    base_currency: str
    rates: Mapping[str, float] = field(repr=False)
    as_of: date
    fetched_at: datetime

    def rate_for(self, currency: str) -> float | None:
        return self.rates.get(currency.lower())


class RateSource(Protocol):
    def get_rates(self, base_currency: str) -> RateTable: ...


class RateSnapshot:
    """One fetched rate table standing in for the gateway.

    Every conversion made through a snapshot uses the same table, so a
    single quote cannot straddle a cache refresh. Other base currencies
    still go to the underlying source.
    """

    def __init__(self, table: RateTable, source: RateSource):
        self.table = table
        self._source = source

    def get_rates(self, base_currency: str) -> RateTable:
        if base_currency.lower() == self.table.base_currency:
            return self.table
        return self._source.get_rates(base_currency)


def pin_rates(source: RateSource, base_currency: str) -> RateSnapshot:
    """Fetch the *base_currency* table once and return a snapshot of it.

    Raises:
        ExchangeRateUnavailable: If the table cannot be fetched.
    """
    if isinstance(source, RateSnapshot) and source.table.base_currency == base_currency.lower():
        return source
    return RateSnapshot(source.get_rates(base_currency), source)


def _parse_table(base: str, payload: Any, fetched_at: datetime) -> RateTable:
    if not isinstance(payload, dict):
        raise ExchangeRateUnavailable(base, "response body is not an object")

    raw_rates = payload.get(base)
    if not isinstance(raw_rates, dict) or not raw_rates:
        raise ExchangeRateUnavailable(base, f"response has no '{base}' table")

    rates: dict[str, float] = {}
    for code, value in raw_rates.items():
        # The feed also carries crypto and metal codes; keep numbers only.
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            rates[str(code).lower()] = float(value)

    try:
        as_of = date.fromisoformat(payload["date"]) if payload.get("date") else fetched_at.date()
    except (TypeError, ValueError):
        raise ExchangeRateUnavailable(base, "response has an invalid date")

    return RateTable(base_currency=base, rates=rates, as_of=as_of, fetched_at=fetched_at)


class ExchangeRateGateway:
    """Fetches and caches daily rate tables keyed by base currency."""

    def __init__(
        self,
        *,
        cache: RateCache | None = None,
        base_url: str = RATES_BASE_URL,
        timeout: float = RATES_HTTP_TIMEOUT,
        session: requests.Session | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.cache = cache if cache is not None else RateCache()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._clock = clock

    def _url_for(self, base: str, day: date) -> str:
        return f"{self.base_url}@{day.isoformat()}/v1/currencies/{base}.json"

    def _fetch(self, base: str) -> RateTable:
        now = self._clock()
        url = self._url_for(base, now.date())
        try:
            response = self._session.get(url, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            logger.error(
                "exchange rate fetch failed",
                extra=log_fields(base_currency=base, url=url, error=str(e)),
            )
            raise ExchangeRateUnavailable(base, str(e)) from e
        except ValueError as e:
            raise ExchangeRateUnavailable(base, "response is not valid JSON") from e

        return _parse_table(base, payload, now)

    def get_rates(self, base_currency: str) -> RateTable:
        """Return the conversion table for *base_currency*.

        Raises:
            ExchangeRateUnavailable: On cache miss when the fetch fails.
        """
        key = base_currency.lower()
        table = self.cache.get(key)
        if table is not None:
            return table

        logger.info("exchange rate cache miss", extra=log_fields(base_currency=key))
        table = self._fetch(key)
        self.cache.set(key, table)
        return table

    def get_currency_wise_rate(self, target_currency: str, base_currency: str = "USD") -> float | None:
        """Rate for one currency pair, or None if the target is not quoted."""
        return self.get_rates(base_currency).rate_for(target_currency)
