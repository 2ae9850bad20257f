"""Shared test helpers for the pricing engine tests.

Regular functions and small fakes, importable from conftest.py and from
individual test modules.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from unittest.mock import MagicMock

from stayprice.domain.pricing_config import (
    AdditionalFees,
    BasePrice,
    PricingConfiguration,
)
from stayprice.domain.promo import PromoCode
from stayprice.infra.exchange_rates import ExchangeRateGateway
from stayprice.infra.rate_cache import RateCache

FIXED_NOW = datetime(2026, 10, 19, 8, 30, tzinfo=timezone.utc)
TODAY = FIXED_NOW.date()

# Units per 1 USD. Binary-exact values keep float assertions exact.
USD_RATES = {
    "usd": 1.0,
    "eur": 0.5,
    "gbp": 0.75,
    "jpy": 150.0,
    "inr": 80.0,
    "ugx": 3700.0,
}


def make_session(payload: dict | None = None) -> MagicMock:
    """requests.Session double whose GET returns *payload* as JSON."""
    response = MagicMock()
    response.raise_for_status.return_value = None
    response.json.return_value = payload if payload is not None else {
        "date": TODAY.isoformat(),
        "usd": dict(USD_RATES),
    }
    session = MagicMock()
    session.get.return_value = response
    return session


def make_gateway(
    rates: dict | None = None,
    *,
    session: MagicMock | None = None,
    cache: RateCache | None = None,
) -> ExchangeRateGateway:
    if session is None:
        payload = None if rates is None else {"date": TODAY.isoformat(), "usd": rates}
        session = make_session(payload)
    return ExchangeRateGateway(
        session=session,
        cache=cache if cache is not None else RateCache(),
        base_url="https://rates.example.com/currency-api",
        clock=lambda: FIXED_NOW,
    )


def make_config(**overrides) -> PricingConfiguration:
    """100 USD/night listing with 20 cleaning and 10 service fee."""
    values = {
        "base_price": BasePrice(amount=100.0, currency="USD"),
        "additional_fees": AdditionalFees(cleaning=20.0, service=10.0),
    }
    values.update(overrides)
    return PricingConfiguration(**values)


def make_promo(**overrides) -> PromoCode:
    values = {
        "id": "promo-1",
        "promo_code": "FLAT10",
        "discount_type": "flat",
        "discount_value": 10.0,
        "currency": "USD",
        "valid_from": date(2026, 1, 1),
        "valid_until": date(2026, 12, 31),
        "max_redemptions": 100,
        "max_per_user": 1,
        "status": "active",
    }
    values.update(overrides)
    return PromoCode(**values)


class InMemoryPromoCodes:
    """Promo code lookup applying the same filter as the SQL query."""

    def __init__(self, *promos: PromoCode):
        self.promos = {p.promo_code: p for p in promos}
        self.lookups: list[str] = []

    def find_active_by_code(self, code: str, as_of: date) -> PromoCode | None:
        self.lookups.append(code)
        promo = self.promos.get(code)
        if promo is None or not promo.is_redeemable(as_of):
            return None
        return promo

    def list_active(self, as_of: date) -> list[PromoCode]:
        return [p for p in self.promos.values() if p.is_redeemable(as_of)]


class InMemoryUsage:
    def __init__(self, counts: dict[tuple[str, str], int] | None = None):
        self.counts = counts or {}

    def count_usage(self, user_id: str, promo_code_id: str) -> int:
        return self.counts.get((user_id, promo_code_id), 0)
