"""Per-listing pricing configuration.

A PricingConfiguration is stored as one JSONB document per property and
is read-only for the pricing engine. The only mutation defined here is
``add_daily_rate``, the host-facing write path for nightly overrides.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Any

from stayprice.domain.errors import PricingConfigError
from stayprice.infra.time import as_date

MAX_DAILY_RATES = 365


class FeeRuleType(str, Enum):
    FIXED = "fixed"
    PERCENTAGE = "percentage"
    PER_PERSON = "per_person"


@dataclass(frozen=True)
class BasePrice:
    amount: float
    currency: str


@dataclass(frozen=True)
class SeasonalRate:
    """Multiplier for every night between start and end (both inclusive)."""

    start_date: date
    end_date: date
    multiplier: float = 1.0
    name: str | None = None


@dataclass(frozen=True)
class SpecialDate:
    date: date
    multiplier: float
    description: str | None = None


@dataclass(frozen=True)
class DailyRate:
    """Explicit nightly price in host currency for [start_date, end_date)."""

    start_date: date
    end_date: date
    price: float

    def covers(self, night: date) -> bool:
        return self.start_date <= night < self.end_date

    def overlaps(self, start: date, end: date) -> bool:
        return start < self.end_date and end > self.start_date


@dataclass(frozen=True)
class LengthDiscount:
    min_nights: int
    discount: float  # percentage


@dataclass(frozen=True)
class FeeRule:
    """Extra fee charged once headcount goes above ``limit``."""

    type: FeeRuleType = FeeRuleType.FIXED
    limit: int = 0
    value: float = 0.0


@dataclass(frozen=True)
class CapacityFeeRules:
    adult: FeeRule = field(default_factory=FeeRule)
    child: FeeRule = field(default_factory=FeeRule)


@dataclass(frozen=True)
class AdditionalFees:
    cleaning: float = 0.0
    service: float = 0.0


@dataclass(frozen=True)
class PricingConfiguration:
    base_price: BasePrice
    weekend_multiplier: float = 1.0
    seasonal_rates: tuple[SeasonalRate, ...] = ()
    special_dates: tuple[SpecialDate, ...] = ()
    daily_rates: tuple[DailyRate, ...] = ()
    length_discounts: tuple[LengthDiscount, ...] = ()
    capacity_fee_rules: CapacityFeeRules = field(default_factory=CapacityFeeRules)
    additional_fees: AdditionalFees = field(default_factory=AdditionalFees)

    @property
    def host_currency(self) -> str:
        return self.base_price.currency

    def override_for(self, night: date) -> DailyRate | None:
        """Return the daily-rate override covering *night*, if any."""
        for rate in self.daily_rates:
            if rate.covers(night):
                return rate
        return None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PricingConfiguration:
        """Build a configuration from its stored JSON document.

        Raises:
            PricingConfigError: If a required field is missing or malformed.
        """
        try:
            base = data["base_price"]
            rules = data.get("capacity_fee_rules") or {}
            fees = data.get("additional_fees") or {}
            return cls(
                base_price=BasePrice(
                    amount=float(base["amount"]),
                    currency=str(base["currency"]).upper(),
                ),
                weekend_multiplier=float(data.get("weekend_multiplier") or 1),
                seasonal_rates=tuple(
                    SeasonalRate(
                        start_date=as_date(s["start_date"]),
                        end_date=as_date(s["end_date"]),
                        multiplier=float(s.get("multiplier", 1)),
                        name=s.get("name"),
                    )
                    for s in data.get("seasonal_rates") or ()
                ),
                special_dates=tuple(
                    SpecialDate(
                        date=as_date(s["date"]),
                        multiplier=float(s["multiplier"]),
                        description=s.get("description"),
                    )
                    for s in data.get("special_dates") or ()
                ),
                daily_rates=tuple(
                    DailyRate(
                        start_date=as_date(r["start_date"]),
                        end_date=as_date(r["end_date"]),
                        price=float(r["price"]),
                    )
                    for r in data.get("daily_rates") or ()
                ),
                length_discounts=tuple(
                    LengthDiscount(
                        min_nights=int(d["min_nights"]),
                        discount=float(d["discount"]),
                    )
                    for d in data.get("length_discounts") or ()
                ),
                capacity_fee_rules=CapacityFeeRules(
                    adult=_fee_rule_from_dict(rules.get("adult")),
                    child=_fee_rule_from_dict(rules.get("child")),
                ),
                additional_fees=AdditionalFees(
                    cleaning=float(fees.get("cleaning") or 0),
                    service=float(fees.get("service") or 0),
                ),
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise PricingConfigError("malformed_config", {"error": str(e)}) from e

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the JSON document shape accepted by from_dict."""
        return {
            "base_price": {"amount": self.base_price.amount, "currency": self.base_price.currency},
            "weekend_multiplier": self.weekend_multiplier,
            "seasonal_rates": [
                {
                    "name": s.name,
                    "start_date": s.start_date.isoformat(),
                    "end_date": s.end_date.isoformat(),
                    "multiplier": s.multiplier,
                }
                for s in self.seasonal_rates
            ],
            "special_dates": [
                {"date": s.date.isoformat(), "multiplier": s.multiplier, "description": s.description}
                for s in self.special_dates
            ],
            "daily_rates": [
                {"start_date": r.start_date.isoformat(), "end_date": r.end_date.isoformat(), "price": r.price}
                for r in self.daily_rates
            ],
            "length_discounts": [
                {"min_nights": d.min_nights, "discount": d.discount} for d in self.length_discounts
            ],
            "capacity_fee_rules": {
                "adult": _fee_rule_to_dict(self.capacity_fee_rules.adult),
                "child": _fee_rule_to_dict(self.capacity_fee_rules.child),
            },
            "additional_fees": {
                "cleaning": self.additional_fees.cleaning,
                "service": self.additional_fees.service,
            },
        }


def _fee_rule_from_dict(data: dict[str, Any] | None) -> FeeRule:
    if not data:
        return FeeRule()
    return FeeRule(
        type=FeeRuleType(data.get("type", "fixed")),
        limit=int(data.get("limit", 0)),
        value=float(data.get("value", 0)),
    )


def _fee_rule_to_dict(rule: FeeRule) -> dict[str, Any]:
    return {"type": rule.type.value, "limit": rule.limit, "value": rule.value}


def validate_pricing_config(config: PricingConfiguration) -> None:
    """Fail fast on configurations that would price incorrectly.

    Raises:
        PricingConfigError: On negative prices or multipliers, or on
            overlapping daily-rate overrides.
    """
    if config.base_price.amount < 0:
        raise PricingConfigError("negative_base_price")
    if config.weekend_multiplier < 0:
        raise PricingConfigError("negative_multiplier", {"field": "weekend_multiplier"})
    for season in config.seasonal_rates:
        if season.multiplier < 0:
            raise PricingConfigError(
                "negative_multiplier",
                {"field": "seasonal_rates", "start_date": str(season.start_date)},
            )
    for special in config.special_dates:
        if special.multiplier < 0:
            raise PricingConfigError(
                "negative_multiplier",
                {"field": "special_dates", "date": str(special.date)},
            )

    ordered = sorted(config.daily_rates, key=lambda r: r.start_date)
    for rate in ordered:
        if rate.price < 0:
            raise PricingConfigError("negative_daily_rate", {"start_date": str(rate.start_date)})
        if rate.start_date > rate.end_date:
            raise PricingConfigError("inverted_daily_rate", {"start_date": str(rate.start_date)})
    # Sweep by start date, comparing against the range reaching furthest so far.
    furthest: DailyRate | None = None
    for current in ordered:
        if current.start_date == current.end_date:
            continue
        if furthest is not None and current.overlaps(furthest.start_date, furthest.end_date):
            raise PricingConfigError(
                "overlapping_daily_rates",
                {
                    "first": f"{furthest.start_date}..{furthest.end_date}",
                    "second": f"{current.start_date}..{current.end_date}",
                },
            )
        if furthest is None or current.end_date > furthest.end_date:
            furthest = current

    for guest_type in ("adult", "child"):
        rule = getattr(config.capacity_fee_rules, guest_type)
        try:
            FeeRuleType(rule.type)
        except ValueError:
            raise PricingConfigError("unknown_fee_rule", {"guest_type": guest_type}) from None
        if rule.limit < 0 or rule.value < 0:
            raise PricingConfigError("negative_fee_rule", {"guest_type": guest_type})


def add_daily_rate(
    config: PricingConfiguration,
    *,
    start_date: date | datetime | str,
    end_date: date | datetime | str,
    price: float,
) -> PricingConfiguration:
    """Return a copy of *config* with a new nightly override.

    Overrides are kept sorted by start date and capped at MAX_DAILY_RATES
    (earliest ranges are kept).

    Raises:
        PricingConfigError: If start is after end, price is negative, or the
            range overlaps an existing override.
    """
    start = as_date(start_date)
    end = as_date(end_date)

    if start > end:
        raise PricingConfigError("inverted_daily_rate", {"start_date": str(start), "end_date": str(end)})
    if price < 0:
        raise PricingConfigError("negative_daily_rate", {"start_date": str(start)})

    for existing in config.daily_rates:
        if existing.overlaps(start, end):
            raise PricingConfigError(
                "overlapping_daily_rates",
                {
                    "existing": f"{existing.start_date}..{existing.end_date}",
                    "requested": f"{start}..{end}",
                },
            )

    rates = sorted(
        (*config.daily_rates, DailyRate(start_date=start, end_date=end, price=float(price))),
        key=lambda r: r.start_date,
    )
    return replace(config, daily_rates=tuple(rates[:MAX_DAILY_RATES]))
