"""Nightly base price calculation.

Walks the stay night by night over [check_in, check_out). For each night:

1. start from the converted base nightly price;
2. a daily-rate override covering the night replaces that base with
   ``override.price * conversion_rate`` (overrides are in host currency);
3. Saturday/Sunday nights are multiplied by ``weekend_multiplier``;
4. every seasonal range containing the night multiplies the rate;
5. every special date equal to the night multiplies the rate.

An override substitutes the base only; multipliers still apply on top.
Matching multipliers compound in the order they are configured.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterator

from stayprice.domain.booking import calculate_nights
from stayprice.domain.pricing_config import PricingConfiguration
from stayprice.infra.time import as_date

_SATURDAY = 5
_SUNDAY = 6


def is_weekend(night: date) -> bool:
    return night.weekday() in (_SATURDAY, _SUNDAY)


def resolve_nightly_rate(
    config: PricingConfiguration,
    night: date,
    base_nightly_price: float,
    conversion_rate: float,
) -> float:
    """Effective guest-currency rate for a single night."""
    rate = base_nightly_price

    override = config.override_for(night)
    if override is not None:
        rate = override.price * conversion_rate

    if is_weekend(night):
        rate *= config.weekend_multiplier or 1

    for season in config.seasonal_rates:
        if season.start_date <= night <= season.end_date:
            rate *= season.multiplier

    for special in config.special_dates:
        if special.date == night:
            rate *= special.multiplier

    return rate


def nightly_rates(
    config: PricingConfiguration,
    check_in: date | datetime,
    check_out: date | datetime,
    base_nightly_price: float,
    conversion_rate: float,
) -> Iterator[tuple[date, float]]:
    """Yield ``(night, rate)`` for each night of the stay.

    Nights are calendar dates starting at the check-in day; a partial last
    day (datetime bounds) counts as a full night.
    """
    first_night = as_date(check_in)
    for offset in range(calculate_nights(check_in, check_out)):
        night = first_night + timedelta(days=offset)
        yield night, resolve_nightly_rate(config, night, base_nightly_price, conversion_rate)


def calculate_base_price(
    config: PricingConfiguration,
    check_in: date | datetime,
    check_out: date | datetime,
    base_nightly_price: float,
    conversion_rate: float,
) -> float:
    """Total base price for the stay, in guest currency, before discounts.

    Args:
        config: Listing pricing configuration.
        check_in: First night.
        check_out: Departure day (not charged).
        base_nightly_price: Base nightly price already in guest currency.
        conversion_rate: Host -> guest rate, applied to overrides.
    """
    total = 0.0
    for _night, rate in nightly_rates(config, check_in, check_out, base_nightly_price, conversion_rate):
        total += rate
    return total
