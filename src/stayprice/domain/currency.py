"""Currency conversion and precision normalisation.

All conversions pivot through USD: ``rate = usd[target] / usd[source]``.
Only the USD table is ever fetched, at the cost of a small precision loss
against a direct quote for non-USD pairs.

Rounding modes:
- "fixed": two decimals (most currencies)
- "round": whole units (zero-decimal currencies; UGX above 100 rounds to
  the nearest 100)
- "none":  untouched, for intermediate values rounded once at the end
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any, Collection, Literal

from stayprice.domain.errors import PricingError

if TYPE_CHECKING:
    from stayprice.infra.exchange_rates import RateSource

RoundingMode = Literal["fixed", "round", "none"]

PIVOT_CURRENCY = "USD"

ZERO_DECIMAL_CURRENCIES = frozenset(
    {
        "BIF", "CLP", "DJF", "GNF", "ISK", "JPY", "KMF", "KRW", "MGA",
        "PYG", "RWF", "UGX", "VND", "VUV", "XAF", "XOF", "XPF",
    }
)

_CENT = Decimal("0.01")
_UNIT = Decimal("1")


class UnsupportedCurrencyError(PricingError):
    def __init__(self, currency: str):
        self.currency = currency.upper()
        super().__init__("unsupported_currency", {"currency": self.currency})


def is_zero_decimal(currency: str) -> bool:
    return currency.upper() in ZERO_DECIMAL_CURRENCIES


def precision_mode(currency: str) -> RoundingMode:
    """Final rounding mode for amounts displayed in *currency*."""
    return "round" if is_zero_decimal(currency) else "fixed"


def round_amount(value: float, mode: RoundingMode, currency: str | None = None) -> float | int:
    """Round half-up according to *mode*."""
    if mode == "none":
        return value
    amount = Decimal(str(value))
    if mode == "fixed":
        return float(amount.quantize(_CENT, rounding=ROUND_HALF_UP))
    if currency is not None and currency.upper() == "UGX" and value > 100:
        return int((amount / 100).quantize(_UNIT, rounding=ROUND_HALF_UP)) * 100
    return int(amount.quantize(_UNIT, rounding=ROUND_HALF_UP))


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def convert_keys(
    data: Any,
    keys: Collection[str],
    rate: float,
    mode: RoundingMode = "none",
    currency: str | None = None,
) -> Any:
    """Return a copy of *data* with numeric values under *keys* multiplied by *rate*.

    Walks nested dicts, lists and tuples. Any other value passes through.
    """
    if isinstance(data, dict):
        result = {}
        for key, value in data.items():
            if key in keys and _is_number(value):
                result[key] = round_amount(value * rate, mode, currency)
            else:
                result[key] = convert_keys(value, keys, rate, mode, currency)
        return result
    if isinstance(data, (list, tuple)):
        return type(data)(convert_keys(item, keys, rate, mode, currency) for item in data)
    return data


def pivot_rate(gateway: RateSource, source: str, target: str) -> float:
    """Units of *target* per one unit of *source*, via the USD table.

    Raises:
        UnsupportedCurrencyError: If either currency is absent from the table.
        ExchangeRateUnavailable: If the USD table cannot be fetched.
    """
    table = gateway.get_rates(PIVOT_CURRENCY)

    def usd_to(currency: str) -> float:
        if currency.upper() == PIVOT_CURRENCY:
            return 1.0
        value = table.rate_for(currency)
        if not value:
            raise UnsupportedCurrencyError(currency)
        return value

    return usd_to(target) / usd_to(source)


def normalize_currency_payload(
    payload: Any,
    keys: Collection[str],
    host_currency: str,
    guest_currency: str,
    gateway: RateSource,
    mode: RoundingMode = "none",
) -> tuple[Any, float]:
    """Convert the listed fields of *payload* from host to guest currency.

    Returns:
        (converted_payload, rate) where rate is host -> guest.
    """
    rate = pivot_rate(gateway, host_currency, guest_currency)
    return convert_keys(payload, keys, rate, mode, guest_currency), rate


def normalize_precision(
    data: Any,
    mode: RoundingMode,
    omit_keys: Collection[str] = (),
    currency: str | None = None,
) -> Any:
    """Round every float leaf of *data*, skipping subtrees under *omit_keys*.

    Integers (night and guest counts) are already whole and pass through.
    """
    if isinstance(data, dict):
        return {
            key: value if key in omit_keys else normalize_precision(value, mode, omit_keys, currency)
            for key, value in data.items()
        }
    if isinstance(data, (list, tuple)):
        return type(data)(normalize_precision(item, mode, omit_keys, currency) for item in data)
    if isinstance(data, float):
        return round_amount(data, mode, currency)
    return data
