"""Pricing error taxonomy.

Every error carries a machine-readable ``reason_code`` plus a ``meta``
dict for context. A promo code that cannot be used during a quote is not
an error: the quote is priced without it (see discounts.py).
"""


class PricingError(Exception):
    retryable = False

    def __init__(self, reason_code: str, meta: dict | None = None):
        self.reason_code = reason_code
        self.meta = meta or {}
        super().__init__(f"Pricing failed: {reason_code}")


class InvalidBookingRequest(PricingError):
    """Caller supplied an unusable booking request (dates, guests, currency)."""


class PricingConfigError(PricingError):
    """Stored pricing configuration is inconsistent (e.g. overlapping overrides)."""
