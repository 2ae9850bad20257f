"""Promo code and promo usage persistence.

Uses raw SQL with psycopg2 (no ORM). The pricing engine only reads
through PgPromoCodeRepository / PgUsageRepository; ``redeem_promo_code``
is the write path used by the reservation flow once a booking is paid.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from psycopg2.extensions import cursor as PgCursor

from stayprice.domain.errors import PricingError
from stayprice.domain.promo import PromoCode
from stayprice.infra.db import fetchall, fetchone, for_update
from stayprice.observability.logging import get_logger, log_fields

logger = get_logger(__name__)

_PROMO_COLUMNS = """
    id, promo_code, discount_type, discount_value, currency,
    valid_from, valid_until, minimum_spend, maximum_discount,
    max_redemptions, max_per_user, used_count, status,
    description, eligible_user_types
"""

_ACTIVE_FILTER = """
    status = 'active'
    AND valid_from <= %s
    AND valid_until >= %s
    AND used_count < max_redemptions
"""


class PromoRedemptionRejected(PricingError):
    """Raised when a redemption would break a redemption limit."""

    def __init__(self, reason_code: str, promo_code_id: str):
        self.promo_code_id = promo_code_id
        super().__init__(reason_code, {"promo_code_id": promo_code_id})


def _row_to_promo(row: tuple[Any, ...]) -> PromoCode:
    return PromoCode(
        id=str(row[0]),
        promo_code=row[1],
        discount_type=row[2],
        discount_value=float(row[3]),
        currency=row[4],
        valid_from=row[5],
        valid_until=row[6],
        minimum_spend=float(row[7] or 0),
        maximum_discount=float(row[8]) if row[8] is not None else None,
        max_redemptions=row[9],
        max_per_user=row[10],
        used_count=row[11],
        status=row[12],
        description=row[13],
        eligible_user_types=tuple(row[14] or ()),
    )


def find_active_promo_by_code(cur: PgCursor, code: str, as_of: date) -> PromoCode | None:
    """Look up a redeemable promo code (active, in date, not exhausted).

    Args:
        cur: Database cursor.
        code: Promo code; matched upper-cased.
        as_of: Date the validity window is checked against.
    """
    row = fetchone(
        cur,
        f"SELECT {_PROMO_COLUMNS} FROM promo_codes WHERE promo_code = %s AND {_ACTIVE_FILTER}",
        (code.upper(), as_of, as_of),
    )
    return _row_to_promo(row) if row else None


def list_active_promo_codes(cur: PgCursor, as_of: date) -> list[PromoCode]:
    rows = fetchall(
        cur,
        f"SELECT {_PROMO_COLUMNS} FROM promo_codes WHERE {_ACTIVE_FILTER} ORDER BY valid_until, promo_code",
        (as_of, as_of),
    )
    return [_row_to_promo(row) for row in rows]


def count_promo_usage(cur: PgCursor, user_id: str, promo_code_id: str) -> int:
    row = fetchone(
        cur,
        "SELECT count(*) FROM promo_usages WHERE promo_code_id = %s AND user_id = %s",
        (promo_code_id, user_id),
    )
    return int(row[0]) if row else 0


def redeem_promo_code(
    cur: PgCursor,
    *,
    promo_code_id: str,
    user_id: str,
    reservation_id: str,
) -> str:
    """Record one redemption, enforcing both limits under a row lock.

    Must run inside the transaction that creates the reservation. The
    promo row is locked first, so concurrent redemptions of the same code
    serialise: the usage count and ``used_count`` are re-read after the
    lock and the usage record plus the increment are written before it is
    released.

    Args:
        cur: Database cursor (within transaction).
        promo_code_id: Promo code UUID.
        user_id: Redeeming user.
        reservation_id: Reservation the promo was applied to.

    Returns:
        ID of the new promo usage record.

    Raises:
        PromoRedemptionRejected: ``not_found``, ``exhausted`` or
            ``user_limit_reached``.
    """
    row = for_update(
        cur,
        "SELECT used_count, max_redemptions, max_per_user FROM promo_codes WHERE id = %s",
        (promo_code_id,),
    )
    if row is None:
        raise PromoRedemptionRejected("not_found", promo_code_id)

    used_count, max_redemptions, max_per_user = row
    if used_count >= max_redemptions:
        raise PromoRedemptionRejected("exhausted", promo_code_id)

    if count_promo_usage(cur, user_id, promo_code_id) >= max_per_user:
        raise PromoRedemptionRejected("user_limit_reached", promo_code_id)

    usage_row = fetchone(
        cur,
        """
        INSERT INTO promo_usages (user_id, promo_code_id, reservation_id)
        VALUES (%s, %s, %s)
        RETURNING id
        """,
        (user_id, promo_code_id, reservation_id),
    )
    cur.execute(
        """
        UPDATE promo_codes
        SET used_count = used_count + 1, updated_at = now()
        WHERE id = %s AND used_count < max_redemptions
        """,
        (promo_code_id,),
    )

    logger.info(
        "promo code redeemed",
        extra=log_fields(promo_code_id=promo_code_id, reservation_id=reservation_id),
    )
    return str(usage_row[0])


class PgPromoCodeRepository:
    """Promo code lookup bound to one cursor."""

    def __init__(self, cur: PgCursor):
        self._cur = cur

    def find_active_by_code(self, code: str, as_of: date) -> PromoCode | None:
        return find_active_promo_by_code(self._cur, code, as_of)

    def list_active(self, as_of: date) -> list[PromoCode]:
        return list_active_promo_codes(self._cur, as_of)


class PgUsageRepository:
    """Promo usage counter bound to one cursor."""

    def __init__(self, cur: PgCursor):
        self._cur = cur

    def count_usage(self, user_id: str, promo_code_id: str) -> int:
        return count_promo_usage(self._cur, user_id, promo_code_id)
