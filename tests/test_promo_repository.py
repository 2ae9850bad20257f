"""Tests for promo code persistence (mocked cursor)."""

import os
from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from stayprice.domain.errors import PricingError
from stayprice.domain.promo import DiscountType
from stayprice.infra.repositories.promo_codes_repository import (
    PgPromoCodeRepository,
    PgUsageRepository,
    PromoRedemptionRejected,
    count_promo_usage,
    find_active_promo_by_code,
    list_active_promo_codes,
    redeem_promo_code,
)

AS_OF = date(2026, 10, 19)

PROMO_ROW = (
    "8d0c7c3e-0000-4000-8000-000000000001",
    "SAVE20",
    "percentage",
    Decimal("20.00"),
    "USD",
    date(2026, 1, 1),
    date(2026, 12, 31),
    Decimal("50.00"),
    Decimal("25.00"),
    100,
    2,
    7,
    "active",
    "Autumn sale",
    ["newUser", "returning"],
)


def executed_sql(cur: MagicMock, call_index: int = 0) -> str:
    return " ".join(cur.execute.call_args_list[call_index][0][0].split())


class TestFindActivePromoByCode:
    def test_maps_row_to_promo(self):
        cur = MagicMock()
        cur.fetchone.return_value = PROMO_ROW

        promo = find_active_promo_by_code(cur, "save20", AS_OF)

        assert promo.id == PROMO_ROW[0]
        assert promo.promo_code == "SAVE20"
        assert promo.discount_type is DiscountType.PERCENTAGE
        assert promo.discount_value == 20.0
        assert promo.minimum_spend == 50.0
        assert promo.maximum_discount == 25.0
        assert promo.max_per_user == 2
        assert promo.used_count == 7
        assert promo.eligible_user_types == ("newUser", "returning")

    def test_filters_active_in_date_not_exhausted(self):
        cur = MagicMock()
        cur.fetchone.return_value = None

        assert find_active_promo_by_code(cur, "save20", AS_OF) is None

        sql = executed_sql(cur)
        assert "status = 'active'" in sql
        assert "used_count < max_redemptions" in sql
        assert cur.execute.call_args[0][1] == ("SAVE20", AS_OF, AS_OF)

    def test_null_maximum_discount(self):
        cur = MagicMock()
        cur.fetchone.return_value = PROMO_ROW[:8] + (None,) + PROMO_ROW[9:]

        assert find_active_promo_by_code(cur, "SAVE20", AS_OF).maximum_discount is None


class TestListAndCount:
    def test_list_active(self):
        cur = MagicMock()
        cur.fetchall.return_value = [PROMO_ROW]

        promos = list_active_promo_codes(cur, AS_OF)

        assert [p.promo_code for p in promos] == ["SAVE20"]
        assert "ORDER BY valid_until" in executed_sql(cur)

    def test_count_usage(self):
        cur = MagicMock()
        cur.fetchone.return_value = (3,)

        assert count_promo_usage(cur, "user-1", "promo-1") == 3
        assert cur.execute.call_args[0][1] == ("promo-1", "user-1")

    def test_adapters_delegate_to_cursor(self):
        cur = MagicMock()
        cur.fetchone.return_value = (1,)
        cur.fetchall.return_value = []

        assert PgUsageRepository(cur).count_usage("user-1", "promo-1") == 1
        assert PgPromoCodeRepository(cur).list_active(AS_OF) == []


class TestRedeemPromoCode:
    def test_locks_row_records_usage_and_increments(self):
        cur = MagicMock()
        cur.fetchone.side_effect = [(7, 100, 2), (1,), ("usage-1",)]

        usage_id = redeem_promo_code(cur, promo_code_id="promo-1", user_id="user-1", reservation_id="res-1")

        assert usage_id == "usage-1"
        assert executed_sql(cur, 0).endswith("FOR UPDATE")
        assert "INSERT INTO promo_usages" in executed_sql(cur, 2)
        assert cur.execute.call_args_list[2][0][1] == ("user-1", "promo-1", "res-1")
        assert "used_count = used_count + 1" in executed_sql(cur, 3)

    def test_unknown_promo(self):
        cur = MagicMock()
        cur.fetchone.return_value = None

        with pytest.raises(PromoRedemptionRejected) as exc_info:
            redeem_promo_code(cur, promo_code_id="missing", user_id="user-1", reservation_id="res-1")

        assert exc_info.value.reason_code == "not_found"
        assert exc_info.value.meta == {"promo_code_id": "missing"}
        assert isinstance(exc_info.value, PricingError)

    def test_exhausted_promo(self):
        cur = MagicMock()
        cur.fetchone.return_value = (100, 100, 1)

        with pytest.raises(PromoRedemptionRejected) as exc_info:
            redeem_promo_code(cur, promo_code_id="promo-1", user_id="user-1", reservation_id="res-1")

        assert exc_info.value.reason_code == "exhausted"
        assert cur.execute.call_count == 1

    def test_user_limit_reached(self):
        cur = MagicMock()
        cur.fetchone.side_effect = [(7, 100, 1), (1,)]

        with pytest.raises(PromoRedemptionRejected) as exc_info:
            redeem_promo_code(cur, promo_code_id="promo-1", user_id="user-1", reservation_id="res-1")

        assert exc_info.value.reason_code == "user_limit_reached"
        assert not any("INSERT" in c[0][0] for c in cur.execute.call_args_list)


_skip_no_db = pytest.mark.skipif(
    not os.environ.get("DATABASE_URL"),
    reason="DATABASE_URL not set - skipping DB integration tests",
)


@_skip_no_db
class TestRedeemPromoCodeIntegration:
    def test_second_redemption_by_same_user_rejected(self):
        from stayprice.infra.db import get_conn, txn

        conn = get_conn()
        try:
            with txn(conn) as cur:
                cur.execute(
                    """
                    INSERT INTO promo_codes (promo_code, discount_type, discount_value, valid_until, status)
                    VALUES ('ITEST-ONCE', 'flat', 5, current_date + 1, 'active')
                    RETURNING id
                    """
                )
                promo_id = str(cur.fetchone()[0])
                redeem_promo_code(cur, promo_code_id=promo_id, user_id="itest-user", reservation_id="itest-1")
                with pytest.raises(PromoRedemptionRejected):
                    redeem_promo_code(cur, promo_code_id=promo_id, user_id="itest-user", reservation_id="itest-2")
                cur.execute("SELECT used_count FROM promo_codes WHERE id = %s", (promo_id,))
                assert cur.fetchone()[0] == 1
                raise RuntimeError("rollback")
        except RuntimeError as e:
            if str(e) != "rollback":
                raise
        finally:
            conn.close()
