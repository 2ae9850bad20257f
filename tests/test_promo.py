"""Tests for promo code validation, previews and listings."""

from datetime import date

import pytest

from helpers import TODAY, InMemoryPromoCodes, InMemoryUsage, make_promo
from stayprice.domain.promo import (
    DiscountType,
    PromoRejected,
    check_promo_valid_for_user,
    describe_promo,
    list_promos_for_currency,
    preview_promo,
)


class TestPromoCode:
    def test_coerces_type_and_uppercases_code(self):
        promo = make_promo(promo_code="summer", discount_type="percentage")

        assert promo.promo_code == "SUMMER"
        assert promo.discount_type is DiscountType.PERCENTAGE

    def test_unknown_discount_type_rejected(self):
        with pytest.raises(ValueError):
            make_promo(discount_type="bogo")

    def test_exhausted_when_used_count_reaches_limit(self):
        assert make_promo(used_count=100, max_redemptions=100).is_exhausted
        assert not make_promo(used_count=99, max_redemptions=100).is_exhausted

    def test_expired_after_valid_until(self):
        promo = make_promo(valid_until=date(2026, 10, 18))

        assert promo.is_expired(TODAY)
        assert not promo.is_redeemable(TODAY)

    def test_valid_until_is_inclusive(self):
        assert make_promo(valid_until=TODAY).is_redeemable(TODAY)

    def test_inactive_is_not_redeemable(self):
        assert not make_promo(status="inactive").is_redeemable(TODAY)

    def test_not_yet_started_is_not_redeemable(self):
        assert not make_promo(valid_from=date(2026, 11, 1)).is_redeemable(TODAY)


class TestValidate:
    def test_meets_minimum_spend(self, gateway):
        assert make_promo(minimum_spend=100.0).validate(100.0, "USD", gateway).valid

    def test_below_minimum_spend_in_guest_currency(self, gateway):
        validation = make_promo(minimum_spend=100.0).validate(49.0, "EUR", gateway)

        assert not validation.valid
        assert validation.message == "The minimum spend required to apply this coupon is 50.0 EUR."


class TestCheckPromoValidForUser:
    def test_under_limit(self):
        promo = make_promo(max_per_user=2)

        assert check_promo_valid_for_user(InMemoryUsage({("u", "promo-1"): 1}), promo, "u").valid

    def test_at_limit(self):
        promo = make_promo(max_per_user=2)

        validation = check_promo_valid_for_user(InMemoryUsage({("u", "promo-1"): 2}), promo, "u")

        assert not validation.valid
        assert "only valid 2 times per customer" in validation.message

    def test_counts_are_per_user(self):
        usage = InMemoryUsage({("someone-else", "promo-1"): 5})

        assert check_promo_valid_for_user(usage, make_promo(), "u").valid


def preview(code, total=300.0, currency="USD", user_id="user-1", *, gateway, promo_codes, usage):
    return preview_promo(
        code,
        total,
        currency,
        user_id,
        gateway=gateway,
        promo_codes=promo_codes,
        usage=usage,
        as_of=TODAY,
    )


class TestPreviewPromo:
    def test_flat_promo_in_usd(self, gateway, promo_codes, usage):
        result = preview("flat10", gateway=gateway, promo_codes=promo_codes, usage=usage)

        assert result == {
            "promo_code_id": "promo-1",
            "promo_code": "FLAT10",
            "discount_type": "flat",
            "valid_until": date(2026, 12, 31),
            "currency": "USD",
            "discount_value": 10.0,
            "minimum_spend": 0.0,
            "maximum_discount": None,
        }

    def test_flat_amounts_converted_and_rounded(self, gateway, promo_codes, usage):
        result = preview("FLAT10", 45000.0, "jpy", gateway=gateway, promo_codes=promo_codes, usage=usage)

        assert result["currency"] == "JPY"
        assert result["discount_value"] == 1500
        assert result["minimum_spend"] == 0

    def test_percentage_value_not_converted(self, gateway, promo_codes, usage):
        result = preview("SAVE20", 45000.0, "JPY", gateway=gateway, promo_codes=promo_codes, usage=usage)

        assert result["discount_value"] == 20.0
        assert result["maximum_discount"] == 3750

    @pytest.mark.parametrize("code", ["", "   ", None])
    def test_code_required(self, code, gateway, promo_codes, usage):
        with pytest.raises(PromoRejected) as exc_info:
            preview(code, gateway=gateway, promo_codes=promo_codes, usage=usage)

        assert exc_info.value.message == "A valid promo code is required."

    @pytest.mark.parametrize("total", [0.0, -5.0])
    def test_total_must_be_positive(self, total, gateway, promo_codes, usage):
        with pytest.raises(PromoRejected) as exc_info:
            preview("FLAT10", total, gateway=gateway, promo_codes=promo_codes, usage=usage)

        assert exc_info.value.message == "A valid total base price must be a positive number."

    def test_unknown_code(self, gateway, promo_codes, usage):
        with pytest.raises(PromoRejected) as exc_info:
            preview("nope", gateway=gateway, promo_codes=promo_codes, usage=usage)

        assert exc_info.value.message == "Invalid promo code."
        assert exc_info.value.reason_code == "promo_rejected"
        assert exc_info.value.meta["promo_code"] == "NOPE"

    def test_minimum_spend(self, gateway, usage):
        promos = InMemoryPromoCodes(make_promo(minimum_spend=500.0))

        with pytest.raises(PromoRejected) as exc_info:
            preview("FLAT10", 300.0, gateway=gateway, promo_codes=promos, usage=usage)

        assert exc_info.value.message == "The minimum spend required to apply this coupon is 500.0 USD."

    def test_per_user_limit(self, gateway, promo_codes):
        with pytest.raises(PromoRejected, match="promo_rejected") as exc_info:
            preview("FLAT10", gateway=gateway, promo_codes=promo_codes,
                    usage=InMemoryUsage({("user-1", "promo-1"): 1}))

        assert "usage limit" in exc_info.value.message


class TestListPromosForCurrency:
    def test_lists_with_converted_amounts_and_descriptions(self, gateway, promo_codes):
        listed = list_promos_for_currency(promo_codes.list_active(TODAY), "JPY", gateway)

        by_code = {item["promo_code"]: item for item in listed}
        assert by_code["FLAT10"]["discount_value"] == 1500
        assert by_code["FLAT10"]["eligible_user_types"] == ["newUser"]
        assert by_code["FLAT10"]["description"] == (
            "Enjoy 1500 JPY off your stay. Valid until December 31, 2026. Minimum spend: 0 JPY."
        )
        assert by_code["SAVE20"]["description"] == (
            "Book now and get 20.0% off your trip, offer ends December 31, 2026. "
            "Minimum spend: 0 JPY. Get up to 3750 JPY off on eligible bookings!"
        )

    def test_empty_list(self, gateway):
        assert list_promos_for_currency([], "USD", gateway) == []


class TestDescribePromo:
    def test_percentage_without_cap(self):
        text = describe_promo(
            {
                "currency": "EUR",
                "valid_until": date(2026, 3, 5),
                "discount_type": "percentage",
                "discount_value": 15.0,
                "minimum_spend": 50.0,
                "maximum_discount": None,
            }
        )

        assert text == "Book now and get 15.0% off your trip, offer ends March 05, 2026. Minimum spend: 50.0 EUR."
