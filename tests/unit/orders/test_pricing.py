"""Shipping fee and order totals."""

from __future__ import annotations

from decimal import Decimal

import pytest
from pydantic import ValidationError

from modules.orders.pricing import OrderTotals, is_inner_city, shipping_fee_for

pytestmark = pytest.mark.unit


class TestShippingFee:
    @pytest.mark.parametrize(
        "city",
        [
            "TP. Hồ Chí Minh",
            "Thành phố Hồ Chí Minh",
            "tp.hcm",
            "TP HCM",
            "Ho Chi Minh",
        ],
    )
    def test_ho_chi_minh_spellings_are_inner_city(self, city):
        assert is_inner_city(city)
        assert shipping_fee_for(city) == Decimal("20000")

    @pytest.mark.parametrize("city", ["Khánh Hòa", "Hà Nội", "Đà Nẵng"])
    def test_other_cities_pay_the_other_locations_fee(self, city):
        assert not is_inner_city(city)
        assert shipping_fee_for(city) == Decimal("50000")

    def test_empty_city_is_not_inner_city(self):
        assert not is_inner_city("")

    @pytest.mark.parametrize("city", ["TP", "Hồ", "Chí Minh", "tp."])
    def test_fragment_of_inner_city_name_is_not_inner_city(self, city):
        assert not is_inner_city(city)
        assert shipping_fee_for(city) == Decimal("50000")

    @pytest.mark.parametrize("city", ["Quận 1, TP. Hồ Chí Minh", "Phường Bến Nghé, tp.hcm"])
    def test_inner_city_inside_a_longer_address_is_inner_city(self, city):
        assert is_inner_city(city)

    def test_fees_follow_settings(self, settings):
        settings.SHIPPING_INNER_CITIES = ["Hà Nội"]
        settings.SHIPPING_FEE_INNER_CITY = Decimal("15000")
        assert shipping_fee_for("Hà Nội") == Decimal("15000")
        assert shipping_fee_for("TP. Hồ Chí Minh") == settings.SHIPPING_FEE_OTHER_LOCATIONS


class TestOrderTotals:
    def test_compute_sums_lines_and_applies_discount_and_shipping(self):
        totals = OrderTotals.compute(
            [Decimal("300000"), Decimal("450000")],
            discount_amount=Decimal("75000"),
            shipping_fee=Decimal("20000"),
        )
        assert totals.subtotal == Decimal("750000")
        assert totals.total == Decimal("675000")
        assert totals.final_total == Decimal("695000")

    def test_final_total_is_total_plus_shipping(self):
        totals = OrderTotals.compute(
            [Decimal("150000")], discount_amount=Decimal("0"), shipping_fee=Decimal("50000")
        )
        assert totals.final_total == totals.total + totals.shipping_fee

    def test_inconsistent_final_total_is_rejected(self):
        with pytest.raises(ValidationError):
            OrderTotals(
                subtotal=Decimal("100000"),
                total=Decimal("100000"),
                shipping_fee=Decimal("20000"),
                final_total=Decimal("100000"),
            )

    def test_discount_larger_than_subtotal_is_rejected(self):
        with pytest.raises(ValidationError):
            OrderTotals.compute(
                [Decimal("100000")],
                discount_amount=Decimal("150000"),
                shipping_fee=Decimal("20000"),
            )

    def test_totals_are_frozen(self):
        totals = OrderTotals.compute(
            [Decimal("100000")], discount_amount=Decimal("0"), shipping_fee=Decimal("0")
        )
        with pytest.raises(ValidationError):
            totals.final_total = Decimal("1")
