"""Integration tests for ``manage.py backfill_address_snapshots``."""

from __future__ import annotations

from datetime import datetime, timezone
from io import StringIO

import pytest
from django.core.management import call_command

from modules.addresses.dtos import AddressSnapshotDTO
from modules.addresses.models import Address
from modules.orders.models import Order

pytestmark = pytest.mark.integration


@pytest.fixture()
def legacy_order(make_variant, place_order):
    order = place_order([(make_variant("BF-1"), 1)])
    Order.objects.filter(pk=order.pk).update(address_snapshot=None)
    return order


def _run(*args) -> str:
    out = StringIO()
    call_command("backfill_address_snapshots", *args, stdout=out)
    return out.getvalue()


def _snapshot(order):
    return Order.objects.values_list("address_snapshot", flat=True).get(pk=order.pk)


def test_backfills_from_live_address(legacy_order, address):
    output = _run()

    assert "Backfilled 1 order(s)." in output
    snapshot = _snapshot(legacy_order)
    assert snapshot["address_line"] == "12 Lê Lợi"
    assert snapshot["city"] == "TP. Hồ Chí Minh"


def test_backfills_from_soft_deleted_address(legacy_order, address):
    address.delete()

    _run()

    assert _snapshot(legacy_order)["full_name"] == "Nguyễn Văn An"


def test_dry_run_writes_nothing(legacy_order):
    output = _run("--dry-run")

    assert "Would backfill 1 order(s)." in output
    assert _snapshot(legacy_order) is None


def test_missing_address_is_reported_for_review(legacy_order, address):
    address.hard_delete()

    output = _run()

    assert "Backfilled 0 order(s)." in output
    assert "1 order(s) need manual review" in output
    assert legacy_order.order_number in output
    assert _snapshot(legacy_order) is None


def test_orders_with_snapshot_are_skipped(make_variant, place_order):
    order = place_order([(make_variant("BF-2"), 1)])
    before = _snapshot(order)

    assert "Backfilled 0 order(s)." in _run()
    assert _snapshot(order) == before


def test_snapshot_is_dated_at_order_creation(legacy_order, address):
    placed_at = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)
    Order.objects.filter(pk=legacy_order.pk).update(created_at=placed_at)

    _run()

    snapshot = AddressSnapshotDTO.model_validate(_snapshot(legacy_order))
    assert snapshot.captured_at == placed_at


@pytest.mark.parametrize("field", ["phone", "full_name"])
def test_incomplete_address_is_reported_for_review(legacy_order, address, field):
    Address.objects.filter(pk=address.pk).update(**{field: ""})

    output = _run()

    assert "Backfilled 0 order(s)." in output
    assert "1 order(s) need manual review" in output
    assert legacy_order.order_number in output
    assert _snapshot(legacy_order) is None


def test_incomplete_address_does_not_stop_the_run(
    legacy_order, address, make_variant, place_order, province_address
):
    other = place_order([(make_variant("BF-3"), 1)], delivery_address=province_address)
    Order.objects.filter(pk=other.pk).update(address_snapshot=None)
    Address.objects.filter(pk=address.pk).update(phone="")

    output = _run()

    assert "Backfilled 1 order(s)." in output
    assert legacy_order.order_number in output
    assert _snapshot(other)["city"] == "Khánh Hòa"


def test_dry_run_reports_incomplete_address(legacy_order, address):
    Address.objects.filter(pk=address.pk).update(full_name="")

    output = _run("--dry-run")

    assert "Would backfill 0 order(s)." in output
    assert "1 order(s) need manual review" in output
