"""Performance regression tests: constant query count (N+1 prevention).

List and retrieve endpoints must run the same number of SQL queries no
matter how many orders or lines exist, which proves ``select_related`` /
``prefetch_related`` are applied by the order repository.
"""

from __future__ import annotations

import pytest
from django.db import connection
from django.test.utils import CaptureQueriesContext
from rest_framework.test import APIClient

ORDERS_URL = "/api/v1/orders/"


@pytest.fixture()
def staff_client(staff_user):
    client = APIClient()
    client.force_authenticate(user=staff_user)
    return client


@pytest.fixture()
def create_orders(make_variant, place_order):
    variants = [make_variant(f"PERF-{i:03d}", stock=1000) for i in range(3)]

    def _create(count):
        return [place_order([(variant, 1) for variant in variants]) for _ in range(count)]

    return _create


def _count_queries(client, url) -> int:
    with CaptureQueriesContext(connection) as ctx:
        response = client.get(url)
    assert response.status_code == 200
    return len(ctx.captured_queries)


def test_list_query_count_is_constant(staff_client, create_orders):
    create_orders(2)
    few = _count_queries(staff_client, ORDERS_URL)

    create_orders(8)
    many = _count_queries(staff_client, ORDERS_URL)

    assert many == few


def test_retrieve_query_count_does_not_grow_with_lines(
    staff_client, create_orders, order_service
):
    from modules.orders.constants import Actor, OrderStatus

    small, large = create_orders(2)
    order_service.change_status(large.id, OrderStatus.PROCESSING, actor=Actor.ADMIN)
    order_service.change_status(large.id, OrderStatus.SHIPPED, actor=Actor.ADMIN)

    assert _count_queries(staff_client, f"{ORDERS_URL}{small.id}/") == _count_queries(
        staff_client, f"{ORDERS_URL}{large.id}/"
    )
