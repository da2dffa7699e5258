"""Domain event collection and outbox payload round trip."""

from __future__ import annotations

from uuid import uuid4

import pytest

from modules.orders.events import OrderCancelled, OrderCreated
from modules.orders.models import Order
from shared.domain.events import DomainEvent

pytestmark = pytest.mark.unit


def test_order_registers_and_clears_domain_events():
    order = Order(order_number="DH202600000001")
    assert order.domain_events == []

    event = OrderCreated(aggregate_id=order.id, order_number=order.order_number)
    order.add_domain_event(event)

    assert order.domain_events == [event]
    assert event.event_name == "OrderCreated"

    order.clear_domain_events()
    assert order.domain_events == []


def test_payload_round_trip_rebuilds_the_same_event():
    event = OrderCancelled(
        aggregate_id=uuid4(),
        order_number="DH202600000002",
        previous_status="processing",
        actor="customer",
        released=[{"variant_id": str(uuid4()), "quantity": 2}],
    )

    rebuilt = DomainEvent.from_payload(event.to_payload())

    assert rebuilt == event
    assert isinstance(rebuilt, OrderCancelled)


def test_unknown_event_name_is_rejected():
    with pytest.raises(LookupError):
        DomainEvent.from_payload({"event_name": "OrderTeleported", "aggregate_id": str(uuid4())})
