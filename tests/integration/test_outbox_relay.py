"""Integration tests for the outbox relay task."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from modules.core.models import EventStatus, OutboxEvent
from modules.core.tasks import publish_outbox_events

pytestmark = pytest.mark.integration


@pytest.fixture()
def placed(make_variant, place_order):
    return place_order([(make_variant("OB-1"), 1)])


def test_publishes_pending_rows(placed):
    result = publish_outbox_events()

    assert result == {"published": 1, "failed": 0}
    row = OutboxEvent.objects.get(aggregate_id=str(placed.id))
    assert row.status == EventStatus.PUBLISHED
    assert row.processed_at is not None


def test_published_rows_are_not_sent_twice(placed):
    publish_outbox_events()
    assert publish_outbox_events() == {"published": 0, "failed": 0}


def test_handler_failure_marks_row_failed(placed):
    with patch("modules.core.tasks.event_bus.publish", side_effect=RuntimeError("boom")):
        result = publish_outbox_events()

    assert result == {"published": 0, "failed": 1}
    row = OutboxEvent.objects.get(aggregate_id=str(placed.id))
    assert row.status == EventStatus.FAILED
    assert row.retry_count == 1
    assert row.error_message == "RuntimeError: boom"


def test_failed_row_is_retried(placed):
    with patch("modules.core.tasks.event_bus.publish", side_effect=RuntimeError("boom")):
        publish_outbox_events()

    assert publish_outbox_events() == {"published": 1, "failed": 0}


def test_rows_past_retry_ceiling_are_left_alone(placed, settings):
    settings.OUTBOX_MAX_RETRIES = 1
    OutboxEvent.objects.update(status=EventStatus.FAILED, retry_count=1)

    assert publish_outbox_events() == {"published": 0, "failed": 0}


def test_unknown_event_type_fails_row():
    OutboxEvent.objects.create(
        event_type="OrderTeleported",
        aggregate_id="x",
        topic="orders",
        payload={"event_name": "OrderTeleported"},
    )

    result = publish_outbox_events()

    assert result["failed"] == 1
    assert OutboxEvent.objects.get().error_message.startswith("LookupError")


def test_batch_size_limits_work(make_variant, place_order):
    for index in range(3):
        place_order([(make_variant(f"OB-B-{index}"), 1)])

    assert publish_outbox_events(batch_size=2) == {"published": 2, "failed": 0}
    assert OutboxEvent.objects.pending().count() == 1
