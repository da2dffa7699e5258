"""Background tasks of the core module.

``publish_outbox_events`` is the relay side of the transactional outbox:
rows written next to order changes are rebuilt into domain events and
handed to the in-process event bus.
"""

from __future__ import annotations

import structlog
from celery import shared_task
from django.conf import settings
from django.db import transaction

from modules.core.models import EventStatus, OutboxEvent
from shared.domain.events import DomainEvent
from shared.infrastructure.bus import event_bus

logger = structlog.get_logger(__name__)


@shared_task(name="core.publish_outbox_events")
def publish_outbox_events(batch_size: int | None = None) -> dict[str, int]:
    """Publish one batch of pending (or retryable failed) outbox rows.

    Each row is handled in its own transaction so a failing handler only
    marks its own row as failed.
    """
    batch_size = batch_size or settings.OUTBOX_BATCH_SIZE
    max_retries = settings.OUTBOX_MAX_RETRIES

    event_ids = list(
        OutboxEvent.objects.retryable(max_retries).values_list("id", flat=True)[
            :batch_size
        ]
    )

    published = failed = 0
    for event_id in event_ids:
        with transaction.atomic():
            row = (
                OutboxEvent.objects.select_for_update()
                .filter(id=event_id)
                .first()
            )
            if row is None or row.status == EventStatus.PUBLISHED:
                continue
            log = logger.bind(
                outbox_id=str(row.id),
                event_type=row.event_type,
                aggregate_id=row.aggregate_id,
            )
            try:
                event = DomainEvent.from_payload(row.payload)
                event_bus.publish(event)
            except Exception as exc:  # noqa: BLE001 - recorded on the row
                row.mark_as_failed(f"{type(exc).__name__}: {exc}")
                failed += 1
                log.warning(
                    "outbox.publish_failed",
                    error=str(exc),
                    retry_count=row.retry_count,
                )
                continue
            row.mark_as_published()
            published += 1
            log.debug("outbox.published")

    if event_ids:
        logger.info("outbox.relay_completed", published=published, failed=failed)
    return {"published": published, "failed": failed}
