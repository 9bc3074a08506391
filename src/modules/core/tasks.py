"""Asynchronous tasks of the core module."""

from __future__ import annotations

import structlog
from celery import shared_task
from django.db import transaction

from modules.core.models import OutboxEvent
from shared.infrastructure.bus import UnknownEventType, event_bus

logger = structlog.get_logger(__name__)

OUTBOX_BATCH_SIZE = 100


@shared_task(name="core.publish_outbox_events")
def publish_outbox_events(batch_size: int = OUTBOX_BATCH_SIZE) -> dict:
    """Relay pending outbox rows to the in-process event bus.

    Rows are processed oldest first.  A row whose handlers raise is marked
    ``FAILED`` with the error and left for inspection; the rest of the batch
    still goes out.
    """
    published = 0
    failed = 0

    with transaction.atomic():
        pending = list(
            OutboxEvent.objects.select_for_update().pending()[:batch_size]
        )
        for outbox in pending:
            log = logger.bind(outbox_id=str(outbox.id), event_type=outbox.event_type)
            try:
                event_cls = event_bus.resolve(outbox.event_type)
                event_bus.publish(event_cls.from_payload(outbox.payload))
            except UnknownEventType as exc:
                outbox.mark_as_failed(str(exc))
                failed += 1
                log.error("outbox.unknown_event_type")
                continue
            except Exception as exc:
                outbox.mark_as_failed(str(exc))
                failed += 1
                log.exception("outbox.publish_failed")
                continue
            outbox.mark_as_published()
            published += 1

    logger.info("outbox.batch_published", published=published, failed=failed)
    return {"published": published, "failed": failed}
