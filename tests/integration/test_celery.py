"""Integration tests for the Celery configuration."""

import pytest

from modules.core.models import EventStatus, OutboxEvent

pytestmark = pytest.mark.integration


class TestCeleryConfig:
    def test_celery_app_is_importable(self):
        from config.celery import app

        assert app.main == "order_engine"

    def test_celery_app_exported_from_init(self):
        from config import celery_app

        assert celery_app.main == "order_engine"

    def test_celery_serializer_is_json(self, settings):
        assert settings.CELERY_TASK_SERIALIZER == "json"
        assert settings.CELERY_RESULT_SERIALIZER == "json"
        assert settings.CELERY_ACCEPT_CONTENT == ["json"]

    def test_celery_timezone_matches_django(self, settings):
        assert settings.CELERY_TIMEZONE == settings.TIME_ZONE

    def test_outbox_relay_is_scheduled(self, settings):
        entry = settings.CELERY_BEAT_SCHEDULE["publish-outbox-events"]
        assert entry["task"] == "core.publish_outbox_events"
        assert entry["schedule"] > 0


class TestOutboxRelayTask:
    def test_task_is_registered_under_schedule_name(self):
        from config.celery import app
        from modules.core.tasks import publish_outbox_events

        assert publish_outbox_events.name == "core.publish_outbox_events"
        assert app.tasks[publish_outbox_events.name] is publish_outbox_events

    def test_delay_runs_eagerly(self, make_variant, place_order):
        from modules.core.tasks import publish_outbox_events

        place_order([(make_variant("CEL-1"), 1)])

        result = publish_outbox_events.delay()

        assert result.successful()
        assert result.result == {"published": 1, "failed": 0}
        assert OutboxEvent.objects.get().status == EventStatus.PUBLISHED
