from __future__ import annotations

import logging
from functools import lru_cache

import requests
from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import transaction
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)

VOTE_CAST = "vote-cast"
ELECTION_SCHEDULED = "election-scheduled"
ELECTION_STARTED = "election-started"
ELECTION_CLOSED = "election-closed"
ELECTION_PUBLISHED = "election-published"
RESULTS_UPDATED = "results-updated"


class EventPublisher:
    """One-way port to the real-time notification service."""

    def publish(self, event_name: str, payload: dict[str, object]) -> None:
        raise NotImplementedError


class LoggingEventPublisher(EventPublisher):
    def publish(self, event_name: str, payload: dict[str, object]) -> None:
        logger.info("Event %s: %s", event_name, payload)


class WebhookEventPublisher(EventPublisher):
    """POST each event as JSON to ELECTIONS_EVENT_WEBHOOK_URL.

    Delivery runs in the committing request, so each event holds it for at
    most ELECTIONS_EVENT_WEBHOOK_TIMEOUT seconds per connect and read. The
    response status is only logged; a rejected event is not retried.
    """

    def __init__(self, url: str | None = None, timeout: float | None = None) -> None:
        self.url = url if url is not None else settings.ELECTIONS_EVENT_WEBHOOK_URL
        self.timeout = timeout if timeout is not None else settings.ELECTIONS_EVENT_WEBHOOK_TIMEOUT

    def publish(self, event_name: str, payload: dict[str, object]) -> None:
        if not self.url:
            return
        data = DjangoJSONEncoder().encode({"event": event_name, "payload": payload})
        response = requests.post(
            self.url,
            data=data,
            headers={"Content-Type": "application/json"},
            timeout=self.timeout,
        )
        if not response.ok:
            logger.warning("Webhook rejected %s event: HTTP %s", event_name, response.status_code)


@lru_cache(maxsize=None)
def _publisher_class(path: str) -> type[EventPublisher]:
    return import_string(path)


def get_event_publisher() -> EventPublisher:
    return _publisher_class(settings.ELECTIONS_EVENT_PUBLISHER)()


def _deliver(publisher: EventPublisher, event_name: str, payload: dict[str, object]) -> None:
    try:
        publisher.publish(event_name, payload)
    except Exception:
        # Delivery is best-effort; the state change is already committed.
        logger.exception("Failed to publish %s event", event_name)


def publish_on_commit(
    event_name: str,
    payload: dict[str, object],
    *,
    publisher: EventPublisher | None = None,
) -> None:
    """Publish once the surrounding transaction commits; never before.

    Outside a transaction the event is delivered immediately.
    """

    target = publisher if publisher is not None else get_event_publisher()
    transaction.on_commit(lambda: _deliver(target, event_name, payload))
