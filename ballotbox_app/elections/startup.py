from __future__ import annotations

import logging

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string

from elections.events import EventPublisher, WebhookEventPublisher
from elections.principals import PrincipalProvider

logger = logging.getLogger(__name__)


def _check_collaborator(setting_name: str, base: type) -> type:
    path = str(getattr(settings, setting_name, "") or "").strip()
    if not path:
        raise ImproperlyConfigured(f"{setting_name} must be set")
    try:
        cls = import_string(path)
    except ImportError as exc:
        raise ImproperlyConfigured(f"{setting_name}={path!r} cannot be imported") from exc
    if not isinstance(cls, type) or not issubclass(cls, base):
        raise ImproperlyConfigured(f"{setting_name}={path!r} is not a {base.__name__}")
    logger.info("Using %s for %s", path, setting_name)
    return cls


def check_principal_provider() -> None:
    _check_collaborator("ELECTIONS_PRINCIPAL_PROVIDER", PrincipalProvider)


def check_event_publisher() -> None:
    cls = _check_collaborator("ELECTIONS_EVENT_PUBLISHER", EventPublisher)
    if issubclass(cls, WebhookEventPublisher) and not settings.ELECTIONS_EVENT_WEBHOOK_URL:
        raise ImproperlyConfigured("ELECTIONS_EVENT_WEBHOOK_URL is required for the webhook publisher")
