import logging
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

application = get_wsgi_application()

logger = logging.getLogger(__name__)

try:
    from elections.startup import check_event_publisher, check_principal_provider

    check_principal_provider()
    check_event_publisher()
except Exception:
    logger.exception("Startup collaborator check failed")
    raise
