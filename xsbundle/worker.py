"""Celery worker entry point for the bundle queue.

Start workers with:
    celery -A xsbundle.worker worker --loglevel=info

Any number of workers may consume the same queue; each job id is picked
up by exactly one of them.
"""

from xsbundle.core.config import get_settings
from xsbundle.core.logging import configure_structlog
from xsbundle.core.sentry import init_sentry
from xsbundle.engine.tasks import create_bundle_queue

settings = get_settings()

init_sentry(
    dsn=settings.sentry_dsn,
    environment="development" if settings.debug else "production",
)
configure_structlog(debug=settings.debug)

bundle_queue = create_bundle_queue(settings)
celery_app = bundle_queue.celery_app
