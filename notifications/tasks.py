from celery import shared_task
from django.db import DatabaseError
import logging

from .services import notification_service

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3, default_retry_delay=30)
def notify_managers_of_review(self, alert):
    """Deliver a review alert to the current manager roster."""
    try:
        notifications = notification_service.send_review_alert(alert)
    except DatabaseError as e:
        logger.warning(
            "Review alert delivery failed, retrying",
            extra={"metadata": alert.get('metadata'), "error": str(e)},
        )
        raise self.retry(exc=e)
    return {"success": True, "notified": len(notifications)}
