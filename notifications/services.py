from django.db import transaction
from .models import Notification
from accounts.models import CustomUser
import logging

logger = logging.getLogger(__name__)


class NotificationService:
    """In-app notification service. Transport (push, WhatsApp, email) lives outside this project."""

    def send_custom_notification(
        self,
        recipient,
        message,
        notification_type='OTHER',
        sender=None,
        title='Notification',
        priority='normal',
        data=None,
    ):
        notification = Notification.objects.create(
            recipient=recipient,
            sender=sender,
            title=title,
            message=message,
            notification_type=notification_type,
            priority=priority,
            data=data or {},
        )
        logger.info(
            "Notification created",
            extra={
                "notification_id": str(notification.id),
                "recipient_id": str(recipient.id),
                "notification_type": notification_type,
                "priority": priority,
            },
        )
        return notification

    def get_manager_roster(self, restaurant_id=None):
        """Fetch the managers to alert. Always read fresh, never cached."""
        qs = CustomUser.objects.managers()
        if restaurant_id:
            qs = qs.filter(restaurant_id=restaurant_id)
        return list(qs.order_by('email'))

    def send_review_alert(self, alert):
        """
        Fan a review alert out to every manager.

        ``alert`` is the JSON payload built by ``reviews.services.ReviewAlert.to_payload``.
        """
        sender = None
        sender_id = alert.get('sender_id')
        if sender_id:
            sender = CustomUser.objects.filter(id=sender_id).first()

        managers = self.get_manager_roster(alert.get('restaurant_id'))
        if not managers:
            logger.warning(
                "No managers to notify for review alert",
                extra={"metadata": alert.get('metadata'), "restaurant_id": alert.get('restaurant_id')},
            )
            return []

        created = []
        with transaction.atomic():
            for manager in managers:
                created.append(self.send_custom_notification(
                    recipient=manager,
                    sender=sender,
                    title=alert['title'],
                    message=alert['message'],
                    notification_type=alert.get('type', 'REVIEW_UPDATE'),
                    priority=alert.get('priority', 'normal'),
                    data=alert.get('metadata') or {},
                ))
        return created


notification_service = NotificationService()
