from unittest.mock import patch

from celery.exceptions import Retry
from django.db import DatabaseError
from django.urls import reverse
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APITestCase

from accounts.models import CustomUser, Restaurant
from notifications.models import Notification
from notifications.services import notification_service
from notifications.tasks import notify_managers_of_review


def review_alert(restaurant=None, sender=None, priority='high'):
    return {
        'title': 'Review Completed: Test Cook',
        'message': 'Review score: 66.7% - Requires manager follow-up',
        'type': 'REVIEW_UPDATE',
        'priority': priority,
        'metadata': {'review_instance_id': 'abc', 'score': 66.67, 'requires_followup': True},
        'sender_id': str(sender.id) if sender else None,
        'restaurant_id': str(restaurant.id) if restaurant else None,
    }


class ReviewAlertDeliveryTests(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.restaurant = Restaurant.objects.create(name="Test R", email="r@test.local")
        cls.other_restaurant = Restaurant.objects.create(name="Other R", email="o@test.local")
        cls.cook = CustomUser.objects.create_user(
            email="cook@test.local", pin_code="1234", role="LINE_COOK", restaurant=cls.restaurant,
        )
        cls.manager = CustomUser.objects.create_user(
            email="manager@test.local", password="pass12345", role="MANAGER", restaurant=cls.restaurant,
        )
        cls.admin = CustomUser.objects.create_user(
            email="admin@test.local", password="pass12345", role="ADMIN", restaurant=cls.restaurant,
        )
        cls.inactive_manager = CustomUser.objects.create_user(
            email="gone@test.local", password="pass12345", role="MANAGER",
            restaurant=cls.restaurant, is_active=False,
        )
        cls.other_manager = CustomUser.objects.create_user(
            email="elsewhere@test.local", password="pass12345", role="MANAGER",
            restaurant=cls.other_restaurant,
        )

    def test_one_notification_per_active_manager_of_the_restaurant(self):
        created = notification_service.send_review_alert(review_alert(self.restaurant, self.cook))

        self.assertEqual({n.recipient for n in created}, {self.manager, self.admin})
        notification = Notification.objects.get(recipient=self.manager)
        self.assertEqual(notification.notification_type, 'REVIEW_UPDATE')
        self.assertEqual(notification.priority, 'high')
        self.assertEqual(notification.sender, self.cook)
        self.assertEqual(notification.data['review_instance_id'], 'abc')
        self.assertFalse(notification.is_read)

    def test_without_restaurant_every_manager_is_alerted(self):
        created = notification_service.send_review_alert(review_alert())
        self.assertEqual(len(created), 3)

    def test_no_managers(self):
        CustomUser.objects.filter(role__in=['MANAGER', 'ADMIN']).update(is_active=False)
        self.assertEqual(notification_service.send_review_alert(review_alert(self.restaurant)), [])
        self.assertEqual(Notification.objects.count(), 0)

    def test_task_reports_delivery(self):
        result = notify_managers_of_review.apply(args=[review_alert(self.restaurant, self.cook)]).get()
        self.assertEqual(result, {'success': True, 'notified': 2})

    @patch('notifications.tasks.notify_managers_of_review.retry', side_effect=Retry())
    @patch('notifications.tasks.notification_service.send_review_alert', side_effect=DatabaseError('down'))
    def test_task_retries_on_database_error(self, _send, mock_retry):
        with self.assertRaises(Retry):
            notify_managers_of_review.run(review_alert(self.restaurant))
        mock_retry.assert_called_once()


class NotificationAPITests(APITestCase):
    def setUp(self):
        self.manager = CustomUser.objects.create_user(
            email="manager@test.local", password="pass12345", role="MANAGER",
        )
        self.alert = notification_service.send_custom_notification(
            recipient=self.manager,
            title='Review Updated: Test Cook',
            message='Review score: 90.0% - Review updated after completion',
            notification_type='REVIEW_UPDATE',
        )
        notification_service.send_custom_notification(recipient=self.manager, message='Staff meeting at 3')

    def test_list_filters_by_type(self):
        self.client.force_authenticate(user=self.manager)
        resp = self.client.get(reverse('notifications:notification-list'), {'type': 'REVIEW_UPDATE'})
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual([n['id'] for n in resp.json()], [str(self.alert.id)])

    def test_mark_read(self):
        self.client.force_authenticate(user=self.manager)
        resp = self.client.post(reverse('notifications:mark-notification-read', args=[self.alert.id]))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.alert.refresh_from_db()
        self.assertTrue(self.alert.is_read)

        unread = self.client.get(reverse('notifications:notification-list'), {'is_read': 'false'}).json()
        self.assertEqual(len(unread), 1)
