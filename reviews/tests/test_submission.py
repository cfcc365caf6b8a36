from datetime import datetime, timedelta, timezone as dt_timezone
from unittest.mock import patch

from django.db import transaction
from django.db.models import ProtectedError
from django.core.exceptions import ValidationError as DjangoValidationError
from django.test import TestCase
from rest_framework.exceptions import PermissionDenied, ValidationError

from core.exceptions import (
    ManagerOverrideNotPermitted,
    ReviewTemplateNotFound,
    ReviewWindowExpired,
    UnknownReviewCategory,
)
from reviews.config import ReviewEngineConfig
from reviews.models import ReviewCategory, ReviewInstance, ReviewResponse, ReviewUpdateRecord
from reviews.services import InstanceResolver, ReviewSubmissionService, UpdateWindowController

from .base import ReviewFixturesMixin

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=dt_timezone.utc)


class ReviewSubmissionTests(ReviewFixturesMixin, TestCase):
    def setUp(self):
        self.service = ReviewSubmissionService(ReviewEngineConfig())

    def submit(self, responses, actor=None, now=T0, **kwargs):
        return self.service.submit_review(
            template_id=self.template.id,
            employee_id=self.cook.id,
            date=T0.date(),
            shift_type='opening',
            responses=responses,
            actor=actor or self.cook,
            now=now,
            **kwargs
        )

    @patch('reviews.services.notify_managers_of_review')
    def test_first_submission_scores_and_alerts(self, mock_task):
        with self.captureOnCommitCallbacks(execute=True):
            result = self.submit(self.responses(4, 5, 1))

        instance = ReviewInstance.objects.get(id=result.instance.id)
        self.assertEqual(instance.status, 'completed')
        self.assertEqual(instance.total_score, 10)
        self.assertEqual(instance.max_possible_score, 15)
        self.assertAlmostEqual(instance.percentage, 66.667, places=2)
        self.assertTrue(instance.has_low_rating)
        self.assertTrue(instance.requires_manager_followup)
        self.assertEqual(instance.locked_at, T0 + timedelta(hours=6))
        self.assertEqual(instance.completion_method, 'manual')
        self.assertFalse(result.is_correction)
        self.assertEqual(ReviewUpdateRecord.objects.count(), 0)

        mock_task.delay.assert_called_once()
        payload = mock_task.delay.call_args[0][0]
        self.assertEqual(payload['title'], "Review Completed: Test Cook")
        self.assertEqual(payload['message'], "Review score: 66.7% - Requires manager follow-up")
        self.assertEqual(payload['priority'], 'high')
        self.assertEqual(payload['metadata']['review_instance_id'], str(instance.id))
        self.assertEqual(payload['restaurant_id'], str(self.restaurant.id))

    @patch('reviews.services.notify_managers_of_review')
    def test_correction_within_window_is_audited(self, mock_task):
        first = self.submit(self.responses(4, 5, 1))

        with self.captureOnCommitCallbacks(execute=True):
            second = self.submit(
                self.responses(2, categories=[self.drains]),
                now=T0 + timedelta(hours=1),
            )

        self.assertEqual(second.instance.id, first.instance.id)
        self.assertTrue(second.is_correction)
        self.assertEqual(second.summary.total_score, 11)
        self.assertAlmostEqual(second.summary.percentage, 73.333, places=2)
        self.assertFalse(second.summary.has_low_rating)

        record = ReviewUpdateRecord.objects.get()
        self.assertEqual(record.previous_value, {'rating': 1, 'notes': '', 'photos': []})
        self.assertEqual(record.new_value, {'rating': 2, 'notes': '', 'photos': []})
        self.assertEqual(record.updated_by, self.cook)
        self.assertFalse(record.manager_override)
        self.assertEqual(ReviewResponse.objects.get(category=self.drains).rating, 2)

        payload = mock_task.delay.call_args[0][0]
        self.assertEqual(payload['title'], "Review Updated: Test Cook")
        self.assertEqual(payload['priority'], 'normal')
        self.assertTrue(payload['metadata']['is_correction'])

    def test_expired_window_rejects_and_leaves_state_unchanged(self):
        self.submit(self.responses(4, 5, 1))
        self.submit(self.responses(2, categories=[self.drains]), now=T0 + timedelta(hours=1))

        with self.assertRaises(ReviewWindowExpired):
            self.submit(self.responses(5, categories=[self.drains]), now=T0 + timedelta(hours=7))

        instance = ReviewInstance.objects.get()
        self.assertEqual(instance.total_score, 11)
        self.assertEqual(ReviewResponse.objects.get(category=self.drains).rating, 2)
        self.assertEqual(ReviewUpdateRecord.objects.count(), 1)

    def test_manager_override_on_expired_instance(self):
        self.submit(self.responses(4, 5, 1))

        result = self.submit(
            self.responses(5, categories=[self.drains]),
            actor=self.manager,
            now=T0 + timedelta(hours=7),
            manager_override=True,
            override_reason='Re-inspected drains',
        )

        self.assertEqual(result.summary.total_score, 14)
        record = ReviewUpdateRecord.objects.get()
        self.assertTrue(record.manager_override)
        self.assertEqual(record.reason, 'Re-inspected drains')
        self.assertEqual(record.updated_by, self.manager)

    def test_override_by_non_manager_is_refused(self):
        self.submit(self.responses(4, 5, 1))
        with self.assertRaises(ManagerOverrideNotPermitted):
            self.submit(
                self.responses(5, categories=[self.drains]),
                now=T0 + timedelta(hours=7),
                manager_override=True,
            )
        self.assertEqual(ReviewUpdateRecord.objects.count(), 0)

    def test_identical_resubmission_is_still_audited(self):
        self.submit(self.responses(4, 5, 5))
        self.submit(self.responses(4, 5, 5), now=T0 + timedelta(minutes=10))
        self.assertEqual(ReviewUpdateRecord.objects.count(), 3)
        self.assertEqual(ReviewInstance.objects.count(), 1)

    def test_cannot_submit_for_someone_else(self):
        other = type(self.cook).objects.create_user(
            email="other@test.local", pin_code="9876", role="PREP_COOK", restaurant=self.restaurant,
        )
        with self.assertRaises(PermissionDenied):
            self.submit(self.responses(4, 5, 5), actor=other)

    def test_unknown_template(self):
        with self.assertRaises(ReviewTemplateNotFound):
            self.service.submit_review(
                template_id='00000000-0000-0000-0000-000000000000',
                employee_id=self.cook.id,
                date=T0.date(),
                shift_type='opening',
                responses=[],
                actor=self.cook,
            )

    def test_unknown_category_skipped_by_default(self):
        foreign = ReviewCategory(id='11111111-1111-1111-1111-111111111111', name='Elsewhere')
        result = self.submit(self.responses(5, 5, categories=[self.stations, foreign]))
        self.assertEqual(result.summary.max_possible_score, 5)
        self.assertEqual(ReviewResponse.objects.count(), 1)

    def test_unknown_category_rejected_when_configured(self):
        service = ReviewSubmissionService(ReviewEngineConfig(missing_category_policy='reject'))
        foreign = ReviewCategory(id='11111111-1111-1111-1111-111111111111', name='Elsewhere')
        with self.assertRaises(UnknownReviewCategory):
            service.submit_review(
                template_id=self.template.id,
                employee_id=self.cook.id,
                date=T0.date(),
                shift_type='opening',
                responses=self.responses(5, categories=[foreign]),
                actor=self.cook,
                now=T0,
            )
        self.assertEqual(ReviewInstance.objects.count(), 0)

    def test_rating_above_category_max(self):
        with self.assertRaises(ValidationError):
            self.submit(self.responses(6, 5, 5))
        self.assertEqual(ReviewInstance.objects.count(), 0)

    def test_unavailable_max_rating_falls_back_to_five(self):
        ReviewCategory.objects.filter(id=self.drains.id).update(max_rating=None)
        result = self.submit(self.responses(5, 5, 5))
        self.assertEqual(result.summary.max_possible_score, 15)
        self.assertEqual(result.summary.percentage, 100.0)

    @patch('reviews.services.notify_managers_of_review')
    def test_enqueue_failure_does_not_fail_submission(self, mock_task):
        mock_task.delay.side_effect = RuntimeError("broker down")
        with self.captureOnCommitCallbacks(execute=True):
            result = self.submit(self.responses(1, 1, 1))
        self.assertTrue(ReviewInstance.objects.filter(id=result.instance.id, status='completed').exists())

    @patch('reviews.services.NotificationDecision.decide', side_effect=KeyError('title'))
    def test_alert_build_failure_does_not_fail_submission(self, _decide):
        result = self.submit(self.responses(1, 1, 1))
        self.assertIsNone(result.alert)
        self.assertEqual(result.summary.total_score, 3)

    @patch('reviews.services.notify_managers_of_review')
    def test_clean_first_submission_sends_nothing(self, mock_task):
        with self.captureOnCommitCallbacks(execute=True):
            self.submit(self.responses(5, 5, 4))
        mock_task.delay.assert_not_called()

    def test_workflow_completion_method_recorded(self):
        result = self.submit(self.responses(5, 5, 5), completion_method='workflow')
        self.assertEqual(result.instance.completion_method, 'workflow')


class InstanceResolverRaceTests(ReviewFixturesMixin, TestCase):
    def test_concurrent_create_reuses_winner(self):
        winner = ReviewInstance.objects.create(
            template=self.template, employee=self.cook, date=T0.date(), shift_type='opening',
        )

        class StaleReadResolver(InstanceResolver):
            """First lookup misses the row another request just inserted."""
            reads = 0

            def _lookup(self, *args):
                self.reads += 1
                qs = super()._lookup(*args)
                return qs.none() if self.reads == 1 else qs

        resolver = StaleReadResolver(UpdateWindowController(ReviewEngineConfig()))
        with transaction.atomic():
            instance, created = resolver.resolve(self.template, self.cook, T0.date(), 'opening', now=T0)

        self.assertFalse(created)
        self.assertEqual(instance.id, winner.id)
        self.assertEqual(ReviewInstance.objects.count(), 1)


class ReviewUpdateRecordTests(ReviewFixturesMixin, TestCase):
    def test_records_are_append_only(self):
        service = ReviewSubmissionService(ReviewEngineConfig())
        for minutes in (0, 5):
            service.submit_review(
                template_id=self.template.id,
                employee_id=self.cook.id,
                date=T0.date(),
                shift_type='opening',
                responses=self.responses(3, categories=[self.stations]),
                actor=self.cook,
                now=T0 + timedelta(minutes=minutes),
            )

        record = ReviewUpdateRecord.objects.get()
        record.reason = 'rewritten'
        with self.assertRaises(DjangoValidationError):
            record.save()
        with self.assertRaises(DjangoValidationError):
            record.delete()
        with self.assertRaises(DjangoValidationError):
            ReviewUpdateRecord.objects.all().delete()
        self.assertEqual(ReviewUpdateRecord.objects.count(), 1)

    def correct_drains(self, actor, now):
        ReviewSubmissionService(ReviewEngineConfig()).submit_review(
            template_id=self.template.id,
            employee_id=self.cook.id,
            date=T0.date(),
            shift_type='opening',
            responses=self.responses(3, categories=[self.drains]),
            actor=actor,
            now=now,
        )

    def test_deleting_employee_keeps_review_history(self):
        self.correct_drains(self.cook, T0)
        self.correct_drains(self.cook, T0 + timedelta(minutes=5))

        with self.assertRaises(ProtectedError):
            self.cook.delete()
        self.assertEqual(ReviewInstance.objects.filter(employee=self.cook).count(), 1)
        self.assertEqual(ReviewResponse.objects.count(), 1)
        self.assertEqual(ReviewUpdateRecord.objects.count(), 1)

    def test_deleting_correcting_manager_keeps_attribution(self):
        self.correct_drains(self.cook, T0)
        self.correct_drains(self.manager, T0 + timedelta(minutes=5))

        with self.assertRaises(ProtectedError):
            self.manager.delete()
        self.assertEqual(ReviewUpdateRecord.objects.get().updated_by_id, self.manager.id)
