from types import SimpleNamespace
import uuid

from django.test import SimpleTestCase

from reviews.config import ReviewEngineConfig
from reviews.services import NotificationDecision, ScoreSummary, ScoringAggregator


class ScoringAggregatorTests(SimpleTestCase):
    def setUp(self):
        self.aggregator = ScoringAggregator(ReviewEngineConfig())

    def test_percentage_over_full_response_set(self):
        summary = self.aggregator.aggregate([(4, 5), (5, 5), (1, 5)])
        self.assertEqual(summary.total_score, 10)
        self.assertEqual(summary.max_possible_score, 15)
        self.assertAlmostEqual(summary.percentage, 66.6667, places=3)
        self.assertTrue(summary.has_low_rating)
        self.assertTrue(summary.requires_manager_followup)

    def test_empty_set_scores_zero(self):
        summary = self.aggregator.aggregate([])
        self.assertEqual(summary.max_possible_score, 0)
        self.assertEqual(summary.percentage, 0.0)
        self.assertFalse(summary.has_low_rating)

    def test_missing_rating_counts_zero_and_missing_max_falls_back(self):
        summary = self.aggregator.aggregate([(None, 5), (5, None)])
        self.assertEqual(summary.total_score, 5)
        self.assertEqual(summary.max_possible_score, 10)
        self.assertEqual(summary.percentage, 50.0)

    def test_followup_only_when_low_or_below_threshold(self):
        passing = self.aggregator.aggregate([(5, 5), (4, 5), (5, 5)])
        self.assertAlmostEqual(passing.percentage, 93.333, places=2)
        self.assertFalse(passing.requires_manager_followup)

        exactly_threshold = self.aggregator.aggregate([(17, 20)])
        self.assertEqual(exactly_threshold.percentage, 85.0)
        self.assertFalse(exactly_threshold.requires_manager_followup)

        low_but_high_score = self.aggregator.aggregate([(1, 1)] + [(5, 5)] * 20)
        self.assertGreater(low_but_high_score.percentage, 85)
        self.assertTrue(low_but_high_score.requires_manager_followup)

    def test_template_threshold_override(self):
        summary = self.aggregator.aggregate([(4, 5)], pass_threshold=90)
        self.assertTrue(summary.requires_manager_followup)


class NotificationDecisionTests(SimpleTestCase):
    def setUp(self):
        self.decision = NotificationDecision(ReviewEngineConfig())
        self.instance = SimpleNamespace(id=uuid.uuid4())
        self.employee = SimpleNamespace(id=uuid.uuid4(), restaurant_id=None, display_name="Test Cook")

    def summary(self, percentage, low=False):
        return ScoreSummary(
            total_score=0,
            max_possible_score=0,
            percentage=percentage,
            has_low_rating=low,
            requires_manager_followup=low or percentage < 85,
        )

    def test_clean_first_submission_is_silent(self):
        self.assertIsNone(self.decision.decide(self.instance, self.summary(95.0), False, self.employee))

    def test_low_rating_first_submission(self):
        alert = self.decision.decide(self.instance, self.summary(66.666, low=True), False, self.employee)
        self.assertEqual(alert.title, "Review Completed: Test Cook")
        self.assertEqual(alert.message, "Review score: 66.7% - Requires manager follow-up")
        self.assertEqual(alert.priority, "high")
        self.assertEqual(alert.metadata['review_instance_id'], str(self.instance.id))
        self.assertTrue(alert.metadata['requires_followup'])
        self.assertEqual(alert.metadata['score'], 66.666)

    def test_clean_correction_is_announced(self):
        alert = self.decision.decide(self.instance, self.summary(95.0), True, self.employee)
        self.assertEqual(alert.title, "Review Updated: Test Cook")
        self.assertEqual(alert.message, "Review score: 95.0% - Review updated after completion")
        self.assertEqual(alert.priority, "normal")
        self.assertTrue(alert.metadata['is_correction'])

    def test_payload_is_json_ready(self):
        alert = self.decision.decide(self.instance, self.summary(70.0), False, self.employee)
        payload = alert.to_payload()
        self.assertEqual(payload['type'], 'REVIEW_UPDATE')
        self.assertEqual(payload['sender_id'], str(self.employee.id))
        self.assertIsNone(payload['restaurant_id'])
