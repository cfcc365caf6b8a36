"""
Business logic for line reviews.

A submission runs inside one transaction: the instance is resolved (created on
first submission) and its row locked, the update window is checked, every
response is upserted through the audit recorder, and the aggregate is
recomputed from all persisted rows. The manager alert is handed to Celery once
the transaction commits.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple
import logging

from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from accounts.models import CustomUser
from core.exceptions import (
    EmployeeNotFound,
    ManagerOverrideNotPermitted,
    OverrideReasonRequired,
    ReviewTemplateNotFound,
    ReviewWindowExpired,
    UnknownReviewCategory,
)
from core.timezone_utils import restaurant_today
from notifications.tasks import notify_managers_of_review

from .config import BLOCK, REJECT, ReviewEngineConfig
from .models import (
    ReviewCategory, ReviewInstance, ReviewResponse, ReviewTemplate, ReviewUpdateRecord
)

logger = logging.getLogger(__name__)


class CatalogProvider:
    """Read-only access to review templates and their categories."""

    def get_template(self, template_id) -> ReviewTemplate:
        template = (
            ReviewTemplate.objects.filter(id=template_id)
            .prefetch_related('categories')
            .first()
        )
        if template is None:
            raise ReviewTemplateNotFound()
        return template

    def find_template_by_name(self, name, restaurant=None) -> Optional[ReviewTemplate]:
        """Active template by name, preferring the restaurant's own over a shared one."""
        qs = self._visible_to(ReviewTemplate.objects.filter(name=name, is_active=True), restaurant)
        if restaurant is not None:
            own = qs.filter(restaurant=restaurant).first()
            if own is not None:
                return own
        return qs.order_by('created_at').first()

    def active_templates(self, restaurant=None):
        qs = ReviewTemplate.objects.filter(is_active=True).prefetch_related('categories')
        return self._visible_to(qs, restaurant).order_by('name')

    def _visible_to(self, qs, restaurant):
        """Shared templates, plus the restaurant's own when there is one."""
        if restaurant is None:
            return qs.filter(restaurant__isnull=True)
        return qs.filter(Q(restaurant=restaurant) | Q(restaurant__isnull=True))

    def categories_by_id(self, template) -> Dict[str, ReviewCategory]:
        return {str(category.id): category for category in template.categories.all()}


class UpdateWindowController:
    """Decides whether an existing instance may still be changed."""

    OPEN = 'OPEN'
    EXPIRED = 'EXPIRED'

    def __init__(self, config: ReviewEngineConfig):
        self.config = config

    def lock_deadline(self, template, created_at):
        return created_at + self.config.window_for(template)

    def state(self, instance, now=None) -> str:
        now = now or timezone.now()
        if instance.locked_at is None or now < instance.locked_at:
            return self.OPEN
        return self.EXPIRED

    def can_update(self, instance, now=None, manager_override=False) -> bool:
        return manager_override or self.state(instance, now) == self.OPEN

    def check(self, instance, now=None, manager_override=False, override_reason='') -> str:
        state = self.state(instance, now)
        if state == self.OPEN:
            return state

        if not manager_override:
            logger.info(
                "Review update rejected, window expired",
                extra={"review_instance_id": str(instance.id), "locked_at": str(instance.locked_at)},
            )
            raise ReviewWindowExpired()

        if self.config.require_override_reason and not (override_reason or '').strip():
            raise OverrideReasonRequired()

        logger.info(
            "Manager override on expired review",
            extra={"review_instance_id": str(instance.id), "locked_at": str(instance.locked_at)},
        )
        return state


class InstanceResolver:
    """Finds or creates the single instance for (template, employee, date, shift)."""

    def __init__(self, window: UpdateWindowController):
        self.window = window

    def _lookup(self, template, employee, date, shift_type):
        return ReviewInstance.objects.filter(
            template=template, employee=employee, date=date, shift_type=shift_type
        )

    def find(self, template, employee, date, shift_type) -> Optional[ReviewInstance]:
        return self._lookup(template, employee, date, shift_type).first()

    def resolve(self, template, employee, date, shift_type, completion_method='manual', now=None) -> Tuple[ReviewInstance, bool]:
        """
        Must run inside ``transaction.atomic``; the returned row is locked until commit.
        """
        now = now or timezone.now()
        existing = self._lookup(template, employee, date, shift_type).select_for_update().first()
        if existing is not None:
            return existing, False

        try:
            with transaction.atomic():
                instance = ReviewInstance.objects.create(
                    template=template,
                    employee=employee,
                    date=date,
                    shift_type=shift_type,
                    status='pending',
                    completion_method=completion_method,
                    locked_at=self.window.lock_deadline(template, now),
                )
        except IntegrityError:
            # Another request created the row between our read and insert
            logger.info(
                "Review instance created concurrently, using existing row",
                extra={"template_id": str(template.id), "employee_id": str(employee.id), "date": str(date)},
            )
            return self._lookup(template, employee, date, shift_type).select_for_update().get(), False

        logger.info(
            "Review instance created",
            extra={"review_instance_id": str(instance.id), "locked_at": str(instance.locked_at)},
        )
        return instance, True


@dataclass(frozen=True)
class ScoreSummary:
    total_score: int
    max_possible_score: int
    percentage: float
    has_low_rating: bool
    requires_manager_followup: bool

    def as_dict(self) -> Dict[str, Any]:
        return {
            'total_score': self.total_score,
            'max_possible_score': self.max_possible_score,
            'percentage': self.percentage,
            'has_low_rating': self.has_low_rating,
            'requires_manager_followup': self.requires_manager_followup,
        }


class ScoringAggregator:
    """Pure scoring of an instance's full response set."""

    def __init__(self, config: ReviewEngineConfig):
        self.config = config

    def aggregate(self, ratings: Iterable[Tuple[Optional[int], Optional[int]]], pass_threshold=None) -> ScoreSummary:
        total = 0
        maximum = 0
        has_low_rating = False
        for rating, max_rating in ratings:
            maximum += max_rating or self.config.default_max_rating
            if rating is None:
                continue
            total += rating
            if rating == self.config.low_rating_sentinel:
                has_low_rating = True

        percentage = (total / maximum) * 100 if maximum > 0 else 0.0
        threshold = self.config.pass_threshold if pass_threshold is None else pass_threshold
        return ScoreSummary(
            total_score=total,
            max_possible_score=maximum,
            percentage=percentage,
            has_low_rating=has_low_rating,
            requires_manager_followup=has_low_rating or percentage < threshold,
        )


class AuditRecorder:
    """Upserts responses; every overwrite of an existing response leaves an update record."""

    def record(self, instance, category, rating, notes='', photos=None, actor=None,
               manager_override=False, reason='', now=None) -> Tuple[ReviewResponse, Optional[ReviewUpdateRecord]]:
        now = now or timezone.now()
        photos = list(photos or [])
        existing = ReviewResponse.objects.filter(instance=instance, category=category).first()

        if existing is None:
            response = ReviewResponse.objects.create(
                instance=instance,
                category=category,
                rating=rating,
                notes=notes,
                photos=photos,
                completed_by=actor,
                completed_at=now,
            )
            return response, None

        update = ReviewUpdateRecord.objects.create(
            response=existing,
            updated_by=actor,
            update_type='response_updated',
            previous_value=existing.snapshot(),
            new_value={'rating': rating, 'notes': notes, 'photos': photos},
            manager_override=manager_override,
            reason=reason or '',
        )

        existing.rating = rating
        existing.notes = notes
        existing.photos = photos
        existing.completed_by = actor
        existing.completed_at = now
        existing.save(update_fields=['rating', 'notes', 'photos', 'completed_by', 'completed_at'])
        return existing, update


@dataclass
class ReviewAlert:
    title: str
    message: str
    priority: str
    metadata: Dict[str, Any]
    sender_id: Optional[str] = None
    restaurant_id: Optional[str] = None
    notification_type: str = 'REVIEW_UPDATE'

    def to_payload(self) -> Dict[str, Any]:
        """JSON-safe form handed to the Celery task."""
        return {
            'title': self.title,
            'message': self.message,
            'type': self.notification_type,
            'priority': self.priority,
            'metadata': self.metadata,
            'sender_id': self.sender_id,
            'restaurant_id': self.restaurant_id,
        }


class NotificationDecision:
    """Decides whether a submission warrants a manager alert and what it says."""

    def __init__(self, config: ReviewEngineConfig):
        self.config = config

    def should_notify(self, summary: ScoreSummary, is_correction: bool) -> bool:
        return is_correction or summary.has_low_rating or summary.requires_manager_followup

    def decide(self, instance, summary: ScoreSummary, is_correction: bool, employee) -> Optional[ReviewAlert]:
        if not self.should_notify(summary, is_correction):
            return None

        name = employee.display_name
        title = f"Review Updated: {name}" if is_correction else f"Review Completed: {name}"
        if summary.requires_manager_followup:
            message = f"Review score: {summary.percentage:.1f}% - Requires manager follow-up"
        else:
            message = f"Review score: {summary.percentage:.1f}% - Review updated after completion"

        return ReviewAlert(
            title=title,
            message=message,
            priority='high' if summary.has_low_rating else 'normal',
            metadata={
                'review_instance_id': str(instance.id),
                'score': summary.percentage,
                'requires_followup': summary.requires_manager_followup,
                'is_correction': is_correction,
            },
            sender_id=str(employee.id),
            restaurant_id=str(employee.restaurant_id) if employee.restaurant_id else None,
        )


@dataclass
class WorkflowGateResult:
    workflow_allowed: bool
    incomplete_reviews: List[str] = field(default_factory=list)
    message: str = ''

    def as_dict(self) -> Dict[str, Any]:
        return {
            'workflow_allowed': self.workflow_allowed,
            'incomplete_reviews': list(self.incomplete_reviews),
            'message': self.message,
        }


class WorkflowGate:
    """Blocks dependent shift workflows until today's required reviews are completed."""

    def __init__(self, config: ReviewEngineConfig, catalog: CatalogProvider = None):
        self.config = config
        self.catalog = catalog or CatalogProvider()

    def check(self, employee, department, shift, on_date=None) -> WorkflowGateResult:
        required = self.config.required_reviews(department, shift)
        today = on_date or restaurant_today(employee.restaurant)

        incomplete = []
        for name in required:
            template = self.catalog.find_template_by_name(name, employee.restaurant)
            if template is None:
                logger.warning(
                    "Required review template not found",
                    extra={"template_name": name, "policy": self.config.missing_template_policy},
                )
                if self.config.missing_template_policy == BLOCK:
                    incomplete.append(name)
                continue

            completed = ReviewInstance.objects.filter(
                template=template,
                employee=employee,
                date=today,
                status='completed',
            ).exists()
            if not completed:
                incomplete.append(name)

        if incomplete:
            message = f"Please complete required reviews: {', '.join(incomplete)}"
        else:
            message = "All required reviews completed - workflow access granted"

        return WorkflowGateResult(
            workflow_allowed=not incomplete,
            incomplete_reviews=incomplete,
            message=message,
        )


class ReviewAccessService:
    """
    Unlocks the review screens for a signed-in user.

    The caller proves presence with their own PIN (or password when they have no
    PIN); repeated failures lock the account like any other PIN check.
    """

    def __init__(self, config: ReviewEngineConfig):
        self.config = config

    def validate_password(self, user, password) -> bool:
        if user is None or not user.is_authenticated or not user.is_active:
            return False
        if not self.config.role_can_access(user.role):
            logger.info("Review access denied for role", extra={"user_id": str(user.id), "role": user.role})
            return False
        if not password:
            return False

        granted = user.check_secret(password)
        if granted:
            logger.info("Review access granted", extra={"user_id": str(user.id)})
        else:
            logger.warning(
                "Review access denied",
                extra={"user_id": str(user.id), "locked": user.is_account_locked()},
            )
        return granted


@dataclass
class SubmissionResult:
    instance: ReviewInstance
    summary: ScoreSummary
    is_correction: bool
    update_records: List[ReviewUpdateRecord] = field(default_factory=list)
    alert: Optional[ReviewAlert] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            'review_instance_id': str(self.instance.id),
            'total_score': self.summary.total_score,
            'max_possible_score': self.summary.max_possible_score,
            'percentage': self.summary.percentage,
            'requires_manager_followup': self.summary.requires_manager_followup,
            'has_low_rating': self.summary.has_low_rating,
            'is_correction': self.is_correction,
        }


class ReviewSubmissionService:
    """Entry point for the review API: status preview, submission, today listing, follow-up."""

    def __init__(self, config: ReviewEngineConfig = None):
        self.config = config or ReviewEngineConfig.from_settings()
        self.catalog = CatalogProvider()
        self.window = UpdateWindowController(self.config)
        self.resolver = InstanceResolver(self.window)
        self.aggregator = ScoringAggregator(self.config)
        self.audit = AuditRecorder()
        self.decision = NotificationDecision(self.config)

    def get_employee(self, employee_id) -> CustomUser:
        employee = CustomUser.objects.select_related('restaurant').filter(id=employee_id).first()
        if employee is None:
            raise EmployeeNotFound()
        return employee

    def ensure_can_act_for(self, actor, employee):
        if actor.id != employee.id and not actor.is_admin_role():
            raise PermissionDenied("You can only work on your own reviews.")

    def get_review_status(self, template_id, employee_id, date, shift_type, actor=None, now=None) -> Dict[str, Any]:
        template = self.catalog.get_template(template_id)
        employee = self.get_employee(employee_id)
        if actor is not None:
            self.ensure_can_act_for(actor, employee)

        instance = self.resolver.find(template, employee, date, shift_type)
        return {
            'review_instance': instance,
            'template': template,
            'can_update': instance is None or self.window.can_update(instance, now),
        }

    def _validate_responses(self, template, responses) -> List[Tuple[ReviewCategory, Dict[str, Any]]]:
        categories = self.catalog.categories_by_id(template)
        accepted = []
        seen = set()
        errors = []
        for item in responses:
            category_id = str(item['category_id'])
            category = categories.get(category_id)
            if category is None:
                if self.config.missing_category_policy == REJECT:
                    raise UnknownReviewCategory(f"Category {category_id} is not part of template {template.name}.")
                logger.warning(
                    "Skipping response for unknown category",
                    extra={"template_id": str(template.id), "category_id": category_id},
                )
                continue

            if category_id in seen:
                errors.append(f"Category {category.name} appears more than once.")
                continue
            seen.add(category_id)

            rating = item.get('rating')
            max_rating = self.config.max_rating_for(category)
            if rating is not None and not 1 <= rating <= max_rating:
                errors.append(f"Rating for {category.name} must be between 1 and {max_rating}.")
                continue
            accepted.append((category, item))

        if errors:
            raise ValidationError({'responses': errors})
        return accepted

    def submit_review(self, *, template_id, employee_id, date, shift_type, responses, actor,
                      manager_override=False, override_reason='', completion_method='manual',
                      now=None) -> SubmissionResult:
        now = now or timezone.now()
        template = self.catalog.get_template(template_id)
        employee = self.get_employee(employee_id)
        self.ensure_can_act_for(actor, employee)

        if manager_override and not actor.is_admin_role():
            raise ManagerOverrideNotPermitted()

        accepted = self._validate_responses(template, responses)

        with transaction.atomic():
            instance, created = self.resolver.resolve(
                template, employee, date, shift_type, completion_method=completion_method, now=now
            )
            if not created:
                self.window.check(
                    instance, now=now, manager_override=manager_override, override_reason=override_reason
                )

            update_records = []
            for category, item in accepted:
                _, update = self.audit.record(
                    instance,
                    category,
                    item.get('rating'),
                    notes=item.get('notes') or '',
                    photos=item.get('photos') or [],
                    actor=actor,
                    manager_override=manager_override,
                    reason=override_reason,
                    now=now,
                )
                if update is not None:
                    update_records.append(update)

            summary = self.recompute(instance, template)
            is_correction = not created
            alert = self.build_alert(instance, summary, is_correction, employee)
            if alert is not None:
                transaction.on_commit(lambda: self.dispatch_alert(alert))

        logger.info(
            "Review submitted",
            extra={
                "review_instance_id": str(instance.id),
                "employee_id": str(employee.id),
                "percentage": summary.percentage,
                "is_correction": is_correction,
                "updates": len(update_records),
            },
        )
        return SubmissionResult(
            instance=instance,
            summary=summary,
            is_correction=is_correction,
            update_records=update_records,
            alert=alert,
        )

    def recompute(self, instance, template=None) -> ScoreSummary:
        """Rebuild the derived fields from every persisted response of the instance."""
        template = template or instance.template
        rows = ReviewResponse.objects.filter(instance=instance).select_related('category')
        summary = self.aggregator.aggregate(
            ((row.rating, row.category.max_rating) for row in rows),
            pass_threshold=self.config.threshold_for(template),
        )

        instance.total_score = summary.total_score
        instance.max_possible_score = summary.max_possible_score
        instance.percentage = summary.percentage
        instance.has_low_rating = summary.has_low_rating
        instance.requires_manager_followup = summary.requires_manager_followup
        instance.status = 'completed'
        instance.save(update_fields=[
            'total_score', 'max_possible_score', 'percentage', 'has_low_rating',
            'requires_manager_followup', 'status', 'updated_at',
        ])
        return summary

    def build_alert(self, instance, summary, is_correction, employee) -> Optional[ReviewAlert]:
        try:
            return self.decision.decide(instance, summary, is_correction, employee)
        except Exception:
            logger.exception("Failed to build review alert", extra={"review_instance_id": str(instance.id)})
            return None

    def dispatch_alert(self, alert: ReviewAlert):
        try:
            notify_managers_of_review.delay(alert.to_payload())
        except Exception:
            logger.exception("Failed to enqueue review alert", extra={"metadata": alert.metadata})

    def list_today(self, employee, on_date=None) -> List[Dict[str, Any]]:
        """Every active template with the employee's instance for today, if any."""
        today = on_date or restaurant_today(employee.restaurant)
        templates = list(self.catalog.active_templates(employee.restaurant))
        instances = ReviewInstance.objects.filter(
            employee=employee, date=today, template__in=templates
        ).select_related('template').order_by('created_at')

        by_template = {}
        for instance in instances:
            current = by_template.get(instance.template_id)
            # Prefer the instance for the template's own shift
            if current is None or (
                current.shift_type != instance.template.shift_type
                and instance.shift_type == instance.template.shift_type
            ):
                by_template[instance.template_id] = instance

        return [
            {
                'template': template,
                'review_instance': by_template.get(template.id),
                'completed': by_template.get(template.id) is not None
                and by_template[template.id].status == 'completed',
            }
            for template in templates
        ]

    def acknowledge_followup(self, instance_id, manager, now=None) -> ReviewInstance:
        with transaction.atomic():
            instance = ReviewInstance.objects.select_for_update().filter(id=instance_id).first()
            if instance is None:
                raise NotFound("Review instance not found.")
            if instance.manager_reviewed_at is None:
                instance.manager_reviewed_by = manager
                instance.manager_reviewed_at = now or timezone.now()
                instance.save(update_fields=['manager_reviewed_by', 'manager_reviewed_at', 'updated_at'])
                logger.info(
                    "Review follow-up acknowledged",
                    extra={"review_instance_id": str(instance.id), "manager_id": str(manager.id)},
                )
        return instance

    def update_history(self, instance_id):
        return (
            ReviewUpdateRecord.objects.filter(response__instance_id=instance_id)
            .select_related('response__category', 'updated_by')
            .order_by('created_at')
        )
