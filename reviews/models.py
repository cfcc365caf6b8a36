"""
Line review models: a catalog of templates and categories, the per-shift
review instances staff fill in, their category responses, and the
append-only trail of corrections.
"""
from django.db import models
from django.conf import settings
from django.core.exceptions import ValidationError
from django.utils import timezone
import uuid


DEPARTMENT_CHOICES = (
    ('BOH', 'Back of House'),
    ('FOH', 'Front of House'),
)

SHIFT_TYPE_CHOICES = (
    ('opening', 'Opening'),
    ('closing', 'Closing'),
    ('transition', 'Transition'),
    ('prep', 'Prep'),
)


class ReviewTemplate(models.Model):
    """A named review form for one department and shift."""
    TRIGGER_CHOICES = (
        ('required_before_workflow', 'Required before workflow'),
        ('manual_access', 'Manual access'),
        ('manual_access_clock_in', 'Manual access at clock-in'),
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    restaurant = models.ForeignKey(
        'accounts.Restaurant',
        on_delete=models.CASCADE,
        related_name='review_templates',
        null=True,
        blank=True,
    )
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default='')
    department = models.CharField(max_length=10, choices=DEPARTMENT_CHOICES)
    shift_type = models.CharField(max_length=20, choices=SHIFT_TYPE_CHOICES)
    trigger_condition = models.CharField(max_length=40, choices=TRIGGER_CHOICES, default='manual_access')

    # Per-template overrides of the engine defaults
    time_limit_hours = models.PositiveSmallIntegerField(null=True, blank=True)
    pass_threshold = models.FloatField(null=True, blank=True)

    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'review_templates'
        ordering = ['name']
        constraints = [
            models.UniqueConstraint(fields=['restaurant', 'name'], name='unique_review_template_name'),
        ]
        indexes = [
            models.Index(fields=['department', 'shift_type'], name='review_tpl_dept_shift_idx'),
        ]

    def __str__(self):
        return f"{self.name} ({self.department}/{self.shift_type})"


class ReviewCategory(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    template = models.ForeignKey(ReviewTemplate, on_delete=models.CASCADE, related_name='categories')
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default='')
    # null means the maximum is unavailable; scoring falls back to the engine default
    max_rating = models.PositiveSmallIntegerField(null=True, blank=True, default=5)
    order_index = models.PositiveIntegerField(default=0)
    required = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'review_categories'
        ordering = ['template', 'order_index']
        verbose_name_plural = 'review categories'

    def __str__(self):
        return f"{self.template.name} - {self.name}"


class ReviewInstance(models.Model):
    """One employee's review of one template for one shift on one date."""
    STATUS_CHOICES = (
        ('pending', 'Pending'),
        ('completed', 'Completed'),
    )
    COMPLETION_METHOD_CHOICES = (
        ('manual', 'Manual'),
        ('workflow', 'Workflow'),
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    template = models.ForeignKey(ReviewTemplate, on_delete=models.PROTECT, related_name='instances')
    employee = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='review_instances',
    )
    date = models.DateField()
    shift_type = models.CharField(max_length=20, choices=SHIFT_TYPE_CHOICES)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='pending')
    completion_method = models.CharField(max_length=20, choices=COMPLETION_METHOD_CHOICES, default='manual')
    locked_at = models.DateTimeField(null=True, blank=True)

    # Derived from the response rows on every submission
    total_score = models.PositiveIntegerField(default=0)
    max_possible_score = models.PositiveIntegerField(default=0)
    percentage = models.FloatField(default=0)
    has_low_rating = models.BooleanField(default=False)
    requires_manager_followup = models.BooleanField(default=False)

    manager_reviewed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='acknowledged_reviews',
    )
    manager_reviewed_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'review_instances'
        ordering = ['-date', '-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['template', 'employee', 'date', 'shift_type'],
                name='unique_review_instance_per_shift',
            ),
        ]
        indexes = [
            models.Index(fields=['employee', 'date'], name='review_inst_employee_date_idx'),
            models.Index(fields=['requires_manager_followup', 'manager_reviewed_at'], name='review_inst_followup_idx'),
        ]

    def __str__(self):
        return f"{self.template.name} - {self.employee} - {self.date} ({self.shift_type})"

    @property
    def is_completed(self):
        return self.status == 'completed'


class ReviewResponse(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    instance = models.ForeignKey(ReviewInstance, on_delete=models.PROTECT, related_name='responses')
    category = models.ForeignKey(ReviewCategory, on_delete=models.PROTECT, related_name='responses')
    rating = models.PositiveSmallIntegerField(null=True, blank=True)
    notes = models.TextField(blank=True, default='')
    photos = models.JSONField(default=list, blank=True)
    completed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='completed_review_responses',
    )
    completed_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'review_responses'
        ordering = ['category__order_index']
        constraints = [
            models.UniqueConstraint(fields=['instance', 'category'], name='unique_review_response_per_category'),
        ]

    def __str__(self):
        return f"{self.category.name}: {self.rating}"

    def snapshot(self):
        return {
            'rating': self.rating,
            'notes': self.notes,
            'photos': list(self.photos or []),
        }


class ReviewUpdateRecordQuerySet(models.QuerySet):
    def update(self, **kwargs):
        raise ValidationError("Review update records are append-only.")

    def delete(self):
        raise ValidationError("Review update records are append-only.")


class ReviewUpdateRecord(models.Model):
    """Immutable record of a correction made to an existing response."""
    UPDATE_TYPE_CHOICES = (
        ('response_updated', 'Response updated'),
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    response = models.ForeignKey(ReviewResponse, on_delete=models.PROTECT, related_name='updates')
    updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='review_updates',
    )
    update_type = models.CharField(max_length=30, choices=UPDATE_TYPE_CHOICES, default='response_updated')
    previous_value = models.JSONField(default=dict)
    new_value = models.JSONField(default=dict)
    manager_override = models.BooleanField(default=False)
    reason = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)

    objects = ReviewUpdateRecordQuerySet.as_manager()

    class Meta:
        db_table = 'review_update_records'
        ordering = ['created_at']

    def __str__(self):
        return f"{self.update_type} on {self.response_id} at {self.created_at}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("Review update records are append-only.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Review update records are append-only.")
