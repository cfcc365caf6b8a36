from django.db import models
from django.utils import timezone
import uuid
from accounts.models import CustomUser


class Notification(models.Model):
    NOTIFICATION_TYPES = (
        ('REVIEW_UPDATE', 'Review Update'),
        ('ANNOUNCEMENT', 'Announcement'),
        ('OTHER', 'Other'),
    )
    PRIORITY_CHOICES = (
        ('normal', 'Normal'),
        ('high', 'High'),
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    recipient = models.ForeignKey(CustomUser, on_delete=models.CASCADE, related_name='notifications')
    sender = models.ForeignKey(CustomUser, on_delete=models.SET_NULL, null=True, blank=True, related_name='sent_notifications')
    title = models.CharField(max_length=255)
    message = models.TextField()
    notification_type = models.CharField(max_length=20, choices=NOTIFICATION_TYPES, default='OTHER')
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='normal')
    data = models.JSONField(default=dict, blank=True)
    read_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'notifications'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['recipient', 'read_at'], name='notif_recipient_read_idx'),
            models.Index(fields=['notification_type', 'priority'], name='notif_type_priority_idx'),
        ]

    def __str__(self):
        return f"Notification for {self.recipient.email} - {self.notification_type}"

    @property
    def is_read(self):
        return self.read_at is not None

    def mark_as_read(self):
        self.read_at = timezone.now()
        self.save(update_fields=['read_at'])
