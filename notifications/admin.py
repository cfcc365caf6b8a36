from django.contrib import admin
from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = [
        'id', 'recipient_name', 'sender_name', 'title', 'notification_type',
        'priority', 'is_read_display', 'created_at'
    ]
    list_filter = ['notification_type', 'priority', 'created_at', 'read_at']
    search_fields = ['recipient__email', 'sender__email', 'title', 'message']
    readonly_fields = ['id', 'created_at', 'read_at']
    date_hierarchy = 'created_at'
    ordering = ['-created_at']

    fieldsets = (
        ('Basic Information', {
            'fields': ('recipient', 'sender', 'title', 'message')
        }),
        ('Classification', {
            'fields': ('notification_type', 'priority')
        }),
        ('Metadata', {
            'fields': ('data',)
        }),
        ('Status', {
            'fields': ('read_at', 'created_at'),
            'classes': ('collapse',)
        }),
    )

    def recipient_name(self, obj):
        return obj.recipient.display_name
    recipient_name.short_description = 'Recipient'

    def sender_name(self, obj):
        if obj.sender:
            return obj.sender.display_name
        return 'System'
    sender_name.short_description = 'Sender'

    def is_read_display(self, obj):
        return obj.read_at is not None
    is_read_display.boolean = True
    is_read_display.short_description = 'Read'
