"""
Django Admin configuration for line review models
"""
from django.contrib import admin
from .models import (
    ReviewTemplate, ReviewCategory, ReviewInstance, ReviewResponse, ReviewUpdateRecord
)


class ReviewCategoryInline(admin.TabularInline):
    model = ReviewCategory
    extra = 0
    fields = ('order_index', 'name', 'max_rating', 'required')
    ordering = ['order_index']


class ReviewResponseInline(admin.TabularInline):
    model = ReviewResponse
    extra = 0
    fields = ('category', 'rating', 'notes', 'completed_by', 'completed_at')
    readonly_fields = fields
    can_delete = False


@admin.register(ReviewTemplate)
class ReviewTemplateAdmin(admin.ModelAdmin):
    list_display = (
        'name', 'department', 'shift_type', 'trigger_condition',
        'restaurant', 'is_active', 'category_count'
    )
    list_filter = ('department', 'shift_type', 'trigger_condition', 'is_active')
    search_fields = ('name', 'description')
    readonly_fields = ('id', 'created_at', 'updated_at')
    inlines = [ReviewCategoryInline]

    fieldsets = (
        ('Basic Information', {
            'fields': ('name', 'description', 'restaurant')
        }),
        ('Scope', {
            'fields': ('department', 'shift_type', 'trigger_condition', 'is_active')
        }),
        ('Overrides', {
            'fields': ('time_limit_hours', 'pass_threshold'),
            'classes': ('collapse',)
        }),
        ('Metadata', {
            'fields': ('id', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        })
    )

    def category_count(self, obj):
        return obj.categories.count()
    category_count.short_description = 'Categories'


@admin.register(ReviewInstance)
class ReviewInstanceAdmin(admin.ModelAdmin):
    list_display = (
        'template', 'employee', 'date', 'shift_type', 'status',
        'percentage_display', 'has_low_rating', 'requires_manager_followup', 'locked_at'
    )
    list_filter = ('status', 'shift_type', 'requires_manager_followup', 'has_low_rating', 'date')
    search_fields = ('employee__email', 'employee__first_name', 'employee__last_name', 'template__name')
    readonly_fields = (
        'id', 'total_score', 'max_possible_score', 'percentage', 'has_low_rating',
        'requires_manager_followup', 'created_at', 'updated_at'
    )
    date_hierarchy = 'date'
    inlines = [ReviewResponseInline]

    def percentage_display(self, obj):
        return f"{obj.percentage:.1f}%"
    percentage_display.short_description = 'Score'


@admin.register(ReviewUpdateRecord)
class ReviewUpdateRecordAdmin(admin.ModelAdmin):
    list_display = ('response', 'updated_by', 'update_type', 'manager_override', 'created_at')
    list_filter = ('update_type', 'manager_override', 'created_at')
    search_fields = ('updated_by__email', 'reason')
    readonly_fields = (
        'id', 'response', 'updated_by', 'update_type', 'previous_value',
        'new_value', 'manager_override', 'reason', 'created_at'
    )

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
