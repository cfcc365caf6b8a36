from rest_framework import serializers

from .models import (
    SHIFT_TYPE_CHOICES, ReviewCategory, ReviewInstance, ReviewResponse, ReviewTemplate, ReviewUpdateRecord
)


class ReviewCategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = ReviewCategory
        fields = ['id', 'name', 'description', 'max_rating', 'order_index', 'required']


class ReviewTemplateSerializer(serializers.ModelSerializer):
    categories = ReviewCategorySerializer(many=True, read_only=True)

    class Meta:
        model = ReviewTemplate
        fields = [
            'id', 'restaurant', 'name', 'description', 'department', 'shift_type',
            'trigger_condition', 'time_limit_hours', 'pass_threshold', 'is_active',
            'categories', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class ReviewResponseSerializer(serializers.ModelSerializer):
    category_name = serializers.CharField(source='category.name', read_only=True)

    class Meta:
        model = ReviewResponse
        fields = [
            'id', 'category', 'category_name', 'rating', 'notes', 'photos',
            'completed_by', 'completed_at',
        ]
        read_only_fields = fields


class ReviewInstanceSerializer(serializers.ModelSerializer):
    template_name = serializers.CharField(source='template.name', read_only=True)
    employee_name = serializers.CharField(source='employee.display_name', read_only=True)
    responses = ReviewResponseSerializer(many=True, read_only=True)

    class Meta:
        model = ReviewInstance
        fields = [
            'id', 'template', 'template_name', 'employee', 'employee_name', 'date',
            'shift_type', 'status', 'completion_method', 'locked_at', 'total_score',
            'max_possible_score', 'percentage', 'has_low_rating',
            'requires_manager_followup', 'manager_reviewed_by', 'manager_reviewed_at',
            'responses', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class ReviewUpdateRecordSerializer(serializers.ModelSerializer):
    category_name = serializers.CharField(source='response.category.name', read_only=True)
    updated_by_name = serializers.SerializerMethodField()

    class Meta:
        model = ReviewUpdateRecord
        fields = [
            'id', 'response', 'category_name', 'updated_by', 'updated_by_name',
            'update_type', 'previous_value', 'new_value', 'manager_override',
            'reason', 'created_at',
        ]
        read_only_fields = fields

    def get_updated_by_name(self, obj):
        return obj.updated_by.display_name if obj.updated_by else None


class ReviewAccessSerializer(serializers.Serializer):
    password = serializers.CharField(allow_blank=True, trim_whitespace=False)


class ReviewStatusQuerySerializer(serializers.Serializer):
    template_id = serializers.UUIDField()
    employee_id = serializers.UUIDField()
    date = serializers.DateField()
    shift_type = serializers.ChoiceField(choices=SHIFT_TYPE_CHOICES)


class ReviewResponseInputSerializer(serializers.Serializer):
    category_id = serializers.UUIDField()
    rating = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    photos = serializers.ListField(child=serializers.CharField(), required=False, default=list)


class ReviewSubmissionSerializer(ReviewStatusQuerySerializer):
    responses = ReviewResponseInputSerializer(many=True)
    manager_override = serializers.BooleanField(required=False, default=False)
    override_reason = serializers.CharField(required=False, allow_blank=True, default='')
    completion_method = serializers.ChoiceField(
        choices=ReviewInstance.COMPLETION_METHOD_CHOICES, required=False, default='manual'
    )


class WorkflowCheckSerializer(serializers.Serializer):
    employee_id = serializers.UUIDField()
    department = serializers.CharField()
    shift = serializers.CharField()


class TodayReviewSerializer(serializers.Serializer):
    template = ReviewTemplateSerializer(read_only=True)
    review_instance = ReviewInstanceSerializer(read_only=True, allow_null=True)
    completed = serializers.BooleanField(read_only=True)
