"""
API views for line reviews

Endpoints:
- POST /api/reviews/access/ - Unlock the review screens with the caller's own PIN
- GET /api/reviews/status/ - Existing instance, template and whether it can still change
- POST /api/reviews/submit/ - Submit or correct a review
- POST /api/reviews/workflow-check/ - Whether required reviews block a shift workflow
- GET /api/reviews/today/ - Today's templates merged with the employee's instances
- GET /api/reviews/templates/ - Review catalog
- GET /api/reviews/instances/ - Review instances (own, or the restaurant's for managers)
- GET /api/reviews/instances/{id}/updates/ - Correction trail (managers)
- POST /api/reviews/instances/{id}/acknowledge/ - Manager follow-up acknowledgment
"""
from django.db.models import Q
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.permissions import IsAdminOrManager

from .config import ReviewEngineConfig
from .models import ReviewInstance, ReviewTemplate
from .serializers import (
    ReviewAccessSerializer,
    ReviewInstanceSerializer,
    ReviewStatusQuerySerializer,
    ReviewSubmissionSerializer,
    ReviewTemplateSerializer,
    ReviewUpdateRecordSerializer,
    TodayReviewSerializer,
    WorkflowCheckSerializer,
)
from .services import ReviewAccessService, ReviewSubmissionService, WorkflowGate


def get_review_service():
    return ReviewSubmissionService(ReviewEngineConfig.from_settings())


class ReviewAccessAPIView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = ReviewAccessSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        service = ReviewAccessService(ReviewEngineConfig.from_settings())
        granted = service.validate_password(request.user, serializer.validated_data['password'])
        return Response({'granted': granted})


class ReviewStatusAPIView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        query = ReviewStatusQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        data = query.validated_data

        result = get_review_service().get_review_status(
            template_id=data['template_id'],
            employee_id=data['employee_id'],
            date=data['date'],
            shift_type=data['shift_type'],
            actor=request.user,
        )
        instance = result['review_instance']
        return Response({
            'review_instance': ReviewInstanceSerializer(instance).data if instance else None,
            'template': ReviewTemplateSerializer(result['template']).data,
            'can_update': result['can_update'],
        })


class ReviewSubmitAPIView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = ReviewSubmissionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = get_review_service().submit_review(
            template_id=data['template_id'],
            employee_id=data['employee_id'],
            date=data['date'],
            shift_type=data['shift_type'],
            responses=data['responses'],
            actor=request.user,
            manager_override=data['manager_override'],
            override_reason=data['override_reason'],
            completion_method=data['completion_method'],
        )
        return Response({'success': True, **result.as_dict()}, status=status.HTTP_200_OK)


class WorkflowCheckAPIView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = WorkflowCheckSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        service = get_review_service()
        employee = service.get_employee(data['employee_id'])
        service.ensure_can_act_for(request.user, employee)

        result = WorkflowGate(service.config, service.catalog).check(
            employee, data['department'], data['shift']
        )
        return Response(result.as_dict())


class TodayReviewsAPIView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        service = get_review_service()
        employee_id = request.query_params.get('employee_id')
        employee = service.get_employee(employee_id) if employee_id else request.user
        service.ensure_can_act_for(request.user, employee)

        rows = service.list_today(employee)
        return Response(TodayReviewSerializer(rows, many=True).data)


class ReviewTemplateViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = ReviewTemplateSerializer
    permission_classes = [permissions.IsAuthenticated]
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ['department', 'shift_type', 'trigger_condition', 'is_active']

    def get_queryset(self):
        qs = ReviewTemplate.objects.prefetch_related('categories')
        restaurant = self.request.user.restaurant
        if restaurant is not None:
            qs = qs.filter(Q(restaurant=restaurant) | Q(restaurant__isnull=True))
        elif not self.request.user.is_admin_role():
            qs = qs.filter(restaurant__isnull=True)
        return qs.order_by('name')


class ReviewInstanceViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = ReviewInstanceSerializer
    permission_classes = [permissions.IsAuthenticated]
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ['status', 'shift_type', 'date', 'employee', 'template', 'requires_manager_followup']

    def get_queryset(self):
        user = self.request.user
        qs = ReviewInstance.objects.select_related('template', 'employee').prefetch_related('responses__category')
        if not user.is_admin_role():
            return qs.filter(employee=user)
        if user.restaurant_id:
            qs = qs.filter(employee__restaurant_id=user.restaurant_id)
        return qs

    @action(detail=True, methods=['get'], permission_classes=[IsAdminOrManager])
    def updates(self, request, pk=None):
        """Correction trail of one instance"""
        instance = self.get_object()
        records = get_review_service().update_history(instance.id)
        return Response(ReviewUpdateRecordSerializer(records, many=True).data)

    @action(detail=True, methods=['post'], permission_classes=[IsAdminOrManager])
    def acknowledge(self, request, pk=None):
        """Mark a flagged review as followed up by a manager"""
        instance = self.get_object()
        instance = get_review_service().acknowledge_followup(instance.id, request.user)
        return Response({
            'success': True,
            'review_instance': ReviewInstanceSerializer(instance).data,
        })
