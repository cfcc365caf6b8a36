"""
URL configuration for the reviews app
"""
from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

app_name = 'reviews'

router = DefaultRouter()
router.register(r'templates', views.ReviewTemplateViewSet, basename='review-template')
router.register(r'instances', views.ReviewInstanceViewSet, basename='review-instance')

urlpatterns = [
    path('access/', views.ReviewAccessAPIView.as_view(), name='review-access'),
    path('status/', views.ReviewStatusAPIView.as_view(), name='review-status'),
    path('submit/', views.ReviewSubmitAPIView.as_view(), name='review-submit'),
    path('workflow-check/', views.WorkflowCheckAPIView.as_view(), name='workflow-check'),
    path('today/', views.TodayReviewsAPIView.as_view(), name='review-today'),
    path('', include(router.urls)),
]
