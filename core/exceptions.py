"""
Custom exceptions for LineCheck
"""
import logging

from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class ReviewWindowExpired(APIException):
    status_code = 403
    default_detail = 'Review update window has expired. Contact a manager to make changes.'
    default_code = 'review_window_expired'


class ManagerOverrideNotPermitted(APIException):
    status_code = 403
    default_detail = 'Only managers can override an expired review window.'
    default_code = 'manager_override_not_permitted'


class OverrideReasonRequired(APIException):
    status_code = 400
    default_detail = 'A reason is required when overriding an expired review window.'
    default_code = 'override_reason_required'


class ReviewTemplateNotFound(APIException):
    status_code = 404
    default_detail = 'Review template not found.'
    default_code = 'review_template_not_found'


class EmployeeNotFound(APIException):
    status_code = 404
    default_detail = 'Employee not found.'
    default_code = 'employee_not_found'


class UnknownReviewCategory(APIException):
    status_code = 400
    default_detail = 'Response references a category that is not part of this template.'
    default_code = 'unknown_review_category'


def api_exception_handler(exc, context):
    """
    Wraps DRF's handler so every error body carries ``success: false`` and
    unexpected failures come back as ``{error, details}`` instead of an HTML 500.
    """
    response = exception_handler(exc, context)
    if response is not None:
        if isinstance(response.data, dict):
            response.data.setdefault('success', False)
            code = getattr(exc, 'default_code', None)
            if code and 'code' not in response.data:
                response.data['code'] = code
        return response

    view = context.get('view')
    logger.exception(
        "Unhandled API error",
        extra={"view": view.__class__.__name__ if view else None},
    )
    return Response(
        {
            'success': False,
            'error': 'Review validation failed',
            'details': str(exc),
        },
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
