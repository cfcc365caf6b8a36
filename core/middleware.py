"""
Request middleware for LineCheck
"""
from django.utils.deprecation import MiddlewareMixin
import logging

logger = logging.getLogger(__name__)


class AuditLoggingMiddleware(MiddlewareMixin):
    """
    Logs every write request against the API with the acting user and restaurant.
    """

    WRITE_METHODS = ('POST', 'PUT', 'PATCH', 'DELETE')

    def process_response(self, request, response):
        if request.method not in self.WRITE_METHODS or not request.path.startswith('/api/'):
            return response

        user = getattr(request, 'user', None)
        is_authenticated = bool(user and user.is_authenticated)
        logger.info(
            "API write action",
            extra={
                "method": request.method,
                "path": request.path,
                "user_id": str(user.id) if is_authenticated else None,
                "restaurant_id": str(user.restaurant_id) if is_authenticated and user.restaurant_id else None,
                "status_code": response.status_code,
            },
        )
        return response
