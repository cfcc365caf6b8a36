"""
Timezone utilities for restaurant operations.
"""
import zoneinfo
from django.conf import settings
from django.utils import timezone as dj_timezone


def get_restaurant_timezone(restaurant):
    """Get timezone string for a restaurant, falling back to the project TIME_ZONE."""
    if restaurant and getattr(restaurant, "timezone", None):
        tz_str = str(restaurant.timezone).strip()
        if tz_str:
            return tz_str
    return settings.TIME_ZONE


def to_restaurant_local(dt, restaurant):
    """Convert an aware datetime to the restaurant's local timezone (aware)."""
    if dt is None:
        return None
    try:
        tz = zoneinfo.ZoneInfo(get_restaurant_timezone(restaurant))
    except zoneinfo.ZoneInfoNotFoundError:
        tz = zoneinfo.ZoneInfo(settings.TIME_ZONE)
    if dj_timezone.is_naive(dt):
        dt = dj_timezone.make_aware(dt, zoneinfo.ZoneInfo("UTC"))
    return dt.astimezone(tz)


def restaurant_today(restaurant, now=None):
    """Calendar date in the restaurant's local timezone."""
    return to_restaurant_local(now or dj_timezone.now(), restaurant).date()
