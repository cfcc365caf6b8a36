"""
Review engine configuration.

Every tunable of the engine (window length, pass threshold, low-rating sentinel,
lookup policies and the department/shift requirement map) is collected in one
immutable ``ReviewEngineConfig`` built from ``settings.REVIEW_ENGINE`` and handed
to the services at construction.
"""
from dataclasses import dataclass, field, replace
from datetime import timedelta
from typing import Dict, List, Optional, Tuple

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

SKIP = 'skip'
REJECT = 'reject'
BLOCK = 'block'

MISSING_CATEGORY_POLICIES = (SKIP, REJECT)
MISSING_TEMPLATE_POLICIES = (SKIP, BLOCK)


def _requirement_key(department, shift) -> Tuple[str, str]:
    return (str(department or '').strip().upper(), str(shift or '').strip().lower())


def parse_workflow_requirements(raw) -> Dict[Tuple[str, str], List[str]]:
    """Normalise ``{"BOH:opening": [...]}`` into ``{("BOH", "opening"): [...]}``."""
    parsed = {}
    for key, names in (raw or {}).items():
        if isinstance(key, (tuple, list)):
            department, shift = key
        else:
            department, _, shift = str(key).partition(':')
        if not department or not shift:
            raise ImproperlyConfigured(
                f"REVIEW_ENGINE['WORKFLOW_REQUIREMENTS'] key {key!r} must look like 'DEPARTMENT:shift'"
            )
        if isinstance(names, str):
            names = [names]
        parsed[_requirement_key(department, shift)] = [str(n) for n in names]
    return parsed


@dataclass(frozen=True)
class ReviewEngineConfig:
    update_window_hours: int = 6
    pass_threshold: float = 85.0
    low_rating_sentinel: int = 1
    default_max_rating: int = 5
    missing_category_policy: str = SKIP
    missing_template_policy: str = SKIP
    require_override_reason: bool = False
    access_roles: Tuple[str, ...] = ('SUPER_ADMIN', 'ADMIN', 'MANAGER', 'CHEF', 'LINE_COOK', 'PREP_COOK')
    workflow_requirements: Dict[Tuple[str, str], List[str]] = field(default_factory=dict)

    def __post_init__(self):
        if self.update_window_hours <= 0:
            raise ImproperlyConfigured("REVIEW_ENGINE['UPDATE_WINDOW_HOURS'] must be positive")
        if self.default_max_rating <= 0:
            raise ImproperlyConfigured("REVIEW_ENGINE['DEFAULT_MAX_RATING'] must be positive")
        if self.missing_category_policy not in MISSING_CATEGORY_POLICIES:
            raise ImproperlyConfigured(
                f"REVIEW_ENGINE['MISSING_CATEGORY_POLICY'] must be one of {MISSING_CATEGORY_POLICIES}"
            )
        if self.missing_template_policy not in MISSING_TEMPLATE_POLICIES:
            raise ImproperlyConfigured(
                f"REVIEW_ENGINE['MISSING_TEMPLATE_POLICY'] must be one of {MISSING_TEMPLATE_POLICIES}"
            )

    @classmethod
    def from_settings(cls, **overrides) -> 'ReviewEngineConfig':
        raw = dict(getattr(settings, 'REVIEW_ENGINE', {}) or {})
        values = {
            'update_window_hours': int(raw.get('UPDATE_WINDOW_HOURS', cls.update_window_hours)),
            'pass_threshold': float(raw.get('PASS_THRESHOLD', cls.pass_threshold)),
            'low_rating_sentinel': int(raw.get('LOW_RATING_SENTINEL', cls.low_rating_sentinel)),
            'default_max_rating': int(raw.get('DEFAULT_MAX_RATING', cls.default_max_rating)),
            'missing_category_policy': str(raw.get('MISSING_CATEGORY_POLICY', SKIP)).lower(),
            'missing_template_policy': str(raw.get('MISSING_TEMPLATE_POLICY', SKIP)).lower(),
            'require_override_reason': bool(raw.get('REQUIRE_OVERRIDE_REASON', False)),
            'access_roles': tuple(r.strip() for r in raw.get('ACCESS_ROLES', cls.access_roles) if r.strip()),
            'workflow_requirements': parse_workflow_requirements(raw.get('WORKFLOW_REQUIREMENTS')),
        }
        values.update(overrides)
        return cls(**values)

    def with_overrides(self, **changes) -> 'ReviewEngineConfig':
        return replace(self, **changes)

    def window_for(self, template=None) -> timedelta:
        hours = getattr(template, 'time_limit_hours', None) or self.update_window_hours
        return timedelta(hours=hours)

    def threshold_for(self, template=None) -> float:
        threshold = getattr(template, 'pass_threshold', None)
        return float(threshold) if threshold is not None else self.pass_threshold

    def max_rating_for(self, category=None) -> int:
        value = getattr(category, 'max_rating', None)
        return value if value else self.default_max_rating

    def required_reviews(self, department, shift) -> List[str]:
        return list(self.workflow_requirements.get(_requirement_key(department, shift), []))

    def role_can_access(self, role: Optional[str]) -> bool:
        return bool(role) and role in self.access_roles
