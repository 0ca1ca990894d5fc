"""Field normalization for loosely-typed source values.

Every normalizer is total: any input, including None, numbers, booleans and
lists, yields exactly one member of a fixed enumeration. Unknown text never
reaches the target store; it falls back to a documented default.

Matching is case-insensitive on the trimmed text.
"""

import re
from enum import Enum

from ledger_migration.models.story import StoryStatus


class StoryCategory(str, Enum):
    """Story categories stored on the target."""

    HEALTHCARE = "healthcare"
    EDUCATION = "education"
    HOUSING = "housing"
    YOUTH = "youth"
    ELDER_CARE = "elder_care"
    POLICY = "policy"
    COMMUNITY = "community"
    ENVIRONMENT = "environment"
    EMPLOYMENT = "employment"
    SOCIAL_SERVICES = "social_services"


class PrivacyLevel(str, Enum):
    """Story visibility, from most open to most restrictive."""

    PUBLIC = "public"
    COMMUNITY = "community"
    ORGANIZATION = "organization"
    PRIVATE = "private"


class OrganizationType(str, Enum):
    """Organization types stored on the target."""

    NONPROFIT = "nonprofit"
    GOVERNMENT = "government"
    HEALTHCARE = "healthcare"
    EDUCATION = "education"
    RESEARCH = "research"
    COMMUNITY_GROUP = "community_group"
    PRIVATE_SECTOR = "private_sector"


DEFAULT_CATEGORY = StoryCategory.COMMUNITY
# Unknown privacy fails closed
DEFAULT_PRIVACY_LEVEL = PrivacyLevel.PRIVATE
DEFAULT_STATUS = StoryStatus.PENDING
DEFAULT_ORGANIZATION_TYPE = OrganizationType.COMMUNITY_GROUP

CATEGORY_MAP: dict[str, StoryCategory] = {
    "health": StoryCategory.HEALTHCARE,
    "healthcare": StoryCategory.HEALTHCARE,
    "medical": StoryCategory.HEALTHCARE,
    "education": StoryCategory.EDUCATION,
    "housing": StoryCategory.HOUSING,
    "youth": StoryCategory.YOUTH,
    "young people": StoryCategory.YOUTH,
    "elder care": StoryCategory.ELDER_CARE,
    "seniors": StoryCategory.ELDER_CARE,
    "policy": StoryCategory.POLICY,
    "government": StoryCategory.POLICY,
    "community": StoryCategory.COMMUNITY,
    "environment": StoryCategory.ENVIRONMENT,
    "employment": StoryCategory.EMPLOYMENT,
    "jobs": StoryCategory.EMPLOYMENT,
    "social services": StoryCategory.SOCIAL_SERVICES,
}

PRIVACY_MAP: dict[str, PrivacyLevel] = {
    "public": PrivacyLevel.PUBLIC,
    "community": PrivacyLevel.COMMUNITY,
    "community only": PrivacyLevel.COMMUNITY,
    "organization": PrivacyLevel.ORGANIZATION,
    "organization only": PrivacyLevel.ORGANIZATION,
    "private": PrivacyLevel.PRIVATE,
}

STATUS_MAP: dict[str, StoryStatus] = {
    "draft": StoryStatus.DRAFT,
    "submitted": StoryStatus.PENDING,
    "pending": StoryStatus.PENDING,
    "approved": StoryStatus.APPROVED,
    "published": StoryStatus.APPROVED,
    "featured": StoryStatus.FEATURED,
    "archived": StoryStatus.ARCHIVED,
}

ORGANIZATION_TYPE_MAP: dict[str, OrganizationType] = {
    "non-profit": OrganizationType.NONPROFIT,
    "nonprofit": OrganizationType.NONPROFIT,
    "ngo": OrganizationType.NONPROFIT,
    "government": OrganizationType.GOVERNMENT,
    "healthcare": OrganizationType.HEALTHCARE,
    "education": OrganizationType.EDUCATION,
    "research": OrganizationType.RESEARCH,
    "community group": OrganizationType.COMMUNITY_GROUP,
    "private": OrganizationType.PRIVATE_SECTOR,
    "corporate": OrganizationType.PRIVATE_SECTOR,
}


def _lookup_key(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    return value.strip().lower() or None


def normalize_category(value: object) -> StoryCategory:
    key = _lookup_key(value)
    return CATEGORY_MAP.get(key, DEFAULT_CATEGORY) if key else DEFAULT_CATEGORY


def normalize_privacy_level(value: object) -> PrivacyLevel:
    key = _lookup_key(value)
    return PRIVACY_MAP.get(key, DEFAULT_PRIVACY_LEVEL) if key else DEFAULT_PRIVACY_LEVEL


def normalize_status(value: object) -> StoryStatus:
    key = _lookup_key(value)
    return STATUS_MAP.get(key, DEFAULT_STATUS) if key else DEFAULT_STATUS


def normalize_organization_type(value: object) -> OrganizationType:
    key = _lookup_key(value)
    if not key:
        return DEFAULT_ORGANIZATION_TYPE
    return ORGANIZATION_TYPE_MAP.get(key, DEFAULT_ORGANIZATION_TYPE)


_NON_SLUG_CHARS = re.compile(r"[^a-z0-9 -]")
_WHITESPACE_RUNS = re.compile(r"\s+")
_DASH_RUNS = re.compile(r"-+")


def slugify(text: str) -> str:
    """Lowercase, drop characters outside ``[a-z0-9- ]``, dash-join words.

    The result is not guaranteed unique; inserts resolve duplicates through
    the natural-key conflict path.

    >>> slugify("Orange Sky!!")
    'orange-sky'
    """
    slug = _NON_SLUG_CHARS.sub("", text.lower())
    slug = _WHITESPACE_RUNS.sub("-", slug)
    slug = _DASH_RUNS.sub("-", slug)
    return slug.strip("-")


def normalize_email(value: str | None) -> str | None:
    """Trim and lower-case an email; empty reads as absent."""
    if not value:
        return None
    return value.strip().lower() or None
