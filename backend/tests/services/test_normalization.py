"""Tests for the field normalizers."""

import pytest

from ledger_migration.models import StoryStatus
from ledger_migration.services.normalization import (
    OrganizationType,
    PrivacyLevel,
    StoryCategory,
    normalize_category,
    normalize_email,
    normalize_organization_type,
    normalize_privacy_level,
    normalize_status,
    slugify,
)


class TestNormalizeCategory:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("Health", StoryCategory.HEALTHCARE),
            ("medical", StoryCategory.HEALTHCARE),
            ("  Young People ", StoryCategory.YOUTH),
            ("Seniors", StoryCategory.ELDER_CARE),
            ("Government", StoryCategory.POLICY),
            ("Jobs", StoryCategory.EMPLOYMENT),
            ("Social Services", StoryCategory.SOCIAL_SERVICES),
        ],
    )
    def test_known_values(self, value: str, expected: StoryCategory) -> None:
        assert normalize_category(value) == expected

    @pytest.mark.parametrize("value", ["unrecognized", "", None, 42, True, ["Health"]])
    def test_defaults_to_community(self, value: object) -> None:
        assert normalize_category(value) == StoryCategory.COMMUNITY

    def test_result_value_is_plain_text(self) -> None:
        assert normalize_category("Health").value == "healthcare"


class TestNormalizePrivacyLevel:
    def test_known_values(self) -> None:
        assert normalize_privacy_level("Public") == PrivacyLevel.PUBLIC
        assert normalize_privacy_level("Community Only") == PrivacyLevel.COMMUNITY
        assert normalize_privacy_level("organization") == PrivacyLevel.ORGANIZATION

    @pytest.mark.parametrize("value", [None, "", "friends", 1])
    def test_fails_closed(self, value: object) -> None:
        assert normalize_privacy_level(value) == PrivacyLevel.PRIVATE


class TestNormalizeStatus:
    def test_known_values(self) -> None:
        assert normalize_status("Submitted") == StoryStatus.PENDING
        assert normalize_status("Published") == StoryStatus.APPROVED
        assert normalize_status("APPROVED") == StoryStatus.APPROVED
        assert normalize_status("archived") == StoryStatus.ARCHIVED

    def test_default_pending(self) -> None:
        assert normalize_status(None) == StoryStatus.PENDING
        assert normalize_status("in review") == StoryStatus.PENDING


class TestNormalizeOrganizationType:
    def test_known_values(self) -> None:
        assert normalize_organization_type("Non-Profit") == OrganizationType.NONPROFIT
        assert normalize_organization_type("NGO") == OrganizationType.NONPROFIT
        assert normalize_organization_type("Corporate") == OrganizationType.PRIVATE_SECTOR

    def test_default_community_group(self) -> None:
        assert normalize_organization_type(None) == OrganizationType.COMMUNITY_GROUP
        assert normalize_organization_type("Cooperative") == OrganizationType.COMMUNITY_GROUP


class TestSlugify:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Orange Sky!!", "orange-sky"),
            ("  Multiple   Spaces  ", "multiple-spaces"),
            ("Already-Dashed -- Name", "already-dashed-name"),
            ("Café Ōtautahi", "caf-tautahi"),
            ("!!!", ""),
        ],
    )
    def test_slugify(self, text: str, expected: str) -> None:
        assert slugify(text) == expected


class TestNormalizeEmail:
    def test_trims_and_lowercases(self) -> None:
        assert normalize_email("  Jo@Example.COM ") == "jo@example.com"

    def test_empty_is_absent(self) -> None:
        assert normalize_email(None) is None
        assert normalize_email("   ") is None
