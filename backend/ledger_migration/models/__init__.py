"""Target store models."""

from ledger_migration.models.community import Community
from ledger_migration.models.organization import Organization
from ledger_migration.models.profile import Profile
from ledger_migration.models.site_metric import SiteMetric
from ledger_migration.models.story import Story, StoryStatus

__all__ = [
    "Community",
    "Organization",
    "Profile",
    "SiteMetric",
    "Story",
    "StoryStatus",
]
