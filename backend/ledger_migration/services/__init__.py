"""Services layer - Migration stages and orchestration.

Services compose the source adapter, the normalizers, the identifier
registries and the target store gateway. They hold no direct database or
HTTP access - that's delegated to repositories and integrations.
"""

from ledger_migration.services.id_registry import (
    EntityType,
    IdentifierRegistry,
    RegistrySet,
    RegistryView,
)
from ledger_migration.services.metrics import compute_metrics, update_metrics
from ledger_migration.services.migrators import (
    CommunityMigrator,
    EntityMigrator,
    OrganizationMigrator,
    ProfileMigrator,
    StoryMigrator,
)
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
from ledger_migration.services.orchestrator import (
    DEFAULT_STAGES,
    MigrationOrchestrator,
    MigrationStage,
    validate_stages,
)
from ledger_migration.services.run_context import (
    EntityStats,
    MetricsReport,
    MigrationPhase,
    RunArtifacts,
    RunContext,
)
from ledger_migration.services.source import AirtableSource, SourceAdapter

__all__ = [
    # Identifier registries
    "EntityType",
    "IdentifierRegistry",
    "RegistrySet",
    "RegistryView",
    # Metrics
    "compute_metrics",
    "update_metrics",
    # Migrators
    "CommunityMigrator",
    "EntityMigrator",
    "OrganizationMigrator",
    "ProfileMigrator",
    "StoryMigrator",
    # Normalization
    "OrganizationType",
    "PrivacyLevel",
    "StoryCategory",
    "normalize_category",
    "normalize_email",
    "normalize_organization_type",
    "normalize_privacy_level",
    "normalize_status",
    "slugify",
    # Orchestration
    "DEFAULT_STAGES",
    "MigrationOrchestrator",
    "MigrationStage",
    "validate_stages",
    # Run state
    "EntityStats",
    "MetricsReport",
    "MigrationPhase",
    "RunArtifacts",
    "RunContext",
    # Source
    "AirtableSource",
    "SourceAdapter",
]
