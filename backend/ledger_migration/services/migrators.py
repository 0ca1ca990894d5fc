"""Entity migrators: organizations, communities, profiles and stories.

Each migrator loads its items from the source, and for every item normalizes
fields, resolves foreign references through the registries it declared, then
inserts the target row (or reuses the row already holding its natural key)
and registers the resulting id.

A failure on one item is caught at the item boundary: it is logged, counted
against the entity's error tally, and the next item is processed. Only an
UnrecoverableMigrationError or a StageOrderError leaves the loop.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from typing import Any, ClassVar, Generic, TypeVar

from ledger_migration.core.config import Settings
from ledger_migration.core.database import Base
from ledger_migration.core.errors import (
    RecordFieldError,
    RecordMigrationError,
    StageOrderError,
    UnrecoverableMigrationError,
)
from ledger_migration.core.logging import get_logger
from ledger_migration.models import Community, Organization, Profile, Story, StoryStatus
from ledger_migration.repositories.target_store import TargetStore, TargetStoreError
from ledger_migration.schemas.source_record import SourceRecord
from ledger_migration.services.id_registry import (
    EntityType,
    IdentifierRegistry,
    RegistryView,
)
from ledger_migration.services.normalization import (
    normalize_category,
    normalize_email,
    normalize_organization_type,
    normalize_privacy_level,
    normalize_status,
    slugify,
)
from ledger_migration.services.run_context import EntityStats, RunContext
from ledger_migration.services.source import SourceAdapter

logger = get_logger(__name__)

ItemT = TypeVar("ItemT")

# Story columns the profile scan needs
CONTRIBUTOR_FIELDS = ("Contributor Email", "Contributor Name", "Age Range", "Location")


class EntityMigrator(ABC, Generic[ItemT]):
    """Base class for one entity type's migration pass."""

    entity_type: ClassVar[EntityType]
    label: ClassVar[str]
    plural: ClassVar[str]

    def __init__(
        self,
        context: RunContext,
        source: SourceAdapter,
        target: TargetStore,
        registries: RegistryView,
        settings: Settings,
    ) -> None:
        self.context = context
        self.source = source
        self.target = target
        self.registries = registries
        self.settings = settings

    @property
    def stats(self) -> EntityStats:
        return self.context.stats[self.entity_type]

    @property
    def registry(self) -> IdentifierRegistry:
        return self.context.registries[self.entity_type]

    @abstractmethod
    async def load_items(self) -> Sequence[ItemT]:
        """Fetch everything this pass will migrate."""

    @abstractmethod
    async def migrate_item(self, item: ItemT) -> None:
        """Transform and write one item."""

    @abstractmethod
    def item_id(self, item: ItemT) -> str:
        """Identifier of the item used in logs."""

    async def run(self) -> IdentifierRegistry:
        """Migrate every item; return this entity's registry.

        Raises:
            UnrecoverableMigrationError: If the source or target becomes
                unusable. Per-item errors never propagate.
        """
        logger.info(f"Starting {self.plural} migration...")
        items = await self.load_items()

        for item in items:
            self.stats.processed += 1
            try:
                await self.migrate_item(item)
            except (UnrecoverableMigrationError, StageOrderError):
                raise
            except (RecordMigrationError, TargetStoreError) as e:
                self._record_error(item, e, exc_info=False)
            except Exception as e:
                self._record_error(item, e, exc_info=True)

        logger.info(
            f"{self.plural.capitalize()} migration complete. "
            f"Created: {self.stats.created}, Reused: {self.stats.reused}, "
            f"Errors: {self.stats.errors}",
            extra={"entity_type": self.entity_type.value, "stats": asdict(self.stats)},
        )
        return self.registry

    def _record_error(self, item: ItemT, error: Exception, exc_info: bool) -> None:
        self.stats.errors += 1
        logger.error(
            f"Error migrating {self.label} {self.item_id(item)}: {error}",
            extra={
                "entity_type": self.entity_type.value,
                "item_id": self.item_id(item),
                "error_type": type(error).__name__,
            },
            exc_info=exc_info,
        )

    def warn(self, message: str, **extra: Any) -> None:
        """Log a warning against this entity. Warnings are not errors."""
        self.stats.warnings += 1
        logger.warning(message, extra={"entity_type": self.entity_type.value, **extra})

    async def create_or_reuse(
        self,
        model: type[Base],
        values: dict[str, Any],
        natural_key: str,
        source_id: str,
        description: str,
    ) -> str:
        """Write the row (or reuse it on natural-key conflict) and register it."""
        target_id, created = await self.target.insert_or_reuse(model, values, natural_key)
        self.registry.set(source_id, target_id)

        if created:
            self.stats.created += 1
            logger.info(f"Created {self.label}: {description}")
        else:
            self.stats.reused += 1
            logger.info(f"Reused existing {self.label}: {description}")
        return target_id


class OrganizationMigrator(EntityMigrator[SourceRecord]):
    """Organizations have no dependencies; slug is the natural key."""

    entity_type = EntityType.ORGANIZATION
    label = "organization"
    plural = "organizations"

    async def load_items(self) -> Sequence[SourceRecord]:
        return await self.source.fetch_all(self.settings.airtable_organizations_table)

    def item_id(self, item: SourceRecord) -> str:
        return item.id

    async def migrate_item(self, item: SourceRecord) -> None:
        fallback_name = f"Organization {self.stats.processed}"
        name = item.text("Organization Name") or fallback_name

        values = {
            "name": name,
            "slug": slugify(name) or slugify(fallback_name),
            "description": item.text("Description"),
            "website_url": item.text("Website"),
            "organization_type": normalize_organization_type(
                item.raw("Organization Type")
            ).value,
            "headquarters_location": item.text("Location"),
            "support_email": item.text("Primary Contact Email"),
            "is_active": item.flag("Active") is not False,
        }
        await self.create_or_reuse(Organization, values, "slug", item.id, name)


class CommunityMigrator(EntityMigrator[SourceRecord]):
    """Communities may reference one organization (first link only)."""

    entity_type = EntityType.COMMUNITY
    label = "community"
    plural = "communities"

    async def load_items(self) -> Sequence[SourceRecord]:
        return await self.source.fetch_all(self.settings.airtable_communities_table)

    def item_id(self, item: SourceRecord) -> str:
        return item.id

    async def migrate_item(self, item: SourceRecord) -> None:
        fallback_name = f"Community {self.stats.processed}"
        name = item.text("Community Name") or fallback_name
        location = item.text("Location")

        values = {
            "name": name,
            "slug": slugify(name) or slugify(fallback_name),
            "description": item.text("Description"),
            "geographic_level": item.text("Geographic Level") or "city",
            "location_data": {"location": location} if location else {},
            # Unresolved reference stays null
            "organization_id": self.registries.resolve(
                EntityType.ORGANIZATION, item.first_link("Organization")
            ),
            "is_active": item.flag("Active") is not False,
        }
        await self.create_or_reuse(Community, values, "slug", item.id, name)


@dataclass(frozen=True)
class Contributor:
    """First-seen contributor details for one email."""

    email: str
    name: str | None = None
    age_range: str | None = None
    location: str | None = None


class ProfileMigrator(EntityMigrator[Contributor]):
    """Profiles are derived from the contributor columns of story records.

    Exactly one profile per unique (case-insensitive) email; the first story
    seen for an email supplies the name, age range and location.
    """

    entity_type = EntityType.PROFILE
    label = "profile"
    plural = "profiles"

    async def load_items(self) -> Sequence[Contributor]:
        records = await self.source.fetch_all(
            self.settings.airtable_stories_table, fields=CONTRIBUTOR_FIELDS
        )
        return self.collect_contributors(records)

    def collect_contributors(self, records: Sequence[SourceRecord]) -> list[Contributor]:
        contributors: dict[str, Contributor] = {}
        for record in records:
            try:
                email = normalize_email(record.text("Contributor Email"))
            except RecordFieldError as e:
                self.warn(f"Skipping contributor on story {record.id}: {e}")
                continue
            if email is None or email in contributors:
                continue

            contributors[email] = Contributor(
                email=email,
                name=self._optional_text(record, "Contributor Name"),
                age_range=self._optional_text(record, "Age Range"),
                location=self._optional_text(record, "Location"),
            )

        logger.info(
            f"Found {len(contributors)} unique contributors in {len(records)} story records"
        )
        return list(contributors.values())

    def _optional_text(self, record: SourceRecord, name: str) -> str | None:
        try:
            return record.text(name)
        except RecordFieldError as e:
            self.warn(f"Ignoring contributor field on story {record.id}: {e}")
            return None

    def item_id(self, item: Contributor) -> str:
        return item.email

    async def migrate_item(self, item: Contributor) -> None:
        values = {
            "email": item.email,
            "full_name": item.name,
            "display_name": item.name.split()[0] if item.name else "Anonymous",
            "age_range": item.age_range,
            "location_general": item.location,
            "role": "storyteller",
            "is_verified": False,
            "is_active": True,
        }
        await self.create_or_reuse(Profile, values, "email", item.email, item.email)


def parse_submitted_at(record: SourceRecord) -> datetime | None:
    """Parse ``Date Submitted`` (date or ISO timestamp) as an aware datetime."""
    raw = record.text("Date Submitted")
    if raw is None:
        return None
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError as e:
        raise RecordFieldError(
            f"Field 'Date Submitted' on record {record.id} is not a date: {raw!r}",
            field="Date Submitted",
            value=raw,
            record_id=record.id,
        ) from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class StoryMigrator(EntityMigrator[SourceRecord]):
    """Stories resolve contributor, organization and the global community."""

    entity_type = EntityType.STORY
    label = "story"
    plural = "stories"

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._community_id: str | None = None

    async def load_items(self) -> Sequence[SourceRecord]:
        records = await self.source.fetch_all(self.settings.airtable_stories_table)

        slug = self.settings.global_community_slug
        self._community_id = await self.target.select_id(Community, slug=slug)
        if self._community_id is None:
            self.warn(
                f"Community '{slug}' not found in target; stories will have no community"
            )
        return records

    def item_id(self, item: SourceRecord) -> str:
        return item.id

    async def migrate_item(self, item: SourceRecord) -> None:
        email = normalize_email(item.text("Contributor Email"))
        contributor_id = self.registries.resolve(EntityType.PROFILE, email)
        if email and contributor_id is None:
            self.warn(
                f"Could not find profile for email {email} (story {item.id})",
                record_id=item.id,
            )

        organization_id = self.registries.resolve(
            EntityType.ORGANIZATION, item.first_link("Organization")
        )

        source_status = normalize_status(item.raw("Status"))
        status = StoryStatus.FEATURED if item.flag("Featured") else source_status
        created_at = parse_submitted_at(item) or datetime.now(UTC)
        title = item.text("Title") or "Untitled Story"

        values = {
            "airtable_record_id": item.id,
            "title": title,
            "content": item.text("Content") or "",
            "category": normalize_category(item.raw("Category")).value,
            "themes": item.links("Themes"),
            "privacy_level": normalize_privacy_level(item.raw("Privacy Level")).value,
            "contributor_id": contributor_id,
            "organization_id": organization_id,
            "community_id": self._community_id,
            "contributor_age_range": item.text("Age Range"),
            "contributor_location": item.text("Location"),
            "audio_url": item.text("Audio URL"),
            "video_url": item.text("Video URL"),
            "transcription": item.text("Transcription"),
            "sentiment_score": item.number("Sentiment Score"),
            "impact_score": item.number("Impact Score") or 0,
            "view_count": int(item.number("View Count") or 0),
            "status": status.value,
            "created_at": created_at,
            "published_at": created_at if source_status == StoryStatus.APPROVED else None,
        }
        await self.create_or_reuse(Story, values, "airtable_record_id", item.id, title)
