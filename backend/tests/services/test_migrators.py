"""Tests for the entity migrators.

Each migrator runs against the in-memory FakeSource and a fresh SQLite
target store.
"""

import logging
from typing import Any

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ledger_migration.core.config import Settings
from ledger_migration.core.errors import UnrecoverableMigrationError
from ledger_migration.models import Community, Organization, Profile, Story
from ledger_migration.repositories.target_store import TargetStore
from ledger_migration.services.id_registry import EntityType
from ledger_migration.services.migrators import (
    CommunityMigrator,
    EntityMigrator,
    OrganizationMigrator,
    ProfileMigrator,
    StoryMigrator,
)
from ledger_migration.services.run_context import RunContext
from tests.conftest import FakeSource, make_record


def build(
    migrator_cls: type[EntityMigrator[Any]],
    context: RunContext,
    source: FakeSource,
    target: TargetStore,
    settings: Settings,
    reads: tuple[EntityType, ...] = (),
) -> EntityMigrator[Any]:
    view = context.registries.view(reads, stage=migrator_cls.plural)
    return migrator_cls(context, source, target, view, settings)


async def fetch_all_rows(
    session_factory: async_sessionmaker[AsyncSession], model: type[Any]
) -> list[Any]:
    async with session_factory() as session:
        result = await session.execute(select(model))
        return list(result.scalars().all())


class TestOrganizationMigrator:
    async def test_creates_and_registers(
        self, target_store: TargetStore, test_settings: Settings
    ) -> None:
        source = FakeSource(
            {
                "Organizations": [
                    make_record(
                        "recOrg1",
                        {
                            "Organization Name": "Orange Sky",
                            "Organization Type": "Non-Profit",
                            "Website": "https://orangesky.org.au",
                            "Active": False,
                        },
                    ),
                    make_record("recOrg2", {"Organization Name": "Mums Inc"}),
                ]
            }
        )
        context = RunContext()

        registry = await build(
            OrganizationMigrator, context, source, target_store, test_settings
        ).run()

        stats = context.stats[EntityType.ORGANIZATION]
        assert (stats.processed, stats.created, stats.errors) == (2, 2, 0)
        assert len(registry) == 2

        org_id = registry.resolve("recOrg1")
        assert org_id == await target_store.select_id(Organization, slug="orange-sky")

    async def test_fallback_name_and_slug(
        self,
        target_store: TargetStore,
        test_settings: Settings,
        async_session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        source = FakeSource(
            {
                "Organizations": [
                    make_record("recOrg1", {}),
                    make_record("recOrg2", {"Organization Name": "!!!"}),
                ]
            }
        )
        context = RunContext()

        await build(OrganizationMigrator, context, source, target_store, test_settings).run()

        rows = await fetch_all_rows(async_session_factory, Organization)
        assert sorted((r.name, r.slug) for r in rows) == [
            ("!!!", "organization-2"),
            ("Organization 1", "organization-1"),
        ]
        assert all(r.organization_type == "community_group" for r in rows)

    async def test_duplicate_slug_reuses_row(
        self, target_store: TargetStore, test_settings: Settings
    ) -> None:
        source = FakeSource(
            {
                "Organizations": [
                    make_record("recOrg1", {"Organization Name": "Orange Sky"}),
                    make_record("recOrg2", {"Organization Name": "Orange Sky!!"}),
                ]
            }
        )
        context = RunContext()

        registry = await build(
            OrganizationMigrator, context, source, target_store, test_settings
        ).run()

        stats = context.stats[EntityType.ORGANIZATION]
        assert (stats.created, stats.reused, stats.errors) == (1, 1, 0)
        assert registry.resolve("recOrg1") == registry.resolve("recOrg2")
        assert await target_store.count(Organization) == 1

    async def test_wrong_field_shape_is_record_error(
        self, target_store: TargetStore, test_settings: Settings
    ) -> None:
        source = FakeSource(
            {
                "Organizations": [
                    make_record("recBad", {"Organization Name": ["not", "text"]}),
                    make_record("recGood", {"Organization Name": "Good Org"}),
                ]
            }
        )
        context = RunContext()

        with context.capture_logs():
            await build(
                OrganizationMigrator, context, source, target_store, test_settings
            ).run()

        stats = context.stats[EntityType.ORGANIZATION]
        assert (stats.processed, stats.created, stats.errors) == (2, 1, 1)
        assert len(context.error_lines) == 1
        assert "recBad" in context.error_lines[0]

    async def test_summary_logged_at_info(
        self,
        target_store: TargetStore,
        test_settings: Settings,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        source = FakeSource(
            {"Organizations": [make_record("recOrg1", {"Organization Name": "Orange Sky"})]}
        )
        context = RunContext()

        with caplog.at_level(logging.INFO):
            await build(
                OrganizationMigrator, context, source, target_store, test_settings
            ).run()

        summary = next(
            r for r in caplog.records if "migration complete" in r.getMessage()
        )
        assert summary.stats == {
            "processed": 1,
            "created": 1,
            "reused": 0,
            "errors": 0,
            "warnings": 0,
        }
        assert summary.entity_type == "organization"


class TestCommunityMigrator:
    async def test_resolves_first_organization_link(
        self,
        target_store: TargetStore,
        test_settings: Settings,
        async_session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        source = FakeSource(
            {
                "Organizations": [make_record("recOrg1", {"Organization Name": "Orange Sky"})],
                "Communities": [
                    make_record(
                        "recCom1",
                        {
                            "Community Name": "Mount Isa",
                            "Organization": ["recOrg1", "recOrg9"],
                            "Location": "Queensland",
                        },
                    ),
                    make_record(
                        "recCom2",
                        {"Community Name": "Palm Island", "Organization": ["recGhost"]},
                    ),
                ],
            }
        )
        context = RunContext()

        orgs = await build(
            OrganizationMigrator, context, source, target_store, test_settings
        ).run()
        await build(
            CommunityMigrator,
            context,
            source,
            target_store,
            test_settings,
            reads=(EntityType.ORGANIZATION,),
        ).run()

        rows = {r.slug: r for r in await fetch_all_rows(async_session_factory, Community)}
        assert rows["mount-isa"].organization_id == orgs.resolve("recOrg1")
        assert rows["mount-isa"].location_data == {"location": "Queensland"}
        assert rows["mount-isa"].geographic_level == "city"
        assert rows["palm-island"].organization_id is None
        assert rows["palm-island"].location_data == {}
        assert context.stats[EntityType.COMMUNITY].errors == 0


class TestProfileMigrator:
    async def test_one_profile_per_email_first_seen_wins(
        self,
        target_store: TargetStore,
        test_settings: Settings,
        async_session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        source = FakeSource(
            {
                "Stories": [
                    make_record(
                        "recS1",
                        {
                            "Contributor Email": "a@example.com",
                            "Contributor Name": "Aunty May Smith",
                            "Age Range": "55-64",
                            "Title": "ignored by the scan",
                        },
                    ),
                    make_record(
                        "recS2",
                        {"Contributor Email": "A@Example.com ", "Contributor Name": "May S"},
                    ),
                    make_record("recS3", {"Contributor Name": "No Email"}),
                    make_record(
                        "recS4",
                        {"Contributor Email": "a@example.com", "Contributor Name": "M"},
                    ),
                    make_record("recS5", {"Contributor Email": "b@example.com"}),
                ]
            }
        )
        context = RunContext()

        registry = await build(
            ProfileMigrator, context, source, target_store, test_settings
        ).run()

        assert source.calls == [
            ("Stories", ("Contributor Email", "Contributor Name", "Age Range", "Location"))
        ]
        profiles = {p.email: p for p in await fetch_all_rows(async_session_factory, Profile)}
        assert set(profiles) == {"a@example.com", "b@example.com"}
        assert profiles["a@example.com"].full_name == "Aunty May Smith"
        assert profiles["a@example.com"].display_name == "Aunty"
        assert profiles["a@example.com"].age_range == "55-64"
        assert profiles["b@example.com"].display_name == "Anonymous"
        assert profiles["b@example.com"].role == "storyteller"
        assert registry.resolve("a@example.com") == profiles["a@example.com"].id

        stats = context.stats[EntityType.PROFILE]
        assert (stats.processed, stats.created, stats.errors) == (2, 2, 0)

    async def test_malformed_email_is_warning(
        self, target_store: TargetStore, test_settings: Settings
    ) -> None:
        source = FakeSource(
            {"Stories": [make_record("recS1", {"Contributor Email": ["a@example.com"]})]}
        )
        context = RunContext()

        await build(ProfileMigrator, context, source, target_store, test_settings).run()

        stats = context.stats[EntityType.PROFILE]
        assert (stats.processed, stats.warnings, stats.errors) == (0, 1, 0)


class TestStoryMigrator:
    async def migrate(
        self,
        stories: list[dict[str, Any]],
        target_store: TargetStore,
        settings: Settings,
        organizations: list[dict[str, Any]] | None = None,
    ) -> RunContext:
        source = FakeSource({"Organizations": organizations or [], "Stories": stories})
        context = RunContext()
        await build(OrganizationMigrator, context, source, target_store, settings).run()
        await build(ProfileMigrator, context, source, target_store, settings).run()
        await build(
            StoryMigrator,
            context,
            source,
            target_store,
            settings,
            reads=(EntityType.ORGANIZATION, EntityType.PROFILE),
        ).run()
        return context

    async def test_malformed_record_is_isolated(
        self, target_store: TargetStore, test_settings: Settings
    ) -> None:
        stories = [make_record(f"recS{n}", {"Title": f"Story {n}"}) for n in range(1, 5)]
        stories[2]["fields"]["Date Submitted"] = "last tuesday"

        context = await self.migrate(stories, target_store, test_settings)

        stats = context.stats[EntityType.STORY]
        assert (stats.processed, stats.created, stats.errors) == (4, 3, 1)
        assert await target_store.select_id(Story, airtable_record_id="recS3") is None

    async def test_organization_reference_resolves_or_is_null(
        self,
        target_store: TargetStore,
        test_settings: Settings,
        async_session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        context = await self.migrate(
            [
                make_record("recS1", {"Organization": ["recOrg1"]}),
                make_record("recS2", {"Organization": ["recGhost"]}),
                make_record("recS3", {}),
            ],
            target_store,
            test_settings,
            organizations=[make_record("recOrg1", {"Organization Name": "Orange Sky"})],
        )

        org_id = context.registries.resolve(EntityType.ORGANIZATION, "recOrg1")
        rows = {s.airtable_record_id: s for s in await fetch_all_rows(async_session_factory, Story)}
        assert rows["recS1"].organization_id == org_id
        assert rows["recS2"].organization_id is None
        assert rows["recS3"].organization_id is None

    async def test_field_mapping(
        self,
        target_store: TargetStore,
        test_settings: Settings,
        async_session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        await self.migrate(
            [
                make_record(
                    "recS1",
                    {
                        "Title": "Clean water",
                        "Content": "We fixed the tank.",
                        "Category": "Health",
                        "Privacy Level": "Public",
                        "Status": "Approved",
                        "Themes": ["water", "health"],
                        "Date Submitted": "2024-03-01",
                        "Impact Score": 7,
                        "Sentiment Score": 0.8,
                    },
                ),
                make_record("recS2", {"Status": "Approved", "Featured": True}),
                make_record("recS3", {"Category": "Astrology", "Privacy Level": "Friends"}),
            ],
            target_store,
            test_settings,
        )

        rows = {s.airtable_record_id: s for s in await fetch_all_rows(async_session_factory, Story)}
        first = rows["recS1"]
        assert (first.category, first.privacy_level, first.status) == (
            "healthcare",
            "public",
            "approved",
        )
        assert first.themes == ["water", "health"]
        assert first.created_at.date().isoformat() == "2024-03-01"
        assert first.published_at == first.created_at
        assert first.impact_score == 7
        assert first.sentiment_score == 0.8
        assert first.view_count == 0

        assert rows["recS2"].status == "featured"
        assert rows["recS2"].title == "Untitled Story"
        assert rows["recS2"].published_at is not None

        fallback = rows["recS3"]
        assert (fallback.category, fallback.privacy_level, fallback.status) == (
            "community",
            "private",
            "pending",
        )
        assert fallback.published_at is None
        assert fallback.content == ""

    async def test_global_community_assigned_when_present(
        self,
        target_store: TargetStore,
        test_settings: Settings,
        async_session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        global_id = await target_store.insert(Community, {"name": "Global", "slug": "global"})

        context = await self.migrate([make_record("recS1", {})], target_store, test_settings)

        rows = await fetch_all_rows(async_session_factory, Story)
        assert rows[0].community_id == global_id
        assert context.stats[EntityType.STORY].warnings == 0

    async def test_missing_global_community_warns_once(
        self, target_store: TargetStore, test_settings: Settings
    ) -> None:
        context = await self.migrate(
            [make_record("recS1", {}), make_record("recS2", {})],
            target_store,
            test_settings,
        )

        stats = context.stats[EntityType.STORY]
        assert (stats.created, stats.warnings, stats.errors) == (2, 1, 0)

    async def test_unresolved_contributor_is_warning(
        self, target_store: TargetStore, test_settings: Settings
    ) -> None:
        await target_store.insert(Community, {"name": "Global", "slug": "global"})
        source = FakeSource(
            {"Stories": [make_record("recS1", {"Contributor Email": "ghost@example.com"})]}
        )
        context = RunContext()

        # Profiles stage skipped: the email never resolves
        await build(
            StoryMigrator,
            context,
            source,
            target_store,
            test_settings,
            reads=(EntityType.ORGANIZATION, EntityType.PROFILE),
        ).run()

        stats = context.stats[EntityType.STORY]
        assert (stats.created, stats.warnings, stats.errors) == (1, 1, 0)

    async def test_source_failure_propagates(
        self, target_store: TargetStore, test_settings: Settings
    ) -> None:
        source = FakeSource(failing_tables={"Stories"})
        context = RunContext()

        with pytest.raises(UnrecoverableMigrationError):
            await build(
                StoryMigrator,
                context,
                source,
                target_store,
                test_settings,
                reads=(EntityType.ORGANIZATION, EntityType.PROFILE),
            ).run()

    async def test_rerun_reuses_stories(
        self, target_store: TargetStore, test_settings: Settings
    ) -> None:
        stories = [make_record("recS1", {"Title": "One"}), make_record("recS2", {"Title": "Two"})]

        await self.migrate(stories, target_store, test_settings)
        second = await self.migrate(stories, target_store, test_settings)

        stats = second.stats[EntityType.STORY]
        assert (stats.created, stats.reused) == (0, 2)
        assert await target_store.count(Story) == 2
