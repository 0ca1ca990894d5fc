"""Migration orchestrator.

Runs the entity stages in dependency order, recomputes the site metrics and
always finalizes the run by writing its log, error log and statistics.

Phases:
    INIT -> MIGRATING_ORGANIZATIONS -> MIGRATING_COMMUNITIES
    -> MIGRATING_PROFILES -> MIGRATING_STORIES -> UPDATING_METRICS
    -> COMPLETED

FAILED is entered from any phase when an exception escapes a stage.
Per-record errors never fail the run.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ledger_migration.core.config import Settings, get_settings
from ledger_migration.core.errors import StageOrderError, UnrecoverableMigrationError
from ledger_migration.core.logging import get_logger
from ledger_migration.repositories.target_store import TargetStore
from ledger_migration.services.id_registry import EntityType
from ledger_migration.services.metrics import update_metrics
from ledger_migration.services.migrators import (
    CommunityMigrator,
    EntityMigrator,
    OrganizationMigrator,
    ProfileMigrator,
    StoryMigrator,
)
from ledger_migration.services.run_context import (
    STATS_KEYS,
    MigrationPhase,
    RunArtifacts,
    RunContext,
)
from ledger_migration.services.source import SourceAdapter

logger = get_logger(__name__)


@dataclass(frozen=True)
class MigrationStage:
    """One entity pass: the registries it reads and the one it produces."""

    phase: MigrationPhase
    entity_type: EntityType
    reads: tuple[EntityType, ...]
    migrator: type[EntityMigrator[Any]]


DEFAULT_STAGES: tuple[MigrationStage, ...] = (
    MigrationStage(
        phase=MigrationPhase.MIGRATING_ORGANIZATIONS,
        entity_type=EntityType.ORGANIZATION,
        reads=(),
        migrator=OrganizationMigrator,
    ),
    MigrationStage(
        phase=MigrationPhase.MIGRATING_COMMUNITIES,
        entity_type=EntityType.COMMUNITY,
        reads=(EntityType.ORGANIZATION,),
        migrator=CommunityMigrator,
    ),
    MigrationStage(
        phase=MigrationPhase.MIGRATING_PROFILES,
        entity_type=EntityType.PROFILE,
        reads=(),
        migrator=ProfileMigrator,
    ),
    MigrationStage(
        phase=MigrationPhase.MIGRATING_STORIES,
        entity_type=EntityType.STORY,
        reads=(EntityType.ORGANIZATION, EntityType.PROFILE),
        migrator=StoryMigrator,
    ),
)


def validate_stages(stages: Sequence[MigrationStage]) -> None:
    """Check that every stage only reads registries produced before it.

    Raises:
        StageOrderError: On a forward or undeclared read, a registry produced
            twice, or a migrator bound to the wrong entity type.
    """
    produced: set[EntityType] = set()
    for stage in stages:
        if stage.migrator.entity_type != stage.entity_type:
            raise StageOrderError(
                f"Stage '{stage.phase.value}' produces {stage.entity_type.value} "
                f"but its migrator produces {stage.migrator.entity_type.value}"
            )
        missing = [t.value for t in stage.reads if t not in produced]
        if missing:
            raise StageOrderError(
                f"Stage '{stage.phase.value}' reads {', '.join(missing)} "
                f"before any stage produces it"
            )
        if stage.entity_type in produced:
            raise StageOrderError(
                f"Stage '{stage.phase.value}' produces {stage.entity_type.value} "
                f"which an earlier stage already produced"
            )
        produced.add(stage.entity_type)


class MigrationOrchestrator:
    """Sequence the stages of one migration run."""

    def __init__(
        self,
        source: SourceAdapter,
        target: TargetStore,
        settings: Settings | None = None,
        stages: Sequence[MigrationStage] = DEFAULT_STAGES,
    ) -> None:
        validate_stages(stages)
        self.source = source
        self.target = target
        self.settings = settings or get_settings()
        self.stages = tuple(stages)

    async def run(self, context: RunContext | None = None) -> RunContext:
        """Run every stage, then finalize. Returns the finished context.

        Unrecoverable errors end the run in FAILED; they are not re-raised.
        Any other exception also ends the run in FAILED and is re-raised
        after the finalizer has written the artifacts.
        """
        context = context or RunContext()

        with context.capture_logs():
            logger.info(
                f"Starting migration run {context.run_id}",
                extra={"run_id": context.run_id, "stages": len(self.stages)},
            )
            try:
                await self._run_stages(context)
            except UnrecoverableMigrationError as e:
                context.failure = str(e)
                logger.error(
                    f"Migration failed during {e.stage or context.phase.value}: {e}",
                    extra={
                        "run_id": context.run_id,
                        "phase": context.phase.value,
                        "error_type": type(e).__name__,
                    },
                )
                context.enter_phase(MigrationPhase.FAILED)
            except Exception as e:
                context.failure = f"{type(e).__name__}: {e}"
                logger.error(
                    f"Migration aborted during {context.phase.value}: {e}",
                    extra={
                        "run_id": context.run_id,
                        "phase": context.phase.value,
                        "error_type": type(e).__name__,
                    },
                    exc_info=True,
                )
                context.enter_phase(MigrationPhase.FAILED)
                raise
            finally:
                self._finalize(context)

        return context

    async def _run_stages(self, context: RunContext) -> None:
        for stage in self.stages:
            context.enter_phase(stage.phase)
            view = context.registries.view(stage.reads, stage=stage.phase.value)
            migrator = stage.migrator(
                context, self.source, self.target, view, self.settings
            )
            await migrator.run()

        context.enter_phase(MigrationPhase.UPDATING_METRICS)
        context.metrics = await update_metrics(self.target)
        context.enter_phase(MigrationPhase.COMPLETED)

    def _finalize(self, context: RunContext) -> RunArtifacts | None:
        """Record the duration, log the summary and persist the artifacts."""
        context.total_duration_ms = context.elapsed_ms()
        self._log_summary(context)

        try:
            context.artifacts = context.write_artifacts(
                Path(self.settings.migration_log_dir)
            )
        except OSError as e:
            logger.error(
                f"Could not write migration logs to {self.settings.migration_log_dir}: {e}",
                extra={"run_id": context.run_id},
            )
            return None

        logger.info(
            f"Logs saved to {context.artifacts.log_path.parent}",
            extra={
                "log_path": str(context.artifacts.log_path),
                "stats_path": str(context.artifacts.stats_path),
            },
        )
        return context.artifacts

    def _log_summary(self, context: RunContext) -> None:
        logger.info(f"Migration {context.phase.value} in {context.total_duration_ms}ms")
        for entity_type, key in STATS_KEYS.items():
            stats = context.stats[entity_type]
            logger.info(
                f"{key.capitalize()}: processed={stats.processed}, "
                f"created={stats.created}, reused={stats.reused}, "
                f"errors={stats.errors}, warnings={stats.warnings}"
            )
        if context.metrics is not None:
            logger.info(
                f"Metrics: stories={context.metrics.total_stories}, "
                f"communities={context.metrics.total_communities}, "
                f"storytellers={context.metrics.total_storytellers}"
            )
