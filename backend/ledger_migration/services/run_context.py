"""Per-invocation run state.

A RunContext is created for every migration run and passed to every stage.
It owns the phase, the per-entity statistics, the identifier registries and
the mirrored log lines, so repeated runs in one process never share state.
"""

import json
import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any
from uuid import uuid4

from ledger_migration.core.logging import RunLogHandler, get_logger
from ledger_migration.services.id_registry import EntityType, RegistrySet

logger = get_logger(__name__)


class MigrationPhase(str, Enum):
    """States of a migration run."""

    INIT = "init"
    MIGRATING_ORGANIZATIONS = "migrating_organizations"
    MIGRATING_COMMUNITIES = "migrating_communities"
    MIGRATING_PROFILES = "migrating_profiles"
    MIGRATING_STORIES = "migrating_stories"
    UPDATING_METRICS = "updating_metrics"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_PHASES = frozenset({MigrationPhase.COMPLETED, MigrationPhase.FAILED})

# Keys used in the persisted statistics document
STATS_KEYS = {
    EntityType.ORGANIZATION: "organizations",
    EntityType.COMMUNITY: "communities",
    EntityType.PROFILE: "profiles",
    EntityType.STORY: "stories",
}


@dataclass
class EntityStats:
    """Counters for one entity type."""

    processed: int = 0
    created: int = 0
    reused: int = 0
    errors: int = 0
    warnings: int = 0


@dataclass
class MetricsReport:
    """Aggregate counts recomputed from the target store."""

    total_stories: int
    total_communities: int
    total_storytellers: int
    computed_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def as_metrics(self) -> dict[str, int]:
        return {
            "total_stories": self.total_stories,
            "total_communities": self.total_communities,
            "total_storytellers": self.total_storytellers,
        }


@dataclass
class RunArtifacts:
    """Paths written by the finalizer."""

    log_path: Path
    stats_path: Path
    error_log_path: Path | None = None


@dataclass
class RunContext:
    """State of one migration run."""

    run_id: str = field(default_factory=lambda: uuid4().hex[:12])
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    phase: MigrationPhase = MigrationPhase.INIT
    stats: dict[EntityType, EntityStats] = field(
        default_factory=lambda: {entity_type: EntityStats() for entity_type in STATS_KEYS}
    )
    registries: RegistrySet = field(default_factory=RegistrySet)
    log_lines: list[str] = field(default_factory=list)
    error_lines: list[str] = field(default_factory=list)
    metrics: MetricsReport | None = None
    artifacts: RunArtifacts | None = None
    failure: str | None = None
    total_duration_ms: int | None = None
    _start_monotonic: float = field(default_factory=time.monotonic, repr=False)

    def enter_phase(self, phase: MigrationPhase) -> None:
        """Move the run to ``phase``. Terminal phases are final."""
        if self.phase in TERMINAL_PHASES:
            raise RuntimeError(
                f"Run {self.run_id} already {self.phase.value}, cannot enter {phase.value}"
            )
        logger.info(
            f"Run {self.run_id}: {self.phase.value} -> {phase.value}",
            extra={
                "run_id": self.run_id,
                "previous_phase": self.phase.value,
                "new_phase": phase.value,
            },
        )
        self.phase = phase

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self._start_monotonic) * 1000)

    @property
    def timestamp_slug(self) -> str:
        """Start time usable in file names."""
        return self.started_at.isoformat().replace(":", "-").replace(".", "-")

    @contextmanager
    def capture_logs(self) -> Iterator[RunLogHandler]:
        """Mirror every log record emitted during the block into this run."""
        handler = RunLogHandler(self.log_lines, self.error_lines)
        root_logger = logging.getLogger()
        previous_level = root_logger.level
        if root_logger.level > logging.INFO or root_logger.level == logging.NOTSET:
            root_logger.setLevel(logging.INFO)
        handler.setLevel(logging.INFO)
        root_logger.addHandler(handler)
        try:
            yield handler
        finally:
            root_logger.removeHandler(handler)
            root_logger.setLevel(previous_level)

    def stats_document(self) -> dict[str, Any]:
        """Statistics snapshot persisted by the finalizer."""
        document: dict[str, Any] = {
            key: asdict(self.stats[entity_type]) for entity_type, key in STATS_KEYS.items()
        }
        document["totalDuration"] = (
            self.total_duration_ms if self.total_duration_ms is not None else self.elapsed_ms()
        )
        document["runId"] = self.run_id
        document["startedAt"] = self.started_at.isoformat()
        document["phase"] = self.phase.value
        document["failure"] = self.failure
        document["metrics"] = self.metrics.as_metrics() if self.metrics else None
        return document

    def write_artifacts(self, log_dir: Path) -> RunArtifacts:
        """Write the run log, the error log (if any) and the statistics."""
        log_dir.mkdir(parents=True, exist_ok=True)
        timestamp = self.timestamp_slug

        log_path = log_dir / f"migration-{timestamp}.log"
        log_path.write_text("\n".join(self.log_lines), encoding="utf-8")

        error_log_path: Path | None = None
        if self.error_lines:
            error_log_path = log_dir / f"errors-{timestamp}.log"
            error_log_path.write_text("\n".join(self.error_lines), encoding="utf-8")

        stats_path = log_dir / f"stats-{timestamp}.json"
        stats_path.write_text(
            json.dumps(self.stats_document(), indent=2), encoding="utf-8"
        )

        return RunArtifacts(
            log_path=log_path,
            stats_path=stats_path,
            error_log_path=error_log_path,
        )
