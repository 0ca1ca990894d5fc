"""Site metrics recomputation.

Metrics are recomputed from the target store on every run and written by
name, so running the stage twice yields the same values.
"""

from ledger_migration.core.logging import get_logger
from ledger_migration.models import Community, Profile, Story, StoryStatus
from ledger_migration.repositories.target_store import TargetStore, TargetStoreError
from ledger_migration.services.run_context import MetricsReport

logger = get_logger(__name__)


async def compute_metrics(target: TargetStore) -> MetricsReport:
    """Count approved stories, active communities and active storytellers."""
    return MetricsReport(
        total_stories=await target.count(Story, status=StoryStatus.APPROVED.value),
        total_communities=await target.count(Community, is_active=True),
        total_storytellers=await target.count(Profile, is_active=True),
    )


async def update_metrics(target: TargetStore) -> MetricsReport | None:
    """Recompute the metrics and store them in ``site_metrics``.

    A rejected write is logged and the stage still completes; returns None in
    that case. Unrecoverable errors propagate.
    """
    logger.info("Updating site metrics...")
    try:
        report = await compute_metrics(target)
        for name, value in report.as_metrics().items():
            await target.upsert_metric(name, value)
    except TargetStoreError as e:
        logger.error(
            f"Error updating metrics: {e}",
            extra={"table": e.table, "error_code": e.code.value},
        )
        return None

    logger.info(
        "Site metrics updated",
        extra=report.as_metrics(),
    )
    return report
