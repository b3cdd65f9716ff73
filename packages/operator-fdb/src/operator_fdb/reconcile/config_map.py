"""Keep the shared config map equal to its desired content."""

import logging

from operator_fdb.builder.config_map import build_config_map
from operator_fdb.reconcile.retry import RetryConfig, update_with_retry
from operator_fdb.reconcile.types import ReconcileContext, StepResult
from operator_fdb.resources import ConfigMap

logger = logging.getLogger(__name__)


class UpdateConfigMap:
    """
    Create the config map when missing, update it when it has drifted.

    Data and labels must match exactly. Desired annotations are merged into
    the existing ones so annotations written by other tools survive.
    """

    name = "update_config_map"
    requeue_after = 0.0

    async def reconcile(self, ctx: ReconcileContext) -> StepResult:
        cluster = ctx.cluster
        desired = build_config_map(cluster)
        existing = await ctx.platform.get_object(
            ConfigMap, desired.metadata.namespace, desired.metadata.name
        )

        if existing is None:
            logger.info("Creating config map %s/%s", desired.metadata.namespace, desired.metadata.name)
            await ctx.platform.create_object(desired)
            return StepResult()

        if not _needs_update(existing, desired):
            logger.debug("Config map %s is up to date", desired.metadata.name)
            return StepResult()

        def apply(config_map: ConfigMap) -> None:
            config_map.metadata.labels = dict(desired.metadata.labels or {})
            config_map.metadata.annotations = {
                **(config_map.metadata.annotations or {}),
                **(desired.metadata.annotations or {}),
            } or None
            config_map.data = dict(desired.data or {})

        logger.info("Updating config map %s/%s", desired.metadata.namespace, desired.metadata.name)
        await ctx.platform.record_event(cluster, "Normal", "UpdatingConfigMap", desired.metadata.name)
        await update_with_retry(
            ctx.platform,
            existing,
            apply,
            config=RetryConfig(max_attempts=ctx.settings.conflict_retry_attempts),
        )
        return StepResult()


def _needs_update(existing: ConfigMap, desired: ConfigMap) -> bool:
    if (existing.data or {}) != (desired.data or {}):
        return True
    if (existing.metadata.labels or {}) != (desired.metadata.labels or {}):
        return True
    current = existing.metadata.annotations or {}
    return any(current.get(key) != value for key, value in (desired.metadata.annotations or {}).items())
