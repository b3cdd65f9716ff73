"""
Conflict retry for optimistic-concurrency writes.

The platform rejects a write whose resource version is stale with
ConflictingUpdateError. update_with_retry() handles that by refetching the
object, reapplying the same mutation to the fresh copy and writing again,
backing off exponentially between attempts. Mutations must therefore be
functions of the object they receive, never of a copy captured earlier.

Example:
    def set_configured(cluster):
        cluster.spec.configured = True

    ctx.cluster = await update_with_retry(ctx.platform, ctx.cluster, set_configured)
"""

import asyncio
import logging
import random
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from operator_fdb.clients.platform import PlatformClient
from operator_fdb.cluster import FoundationDBCluster
from operator_fdb.errors import ConflictingUpdateError
from operator_fdb.reconcile.types import ReconcileContext
from operator_fdb.resources import KubeModel

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=KubeModel)


@dataclass
class RetryConfig:
    """
    Configuration for conflict retry behavior.

    Attributes:
        max_attempts: Maximum number of writes (default 3)
        min_wait_seconds: Wait before the first retry (default 0.1)
        max_wait_seconds: Maximum wait between retries (default 2.0)
        exponential_base: Base for exponential calculation (default 2.0)
        jitter_fraction: Fraction of wait time to add as jitter (default 0.5)
    """

    max_attempts: int = 3
    min_wait_seconds: float = 0.1
    max_wait_seconds: float = 2.0
    exponential_base: float = 2.0
    jitter_fraction: float = 0.5

    def calculate_delay(self, attempt: int) -> float:
        """
        Seconds to wait before the given retry.

        Formula: min(max_wait, min_wait * base^attempt) + random(0, wait * jitter)
        """
        wait = min(
            self.max_wait_seconds,
            self.min_wait_seconds * (self.exponential_base**attempt),
        )
        return wait + random.uniform(0, wait * self.jitter_fraction)

    def should_retry(self, attempt_count: int) -> bool:
        return attempt_count < self.max_attempts


async def update_with_retry(
    platform: PlatformClient,
    obj: R,
    mutate: Callable[[R], None],
    status: bool = False,
    config: RetryConfig | None = None,
) -> R:
    """
    Apply mutate to obj and write it, refetching on conflict.

    Args:
        platform: Platform client used for writes and refetches
        obj: Latest known copy of the object; not modified
        mutate: Changes to apply, called on a fresh copy each attempt
        status: Write the status subresource instead of the object
        config: Retry settings (defaults to RetryConfig())

    Returns:
        The object as stored by the platform.

    Raises:
        ConflictingUpdateError: If every attempt conflicted.
    """
    config = config or RetryConfig()
    current = obj
    attempts = 0

    while True:
        candidate = current.model_copy(deep=True)
        mutate(candidate)
        try:
            if status:
                return await platform.update_status(candidate)
            return await platform.update_object(candidate)
        except ConflictingUpdateError:
            attempts += 1
            if not config.should_retry(attempts):
                raise
            delay = config.calculate_delay(attempts - 1)
            logger.info(
                "Conflict writing %s %s, retrying in %.2fs",
                current.kind, current.metadata.name, delay,
            )
            await asyncio.sleep(delay)

        fresh = await platform.get_object(
            type(current), current.metadata.namespace or "default", current.metadata.name
        )
        if fresh is None:
            raise ConflictingUpdateError(current.kind, current.metadata.name or "")
        current = fresh


async def update_cluster(
    ctx: ReconcileContext,
    mutate: Callable[[FoundationDBCluster], None],
    status: bool = False,
) -> None:
    """Write a change to the cluster and keep ctx.cluster current."""
    config = RetryConfig(max_attempts=ctx.settings.conflict_retry_attempts)
    ctx.cluster = await update_with_retry(
        ctx.platform, ctx.cluster, mutate, status=status, config=config
    )
