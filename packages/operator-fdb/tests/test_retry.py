"""
Tests for conflict retry and structured fan-out.
"""

import asyncio

import pytest

from operator_fdb.cluster import FoundationDBCluster
from operator_fdb.errors import ConflictingUpdateError
from operator_fdb.reconcile.concurrency import fan_out, join_all
from operator_fdb.reconcile.retry import RetryConfig, update_cluster, update_with_retry

FAST = RetryConfig(max_attempts=3, min_wait_seconds=0.001, max_wait_seconds=0.002)


class TestRetryConfig:
    """Tests for backoff calculation."""

    def test_delay_grows_and_is_capped(self):
        config = RetryConfig(min_wait_seconds=1.0, max_wait_seconds=4.0, jitter_fraction=0.0)
        assert config.calculate_delay(0) == 1.0
        assert config.calculate_delay(1) == 2.0
        assert config.calculate_delay(5) == 4.0

    def test_jitter_is_bounded(self):
        config = RetryConfig(min_wait_seconds=1.0, jitter_fraction=0.5)
        for _ in range(20):
            assert 1.0 <= config.calculate_delay(0) <= 1.5

    def test_should_retry(self):
        config = RetryConfig(max_attempts=2)
        assert config.should_retry(1)
        assert not config.should_retry(2)


class TestUpdateWithRetry:
    """Tests for the refetch-and-reapply loop."""

    @pytest.mark.asyncio
    async def test_plain_update(self, ctx, platform):
        def apply(cluster):
            cluster.spec.configured = True

        updated = await update_with_retry(platform, ctx.cluster, apply, config=FAST)

        assert updated.spec.configured is True
        assert ctx.cluster.spec.configured is False

    @pytest.mark.asyncio
    async def test_stale_copy_is_refetched(self, ctx, platform):
        """A concurrent writer's change survives; ours is reapplied on top."""
        concurrent = platform.find(FoundationDBCluster, "my-ns", "my-cluster")
        concurrent.spec.storage_engine = "memory"
        await platform.update_object(concurrent)

        def apply(cluster):
            cluster.spec.configured = True

        updated = await update_with_retry(platform, ctx.cluster, apply, config=FAST)

        assert updated.spec.configured is True
        assert updated.spec.storage_engine == "memory"

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, ctx, platform):
        platform.conflicts_remaining = 10

        with pytest.raises(ConflictingUpdateError):
            await update_with_retry(platform, ctx.cluster, lambda c: None, config=FAST)

        assert platform.conflicts_remaining == 7

    @pytest.mark.asyncio
    async def test_update_cluster_refreshes_context(self, ctx, platform):
        before = ctx.cluster.metadata.resource_version

        def apply(cluster):
            cluster.status.generations_reconciled = 3

        await update_cluster(ctx, apply, status=True)

        assert ctx.cluster.metadata.resource_version != before
        stored = platform.find(FoundationDBCluster, "my-ns", "my-cluster")
        assert stored.status.generations_reconciled == 3


class TestJoinAll:
    """Tests for structured fan-out."""

    @pytest.mark.asyncio
    async def test_results_keep_order(self):
        async def work(n):
            await asyncio.sleep(0.01 * (3 - n))
            return n * 10

        assert await fan_out([1, 2, 3], work) == [10, 20, 30]

    @pytest.mark.asyncio
    async def test_all_work_finishes_before_error(self):
        finished = []

        async def fail():
            raise ValueError("first")

        async def slow():
            await asyncio.sleep(0.02)
            finished.append("slow")

        with pytest.raises(ValueError, match="first"):
            await join_all(fail(), slow())

        assert finished == ["slow"]
