"""
Tests for the instance creation and default-value steps.
"""

import logging

import pytest

from conftest import make_pod
from operator_fdb.cluster import ContainerOverrides, FoundationDBCluster
from operator_fdb.naming import INSTANCE_ID_LABEL, PROCESS_CLASS_LABEL
from operator_fdb.reconcile.add_instances import AddInstances
from operator_fdb.reconcile.defaults import SetDefaultValues
from operator_fdb.resources import PersistentVolumeClaim, Pod


class TestSetDefaultValues:
    """Tests for SetDefaultValues."""

    @pytest.mark.asyncio
    async def test_persists_defaults(self, ctx, platform):
        result = await SetDefaultValues().reconcile(ctx)

        assert result.done
        stored = platform.find(FoundationDBCluster, "my-ns", "my-cluster")
        assert stored.spec.replication_mode == "double"
        assert stored.spec.storage_engine == "ssd"
        assert ctx.cluster.spec.replication_mode == "double"

    @pytest.mark.asyncio
    async def test_keeps_user_values(self, ctx, platform):
        ctx.cluster.spec.replication_mode = "triple"
        ctx.cluster.spec.storage_engine = "memory"
        version = ctx.cluster.metadata.resource_version

        await SetDefaultValues().reconcile(ctx)
        assert ctx.cluster.metadata.resource_version == version

    @pytest.mark.asyncio
    async def test_warns_when_sidecar_cannot_serve_tls(self, ctx, caplog):
        ctx.cluster.spec.version = "6.2.11"
        ctx.cluster.spec.sidecar_container = ContainerOverrides(enable_tls=True)

        with caplog.at_level(logging.WARNING, logger="operator_fdb.reconcile.defaults"):
            result = await SetDefaultValues().reconcile(ctx)

        assert result.done
        assert "predates sidecar TLS support" in caplog.text

    @pytest.mark.asyncio
    async def test_no_tls_warning_for_supported_version(self, ctx, caplog):
        ctx.cluster.spec.sidecar_container = ContainerOverrides(enable_tls=True)

        with caplog.at_level(logging.WARNING, logger="operator_fdb.reconcile.defaults"):
            await SetDefaultValues().reconcile(ctx)

        assert "predates sidecar TLS support" not in caplog.text


class TestAddInstances:
    """Tests for AddInstances."""

    @pytest.mark.asyncio
    async def test_creates_storage_instances_for_coordinators(self, ctx, platform):
        result = await AddInstances().reconcile(ctx)

        assert result.done
        pods = platform.all(Pod)
        assert sorted(p.metadata.labels[INSTANCE_ID_LABEL] for p in pods) == [
            "storage-1",
            "storage-2",
            "storage-3",
        ]
        claims = platform.all(PersistentVolumeClaim)
        assert len(claims) == 3
        assert ctx.cluster.spec.next_instance_id == 4

    @pytest.mark.asyncio
    async def test_creates_requested_counts_per_class(self, ctx, platform):
        ctx.cluster.spec.process_counts = {"storage": 1, "log": 2, "stateless": 1}
        ctx.cluster = await platform.update_object(ctx.cluster)

        await AddInstances().reconcile(ctx)

        by_class = {}
        for pod in platform.all(Pod):
            by_class.setdefault(pod.metadata.labels[PROCESS_CLASS_LABEL], []).append(pod)
        assert {k: len(v) for k, v in by_class.items()} == {"storage": 1, "log": 2, "stateless": 1}
        # Stateless instances have no claim
        assert len(platform.all(PersistentVolumeClaim)) == 3
        assert ctx.cluster.spec.next_instance_id == 5

    @pytest.mark.asyncio
    async def test_is_idempotent(self, ctx, platform):
        await AddInstances().reconcile(ctx)
        created = len(platform.created)

        await AddInstances().reconcile(ctx)
        assert len(platform.created) == created

    @pytest.mark.asyncio
    async def test_skips_ids_in_use(self, ctx, platform):
        """A pod left over from an earlier counter value keeps its id."""
        platform.add(make_pod(ctx.cluster, "storage", 1))

        await AddInstances().reconcile(ctx)

        ids = sorted(p.metadata.labels[INSTANCE_ID_LABEL] for p in platform.all(Pod))
        assert ids == ["storage-1", "storage-2", "storage-3"]

    @pytest.mark.asyncio
    async def test_existing_claim_is_reused(self, ctx, platform):
        from operator_fdb.builder.claims import build_volume_claim

        platform.add(build_volume_claim(ctx.cluster, "storage", 1))
        await AddInstances().reconcile(ctx)

        assert len(platform.all(PersistentVolumeClaim)) == 3
        assert len(platform.all(Pod)) == 3
