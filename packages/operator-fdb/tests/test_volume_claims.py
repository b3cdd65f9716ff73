"""
Tests for desired persistent volume claims.

Claim settings merge from the deprecated flat fields, the global claim and
the per-class claims. A zero size through any path means no claim.
"""

import pytest

from conftest import make_cluster
from operator_fdb.builder.claims import build_volume_claim, claim_spec_hash, is_zero_quantity
from operator_fdb.cluster import ProcessSettings
from operator_fdb.naming import INSTANCE_ID_LABEL, LAST_SPEC_KEY
from operator_fdb.resources import (
    ObjectMeta,
    PersistentVolumeClaim,
    PersistentVolumeClaimSpec,
    ResourceRequirements,
)


def sized_claim(size: str, name: str | None = None) -> PersistentVolumeClaim:
    return PersistentVolumeClaim(
        metadata=ObjectMeta(name=name),
        spec=PersistentVolumeClaimSpec(resources=ResourceRequirements(requests={"storage": size})),
    )


class TestClaimShape:
    """Tests for the default claim."""

    def test_default_claim(self):
        claim = build_volume_claim(make_cluster(), "storage", 1)
        assert claim.metadata.name == "my-cluster-storage-1-data"
        assert claim.metadata.namespace == "my-ns"
        assert claim.spec.access_modes == ["ReadWriteOnce"]
        assert claim.spec.resources.requests == {"storage": "128G"}
        assert claim.metadata.labels[INSTANCE_ID_LABEL] == "storage-1"
        assert claim.metadata.owner_references[0].uid == "cluster-uid-1"

    def test_claim_is_stamped_with_hash(self):
        cluster = make_cluster()
        claim = build_volume_claim(cluster, "log", 2)
        assert claim.metadata.annotations[LAST_SPEC_KEY] == claim_spec_hash(cluster, "log", 2)

    def test_stateless_classes_have_no_claim(self):
        assert build_volume_claim(make_cluster(), "stateless", 1) is None
        assert claim_spec_hash(make_cluster(), "proxy", 1) is None

    def test_claim_name_suffix_from_override(self):
        cluster = make_cluster(volume_claim=sized_claim("10G", name="fast"))
        claim = build_volume_claim(cluster, "storage", 1)
        assert claim.metadata.name == "my-cluster-storage-1-fast"


class TestClaimPrecedence:
    """Tests for size resolution across the claim layers."""

    def test_deprecated_volume_size(self):
        claim = build_volume_claim(make_cluster(volume_size="64G"), "storage", 1)
        assert claim.spec.resources.requests["storage"] == "64G"

    def test_deprecated_storage_class(self):
        claim = build_volume_claim(make_cluster(storage_class="fast-ssd"), "storage", 1)
        assert claim.spec.storage_class_name == "fast-ssd"
        assert claim.spec.resources.requests["storage"] == "128G"

    def test_global_claim_beats_deprecated_size(self):
        cluster = make_cluster(volume_size="64G", volume_claim=sized_claim("256G"))
        claim = build_volume_claim(cluster, "storage", 1)
        assert claim.spec.resources.requests["storage"] == "256G"

    def test_class_claim_wins(self):
        cluster = make_cluster(
            volume_claim=sized_claim("256G"),
            processes={
                "general": ProcessSettings(volume_claim=sized_claim("512G")),
                "log": ProcessSettings(volume_claim=sized_claim("32G")),
            },
        )
        assert build_volume_claim(cluster, "log", 1).spec.resources.requests["storage"] == "32G"
        assert build_volume_claim(cluster, "storage", 1).spec.resources.requests["storage"] == "512G"


class TestZeroSize:
    """A zero size through any path disables the claim."""

    @pytest.mark.parametrize(
        "spec",
        [
            {"volume_size": "0"},
            {"volume_claim": sized_claim("0")},
            {"processes": {"storage": ProcessSettings(volume_claim=sized_claim("0"))}},
        ],
        ids=["deprecated", "global", "per-class"],
    )
    def test_zero_size_means_no_claim(self, spec):
        assert build_volume_claim(make_cluster(**spec), "storage", 1) is None

    def test_zero_size_uses_empty_dir_data_volume(self):
        from operator_fdb.builder.pods import build_pod_spec

        spec = build_pod_spec(make_cluster(volume_size="0"), "storage", 1)
        assert spec.volumes[0].empty_dir is not None

    @pytest.mark.parametrize(
        "quantity,expected",
        [("0", True), ("0Gi", True), ("0.0", True), ("10G", False), (None, False)],
    )
    def test_is_zero_quantity(self, quantity, expected):
        assert is_zero_quantity(quantity) is expected
