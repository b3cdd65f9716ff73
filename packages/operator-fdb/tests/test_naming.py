"""
Tests for the resource naming and label scheme.

These tests verify:
- Instance ids are built with and without a prefix and parse back
- Malformed ids raise MalformedIdentifierError
- Pod and config map names follow the cluster name
- Connection string names are sanitized
"""

import pytest

from conftest import make_cluster
from operator_fdb.errors import MalformedIdentifierError
from operator_fdb.naming import (
    CLUSTER_NAME_LABEL,
    INSTANCE_ID_LABEL,
    PROCESS_CLASS_LABEL,
    config_map_name,
    desired_instance_id,
    instance_id,
    label_selector,
    parse_instance_id,
    pod_labels,
    pod_name,
    sanitize_cluster_name,
)
from operator_fdb.resources import ConfigMap, ObjectMeta


class TestInstanceIds:
    """Tests for building and parsing instance ids."""

    def test_instance_id_without_prefix(self):
        assert instance_id(None, "storage", 1) == "storage-1"

    def test_instance_id_with_prefix(self):
        assert instance_id("east", "storage", 3) == "east-storage-3"

    def test_desired_instance_id_uses_cluster_prefix(self):
        cluster = make_cluster(instanceIDPrefix="dc1")
        assert desired_instance_id(cluster, "log", 2) == "dc1-log-2"

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("storage-1", ("storage", 1)),
            ("east-storage-3", ("storage", 3)),
            ("a-b-log-12", ("log", 12)),
        ],
    )
    def test_parse_instance_id(self, value, expected):
        """The class is the component just before the number."""
        assert parse_instance_id(value) == expected

    @pytest.mark.parametrize("value", ["storage", "storage-", "storage-x", "-1", "storage-0", ""])
    def test_parse_rejects_malformed_ids(self, value):
        with pytest.raises(MalformedIdentifierError) as exc_info:
            parse_instance_id(value)
        assert exc_info.value.instance_id == value


class TestNames:
    """Tests for resource names."""

    def test_pod_name_replaces_underscores(self):
        cluster = make_cluster()
        assert pod_name(cluster, "cluster_controller", 1) == "my-cluster-cluster-controller-1"

    def test_pod_name_ignores_prefix(self):
        """The prefix lives in the instance id label, not the pod name."""
        cluster = make_cluster(instanceIDPrefix="east")
        assert pod_name(cluster, "storage", 2) == "my-cluster-storage-2"

    def test_default_config_map_name(self):
        assert config_map_name(make_cluster()) == "my-cluster-config"

    def test_config_map_name_uses_override_suffix(self):
        cluster = make_cluster(config_map=ConfigMap(metadata=ObjectMeta(name="custom")))
        assert config_map_name(cluster) == "my-cluster-custom"

    @pytest.mark.parametrize(
        "name,expected",
        [("my-cluster", "my_cluster"), ("abc_123", "abc_123"), ("a.b/c", "a_b_c")],
    )
    def test_sanitize_cluster_name(self, name, expected):
        assert sanitize_cluster_name(name) == expected


class TestLabels:
    """Tests for the label set used to stamp and select resources."""

    def test_cluster_only_selector(self):
        assert pod_labels(make_cluster()) == {CLUSTER_NAME_LABEL: "my-cluster"}

    def test_full_label_set(self):
        labels = pod_labels(make_cluster(), "storage", "storage-1")
        assert labels == {
            CLUSTER_NAME_LABEL: "my-cluster",
            PROCESS_CLASS_LABEL: "storage",
            INSTANCE_ID_LABEL: "storage-1",
        }

    def test_label_selector_is_sorted(self):
        assert label_selector({"b": "2", "a": "1"}) == "a=1,b=2"
