"""
Tests for the shared config map and fdbmonitor configuration.
"""

import json

from conftest import make_cluster
from operator_fdb.builder.config_map import (
    build_config_map,
    config_map_hash,
    monitor_conf,
    pod_monitor_conf,
    sidecar_conf,
)
from operator_fdb.cluster import FoundationDBClusterFaultDomain
from operator_fdb.naming import CLUSTER_NAME_LABEL
from operator_fdb.resources import ConfigMap, ObjectMeta, PodStatus

CONNECTION_STRING = "my_cluster:init@10.0.0.1:4500"


class TestMonitorConf:
    """Tests for the fdbmonitor.conf template."""

    def test_template_lines(self):
        lines = monitor_conf(make_cluster(), "storage").split("\n")
        assert lines[:4] == [
            "[general]",
            "kill_on_configuration_change = false",
            "restart_delay = 60",
            "[fdbserver.1]",
        ]
        assert "command = /var/dynamic-conf/bin/6.2.20/fdbserver" in lines
        assert "public_address = $FDB_PUBLIC_IP:4500" in lines
        assert "class = storage" in lines
        assert "loggroup = my-cluster" in lines
        assert lines[-1] == "locality_zoneid = $FDB_ZONE_ID"

    def test_custom_parameters_are_appended(self):
        cluster = make_cluster(custom_parameters=["knob_disable_posix_kernel_aio = 1"])
        assert monitor_conf(cluster, "log").endswith("\nknob_disable_posix_kernel_aio = 1")

    def test_zone_variable_placeholder(self):
        cluster = make_cluster(
            fault_domain=FoundationDBClusterFaultDomain(key="rack", value_from="$RACK")
        )
        assert "locality_zoneid = $RACK" in monitor_conf(cluster, "storage")

    def test_pod_monitor_conf_substitutes_pod_values(self):
        cluster = make_cluster(
            connection_string=CONNECTION_STRING,
            fault_domain=FoundationDBClusterFaultDomain(key="foundationdb.org/none"),
        )
        from operator_fdb.builder.pods import build_pod

        pod = build_pod(cluster, "storage", 1)
        pod.status = PodStatus(pod_ip="10.0.0.7")
        conf = pod_monitor_conf(cluster, pod)
        assert "public_address = 10.0.0.7:4500" in conf
        assert "locality_instance_id = storage-1" in conf
        assert "locality_machineid = my-cluster-storage-1" in conf
        assert "locality_zoneid = my-cluster-storage-1" in conf
        assert "$" not in conf

    def test_pod_monitor_conf_keeps_unknown_placeholders(self):
        cluster = make_cluster(
            fault_domain=FoundationDBClusterFaultDomain(key="rack", value_from="$RACK")
        )
        from operator_fdb.builder.pods import build_pod

        pod = build_pod(cluster, "storage", 1)
        pod.status = PodStatus(pod_ip="10.0.0.7")
        assert "locality_zoneid = $RACK" in pod_monitor_conf(cluster, pod)


class TestConfigMap:
    """Tests for the config map contents."""

    def test_empty_connection_string_gives_empty_confs(self):
        data = build_config_map(make_cluster()).data
        assert data["cluster-file"] == ""
        assert data["fdbmonitor-conf-storage"] == ""
        assert data["fdbmonitor-conf-cluster_controller"] == ""

    def test_monitor_conf_per_class(self):
        cluster = make_cluster(connection_string=CONNECTION_STRING)
        data = build_config_map(cluster).data
        assert data["cluster-file"] == CONNECTION_STRING
        assert data["fdbmonitor-conf-log"] == monitor_conf(cluster, "log")
        assert "ca-file" not in data

    def test_extra_process_classes_get_a_conf(self):
        cluster = make_cluster(connection_string=CONNECTION_STRING, process_counts={"coordinator": 1})
        assert "fdbmonitor-conf-coordinator" in build_config_map(cluster).data

    def test_trusted_cas(self):
        cluster = make_cluster(trustedCAs=["ca-one", "ca-two"])
        data = build_config_map(cluster).data
        assert data["ca-file"] == "ca-one\nca-two"
        assert json.loads(data["sidecar-conf"])["COPY_FILES"] == ["fdb.cluster", "ca.pem"]

    def test_metadata(self):
        config_map = build_config_map(make_cluster())
        assert config_map.metadata.name == "my-cluster-config"
        assert config_map.metadata.namespace == "my-ns"
        assert config_map.metadata.labels == {CLUSTER_NAME_LABEL: "my-cluster"}
        assert config_map.metadata.owner_references[0].kind == "FoundationDBCluster"

    def test_override_data_and_metadata(self):
        cluster = make_cluster(
            config_map=ConfigMap(
                metadata=ObjectMeta(name="extra", labels={"team": "db"}, annotations={"a": "b"}),
                data={"note": "hello", "cluster-file": "ignored"},
            )
        )
        config_map = build_config_map(cluster)
        assert config_map.metadata.name == "my-cluster-extra"
        assert config_map.metadata.labels["team"] == "db"
        assert config_map.metadata.annotations == {"a": "b"}
        assert config_map.data["note"] == "hello"
        assert config_map.data["cluster-file"] == ""

    def test_sidecar_conf(self):
        conf = json.loads(sidecar_conf(make_cluster(sidecar_variables=["RACK"])))
        assert conf["COPY_BINARIES"] == ["fdbserver", "fdbcli"]
        assert conf["INPUT_MONITOR_CONF"] == "fdbmonitor.conf"
        assert conf["ADDITIONAL_SUBSTITUTIONS"] == ["RACK"]

    def test_hash_tracks_data(self):
        before = config_map_hash(build_config_map(make_cluster()))
        after = config_map_hash(build_config_map(make_cluster(connection_string=CONNECTION_STRING)))
        assert before == config_map_hash(build_config_map(make_cluster()))
        assert before != after
