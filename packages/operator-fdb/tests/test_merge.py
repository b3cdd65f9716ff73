"""
Tests for the layered override merge.

These tests verify the per-field merge rules shared by pods, claims and
deployments, and that inputs are never mutated.
"""

from operator_fdb.builder.merge import merge, merge_layers
from operator_fdb.resources import (
    Container,
    EmptyDirVolumeSource,
    EnvVar,
    ObjectMeta,
    PodSpec,
    PodTemplateSpec,
    ResourceRequirements,
    Volume,
    VolumeMount,
)


def template(**spec) -> PodTemplateSpec:
    return PodTemplateSpec(metadata=ObjectMeta(), spec=PodSpec(**spec))


class TestScalarsAndDicts:
    """Tests for plain fields."""

    def test_none_override_returns_copy_of_base(self):
        base = Container(name="main", image="a")
        result = merge(base, None)
        assert result == base
        assert result is not base

    def test_unset_fields_keep_base_value(self):
        base = Container(name="main", image="a", command=["run"])
        result = merge(base, Container(name="main", args=["--x"]))
        assert result.image == "a"
        assert result.command == ["run"]
        assert result.args == ["--x"]

    def test_scalar_is_replaced(self):
        result = merge(Container(name="main", image="a"), Container(name="main", image="b"))
        assert result.image == "b"

    def test_dicts_merge_key_wise(self):
        base = ObjectMeta(labels={"a": "1", "b": "2"})
        result = merge(base, ObjectMeta(labels={"b": "3", "c": "4"}))
        assert result.labels == {"a": "1", "b": "3", "c": "4"}

    def test_nested_models_merge_recursively(self):
        base = Container(name="main", resources=ResourceRequirements(limits={"cpu": "1"}))
        override = Container(name="main", resources=ResourceRequirements(requests={"cpu": "2"}))
        result = merge(base, override)
        assert result.resources.limits == {"cpu": "1"}
        assert result.resources.requests == {"cpu": "2"}


class TestNamedLists:
    """Tests for containers, volumes, env and mounts."""

    def test_containers_merge_by_name(self):
        base = template(containers=[Container(name="main", image="a", args=["x"])])
        override = template(containers=[Container(name="main", image="b")])
        result = merge(base, override)
        assert len(result.spec.containers) == 1
        assert result.spec.containers[0].image == "b"
        assert result.spec.containers[0].args == ["x"]

    def test_new_containers_are_appended(self):
        base = template(containers=[Container(name="main")])
        override = template(containers=[Container(name="extra", image="busybox")])
        result = merge(base, override)
        assert [c.name for c in result.spec.containers] == ["main", "extra"]

    def test_volumes_replace_by_name(self):
        base = template(volumes=[Volume(name="data", empty_dir=EmptyDirVolumeSource(medium="Memory"))])
        override = template(volumes=[Volume(name="data", empty_dir=EmptyDirVolumeSource())])
        result = merge(base, override)
        assert result.spec.volumes[0].empty_dir.medium is None

    def test_env_override_wins_and_keeps_base_entries(self):
        base = Container(name="main", env=[EnvVar(name="A", value="1"), EnvVar(name="B", value="2")])
        override = Container(name="main", env=[EnvVar(name="B", value="3")])
        result = merge(base, override)
        assert [(e.name, e.value) for e in result.env] == [("B", "3"), ("A", "1")]

    def test_volume_mounts_keyed_by_path(self):
        base = Container(name="main", volume_mounts=[VolumeMount(name="a", mount_path="/a")])
        override = Container(name="main", volume_mounts=[VolumeMount(name="b", mount_path="/a")])
        result = merge(base, override)
        assert [m.name for m in result.volume_mounts] == ["b"]


class TestLayers:
    """Tests for ordered layer application."""

    def test_later_layers_take_precedence(self):
        base = template(containers=[Container(name="main", image="base")])
        layers = [
            template(containers=[Container(name="main", image="first")]),
            None,
            template(containers=[Container(name="main", image="second")]),
        ]
        result = merge_layers(base, layers)
        assert result.spec.containers[0].image == "second"

    def test_inputs_are_not_mutated(self):
        base = template(containers=[Container(name="main", image="base")])
        layer = template(containers=[Container(name="main", image="layer")])
        merge_layers(base, [layer])
        assert base.spec.containers[0].image == "base"
        assert layer.spec.containers[0].image == "layer"
