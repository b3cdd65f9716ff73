"""
Generic layered override merge.

Desired resources are built from a base (the operator's built-in defaults)
plus an ordered list of partial overrides in ascending precedence. Every
resource kind goes through the same routine, so the precedence rules cannot
drift apart between pods, volume claims and deployments.

Rules per field, applied only when the override sets the field (not None):
- scalars and plain lists (image, command, args, ...) are replaced
- dicts (labels, annotations, resource limits) merge key-wise
- nested models merge recursively
- containers / init_containers merge field-by-field by name, else append
- volumes are replaced by name, else appended
- env / volume_mounts concatenate override-then-base; base entries whose
  key the override redefines are dropped

Example:
    template = merge_layers(builtin_template, [deprecated, global_tpl, class_tpl])
"""

import copy
from collections.abc import Callable, Iterable
from typing import Any, TypeVar

from pydantic import BaseModel

M = TypeVar("M", bound=BaseModel)

_MERGE_BY_NAME = frozenset({"containers", "init_containers"})
_REPLACE_BY_NAME = frozenset({"volumes"})
_CONCAT_BY_KEY = {"env": "name", "volume_mounts": "mount_path"}


def merge(base: M | None, override: M | None) -> M | None:
    """
    Merge one override layer onto a base model.

    Neither argument is mutated; the result is a fresh deep copy.
    """
    if override is None:
        return base.model_copy(deep=True) if base is not None else None
    if base is None:
        return override.model_copy(deep=True)

    updates: dict[str, Any] = {}
    for name in type(override).model_fields:
        value = getattr(override, name)
        if value is None:
            continue
        updates[name] = _merge_field(name, getattr(base, name, None), value)

    for name, value in (override.model_extra or {}).items():
        if value is not None:
            updates[name] = copy.deepcopy(value)

    return base.model_copy(deep=True, update=updates)


def merge_layers(base: M, layers: Iterable[M | None]) -> M:
    """Apply override layers in ascending precedence."""
    result = base
    for layer in layers:
        result = merge(result, layer)
    return result


def _merge_field(name: str, prior: Any, value: Any) -> Any:
    if prior is None:
        return copy.deepcopy(value)
    if name in _MERGE_BY_NAME:
        return _merge_named(prior, value, merge)
    if name in _REPLACE_BY_NAME:
        return _merge_named(prior, value, lambda _, item: item.model_copy(deep=True))
    if name in _CONCAT_BY_KEY:
        return _concat(prior, value, _CONCAT_BY_KEY[name])
    if isinstance(prior, BaseModel) and isinstance(value, BaseModel):
        return merge(prior, value)
    if isinstance(prior, dict) and isinstance(value, dict):
        return {**copy.deepcopy(prior), **copy.deepcopy(value)}
    return copy.deepcopy(value)


def _merge_named(
    base: list[M], override: list[M], combine: Callable[[M, M], M]
) -> list[M]:
    result = [item.model_copy(deep=True) for item in base]
    positions = {item.name: index for index, item in enumerate(result)}
    for item in override:
        if item.name in positions:
            index = positions[item.name]
            result[index] = combine(result[index], item)
        else:
            positions[item.name] = len(result)
            result.append(item.model_copy(deep=True))
    return result


def _concat(base: list[M], override: list[M], key: str) -> list[M]:
    redefined = {getattr(item, key) for item in override}
    return [item.model_copy(deep=True) for item in override] + [
        item.model_copy(deep=True) for item in base if getattr(item, key) not in redefined
    ]
