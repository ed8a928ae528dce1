"""Recursive cloning of a value graph through an allocator."""

from __future__ import annotations

import collections
import dataclasses
import functools
import types
from typing import Any

from reclone.kinds import FieldTag, Kind, StructType, kind_of, struct_fields

_MISSING = object()


@functools.cache
def _slot_attributes(cls: type) -> tuple[str, ...]:
    """Names of the declared fields of ``cls`` that live in slots."""
    return tuple(
        field.name
        for field in struct_fields(cls)
        if isinstance(getattr(cls, field.name, None), types.MemberDescriptorType)
    )


def _attributes(obj: Any) -> list[tuple[str, Any]]:
    """Snapshot of the instance attributes of ``obj``, dict entries first."""
    namespace = getattr(obj, "__dict__", None)
    items = list(namespace.items()) if isinstance(namespace, dict) else []
    present = {name for name, _ in items}
    for name in _slot_attributes(type(obj)):
        if name in present:
            continue
        try:
            items.append((name, getattr(obj, name)))
        except AttributeError:
            continue
    return items


def _store(obj: Any, name: str, value: Any) -> None:
    """Set an attribute, bypassing custom or frozen ``__setattr__``."""
    namespace = getattr(obj, "__dict__", None)
    if isinstance(namespace, dict) and name not in _slot_attributes(type(obj)):
        namespace[name] = value
    else:
        object.__setattr__(obj, name, value)


def _shadow_copy(src: Any, dst: Any) -> None:
    for name, value in _attributes(src):
        _store(dst, name, value)


def _build_tuple(cls: type, items: list[Any]) -> tuple:
    if cls is tuple:
        return tuple(items)
    make = getattr(cls, "_make", None)
    if make is not None:
        return make(items)
    return cls(items)


@dataclasses.dataclass
class CloneState:
    """One cloning pass over a value graph.

    The allocator supplies ``is_scalar(kind)``, ``new(t)``,
    ``make_slice(t, length)``, ``make_map(t, size)``, ``make_chan(t, buffer)``,
    ``load_struct_type(t)``, ``is_opaque_pointer(t)`` and
    ``_lookup_ptr_func(t)``.

    With ``track_visited`` every cloned container and object is remembered,
    so shared references stay shared and reference cycles are reproduced.
    Without it, shared values are cloned once per reference and a cycle
    raises ``RecursionError``.

    ``skip_custom_func_value`` is an object whose custom clone functions are
    not applied, so that a custom function may clone its own input.
    """

    allocator: Any
    track_visited: bool = False
    skip_custom_func_value: Any = None
    _visited: dict[int, tuple[Any, Any]] | None = dataclasses.field(
        default=None, init=False, repr=False
    )

    def __post_init__(self) -> None:
        if self.track_visited:
            self._visited = {}

    def clone(self, value: Any) -> Any:
        """Return a deep clone of ``value``."""
        kind = kind_of(value)
        if self.allocator.is_scalar(kind):
            return value

        match kind:
            case Kind.INVALID:
                return value
            case Kind.STRING:
                return type(value)(
                    value.encode("utf-8", "surrogatepass").decode("utf-8", "surrogatepass")
                )
            case Kind.BYTES:
                return type(value)(bytearray(value))
            case Kind.ARRAY:
                return self._clone_array(value)
            case Kind.SLICE:
                return self._clone_slice(value)
            case Kind.MAP:
                return self._clone_map(value)
            case Kind.SET:
                return self._clone_set(value)
            case Kind.CHAN:
                return self.allocator.make_chan(type(value), getattr(value, "maxsize", 0))
            case Kind.STRUCT:
                return self._clone_struct(value)
            case _:
                raise TypeError(
                    f"unsupported type {type(value).__name__!r} of kind {kind.value!r}"
                )

    def _seen(self, value: Any) -> Any:
        if self._visited is None:
            return _MISSING
        entry = self._visited.get(id(value))
        return _MISSING if entry is None else entry[1]

    def _remember(self, value: Any, cloned: Any) -> None:
        if self._visited is not None:
            # The original is kept alive so that its id stays unique.
            self._visited[id(value)] = (value, cloned)

    def _clone_array(self, value: tuple) -> tuple:
        if (hit := self._seen(value)) is not _MISSING:
            return hit
        items = [self.clone(item) for item in value]
        # A cycle through a mutable element may have cloned this tuple already.
        if (hit := self._seen(value)) is not _MISSING:
            return hit
        cloned = _build_tuple(type(value), items)
        self._remember(value, cloned)
        return cloned

    def _clone_slice(self, value: Any) -> Any:
        if (hit := self._seen(value)) is not _MISSING:
            return hit
        cloned = self.allocator.make_slice(type(value), len(value))
        self._remember(value, cloned)
        if isinstance(value, bytearray):
            cloned[:] = value
        else:
            cloned[:] = [self.clone(item) for item in value]
        return cloned

    def _clone_map(self, value: dict) -> dict:
        if (hit := self._seen(value)) is not _MISSING:
            return hit
        cloned = self.allocator.make_map(type(value), len(value))
        self._remember(value, cloned)
        if isinstance(value, collections.defaultdict):
            cloned.default_factory = value.default_factory
        for key, item in list(value.items()):
            new_key = self.clone(key)
            cloned[new_key] = self.clone(item)
        return cloned

    def _clone_set(self, value: set | frozenset) -> set | frozenset:
        if (hit := self._seen(value)) is not _MISSING:
            return hit
        if isinstance(value, frozenset):
            items = [self.clone(item) for item in value]
            if (hit := self._seen(value)) is not _MISSING:
                return hit
            cloned = type(value)(items)
            self._remember(value, cloned)
            return cloned
        cloned = self.allocator.new(type(value))
        self._remember(value, cloned)
        cloned.update([self.clone(item) for item in list(value)])
        return cloned

    def _clone_struct(self, value: Any) -> Any:
        cls = type(value)
        skip_custom = value is self.skip_custom_func_value

        ptr_func = self.allocator._lookup_ptr_func(cls)
        if ptr_func is not None and not skip_custom:
            return ptr_func(self.allocator, value)

        if self.allocator.is_opaque_pointer(cls):
            return value

        if (hit := self._seen(value)) is not _MISSING:
            return hit

        struct_type = self.allocator.load_struct_type(cls)
        cloned = self.allocator.new(cls)
        self._remember(value, cloned)

        result = self._copy_struct(value, cloned, struct_type, skip_custom)
        if result is not cloned:
            self._remember(value, result)
        return result

    def _copy_struct(
        self, src: Any, dst: Any, struct_type: StructType, skip_custom: bool
    ) -> Any:
        if struct_type.fn is not None and not skip_custom:
            result = struct_type.fn(self.allocator, src, dst)
            return dst if result is None else result

        _shadow_copy(src, dst)
        if struct_type.scalar:
            return dst

        for field in struct_type.zero_fields:
            _store(dst, field.name, field.zero())

        tags = struct_type.tags
        for name, item in _attributes(src):
            if tags.get(name, FieldTag.DEEP) is FieldTag.DEEP:
                _store(dst, name, self.clone(item))
        return dst