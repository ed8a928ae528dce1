"""Allocators: where cloned values come from and which clone rules apply."""

from __future__ import annotations

import dataclasses
import enum
import queue
import types
from collections.abc import Callable, Iterator
from typing import Any

from reclone.kinds import SCALAR_STRUCT_TYPE, Kind, StructType, struct_fields
from reclone.kinds import is_scalar as _default_is_scalar
from reclone.state import CloneState

NewFunc = Callable[[Any, type], Any]
MakeSliceFunc = Callable[[Any, type, int], Any]
MakeMapFunc = Callable[[Any, type, int], Any]
MakeChanFunc = Callable[[Any, type, int], Any]
IsScalarFunc = Callable[[Kind], bool]

# Classes whose instances are never struct-like and so take no clone rules.
_NON_STRUCT_TYPES = (
    int,
    float,
    complex,
    str,
    bytes,
    bytearray,
    tuple,
    list,
    dict,
    set,
    frozenset,
    type,
    enum.Enum,
    types.NoneType,
    types.FunctionType,
    types.BuiltinFunctionType,
    types.MethodType,
)


def _is_struct_class(t: Any) -> bool:
    return isinstance(t, type) and not issubclass(t, _NON_STRUCT_TYPES)


def _heap_new(pool: Any, t: type) -> Any:
    return t.__new__(t)


def _heap_make_slice(pool: Any, t: type, length: int) -> Any:
    value = t.__new__(t)
    if isinstance(value, bytearray):
        value.extend(bytes(length))
    else:
        value.extend([None] * length)
    return value


def _heap_make_map(pool: Any, t: type, size: int) -> Any:
    return t.__new__(t)


def _heap_make_chan(pool: Any, t: type, buffer: int) -> Any:
    if issubclass(t, queue.SimpleQueue):
        return t()
    return t(buffer)


@dataclasses.dataclass
class AllocatorMethods:
    """Optional allocation hooks; anything left as None is inherited.

    Missing hooks come from ``parent`` or, without a parent, from the heap.
    Every allocation hook receives the allocator's pool as first argument.
    """

    parent: Allocator | None = None
    new: NewFunc | None = None
    make_slice: MakeSliceFunc | None = None
    make_map: MakeMapFunc | None = None
    make_chan: MakeChanFunc | None = None
    is_scalar: IsScalarFunc | None = None


def _resolve(
    methods: AllocatorMethods | None, name: str, parent: Allocator | None, pool: Any
) -> Callable[..., Any]:
    own = getattr(methods, name) if methods is not None else None
    if own is not None:
        return own
    if parent is not None:
        if parent.pool is pool:
            return getattr(parent, f"_{name}")
        delegate = getattr(parent, name)
        return lambda _pool, *args: delegate(*args)
    return getattr(DEFAULT_ALLOCATOR, f"_{name}")


class Allocator:
    """Allocates cloned values and holds per-class clone rules.

    Rules not found on an allocator are looked up on its parent chain.
    """

    # Bumped on every rule change so that cached struct types are rebuilt.
    _revision = 0

    def __init__(self, pool: Any = None, methods: AllocatorMethods | None = None) -> None:
        self._setup(pool, methods)

    def _setup(
        self, pool: Any, methods: AllocatorMethods | None, new: NewFunc | None = None
    ) -> None:
        parent = methods.parent if methods is not None else None
        self._configure(
            pool=pool,
            parent=parent if parent is not None else DEFAULT_ALLOCATOR,
            new=new if new is not None else _resolve(methods, "new", parent, pool),
            make_slice=_resolve(methods, "make_slice", parent, pool),
            make_map=_resolve(methods, "make_map", parent, pool),
            make_chan=_resolve(methods, "make_chan", parent, pool),
            is_scalar=(
                methods.is_scalar
                if methods is not None and methods.is_scalar is not None
                else (parent or DEFAULT_ALLOCATOR)._is_scalar
            ),
        )

    def _configure(
        self,
        *,
        pool: Any,
        parent: Allocator | None,
        new: NewFunc,
        make_slice: MakeSliceFunc,
        make_map: MakeMapFunc,
        make_chan: MakeChanFunc,
        is_scalar: IsScalarFunc,
    ) -> None:
        self.pool = pool
        self.parent = parent
        self._new = new
        self._make_slice = make_slice
        self._make_map = make_map
        self._make_chan = make_chan
        self._is_scalar = is_scalar
        self._struct_types: dict[type, StructType] = {}
        self._cache_revision = Allocator._revision
        self._scalar_types: set[type] = set()
        self._opaque_types: set[type] = set()
        self._custom_funcs: dict[type, Callable[..., Any]] = {}
        self._ptr_funcs: dict[type, Callable[..., Any]] = {}

    def _chain(self) -> Iterator[Allocator]:
        current: Allocator | None = self
        while current is not None:
            yield current
            current = current.parent

    @staticmethod
    def _changed() -> None:
        Allocator._revision += 1

    def new(self, t: type) -> Any:
        """Return a new, uninitialised instance of ``t``."""
        return self._new(self.pool, t)

    def make_slice(self, t: type, length: int) -> Any:
        """Return a new sequence of type ``t`` holding ``length`` zero items."""
        return self._make_slice(self.pool, t, length)

    def make_map(self, t: type, size: int) -> Any:
        """Return a new empty mapping of type ``t``; ``size`` is a hint."""
        return self._make_map(self.pool, t, size)

    def make_chan(self, t: type, buffer: int) -> Any:
        """Return a new empty queue of type ``t`` with capacity ``buffer``."""
        return self._make_chan(self.pool, t, buffer)

    def is_scalar(self, kind: Kind) -> bool:
        """Return True if values of ``kind`` are shared rather than copied."""
        return self._is_scalar(kind)

    def clone(self, value: Any) -> Any:
        """Deep clone ``value``; custom functions skip ``value`` itself."""
        return self._clone(value, in_custom_func=True)

    def clone_slowly(self, value: Any) -> Any:
        """Deep clone ``value``, keeping shared references and cycles intact."""
        return self._clone_slowly(value, in_custom_func=True)

    def _clone(self, value: Any, in_custom_func: bool) -> Any:
        if value is None:
            return None
        state = CloneState(
            self, skip_custom_func_value=value if in_custom_func else None
        )
        return state.clone(value)

    def _clone_slowly(self, value: Any, in_custom_func: bool) -> Any:
        if value is None:
            return None
        state = CloneState(
            self,
            track_visited=True,
            skip_custom_func_value=value if in_custom_func else None,
        )
        return state.clone(value)

    def load_struct_type(self, t: type) -> StructType:
        """Return the clone rules for instances of class ``t``."""
        if self._cache_revision != Allocator._revision:
            self._struct_types.clear()
            self._cache_revision = Allocator._revision

        cached = self._struct_types.get(t)
        if cached is not None:
            return cached

        if any(t in allocator._scalar_types for allocator in self._chain()):
            struct_type = SCALAR_STRUCT_TYPE
        else:
            struct_type = StructType(
                fields=struct_fields(t), fn=self._lookup_custom_func(t)
            )
        return self._struct_types.setdefault(t, struct_type)

    def _lookup_custom_func(self, t: type) -> Callable[..., Any] | None:
        for allocator in self._chain():
            fn = allocator._custom_funcs.get(t)
            if fn is not None:
                return fn
        return None

    def _lookup_ptr_func(self, t: type) -> Callable[..., Any] | None:
        return self._ptr_funcs.get(t)

    def is_opaque_pointer(self, t: type) -> bool:
        """Return True if instances of ``t`` are shared instead of cloned."""
        return any(t in allocator._opaque_types for allocator in self._chain())

    def mark_as_scalar(self, t: type) -> None:
        """Copy instances of ``t`` shallowly; non struct-like classes are ignored."""
        if not _is_struct_class(t):
            return
        self._scalar_types.add(t)
        self._changed()

    def mark_as_opaque_pointer(self, t: type) -> None:
        """Share instances of ``t``; non struct-like classes are ignored."""
        if not _is_struct_class(t):
            return
        self._opaque_types.add(t)

    def set_custom_func(self, t: type, fn: Callable[..., Any] | None) -> None:
        """Clone instances of ``t`` with ``fn(allocator, old, new)``.

        ``new`` is an uninitialised instance; ``fn`` fills it in or returns a
        replacement. A ``fn`` of None removes the function for ``t``.
        """
        if fn is None:
            if self._custom_funcs.pop(t, None) is not None:
                self._changed()
            return
        if not _is_struct_class(t):
            return
        self._custom_funcs[t] = fn
        self._changed()

    def set_custom_ptr_func(self, t: type, fn: Callable[..., Any] | None) -> None:
        """Replace references to instances of ``t`` by ``fn(allocator, old)``.

        A ``fn`` of None removes the function for ``t``.
        """
        if fn is None:
            self._ptr_funcs.pop(t, None)
            return
        if not _is_struct_class(t):
            return
        self._ptr_funcs[t] = fn


DEFAULT_ALLOCATOR: Allocator = Allocator.__new__(Allocator)
DEFAULT_ALLOCATOR._configure(
    pool=None,
    parent=None,
    new=_heap_new,
    make_slice=_heap_make_slice,
    make_map=_heap_make_map,
    make_chan=_heap_make_chan,
    is_scalar=_default_is_scalar,
)


def new_allocator(pool: Any, methods: AllocatorMethods | None) -> Allocator:
    """Create an allocator drawing from ``pool`` through ``methods``.

    The allocator itself is created through the resolved ``new`` hook.
    """
    parent = methods.parent if methods is not None else None
    new = _resolve(methods, "new", parent, pool)
    allocator = new(pool, Allocator)
    if not isinstance(allocator, Allocator):
        raise TypeError(
            f"allocation hook returned {type(allocator).__name__}, expected Allocator"
        )
    allocator._setup(pool, methods, new)
    return allocator


def from_heap() -> Allocator:
    """Create an allocator that allocates from the heap."""
    return new_allocator(None, None)