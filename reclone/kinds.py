"""Value kinds and per-class field descriptions used when cloning."""

from __future__ import annotations

import asyncio
import dataclasses
import datetime
import decimal
import enum
import fractions
import functools
import pathlib
import queue
import types
import uuid
from collections.abc import Callable, Mapping
from typing import Any

FIELD_TAG_NAME = "clone"
CLONE_TAGS_ATTRIBUTE = "__clone_tags__"


class Kind(enum.Enum):
    """The broad category of a value, deciding how it is cloned."""

    INVALID = "invalid"
    BOOL = "bool"
    INT = "int"
    FLOAT = "float"
    COMPLEX = "complex"
    STRING = "string"
    BYTES = "bytes"
    ENUM = "enum"
    FUNC = "func"
    TYPE = "type"
    OPAQUE = "opaque"
    ARRAY = "array"
    SLICE = "slice"
    MAP = "map"
    SET = "set"
    CHAN = "chan"
    STRUCT = "struct"


_SCALAR_KINDS = frozenset(
    {
        Kind.INVALID,
        Kind.BOOL,
        Kind.INT,
        Kind.FLOAT,
        Kind.COMPLEX,
        Kind.STRING,
        Kind.BYTES,
        Kind.ENUM,
        Kind.FUNC,
        Kind.TYPE,
        Kind.OPAQUE,
    }
)

# Immutable or uninspectable values that are always shared, never copied.
_OPAQUE_TYPES = (
    datetime.date,
    datetime.time,
    datetime.timedelta,
    datetime.tzinfo,
    decimal.Decimal,
    fractions.Fraction,
    uuid.UUID,
    pathlib.PurePath,
    range,
    slice,
    memoryview,
    types.ModuleType,
    type(Ellipsis),
    type(NotImplemented),
)

_ROUTINE_TYPES = (
    types.FunctionType,
    types.BuiltinFunctionType,
    types.MethodType,
    types.MethodWrapperType,
    types.WrapperDescriptorType,
    types.MethodDescriptorType,
    types.ClassMethodDescriptorType,
    functools.partial,
    staticmethod,
    classmethod,
    property,
)

_CHAN_TYPES = (queue.Queue, queue.SimpleQueue, asyncio.Queue)


def kind_of(value: Any) -> Kind:
    """Return the kind of ``value``."""
    if value is None:
        return Kind.INVALID
    if isinstance(value, enum.Enum):
        return Kind.ENUM
    if isinstance(value, bool):
        return Kind.BOOL
    if isinstance(value, int):
        return Kind.INT
    if isinstance(value, float):
        return Kind.FLOAT
    if isinstance(value, complex):
        return Kind.COMPLEX
    if isinstance(value, str):
        return Kind.STRING
    if isinstance(value, bytes):
        return Kind.BYTES
    if isinstance(value, type):
        return Kind.TYPE
    if isinstance(value, _ROUTINE_TYPES):
        return Kind.FUNC
    if isinstance(value, _OPAQUE_TYPES):
        return Kind.OPAQUE
    if isinstance(value, tuple):
        return Kind.ARRAY
    if isinstance(value, (list, bytearray)):
        return Kind.SLICE
    if isinstance(value, dict):
        return Kind.MAP
    if isinstance(value, (set, frozenset)):
        return Kind.SET
    if isinstance(value, _CHAN_TYPES):
        return Kind.CHAN
    if hasattr(value, "__dict__") or _slot_names(type(value)):
        return Kind.STRUCT
    return Kind.OPAQUE


def is_scalar(kind: Kind) -> bool:
    """Return True if values of ``kind`` are copied by reference."""
    return kind in _SCALAR_KINDS


class FieldTag(enum.Enum):
    """How a single field of a struct-like object is cloned."""

    DEEP = ""
    SKIP = "skip"
    SHADOW_COPY = "shadowcopy"

    @classmethod
    def _missing_(cls, value: object) -> FieldTag | None:
        if value == "-":
            return cls.SKIP
        if isinstance(value, str):
            # Unknown tag values are ignored, as if no tag were given.
            return cls.DEEP
        return None


# Calling the None type produces None: the zero value of an untyped field.
_none: Callable[[], Any] = type(None)


@dataclasses.dataclass(frozen=True)
class StructField:
    """A declared field of a class, with its clone tag and zero value."""

    name: str
    tag: FieldTag = FieldTag.DEEP
    zero: Callable[[], Any] = dataclasses.field(default=_none, compare=False)


@functools.cache
def _slot_names(cls: type) -> tuple[str, ...]:
    names: list[str] = []
    for klass in reversed(cls.__mro__):
        slots = klass.__dict__.get("__slots__", ())
        if isinstance(slots, str):
            slots = (slots,)
        for name in slots:
            if name in ("__dict__", "__weakref__"):
                continue
            if name.startswith("__") and not name.endswith("__"):
                name = f"_{klass.__name__.lstrip('_')}{name}"
            if name not in names:
                names.append(name)
    return tuple(names)


def _declared_tags(cls: type) -> dict[str, str]:
    tags: dict[str, str] = {}
    for klass in reversed(cls.__mro__):
        declared = klass.__dict__.get(CLONE_TAGS_ATTRIBUTE)
        if declared is None:
            continue
        if not isinstance(declared, Mapping):
            raise TypeError(
                f"{klass.__name__}.{CLONE_TAGS_ATTRIBUTE} must be a mapping"
            )
        tags.update(declared)
    return tags


def _zero_factory(field: dataclasses.Field) -> Callable[[], Any]:
    if field.default is not dataclasses.MISSING:
        default = field.default
        return lambda: default
    if field.default_factory is not dataclasses.MISSING:
        return field.default_factory
    return _none


def struct_fields(cls: type) -> tuple[StructField, ...]:
    """Describe the declared fields of ``cls`` in declaration order.

    Fields come from dataclass fields (tagged through ``metadata={"clone": ...}``),
    ``__slots__`` and the ``__clone_tags__`` mapping, which takes precedence.
    """
    if not isinstance(cls, type):
        raise TypeError(f"expected a class, got {type(cls).__name__}")

    fields: dict[str, StructField] = {}

    if dataclasses.is_dataclass(cls):
        for field in dataclasses.fields(cls):
            tag = FieldTag(field.metadata.get(FIELD_TAG_NAME, ""))
            fields[field.name] = StructField(field.name, tag, _zero_factory(field))

    for name in _slot_names(cls):
        fields.setdefault(name, StructField(name))

    for name, tag in _declared_tags(cls).items():
        existing = fields.get(name)
        zero = existing.zero if existing is not None else _none
        fields[name] = StructField(name, FieldTag(tag), zero)

    return tuple(fields.values())


@dataclasses.dataclass(frozen=True)
class StructType:
    """Cached clone rules for one class."""

    fields: tuple[StructField, ...] = ()
    scalar: bool = False
    fn: Callable[..., Any] | None = None

    @functools.cached_property
    def tags(self) -> Mapping[str, FieldTag]:
        return types.MappingProxyType({f.name: f.tag for f in self.fields})

    @property
    def zero_fields(self) -> tuple[StructField, ...]:
        return tuple(f for f in self.fields if f.tag is FieldTag.SKIP)

    @property
    def shadow_fields(self) -> frozenset[str]:
        return frozenset(f.name for f in self.fields if f.tag is FieldTag.SHADOW_COPY)

    def can_shadow_copy(self) -> bool:
        """Return True if an instance may be copied without cloning its fields."""
        return self.scalar and self.fn is None


SCALAR_STRUCT_TYPE = StructType(scalar=True)