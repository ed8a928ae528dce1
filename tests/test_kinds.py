import dataclasses
import datetime
import enum
import functools
import queue
import threading

import pytest

from reclone.kinds import (
    FieldTag,
    Kind,
    StructField,
    StructType,
    is_scalar,
    kind_of,
    struct_fields,
)


class Color(enum.IntEnum):
    RED = 1


class Plain:
    def __init__(self):
        self.foo = 1


class Slotted:
    __slots__ = ("a", "__hidden")


@dataclasses.dataclass
class SkipFields:
    normal: list = dataclasses.field(default_factory=list)
    foo: list = dataclasses.field(default_factory=lambda: [1], metadata={"clone": "skip"})
    bar: int = dataclasses.field(default=7, metadata={"clone": "-"})
    baz: dict = dataclasses.field(default=None, metadata={"clone": "shadowcopy"})


class Tagged:
    __clone_tags__ = {"cache": "skip", "shared": "shadowcopy"}


class TaggedChild(Tagged):
    __clone_tags__ = {"cache": "shadowcopy"}


class BadTags:
    __clone_tags__ = ["cache"]


@pytest.mark.parametrize(
    "value, kind",
    [
        (None, Kind.INVALID),
        (True, Kind.BOOL),
        (123, Kind.INT),
        (3.2, Kind.FLOAT),
        (complex(6, 4), Kind.COMPLEX),
        ("abc", Kind.STRING),
        (b"bytes", Kind.BYTES),
        (Color.RED, Kind.ENUM),
        (len, Kind.FUNC),
        (lambda s: s, Kind.FUNC),
        (functools.partial(print, 1), Kind.FUNC),
        (int, Kind.TYPE),
        (datetime.datetime(2020, 1, 1), Kind.OPAQUE),
        (threading.Lock(), Kind.OPAQUE),
        (("a", "b"), Kind.ARRAY),
        (["xyz", "opq"], Kind.SLICE),
        (bytearray(b"x"), Kind.SLICE),
        ({"abc": "efg"}, Kind.MAP),
        ({1, 2}, Kind.SET),
        (frozenset({1}), Kind.SET),
        (queue.Queue(2), Kind.CHAN),
        (Plain(), Kind.STRUCT),
        (Slotted(), Kind.STRUCT),
        (SkipFields(), Kind.STRUCT),
    ],
)
def test_kind_of(value, kind):
    assert kind_of(value) is kind


def test_bound_method_is_func():
    assert kind_of(Plain().__init__) is Kind.FUNC


@pytest.mark.parametrize(
    "kind",
    [Kind.INVALID, Kind.BOOL, Kind.INT, Kind.FLOAT, Kind.COMPLEX, Kind.STRING, Kind.FUNC, Kind.OPAQUE],
)
def test_scalar_kinds(kind):
    assert is_scalar(kind)


@pytest.mark.parametrize(
    "kind", [Kind.ARRAY, Kind.SLICE, Kind.MAP, Kind.SET, Kind.CHAN, Kind.STRUCT]
)
def test_non_scalar_kinds(kind):
    assert not is_scalar(kind)


def test_field_tag_values():
    assert FieldTag("skip") is FieldTag.SKIP
    assert FieldTag("-") is FieldTag.SKIP
    assert FieldTag("shadowcopy") is FieldTag.SHADOW_COPY
    assert FieldTag("") is FieldTag.DEEP
    assert FieldTag("unknown") is FieldTag.DEEP


def test_field_tag_rejects_non_string():
    with pytest.raises(ValueError):
        FieldTag(3)


def test_struct_fields_dataclass_tags():
    fields = {f.name: f for f in struct_fields(SkipFields)}
    assert [f.name for f in struct_fields(SkipFields)] == ["normal", "foo", "bar", "baz"]
    assert fields["normal"].tag is FieldTag.DEEP
    assert fields["foo"].tag is FieldTag.SKIP
    assert fields["bar"].tag is FieldTag.SKIP
    assert fields["baz"].tag is FieldTag.SHADOW_COPY


def test_struct_fields_zero_values():
    fields = {f.name: f for f in struct_fields(SkipFields)}
    assert fields["foo"].zero() == [1]
    assert fields["foo"].zero() is not fields["foo"].zero()
    assert fields["bar"].zero() == 7
    assert fields["normal"].zero() == []


def test_struct_fields_slots_with_mangling():
    names = [f.name for f in struct_fields(Slotted)]
    assert names == ["a", "_Slotted__hidden"]
    assert all(f.tag is FieldTag.DEEP for f in struct_fields(Slotted))


def test_struct_fields_clone_tags_inherit_and_override():
    parent = {f.name: f.tag for f in struct_fields(Tagged)}
    child = {f.name: f.tag for f in struct_fields(TaggedChild)}
    assert parent == {"cache": FieldTag.SKIP, "shared": FieldTag.SHADOW_COPY}
    assert child == {"cache": FieldTag.SHADOW_COPY, "shared": FieldTag.SHADOW_COPY}


def test_struct_fields_plain_class_is_empty():
    assert struct_fields(Plain) == ()


def test_struct_fields_errors():
    with pytest.raises(TypeError):
        struct_fields(Plain())
    with pytest.raises(TypeError):
        struct_fields(BadTags)


def test_struct_type_views():
    st = StructType(fields=struct_fields(SkipFields))
    assert [f.name for f in st.zero_fields] == ["foo", "bar"]
    assert st.shadow_fields == frozenset({"baz"})
    assert st.tags["normal"] is FieldTag.DEEP
    assert st.tags["foo"] is FieldTag.SKIP
    with pytest.raises(TypeError):
        st.tags["normal"] = FieldTag.SKIP


def test_struct_type_can_shadow_copy():
    assert StructType(scalar=True).can_shadow_copy()
    assert not StructType().can_shadow_copy()
    assert not StructType(scalar=True, fn=lambda *args: None).can_shadow_copy()


def test_struct_field_equality_ignores_zero():
    assert StructField("a", FieldTag.SKIP, lambda: 1) == StructField("a", FieldTag.SKIP)
    assert StructField("a", FieldTag.SKIP) != StructField("a", FieldTag.DEEP)