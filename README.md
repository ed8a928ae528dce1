# reclone

`reclone` deep-clones arbitrary Python data: lists, dicts, sets, tuples,
queues and instances of your own classes, including their private attributes
and `__slots__`. Cloning goes through an `Allocator`, which decides how new
containers and objects are created and which per-class rules apply.

## Installation

```
pip install reclone
```

## Cloning

```python
from reclone.allocator import from_heap

allocator = from_heap()
data = {"abc": [1, 2, 3], "def": {"nested": True}}
copy = allocator.clone(data)
```

`Allocator.clone` assumes the data has no reference cycles; a cycle raises
`RecursionError`, and an object reached through two references is cloned
twice. `Allocator.clone_slowly` remembers every object it has cloned, so
shared references stay shared and cycles are reproduced:

```python
class Node:
    def __init__(self, data, next=None):
        self.data = data
        self.next = next

a = Node(1)
b = Node(2, a)
a.next = b

c = allocator.clone_slowly(a)
assert c.next.next is c
```

What happens to each kind of value (see `reclone.kinds.Kind` and `kind_of`):

- `None`, numbers, strings, bytes, enum members, functions, classes and
  immutable library values such as dates, decimals and paths are shared as
  they are (`is_scalar` returns True for their kinds).
- Tuples, lists, bytearrays, dicts (including `defaultdict`) and sets are
  rebuilt with cloned contents.
- `queue.Queue`, `queue.SimpleQueue` and `asyncio.Queue` become a new empty
  queue with the same capacity; their contents are not copied.
- Any other object with a `__dict__` or `__slots__` is created without
  calling `__init__`, and its attributes are cloned one by one.

## Per-class rules

Every `Allocator` has these methods, which take a class:

- `mark_as_scalar(t)`: instances of `t` are copied shallowly, attribute by
  attribute, without cloning what the attributes refer to.
- `mark_as_opaque_pointer(t)`: instances of `t` are shared, never copied.
- `set_custom_func(t, fn)`: `fn(allocator, old, new)` fills in `new`, an
  uninitialised instance of `t`, from `old`, or returns a replacement. Calling
  `allocator.clone(old)` inside `fn` performs the default clone of `old`
  without calling `fn` again. Passing `None` removes the function.
- `set_custom_ptr_func(t, fn)`: every reference to an instance of `t` is
  replaced by `fn(allocator, old)`. Passing `None` removes the function.

Classes that are not struct-like (built-in containers, numbers, strings,
enums, functions) are ignored by these methods. Note that `Allocator.clone`
and `clone_slowly` do not apply a custom function to the top-level value
they are given, only to values found inside it.

Rules not set on an allocator are looked up on its parent, and finally on
`reclone.allocator.DEFAULT_ALLOCATOR`.

## Field tags

Individual fields can be skipped (left at their zero value) or copied
shallowly. With dataclasses, use field metadata:

```python
import dataclasses

@dataclasses.dataclass
class Record:
    name: str
    cache: dict = dataclasses.field(default_factory=dict, metadata={"clone": "skip"})
    owner: object = dataclasses.field(default=None, metadata={"clone": "shadowcopy"})
```

For any class, a `__clone_tags__` mapping from attribute name to tag does the
same and takes precedence. The tags are `"skip"` (or `"-"`) and
`"shadowcopy"`; see `reclone.kinds.FieldTag` and `struct_fields`. A skipped
dataclass field gets its default, or its default factory's result, and any
other skipped field gets `None`.

## Custom allocators

`new_allocator(pool, methods)` creates an allocator whose hooks come from an
`AllocatorMethods`. Each allocation hook receives the pool first:

- `new(pool, t)`: a new, uninitialised instance of `t`. The allocator itself
  is created through this hook, so it must handle `t` being `Allocator`.
- `make_slice(pool, t, length)`: a sequence of type `t` with `length` items.
- `make_map(pool, t, size)`: an empty mapping of type `t`.
- `make_chan(pool, t, buffer)`: an empty queue of type `t`.
- `is_scalar(kind)`: whether values of a `Kind` are shared.
- `parent`: the allocator that supplies missing hooks and rules.

For instance, to copy strings instead of sharing them:

```python
from reclone.allocator import AllocatorMethods, new_allocator
from reclone.kinds import Kind, is_scalar

allocator = new_allocator(
    None,
    AllocatorMethods(is_scalar=lambda kind: kind is not Kind.STRING and is_scalar(kind)),
)
```

`reclone.state.CloneState` performs a single cloning pass and is what
`Allocator.clone` and `clone_slowly` use.

## What this package does not provide

There are no module-level shortcut functions: cloning and rule setting are
done through an `Allocator`. There is also no wrapper that protects an
object by handing out a clone and can later undo changes or return the
original.