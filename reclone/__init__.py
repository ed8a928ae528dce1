"""Deep cloning of arbitrary data through allocators, with cycle support and per-class rules."""

__version__ = "1.0.0"
__all__ = ["kinds", "state", "allocator"]