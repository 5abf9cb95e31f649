"""JSON helpers backed by orjson.

orjson serializes UUIDs, datetimes and enums itself. Anything else it can't
handle goes through :func:`json_default`.
"""
from functools import singledispatch
from typing import Any, Union

import orjson


def json_dumps(obj: object) -> bytes:
    """Serialize ``obj`` to JSON bytes."""
    return orjson.dumps(obj, default=json_default)


def json_loads(v: Union[str, bytes]) -> Any:
    """Parse JSON."""
    return orjson.loads(v)


@singledispatch
def json_default(v: object) -> object:
    """Convert a value orjson does not support."""
    raise TypeError(f"Cannot JSON serialize type: {type(v)}")


@json_default.register(set)
@json_default.register(frozenset)
def _(v) -> object:
    # sorted for stable output (scopes, etc.)
    return sorted(v)
