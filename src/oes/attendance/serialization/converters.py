"""cattrs converters."""
from collections.abc import Sequence
from datetime import datetime, timezone
from enum import Enum
from typing import Tuple, Type, TypeVar, Union, get_args, get_origin
from uuid import UUID

from cattrs import Converter
from cattrs.gen import make_dict_unstructure_fn
from oes.attendance.serialization.json import json_dumps, json_loads

T = TypeVar("T")


class CustomConverter(Converter):
    """Converter with orjson ``dumps``/``loads``."""

    def dumps(self, obj: object, unstructure_as=None) -> bytes:
        return json_dumps(self.unstructure(obj, unstructure_as))

    def loads(self, value: Union[str, bytes], cl: Type[T]) -> T:
        return self.structure(json_loads(value), cl)


def structure_datetime(v, t) -> datetime:
    """Structure an ISO 8601 string or timestamp.

    Naive values are taken to be UTC.
    """
    if isinstance(v, datetime):
        dt = v
    elif isinstance(v, (int, float)) and not isinstance(v, bool):
        dt = datetime.fromtimestamp(v, tz=timezone.utc)
    elif isinstance(v, str):
        dt = datetime.fromisoformat(v)
    else:
        raise TypeError(f"Invalid datetime: {v!r}")

    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def structure_uuid(v, t) -> UUID:
    if isinstance(v, UUID):
        return v
    elif isinstance(v, str):
        return UUID(v)
    raise TypeError(f"Invalid UUID: {v!r}")


def structure_strict(v, t):
    """Structure a primitive or enum without casting the value."""
    # bool is an int subclass
    if isinstance(v, bool) and t is not bool:
        raise TypeError(f"Invalid type: {v!r}")
    elif isinstance(v, t):
        return v
    elif t is float and isinstance(v, int):
        return float(v)
    elif issubclass(t, Enum) and isinstance(v, (int, str)):
        return t(v)
    raise TypeError(f"Invalid type: {v!r}")


def _is_sequence(t) -> bool:
    return get_origin(t) is Sequence


def _make_converter() -> CustomConverter:
    c = CustomConverter()
    c.register_structure_hook(datetime, structure_datetime)
    c.register_structure_hook(UUID, structure_uuid)
    c.register_unstructure_hook(datetime, lambda v: v.isoformat())
    c.register_unstructure_hook(UUID, str)

    # Sequence[T] is structured as tuple[T, ...]
    c.register_structure_hook_func(
        _is_sequence, lambda v, t: c.structure(v, Tuple[get_args(t)[0], ...])
    )
    return c


def make_config_converter() -> CustomConverter:
    """Make the converter for configuration files."""
    return _make_converter()


def make_data_converter() -> CustomConverter:
    """Make the converter for request bodies and responses."""
    from oes.attendance.views.responses import ExceptionDetails

    c = _make_converter()
    for t in (float, int, bool, str):
        c.register_structure_hook(t, structure_strict)

    c.register_structure_hook_func(
        lambda t: isinstance(t, type) and issubclass(t, Enum), structure_strict
    )

    # generated lazily since details nest
    c.register_unstructure_hook_factory(
        lambda t: t is ExceptionDetails,
        lambda t: make_dict_unstructure_fn(t, c, _cattrs_omit_if_default=True),
    )
    return c
