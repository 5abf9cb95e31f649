"""Serialization package."""
from __future__ import annotations

from functools import cache
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from oes.attendance.serialization.converters import CustomConverter


@cache
def get_config_converter() -> CustomConverter:
    """Get the converter for configuration files."""
    from oes.attendance.serialization.converters import make_config_converter

    return make_config_converter()


@cache
def get_converter() -> CustomConverter:
    """Get the converter for request bodies and responses.

    It does not coerce values, so ``"1"`` is not a valid ``int``.
    """
    from oes.attendance.serialization.converters import make_data_converter

    return make_data_converter()
