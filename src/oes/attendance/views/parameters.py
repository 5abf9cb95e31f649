"""Request body binding."""
from typing import Any, TypeVar

from blacksheep import Request
from blacksheep.server.bindings import BodyBinder, BoundValue
from cattrs import BaseValidationError
from loguru import logger
from oes.attendance.serialization import get_converter
from oes.attendance.serialization.json import json_loads
from oes.attendance.views.responses import BodyValidationError

T = TypeVar("T")


class AttrsBody(BoundValue[T]):
    """A JSON request body structured as an attrs class."""


class AttrsBinder(BodyBinder):
    handle = AttrsBody

    @property
    def content_type(self) -> str:
        return "application/json"

    def matches_content_type(self, request: Request) -> bool:
        return request.declares_json()

    async def read_data(self, request: Request) -> Any:
        return await request.json(loads=json_loads)

    def parse_value(self, data: object) -> Any:
        try:
            return get_converter().structure(data, self.expected_type)
        except BaseValidationError as e:
            # answered with 422 by the app's exception handler
            logger.debug(f"Invalid request body: {e}")
            raise BodyValidationError(e) from e
