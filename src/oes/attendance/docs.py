"""OpenAPI docs."""
import functools
from collections.abc import Sequence
from typing import Any, Optional

import attrs
from blacksheep.server.openapi.common import ContentInfo, ResponseInfo
from blacksheep.server.openapi.v3 import FieldInfo, ObjectTypeHandler, OpenAPIHandler
from oes.attendance.serialization import get_converter
from openapidocs.v3 import HTTPSecurity, Info, OpenAPI, Security, SecurityRequirement


class Handler(OpenAPIHandler):
    def on_docs_generated(self, docs: OpenAPI):
        # all but the check-in code preview need an access token
        docs.security = Security(requirements=[SecurityRequirement("accessToken", [])])


docs = Handler(info=Info(title="OES Attendance API", version="0.1"))

docs.components.security_schemes = {"accessToken": HTTPSecurity(scheme="bearer")}


class AttrsTypeHandler(ObjectTypeHandler):
    """Describe attrs classes by their fields."""

    def handles_type(self, object_type) -> bool:
        return attrs.has(object_type)

    def get_type_fields(self, object_type) -> list[FieldInfo]:
        attrs.resolve_types(object_type)
        return [FieldInfo(f.name, f.type) for f in attrs.fields(object_type)]


docs.object_types_handlers.append(AttrsTypeHandler())


def serialize(type_: Any):
    """Unstructure the handler's return value as ``type_``."""

    def decorator(fn):
        @functools.wraps(fn)
        async def wrapper(*args, **kwargs):
            result = await fn(*args, **kwargs)
            return get_converter().unstructure(result, unstructure_as=type_)

        return wrapper

    return decorator


def docs_helper(
    *,
    response_type: Any,
    response_summary: Optional[str] = None,
    tags: Optional[Sequence[str]] = None,
):
    """Document a handler's JSON response and serialize its return value.

    Args:
        response_type: The type of the handler's return value.
        response_summary: The response description.
        tags: The OpenAPI tags.
    """
    response = ResponseInfo(
        description=response_summary or "The result",
        content=[ContentInfo(type=response_type)],
    )
    docs_decorator = docs(responses={200: response}, tags=tags)

    def decorator(fn):
        return docs_decorator(serialize(response_type)(fn))

    return decorator
