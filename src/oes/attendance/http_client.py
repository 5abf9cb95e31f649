"""HTTP client used by URL notification hooks."""
from contextvars import ContextVar
from http.cookiejar import CookieJar
from typing import Optional

import httpx

http_client_context: ContextVar[Optional[httpx.AsyncClient]] = ContextVar(
    "http_client_context", default=None
)

USER_AGENT = "OES Attendance Server 0.1"


class _NoCookies(CookieJar):
    # hooks are independent requests
    def set_cookie(self, cookie):
        pass


def setup_http_client(timeout: float = 10.0) -> httpx.AsyncClient:
    """Create the shared client.

    Args:
        timeout: The timeout in seconds for each hook request.
    """
    client = httpx.AsyncClient(
        headers={"User-Agent": USER_AGENT},
        cookies=_NoCookies(),
        timeout=timeout,
    )
    http_client_context.set(client)
    return client


def get_http_client() -> httpx.AsyncClient:
    """Get the shared client.

    Raises:
        RuntimeError: If :func:`setup_http_client` was not called.
    """
    client = http_client_context.get()
    if client is None:
        raise RuntimeError("HTTP client not configured")
    return client


async def shutdown_http_client():
    client = http_client_context.get()
    http_client_context.set(None)
    if client is not None:
        await client.aclose()
