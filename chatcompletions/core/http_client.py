"""Reusable HTTP client utilities."""

from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager

import httpx

CONNECT_TIMEOUT = 30.0


def build_timeout(unresponsive_timeout: float | None) -> httpx.Timeout:
    """Bound connection setup and, optionally, each gap between reads.

    httpx applies the read timeout per socket read, so it limits silence in
    the stream rather than the total request duration.
    """

    return httpx.Timeout(None, connect=CONNECT_TIMEOUT, read=unresponsive_timeout)


@asynccontextmanager
async def async_http_client(
    *,
    headers: Mapping[str, str] | None = None,
    timeout: httpx.Timeout | float | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AsyncIterator[httpx.AsyncClient]:
    """Yield a configured AsyncClient and close it afterwards."""

    async with httpx.AsyncClient(
        headers=headers, timeout=timeout, transport=transport
    ) as client:
        yield client
