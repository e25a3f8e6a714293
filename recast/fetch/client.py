"""HTTP client for downloading origin feeds."""

import asyncio
import logging

import httpx
from pydantic import BaseModel

from recast.errors import FetchError

logger = logging.getLogger(__name__)

ACCEPT = (
    "application/rss+xml, application/atom+xml, application/xml;q=0.9, "
    "text/xml;q=0.9, */*;q=0.5"
)


class FetchedFeed(BaseModel):
    """Body and metadata of a successful origin response."""

    url: str
    status_code: int
    content_type: str | None = None
    content: bytes


async def _download(
    url: str,
    max_bytes: int,
    user_agent: str,
    timeout: float,
    transport: httpx.AsyncBaseTransport | None,
) -> FetchedFeed:
    headers = {"User-Agent": user_agent, "Accept": ACCEPT}

    async with httpx.AsyncClient(
        timeout=timeout, follow_redirects=True, transport=transport
    ) as client:
        async with client.stream("GET", url, headers=headers) as response:
            if not response.is_success:
                raise FetchError(
                    f"origin responded with HTTP {response.status_code}",
                    upstream_status=response.status_code,
                )

            declared = response.headers.get("Content-Length")
            if declared and declared.isdigit() and int(declared) > max_bytes:
                raise FetchError(
                    f"origin feed is {declared} bytes, limit is {max_bytes}",
                    upstream_status=response.status_code,
                )

            chunks = []
            received = 0
            async for chunk in response.aiter_bytes():
                received += len(chunk)
                if received > max_bytes:
                    raise FetchError(
                        f"origin feed exceeds {max_bytes} bytes",
                        upstream_status=response.status_code,
                    )
                chunks.append(chunk)

            return FetchedFeed(
                url=str(response.url),
                status_code=response.status_code,
                content_type=response.headers.get("Content-Type"),
                content=b"".join(chunks),
            )


async def fetch_feed(
    url: str,
    *,
    timeout: float,
    max_bytes: int,
    user_agent: str,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FetchedFeed:
    """Download an origin feed.

    The whole exchange, redirects and body included, is bounded by
    ``timeout`` seconds. Failures are not retried.

    Args:
        url: Absolute http(s) URL of the origin feed
        timeout: Ceiling in seconds for the whole download
        max_bytes: Largest body accepted
        user_agent: User-Agent header sent to the origin
        transport: Optional httpx transport (used by tests)

    Returns:
        The fetched feed body and response metadata

    Raises:
        FetchError: On network errors, timeouts, non-2xx responses or an
            oversized body
    """
    try:
        return await asyncio.wait_for(
            _download(url, max_bytes, user_agent, timeout, transport), timeout
        )
    except asyncio.TimeoutError as exc:
        raise FetchError(f"timed out after {timeout:g}s") from exc
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise FetchError(f"{type(exc).__name__}: {exc}") from exc
