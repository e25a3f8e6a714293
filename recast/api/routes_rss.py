"""Delayed feed endpoint for the Recast API."""

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response
from slowapi import Limiter
from slowapi.util import get_remote_address

from recast.config import Settings, get_settings
from recast.orchestrator import handle

router = APIRouter(tags=["rss"])
limiter = Limiter(key_func=get_remote_address)


def _rate_limit() -> str:
    return get_settings().rss_rate_limit


@router.get("/rss")
@limiter.limit(_rate_limit)
async def get_delayed_feed(
    request: Request,
    url: str | None = Query(default=None, description="Origin feed URL"),
    delay: str | None = Query(
        default=None, description="Delay in hours (non-negative number)"
    ),
    settings: Settings = Depends(get_settings),
) -> Response:
    """
    Replay a podcast feed on a delayed schedule.

    Query Parameters:
        - url: Absolute http(s) URL of the origin RSS or Atom feed
        - delay: Hours by which every episode is pushed back

    Returns:
        The origin feed with only the episodes released under the delay,
        each dated at its original publication time plus the delay.
        Errors are plain text: 400 for bad parameters, 502 when the origin
        cannot be fetched, 500 when the feed cannot be processed.
    """
    return await handle(url, delay, settings=settings)
