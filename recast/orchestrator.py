"""Request orchestration: validate, fetch, parse, schedule, serialize."""

import logging
import math
from datetime import datetime, timedelta, timezone
from urllib.parse import unquote

from fastapi.responses import PlainTextResponse, Response
from pydantic import ValidationError

from recast.config import Settings, get_settings
from recast.errors import InvalidRequestError, RecastError
from recast.feed import content_type_for, parse_feed, schedule, serialize_feed
from recast.feed.models import TransformRequest
from recast.fetch import fetch_feed

logger = logging.getLogger(__name__)


def parse_origin_url(raw_url: str | None) -> str:
    """Normalize the ``url`` query value.

    A value that is still percent-encoded (``https%3A%2F%2F...``) is
    decoded once more, since some podcast apps encode it twice.
    """
    if raw_url is None or not raw_url.strip():
        raise InvalidRequestError("missing url parameter")
    url = raw_url.strip()
    if "://" not in url and "://" in unquote(url):
        url = unquote(url)
    return url


def parse_delay(raw_delay: str | None, min_delay_hours: float = 0.0) -> timedelta:
    """Turn the ``delay`` query value (hours) into a timedelta."""
    if raw_delay is None or not raw_delay.strip():
        raise InvalidRequestError("missing delay parameter")
    try:
        hours = float(raw_delay)
    except ValueError:
        raise InvalidRequestError(
            f"delay must be a number of hours, got {raw_delay!r}"
        ) from None

    if not math.isfinite(hours):
        raise InvalidRequestError("delay must be a finite number of hours")
    if hours < 0:
        raise InvalidRequestError("delay must not be negative")
    if hours < min_delay_hours:
        raise InvalidRequestError(f"delay must be at least {min_delay_hours:g} hours")

    try:
        return timedelta(hours=hours)
    except OverflowError:
        raise InvalidRequestError("delay is too large") from None


def build_request(
    raw_url: str | None,
    raw_delay: str | None,
    now: datetime,
    min_delay_hours: float = 0.0,
) -> TransformRequest:
    """Validate raw query values into a :class:`TransformRequest`.

    Raises:
        InvalidRequestError: If either value is missing or malformed
    """
    url = parse_origin_url(raw_url)
    delay = parse_delay(raw_delay, min_delay_hours)
    try:
        return TransformRequest(origin_url=url, delay=delay, now=now)
    except ValidationError as exc:
        message = exc.errors()[0]["msg"].removeprefix("Value error, ")
        raise InvalidRequestError(f"{message}: {url!r}") from None


async def transform(request: TransformRequest, settings: Settings) -> Response:
    """Run the pipeline for an already validated request."""
    fetched = await fetch_feed(
        request.origin_url,
        timeout=settings.fetch_timeout_seconds,
        max_bytes=settings.max_feed_bytes,
        user_agent=settings.user_agent,
    )

    feed = parse_feed(fetched.content)
    delayed = schedule(feed.items, request.delay, request.now)
    body = serialize_feed(
        feed, delayed, annotate_original_date=settings.annotate_original_date
    )

    logger.info(
        "recast %s (%s): %d of %d items released, %d dropped, delay=%s",
        request.origin_url,
        feed.dialect.value,
        len(delayed),
        len(feed.items),
        len(feed.skipped),
        request.delay,
    )
    return Response(
        content=body, status_code=200, media_type=content_type_for(feed.dialect)
    )


async def handle(
    raw_url: str | None,
    raw_delay: str | None,
    *,
    now: datetime | None = None,
    settings: Settings | None = None,
) -> Response:
    """Handle one ``/rss`` request end to end.

    Every failure is answered synchronously with a plain-text body and the
    status of the stage that failed; a failed request never carries a feed.

    Args:
        raw_url: The ``url`` query value
        raw_delay: The ``delay`` query value, in hours
        now: Evaluation instant (defaults to the current UTC time)
        settings: Settings to use (defaults to the cached settings)

    Returns:
        The transformed feed (200) or an error response (400, 500, 502)
    """
    settings = settings or get_settings()
    if now is None:
        now = datetime.now(timezone.utc)

    try:
        request = build_request(raw_url, raw_delay, now, settings.min_delay_hours)
        return await transform(request, settings)
    except RecastError as exc:
        logger.warning("%s (url=%r)", exc, raw_url)
        return PlainTextResponse(str(exc), status_code=exc.status_code)
