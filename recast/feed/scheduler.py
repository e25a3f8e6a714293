"""Delay scheduling: decide which items have "aired" and when."""

from datetime import datetime, timedelta
from typing import Iterable

from .models import DelayedFeedItem, FeedItem


def release_time(item: FeedItem, delay: timedelta) -> datetime | None:
    """Return the instant an item becomes visible, or None if out of range."""
    try:
        return item.original_published_at + delay
    except OverflowError:
        return None


def schedule(
    items: Iterable[FeedItem], delay: timedelta, now: datetime
) -> list[DelayedFeedItem]:
    """Filter items to those released under ``delay`` and shift their dates.

    An item is releasable when ``original_published_at + delay <= now``; it
    is then shown as published at exactly that release instant. Origin
    order is kept and nothing is re-sorted. With a zero delay this is the
    identity filter over already-published items.

    Args:
        items: Parsed items in origin order
        delay: Non-negative replay delay
        now: Timezone-aware evaluation instant

    Returns:
        The releasable items, possibly empty

    Raises:
        ValueError: If ``delay`` is negative or ``now`` is naive
    """
    if delay < timedelta(0):
        raise ValueError("delay must not be negative")
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")

    released = []
    for item in items:
        release_at = release_time(item, delay)
        if release_at is None or release_at > now:
            continue
        released.append(DelayedFeedItem(item=item, displayed_published_at=release_at))
    return released
