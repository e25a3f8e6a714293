"""Feed transformation pipeline: parse, schedule and serialize."""

from .models import DelayedFeedItem, Dialect, Feed, FeedChannel, FeedItem
from .parser import parse_feed
from .scheduler import schedule
from .serializer import content_type_for, serialize_feed

__all__ = [
    "DelayedFeedItem",
    "Dialect",
    "Feed",
    "FeedChannel",
    "FeedItem",
    "content_type_for",
    "parse_feed",
    "schedule",
    "serialize_feed",
]
