"""Pydantic models for parsed and delayed feeds."""

import xml.etree.ElementTree as ET  # nosec B405 - only used for element types
from datetime import datetime, timedelta, timezone
from enum import Enum
from urllib.parse import urlsplit

import httpx
from pydantic import BaseModel, ConfigDict, field_validator

ATOM_NS = "http://www.w3.org/2005/Atom"
DC_NS = "http://purl.org/dc/elements/1.1/"

_HOST_FORBIDDEN = set("<>\"{}|\\^`")


class Dialect(str, Enum):
    """Syndication format a document was recognized as."""

    RSS = "rss"
    ATOM = "atom"


class Enclosure(BaseModel):
    """Media attachment of an episode, passed through unmodified."""

    url: str | None = None
    length: str | None = None
    type: str | None = None


class FeedChannel(BaseModel):
    """Channel-level metadata.

    ``element`` is the raw channel element (``<channel>`` for RSS, the
    ``<feed>`` root for Atom); every field not listed here is carried
    through on it untouched.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    title: str | None = None
    description: str | None = None
    link: str | None = None
    language: str | None = None
    image: str | None = None
    element: ET.Element


class FeedItem(BaseModel):
    """A single episode from the origin feed."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    guid: str | None = None
    title: str | None = None
    description: str | None = None
    enclosure: Enclosure | None = None
    original_published_at: datetime
    date_tag: str
    element: ET.Element


class DelayedFeedItem(BaseModel):
    """A releasable item and the timestamp it is shown with."""

    model_config = ConfigDict(frozen=True)

    item: FeedItem
    displayed_published_at: datetime

    @property
    def original_published_at(self) -> datetime:
        return self.item.original_published_at


class ParsedItem(BaseModel):
    """Successful per-item parse outcome."""

    item: FeedItem


class SkippedItem(BaseModel):
    """Per-item parse outcome for an entry that was dropped."""

    position: int
    reason: str
    guid: str | None = None


ItemOutcome = ParsedItem | SkippedItem


class Feed(BaseModel):
    """A parsed feed: dialect, channel metadata and ordered items."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    dialect: Dialect
    channel: FeedChannel
    items: list[FeedItem]
    skipped: list[SkippedItem] = []
    namespaces: list[tuple[str, str]] = []
    root: ET.Element


class TransformRequest(BaseModel):
    """Validated inputs of one pipeline run."""

    origin_url: str
    delay: timedelta
    now: datetime

    @field_validator("origin_url")
    @classmethod
    def _absolute_http_url(cls, value: str) -> str:
        parts = urlsplit(value)
        if parts.scheme.lower() not in ("http", "https"):
            raise ValueError("url must use the http or https scheme")
        if not parts.hostname:
            raise ValueError("url must be absolute and include a host")
        if any(c.isspace() or c in _HOST_FORBIDDEN for c in parts.hostname):
            raise ValueError("url host contains invalid characters")
        # Raises ValueError when the port is not a number in 0-65535
        if parts.port == 0:
            raise ValueError("url port must not be 0")
        try:
            httpx.URL(value)
        except httpx.InvalidURL as exc:
            raise ValueError(f"url is not valid: {exc}") from None
        return value

    @field_validator("delay")
    @classmethod
    def _non_negative(cls, value: timedelta) -> timedelta:
        if value < timedelta(0):
            raise ValueError("delay must not be negative")
        return value

    @field_validator("now")
    @classmethod
    def _aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
