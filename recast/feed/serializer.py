"""Write a delayed feed back out in the dialect it was read in."""

import copy
import logging
import re

# Bandit: only serializes trees built by the defusedxml parser
import xml.etree.ElementTree as ET  # nosec B405
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from typing import Sequence

from recast.errors import SerializeError

from .models import ATOM_NS, DelayedFeedItem, Dialect, Feed

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    Dialect.RSS: "application/rss+xml; charset=utf-8",
    Dialect.ATOM: "application/atom+xml; charset=utf-8",
}

# ElementTree reserves these prefixes for generated names
_RESERVED_PREFIX = re.compile(r"ns\d+$")


def content_type_for(dialect: Dialect) -> str:
    """Return the response media type for a feed dialect."""
    return CONTENT_TYPES[dialect]


def format_rfc2822(value: datetime) -> str:
    """Format a datetime as an RSS ``pubDate`` value."""
    if value.utcoffset() == timedelta(0):
        return format_datetime(value.astimezone(timezone.utc), usegmt=True)
    return format_datetime(value)


def format_rfc3339(value: datetime) -> str:
    """Format a datetime as an Atom date-time."""
    text = value.isoformat()
    if text.endswith("+00:00"):
        text = text[:-6] + "Z"
    return text


def _item_tag(feed: Feed) -> str:
    if feed.dialect is Dialect.RSS:
        return "item"
    tag = feed.root.tag
    ns = tag[1:].split("}", 1)[0] if tag.startswith("{") else ""
    return f"{{{ns}}}entry" if ns else "entry"


def _default_namespace(feed: Feed) -> str:
    """Namespace of the root tag, if the document declared it as default."""
    tag = feed.root.tag
    if not tag.startswith("{"):
        return ""
    ns = tag[1:].split("}", 1)[0]
    if ("", ns) in feed.namespaces or ns == ATOM_NS:
        return ns
    return ""


def _register_prefixes(feed: Feed) -> None:
    """Make ElementTree reuse the prefixes the origin document declared."""
    for prefix, uri in feed.namespaces:
        if not prefix or _RESERVED_PREFIX.match(prefix):
            continue
        ET.register_namespace(prefix, uri)


def _unqualify(root: ET.Element, ns: str) -> None:
    """Drop ``ns`` from tags and re-declare it as the default namespace."""
    prefix = f"{{{ns}}}"
    for elem in root.iter():
        if isinstance(elem.tag, str) and elem.tag.startswith(prefix):
            elem.tag = elem.tag[len(prefix):]
    root.set("xmlns", ns)


def _rewrite_item(
    delayed: DelayedFeedItem, dialect: Dialect, annotate: bool
) -> ET.Element:
    item = delayed.item
    elem = copy.deepcopy(item.element)

    date_elem = elem.find(item.date_tag)
    if date_elem is None:
        raise SerializeError(f"item {item.guid!r} lost its {item.date_tag} element")
    if item.date_tag == "pubDate":
        date_elem.text = format_rfc2822(delayed.displayed_published_at)
    else:
        date_elem.text = format_rfc3339(delayed.displayed_published_at)

    if annotate:
        _annotate(elem, delayed, dialect)
    return elem


def _annotate(elem: ET.Element, delayed: DelayedFeedItem, dialect: Dialect) -> None:
    """Prefix the show notes with the item's true publication date."""
    if dialect is Dialect.RSS:
        target = elem.find("description")
        original = format_rfc2822(delayed.original_published_at)
    else:
        ns = elem.tag[1:].split("}", 1)[0] if elem.tag.startswith("{") else ""
        target = elem.find(f"{{{ns}}}summary" if ns else "summary")
        original = format_rfc3339(delayed.original_published_at)
    if target is None or not target.text:
        return
    target.text = f"(originally published on {original}) {target.text}"


def serialize_feed(
    feed: Feed,
    delayed_items: Sequence[DelayedFeedItem],
    annotate_original_date: bool = False,
) -> bytes:
    """Serialize a feed containing only ``delayed_items``.

    The channel and every item field other than the publication date are
    carried over from the origin document. An empty ``delayed_items`` still
    yields a complete, well-formed feed.

    Args:
        feed: The parsed origin feed
        delayed_items: Items to emit, in output order
        annotate_original_date: Prefix show notes with the original date

    Returns:
        UTF-8 encoded document with an XML declaration

    Raises:
        SerializeError: If the tree cannot be written
    """
    root = copy.deepcopy(feed.root)
    container = root.find("channel") if feed.dialect is Dialect.RSS else root
    if container is None:
        raise SerializeError("feed has no channel element")

    item_tag = _item_tag(feed)
    children = list(container)
    insert_at = next(
        (i for i, child in enumerate(children) if child.tag == item_tag),
        len(children),
    )
    for child in children:
        if child.tag == item_tag:
            container.remove(child)

    for offset, delayed in enumerate(delayed_items):
        container.insert(
            insert_at + offset,
            _rewrite_item(delayed, feed.dialect, annotate_original_date),
        )

    default_ns = _default_namespace(feed)
    if default_ns:
        _unqualify(root, default_ns)

    try:
        _register_prefixes(feed)
        output = ET.tostring(root, encoding="utf-8", xml_declaration=True)
    except (TypeError, ValueError) as exc:
        raise SerializeError(str(exc)) from exc

    logger.debug("serialized %s feed with %d items", feed.dialect.value, len(delayed_items))
    return output
