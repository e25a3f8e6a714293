"""Parse RSS 2.0 and Atom documents into the feed model."""

import io
import logging
import re

# Bandit: parsing handled via defusedxml safe APIs
import xml.etree.ElementTree as ET  # nosec B405
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

from defusedxml import DefusedXmlException
from defusedxml.ElementTree import ParseError as DefusedXMLParseError
from defusedxml.ElementTree import iterparse as safe_iterparse

from recast.errors import ParseError, ParseFailure

from .models import (
    ATOM_NS,
    DC_NS,
    Dialect,
    Enclosure,
    Feed,
    FeedChannel,
    FeedItem,
    ItemOutcome,
    ParsedItem,
    SkippedItem,
)

logger = logging.getLogger(__name__)

_FRACTION_RE = re.compile(r"\.(\d+)")


def _local_name(tag) -> str:
    """Strip the ``{namespace}`` part of an element tag."""
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def _namespace(tag: str) -> str:
    if tag.startswith("{"):
        return tag[1:].split("}", 1)[0]
    return ""


def _text(elem: ET.Element | None) -> str | None:
    if elem is None or elem.text is None:
        return None
    text = elem.text.strip()
    return text or None


def parse_rfc2822(value: str) -> datetime:
    """Parse an RSS ``pubDate`` value into an aware datetime.

    Raises:
        ValueError: If the value is not an RFC 2822 date
    """
    try:
        parsed = parsedate_to_datetime(value.strip())
    except (TypeError, IndexError) as exc:
        # Older interpreters raise these instead of ValueError
        raise ValueError(f"invalid RFC 2822 date: {value!r}") from exc
    if parsed is None:
        raise ValueError(f"invalid RFC 2822 date: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_rfc3339(value: str) -> datetime:
    """Parse an Atom date-time into an aware datetime.

    Raises:
        ValueError: If the value is not an ISO 8601 / RFC 3339 date-time
    """
    text = value.strip()
    if text[-1:] in ("Z", "z"):
        text = text[:-1] + "+00:00"
    # fromisoformat before 3.11 only takes 3 or 6 fractional digits
    text = _FRACTION_RE.sub(
        lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1
    )
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _read_document(raw: bytes) -> tuple[ET.Element, list[tuple[str, str]]]:
    """Parse raw bytes, returning the root and the namespace declarations."""
    namespaces: list[tuple[str, str]] = []
    root = None
    try:
        for event, payload in safe_iterparse(
            io.BytesIO(raw), events=("start", "start-ns")
        ):
            if event == "start-ns":
                if payload not in namespaces:
                    namespaces.append(payload)
            elif root is None:
                root = payload
    except DefusedXMLParseError as exc:
        raise ParseError(ParseFailure.NOT_WELL_FORMED_XML, str(exc)) from exc
    except DefusedXmlException as exc:
        raise ParseError(
            ParseFailure.NOT_WELL_FORMED_XML, f"forbidden XML construct: {exc}"
        ) from exc

    if root is None:
        raise ParseError(ParseFailure.NOT_WELL_FORMED_XML, "document is empty")
    return root, namespaces


def _detect(root: ET.Element) -> tuple[Dialect, ET.Element]:
    """Resolve the dialect and the element that holds the items."""
    name = _local_name(root.tag)

    if name == "rss":
        ns = _namespace(root.tag)
        if ns:
            raise ParseError(
                ParseFailure.UNRECOGNIZED_FORMAT,
                f"<rss> root is in namespace {ns!r}; RSS 2.0 has none",
            )
        channel = root.find("channel")
        if channel is None:
            raise ParseError(
                ParseFailure.UNRECOGNIZED_FORMAT, "<rss> document has no <channel>"
            )
        return Dialect.RSS, channel

    if name == "feed" and _namespace(root.tag) in (ATOM_NS, ""):
        return Dialect.ATOM, root

    raise ParseError(
        ParseFailure.UNRECOGNIZED_FORMAT,
        f"root element <{name or root.tag}> is neither RSS nor Atom",
    )


def _rss_channel(channel: ET.Element) -> FeedChannel:
    image = channel.find("image")
    image_url = _text(image.find("url")) if image is not None else None
    if image_url is None:
        itunes_image = next(
            (e for e in channel if _local_name(e.tag) == "image" and e.get("href")),
            None,
        )
        if itunes_image is not None:
            image_url = itunes_image.get("href")

    return FeedChannel(
        title=_text(channel.find("title")),
        description=_text(channel.find("description")),
        link=_text(channel.find("link")),
        language=_text(channel.find("language")),
        image=image_url,
        element=channel,
    )


def _atom_channel(root: ET.Element, ns: str) -> FeedChannel:
    def q(name: str) -> str:
        return f"{{{ns}}}{name}" if ns else name

    link = None
    for link_elem in root.findall(q("link")):
        if link_elem.get("rel", "alternate") == "alternate":
            link = link_elem.get("href")
            break

    return FeedChannel(
        title=_text(root.find(q("title"))),
        description=_text(root.find(q("subtitle"))),
        link=link,
        language=root.get("{http://www.w3.org/XML/1998/namespace}lang"),
        image=_text(root.find(q("logo"))) or _text(root.find(q("icon"))),
        element=root,
    )


def _parse_rss_item(elem: ET.Element, position: int) -> ItemOutcome:
    guid = _text(elem.find("guid"))

    date_tag = "pubDate"
    raw_date = _text(elem.find(date_tag))
    parser = parse_rfc2822
    if raw_date is None:
        date_tag = f"{{{DC_NS}}}date"
        raw_date = _text(elem.find(date_tag))
        parser = parse_rfc3339
    if raw_date is None:
        return SkippedItem(position=position, reason="missing publication date", guid=guid)

    try:
        published = parser(raw_date)
    except ValueError:
        return SkippedItem(
            position=position,
            reason=f"unparseable publication date {raw_date!r}",
            guid=guid,
        )

    enclosure = None
    enclosure_elem = elem.find("enclosure")
    if enclosure_elem is not None:
        enclosure = Enclosure(
            url=enclosure_elem.get("url"),
            length=enclosure_elem.get("length"),
            type=enclosure_elem.get("type"),
        )

    return ParsedItem(
        item=FeedItem(
            guid=guid,
            title=_text(elem.find("title")),
            description=_text(elem.find("description")),
            enclosure=enclosure,
            original_published_at=published,
            date_tag=date_tag,
            element=elem,
        )
    )


def _parse_atom_entry(elem: ET.Element, position: int, ns: str) -> ItemOutcome:
    def q(name: str) -> str:
        return f"{{{ns}}}{name}" if ns else name

    guid = _text(elem.find(q("id")))

    date_tag = q("published")
    raw_date = _text(elem.find(date_tag))
    if raw_date is None:
        date_tag = q("updated")
        raw_date = _text(elem.find(date_tag))
    if raw_date is None:
        return SkippedItem(position=position, reason="missing publication date", guid=guid)

    try:
        published = parse_rfc3339(raw_date)
    except ValueError:
        return SkippedItem(
            position=position,
            reason=f"unparseable publication date {raw_date!r}",
            guid=guid,
        )

    enclosure = None
    for link_elem in elem.findall(q("link")):
        if link_elem.get("rel") == "enclosure":
            enclosure = Enclosure(
                url=link_elem.get("href"),
                length=link_elem.get("length"),
                type=link_elem.get("type"),
            )
            break

    return ParsedItem(
        item=FeedItem(
            guid=guid,
            title=_text(elem.find(q("title"))),
            description=_text(elem.find(q("summary"))) or _text(elem.find(q("content"))),
            enclosure=enclosure,
            original_published_at=published,
            date_tag=date_tag,
            element=elem,
        )
    )


def parse_feed(raw: bytes) -> Feed:
    """Parse an origin feed into a :class:`Feed`.

    Items whose publication date is missing or malformed are dropped and
    logged; the rest of the feed is still returned.

    Args:
        raw: Raw bytes of the origin document

    Returns:
        The parsed feed, items in document order

    Raises:
        ParseError: If the bytes are not well-formed XML or the document is
            neither RSS nor Atom
    """
    root, namespaces = _read_document(raw)
    dialect, container = _detect(root)

    if dialect is Dialect.RSS:
        channel = _rss_channel(container)
        outcomes = [
            _parse_rss_item(elem, position)
            for position, elem in enumerate(container.findall("item"))
        ]
    else:
        ns = _namespace(root.tag)
        channel = _atom_channel(root, ns)
        entry_tag = f"{{{ns}}}entry" if ns else "entry"
        outcomes = [
            _parse_atom_entry(elem, position, ns)
            for position, elem in enumerate(container.findall(entry_tag))
        ]

    items: list[FeedItem] = []
    skipped: list[SkippedItem] = []
    for outcome in outcomes:
        if isinstance(outcome, SkippedItem):
            logger.warning(
                "dropping item %d (guid=%s): %s",
                outcome.position,
                outcome.guid,
                outcome.reason,
            )
            skipped.append(outcome)
        else:
            items.append(outcome.item)

    return Feed(
        dialect=dialect,
        channel=channel,
        items=items,
        skipped=skipped,
        namespaces=namespaces,
        root=root,
    )
