from __future__ import annotations

import logging
from datetime import date, datetime

from cindy.models import (
    TEMPORAL_DATE,
    VISIBILITY_DIRECT,
    VISIBILITY_FOLLOWERS_ONLY,
    VISIBILITY_PUBLIC,
    Event,
    Post,
    Temporal,
)


logger = logging.getLogger(__name__)

MAXIMUM_MESSAGE_LENGTH = 500
ELLIPSIS = "…"

GERMAN_MONTHS = (
    "Januar",
    "Februar",
    "März",
    "April",
    "Mai",
    "Juni",
    "Juli",
    "August",
    "September",
    "Oktober",
    "November",
    "Dezember",
)

_VISIBILITIES = {
    "PUBLIC": VISIBILITY_PUBLIC,
    "PRIVATE": VISIBILITY_FOLLOWERS_ONLY,
    "CONFIDENTIAL": VISIBILITY_DIRECT,
}


def visibility_for(classification: str | None) -> str:
    # RFC 5545 3.8.1.3: a missing classification means PUBLIC, an unknown one PRIVATE.
    if classification is None:
        return VISIBILITY_PUBLIC
    return _VISIBILITIES.get(classification, VISIBILITY_FOLLOWERS_ONLY)


def format_start(start: Temporal) -> str | None:
    value = start.value
    if start.kind == TEMPORAL_DATE and isinstance(value, date):
        return f"{value.day}. {GERMAN_MONTHS[value.month - 1]} {value.year}"
    if isinstance(value, datetime):
        return f"{value.day}. {GERMAN_MONTHS[value.month - 1]} {value.year} {value:%H:%M}"
    return None


def build_teaser(event: Event) -> str:
    parts: list[str] = []
    if event.summary is not None:
        parts.append(f"📢 {event.summary}")
    begin = format_start(event.start)
    if begin is not None:
        parts.append(f"\n📅 {begin}")
    if event.location is not None:
        parts.append(f"\n🏠️ {event.location}")
    return "".join(parts)


def build_link(event: Event) -> str:
    return f"\n🌍 {event.url}" if event.url is not None else ""


def build_body(description: str | None, teaser: str, link: str, max_length: int = MAXIMUM_MESSAGE_LENGTH) -> str:
    if description is None:
        return ""
    available = max_length - len(teaser) - len(link)
    # A negative budget keeps the description whole; the ladder skips the body variant then.
    if len(description) <= available or available < 0:
        return description
    return description[: max(0, available - 1)] + ELLIPSIS


def compose(event: Event, max_length: int = MAXIMUM_MESSAGE_LENGTH) -> Post | None:
    """Build the longest post variant for ``event`` that fits ``max_length``.

    Tries, in order: body and link with the teaser as spoiler, teaser and
    link, teaser alone, link alone. Returns ``None`` when nothing fits.
    """
    visibility = visibility_for(event.classification)
    teaser = build_teaser(event)
    link = build_link(event)
    body = build_body(event.description, teaser, link, max_length)

    if len(body) + len(link) + len(teaser) <= max_length:
        return Post(text=body + link, visibility=visibility, spoiler_text=teaser, variant="full")
    if len(teaser) + len(link) <= max_length:
        return Post(text=teaser + link, visibility=visibility, variant="teaser_link")
    if len(teaser) <= max_length:
        return Post(text=teaser, visibility=visibility, variant="teaser")
    if link and len(link) <= max_length:
        return Post(text=link, visibility=visibility, variant="link")
    logger.warning(
        "Ignoring event, as even the shortest feasible variant would still be too long: '%s'",
        event.uid,
    )
    return None
