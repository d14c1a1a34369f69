from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable

import requests
from icalendar import Calendar as ICalendar

from cindy.follow_redirects import FollowRedirects, RedirectionContext
from cindy.models import Event, Temporal


logger = logging.getLogger(__name__)

READABLE_MEDIA_TYPES = frozenset({"text/calendar", "application/octet-stream"})
ACCEPT_HEADER = "text/calendar, application/octet-stream"


class FeedError(RuntimeError):
    pass


@dataclass(frozen=True)
class CalendarSource:
    uri: str
    request: requests.PreparedRequest
    redirections_limit: int

    def new_request(self) -> requests.PreparedRequest:
        return self.request.copy()

    def new_context(self) -> RedirectionContext:
        return RedirectionContext(limit=self.redirections_limit)


def build_sources(uris: Iterable[str], redirections_limit: int) -> list[CalendarSource]:
    sources: list[CalendarSource] = []
    for uri in uris:
        uri = str(uri).strip()
        if not uri:
            continue
        request = requests.Request("GET", uri, headers={"Accept": ACCEPT_HEADER}).prepare()
        sources.append(CalendarSource(uri=uri, request=request, redirections_limit=redirections_limit))
    return sources


def _media_type(response: requests.Response) -> tuple[str, str | None]:
    content_type = response.headers.get("Content-Type", "")
    if not content_type:
        return "application/octet-stream", None
    parts = [part.strip() for part in content_type.split(";")]
    media_type = parts[0].lower()
    charset = None
    for param in parts[1:]:
        key, _, value = param.partition("=")
        if key.strip().lower() == "charset" and value.strip():
            charset = value.strip().strip('"')
    return media_type, charset


def fetch_calendar(source: CalendarSource, follower: FollowRedirects) -> ICalendar:
    try:
        response = follower.send(source.new_request(), source.new_context())
    except requests.RequestException as exc:
        raise FeedError(f"{type(exc).__name__}: {exc}") from exc

    if not 200 <= response.status_code < 300:
        raise FeedError(f"HTTP {response.status_code} {response.reason or ''}".strip())

    media_type, charset = _media_type(response)
    if media_type not in READABLE_MEDIA_TYPES:
        raise FeedError(f"Unreadable media type '{media_type}'")

    try:
        text = response.content.decode(charset or "utf-8", errors="replace")
    except LookupError as exc:
        raise FeedError(f"Unknown charset '{charset}'") from exc

    try:
        return ICalendar.from_ical(text)
    except ValueError as exc:
        raise FeedError(f"Invalid iCalendar data: {exc}") from exc


def _text_or_none(component: Any, name: str) -> str | None:
    value = component.get(name)
    if value is None:
        return None
    return str(value)


def _decoded_or_none(component: Any, name: str) -> Any:
    prop = component.get(name)
    if prop is None:
        return None
    try:
        return getattr(prop, "dt", prop)
    except ValueError as exc:
        # unparsable values are kept as broken properties by newer icalendar releases
        logger.warning("Ignoring malformed %s in VEVENT '%s': %s", name, component.get("UID"), exc)
        return None


def event_from_component(component: Any) -> Event:
    version = None
    for name in ("LAST-MODIFIED", "CREATED", "DTSTAMP"):
        version = _decoded_or_none(component, name)
        if version is not None:
            break
    return Event(
        uid=_text_or_none(component, "UID"),
        version=Temporal.of(version),
        summary=_text_or_none(component, "SUMMARY"),
        description=_text_or_none(component, "DESCRIPTION"),
        start=Temporal.of(_decoded_or_none(component, "DTSTART")),
        location=_text_or_none(component, "LOCATION"),
        url=_text_or_none(component, "URL"),
        classification=_text_or_none(component, "CLASS"),
        status=_text_or_none(component, "STATUS"),
    )


def extract_events(calendar: ICalendar) -> list[Event]:
    events: list[Event] = []
    for component in calendar.walk("VEVENT"):
        event = event_from_component(component)
        logger.debug("Received VEVENT: '%s'", event.uid)
        events.append(event)
    return events
