from __future__ import annotations

import logging
from datetime import date, datetime, time, timezone, tzinfo
from typing import Callable, Iterable, Iterator

from cindy.models import (
    TEMPORAL_DATE,
    TEMPORAL_LOCAL,
    TEMPORAL_OFFSET,
    TEMPORAL_ZONED,
    Event,
    Temporal,
)


logger = logging.getLogger(__name__)

ACCEPTED_STATUS = "CONFIRMED"
KNOWN_CLASSIFICATIONS = frozenset({"PUBLIC", "PRIVATE", "CONFIDENTIAL"})


class UnsupportedTemporalError(ValueError):
    pass


def _aware_to_instant(value: datetime, _zone: tzinfo) -> datetime:
    return value.astimezone(timezone.utc)


def _local_to_instant(value: datetime, zone: tzinfo) -> datetime:
    return value.replace(tzinfo=zone).astimezone(timezone.utc)


def _date_to_instant(value: date, zone: tzinfo) -> datetime:
    return datetime.combine(value, time.min, tzinfo=zone).astimezone(timezone.utc)


_NORMALIZERS: dict[str, Callable[..., datetime]] = {
    TEMPORAL_ZONED: _aware_to_instant,
    TEMPORAL_OFFSET: _aware_to_instant,
    TEMPORAL_LOCAL: _local_to_instant,
    TEMPORAL_DATE: _date_to_instant,
}


def to_instant(temporal: Temporal, zone: tzinfo) -> datetime:
    """Normalize a temporal value to an aware UTC instant.

    Floating date-times and all-day dates are anchored in ``zone``; all-day
    dates at the start of their day.
    """
    normalizer = _NORMALIZERS.get(temporal.kind)
    if normalizer is None:
        raise UnsupportedTemporalError(f"unsupported temporal value {type(temporal.value).__name__}")
    return normalizer(temporal.value, zone)


def changed_since(event: Event, last_run: datetime, zone: tzinfo) -> bool:
    try:
        version = to_instant(event.version, zone)
    except UnsupportedTemporalError:
        logger.warning("Ignoring event because it has no usable version timestamp: '%s'.", event.uid)
        return False
    if version > last_run:
        return True
    logger.debug("Ignoring event because it was not changed since last run: '%s'.", event.uid)
    return False


def is_confirmed(event: Event) -> bool:
    if event.status is None or event.status == ACCEPTED_STATUS:
        return True
    logger.debug("Ignoring event because its status is '%s': '%s'.", event.status, event.uid)
    return False


def has_known_classification(event: Event) -> bool:
    if event.classification is None or event.classification in KNOWN_CLASSIFICATIONS:
        return True
    logger.debug(
        "Ignoring event because classification is '%s': '%s'.", event.classification, event.uid
    )
    return False


def begins_after(event: Event, cycle_start: datetime, zone: tzinfo) -> bool:
    try:
        start = to_instant(event.start, zone)
    except UnsupportedTemporalError:
        logger.warning(
            "Ignoring event because it has an unsupported temporal class '%s': '%s'.",
            type(event.start.value).__name__,
            event.uid,
        )
        return False
    if start > cycle_start:
        return True
    logger.debug("Ignoring event because it begins in the past: '%s'.", event.uid)
    return False


def filter_events(
    events: Iterable[Event],
    *,
    last_run: datetime,
    cycle_start: datetime,
    zone: tzinfo,
) -> Iterator[Event]:
    """Yield the events worth announcing, preserving document order."""
    for event in events:
        if not changed_since(event, last_run, zone):
            continue
        if not is_confirmed(event):
            continue
        if not has_known_classification(event):
            continue
        if not begins_after(event, cycle_start, zone):
            continue
        logger.debug("Processing event: '%s'", event.uid)
        yield event
