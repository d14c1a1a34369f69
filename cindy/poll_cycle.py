from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Protocol, Sequence
from zoneinfo import ZoneInfo

import requests

from cindy.calendar_feed import CalendarSource, FeedError, extract_events, fetch_calendar
from cindy.composer import MAXIMUM_MESSAGE_LENGTH, compose
from cindy.event_filters import filter_events
from cindy.follow_redirects import FollowRedirects
from cindy.models import EPOCH, CycleResult, Event, Post
from cindy.state_store import StateStore, advance


logger = logging.getLogger(__name__)


class Publisher(Protocol):
    def post_status(self, post: Post) -> Any:
        ...


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PollCycle:
    def __init__(
        self,
        sources: Sequence[CalendarSource],
        follower: FollowRedirects,
        state_store: StateStore,
        publisher: Publisher,
        *,
        time_zone: str = "Europe/Berlin",
        max_post_length: int = MAXIMUM_MESSAGE_LENGTH,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.sources = tuple(sources)
        self.follower = follower
        self.state_store = state_store
        self.publisher = publisher
        self.zone = ZoneInfo(time_zone)
        self.max_post_length = max_post_length
        self.clock = clock

    def _publish(self, event: Event) -> bool:
        post = compose(event, self.max_post_length)
        if post is None:
            return False
        try:
            self.publisher.post_status(post)
        except (requests.RequestException, ValueError) as exc:
            logger.error("Failed to publish event '%s': %s: %s", event.uid, type(exc).__name__, exc)
            return False
        logger.info("Posted event '%s' (%s, %s).", event.uid, post.variant, post.visibility)
        return True

    def run_once(self, trigger: str = "scheduled") -> CycleResult:
        """Poll every source once and announce new or changed upcoming events.

        A source whose fetch fails keeps its last run, so the next cycle
        retries it. A source whose fetch succeeds has its last run advanced
        before any event is published; events that fail to publish are not
        retried. The store is written once, after all sources.
        """
        started_at = self.clock()
        logger.info("Processing events (%s)...", trigger)
        last_runs = self.state_store.load()
        fetched = failed = published = dropped = 0

        for source in self.sources:
            logger.debug("Requesting iCalendar from '%s'...", source.uri)
            last_run = last_runs.get(source.uri, EPOCH)
            cycle_start = self.clock()
            try:
                calendar = fetch_calendar(source, self.follower)
            except FeedError as exc:
                failed += 1
                logger.error("Failed to download calendar from '%s': '%s'", source.uri, exc)
                continue

            fetched += 1
            advance(last_runs, source.uri, cycle_start)
            try:
                events = extract_events(calendar)
                survivors = list(
                    filter_events(events, last_run=last_run, cycle_start=cycle_start, zone=self.zone)
                )
            except Exception:
                failed += 1
                logger.exception("Failed to process calendar from '%s'", source.uri)
                continue
            dropped += len(events) - len(survivors)
            for event in survivors:
                if self._publish(event):
                    published += 1
                else:
                    dropped += 1

        self.state_store.save(last_runs)
        duration_ms = int((self.clock() - started_at).total_seconds() * 1000)
        message = f"{fetched} source(s) fetched, {failed} failed, {published} event(s) posted"
        logger.info("Cycle finished: %s.", message)
        return CycleResult(
            status="success" if failed == 0 else "partial",
            message=message,
            duration_ms=duration_ms,
            sources_fetched=fetched,
            sources_failed=failed,
            events_published=published,
            events_dropped=dropped,
            trigger=trigger,
            run_at=started_at,
        )
