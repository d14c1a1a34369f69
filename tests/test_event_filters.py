import unittest
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from cindy.event_filters import (
    UnsupportedTemporalError,
    begins_after,
    changed_since,
    filter_events,
    has_known_classification,
    is_confirmed,
    to_instant,
)
from cindy.models import EPOCH, TEMPORAL_OFFSET, TEMPORAL_ZONED, Event, Temporal


BERLIN = ZoneInfo("Europe/Berlin")
NOW = datetime(2026, 7, 1, 12, 0, tzinfo=timezone.utc)


def _event(**overrides) -> Event:
    values = {
        "uid": "uid-1",
        "version": Temporal.of(NOW - timedelta(hours=1)),
        "start": Temporal.of(NOW + timedelta(hours=2)),
    }
    values.update(overrides)
    return Event(**values)


class ToInstantTests(unittest.TestCase):
    def test_aware_values_convert_directly(self) -> None:
        zoned = Temporal.of(datetime(2026, 7, 1, 14, 0, tzinfo=BERLIN))
        offset = Temporal.of(datetime(2026, 7, 1, 14, 0, tzinfo=timezone(timedelta(hours=2))))
        self.assertEqual(zoned.kind, TEMPORAL_ZONED)
        self.assertEqual(offset.kind, TEMPORAL_OFFSET)
        self.assertEqual(to_instant(zoned, timezone.utc), NOW)
        self.assertEqual(to_instant(offset, timezone.utc), NOW)

    def test_floating_time_is_anchored_in_zone(self) -> None:
        floating = Temporal.of(datetime(2026, 7, 1, 14, 0))
        self.assertEqual(to_instant(floating, BERLIN), NOW)

    def test_date_is_anchored_at_start_of_day_in_zone(self) -> None:
        all_day = Temporal.of(date(2026, 7, 2))
        self.assertEqual(to_instant(all_day, BERLIN), datetime(2026, 7, 1, 22, 0, tzinfo=timezone.utc))

    def test_unsupported_value_raises(self) -> None:
        for value in (None, time(10, 0), timedelta(hours=1)):
            with self.assertRaises(UnsupportedTemporalError):
                to_instant(Temporal.of(value), BERLIN)


class FilterStageTests(unittest.TestCase):
    def test_version_must_be_strictly_after_last_run(self) -> None:
        last_run = NOW - timedelta(hours=1)
        self.assertFalse(changed_since(_event(), last_run, BERLIN))
        self.assertTrue(changed_since(_event(), last_run - timedelta(seconds=1), BERLIN))
        self.assertTrue(changed_since(_event(), EPOCH, BERLIN))

    def test_event_without_version_is_dropped(self) -> None:
        with self.assertLogs("cindy.event_filters", level="WARNING"):
            self.assertFalse(changed_since(_event(version=Temporal.of(None)), EPOCH, BERLIN))

    def test_status(self) -> None:
        self.assertTrue(is_confirmed(_event(status=None)))
        self.assertTrue(is_confirmed(_event(status="CONFIRMED")))
        self.assertFalse(is_confirmed(_event(status="TENTATIVE")))
        self.assertFalse(is_confirmed(_event(status="CANCELLED")))

    def test_classification(self) -> None:
        for value in (None, "PUBLIC", "PRIVATE", "CONFIDENTIAL"):
            self.assertTrue(has_known_classification(_event(classification=value)))
        self.assertFalse(has_known_classification(_event(classification="X-SECRET")))

    def test_start_equal_to_cycle_start_is_dropped(self) -> None:
        self.assertFalse(begins_after(_event(start=Temporal.of(NOW)), NOW, BERLIN))
        self.assertTrue(begins_after(_event(start=Temporal.of(NOW + timedelta(microseconds=1))), NOW, BERLIN))

    def test_floating_start_in_the_past_of_zone_is_dropped(self) -> None:
        # 13:30 in Berlin is 11:30 UTC, before the 12:00 UTC cycle start
        floating = Temporal.of(datetime(2026, 7, 1, 13, 30))
        self.assertFalse(begins_after(_event(start=floating), NOW, BERLIN))
        self.assertTrue(begins_after(_event(start=floating), NOW, timezone.utc))

    def test_unsupported_start_is_dropped_with_warning(self) -> None:
        with self.assertLogs("cindy.event_filters", level="WARNING"):
            self.assertFalse(begins_after(_event(start=Temporal.of(time(9, 0))), NOW, BERLIN))


class FilterEventsTests(unittest.TestCase):
    def test_chain_keeps_document_order_of_survivors(self) -> None:
        events = [
            _event(uid="a"),
            _event(uid="b", status="CANCELLED"),
            _event(uid="c", classification="UNKNOWN"),
            _event(uid="d", start=Temporal.of(NOW - timedelta(hours=2))),
            _event(uid="e", version=Temporal.of(NOW - timedelta(days=2))),
            _event(uid="f", classification="CONFIDENTIAL"),
        ]

        survivors = list(
            filter_events(events, last_run=NOW - timedelta(days=1), cycle_start=NOW, zone=BERLIN)
        )

        self.assertEqual([e.uid for e in survivors], ["a", "f"])


if __name__ == "__main__":
    unittest.main()
