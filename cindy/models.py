from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timezone
from typing import Any


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

VISIBILITY_PUBLIC = "public"
VISIBILITY_FOLLOWERS_ONLY = "private"
VISIBILITY_DIRECT = "direct"

TEMPORAL_ZONED = "zoned"
TEMPORAL_OFFSET = "offset"
TEMPORAL_LOCAL = "local"
TEMPORAL_DATE = "date"
TEMPORAL_UNSUPPORTED = "unsupported"

_EXCESS_FRACTION = re.compile(r"(\.\d{6})\d+")


def _ensure_tz(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def parse_iso_datetime(value: str | datetime | None) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return _ensure_tz(value)
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # fromisoformat accepts at most microseconds before Python 3.11
    text = _EXCESS_FRACTION.sub(r"\1", text)
    parsed = datetime.fromisoformat(text)
    return _ensure_tz(parsed)


def serialize_instant(value: datetime) -> str:
    text = _ensure_tz(value).astimezone(timezone.utc).isoformat()
    if text.endswith("+00:00"):
        text = text[: -len("+00:00")] + "Z"
    return text


def _split_csv(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = list(value)
    return [str(x).strip() for x in items if str(x).strip()]


@dataclass
class MastodonConfig:
    host: str = ""
    access_token: str = ""
    max_post_length: int = 500

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "MastodonConfig":
        data = data or {}
        return cls(
            host=str(data.get("host", "") or "").strip(),
            access_token=str(data.get("access_token", "") or "").strip(),
            max_post_length=max(1, int(data.get("max_post_length", 500))),
        )


@dataclass
class PollingConfig:
    interval_seconds: int = 60
    sources: list[str] = field(default_factory=list)
    last_run_file: str = "lastRun"
    time_zone: str = "Europe/Berlin"

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "PollingConfig":
        data = data or {}
        return cls(
            interval_seconds=max(1, int(data.get("interval_seconds", 60))),
            sources=_split_csv(data.get("sources")),
            last_run_file=str(data.get("last_run_file", "lastRun") or "").strip() or "lastRun",
            time_zone=str(data.get("time_zone", "Europe/Berlin") or "").strip() or "Europe/Berlin",
        )


@dataclass
class HttpConfig:
    redirections_limit: int = 50
    timeout_seconds: float = 30.0

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "HttpConfig":
        data = data or {}
        return cls(
            redirections_limit=max(0, int(data.get("redirections_limit", 50))),
            timeout_seconds=float(data.get("timeout_seconds", 30)),
        )


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8080

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "ServerConfig":
        data = data or {}
        return cls(
            host=str(data.get("host", "0.0.0.0") or "").strip() or "0.0.0.0",
            port=int(data.get("port", 8080)),
        )


@dataclass
class LoggingConfig:
    level: str = "INFO"

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "LoggingConfig":
        data = data or {}
        return cls(level=str(data.get("level", "INFO") or "").strip().upper() or "INFO")


@dataclass
class AppConfig:
    mastodon: MastodonConfig = field(default_factory=MastodonConfig)
    polling: PollingConfig = field(default_factory=PollingConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "AppConfig":
        data = data or {}
        return cls(
            mastodon=MastodonConfig.from_dict(data.get("mastodon")),
            polling=PollingConfig.from_dict(data.get("polling")),
            http=HttpConfig.from_dict(data.get("http")),
            server=ServerConfig.from_dict(data.get("server")),
            logging=LoggingConfig.from_dict(data.get("logging")),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Temporal:
    """A decoded iCalendar date/time value tagged with its representation."""

    kind: str
    value: Any = None

    @classmethod
    def of(cls, value: Any) -> "Temporal":
        if isinstance(value, datetime):
            if value.tzinfo is None:
                return cls(TEMPORAL_LOCAL, value)
            if isinstance(value.tzinfo, timezone):
                return cls(TEMPORAL_OFFSET, value)
            return cls(TEMPORAL_ZONED, value)
        if isinstance(value, date):
            return cls(TEMPORAL_DATE, value)
        return cls(TEMPORAL_UNSUPPORTED, value)


@dataclass(frozen=True)
class Event:
    uid: str | None
    version: Temporal
    summary: str | None = None
    description: str | None = None
    start: Temporal = field(default_factory=lambda: Temporal(TEMPORAL_UNSUPPORTED))
    location: str | None = None
    url: str | None = None
    classification: str | None = None
    status: str | None = None


@dataclass(frozen=True)
class Post:
    text: str
    visibility: str
    spoiler_text: str | None = None
    variant: str = "full"


@dataclass
class CycleResult:
    status: str
    message: str
    duration_ms: int
    sources_fetched: int
    sources_failed: int
    events_published: int
    events_dropped: int
    trigger: str
    run_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
