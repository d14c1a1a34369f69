from __future__ import annotations

import errno
import logging
import os
import threading
from datetime import datetime
from pathlib import Path

from cindy.models import parse_iso_datetime, serialize_instant


logger = logging.getLogger(__name__)


def advance(last_runs: dict[str, datetime], uri: str, instant: datetime) -> None:
    current = last_runs.get(uri)
    if current is None or instant > current:
        last_runs[uri] = instant


class StateStore:
    """Last successful poll per calendar source, one ``<uri> <instant>`` line each."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)
        self._lock = threading.RLock()

    def load(self) -> dict[str, datetime]:
        with self._lock:
            if not self.path.exists():
                return {}
            last_runs: dict[str, datetime] = {}
            with self.path.open("r", encoding="utf-8") as handle:
                for line_number, line in enumerate(handle, start=1):
                    tokens = line.split(None, 1)
                    if len(tokens) != 2:
                        continue
                    uri, raw_instant = tokens[0], tokens[1].strip()
                    try:
                        instant = parse_iso_datetime(raw_instant)
                    except ValueError:
                        logger.warning(
                            "Skipping unreadable last run '%s' in %s:%d.", raw_instant, self.path, line_number
                        )
                        continue
                    if instant is not None:
                        advance(last_runs, uri, instant)
            return last_runs

    def _dump(self, last_runs: dict[str, datetime]) -> str:
        return "".join(f"{uri} {serialize_instant(instant)}\n" for uri, instant in last_runs.items())

    def save(self, last_runs: dict[str, datetime]) -> None:
        with self._lock:
            content = self._dump(last_runs)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_name(self.path.name + ".tmp")
            with tmp_path.open("w", encoding="utf-8") as handle:
                handle.write(content)
            try:
                tmp_path.replace(self.path)
            except OSError as exc:
                # Some bind-mounted single files in containers cannot be atomically replaced.
                if exc.errno != errno.EBUSY:
                    raise
                with self.path.open("w", encoding="utf-8") as handle:
                    handle.write(content)
                if tmp_path.exists():
                    tmp_path.unlink()
