from __future__ import annotations

import argparse
import logging
import sys
from typing import Sequence

import requests
import uvicorn

from cindy.config_manager import ConfigError, ConfigManager
from cindy.logging_setup import setup_logging
from cindy.web import AppContext, create_app


logger = logging.getLogger(__name__)

EXIT_HEALTHY = 0
EXIT_UNHEALTHY = 1


def check_health(port: int, ignore_errors: bool = False, timeout: float = 10.0) -> int:
    url = f"http://localhost:{port}/cindy/health"
    print(f"HEALTHCHECK {url}")
    try:
        response = requests.get(url, allow_redirects=False, timeout=timeout)
        if not 200 <= response.status_code < 400:
            raise RuntimeError(f"HTTP {response.status_code}")
    except Exception as exc:
        print(f"Unhealthy state detected: {exc}")
        return EXIT_HEALTHY if ignore_errors else EXIT_UNHEALTHY
    print("HEALTHY")
    return EXIT_HEALTHY


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="cindy", description="Announce calendar events on Mastodon.")
    parser.add_argument("--check-health", action="store_true", help="probe the running service and exit")
    parser.add_argument(
        "--ignore-errors", action="store_true", help="with --check-health: exit 0 even when unhealthy"
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    args = _parse_args(argv)
    manager = ConfigManager()

    if args.check_health:
        try:
            port = manager.load().server.port
        except ConfigError as exc:
            print(f"Unhealthy state detected: {exc}")
            sys.exit(EXIT_HEALTHY if args.ignore_errors else EXIT_UNHEALTHY)
        sys.exit(check_health(port, args.ignore_errors))

    try:
        config = manager.load_validated()
    except ConfigError as exc:
        setup_logging()
        logger.critical("%s", exc)
        sys.exit(1)

    setup_logging(config.logging.level)
    logger.info("Starting with configuration %s", manager.masked())
    app = create_app(AppContext(config))
    uvicorn.run(app, host=config.server.host, port=config.server.port, reload=False)


if __name__ == "__main__":
    main()
