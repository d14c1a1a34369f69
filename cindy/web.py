from __future__ import annotations

import logging

import requests
from fastapi import FastAPI, Response

from cindy.calendar_feed import build_sources
from cindy.config_manager import ConfigManager
from cindy.follow_redirects import FollowRedirects
from cindy.mastodon_client import MastodonClient
from cindy.models import AppConfig
from cindy.poll_cycle import PollCycle
from cindy.scheduler import PollScheduler
from cindy.state_store import StateStore


logger = logging.getLogger(__name__)


class AppContext:
    def __init__(self, config: AppConfig) -> None:
        self.config = config
        self.follower = FollowRedirects(requests.Session(), timeout=config.http.timeout_seconds)
        self.sources = build_sources(config.polling.sources, config.http.redirections_limit)
        if not self.sources:
            logger.warning("CINDY_CALENDAR_SOURCES is missing")
        self.state_store = StateStore(config.polling.last_run_file)
        self.mastodon_client = MastodonClient(config.mastodon, timeout_seconds=config.http.timeout_seconds)
        self.poll_cycle = PollCycle(
            self.sources,
            self.follower,
            self.state_store,
            self.mastodon_client,
            time_zone=config.polling.time_zone,
            max_post_length=config.mastodon.max_post_length,
        )
        self.scheduler = PollScheduler(self.poll_cycle, config.polling.interval_seconds)


def create_app(context: AppContext | None = None) -> FastAPI:
    if context is None:
        context = AppContext(ConfigManager().load_validated())

    app = FastAPI(title="Cindy", version="1.0.0")
    app.state.context = context

    @app.on_event("startup")
    def _startup() -> None:
        app.state.context.scheduler.start()

    @app.on_event("shutdown")
    def _shutdown() -> None:
        app.state.context.scheduler.stop()

    @app.get("/cindy/health", status_code=204)
    def health() -> Response:
        return Response(status_code=204)

    return app
