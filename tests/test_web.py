import tempfile
import unittest
from pathlib import Path
from unittest import mock

from fastapi.testclient import TestClient

from cindy.models import AppConfig
from cindy.web import AppContext, create_app


class WebTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        config = AppConfig.from_dict(
            {
                "mastodon": {"host": "mastodon.example", "access_token": "token"},
                "polling": {
                    "sources": "https://a.example/cal.ics,https://b.example/cal.ics",
                    "last_run_file": str(Path(self.temp_dir.name) / "lastRun"),
                },
                "http": {"redirections_limit": 3},
            }
        )
        self.context = AppContext(config)
        self.context.scheduler = mock.Mock()

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_health_returns_no_content(self) -> None:
        client = TestClient(create_app(self.context))
        resp = client.get("/cindy/health")
        self.assertEqual(resp.status_code, 204)
        self.assertEqual(resp.content, b"")

    def test_scheduler_follows_app_lifecycle(self) -> None:
        with TestClient(create_app(self.context)):
            self.context.scheduler.start.assert_called_once()
        self.context.scheduler.stop.assert_called_once()

    def test_context_wires_sources_and_shared_redirect_cache(self) -> None:
        self.assertEqual(
            [s.uri for s in self.context.sources], ["https://a.example/cal.ics", "https://b.example/cal.ics"]
        )
        self.assertEqual(self.context.sources[0].redirections_limit, 3)
        self.assertIs(self.context.poll_cycle.follower, self.context.follower)
        self.assertEqual(self.context.follower.timeout, 30.0)


if __name__ == "__main__":
    unittest.main()
