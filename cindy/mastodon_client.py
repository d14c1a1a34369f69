from __future__ import annotations

from typing import Any

import requests

from cindy.models import MastodonConfig, Post


class MastodonClient:
    def __init__(self, config: MastodonConfig, timeout_seconds: float = 30.0) -> None:
        self.config = config
        self.timeout_seconds = timeout_seconds

    def is_configured(self) -> bool:
        return bool(self.config.host and self.config.access_token)

    def _base_url(self) -> str:
        host = self.config.host.rstrip("/")
        if host.startswith("http://") or host.startswith("https://"):
            return host
        return f"https://{host}"

    def _statuses_endpoint(self) -> str:
        return f"{self._base_url()}/api/v1/statuses"

    def post_status(self, post: Post) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "status": post.text,
            "visibility": post.visibility,
            "sensitive": False,
        }
        if post.spoiler_text:
            payload["spoiler_text"] = post.spoiler_text
        response = requests.post(
            self._statuses_endpoint(),
            headers={
                "Authorization": f"Bearer {self.config.access_token}",
                "Content-Type": "application/json",
            },
            json=payload,
            timeout=self.timeout_seconds,
        )
        response.raise_for_status()
        result = response.json()
        if not isinstance(result, dict):
            raise ValueError("Mastodon response root must be an object.")
        return result
