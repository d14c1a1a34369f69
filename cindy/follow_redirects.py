"""Automatic following of HTTP redirects on top of a ``requests.Session``.

Following is disabled by default and enabled per request by passing a
:class:`RedirectionContext` to :meth:`FollowRedirects.send`. When a server
answers with a ``3XX`` status and a ``Location`` header, an identical request
(sans body) is sent to the proposed location. When the limit is exceeded, or
when the server provides no ``Location`` header, nothing is followed and the
server's last response is returned to the caller.

Permanent redirects (``301``/``308``) are remembered, so later requests to the
same URI are rewritten before they hit the network. Entries never expire.

This does *not* implement https://fetch.spec.whatwg.org/#http-redirect-fetch.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import urljoin

import requests


logger = logging.getLogger(__name__)

PERMANENT_REDIRECT_CODES = frozenset({301, 308})


class PermanentRedirectCache:
    """Origin URI -> permanent redirect target, shared by concurrent calls.

    Entries are overwritten but never removed. Every access is a single dict
    operation, which is atomic, so no lock is taken.
    """

    def __init__(self) -> None:
        self._targets: dict[str, str] = {}

    def get(self, uri: str) -> str | None:
        return self._targets.get(uri)

    def put(self, origin: str, target: str) -> None:
        self._targets[origin] = target

    def snapshot(self) -> dict[str, str]:
        return dict(self._targets)

    def __len__(self) -> int:
        return len(self._targets)


@dataclass
class RedirectionContext:
    """Hop counter of one logical request chain."""

    limit: int
    count: int = 0

    @property
    def exceeded(self) -> bool:
        return self.count > self.limit


def _is_redirection(status_code: int) -> bool:
    return 300 <= status_code < 400


def _synthetic_redirect(request: requests.PreparedRequest, location: str) -> requests.Response:
    response = requests.Response()
    response.status_code = 308
    response.reason = "Permanent Redirect"
    response.headers["Location"] = location
    response.url = request.url or ""
    response.request = request
    response.raw = io.BytesIO(b"")
    return response


class FollowRedirects:
    def __init__(
        self,
        session: requests.Session | None = None,
        cache: PermanentRedirectCache | None = None,
        timeout: float | None = None,
    ) -> None:
        self.session = session or requests.Session()
        self.cache = cache if cache is not None else PermanentRedirectCache()
        self.timeout = timeout

    def send(
        self,
        request: requests.PreparedRequest,
        context: RedirectionContext | None = None,
        **kwargs: Any,
    ) -> requests.Response:
        kwargs.setdefault("timeout", self.timeout)
        if context is None:
            return self.session.send(request, **kwargs)

        aborted = self._before_send(request, context)
        if aborted is not None:
            return aborted
        kwargs["allow_redirects"] = False
        response = self.session.send(request, **kwargs)
        return self._after_response(request, response, context, kwargs)

    def _before_send(
        self, request: requests.PreparedRequest, context: RedirectionContext
    ) -> requests.Response | None:
        target = self.cache.get(request.url or "")
        while target is not None:
            context.count += 1
            if context.exceeded:
                logger.error(
                    "Not following cached redirect #%d from '%s' to '%s', as limit %d is exceeded.",
                    context.count,
                    request.url,
                    target,
                    context.limit,
                )
                return _synthetic_redirect(request, target)
            logger.debug("Using cached redirect #%d from '%s' to '%s'.", context.count, request.url, target)
            request.prepare_url(target, None)
            target = self.cache.get(request.url or "")
        return None

    def _after_response(
        self,
        request: requests.PreparedRequest,
        response: requests.Response,
        context: RedirectionContext,
        send_kwargs: dict[str, Any],
    ) -> requests.Response:
        if not _is_redirection(response.status_code):
            logger.debug(
                "Response from '%s' was %d, so there is no redirection to auto-follow.",
                request.url,
                response.status_code,
            )
            return response

        redirects_count = context.count + 1
        location = response.headers.get("Location")
        if not location:
            logger.error(
                "Ignoring redirect #%d from '%s', as 'Location' header is missing.",
                redirects_count,
                request.url,
            )
            return response

        origin = request.url or ""
        location = urljoin(origin, location)
        if redirects_count > context.limit:
            logger.error(
                "Ignoring redirect #%d from '%s' to '%s', as limit %d is exceeded.",
                redirects_count,
                origin,
                location,
                context.limit,
            )
            return response

        if response.status_code in PERMANENT_REDIRECT_CODES:
            self.cache.put(origin, location)

        logger.debug("Following redirect #%d from '%s' to '%s'...", redirects_count, origin, location)
        followed = self.send(
            self._redirected_request(request, location),
            RedirectionContext(limit=context.limit, count=redirects_count),
            **send_kwargs,
        )
        followed.history = [response, *followed.history]
        return followed

    @staticmethod
    def _redirected_request(request: requests.PreparedRequest, location: str) -> requests.PreparedRequest:
        redirected = request.copy()
        redirected.prepare_url(location, None)
        redirected.body = None
        redirected.headers.pop("Content-Length", None)
        redirected.headers.pop("Transfer-Encoding", None)
        return redirected
