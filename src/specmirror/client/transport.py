"""Synchronous HTTP transport with bounded, manual redirect following.

This module provides :class:`Transport`, the only component of specmirror
that talks to the network. It wraps :class:`httpx.Client` with
``follow_redirects=False`` and layers on:

- **Redirect budget** -- each ``Location`` hop costs one unit of the
  budget; running out raises :class:`~specmirror.exceptions.TooManyRedirectsError`.
- **Error mapping** -- terminal non-2xx statuses raise
  :class:`~specmirror.exceptions.UpstreamError`, a body that does not match
  its ``Content-Encoding`` raises
  :class:`~specmirror.exceptions.CorruptUpstreamDataError`, and any other
  httpx failure raises :class:`~specmirror.exceptions.ConnectionError_`.

There are no retries: a transient failure is surfaced to the caller, and
the source that triggered the request stays usable for a later attempt.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from specmirror.exceptions import (
    ConnectionError_,
    CorruptUpstreamDataError,
    TooManyRedirectsError,
    UpstreamError,
)
from specmirror.models import SourceSettings

logger = logging.getLogger(__name__)


class Transport:
    """HTTP(S) client for upstream index and spec artifacts.

    One network call is made per hop. The underlying :class:`httpx.Client`
    is created on first use (or on ``__enter__``) and closed on
    ``__exit__``/:meth:`close`.

    Args:
        settings: Timeout, TLS verification and default redirect budget.
        http_transport: Optional :class:`httpx.BaseTransport` for the
            underlying client, e.g. :class:`httpx.MockTransport` in tests.

    Example::

        with Transport(SourceSettings(redirect_budget=5)) as transport:
            response = transport.head("https://gems.example.com/specs.1.gz")
            etag = response.headers.get("etag")
    """

    def __init__(
        self,
        settings: Optional[SourceSettings] = None,
        http_transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._settings = settings or SourceSettings()
        self._http_transport = http_transport
        self._client: Optional[httpx.Client] = None
        self.request_count = 0

    @property
    def settings(self) -> SourceSettings:
        return self._settings

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> Transport:
        self._ensure_client()
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying :class:`httpx.Client`, if open."""
        if self._client:
            self._client.close()
            self._client = None

    # ------------------------------------------------------------------ #
    # Requests
    # ------------------------------------------------------------------ #

    def fetch(
        self,
        method: str,
        uri: str,
        redirect_budget: Optional[int] = None,
    ) -> httpx.Response:
        """Request *uri*, following redirects until a terminal response.

        Args:
            method: HTTP method, e.g. ``GET`` or ``HEAD``. The method is kept
                unchanged across redirects.
            uri: Absolute URI to request.
            redirect_budget: Maximum number of requests made for this call;
                every redirect consumes one. Defaults to
                ``settings.redirect_budget``.

        Returns:
            The first 2xx :class:`httpx.Response`.

        Raises:
            UpstreamError: On a terminal status outside 2xx, or a redirect
                with an unusable ``Location``.
            TooManyRedirectsError: When the budget is used up by redirects.
            ConnectionError_: On network / timeout errors.
            CorruptUpstreamDataError: When the body cannot be decoded.
        """
        remaining = self._settings.redirect_budget if redirect_budget is None else redirect_budget
        method = method.upper()
        url = httpx.URL(uri)

        while remaining > 0:
            response = self._send(method, url)
            if response.is_success:
                return response
            if response.is_redirect:
                location = response.headers["location"]
                try:
                    url = url.join(location)
                except httpx.InvalidURL as exc:
                    raise UpstreamError(
                        response.status_code,
                        f"Invalid redirect location {location!r} from {method} {url}: {exc}",
                    ) from exc
                remaining -= 1
                continue
            raise UpstreamError(
                response.status_code,
                f"HTTP {response.status_code} {response.reason_phrase} for {method} {url}",
            )

        raise TooManyRedirectsError(f"HTTP redirect to {url} too deep (starting from {uri})")

    def get(self, uri: str, redirect_budget: Optional[int] = None) -> httpx.Response:
        """Send a GET request, see :meth:`fetch`."""
        return self.fetch("GET", uri, redirect_budget)

    def head(self, uri: str, redirect_budget: Optional[int] = None) -> httpx.Response:
        """Send a HEAD request, see :meth:`fetch`."""
        return self.fetch("HEAD", uri, redirect_budget)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _ensure_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                timeout=self._settings.timeout,
                verify=self._settings.verify_ssl,
                follow_redirects=False,
                transport=self._http_transport,
            )
        return self._client

    def _send(self, method: str, url: httpx.URL) -> httpx.Response:
        """Make exactly one network call."""
        client = self._ensure_client()
        logger.debug(" -> %s %s", method, url)
        self.request_count += 1
        try:
            response = client.request(method, url)
        except httpx.DecodingError as exc:
            raise CorruptUpstreamDataError(
                f"Undecodable response body for {method} {url}: {exc}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ConnectionError_(f"{method} {url} failed: {exc}") from exc
        logger.debug(" <- %s %s", response.status_code, response.reason_phrase)
        return response
