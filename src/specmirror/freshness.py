"""Two-tier staleness check for cached source indexes.

Tier one is a time-only gate: a source checked less than ``ttl`` ago is
trusted without touching the network. Tier two is a ``HEAD`` request for the
source index whose comparison headers (``etag``, ``last-modified``,
``content-length`` by default) are compared with the values recorded at
the last fetch.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable, Mapping, Optional

import httpx

from specmirror.client import Transport
from specmirror.models import SourceSettings
from specmirror.output import get_output

if TYPE_CHECKING:
    from specmirror.source import Source

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FreshnessValidator:
    """Decides whether a source's cached specs may still be considered current.

    Args:
        transport: Used for the ``HEAD`` request.
        settings: Supplies ``ttl`` and ``comparison_headers``.
        clock: Returns the current UTC time. Tests pass a fake clock.
    """

    def __init__(
        self,
        transport: Transport,
        settings: Optional[SourceSettings] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._transport = transport
        self._settings = settings or transport.settings
        self._clock = clock or utcnow

    @property
    def settings(self) -> SourceSettings:
        return self._settings

    def now(self) -> datetime:
        return self._clock()

    def within_ttl(self, last_checked_at: Optional[datetime]) -> bool:
        """Return True if a check made at *last_checked_at* is still trusted."""
        if last_checked_at is None:
            return False
        return self.now() - last_checked_at <= self._settings.ttl

    def comparison_headers(self, headers: Mapping[str, str]) -> dict[str, str]:
        """Extract the configured comparison headers present in *headers*."""
        found: dict[str, str] = {}
        for name in self._settings.comparison_headers:
            value = headers.get(name)
            if value is not None:
                found[name] = value
        return found

    def is_stale(self, source: Source) -> bool:
        """Return True if *source* must be re-fetched from upstream.

        * Never fetched (no ``last_checked_at`` and no validation metadata):
          stale, without a network call.
        * Checked within the TTL: not stale, without a network call.
        * Otherwise the source index is checked with ``HEAD``. Every present
          comparison header whose value differs from the recorded one makes
          the source stale and is recorded. Absent headers are ignored; a
          response carrying none of them is stale. ``last_checked_at`` is set
          to the time of the check.

        A source restored from the on-disk cache has validation metadata but
        no ``last_checked_at``; it skips the TTL gate and is checked.

        Raises:
            UpstreamError: The HEAD request got a terminal non-2xx status.
            TooManyRedirectsError: The HEAD request ran out of redirect budget.
            ConnectionError_: The HEAD request failed at the network level.
        """
        if source.last_checked_at is None and not source.validation_metadata:
            return True
        if self.within_ttl(source.last_checked_at):
            return False

        logger.debug("checking if our cached version of %s is up to date", source.origin)
        response = self._transport.head(source.upstream_index_uri)
        source.last_checked_at = self.now()
        return self._compare(source, response)

    def _compare(self, source: Source, response: httpx.Response) -> bool:
        observed = self.comparison_headers(response.headers)
        if not observed:
            logger.debug("no comparison headers from %s", source.upstream_index_uri)
            get_output().info(f" * cache of {source.origin} is out of date")
            return True

        stale = False
        for name, value in observed.items():
            if source.validation_metadata.get(name) == value:
                logger.debug("  our cache is up to date ( %s : %s )", name, value)
            else:
                source.validation_metadata[name] = value
                stale = True
        if stale:
            get_output().info(f" * cache of {source.origin} is out of date")
        return stale
