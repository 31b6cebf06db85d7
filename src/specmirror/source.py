"""The representation of an upstream source from which specs are mirrored.

A :class:`Source` wraps the spec records of one origin together with the
metadata needed to keep them fresh. It ties together the
:class:`~specmirror.client.Transport`, the
:class:`~specmirror.freshness.FreshnessValidator`, the
:class:`~specmirror.store.SpecStore` and the caches of
:mod:`specmirror.cache`.

State machine::

    UNLOADED --ensure_fresh--> LOADING --ok--> FRESH --ttl/HEAD--> STALE
                                  |                                   |
                                  +--error: back to prior state <-----+

Every query (:meth:`Source.latest_specs`, :meth:`Source.latest`,
:meth:`Source.search`) runs :meth:`Source.ensure_fresh` first. Hosts that
want the network round-trip to be visible call :meth:`Source.ensure_fresh`
themselves before querying.
"""

from __future__ import annotations

import enum
import logging
import threading
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional, Union

import httpx

from specmirror.cache import SourceCache, SpecFileCache
from specmirror.client import Transport
from specmirror.codec import (
    INDEX_FILE_NAME,
    decode_index,
    decode_spec,
    inflate_spec,
    spec_artifact_path,
)
from specmirror.exceptions import (
    CacheCorruptError,
    CorruptUpstreamDataError,
    InvalidOriginError,
    SpecMirrorError,
    StorageError,
)
from specmirror.freshness import FreshnessValidator
from specmirror.models import (
    RUBY_PLATFORM,
    CacheEntry,
    GemSpecification,
    SourceSettings,
    SpecRecord,
)
from specmirror.output import get_output
from specmirror.store import SpecPredicate, SpecStore
from specmirror.version import Dependency, Requirement

logger = logging.getLogger(__name__)


class SourceState(str, enum.Enum):
    """Lifecycle states of a :class:`Source`.

    A failed refresh is not a state of its own: the error is kept in
    :attr:`Source.last_error` and the source returns to the state it was
    in before the attempt.
    """

    UNLOADED = "unloaded"
    LOADING = "loading"
    FRESH = "fresh"
    STALE = "stale"


def validate_origin(uri: str) -> str:
    """Validate and normalise an origin URI.

    The origin must be an absolute ``http`` or ``https`` URI. A trailing
    ``/`` is added so that artifact paths resolve below it.

    Raises:
        InvalidOriginError: If *uri* is malformed.
    """
    try:
        url = httpx.URL(uri)
    except (httpx.InvalidURL, TypeError) as exc:
        raise InvalidOriginError(f"Unable to create source from uri {uri} : {exc}") from exc
    if url.scheme not in ("http", "https") or not url.host:
        raise InvalidOriginError(
            f"Unable to create source from uri {uri} : expected an absolute http(s) URI"
        )
    if url.query or url.fragment:
        raise InvalidOriginError(
            f"Unable to create source from uri {uri} : query and fragment are not allowed"
        )
    origin = str(url)
    if not origin.endswith("/"):
        origin += "/"
    return origin


class Source:
    """One upstream origin and its mirrored spec records.

    A source never references the group that owns it. Its collaborators
    (transport, caches, settings) are handed in by the owner, and only
    :meth:`to_cache_entry` state is persisted.

    Args:
        origin: Absolute http(s) URI of the upstream.
        transport: Shared HTTP transport.
        cache: Where the source snapshot is saved. ``None`` disables
            persistence.
        spec_cache: Where fetched per-spec documents are kept. ``None``
            means every :meth:`fetch_spec` goes upstream.
        settings: Freshness settings; defaults to the transport's.
        validator: Freshness validator; built from *transport* and
            *settings* when omitted.
        validation_metadata: Comparison header values from a previous fetch.
        specs: Records from a previous fetch.

    Raises:
        InvalidOriginError: If *origin* is malformed.

    Example::

        with Transport() as transport:
            source = Source("https://gems.example.com/", transport=transport)
            source.ensure_fresh()
            rake = source.latest("rake")
    """

    def __init__(
        self,
        origin: str,
        transport: Transport,
        cache: Optional[SourceCache] = None,
        spec_cache: Optional[SpecFileCache] = None,
        settings: Optional[SourceSettings] = None,
        validator: Optional[FreshnessValidator] = None,
        validation_metadata: Optional[dict[str, str]] = None,
        specs: Optional[list[SpecRecord]] = None,
    ) -> None:
        self._origin = validate_origin(origin)
        self._transport = transport
        self._cache = cache
        self._spec_cache = spec_cache
        if validator is None:
            validator = FreshnessValidator(transport, settings or transport.settings)
        self._validator = validator
        self._store = SpecStore(specs or ())
        self._lock = threading.Lock()
        self.validation_metadata: dict[str, str] = dict(validation_metadata or {})
        self.last_checked_at: Optional[datetime] = None
        self.last_error: Optional[SpecMirrorError] = None
        self._state = SourceState.STALE if self._store else SourceState.UNLOADED

    @classmethod
    def from_cache_entry(cls, entry: CacheEntry, transport: Transport, **kwargs) -> Source:
        """Rebuild a source from its persisted snapshot.

        The restored source has no ``last_checked_at``, so its first query
        checks the upstream before the cached specs are trusted.
        """
        return cls(
            entry.origin,
            transport,
            validation_metadata=entry.validation_metadata,
            specs=entry.specs,
            **kwargs,
        )

    # ------------------------------------------------------------------ #
    # Properties
    # ------------------------------------------------------------------ #

    @property
    def origin(self) -> str:
        return self._origin

    @property
    def state(self) -> SourceState:
        return self._state

    @property
    def specs(self) -> SpecStore:
        """The spec records as last fetched, without a freshness check."""
        return self._store

    @property
    def upstream_index_uri(self) -> str:
        """The predictable URI of the compressed source index."""
        return self._origin + INDEX_FILE_NAME

    @property
    def cache_path(self) -> Optional[Path]:
        """Path of this source's cache file, or ``None`` without a cache."""
        if self._cache is None:
            return None
        return self._cache.path_for(self._origin)

    # ------------------------------------------------------------------ #
    # Refresh
    # ------------------------------------------------------------------ #

    def ensure_fresh(self) -> bool:
        """Make sure the specs are current, fetching the index if stale.

        Concurrent callers on the same source are serialised: the second
        caller waits for the first refresh and then finds the source
        checked within the TTL, so no duplicate fetch is made.

        Returns:
            ``True`` if the index was re-fetched from upstream.

        Raises:
            UpstreamError, TooManyRedirectsError, ConnectionError_: The HEAD check
                or fetch failed. Specs and state are left as they were.
            CorruptUpstreamDataError: The fetched index could not be decoded.
                Specs and state are left as they were.
            StorageError: The index was fetched and is in memory, but the
                cache file could not be written.
        """
        return self._refresh(force=False)

    def refresh(self) -> bool:
        """Re-fetch the index from upstream regardless of freshness.

        Raises the same errors as :meth:`ensure_fresh`.
        """
        return self._refresh(force=True)

    def _refresh(self, force: bool) -> bool:
        with self._lock:
            prior_state = self._state
            prior_metadata = dict(self.validation_metadata)
            prior_checked_at = self.last_checked_at
            attempted_at = self._validator.now()
            try:
                if not force and not self._validator.is_stale(self):
                    self._state = SourceState.FRESH
                    return False
                self._state = SourceState.LOADING
                self._load_from_upstream()
            except StorageError as exc:
                self.last_error = exc
                raise
            except BaseException as exc:
                self.validation_metadata = prior_metadata
                self._state = prior_state
                if not isinstance(exc, SpecMirrorError):
                    self.last_checked_at = prior_checked_at
                    raise
                logger.debug("refresh of %s failed: %s", self._origin, exc)
                self.last_error = exc
                # With usable specs, hold off retrying until the TTL passes so
                # queries keep serving them; a first attempt retries right away.
                self.last_checked_at = attempted_at if self._store else None
                raise
            return True

    def _load_from_upstream(self) -> None:
        get_output().info(f" * loading {self._origin} from upstream")
        response = self._transport.get(self.upstream_index_uri)
        try:
            records = decode_index(response.content)
        except CorruptUpstreamDataError as exc:
            raise CorruptUpstreamDataError(
                f"Corrupt upstream source index of {self.upstream_index_uri} : {exc}"
            ) from exc

        self._store.replace(records)
        # Keep HEAD values for headers the GET omits (e.g. a chunked body).
        self.validation_metadata = {
            **self.validation_metadata,
            **self._validator.comparison_headers(response.headers),
        }
        self.last_checked_at = self._validator.now()
        self._state = SourceState.FRESH
        self.last_error = None
        self.save()

    def _refresh_on_read(self) -> None:
        try:
            self.ensure_fresh()
        except StorageError as exc:
            get_output().warning(str(exc))

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def latest_specs(self) -> list[SpecRecord]:
        """Return the highest version of every ``(name, platform)``."""
        self._refresh_on_read()
        return self._store.latest_specs()

    def latest(self, name: str, platform: str = RUBY_PLATFORM) -> Optional[SpecRecord]:
        """Return the highest version of *name* for *platform*, or ``None``."""
        self._refresh_on_read()
        return self._store.latest(name, platform)

    def search(
        self,
        dependency: Union[Dependency, SpecPredicate, str],
        requirement: Union[str, Requirement, None] = None,
    ) -> Iterator[SpecRecord]:
        """Yield all records matching *dependency*, in source order.

        Args:
            dependency: A :class:`~specmirror.version.Dependency`, any
                predicate over :class:`~specmirror.models.SpecRecord`, or a
                package name.
            requirement: Version requirement, used when *dependency* is a
                name.
        """
        if isinstance(dependency, str):
            dependency = Dependency(dependency, requirement)
        self._refresh_on_read()
        return self._store.search(dependency)

    def fetch_spec(
        self,
        name: str,
        version: str,
        platform: str = RUBY_PLATFORM,
    ) -> GemSpecification:
        """Return the full spec document of one published spec.

        A locally stored document is returned without any network call or
        freshness check, since published specs never change. Otherwise the
        compressed artifact is fetched, inflated, decoded and stored before
        it is returned.

        Raises:
            UpstreamError, TooManyRedirectsError, ConnectionError_: The fetch
                failed.
            CorruptUpstreamDataError: The artifact could not be decoded;
                nothing is stored.
            StorageError: The document could not be stored locally.
            ValueError: *name*, *version* or *platform* is malformed, e.g. a
                name holding a path separator.
        """
        record = SpecRecord(name=name, version=version, platform=platform)
        if self._spec_cache is not None:
            try:
                raw = self._spec_cache.read(record)
                if raw is not None:
                    return decode_spec(raw)
            except (CacheCorruptError, CorruptUpstreamDataError) as exc:
                get_output().warning(
                    f"Discarding unreadable local spec {record.spec_file_name}: {exc}"
                )

        spec_uri = self._origin + spec_artifact_path(record)
        response = self._transport.get(spec_uri)
        raw = inflate_spec(response.content)
        spec = decode_spec(raw)
        if self._spec_cache is not None:
            self._spec_cache.write(record, raw)
        return spec

    # ------------------------------------------------------------------ #
    # Persistence
    # ------------------------------------------------------------------ #

    def to_cache_entry(self) -> CacheEntry:
        """Return the persistable snapshot: origin, validation metadata, specs."""
        return CacheEntry(
            origin=self._origin,
            validation_metadata=dict(self.validation_metadata),
            specs=list(self._store.records),
        )

    def save(self) -> None:
        """Write the snapshot to the cache file, if this source has a cache.

        Raises:
            StorageError: If the cache file cannot be written.
        """
        if self._cache is None:
            return
        logger.info("Writing source %s to %s", self._origin, self.cache_path)
        self._cache.save(self.to_cache_entry())

    def destroy(self) -> bool:
        """Remove this source's cache file.

        Gems mirrored from this source are not touched; removing them is up
        to the repository that owns the source.

        Returns:
            ``True`` if a cache file was removed.
        """
        if self._cache is None:
            return False
        logger.info("Destroying source %s cache file %s", self._origin, self.cache_path)
        return self._cache.delete(self._origin)

    def summary(self) -> dict:
        """Return a JSON-friendly description of the source."""
        data = self.to_cache_entry().summary()
        data["state"] = self._state.value
        checked = self.last_checked_at
        data["last_checked_at"] = checked.isoformat() if checked else None
        return data

    def __repr__(self) -> str:
        return f"Source({self._origin!r}, state={self._state.value}, specs={len(self._store)})"
