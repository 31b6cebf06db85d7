"""The group of upstream sources a repository mirrors from.

:class:`SourceGroup` is the arena that owns every
:class:`~specmirror.source.Source` by origin. It also owns what the
sources share -- the :class:`~specmirror.client.Transport`, the
:class:`~specmirror.cache.SourceCache` directory and the
:class:`~specmirror.cache.SpecFileCache` directory -- and hands them to
each source it creates or restores. Sources hold no reference back to the
group, so a source snapshot never carries group state.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator, Optional, Union

from specmirror.cache import SourceCache, SpecFileCache
from specmirror.client import Transport
from specmirror.exceptions import CacheCorruptError, InvalidOriginError
from specmirror.freshness import Clock, FreshnessValidator
from specmirror.models import GemSpecification, GlobalConfig, SourceSettings, SpecRecord
from specmirror.output import get_output
from specmirror.source import Source, validate_origin
from specmirror.store import SpecPredicate
from specmirror.version import Dependency, Requirement

logger = logging.getLogger(__name__)


class SourceGroup:
    """Sources keyed by normalised origin, with their shared collaborators.

    Args:
        cache_dir: Directory of the source cache files.
        spec_dir: Directory of fetched spec documents. Defaults to
            ``<cache_dir>/specifications``.
        settings: Freshness and transport settings for every source.
        transport: Shared transport. When omitted one is created from
            *settings* and closed by :meth:`close`.
        clock: Current-time source for freshness checks (tests).

    Example::

        with SourceGroup("/var/cache/mirror") as group:
            source = group.add_source("https://gems.example.com/")
            for record in group.latest_specs():
                ...
    """

    def __init__(
        self,
        cache_dir: Union[str, Path],
        spec_dir: Union[str, Path, None] = None,
        settings: Optional[SourceSettings] = None,
        transport: Optional[Transport] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._settings = settings or (transport.settings if transport else SourceSettings())
        self._owns_transport = transport is None
        self._transport = transport or Transport(self._settings)
        self._cache = SourceCache(cache_dir)
        if spec_dir is None:
            spec_dir = Path(cache_dir) / "specifications"
        self._spec_cache = SpecFileCache(spec_dir)
        self._validator = FreshnessValidator(self._transport, self._settings, clock)
        self._sources: dict[str, Source] = {}

    @classmethod
    def from_config(
        cls, config: GlobalConfig, transport: Optional[Transport] = None
    ) -> SourceGroup:
        """Build a group from a resolved :class:`~specmirror.models.GlobalConfig`.

        The configured sources are registered without contacting upstream.
        """
        if config.cache_dir is None:
            raise ValueError(
                "config.cache_dir must be resolved, see specmirror.config.resolve_config"
            )
        group = cls(config.cache_dir, config.spec_dir, config.settings, transport)
        for origin in config.sources:
            group.add_source(origin)
        return group

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> SourceGroup:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the transport if the group created it."""
        if self._owns_transport:
            self._transport.close()

    # ------------------------------------------------------------------ #
    # Properties
    # ------------------------------------------------------------------ #

    @property
    def settings(self) -> SourceSettings:
        return self._settings

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def cache_dir(self) -> Path:
        return self._cache.cache_dir

    @property
    def spec_dir(self) -> Path:
        return self._spec_cache.spec_dir

    @property
    def origins(self) -> list[str]:
        return list(self._sources)

    # ------------------------------------------------------------------ #
    # Source management
    # ------------------------------------------------------------------ #

    def load_source(self, origin: str) -> Source:
        """Return a source for *origin*, restored from its cache file if possible.

        An unreadable cache file is reported and treated as a cache miss.
        The returned source is not registered; see :meth:`add_source`.

        Raises:
            InvalidOriginError: If *origin* is malformed.
        """
        origin = validate_origin(origin)
        try:
            entry = self._cache.load(origin)
        except CacheCorruptError as exc:
            get_output().warning(f"{exc}; loading {origin} from scratch")
            entry = None

        if entry is not None:
            get_output().info(f" * loading cache of {origin}")
            return Source.from_cache_entry(entry, self._transport, **self._collaborators())
        return Source(origin, self._transport, **self._collaborators())

    def add_source(self, origin: str, eager: bool = False) -> Source:
        """Register and return the source for *origin*.

        Adding an origin twice returns the registered source.

        Args:
            origin: Upstream URI.
            eager: Fetch the index right away instead of on first query.

        Raises:
            InvalidOriginError: If *origin* is malformed.
            SpecMirrorError: With *eager*, any error of
                :meth:`~specmirror.source.Source.refresh`. The source stays
                registered so a later query can retry.
        """
        key = validate_origin(origin)
        source = self._sources.get(key)
        if source is None:
            source = self.load_source(key)
            self._sources[key] = source
        if eager:
            logger.info("eager loading %s", key)
            source.refresh()
        return source

    def remove_source(self, origin: str) -> Optional[Source]:
        """Unregister the source for *origin* and delete its cache file.

        Gems mirrored from the source are the caller's to remove.

        Returns:
            The removed source, or ``None`` if it was not registered.
        """
        source = self._sources.pop(validate_origin(origin), None)
        if source is not None:
            source.destroy()
        return source

    def load_cached(self) -> list[Source]:
        """Register every source that has a cache file in :attr:`cache_dir`."""
        return [self.add_source(origin) for origin in self._cache.origins()]

    def get(self, origin: str) -> Optional[Source]:
        return self._sources.get(validate_origin(origin))

    def __contains__(self, origin: object) -> bool:
        if not isinstance(origin, str):
            return False
        try:
            return self.get(origin) is not None
        except InvalidOriginError:
            return False

    def __iter__(self) -> Iterator[Source]:
        return iter(list(self._sources.values()))

    def __len__(self) -> int:
        return len(self._sources)

    # ------------------------------------------------------------------ #
    # Queries across sources
    # ------------------------------------------------------------------ #

    def latest_specs(self) -> list[tuple[Source, SpecRecord]]:
        """Return the latest records of every source, tagged with their source."""
        return [(source, record) for source in self for record in source.latest_specs()]

    def search(
        self,
        dependency: Union[Dependency, SpecPredicate, str],
        requirement: Union[str, Requirement, None] = None,
    ) -> list[tuple[Source, SpecRecord]]:
        """Search every source, see :meth:`~specmirror.source.Source.search`."""
        return [
            (source, record)
            for source in self
            for record in source.search(dependency, requirement)
        ]

    def fetch_spec(self, record: SpecRecord) -> Optional[GemSpecification]:
        """Fetch *record* from the first source whose index lists it.

        Returns:
            The spec document, or ``None`` if no source lists the record.
        """
        for source in self:
            if any(r == record for r in source.search(record.name, f"= {record.version}")):
                return source.fetch_spec(record.name, record.version, record.platform)
        return None

    def info(self) -> list[dict]:
        """Return :meth:`~specmirror.source.Source.summary` for every source."""
        return [source.summary() for source in self]

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _collaborators(self) -> dict:
        return {
            "cache": self._cache,
            "spec_cache": self._spec_cache,
            "settings": self._settings,
            "validator": self._validator,
        }
