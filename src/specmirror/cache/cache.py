"""File-based persistence of source snapshots and fetched specs.

Each source is stored as one JSON-serialised
:class:`~specmirror.models.CacheEntry`. The file name is the URL-safe
base64 encoding of the origin followed by ``.specs.<CACHE_FORMAT_VERSION>``:
the encoding is reversible (see :func:`origin_for_cache_file_name`) and
filesystem-safe, and the suffix keeps files of different layouts apart so a
format bump simply leaves old files unread.

See Also:
    :func:`specmirror.config.atomic_write` -- the temp-file-then-rename
    writer used for every file in this module.
"""

from __future__ import annotations

import base64
import binascii
import logging
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from specmirror.config import atomic_write
from specmirror.exceptions import CacheCorruptError, StorageError
from specmirror.models import CACHE_FORMAT_VERSION, CacheEntry, SpecRecord

logger = logging.getLogger(__name__)

_SUFFIX = f".specs.{CACHE_FORMAT_VERSION}"


def cache_file_name_for(origin: str) -> str:
    """Return the deterministic cache file name for *origin*."""
    encoded = base64.urlsafe_b64encode(origin.encode("utf-8")).decode("ascii")
    return f"{encoded}{_SUFFIX}"


def origin_for_cache_file_name(name: str) -> Optional[str]:
    """Reverse :func:`cache_file_name_for`.

    Returns:
        The origin, or ``None`` if *name* is not a current-format cache file
        name.
    """
    if not name.endswith(_SUFFIX):
        return None
    try:
        origin = base64.urlsafe_b64decode(name[: -len(_SUFFIX)].encode("ascii")).decode("utf-8")
    except (binascii.Error, UnicodeError, ValueError):
        return None
    # b64decode skips stray characters, so only accept exact round trips.
    if not origin or cache_file_name_for(origin) != name:
        return None
    return origin


class SourceCache:
    """Directory of source snapshots, one file per origin.

    Args:
        cache_dir: Directory holding the cache files. Created on first save.
    """

    def __init__(self, cache_dir: str | Path) -> None:
        self._cache_dir = Path(cache_dir)

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    def path_for(self, origin: str) -> Path:
        """Return the cache file path for *origin*."""
        return self._cache_dir / cache_file_name_for(origin)

    def load(self, origin: str) -> Optional[CacheEntry]:
        """Load the snapshot of *origin*.

        Returns:
            The :class:`~specmirror.models.CacheEntry`, or ``None`` when no
            cache file exists.

        Raises:
            CacheCorruptError: If the file cannot be read or decoded, or
                holds a different origin or format version.
        """
        path = self.path_for(origin)
        if not path.is_file():
            return None
        try:
            entry = CacheEntry.model_validate_json(path.read_bytes())
        except (OSError, ValidationError) as exc:
            raise CacheCorruptError(f"Unreadable cache of {origin} at {path}: {exc}") from exc
        if entry.format_version != CACHE_FORMAT_VERSION:
            raise CacheCorruptError(
                f"Cache of {origin} at {path} has format {entry.format_version}, "
                f"expected {CACHE_FORMAT_VERSION}"
            )
        if entry.origin != origin:
            raise CacheCorruptError(f"Cache at {path} belongs to {entry.origin}, not {origin}")
        return entry

    def save(self, entry: CacheEntry) -> Path:
        """Write *entry* atomically to its cache file.

        Returns:
            The path written.

        Raises:
            StorageError: If the file cannot be written.
        """
        path = self.path_for(entry.origin)
        logger.debug("writing source %s to %s", entry.origin, path)
        try:
            atomic_write(path, entry.model_dump_json())
        except OSError as exc:
            raise StorageError(
                f"Unable to write cache of {entry.origin} to {path}: {exc}"
            ) from exc
        return path

    def delete(self, origin: str) -> bool:
        """Remove the cache file of *origin*.

        Returns:
            ``True`` if a file was removed.

        Raises:
            StorageError: If the file exists but cannot be removed.
        """
        path = self.path_for(origin)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StorageError(f"Unable to remove cache of {origin} at {path}: {exc}") from exc
        return True

    def origins(self) -> list[str]:
        """Return the origins of all current-format cache files, sorted."""
        if not self._cache_dir.is_dir():
            return []
        found = (
            origin_for_cache_file_name(p.name) for p in self._cache_dir.iterdir() if p.is_file()
        )
        return sorted(o for o in found if o is not None)


class SpecFileCache:
    """Directory of inflated per-spec documents.

    Published specs never change, so a file, once written, is served for
    good and never revalidated.

    Args:
        spec_dir: Directory holding ``<name>-<version>[-<platform>].gemspec``
            files. Created on first write.
    """

    def __init__(self, spec_dir: str | Path) -> None:
        self._spec_dir = Path(spec_dir)

    @property
    def spec_dir(self) -> Path:
        return self._spec_dir

    def path_for(self, record: SpecRecord) -> Path:
        return self._spec_dir / record.spec_file_name

    def read(self, record: SpecRecord) -> Optional[bytes]:
        """Return the stored document for *record*, or ``None`` if absent."""
        path = self.path_for(record)
        if not path.is_file():
            return None
        try:
            return path.read_bytes()
        except OSError as exc:
            raise CacheCorruptError(f"Unreadable spec file {path}: {exc}") from exc

    def write(self, record: SpecRecord, raw: bytes) -> Path:
        """Store the inflated document for *record* atomically.

        Raises:
            StorageError: If the file cannot be written.
        """
        path = self.path_for(record)
        try:
            atomic_write(path, raw)
        except OSError as exc:
            raise StorageError(f"Unable to write spec file {path}: {exc}") from exc
        return path
