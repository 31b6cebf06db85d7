"""On-disk caches for specmirror.

This package provides :class:`SourceCache`, which persists one
:class:`~specmirror.models.CacheEntry` per source origin, and
:class:`SpecFileCache`, which keeps the individually fetched spec
documents. Both write atomically so a concurrent reader never observes a
half-written file.

The caches are owned by :class:`~specmirror.group.SourceGroup`; sources
only receive them as collaborators.
"""

from specmirror.cache.cache import (
    SourceCache,
    SpecFileCache,
    cache_file_name_for,
    origin_for_cache_file_name,
)

__all__ = [
    "SourceCache",
    "SpecFileCache",
    "cache_file_name_for",
    "origin_for_cache_file_name",
]
