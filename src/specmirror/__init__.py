"""specmirror -- mirror package spec indexes from upstream sources.

specmirror keeps a local cache of the spec index of each configured
upstream origin fresh without re-downloading unchanged data, and answers
queries over it: the latest version of every package, dependency search,
and individual spec documents.

Typical usage::

    from specmirror import SourceGroup
    from specmirror.config import resolve_config

    with SourceGroup.from_config(resolve_config()) as group:
        source = group.add_source("https://gems.example.com/")
        source.ensure_fresh()
        print(source.latest("rake"))

Modules:
    source: the :class:`Source` facade and its state machine.
    group: :class:`SourceGroup`, the arena owning sources by origin.
    freshness: the two-tier TTL + conditional-header staleness check.
    store: in-memory spec records and derived views.
    cache: atomic on-disk caches for source snapshots and spec documents.
    client: the httpx-based transport with a redirect budget.
    codec: upstream artifact formats.
    config: XDG-aware configuration with precedence resolution.
    exceptions: exception hierarchy with exit-code mapping.
"""

from specmirror.group import SourceGroup
from specmirror.models import GemSpecification, SourceSettings, SpecRecord
from specmirror.source import Source, SourceState
from specmirror.version import Dependency, Requirement, Version

__version__ = "0.1.0"

__all__ = [
    "Dependency",
    "GemSpecification",
    "Requirement",
    "Source",
    "SourceGroup",
    "SourceSettings",
    "SourceState",
    "SpecRecord",
    "Version",
]
