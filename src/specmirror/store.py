"""In-memory spec records of one source, with derived query views."""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Iterator, Optional

from specmirror.models import RUBY_PLATFORM, SpecRecord

logger = logging.getLogger(__name__)

SpecPredicate = Callable[[SpecRecord], bool]


class SpecStore:
    """Ordered collection of :class:`~specmirror.models.SpecRecord`.

    The collection is only ever swapped as a whole by :meth:`replace`, so a
    reader sees either the previous or the new records, never a mix. The
    latest-per-``(name, platform)`` index is derived on first use and
    dropped on every replace.
    """

    def __init__(self, records: Iterable[SpecRecord] = ()) -> None:
        self._records: tuple[SpecRecord, ...] = tuple(records)
        self._latest: Optional[dict[tuple[str, str], SpecRecord]] = None

    @property
    def records(self) -> tuple[SpecRecord, ...]:
        return self._records

    def replace(self, records: Iterable[SpecRecord]) -> None:
        """Swap in a fully decoded collection."""
        self._records = tuple(records)
        self._latest = None

    def latest(self, name: str, platform: str = RUBY_PLATFORM) -> Optional[SpecRecord]:
        """Return the highest version of *name* for *platform*, or ``None``."""
        return self._latest_index().get((name, platform))

    def latest_specs(self) -> list[SpecRecord]:
        """Return one record per ``(name, platform)``, the highest version of each."""
        return list(self._latest_index().values())

    def search(self, predicate: SpecPredicate) -> Iterator[SpecRecord]:
        """Yield records matching *predicate* in source order.

        The generator walks the collection as it was at call time, so a
        concurrent :meth:`replace` does not affect it; calling :meth:`search`
        again restarts over the current records.
        """
        records = self._records
        return (r for r in records if predicate(r))

    def _latest_index(self) -> dict[tuple[str, str], SpecRecord]:
        if self._latest is None:
            latest: dict[tuple[str, str], SpecRecord] = {}
            for record in self._records:
                current = latest.get(record.key)
                if current is None or current.version_key <= record.version_key:
                    if current is not None and current.version_key == record.version_key:
                        logger.debug("duplicate spec %s, keeping the later entry", record)
                    latest[record.key] = record
            self._latest = latest
        return self._latest

    def __iter__(self) -> Iterator[SpecRecord]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __bool__(self) -> bool:
        return bool(self._records)

    def __contains__(self, record: object) -> bool:
        return record in self._records
