"""Gem-style version ordering and requirement matching.

Supported expressions:
- versions such as "1.2.3", "2.0.0.rc1", "1.0.a10" and "1.0-beta"
  (a hyphen introduces a prerelease, like ".pre.")
- requirements built from "=", "!=", ">", "<", ">=", "<=" and the
  pessimistic "~>", comma separated: "~> 1.2, != 1.2.5"

Numeric segments compare numerically; alphabetic segments mark a
prerelease and sort below any numeric segment in the same position, so
"1.0.a" < "1.0" < "1.0.1".
"""

from __future__ import annotations

import functools
import re
from typing import Callable, Iterable, Pattern, Union

_VERSION_RE = re.compile(r"^[0-9]+(\.[0-9a-zA-Z]+)*(-[0-9A-Za-z-]+(\.[0-9A-Za-z-]+)*)?$")
_SEGMENT_RE = re.compile(r"[0-9]+|[a-zA-Z]+")
_REQUIREMENT_RE = re.compile(r"^\s*(=|!=|>=|<=|>|<|~>)?\s*(\S+)\s*$")

Segment = Union[int, str]


@functools.total_ordering
class Version:
    """An ordered gem version.

    Args:
        version: Version string, surrounding whitespace is ignored.

    Raises:
        ValueError: If *version* is not a well-formed version string.
    """

    __slots__ = ("_raw", "_segments")

    def __init__(self, version: str | Version) -> None:
        if isinstance(version, Version):
            version = version._raw
        raw = str(version).strip()
        if not _VERSION_RE.match(raw):
            raise ValueError(f"Malformed version number string {version!r}")
        self._raw = raw
        self._segments = _parse_segments(raw.replace("-", ".pre."))

    @property
    def segments(self) -> tuple[Segment, ...]:
        return self._segments

    @property
    def is_prerelease(self) -> bool:
        return any(isinstance(s, str) for s in self._segments)

    def release(self) -> Version:
        """Return the version with any prerelease segments removed."""
        if not self.is_prerelease:
            return self
        numeric: list[str] = []
        for seg in self._segments:
            if isinstance(seg, str):
                break
            numeric.append(str(seg))
        return Version(".".join(numeric) or "0")

    def bump(self) -> Version:
        """Return the upper bound used by the pessimistic ``~>`` operator.

        Prerelease segments are dropped, then the last segment is dropped
        (unless only one remains) and the new last segment is incremented:
        ``2.1.3`` bumps to ``2.2``, ``2`` bumps to ``3``.
        """
        numeric = [s for s in self.release().segments if isinstance(s, int)]
        if len(numeric) > 1:
            numeric.pop()
        numeric[-1] += 1
        return Version(".".join(str(s) for s in numeric))

    def _canonical(self) -> tuple[Segment, ...]:
        # Trailing zeros of the release part and of the prerelease part do
        # not matter: "1.0.a" == "1.a" and "2.0" == "2".
        split = next(
            (i for i, s in enumerate(self._segments) if isinstance(s, str)),
            len(self._segments),
        )
        canonical: list[Segment] = []
        for part in (self._segments[:split], self._segments[split:]):
            part = list(part)
            while part and part[-1] == 0:
                part.pop()
            canonical.extend(part)
        return tuple(canonical)

    def _compare(self, other: Version) -> int:
        left, right = self._canonical(), other._canonical()
        for i in range(max(len(left), len(right))):
            lhs = left[i] if i < len(left) else 0
            rhs = right[i] if i < len(right) else 0
            if lhs == rhs:
                continue
            if isinstance(lhs, str) and isinstance(rhs, int):
                return -1
            if isinstance(lhs, int) and isinstance(rhs, str):
                return 1
            return -1 if lhs < rhs else 1  # type: ignore[operator]
        return 0

    def __eq__(self, other: object) -> bool:
        if isinstance(other, str):
            try:
                other = Version(other)
            except ValueError:
                return NotImplemented
        if not isinstance(other, Version):
            return NotImplemented
        return self._compare(other) == 0

    def __lt__(self, other: Version | str) -> bool:
        if isinstance(other, str):
            other = Version(other)
        if not isinstance(other, Version):
            return NotImplemented
        return self._compare(other) < 0

    def __hash__(self) -> int:
        return hash(self._canonical())

    def __str__(self) -> str:
        return self._raw

    def __repr__(self) -> str:
        return f"Version({self._raw!r})"


def _parse_segments(raw: str) -> tuple[Segment, ...]:
    return tuple(
        int(token) if token.isdigit() else token
        for token in _SEGMENT_RE.findall(raw)
    )


_OPERATORS: dict[str, Callable[[Version, Version], bool]] = {
    "=": lambda v, r: v == r,
    "!=": lambda v, r: v != r,
    ">": lambda v, r: v > r,
    "<": lambda v, r: v < r,
    ">=": lambda v, r: v >= r,
    "<=": lambda v, r: v <= r,
    "~>": lambda v, r: v >= r and v.release() < r.bump(),
}


class Requirement:
    """A set of version constraints that must all hold.

    An empty requirement (or ``None``) matches every version.

    Example::

        Requirement.parse("~> 1.2, != 1.2.5").satisfied_by("1.2.7")  # True
    """

    def __init__(self, constraints: Iterable[tuple[str, Version]] = ()) -> None:
        self._constraints = tuple(constraints)

    @classmethod
    def parse(cls, expr: str | Requirement | None) -> Requirement:
        """Parse a comma-separated requirement string.

        Raises:
            ValueError: If a constraint is not ``[operator] version``.
        """
        if isinstance(expr, Requirement):
            return expr
        if expr is None or not expr.strip():
            return cls()
        constraints: list[tuple[str, Version]] = []
        for part in expr.split(","):
            match = _REQUIREMENT_RE.match(part)
            if not match:
                raise ValueError(f"Illformed requirement {part!r}")
            op, version = match.group(1) or "=", match.group(2)
            constraints.append((op, Version(version)))
        return cls(constraints)

    @property
    def constraints(self) -> tuple[tuple[str, Version], ...]:
        return self._constraints

    def satisfied_by(self, version: str | Version) -> bool:
        v = Version(version)
        return all(_OPERATORS[op](v, req) for op, req in self._constraints)

    def __str__(self) -> str:
        if not self._constraints:
            return ">= 0"
        return ", ".join(f"{op} {v}" for op, v in self._constraints)

    def __repr__(self) -> str:
        return f"Requirement({str(self)!r})"


class Dependency:
    """A package name (or name pattern) plus a version requirement.

    Used as a search predicate over spec records: a record matches when its
    name equals the dependency name (or matches the compiled pattern) and its
    version satisfies the requirement.
    """

    def __init__(
        self,
        name: str | Pattern[str],
        requirement: str | Requirement | None = None,
    ) -> None:
        self.name = name
        self.requirement = Requirement.parse(requirement)

    def matches(self, name: str, version: str | Version) -> bool:
        if isinstance(self.name, str):
            if name != self.name:
                return False
        elif not self.name.search(name):
            return False
        return self.requirement.satisfied_by(version)

    def __call__(self, record) -> bool:
        return self.matches(record.name, record.version)

    def __repr__(self) -> str:
        name = self.name if isinstance(self.name, str) else self.name.pattern
        return f"Dependency({name!r}, {str(self.requirement)!r})"
