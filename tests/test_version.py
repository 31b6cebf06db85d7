"""Tests for gem-style version ordering and requirements."""

from __future__ import annotations

import re

import pytest

from specmirror.models import SpecRecord
from specmirror.version import Dependency, Requirement, Version


class TestVersionOrdering:
    @pytest.mark.parametrize(
        "lower, higher",
        [
            ("1.0", "2.0"),
            ("1.5", "2.0"),
            ("1.9", "1.10"),
            ("1.0.a", "1.0"),
            ("1.0.rc1", "1.0.rc2"),
            ("1.0-beta", "1.0"),
            ("2.0.0.rc1", "2.0.0"),
            ("0.8.1", "0.8.10"),
        ],
    )
    def test_ordering(self, lower: str, higher: str) -> None:
        assert Version(lower) < Version(higher)
        assert Version(higher) > Version(lower)

    @pytest.mark.parametrize("a, b", [("1.0", "1"), ("2.0.0", "2"), ("1.0.a", "1.a")])
    def test_trailing_zeros_are_equal(self, a: str, b: str) -> None:
        assert Version(a) == Version(b)
        assert hash(Version(a)) == hash(Version(b))

    def test_compares_with_strings(self) -> None:
        assert Version("1.2") == "1.2.0"
        assert Version("1.2") < "1.3"

    def test_sorting(self) -> None:
        versions = [Version(v) for v in ["1.10", "1.2", "1.2.rc1", "0.9"]]
        assert [str(v) for v in sorted(versions)] == ["0.9", "1.2.rc1", "1.2", "1.10"]

    @pytest.mark.parametrize("bad", ["", "abc", "1..2", "1.0 beta", "-1"])
    def test_malformed_rejected(self, bad: str) -> None:
        with pytest.raises(ValueError):
            Version(bad)

    def test_prerelease_and_release(self) -> None:
        v = Version("2.1.0.rc3")
        assert v.is_prerelease
        assert str(v.release()) == "2.1.0"
        assert not Version("2.1").is_prerelease

    @pytest.mark.parametrize("version, bumped", [("2.1.3", "2.2"), ("2", "3"), ("1.4.rc1", "2")])
    def test_bump(self, version: str, bumped: str) -> None:
        assert Version(version).bump() == Version(bumped)


class TestRequirement:
    @pytest.mark.parametrize(
        "expr, version, expected",
        [
            ("= 1.0", "1.0", True),
            ("1.0", "1.0.0", True),
            ("!= 1.0", "1.0", False),
            ("> 1.0", "1.0.1", True),
            ("< 1.0", "1.0.rc1", True),
            (">= 1.0", "0.9", False),
            ("<= 1.0", "1.0", True),
            ("~> 1.2", "1.9", True),
            ("~> 1.2", "2.0", False),
            ("~> 1.2.3", "1.2.9", True),
            ("~> 1.2.3", "1.3.0", False),
            ("~> 1.2, != 1.2.5", "1.2.5", False),
            (">= 1.0, < 2.0", "1.5", True),
        ],
    )
    def test_satisfied_by(self, expr: str, version: str, expected: bool) -> None:
        assert Requirement.parse(expr).satisfied_by(version) is expected

    def test_empty_matches_everything(self) -> None:
        req = Requirement.parse(None)
        assert req.satisfied_by("0.0.1")
        assert str(req) == ">= 0"

    def test_illformed(self) -> None:
        with pytest.raises(ValueError):
            Requirement.parse(">>= 1.0")


class TestDependency:
    def test_matches_name_and_requirement(self) -> None:
        dep = Dependency("foo", ">= 1.5")
        assert dep(SpecRecord(name="foo", version="2.0"))
        assert not dep(SpecRecord(name="foo", version="1.0"))
        assert not dep(SpecRecord(name="foobar", version="2.0"))

    def test_pattern_name(self) -> None:
        dep = Dependency(re.compile(r"^rail"), "~> 2.0")
        assert dep.matches("railties", "2.1")
        assert not dep.matches("rake", "2.1")
