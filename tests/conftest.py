"""Shared test fixtures for specmirror.

Provides an in-memory fake upstream served through
:class:`httpx.MockTransport`, a controllable clock, isolated XDG
directories, and quiet output. These fixtures are automatically discovered
by pytest and available to all test modules without explicit imports.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, Optional

import httpx
import pytest

from specmirror.client import Transport
from specmirror.codec import INDEX_FILE_NAME, encode_index, encode_spec, spec_artifact_path
from specmirror.group import SourceGroup
from specmirror.models import GemSpecification, SourceSettings, SpecRecord
from specmirror.output import OutputManager, reset_output, set_output


ORIGIN = "https://gems.example.com/"

SAMPLE_RECORDS = [
    SpecRecord(name="foo", version="1.0", platform="ruby"),
    SpecRecord(name="foo", version="2.0", platform="ruby"),
    SpecRecord(name="foo", version="1.5", platform="java"),
    SpecRecord(name="bar", version="1.0", platform="ruby"),
]


# ---------------------------------------------------------------------------
# Fake upstream
# ---------------------------------------------------------------------------


@dataclass
class Route:
    status: int = 200
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)


class FakeUpstream:
    """A gem server living in memory.

    Routes are keyed by path relative to the host root. Every request is
    recorded so tests can assert how many network calls were made.
    """

    def __init__(self) -> None:
        self.routes: dict[str, Route] = {}
        self.requests: list[httpx.Request] = []

    # -- configuration ----------------------------------------------------

    def serve(
        self,
        path: str,
        body: bytes = b"",
        status: int = 200,
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        self.routes[path.lstrip("/")] = Route(status, body, dict(headers or {}))

    def serve_index(
        self,
        records: Iterable[SpecRecord] = SAMPLE_RECORDS,
        etag: Optional[str] = '"v1"',
        last_modified: Optional[str] = "Sat, 17 Oct 2026 10:00:00 GMT",
        body: Optional[bytes] = None,
    ) -> bytes:
        payload = encode_index(records) if body is None else body
        headers = {}
        if etag is not None:
            headers["etag"] = etag
        if last_modified is not None:
            headers["last-modified"] = last_modified
        self.serve(INDEX_FILE_NAME, payload, headers=headers)
        return payload

    def serve_spec(self, spec: GemSpecification) -> None:
        self.serve(spec_artifact_path(spec.record), encode_spec(spec))

    def redirect(self, path: str, location: str, status: int = 302) -> None:
        self.serve(path, status=status, headers={"location": location})

    # -- inspection -------------------------------------------------------

    def count(self, method: Optional[str] = None, path: Optional[str] = None) -> int:
        return sum(
            1
            for r in self.requests
            if (method is None or r.method == method)
            and (path is None or r.url.path.lstrip("/") == path.lstrip("/"))
        )

    # -- transport --------------------------------------------------------

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(request.url.path.lstrip("/"))
        if route is None:
            return httpx.Response(404, content=b"not found")
        headers = dict(route.headers)
        if request.method == "HEAD":
            if route.body:
                headers.setdefault("content-length", str(len(route.body)))
            return httpx.Response(route.status, headers=headers)
        return httpx.Response(route.status, headers=headers, content=route.body)


class FakeClock:
    """A clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.current = start or datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _quiet_output() -> None:
    """Install a quiet, colourless OutputManager for every test."""
    set_output(OutputManager(no_color=True, quiet=True))
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Network fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def upstream() -> FakeUpstream:
    """A fake upstream serving SAMPLE_RECORDS as its index."""
    fake = FakeUpstream()
    fake.serve_index()
    return fake


@pytest.fixture
def settings() -> SourceSettings:
    return SourceSettings()


@pytest.fixture
def transport(upstream: FakeUpstream, settings: SourceSettings) -> Transport:
    """A Transport whose requests are answered by ``upstream``."""
    t = Transport(settings, http_transport=httpx.MockTransport(upstream.handler))
    yield t
    t.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def group(tmp_path: Path, transport: Transport, settings: SourceSettings, clock: FakeClock) -> SourceGroup:
    """A SourceGroup with caches under tmp_path, backed by the fake upstream."""
    g = SourceGroup(tmp_path / "cache", settings=settings, transport=transport, clock=clock)
    yield g
    g.close()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_CACHE_HOME to subdirectories of tmp_path
    and clears all SPECMIRROR_* environment variables.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setattr("specmirror.config._is_xdg_platform", lambda: True)
    for var in [
        "SPECMIRROR_CONFIG",
        "SPECMIRROR_CACHE_DIR",
        "SPECMIRROR_TTL",
        "SPECMIRROR_REDIRECT_BUDGET",
        "SPECMIRROR_TIMEOUT",
    ]:
        monkeypatch.delenv(var, raising=False)
    return tmp_path


@pytest.fixture
def sample_records() -> list[SpecRecord]:
    """foo 1.0/2.0 (ruby), foo 1.5 (java) and bar 1.0 (ruby), in index order."""
    return list(SAMPLE_RECORDS)
