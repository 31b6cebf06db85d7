"""Tests for the httpx-backed Transport."""

from __future__ import annotations

import httpx
import pytest

from specmirror.client import Transport
from specmirror.exceptions import (
    ConnectionError_,
    CorruptUpstreamDataError,
    TooManyRedirectsError,
    UpstreamError,
)
from specmirror.exit_codes import EXIT_CONNECTION_ERROR, EXIT_UPSTREAM_ERROR
from specmirror.models import SourceSettings

BASE = "https://gems.example.com/"


def _chain(upstream, hops: int, final_status: int = 200, start: str = "r0") -> str:
    """Serve r0 -> r1 -> ... -> r<hops> redirects, ending in *final_status*."""
    for i in range(hops):
        upstream.redirect(f"r{i}", f"/r{i + 1}")
    upstream.serve(f"r{hops}", b"payload", status=final_status)
    return BASE + start


# ---------------------------------------------------------------------------
# Context manager
# ---------------------------------------------------------------------------


class TestContextManager:
    def test_enter_creates_and_exit_closes_client(self) -> None:
        transport = Transport()
        assert transport._client is None
        with transport:
            assert transport._client is not None
        assert transport._client is None

    def test_client_does_not_follow_redirects_itself(self) -> None:
        with Transport() as transport:
            assert transport._client.follow_redirects is False

    def test_settings_default(self) -> None:
        assert Transport().settings.redirect_budget == 10


# ---------------------------------------------------------------------------
# Success and error mapping
# ---------------------------------------------------------------------------


class TestFetch:
    def test_get_returns_success_response(self, upstream, transport) -> None:
        upstream.serve("hello", b"world", headers={"etag": '"abc"'})
        response = transport.get(BASE + "hello")
        assert response.status_code == 200
        assert response.content == b"world"
        assert response.headers["etag"] == '"abc"'
        assert transport.request_count == 1

    def test_head_uses_head_method(self, upstream, transport) -> None:
        upstream.serve("hello", b"world")
        transport.head(BASE + "hello")
        assert upstream.requests[-1].method == "HEAD"

    @pytest.mark.parametrize("status", [400, 403, 404, 500, 503])
    def test_terminal_status_raises_upstream_error(self, upstream, transport, status: int) -> None:
        upstream.serve("broken", b"", status=status)
        with pytest.raises(UpstreamError) as exc_info:
            transport.get(BASE + "broken")
        assert exc_info.value.status_code == status
        assert exc_info.value.exit_code == EXIT_UPSTREAM_ERROR
        assert str(status) in str(exc_info.value)

    def test_no_retry_on_server_error(self, upstream, transport) -> None:
        upstream.serve("broken", b"", status=503)
        with pytest.raises(UpstreamError):
            transport.get(BASE + "broken")
        assert upstream.count() == 1

    def test_network_error_wrapped_and_not_retried(self) -> None:
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        with Transport(http_transport=httpx.MockTransport(handler)) as transport:
            with pytest.raises(ConnectionError_) as exc_info:
                transport.get(BASE + "specs.1.gz")
        assert exc_info.value.exit_code == EXIT_CONNECTION_ERROR
        assert len(calls) == 1

    def test_timeout_wrapped(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with Transport(http_transport=httpx.MockTransport(handler)) as transport:
            with pytest.raises(ConnectionError_):
                transport.get(BASE + "specs.1.gz")

    def test_undecodable_body_raises_corrupt_data(self, upstream, transport) -> None:
        upstream.serve("specs.1.gz", b"garbage", headers={"content-encoding": "gzip"})
        with pytest.raises(CorruptUpstreamDataError, match="Undecodable response body"):
            transport.get(BASE + "specs.1.gz")

    def test_other_httpx_errors_wrapped(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.TooManyRedirects("redirect loop", request=request)

        with Transport(http_transport=httpx.MockTransport(handler)) as transport:
            with pytest.raises(ConnectionError_, match="redirect loop"):
                transport.get(BASE + "specs.1.gz")


# ---------------------------------------------------------------------------
# Redirect budget
# ---------------------------------------------------------------------------


class TestRedirects:
    def test_follows_location(self, upstream, transport) -> None:
        upstream.redirect("old/specs.1.gz", "/new/specs.1.gz", status=301)
        upstream.serve("new/specs.1.gz", b"index")
        response = transport.get(BASE + "old/specs.1.gz")
        assert response.content == b"index"
        assert [r.url.path for r in upstream.requests] == ["/old/specs.1.gz", "/new/specs.1.gz"]

    def test_relative_location_resolved_against_current_uri(self, upstream, transport) -> None:
        upstream.redirect("a/b", "c")
        upstream.serve("a/c", b"ok")
        assert transport.get(BASE + "a/b").content == b"ok"

    def test_absolute_location_to_other_host(self, upstream, transport) -> None:
        upstream.redirect("moved", "https://mirror.example.org/target")
        upstream.serve("target", b"mirrored")
        assert transport.get(BASE + "moved").content == b"mirrored"
        assert upstream.requests[-1].url.host == "mirror.example.org"

    def test_head_stays_head_across_redirects(self, upstream, transport) -> None:
        url = _chain(upstream, 2)
        transport.head(url)
        assert {r.method for r in upstream.requests} == {"HEAD"}

    @pytest.mark.parametrize("budget", [1, 3, 10])
    def test_budget_minus_one_redirects_then_success(self, upstream, transport, budget: int) -> None:
        url = _chain(upstream, budget - 1)
        response = transport.fetch("GET", url, redirect_budget=budget)
        assert response.status_code == 200
        assert upstream.count() == budget

    @pytest.mark.parametrize("budget", [1, 3, 10])
    def test_budget_redirects_then_another_redirect_fails(self, upstream, transport, budget: int) -> None:
        for i in range(budget + 1):
            upstream.redirect(f"r{i}", f"/r{i + 1}")
        with pytest.raises(TooManyRedirectsError):
            transport.fetch("GET", BASE + "r0", redirect_budget=budget)
        # One network call per hop, never more than the budget.
        assert upstream.count() == budget

    def test_default_budget_from_settings(self, upstream) -> None:
        transport = Transport(
            SourceSettings(redirect_budget=2),
            http_transport=httpx.MockTransport(upstream.handler),
        )
        with transport:
            transport.get(_chain(upstream, 1))
            with pytest.raises(TooManyRedirectsError):
                transport.get(_chain(upstream, 2, start="r0"))

    def test_redirect_ending_in_error(self, upstream, transport) -> None:
        url = _chain(upstream, 2, final_status=404)
        with pytest.raises(UpstreamError) as exc_info:
            transport.get(url)
        assert exc_info.value.status_code == 404

    def test_not_modified_without_location_is_terminal(self, upstream, transport) -> None:
        upstream.serve("cached", b"", status=304)
        with pytest.raises(UpstreamError) as exc_info:
            transport.get(BASE + "cached")
        assert exc_info.value.status_code == 304
