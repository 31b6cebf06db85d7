"""Exception hierarchy for specmirror.

All exceptions inherit from :class:`SpecMirrorError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`specmirror.exit_codes`.

Subclass hierarchy::

    SpecMirrorError (exit 1)
    +-- InvalidOriginError        (exit 2)
    +-- UpstreamError             (exit 5)
    +-- TooManyRedirectsError     (exit 5)
    +-- ConnectionError_          (exit 6)
    +-- CorruptUpstreamDataError  (exit 7)
    +-- CacheCorruptError         (exit 8)
    +-- StorageError              (exit 8)
    +-- ConfigError               (exit 1)

Network and data errors raised while refreshing a
:class:`~specmirror.source.Source` are surfaced to the caller of the
triggering operation but never leave the source unusable.
:class:`CacheCorruptError` is handled by
:class:`~specmirror.group.SourceGroup`, which falls back to a fresh source.
"""

from __future__ import annotations

from specmirror.exit_codes import (
    EXIT_CONNECTION_ERROR,
    EXIT_CORRUPT_DATA,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_STORAGE_ERROR,
    EXIT_UPSTREAM_ERROR,
)


class SpecMirrorError(Exception):
    """Base exception for all specmirror errors.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidOriginError(SpecMirrorError):
    """Raised when a source is created from a malformed origin URI."""

    exit_code = EXIT_INVALID_USAGE


class UpstreamError(SpecMirrorError):
    """Raised when the upstream answers with a terminal non-2xx status.

    Args:
        status_code: The HTTP status of the terminal response.
        message: Human-readable error description.
    """

    exit_code = EXIT_UPSTREAM_ERROR

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code


class TooManyRedirectsError(SpecMirrorError):
    """Raised when the redirect budget runs out before a terminal response."""

    exit_code = EXIT_UPSTREAM_ERROR


class ConnectionError_(SpecMirrorError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class CorruptUpstreamDataError(SpecMirrorError):
    """Raised when a fetched index or spec artifact cannot be decoded."""

    exit_code = EXIT_CORRUPT_DATA


class CacheCorruptError(SpecMirrorError):
    """Raised when an on-disk cache file cannot be read or decoded."""

    exit_code = EXIT_STORAGE_ERROR


class StorageError(SpecMirrorError):
    """Raised when a cache file or spec file cannot be written."""

    exit_code = EXIT_STORAGE_ERROR


class ConfigError(SpecMirrorError):
    """Raised for configuration problems (unreadable file, invalid values)."""

    exit_code = EXIT_GENERIC_FAILURE
