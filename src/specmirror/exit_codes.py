"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~specmirror.exceptions.SpecMirrorError` subclass.
A repository manager that drives specmirror from the command line can exit
with ``exc.exit_code`` so that shell wrappers can tell failure classes apart
without parsing stderr.
"""

EXIT_SUCCESS = 0
"""The operation completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""A source was configured with an invalid origin URI."""

EXIT_UPSTREAM_ERROR = 5
"""The upstream server answered with a non-success status or too many redirects."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_CORRUPT_DATA = 7
"""Upstream metadata could not be decoded."""

EXIT_STORAGE_ERROR = 8
"""The local cache could not be read or written."""
