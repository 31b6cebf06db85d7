"""HTTP transport for specmirror.

:class:`Transport` wraps :class:`httpx.Client` and follows redirects itself
so that every hop counts against a redirect budget. It is shared by all
sources of a :class:`~specmirror.group.SourceGroup` and is designed to be
used as a context manager.

Example::

    from specmirror.client import Transport

    with Transport(settings) as transport:
        resp = transport.fetch("GET", "https://gems.example.com/specs.1.gz")
"""

from specmirror.client.transport import Transport

__all__ = ["Transport"]
