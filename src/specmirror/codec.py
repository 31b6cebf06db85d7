"""Wire formats of the upstream index and per-spec artifacts.

An origin serves two kinds of artifacts at predictable paths:

* ``specs.<INDEX_FORMAT_VERSION>.gz`` -- the source index: a gzip
  compressed JSON array of ``[name, version, platform]`` triples.
* ``quick/spec.<SPEC_FORMAT_VERSION>/<name>-<version>[-<platform>].gemspec.rz``
  -- one zlib-deflated JSON document per published spec.

Decoding is all-or-nothing: any malformed byte, entry or version raises
:class:`~specmirror.exceptions.CorruptUpstreamDataError` and returns no
partial result. The ``encode_*`` helpers produce the same formats and are
used to publish fixtures and mirrors.
"""

from __future__ import annotations

import gzip
import json
import zlib
from typing import Any, Iterable

from pydantic import ValidationError

from specmirror.exceptions import CorruptUpstreamDataError
from specmirror.models import GemSpecification, SpecRecord

INDEX_FORMAT_VERSION = 1
SPEC_FORMAT_VERSION = 1

INDEX_FILE_NAME = f"specs.{INDEX_FORMAT_VERSION}.gz"
SPEC_DIR = f"quick/spec.{SPEC_FORMAT_VERSION}/"


def spec_artifact_path(record: SpecRecord) -> str:
    """Path of the compressed per-spec artifact, relative to the origin."""
    return f"{SPEC_DIR}{record.spec_file_name}.rz"


# --- Source index ---


def decode_index(body: bytes) -> list[SpecRecord]:
    """Decode a gzip-compressed index into spec records, in upstream order.

    Raises:
        CorruptUpstreamDataError: If the body is not gzip, not JSON, not a
            list of triples, or holds an invalid name or version.
    """
    try:
        entries = json.loads(gzip.decompress(body))
    except (OSError, EOFError, zlib.error, ValueError) as exc:
        raise CorruptUpstreamDataError(f"Unreadable source index: {exc}") from exc
    if not isinstance(entries, list):
        raise CorruptUpstreamDataError(
            f"Source index must be a list, got {type(entries).__name__}"
        )
    return [_decode_entry(i, entry) for i, entry in enumerate(entries)]


def _decode_entry(index: int, entry: Any) -> SpecRecord:
    try:
        if isinstance(entry, dict):
            return SpecRecord.model_validate(entry)
        if isinstance(entry, list) and len(entry) in (2, 3):
            return SpecRecord(**dict(zip(("name", "version", "platform"), entry)))
    except (ValidationError, TypeError, ValueError) as exc:
        raise CorruptUpstreamDataError(f"Invalid index entry #{index} {entry!r}: {exc}") from exc
    raise CorruptUpstreamDataError(f"Invalid index entry #{index} {entry!r}")


def encode_index(records: Iterable[SpecRecord]) -> bytes:
    """Encode records as a gzip-compressed index, the inverse of :func:`decode_index`."""
    payload = [list(r.as_tuple()) for r in records]
    return gzip.compress(json.dumps(payload).encode("utf-8"))


# --- Per-spec artifacts ---


def inflate_spec(body: bytes) -> bytes:
    """Inflate a ``.rz`` artifact into the raw spec document.

    Raises:
        CorruptUpstreamDataError: If the body is not zlib data.
    """
    try:
        return zlib.decompress(body)
    except zlib.error as exc:
        raise CorruptUpstreamDataError(f"Unreadable spec artifact: {exc}") from exc


def decode_spec(raw: bytes) -> GemSpecification:
    """Decode an inflated spec document.

    Raises:
        CorruptUpstreamDataError: If the document is not a valid spec.
    """
    try:
        return GemSpecification.model_validate_json(raw)
    except ValidationError as exc:
        raise CorruptUpstreamDataError(f"Invalid spec document: {exc}") from exc


def encode_spec(spec: GemSpecification) -> bytes:
    """Encode and deflate a spec, the inverse of :func:`inflate_spec` + :func:`decode_spec`."""
    return zlib.compress(spec.model_dump_json().encode("utf-8"))
