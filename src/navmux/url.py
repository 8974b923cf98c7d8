"""Splitting and percent-decoding of relative navigation urls.

A url is ``path?query#fragment``. The path is split into segments on ``/`` and
``#`` so hash-based navigation (``#/users/1``) routes like a plain path. The
query is split into key/value pairs; the fragment after the query is dropped.
"""

import re
from urllib.parse import unquote

_SEPARATORS = re.compile(r"[#/]")
# "%" not followed by two hex digits
_MALFORMED_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


class MalformedEncodingError(ValueError):
    """Raised when a path or query component has invalid percent-encoding."""


def split_path(path: str) -> list[str]:
    """Split a path or pattern into its non-empty segments.

    ``"/stuff/"``, ``"stuff/"``, ``"/stuff"`` and ``"stuff"`` all give
    ``["stuff"]``; ``""``, ``"/"`` and ``"#"`` all give ``[]``.
    """
    return [seg for seg in _SEPARATORS.split(path) if seg]


def split_url(url: str) -> tuple[str, str]:
    """Split a url at the first ``?`` into (path, query), dropping any fragment from the query."""
    path, _, query = url.partition("?")
    query, _, _ = query.partition("#")
    return path, query


def parse_query(query: str) -> dict[str, str]:
    """Parse ``a=1&b=2`` into a dict of decoded keys and values.

    Empty pairs are skipped, a pair without ``=`` maps to ``""`` and later
    duplicates win. ``+`` is kept as is (it is not a space).
    """
    params: dict[str, str] = {}
    for pair in query.split("&"):
        if not pair:
            continue
        key, _, value = pair.partition("=")
        params[decode_component(key)] = decode_component(value)
    return params


def decode_component(value: str) -> str:
    """Percent-decode a single url component.

    Raises MalformedEncodingError on a stray ``%`` or on escapes that don't
    form valid UTF-8.
    """
    if "%" not in value:
        return value
    if _MALFORMED_ESCAPE.search(value) is not None:
        msg = f"malformed percent-encoding in {value!r}"
        raise MalformedEncodingError(msg)
    try:
        return unquote(value, errors="strict")
    except UnicodeDecodeError as e:
        msg = f"percent-encoded bytes in {value!r} are not valid UTF-8"
        raise MalformedEncodingError(msg) from e
