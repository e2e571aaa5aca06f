# streamz/locator.py
"""
Map a persisted locator (``videos.file_url``) to the storage key it names.

Uploads write bare keys. Older rows may hold a full object URL
(``https://<public host>/<key>``) or an ``s3://<bucket>/<key>`` URI; each
format is one entry in ``_RESOLVERS`` keyed by URL scheme, so a new format is
a new entry and nothing else in the relay changes.
"""
from __future__ import annotations

from typing import Callable, Dict, Optional
from urllib.parse import SplitResult, unquote, urlsplit

from streamz.errors import InvalidLocator


def _key_from_path(parts: SplitResult, locator: str) -> str:
    if not parts.netloc:
        raise InvalidLocator(f"locator has no host: {locator!r}")
    key = unquote(parts.path).lstrip("/")
    if not key:
        raise InvalidLocator(f"locator has no path segment: {locator!r}")
    return key


def _key_from_url(parts: SplitResult, locator: str, bucket: Optional[str]) -> str:
    # the public host is not checked; any host maps onto the configured bucket
    return _key_from_path(parts, locator)


def _key_from_s3_uri(parts: SplitResult, locator: str, bucket: Optional[str]) -> str:
    key = _key_from_path(parts, locator)
    if bucket is not None and parts.netloc != bucket:
        raise InvalidLocator(f"locator names bucket {parts.netloc!r}, not {bucket!r}: {locator!r}")
    return key


_RESOLVERS: Dict[str, Callable[[SplitResult, str, Optional[str]], str]] = {
    "http": _key_from_url,
    "https": _key_from_url,
    "s3": _key_from_s3_uri,
}


def resolve_storage_key(locator: str | None, bucket: str | None = None) -> str:
    """
    Return the storage key for ``locator``.

    Total over well-formed locators and deterministic. Bare keys are returned
    as stored; URL locators have their path percent-decoded. An ``s3://`` URI
    naming a bucket other than ``bucket`` (when given) is rejected, as is
    anything else unparseable, with ``InvalidLocator``.
    """
    if locator is None or not locator.strip():
        raise InvalidLocator("locator is empty")
    locator = locator.strip()

    if "://" not in locator:
        key = locator.lstrip("/")
        if not key:
            raise InvalidLocator(f"locator has no key: {locator!r}")
        return key

    parts = urlsplit(locator)
    resolver = _RESOLVERS.get(parts.scheme.lower())
    if resolver is None:
        raise InvalidLocator(f"unsupported locator scheme: {parts.scheme!r}")
    return resolver(parts, locator, bucket)
