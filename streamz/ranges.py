# streamz/ranges.py
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Optional

# single range only; "bytes=-N" suffix and "a-b,c-d" lists do not match
_RANGE_RE = re.compile(r"bytes=(\d+)-(\d*)")


@dataclass(frozen=True)
class RangePlan:
    """Serviceable interval for one request, derived from ``Range`` and size."""

    status: int
    size: int
    start: Optional[int] = None
    end: Optional[int] = None

    @property
    def satisfiable(self) -> bool:
        return self.status != 416

    @property
    def partial(self) -> bool:
        return self.status == 206

    @property
    def length(self) -> int:
        if self.start is None or self.end is None:
            return 0
        return self.end - self.start + 1

    def headers(self, content_type: Optional[str] = None) -> Dict[str, str]:
        if not self.satisfiable:
            return {"Content-Range": f"bytes */{self.size}", "Accept-Ranges": "bytes"}
        h = {"Accept-Ranges": "bytes", "Content-Length": str(self.length)}
        if self.partial:
            h["Content-Range"] = f"bytes {self.start}-{self.end}/{self.size}"
        if content_type:
            h["Content-Type"] = content_type
        return h


def negotiate_range(header: Optional[str], size: int) -> RangePlan:
    """
    Turn a ``Range`` header (or None) and an object size into a RangePlan.

    No header: 200 over the whole object. ``bytes=a-b`` / ``bytes=a-`` with
    ``a <= b < size``: 206 over ``[a, b]``. Everything else, including a
    bound at or past ``size``, is 416. Pure; performs no I/O.
    """
    if size < 0:
        raise ValueError("size must be non-negative")

    if header is None:
        if size == 0:
            return RangePlan(status=200, size=0)
        return RangePlan(status=200, size=size, start=0, end=size - 1)

    m = _RANGE_RE.fullmatch(header.strip())
    if not m:
        return RangePlan(status=416, size=size)

    start_str, end_str = m.groups()
    # a bound with more digits than size is out of range; decided before
    # int() so long digit runs never reach the int-string limit
    limit = len(str(size))
    start_str = start_str.lstrip("0") or "0"
    end_str = (end_str.lstrip("0") or "0") if end_str else ""
    if len(start_str) > limit or len(end_str) > limit:
        return RangePlan(status=416, size=size)

    start = int(start_str)
    end = int(end_str) if end_str else size - 1

    if start >= size or end >= size or start > end:
        return RangePlan(status=416, size=size)

    return RangePlan(status=206, size=size, start=start, end=end)
