"""
Parsing of interactive release selections such as ``all``, ``1,3,5`` or ``2-4``.
"""

import re
from typing import List

_SEPARATORS = re.compile(r"[\s,]+")
_NUMBER = re.compile(r"^\s*(\d+)")


def _leading_int(text: str) -> int | None:
    match = _NUMBER.match(text)
    return int(match.group(1)) if match else None


def parse_selection(text: str, max_n: int) -> List[int]:
    """
    Returns the sorted, de-duplicated 1-based indices selected by ``text``.

    Ranges may be written in either order (``4-2`` equals ``2-4``). Numbers
    outside ``1..max_n`` and unparsable parts are dropped.
    """
    s = (text or "").strip().lower()
    if s in ("all", "a"):
        return list(range(1, max_n + 1))

    selected: set[int] = set()
    for part in _SEPARATORS.split(s):
        if not part:
            continue
        if "-" in part:
            start, _, end = part.partition("-")
            lo, hi = _leading_int(start), _leading_int(end)
            if lo is None or hi is None:
                continue
            lo, hi = min(lo, hi), max(lo, hi)
            selected.update(i for i in range(max(lo, 1), min(hi, max_n) + 1))
        else:
            n = _leading_int(part)
            if n is not None and 1 <= n <= max_n:
                selected.add(n)
    return sorted(selected)
