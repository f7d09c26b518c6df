from __future__ import annotations

import re
from collections.abc import Iterable
from functools import lru_cache


@lru_cache(maxsize=256)
def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """
    "/admin/*" -> ^/admin/.*$ ; everything except '*' matches literally.
    """
    parts = [re.escape(p) for p in pattern.split("*")]
    return re.compile("^" + ".*".join(parts) + "$")


def should_exclude_route(pathname: str, exclusions: Iterable[str]) -> bool:
    return any(glob_to_regex(p).match(pathname) for p in exclusions if p)
