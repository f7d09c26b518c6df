from __future__ import annotations

import json
from typing import Any, Protocol


class TokenSource(Protocol):
    def token(self, length: int) -> str: ...


def canonical_json(obj: Any) -> str:
    # stable serialization for stored payloads
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def new_session_id(now_ms: int, rng: TokenSource) -> str:
    """
    Opaque per-tab session id: "<epoch_ms>-<9 base36 chars>".
    """
    return f"{int(now_ms)}-{rng.token(9)}"
