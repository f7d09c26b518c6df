from __future__ import annotations

import random
import string
from dataclasses import dataclass

_BASE36 = string.digits + string.ascii_lowercase


@dataclass
class RNG:
    seed: int | None = None

    def __post_init__(self) -> None:
        self._r = random.Random(self.seed)

    def token(self, length: int) -> str:
        """Lowercase base36 token, e.g. the random half of a session id."""
        return "".join(self._r.choice(_BASE36) for _ in range(length))
