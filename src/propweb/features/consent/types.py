from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class ConsentState:
    analytics: bool = False
    marketing: bool = False
    functional: bool = True
    timestamp: int = 0

    def as_dict(self) -> dict[str, Any]:
        return {
            "analytics": self.analytics,
            "marketing": self.marketing,
            "functional": self.functional,
            "timestamp": self.timestamp,
        }


# No stored record: third parties stay off.
NO_CONSENT = ConsentState()
