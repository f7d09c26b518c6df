from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from urllib.parse import urljoin, urlsplit

from propweb.features.storage.service import MemoryStorage

MOBILE_MAX_WIDTH = 768
TABLET_MAX_WIDTH = 1024


def device_type_for_width(width: int) -> str:
    if width < MOBILE_MAX_WIDTH:
        return "mobile"
    if width < TABLET_MAX_WIDTH:
        return "tablet"
    return "desktop"


@dataclass(frozen=True, slots=True)
class ScriptTag:
    """An injected <script> element; src for external, inline for inline code."""

    id: str
    src: str | None = None
    inline: str | None = None


class BrowserTab:
    """
    The environment client code runs in: location + history, the document's
    title/referrer/lang, the viewport width, injected script elements, window
    globals (where vendor pixels live) and tab-scoped storage.
    """

    def __init__(
        self,
        *,
        url: str = "/",
        base_url: str = "https://example.com",
        title: str = "",
        referrer: str = "",
        lang: str = "",
        navigator_language: str = "en-US",
        inner_width: int = 1280,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.title = title
        self.referrer = referrer
        self.lang = lang
        self.navigator_language = navigator_language
        self.inner_width = int(inner_width)

        self.history: list[str] = [self._absolute(url)]
        self._index = 0

        self.scripts: dict[str, ScriptTag] = {}
        self.globals: dict[str, Any] = {}
        self.session_storage = MemoryStorage()

    # ----- location -----
    def _absolute(self, url: str) -> str:
        return urljoin(self.base_url + "/", url)

    @property
    def href(self) -> str:
        return self.history[self._index]

    @property
    def path(self) -> str:
        return urlsplit(self.href).path or "/"

    @property
    def search(self) -> str:
        """Query string without the leading '?'."""
        return urlsplit(self.href).query

    @property
    def relative_url(self) -> str:
        q = self.search
        return f"{self.path}?{q}" if q else self.path

    def navigate(self, url: str, *, title: str | None = None) -> None:
        """Push a new history entry (drops any forward entries)."""
        del self.history[self._index + 1 :]
        self.history.append(self._absolute(url))
        self._index = len(self.history) - 1
        if title is not None:
            self.title = title

    def replace_url(self, url: str) -> None:
        """Replace the current history entry without growing the back stack."""
        self.history[self._index] = self._absolute(url)

    def back(self) -> bool:
        if self._index == 0:
            return False
        self._index -= 1
        return True

    # ----- document / navigator -----
    @property
    def device_type(self) -> str:
        return device_type_for_width(self.inner_width)

    @property
    def language(self) -> str:
        if self.lang:
            return self.lang
        primary = (self.navigator_language or "").split("-")[0]
        return primary or "en"

    # ----- scripts -----
    def has_script(self, script_id: str) -> bool:
        return script_id in self.scripts

    def append_script(self, tag: ScriptTag) -> bool:
        """
        Inserts the element unless one with the same id exists.
        Returns True when a new element was inserted.
        """
        if tag.id in self.scripts:
            return False
        self.scripts[tag.id] = tag
        return True
