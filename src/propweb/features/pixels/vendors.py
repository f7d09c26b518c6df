from __future__ import annotations

from typing import Any

from propweb.features.browser.types import ScriptTag

from .types import VendorSpec


class CommandQueue:
    """
    Stand-in for a vendor's global function: every call is queued the way the
    real snippet queues calls until its library arrives.
    """

    def __init__(self, vendor: str) -> None:
        self.vendor = vendor
        self.queue: list[tuple[Any, ...]] = []

    def __call__(self, *args: Any) -> None:
        self.queue.append(args)


class TikTokQueue(CommandQueue):
    def track(self, *args: Any) -> None:
        self.queue.append(("track", *args))

    def page(self) -> None:
        self.queue.append(("page",))


def _ga4_scripts(value: str) -> tuple[ScriptTag, ...]:
    return (
        ScriptTag(id="ga4-script", src=f"https://www.googletagmanager.com/gtag/js?id={value}"),
        ScriptTag(id="ga4-config", inline=f"gtag('js', new Date()); gtag('config', '{value}');"),
    )


def _ga4_install(window: dict[str, Any], value: str) -> None:
    data_layer = window.setdefault("dataLayer", [])
    gtag = window.setdefault("gtag", CommandQueue("gtag"))
    gtag("js")
    gtag("config", value)
    data_layer.append({"gtag.config": value})


def _gtm_scripts(value: str) -> tuple[ScriptTag, ...]:
    return (ScriptTag(id="gtm-script", src=f"https://www.googletagmanager.com/gtm.js?id={value}"),)


def _gtm_install(window: dict[str, Any], value: str) -> None:
    window.setdefault("dataLayer", []).append({"event": "gtm.js", "gtm.id": value})


def _meta_scripts(value: str) -> tuple[ScriptTag, ...]:
    return (
        ScriptTag(
            id="meta-pixel",
            inline=(
                "fbq.src='https://connect.facebook.net/en_US/fbevents.js';"
                f"fbq('init', '{value}'); fbq('track', 'PageView');"
            ),
        ),
    )


def _meta_install(window: dict[str, Any], value: str) -> None:
    fbq = window.setdefault("fbq", CommandQueue("fbq"))
    fbq("init", value)
    fbq("track", "PageView")


def _tiktok_scripts(value: str) -> tuple[ScriptTag, ...]:
    return (
        ScriptTag(
            id="tiktok-pixel",
            inline=(
                "ttq.src='https://analytics.tiktok.com/i18n/pixel/events.js';"
                f"ttq.load('{value}'); ttq.page();"
            ),
        ),
    )


def _tiktok_install(window: dict[str, Any], value: str) -> None:
    ttq = window.setdefault("ttq", TikTokQueue("ttq"))
    ttq("load", value)
    ttq.page()


def _linkedin_scripts(value: str) -> tuple[ScriptTag, ...]:
    return (
        ScriptTag(
            id="linkedin-insight",
            inline=(
                f'_linkedin_partner_id = "{value}";'
                "lintrk.src='https://snap.licdn.com/li.lms-analytics/insight.min.js';"
            ),
        ),
    )


def _linkedin_install(window: dict[str, Any], value: str) -> None:
    window.setdefault("_linkedin_data_partner_ids", []).append(value)
    window.setdefault("lintrk", CommandQueue("lintrk"))


def _clarity_scripts(value: str) -> tuple[ScriptTag, ...]:
    return (ScriptTag(id="clarity-script", src=f"https://www.clarity.ms/tag/{value}"),)


def _clarity_install(window: dict[str, Any], value: str) -> None:
    window.setdefault("clarity", CommandQueue("clarity"))


VENDORS: dict[str, VendorSpec] = {
    spec.key: spec
    for spec in (
        VendorSpec("ga4_measurement_id", "ga4", _ga4_scripts, _ga4_install),
        VendorSpec("gtm_container_id", "gtm", _gtm_scripts, _gtm_install),
        VendorSpec("meta_pixel_id", "meta", _meta_scripts, _meta_install),
        VendorSpec("tiktok_pixel_id", "tiktok", _tiktok_scripts, _tiktok_install),
        VendorSpec("linkedin_partner_id", "linkedin", _linkedin_scripts, _linkedin_install),
        VendorSpec("clarity_project_id", "clarity", _clarity_scripts, _clarity_install),
    )
}
