from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any

from bs4 import BeautifulSoup

JSONLD_TYPE_RE = re.compile(r"application/ld\+json", re.IGNORECASE)

PLATFORM_FINGERPRINTS: dict[str, list[str]] = {
    "wordpress": ["wp-content", "wp-includes", "wp-json", "wordpress"],
    "shopify": ["cdn.shopify.com", "shopify.theme", "shopify"],
    "wix": ["wixstatic.com", "wix-code-sdk", "x-wix-"],
    "squarespace": ["squarespace.com", "static1.squarespace.com"],
    "webflow": ["webflow.com", "w-nav", "w-container"],
    "joomla": ["/media/jui/", "/components/com_", "joomla"],
    "drupal": ["drupal.settings", "/sites/default/files/"],
    "next.js": ["__next_data__", "/_next/"],
    "gatsby": ["___gatsby", "gatsby"],
}


@dataclass
class JsonLdScan:
    valid: int = 0
    invalid: int = 0
    types: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.valid + self.invalid


@dataclass
class MarkupFacts:
    """Facts re-derived from raw markup, independent of the crawler."""

    has_title: bool
    has_meta_description: bool
    has_canonical: bool
    h1_count: int
    h2_count: int
    jsonld: JsonLdScan
    list_count: int
    has_summary: bool
    lowered: str


def soup_of(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def _jsonld(soup: BeautifulSoup) -> JsonLdScan:
    scan = JsonLdScan()
    for script in soup.find_all("script", attrs={"type": JSONLD_TYPE_RE}):
        raw = (script.string or script.get_text() or "").strip()
        try:
            payload: Any = json.loads(raw)
        except json.JSONDecodeError:
            scan.invalid += 1
            continue
        if isinstance(payload, dict) and (payload.get("@type") or payload.get("@graph")):
            scan.valid += 1
            t = payload.get("@type")
            if t:
                scan.types.extend(str(x) for x in (t if isinstance(t, list) else [t]))
        else:
            scan.invalid += 1
    return scan


def scan_markup(html: str) -> MarkupFacts:
    soup = soup_of(html)
    title = soup.find("title")
    description = soup.find("meta", attrs={"name": re.compile(r"^description$", re.I)})
    canonical = soup.find("link", rel="canonical")
    return MarkupFacts(
        has_title=title is not None,
        has_meta_description=description is not None,
        has_canonical=canonical is not None,
        h1_count=len(soup.find_all("h1")),
        h2_count=len(soup.find_all("h2")),
        jsonld=_jsonld(soup),
        list_count=len(soup.find_all(["ul", "ol"])),
        has_summary=soup.find("summary") is not None,
        lowered=(html or "").lower(),
    )


def platform_fingerprinted(platform: str, lowered_html: str) -> bool:
    patterns = PLATFORM_FINGERPRINTS.get(platform.lower(), [])
    return any(p in lowered_html for p in patterns)
