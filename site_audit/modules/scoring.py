from __future__ import annotations

import math
import re
from typing import Optional

from ..models.config import ScoringConfig
from ..models.results import Axis, CategoryScore, ColorBand, ScoringResult
from ..models.snapshot import (
    AuditInput,
    DnsRecords,
    DomainInfo,
    MarkupValidation,
    OnlinePresence,
    PageHeuristics,
    SecurityHeaders,
    Snapshot,
    SpeedResult,
    ThreatListResult,
    TlsInfo,
)

FULL_DISALLOW_RE = re.compile(r"^\s*disallow:\s*/\s*$", re.IGNORECASE)
HEADER_GRADE_POINTS = {"A+": 30, "A": 25, "B": 20, "C": 15, "D": 10, "F": 0}
UNRELIABLE_DETAIL = "markup unavailable, possibly bot protection"
MARKUP_AXES = (Axis.seo, Axis.accessibility, Axis.best_practices, Axis.content, Axis.technology)

LABELS = {
    Axis.performance: "Performance",
    Axis.seo: "SEO",
    Axis.security: "Security",
    Axis.accessibility: "Accessibility",
    Axis.best_practices: "Best Practices",
    Axis.domain_trust: "Domain Trust",
    Axis.content: "Content",
    Axis.technology: "Technology",
    Axis.online_presence: "Online Presence",
}


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp(value: float, low: int = 0, high: int = 100) -> int:
    return max(low, min(high, round_half_up(value)))


def color_for(score: float) -> ColorBand:
    if score >= 90:
        return ColorBand.green
    if score >= 70:
        return ColorBand.lime
    if score >= 50:
        return ColorBand.yellow
    if score >= 30:
        return ColorBand.orange
    return ColorBand.red


def _category(axis: Axis, score: float, details: list[str]) -> CategoryScore:
    value = clamp(score)
    return CategoryScore(score=value, label=LABELS[axis], color=color_for(value), details=details)


def _no_data(axis: Axis, detail: str) -> CategoryScore:
    return CategoryScore(score=0, label=LABELS[axis], color=ColorBand.yellow, details=[detail], no_data=True)


def has_full_disallow(robots_txt: Optional[str]) -> bool:
    return any(FULL_DISALLOW_RE.match(line) for line in (robots_txt or "").splitlines())


def score_performance(speed: SpeedResult) -> CategoryScore:
    if speed.error or speed.scores.performance is None:
        return _no_data(Axis.performance, "speed test data unavailable")
    score = speed.scores.performance
    details = [f"PageSpeed performance: {score:g}"]
    vitals = speed.web_vitals
    if vitals.lcp is not None:
        if vitals.lcp <= 2500:
            details.append("LCP good (<=2.5s)")
        elif vitals.lcp > 4000:
            score -= 5
            details.append("LCP poor (>4s)")
    if vitals.cls is not None:
        if vitals.cls <= 0.1:
            details.append("CLS good (<=0.1)")
        elif vitals.cls > 0.25:
            score -= 5
            details.append("CLS poor (>0.25)")
    return _category(Axis.performance, score, details)


def score_seo(snapshot: Snapshot, speed: SpeedResult) -> CategoryScore:
    details: list[str] = []
    score = 0.0
    if speed.scores.seo is not None:
        score += speed.scores.seo / 100 * 40
        details.append(f"PageSpeed SEO: {speed.scores.seo:g}")

    title = snapshot.basic_info.title
    if title:
        score += 10
        if 30 <= len(title) <= 60:
            details.append(f"title length good ({len(title)} chars)")
        else:
            details.append(f"title length {len(title)} chars (ideal 30-60)")
    else:
        details.append("title missing")

    description = snapshot.basic_info.meta_description
    if description:
        score += 10
        if 120 <= len(description) <= 160:
            details.append(f"meta description length good ({len(description)})")
        else:
            details.append(f"meta description {len(description)} chars (ideal 120-160)")
    else:
        details.append("meta description missing")

    h1 = snapshot.headings.total_h1
    if h1 == 1:
        score += 10
        details.append("single H1")
    elif h1 > 1:
        score += 5
        details.append(f"{h1} H1 tags, expected one")
    else:
        details.append("no H1")

    meta = snapshot.meta_seo
    technical = snapshot.technical
    if meta.canonical:
        score += 5
        details.append("canonical present")
    else:
        details.append("canonical missing")
    if len(meta.og_tags) >= 3:
        score += 5
        details.append("Open Graph tags present")
    else:
        details.append("Open Graph missing or incomplete")
    if technical.has_sitemap:
        score += 5
        details.append("sitemap present")
    else:
        details.append("no sitemap")
    if technical.has_robots_txt:
        score += 5
        details.append("robots.txt present")
    else:
        details.append("no robots.txt")
    if technical.has_schema_org:
        score += 5
        details.append("structured data present")
    else:
        details.append("no structured data")
    if meta.viewport:
        score += 5

    if snapshot.noindex:
        score = max(0.0, score - 30)
        details.append("noindex active, search engines will not index the page")
    if has_full_disallow(technical.robots_txt_content):
        score = max(0.0, score - 15)
        details.append("robots.txt blocks all crawlers")
    return _category(Axis.seo, score, details)


def score_security(
    snapshot: Snapshot, tls: TlsInfo, headers: SecurityHeaders, threats: ThreatListResult
) -> CategoryScore:
    details: list[str] = []
    score = 0
    if snapshot.security.is_https:
        score += 25
        details.append("HTTPS active")
    else:
        details.append("no HTTPS")

    if tls.valid:
        score += 20
        if tls.days_until_expiry is not None and tls.days_until_expiry > 30:
            details.append(f"certificate valid ({tls.days_until_expiry} days)")
        elif tls.days_until_expiry is not None:
            score -= 5
            details.append(f"certificate expires soon ({tls.days_until_expiry} days)")
    else:
        details.append("certificate invalid")

    if not snapshot.security.has_mixed_content:
        score += 10
    else:
        details.append(f"mixed content: {len(snapshot.security.mixed_content_urls)} issues")

    if headers.grade:
        score += HEADER_GRADE_POINTS.get(headers.grade, 10)
        details.append(f"security headers grade {headers.grade}")
        if headers.missing_headers:
            details.append(f"missing: {', '.join(headers.missing_headers)}")

    if threats.safe:
        score += 15
        details.append("threat list: clean")
    else:
        details.append(f"threats found: {', '.join(threats.threats)}")
    return _category(Axis.security, score, details)


def score_accessibility(snapshot: Snapshot, speed: SpeedResult) -> CategoryScore:
    details: list[str] = []
    score = 50.0
    if speed.scores.accessibility is not None:
        score = speed.scores.accessibility
        details.append(f"PageSpeed accessibility: {score:g}")
    images = snapshot.images
    if images.total > 0:
        if 1 - images.total_missing_alt / images.total >= 0.9:
            details.append("alt text coverage good")
        else:
            score = max(0.0, score - 10)
            details.append(f"{images.total_missing_alt}/{images.total} images missing alt text")
    if snapshot.basic_info.language:
        details.append("html lang attribute present")
    else:
        score = max(0.0, score - 5)
        details.append("html lang attribute missing")
    return _category(Axis.accessibility, score, details)


def score_best_practices(snapshot: Snapshot, speed: SpeedResult, markup: MarkupValidation) -> CategoryScore:
    details: list[str] = []
    score = 0.0
    if speed.scores.best_practices is not None:
        score += speed.scores.best_practices / 100 * 40
        details.append(f"PageSpeed best practices: {speed.scores.best_practices:g}")
    if markup.errors == 0:
        score += 20
        details.append("markup has no errors")
    elif markup.errors < 10:
        score += 10
        details.append(f"{markup.errors} markup errors")
    else:
        details.append(f"{markup.errors} markup errors, too many")
    if snapshot.technical.has_sitemap:
        score += 10
    if snapshot.technical.has_robots_txt:
        score += 10
    if snapshot.basic_info.charset:
        score += 5
    if snapshot.basic_info.favicon:
        score += 5
        details.append("favicon present")
    else:
        details.append("favicon missing")
    if snapshot.meta_seo.viewport:
        score += 5
    if snapshot.links.total_broken > 0:
        score = max(0.0, score - snapshot.links.total_broken * 2)
        details.append(f"{snapshot.links.total_broken} broken links")
    return _category(Axis.best_practices, score, details)


def score_domain_trust(
    snapshot: Snapshot, tls: TlsInfo, domain: DomainInfo, dns: DnsRecords, heuristics: PageHeuristics
) -> CategoryScore:
    details: list[str] = []
    score = 0
    age = domain.domain_age_days
    if age is not None:
        if age > 1825:
            score += 25
            details.append(f"domain is {age // 365} years old")
        elif age > 365:
            score += 15
            details.append(f"domain is {age // 365} years old")
        else:
            score += 5
            details.append(f"domain is {age} days old")
    if snapshot.security.is_https and tls.valid:
        score += 15

    trust = heuristics.trust_signals
    if trust.has_privacy_policy:
        score += 8
        details.append("privacy policy present")
    if trust.has_terms:
        score += 7
        details.append("terms of use present")
    if trust.has_contact_info:
        score += 8
        details.append("contact information present")
    if trust.has_email:
        score += 4
    if trust.has_phone:
        score += 3

    if dns.has_spf:
        score += 5
        details.append("SPF record present")
    if dns.has_dmarc:
        score += 5
        details.append("DMARC record present")
    if dns.mx_records:
        score += 5
        details.append("MX record present")

    socials = len(heuristics.social_links)
    if socials >= 3:
        score += 10
        details.append(f"{socials} social links")
    elif socials > 0:
        score += 5
    return _category(Axis.domain_trust, score, details)


def score_content(snapshot: Snapshot) -> CategoryScore:
    details: list[str] = []
    score = 0
    words = snapshot.content.word_count
    if words >= 300:
        score += 30
        details.append(f"{words} words, good")
    elif words >= 100:
        score += 15
        details.append(f"{words} words, low")
    else:
        details.append(f"{words} words, very low")

    headings = snapshot.headings
    if headings.total_h1 >= 1 and headings.total_h2 >= 1:
        score += 20
        details.append("heading hierarchy present")
    elif headings.total_h1 >= 1:
        score += 10

    links = snapshot.links
    if links.total_internal >= 5:
        score += 15
        details.append(f"{links.total_internal} internal links")
    elif links.total_internal >= 1:
        score += 7
    if links.total_external >= 1:
        score += 10

    ratio = snapshot.content.content_to_code_ratio
    if ratio >= 20:
        score += 15
    elif ratio >= 10:
        score += 8
    else:
        details.append(f"low content to code ratio ({ratio:g}%)")

    if snapshot.images.total >= 1:
        score += 10
        details.append(f"{snapshot.images.total} images")
    else:
        details.append("no images")
    return _category(Axis.content, score, details)


def score_technology(snapshot: Snapshot, heuristics: PageHeuristics) -> CategoryScore:
    details: list[str] = []
    score = 0
    analytics = heuristics.analytics
    if analytics.has_google_analytics or analytics.has_gtm:
        score += 30
        details.append("Google Analytics/GTM present")
    if analytics.has_meta_pixel:
        score += 5
        details.append("Meta pixel present")
    if analytics.other_tools:
        score += 5
        details.append(f"other analytics: {', '.join(analytics.other_tools)}")
    if snapshot.tech_detection.platform:
        score += 20
        details.append(f"platform: {snapshot.tech_detection.platform}")
    if heuristics.css_frameworks:
        score += 10
        details.append(f"CSS: {', '.join(heuristics.css_frameworks)}")
    if heuristics.fonts:
        score += 10
        details.append(f"fonts: {', '.join(heuristics.fonts)}")
    if snapshot.technical.has_schema_org:
        score += 15
    if heuristics.cta.forms > 0 or heuristics.cta.buttons > 0:
        score += 10
    return _category(Axis.technology, score, details)


def score_online_presence(presence: Optional[OnlinePresence], domain: DomainInfo) -> CategoryScore:
    if presence is None:
        return _no_data(Axis.online_presence, "online presence data unavailable")
    index = presence.search_index
    if index.no_data:
        return _no_data(Axis.online_presence, "search index data unavailable")

    details: list[str] = []
    score = 0
    if index.is_indexed:
        score += 15
        details.append("indexed by Google")
    else:
        details.append("not indexed by Google")
    if index.indexed_page_count >= 10:
        score += 10
        details.append(f"{index.indexed_page_count} pages indexed")
    elif index.indexed_page_count > 0:
        details.append(f"only {index.indexed_page_count} pages indexed")
    if index.has_rich_snippet:
        score += 5
        details.append("rich snippet present")

    mentions = index.brand_mentions
    if mentions >= 50:
        score += 10
    elif mentions >= 10:
        score += 7
    elif mentions >= 1:
        score += 5
    details.append(f"{mentions} brand mentions" if mentions else "no brand mentions on other sites")

    social = presence.social_presence
    if social.total_verified >= 3:
        score += 15
        details.append(f"{social.total_verified} social profiles verified")
    elif social.total_verified > 0:
        score += 7
        details.append(f"only {social.total_verified} social profiles verified")
    else:
        details.append("no verified social profiles")
    if social.total_invalid > 0:
        details.append(f"{social.total_invalid} social profiles unreachable")

    tags = presence.webmaster_tags
    if tags.google:
        score += 7
        details.append("Google Search Console verified")
    else:
        details.append("no Google Search Console verification")
    if tags.bing:
        score += 2
        details.append("Bing Webmaster verified")
    if tags.yandex:
        score += 1
        details.append("Yandex Webmaster verified")

    snapshots = presence.archive_history.snapshot_count
    if snapshots >= 50:
        score += 15
    elif snapshots >= 10:
        score += 10
    elif snapshots >= 1:
        score += 5
    details.append(f"{snapshots} archive snapshots" if snapshots else "no archive history")

    structured = presence.structured_data
    if structured.schema_complete:
        score += 5
        details.append(f"schema: {', '.join(structured.schema_types)}")
    else:
        details.append("schema missing or incomplete")
    if structured.og_complete:
        score += 5
        details.append("Open Graph complete")
    else:
        details.append("Open Graph incomplete")

    if domain.domain_age_days is not None:
        years = domain.domain_age_days / 365
        if years >= 5:
            score += 10
            details.append(f"domain is {math.floor(years)} years old (5+)")
        elif years >= 1:
            score += 5
            details.append(f"domain is {math.floor(years)} years old")
        else:
            details.append(f"domain is {round_half_up(years * 12)} months old")
    return _category(Axis.online_presence, score, details)


def weighted_overall(categories: dict[str, CategoryScore], weights: dict[str, float]) -> int:
    """Weight-renormalized average over the categories that carry data."""
    active = [(name, cat) for name, cat in categories.items() if not cat.no_data and weights.get(name, 0) > 0]
    total_weight = sum(weights[name] for name, _ in active)
    if total_weight <= 0:
        return 0
    return round_half_up(sum(cat.score * weights[name] for name, cat in active) / total_weight)


def score_all(audit: AuditInput, reliable: bool = True, config: ScoringConfig | None = None) -> ScoringResult:
    config = config or ScoringConfig()
    snapshot = audit.snapshot
    categories = {
        Axis.performance: score_performance(audit.speed),
        Axis.seo: score_seo(snapshot, audit.speed),
        Axis.security: score_security(snapshot, audit.tls, audit.security_headers, audit.threat_list),
        Axis.accessibility: score_accessibility(snapshot, audit.speed),
        Axis.best_practices: score_best_practices(snapshot, audit.speed, audit.markup_validation),
        Axis.domain_trust: score_domain_trust(snapshot, audit.tls, audit.domain_info, audit.dns, audit.heuristics),
        Axis.content: score_content(snapshot),
        Axis.technology: score_technology(snapshot, audit.heuristics),
        Axis.online_presence: score_online_presence(audit.online_presence, audit.domain_info),
    }
    if not reliable:
        for axis in MARKUP_AXES:
            categories[axis] = _no_data(axis, UNRELIABLE_DETAIL)

    keyed = {axis.value: cat for axis, cat in categories.items()}
    overall = weighted_overall(keyed, config.weights)
    return ScoringResult(overall=overall, overall_color=color_for(overall), categories=keyed)


def score_groups(scores: ScoringResult, config: ScoringConfig | None = None) -> dict[str, Optional[int]]:
    """Roll axes up into display groups; a group with no data is None."""
    config = config or ScoringConfig()
    groups: dict[str, Optional[int]] = {}
    for group, members in config.groups.items():
        subset = {name: scores.categories[name] for name in members if name in scores.categories}
        if all(cat.no_data for cat in subset.values()):
            groups[group] = None
        else:
            groups[group] = weighted_overall(subset, config.weights)
    return groups


def unavailable(detail: str) -> ScoringResult:
    """Every axis flagged noData; used when scoring itself fails."""
    keyed = {axis.value: _no_data(axis, detail) for axis in Axis}
    return ScoringResult(overall=0, overall_color=color_for(0), categories=keyed)


def group_for_label(label: str, config: ScoringConfig | None = None) -> Optional[str]:
    """Display group of a category label such as "Domain Trust"."""
    config = config or ScoringConfig()
    axis = next((a.value for a, text in LABELS.items() if text == label), None)
    for group, members in config.groups.items():
        if axis in members:
            return group
    return None
