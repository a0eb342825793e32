from __future__ import annotations

import logging
import re
import time
from typing import Optional

from ..models.config import RunConfig
from ..models.results import (
    CategoryScore,
    RedirectStatus,
    ScoringResult,
    ValidationCheckResult,
    ValidationOutcome,
    ValidationSummary,
)
from ..models.snapshot import (
    AuditInput,
    Classification,
    DnsRecords,
    DomainInfo,
    OnlinePresence,
    PageHeuristics,
    RevenueModel,
    Snapshot,
)
from ..utils.http import HttpClient, probe_batch, probe_reachable, walk_redirects
from ..utils.markup import MarkupFacts, platform_fingerprinted, scan_markup
from ..utils.normalize import host_of, truncate
from .scoring import clamp, color_for, has_full_disallow, round_half_up, weighted_overall

logger = logging.getLogger(__name__)

CORRECTION_MARKERS = ("(removed)", "(corrected)", "(replaced)")
MATURITY_TIERS = ["newborn", "young", "growing", "mature", "veteran"]
NON_SHOP_SITE_TYPES = {"corporate", "blog", "portfolio", "landing-page"}

ECOMMERCE_PLATFORM_RE = re.compile(r"shopify|woocommerce|magento|prestashop|opencart", re.I)
CART_RE = re.compile(r"cart|sepet|checkout|ödeme", re.I)
PRICING_RE = re.compile(r"pricing|fiyat|subscribe|abone", re.I)
SIGNUP_RE = re.compile(r"sign.?up|free.?trial|ücretsiz.?dene", re.I)
B2B_RE = re.compile(r"enterprise|api|integration|b2b|kurumsal|demo|case.?study", re.I)
B2C_RE = re.compile(r"add.?to.?cart|sepete.?ekle|kargo|shipping|wishlist|b2c", re.I)


def _check(field: str, verified: bool, reason: str) -> ValidationCheckResult:
    return ValidationCheckResult(field=field, verified=verified, reason=reason)


def _correction(field: str, reason: str, marker: str = "corrected") -> ValidationCheckResult:
    return ValidationCheckResult(field=field, verified=False, reason=f"{reason} ({marker})")


def is_correction(check: ValidationCheckResult) -> bool:
    return not check.verified and check.reason.endswith(CORRECTION_MARKERS)


def _favicon_fallback(snapshot: Snapshot) -> str:
    host = host_of(snapshot.basic_info.final_url or snapshot.basic_info.url)
    return f"https://www.google.com/s2/favicons?domain={host}&sz=32"


def markup_checks(snapshot: Snapshot, heuristics: PageHeuristics, facts: MarkupFacts) -> tuple[Snapshot, list[ValidationCheckResult]]:
    """Re-derive crawler claims from the raw markup."""
    checks: list[ValidationCheckResult] = []
    info = snapshot.basic_info

    if info.title:
        checks.append(
            _check("title", facts.has_title, "<title> found in markup" if facts.has_title else "<title> not found in markup")
        )
    else:
        checks.append(_check("title", False, "no title"))

    if info.meta_description:
        checks.append(
            _check(
                "metaDescription",
                facts.has_meta_description,
                "meta description found in markup" if facts.has_meta_description else "meta description not found in markup",
            )
        )
    else:
        checks.append(_check("metaDescription", False, "no meta description"))

    if snapshot.meta_seo.canonical:
        checks.append(
            _check(
                "canonicalUrl",
                facts.has_canonical,
                "canonical link found in markup" if facts.has_canonical else "canonical link not found in markup",
            )
        )

    is_https = (info.final_url or info.url).startswith("https://")
    checks.append(_check("ssl", is_https, "HTTPS active" if is_https else "insecure connection, no HTTPS"))

    if facts.jsonld.total:
        ok = facts.jsonld.invalid == 0
        checks.append(
            _check(
                "jsonLd",
                ok,
                f"{facts.jsonld.valid} JSON-LD blocks valid" if ok else f"{facts.jsonld.invalid}/{facts.jsonld.total} JSON-LD blocks invalid",
            )
        )

    headings = snapshot.headings
    consistent = abs(facts.h1_count - headings.total_h1) <= 1 and abs(facts.h2_count - headings.total_h2) <= 1
    checks.append(
        _check(
            "headings",
            consistent,
            "heading counts match markup"
            if consistent
            else f"heading mismatch: H1 {headings.total_h1} vs {facts.h1_count}, H2 {headings.total_h2} vs {facts.h2_count}",
        )
    )

    platform = snapshot.tech_detection.platform
    if platform:
        if platform_fingerprinted(platform, facts.lowered):
            checks.append(_check("techDetection", True, f"{platform} confirmed in markup"))
        else:
            checks.append(_correction("techDetection", f"{platform} not confirmed in markup", "removed"))
            cleared = snapshot.tech_detection.model_copy(update={"platform": None, "confidence": 0, "signals": []})
            snapshot = snapshot.model_copy(update={"tech_detection": cleared})

    if snapshot.noindex:
        checks.append(_check("indexability", False, "meta robots noindex, search engines will not index this page"))
    elif has_full_disallow(snapshot.technical.robots_txt_content):
        checks.append(_check("indexability", False, "robots.txt blocks all crawlers (Disallow: /)"))
    else:
        checks.append(_check("indexability", True, "page is indexable"))

    words = snapshot.content.word_count
    if words < 50:
        checks.append(_check("contentEmpty", False, f"only {words} words, the site has almost no content"))
    elif words < 150:
        checks.append(_check("contentEmpty", False, f"{words} words, weak content (300+ recommended)"))
    else:
        checks.append(_check("contentEmpty", True, f"{words} words, enough content"))

    consent = heuristics.cookie_consent
    checks.append(
        _check(
            "cookieConsent",
            consent.detected,
            f"cookie consent detected: {', '.join(consent.patterns)}"
            if consent.detected
            else "no cookie consent banner found, privacy compliance at risk",
        )
    )
    return snapshot, checks


async def reachability_checks(
    snapshot: Snapshot, heuristics: PageHeuristics, http: HttpClient, config: RunConfig
) -> tuple[Snapshot, PageHeuristics, list[ValidationCheckResult]]:
    checks: list[ValidationCheckResult] = []
    timeout = config.reachability_timeout_seconds
    batch = config.probe_batch_size
    info = snapshot.basic_info

    domain_ok = await probe_reachable(http, info.final_url or info.url, config.domain_timeout_seconds)
    checks.append(_check("domainAccess", domain_ok, "domain reachable" if domain_ok else "domain unreachable"))

    if heuristics.social_links:
        results = await probe_batch(http, [s.url for s in heuristics.social_links], timeout, batch)
        kept = []
        for link, ok in zip(heuristics.social_links, results):
            if ok:
                kept.append(link)
                checks.append(_check(f"socialLink.{link.platform}", True, f"{link.platform} link reachable"))
            else:
                checks.append(_correction(f"socialLink.{link.platform}", f"{link.platform} link unreachable", "removed"))
        heuristics = heuristics.model_copy(update={"social_links": kept})

    og_image = snapshot.meta_seo.og_tags.get("og:image")
    if og_image:
        if await probe_reachable(http, og_image, timeout):
            checks.append(_check("ogImage", True, "og:image reachable"))
        else:
            checks.append(_correction("ogImage", "og:image unreachable", "removed"))
            og_tags = {k: v for k, v in snapshot.meta_seo.og_tags.items() if k != "og:image"}
            snapshot = snapshot.model_copy(update={"meta_seo": snapshot.meta_seo.model_copy(update={"og_tags": og_tags})})

    if info.favicon:
        if await probe_reachable(http, info.favicon, timeout):
            checks.append(_check("favicon", True, "favicon reachable"))
        else:
            fallback = _favicon_fallback(snapshot)
            checks.append(_correction("favicon", "favicon unreachable, using the Google favicon service", "replaced"))
            snapshot = snapshot.model_copy(update={"basic_info": snapshot.basic_info.model_copy(update={"favicon": fallback})})

    external = [link.href for link in snapshot.links.external[: config.external_link_sample]]
    if external:
        results = await probe_batch(http, external, timeout, batch)
        broken = [url for url, ok in zip(external, results) if not ok]
        for url, ok in zip(external, results):
            if ok:
                checks.append(_check("externalLink", True, f"external link reachable: {truncate(url)}"))
            else:
                checks.append(_check("externalLink", False, f"broken external link: {truncate(url)}"))
        if broken:
            checks.append(_check("externalLinks.summary", False, f"{len(broken)}/{len(external)} external links unreachable"))
            merged = list(dict.fromkeys([*snapshot.links.broken, *broken]))
            links = snapshot.links.model_copy(
                update={"broken": merged, "total_broken": max(snapshot.links.total_broken, len(merged))}
            )
            snapshot = snapshot.model_copy(update={"links": links})

    images = [img.src for img in snapshot.images.images[: config.image_sample] if img.src.startswith("http")]
    if images:
        results = await probe_batch(http, images, timeout, batch)
        missing = results.count(False)
        checks.append(
            _check(
                "images",
                missing == 0,
                f"first {len(images)} images reachable" if missing == 0 else f"{missing}/{len(images)} images unreachable",
            )
        )
    return snapshot, heuristics, checks


async def redirect_check(snapshot: Snapshot, http: HttpClient, config: RunConfig) -> ValidationCheckResult:
    try:
        chain = await walk_redirects(
            http, snapshot.basic_info.url, max_hops=config.max_redirect_hops, timeout=config.status_timeout_seconds
        )
    except Exception as exc:
        logger.debug("redirect walk failed", extra={"url": snapshot.basic_info.url, "error": str(exc)})
        return _check("httpStatus", False, "HTTP status unavailable")

    redirects = max(len(chain.hops) - 1, 0)
    if chain.status == RedirectStatus.redirect_loop:
        return _check("httpStatus", False, f"redirect loop detected ({redirects} hops)")
    if chain.status == RedirectStatus.too_many_hops:
        return _check("httpStatus", False, f"redirect chain longer than {config.max_redirect_hops} hops")
    status = chain.final_status or 0
    if 300 <= status < 400:
        # walk_redirects only stops on a 3xx when there is nowhere to go
        return _check("httpStatus", False, f"HTTP {status} redirect without Location header")
    if not 200 <= status < 300:
        return _check("httpStatus", False, f"HTTP {status}, page access problem")
    if redirects > config.slow_chain_hops:
        return _check("httpStatus", False, f"too many redirects ({redirects} hops), slows loading")
    if redirects:
        return _check("httpStatus", True, f"HTTP {status} reached after {redirects} redirects")
    return _check("httpStatus", True, f"HTTP {status} OK")


def classification_checks(
    classification: Classification,
    snapshot: Snapshot,
    facts: MarkupFacts,
    dns: DnsRecords,
    domain: DomainInfo,
) -> tuple[Classification, list[ValidationCheckResult]]:
    """Cross-check the site classification against independent evidence."""
    checks: list[ValidationCheckResult] = []
    c = classification
    html = facts.lowered

    identity = c.identity
    if identity.site_type_confidence >= 50:
        checks.append(
            _check("classification.siteType", True, f"site type: {identity.site_type} (confidence {identity.site_type_confidence}%)")
        )
    elif identity.site_type != "unknown":
        checks.append(
            _correction(
                "classification.siteType",
                f"low site type confidence: {identity.site_type} ({identity.site_type_confidence}%), set to unknown",
            )
        )
        c = c.model_copy(update={"identity": identity.model_copy(update={"site_type": "unknown", "site_type_confidence": 0})})
    else:
        checks.append(_check("classification.siteType", False, "site type not detected"))

    if c.identity.industry:
        checks.append(_check("classification.industry", True, f"industry: {c.identity.industry}"))
    else:
        checks.append(_check("classification.industry", False, "industry not detected"))

    if domain.domain_age_days is not None:
        years = domain.domain_age_days / 365
        level = c.maturity.level
        corrected_level: Optional[str] = None
        if level == "veteran" and years < 2:
            corrected_level = MATURITY_TIERS[MATURITY_TIERS.index(level) - 1]
            reason = f'maturity "veteran" but the domain is only {round(years * 12)} months old, set to "{corrected_level}"'
        elif level == "newborn" and years > 5:
            corrected_level = MATURITY_TIERS[MATURITY_TIERS.index(level) + 1]
            reason = f'maturity "newborn" but the domain is {round(years)} years old, set to "{corrected_level}"'
        if corrected_level:
            checks.append(_correction("classification.maturity", reason))
            maturity = c.maturity.model_copy(
                update={"level": corrected_level, "signals": [*c.maturity.signals, "validator: corrected from domain age"]}
            )
            c = c.model_copy(update={"maturity": maturity})
        else:
            checks.append(
                _check("classification.maturity", True, f"maturity consistent: {level} (domain {round(years)} years, score {c.maturity.score})")
            )

    sitemap_pages = snapshot.technical.sitemap_page_count or 0
    internal = len(snapshot.links.internal)
    scale = c.scale.level
    corrected_scale: Optional[str] = None
    if scale == "enterprise" and sitemap_pages < 100 and internal < 50:
        corrected_scale = "large"
        reason = f'scale "enterprise" but sitemap has {sitemap_pages} pages and {internal} internal links, set to "large"'
    elif scale == "single-page" and internal > 10:
        corrected_scale = "small"
        reason = f'scale "single-page" but {internal} internal links, set to "small"'
    if corrected_scale:
        checks.append(_correction("classification.scale", reason))
        c = c.model_copy(
            update={"scale": c.scale.model_copy(update={"level": corrected_scale, "signals": [*c.scale.signals, "validator: scale corrected"]})}
        )
    else:
        checks.append(_check("classification.scale", True, f"scale consistent: {scale} (~{c.scale.estimated_pages or 0} pages)"))

    crawl_platform = (snapshot.tech_detection.platform or "").lower()
    commerce_platform = bool(ECOMMERCE_PLATFORM_RE.search(crawl_platform))
    revenue = c.revenue_model.primary
    if revenue == "e-commerce":
        has_cart = bool(CART_RE.search(html))
        if commerce_platform or has_cart:
            evidence = "commerce platform" if commerce_platform else "cart/checkout vocabulary"
            checks.append(_check("classification.revenueModel", True, f"revenue model confirmed: e-commerce ({evidence})"))
        else:
            checks.append(
                _correction("classification.revenueModel", '"e-commerce" without a commerce platform or cart/checkout vocabulary, set to unknown')
            )
            c = c.model_copy(update={"revenue_model": _unknown_revenue(c, "e-commerce not confirmed")})
    elif revenue == "saas":
        has_pricing = bool(PRICING_RE.search(html))
        has_signup = bool(SIGNUP_RE.search(html))
        if has_pricing or has_signup:
            checks.append(_check("classification.revenueModel", True, f"revenue model confirmed: SaaS ({'pricing' if has_pricing else 'sign-up'})"))
        else:
            checks.append(_correction("classification.revenueModel", '"saas" without pricing or sign-up vocabulary, set to unknown'))
            c = c.model_copy(update={"revenue_model": _unknown_revenue(c, "saas not confirmed")})
    elif revenue != "unknown":
        checks.append(_check("classification.revenueModel", True, f"revenue model: {revenue}"))

    hosting = c.tech_stack.hosting
    if hosting:
        nameservers = " ".join(dns.nameservers).lower()
        needle = hosting.lower()
        if needle in nameservers or needle in html:
            checks.append(_check("classification.techStack.hosting", True, f"hosting confirmed: {hosting}"))
        else:
            checks.append(_correction("classification.techStack.hosting", f'hosting "{hosting}" not found in nameservers or markup', "removed"))
            c = c.model_copy(update={"tech_stack": c.tech_stack.model_copy(update={"hosting": None})})

    claimed = c.tech_stack.platform
    if claimed and snapshot.tech_detection.platform:
        mine = claimed.lower()
        match = mine == crawl_platform or mine in crawl_platform or crawl_platform in mine
        if match:
            checks.append(_check("classification.techStack.platform", True, f"platform consistent: {claimed}"))
        else:
            checks.append(
                _correction(
                    "classification.techStack.platform",
                    f'platform mismatch: classification "{claimed}" vs crawler "{snapshot.tech_detection.platform}"',
                    "replaced",
                )
            )
            c = c.model_copy(update={"tech_stack": c.tech_stack.model_copy(update={"platform": snapshot.tech_detection.platform})})

    if c.synthesis.summary:
        checks.append(_check("classification.aiSynthesis", True, "classification summary present"))
    else:
        checks.append(_check("classification.aiSynthesis", False, "classification summary missing"))

    audience = c.target_market.audience
    platforms = [p.lower() for p in c.contact.social_platforms]
    if audience == "B2B":
        keywords = bool(B2B_RE.search(html))
        linkedin = any("linkedin" in p for p in platforms)
        if keywords or linkedin:
            checks.append(_check("classification.targetMarket", True, f"audience confirmed: B2B ({'keywords' if keywords else 'LinkedIn'})"))
        else:
            checks.append(_correction("classification.targetMarket", "B2B not confirmed by enterprise/API vocabulary or LinkedIn, set to unknown"))
            c = c.model_copy(update={"target_market": c.target_market.model_copy(update={"audience": "unknown"})})
    elif audience == "B2C":
        keywords = bool(B2C_RE.search(html))
        consumer_social = any("instagram" in p or "tiktok" in p for p in platforms)
        if keywords or consumer_social:
            evidence = "shopping vocabulary" if keywords else "consumer social profiles"
            checks.append(_check("classification.targetMarket", True, f"audience confirmed: B2C ({evidence})"))
        else:
            checks.append(_correction("classification.targetMarket", "B2C not confirmed by shopping vocabulary or Instagram/TikTok, set to unknown"))
            c = c.model_copy(update={"target_market": c.target_market.model_copy(update={"audience": "unknown"})})

    if c.content_structure.has_ecommerce:
        site_type = c.identity.site_type
        if not commerce_platform and site_type in NON_SHOP_SITE_TYPES:
            checks.append(
                _correction(
                    "classification.contentStructure.hasEcommerce",
                    f'e-commerce flagged on a "{site_type}" site without a commerce platform, set to false',
                )
            )
            c = c.model_copy(update={"content_structure": c.content_structure.model_copy(update={"has_ecommerce": False})})
        else:
            evidence = "commerce platform present" if commerce_platform else "site type compatible"
            checks.append(_check("classification.contentStructure.hasEcommerce", True, f"e-commerce consistent: {evidence}"))
    return c, checks


def _unknown_revenue(c: Classification, signal: str) -> RevenueModel:
    return c.revenue_model.model_copy(update={"primary": "unknown", "signals": [*c.revenue_model.signals, f"validator: {signal}"]})


def online_presence_checks(presence: OnlinePresence, snapshot: Snapshot, domain: DomainInfo) -> list[ValidationCheckResult]:
    checks: list[ValidationCheckResult] = []
    index = presence.search_index
    noindex = snapshot.noindex
    if not index.no_data:
        if index.is_indexed and noindex:
            checks.append(
                _check("onlinePresence.googleIndex", False, "indexed by Google although noindex is set; Google may not have processed it yet")
            )
        elif not index.is_indexed and not noindex:
            checks.append(_check("onlinePresence.googleIndex", False, "not indexed by Google; the site may be new or hard to crawl"))
        elif index.is_indexed:
            checks.append(_check("onlinePresence.googleIndex", True, f"indexed by Google ({index.indexed_page_count} pages)"))
        else:
            checks.append(_check("onlinePresence.googleIndex", True, "noindex set and not indexed, consistent"))

    archive = presence.archive_history
    if archive.website_age_years is not None and domain.domain_age_days is not None:
        domain_years = domain.domain_age_days / 365
        if abs(archive.website_age_years - domain_years) > 5:
            checks.append(
                _check(
                    "onlinePresence.waybackHistory",
                    False,
                    f"archive age ({archive.website_age_years:.1f} years) far from domain age ({domain_years:.1f} years); "
                    "the domain may have changed hands",
                )
            )
        else:
            checks.append(
                _check(
                    "onlinePresence.waybackHistory",
                    True,
                    f"archive age ({archive.website_age_years:.1f} years) matches domain age ({domain_years:.1f} years)",
                )
            )
    elif archive.snapshot_count > 0:
        checks.append(_check("onlinePresence.waybackHistory", True, f"{archive.snapshot_count} archive snapshots"))

    tags = presence.webmaster_tags
    if tags.google:
        checks.append(_check("onlinePresence.webmasterTags.google", True, "Google Search Console verification tag present"))
    if tags.bing:
        checks.append(_check("onlinePresence.webmasterTags.bing", True, "Bing Webmaster verification tag present"))
    if not (tags.google or tags.bing or tags.yandex):
        checks.append(_check("onlinePresence.webmasterTags", False, "no search engine verification tag found"))
    return checks


def score_checks(
    scores: ScoringResult, snapshot: Snapshot, weights: dict[str, float], tolerance: int = 2
) -> tuple[ScoringResult, list[ValidationCheckResult]]:
    checks: list[ValidationCheckResult] = []
    categories: dict[str, CategoryScore] = {}
    for name, cat in scores.categories.items():
        if 0 <= cat.score <= 100:
            categories[name] = cat
            checks.append(_check(f"score.{name}", True, f"{name} score in range ({cat.score})"))
        else:
            fixed = clamp(cat.score)
            categories[name] = cat.model_copy(update={"score": fixed, "color": color_for(fixed)})
            checks.append(_correction(f"score.{name}", f"{name} score {cat.score} outside 0-100"))

    recalculated = weighted_overall(categories, weights)
    overall = scores.overall
    if abs(overall - recalculated) > tolerance:
        logger.warning("overall score corrected from %s to %s", overall, recalculated)
        checks.append(_correction("score.overall", f"overall score inconsistent ({overall} vs recalculated {recalculated})"))
        overall = recalculated
    else:
        checks.append(_check("score.overall", True, f"overall score consistent ({overall})"))

    checks.append(_check("content.wordCount", True, f"word count: {snapshot.content.word_count}"))
    if snapshot.technical.schema_types:
        checks.append(_check("schemaTypes", True, f"schema types present: {', '.join(snapshot.technical.schema_types)}"))

    corrected = ScoringResult(overall=overall, overall_color=color_for(overall), categories=categories)
    return corrected, checks


def build_summary(checks: list[ValidationCheckResult], duration_ms: int) -> ValidationSummary:
    total = len(checks)
    verified = sum(1 for c in checks if c.verified)
    return ValidationSummary(
        total_checks=total,
        verified=verified,
        unverified=total - verified,
        filtered=sum(1 for c in checks if is_correction(c)),
        verification_score=round_half_up(verified * 100 / total) if total else 100,
        duration_ms=duration_ms,
        checks=checks,
    )


async def validate(audit: AuditInput, scores: ScoringResult, http: HttpClient, config: RunConfig) -> ValidationOutcome:
    started = time.monotonic()
    facts = scan_markup(audit.raw_markup)

    snapshot, checks = markup_checks(audit.snapshot, audit.heuristics, facts)
    snapshot, heuristics, probe_results = await reachability_checks(snapshot, audit.heuristics, http, config)
    checks.extend(probe_results)
    checks.append(await redirect_check(snapshot, http, config))

    classification = audit.classification
    if classification is not None:
        classification, classification_results = classification_checks(classification, snapshot, facts, audit.dns, audit.domain_info)
        checks.extend(classification_results)

    if audit.online_presence is not None:
        checks.extend(online_presence_checks(audit.online_presence, snapshot, audit.domain_info))

    corrected_scores, score_results = score_checks(scores, snapshot, config.scoring.weights, config.overall_tolerance)
    checks.extend(score_results)

    summary = build_summary(checks, int((time.monotonic() - started) * 1000))
    logger.info(
        "validation: %s/%s verified, %s filtered, score %s/100, %sms",
        summary.verified,
        summary.total_checks,
        summary.filtered,
        summary.verification_score,
        summary.duration_ms,
    )
    return ValidationOutcome(
        snapshot=snapshot,
        heuristics=heuristics,
        scores=corrected_scores,
        classification=classification,
        online_presence=audit.online_presence,
        summary=summary,
    )
