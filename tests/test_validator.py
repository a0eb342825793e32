import asyncio
from datetime import datetime

import httpx

from site_audit.models.config import DEFAULT_WEIGHTS, RunConfig
from site_audit.models.results import CategoryScore, ColorBand, RedirectStatus, ScoringResult
from site_audit.models.snapshot import (
    AuditInput,
    BasicInfo,
    Classification,
    ContentStats,
    DnsRecords,
    DomainInfo,
    Identity,
    ImageInfo,
    Images,
    LinkInfo,
    Links,
    Maturity,
    MetaSeo,
    PageHeuristics,
    RevenueModel,
    Scale,
    SocialLink,
    Snapshot,
    TargetMarket,
    TechDetection,
    TechStack,
    ContentStructure,
)
from site_audit.modules import validator
from site_audit.modules.scoring import score_all
from site_audit.utils.http import walk_redirects
from site_audit.utils.markup import scan_markup


def _config(**overrides):
    base = dict(
        target="example.com",
        run_id="r1",
        timestamp=datetime.utcnow(),
    )
    base.update(overrides)
    return RunConfig(**base)


class _FakeHttp:
    """Answers by url; a tuple value is (status, location)."""

    def __init__(self, routes=None, default=200):
        self.routes = routes or {}
        self.default = default
        self.calls = []

    async def request(self, method, url, headers=None, timeout=None, stream_body=True):
        self.calls.append((method, url))
        value = self.routes.get(url, self.default)
        if isinstance(value, Exception):
            raise value
        status, location = value if isinstance(value, tuple) else (value, None)
        response_headers = {"location": location} if location else {}
        return httpx.Response(status, headers=response_headers, request=httpx.Request(method, url))


MARKUP = (
    "<html><head><title>Acme</title><meta name='description' content='x'>"
    "<link rel='canonical' href='https://example.com/'></head>"
    "<body><h1>Acme</h1><h2>One</h2><p>wp-content</p></body></html>"
)


def _snapshot(**overrides):
    base = dict(
        basic_info=BasicInfo(
            url="https://example.com",
            final_url="https://example.com",
            title="Acme",
            meta_description="x",
            favicon="https://example.com/favicon.ico",
        ),
        content=ContentStats(word_count=400),
    )
    base.update(overrides)
    return Snapshot(**base)


def test_summary_of_no_checks_scores_full():
    summary = validator.build_summary([], 12)
    assert summary.total_checks == 0
    assert summary.verification_score == 100
    assert summary.duration_ms == 12


def test_summary_counts_corrections():
    checks = [
        validator._check("title", True, "ok"),
        validator._correction("ogImage", "og:image unreachable", "removed"),
        validator._check("ssl", False, "insecure connection, no HTTPS"),
    ]
    summary = validator.build_summary(checks, 0)
    assert summary.verified == 1
    assert summary.unverified == 2
    assert summary.filtered == 1
    assert summary.verification_score == 33
    assert summary.verified + summary.unverified == summary.total_checks


def test_redirect_loop_detected():
    http = _FakeHttp(
        {
            "https://a.test/": (301, "https://b.test/"),
            "https://b.test/": (302, "https://a.test/"),
        }
    )
    chain = asyncio.run(walk_redirects(http, "https://a.test/", max_hops=10))
    assert chain.status == RedirectStatus.redirect_loop
    assert chain.hops == ["https://a.test/", "https://b.test/", "https://a.test/"]
    assert len(http.calls) == 2


def test_redirect_chain_too_long():
    routes = {f"https://a.test/{i}": (301, f"https://a.test/{i + 1}") for i in range(20)}
    http = _FakeHttp(routes)
    chain = asyncio.run(walk_redirects(http, "https://a.test/0", max_hops=5))
    assert chain.status == RedirectStatus.too_many_hops
    assert len(http.calls) == 5


def test_redirect_check_reasons():
    config = _config()
    snapshot = _snapshot()

    loop = _FakeHttp({"https://example.com": (301, "https://www.example.com"), "https://www.example.com": (301, "https://example.com")})
    check = asyncio.run(validator.redirect_check(snapshot, loop, config))
    assert not check.verified
    assert check.reason.startswith("redirect loop detected")

    broken = _FakeHttp({"https://example.com": 503})
    check = asyncio.run(validator.redirect_check(snapshot, broken, config))
    assert check.reason == "HTTP 503, page access problem"

    down = _FakeHttp({"https://example.com": httpx.ConnectError("refused")})
    check = asyncio.run(validator.redirect_check(snapshot, down, config))
    assert check.reason == "HTTP status unavailable"

    ok = _FakeHttp()
    check = asyncio.run(validator.redirect_check(snapshot, ok, config))
    assert check.verified
    assert check.reason == "HTTP 200 OK"


def test_redirect_without_location_is_unverified():
    http = _FakeHttp({"https://example.com": 301})
    check = asyncio.run(validator.redirect_check(_snapshot(), http, _config()))
    assert not check.verified
    assert check.reason == "HTTP 301 redirect without Location header"


def test_markup_checks_clears_unconfirmed_platform():
    snapshot = _snapshot(tech_detection=TechDetection(platform="Shopify", confidence=80, signals=["meta"]))
    cleared, checks = validator.markup_checks(snapshot, PageHeuristics(), scan_markup(MARKUP))
    assert cleared.tech_detection.platform is None
    tech = next(c for c in checks if c.field == "techDetection")
    assert validator.is_correction(tech)

    kept, checks = validator.markup_checks(
        _snapshot(tech_detection=TechDetection(platform="WordPress")), PageHeuristics(), scan_markup(MARKUP)
    )
    assert kept.tech_detection.platform == "WordPress"
    assert next(c for c in checks if c.field == "techDetection").verified


def test_markup_checks_flags_noindex_and_thin_content():
    snapshot = _snapshot(meta_seo=MetaSeo(robots="noindex"), content=ContentStats(word_count=20))
    _, checks = validator.markup_checks(snapshot, PageHeuristics(), scan_markup(MARKUP))
    by_field = {c.field: c for c in checks}
    assert not by_field["indexability"].verified
    assert not by_field["contentEmpty"].verified
    assert "canonicalUrl" not in by_field
    assert by_field["title"].verified


def test_validate_applies_corrections_and_leaves_input_untouched():
    snapshot = _snapshot(
        meta_seo=MetaSeo(og_tags={"og:image": "https://cdn.example.com/og.png", "og:title": "Acme"}),
        links=Links(
            external=[LinkInfo(href="https://ok.test/a", is_external=True), LinkInfo(href="https://dead.test/", is_external=True)],
            total_external=2,
        ),
        images=Images(total=1, images=[ImageInfo(src="https://example.com/a.png", alt="a")]),
    )
    heuristics = PageHeuristics(
        social_links=[
            SocialLink(platform="instagram", url="https://instagram.com/acme"),
            SocialLink(platform="facebook", url="https://facebook.com/gone"),
        ]
    )
    audit = AuditInput(snapshot=snapshot, heuristics=heuristics, raw_markup=MARKUP)
    http = _FakeHttp(
        {
            "https://example.com/favicon.ico": 404,
            "https://facebook.com/gone": 404,
            "https://dead.test/": httpx.ConnectError("refused"),
            "https://cdn.example.com/og.png": 404,
        }
    )
    scores = score_all(audit)
    outcome = asyncio.run(validator.validate(audit, scores, http, _config()))

    assert outcome.snapshot.basic_info.favicon == "https://www.google.com/s2/favicons?domain=example.com&sz=32"
    assert [s.platform for s in outcome.heuristics.social_links] == ["instagram"]
    assert "og:image" not in outcome.snapshot.meta_seo.og_tags
    assert outcome.snapshot.links.broken == ["https://dead.test/"]
    assert outcome.snapshot.links.total_broken == 1

    # the caller's records are never changed
    assert audit.snapshot.basic_info.favicon == "https://example.com/favicon.ico"
    assert len(audit.heuristics.social_links) == 2
    assert audit.snapshot.links.broken == []

    summary = outcome.summary
    markers = [c for c in summary.checks if c.reason.endswith(("(removed)", "(corrected)", "(replaced)"))]
    assert summary.filtered == len(markers) == 3
    assert summary.verified + summary.unverified == summary.total_checks
    fields = {c.field for c in summary.checks}
    assert {"domainAccess", "httpStatus", "externalLinks.summary", "images", "score.overall"} <= fields


def test_classification_corrections():
    classification = Classification(
        identity=Identity(site_type="blog", site_type_confidence=80),
        target_market=TargetMarket(audience="B2B"),
        maturity=Maturity(level="veteran"),
        scale=Scale(level="enterprise"),
        revenue_model=RevenueModel(primary="e-commerce"),
        tech_stack=TechStack(platform="Shopify", hosting="Cloudflare"),
        content_structure=ContentStructure(has_ecommerce=True),
    )
    snapshot = _snapshot(tech_detection=TechDetection(platform="WordPress"))
    corrected, checks = validator.classification_checks(
        classification,
        snapshot,
        scan_markup("<html><body>hello world</body></html>"),
        DnsRecords(nameservers=["ns1.example.net"]),
        DomainInfo(domain_age_days=200),
    )
    assert corrected.maturity.level == "mature"
    assert corrected.scale.level == "large"
    assert corrected.revenue_model.primary == "unknown"
    assert corrected.tech_stack.hosting is None
    assert corrected.tech_stack.platform == "WordPress"
    assert corrected.target_market.audience == "unknown"
    assert corrected.content_structure.has_ecommerce is False
    assert sum(1 for c in checks if validator.is_correction(c)) == 7
    assert classification.maturity.level == "veteran"


def test_classification_newborn_on_old_domain_is_raised():
    corrected, checks = validator.classification_checks(
        Classification(maturity=Maturity(level="newborn")),
        _snapshot(),
        scan_markup(""),
        DnsRecords(),
        DomainInfo(domain_age_days=365 * 8),
    )
    assert corrected.maturity.level == "young"
    assert any(c.field == "classification.maturity" and validator.is_correction(c) for c in checks)


def test_classification_evidence_confirms_claims():
    classification = Classification(
        target_market=TargetMarket(audience="B2C"),
        revenue_model=RevenueModel(primary="saas"),
    )
    markup = scan_markup("<html><body><a href='/pricing'>Pricing</a> free shipping</body></html>")
    corrected, checks = validator.classification_checks(classification, _snapshot(), markup, DnsRecords(), DomainInfo())
    assert corrected.revenue_model.primary == "saas"
    assert corrected.target_market.audience == "B2C"
    assert not any(validator.is_correction(c) for c in checks)


def test_score_checks_clamps_and_recomputes_overall():
    categories = {
        "performance": CategoryScore(score=120, label="Performance", color=ColorBand.green),
        "seo": CategoryScore(score=60, label="SEO", color=ColorBand.yellow),
    }
    scores = ScoringResult(overall=10, overall_color=ColorBand.red, categories=categories)
    corrected, checks = validator.score_checks(scores, _snapshot(), DEFAULT_WEIGHTS)
    assert corrected.categories["performance"].score == 100
    # (100 * 0.18 + 60 * 0.18) / 0.36
    assert corrected.overall == 80
    assert corrected.overall_color == ColorBand.lime
    assert sum(1 for c in checks if validator.is_correction(c)) == 2


def test_score_checks_accepts_overall_within_tolerance():
    categories = {"seo": CategoryScore(score=60, label="SEO", color=ColorBand.yellow)}
    scores = ScoringResult(overall=61, overall_color=ColorBand.yellow, categories=categories)
    corrected, checks = validator.score_checks(scores, _snapshot(), DEFAULT_WEIGHTS, tolerance=2)
    assert corrected.overall == 61
    assert not any(validator.is_correction(c) for c in checks)
