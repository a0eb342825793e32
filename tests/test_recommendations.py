from site_audit.models.results import Priority, PhaseId, Recommendation, Effort
from site_audit.models.snapshot import (
    AuditInput,
    BasicInfo,
    ContentStats,
    DnsRecords,
    Headings,
    Images,
    MetaSeo,
    OnlinePresence,
    SearchIndex,
    SecurityInfo,
    Snapshot,
    TechnicalInfo,
    TlsInfo,
)
from site_audit.modules import recommendations, treatment_plan
from site_audit.modules.scoring import score_all
from site_audit.utils.normalize import recommendation_key


def _audit(**snapshot_overrides):
    snapshot = dict(
        basic_info=BasicInfo(url="https://example.com", final_url="https://example.com", title="Acme"),
        security=SecurityInfo(is_https=True),
    )
    snapshot.update(snapshot_overrides)
    return AuditInput(snapshot=Snapshot(**snapshot), tls=TlsInfo(valid=True, days_until_expiry=200))


def _generate(audit, reliable=True):
    return recommendations.generate(audit, score_all(audit, reliable=reliable), reliable=reliable)


def test_recommendations_sorted_by_priority():
    recs = _generate(_audit(content=ContentStats(word_count=20)))
    ranks = [r.priority.rank for r in recs]
    assert ranks == sorted(ranks)
    assert recs


def test_noindex_and_thin_content_are_critical_and_come_first():
    recs = _generate(
        _audit(
            meta_seo=MetaSeo(robots="noindex"),
            content=ContentStats(word_count=20),
            headings=Headings(total_h1=1),
        )
    )
    titles = [r.title for r in recs]
    noindex = titles.index("Page blocked from indexing (noindex)")
    thin = titles.index("Thin content (20 words)")
    canonical = titles.index("Canonical URL missing")
    assert recs[noindex].priority == Priority.critical
    assert recs[thin].priority == Priority.critical
    assert max(noindex, thin) < canonical


def test_rule_order_preserved_within_priority():
    recs = _generate(_audit(meta_seo=MetaSeo(robots="noindex"), content=ContentStats(word_count=20)))
    critical = [r.title for r in recs if r.priority == Priority.critical]
    assert critical.index("Page blocked from indexing (noindex)") < critical.index("Thin content (20 words)")


def test_unreliable_markup_skips_markup_rules():
    audit = _audit(
        meta_seo=MetaSeo(robots="noindex"),
        content=ContentStats(word_count=20),
        technical=TechnicalInfo(robots_txt_content="User-agent: *\nDisallow: /"),
    )
    audit = audit.model_copy(update={"tls": TlsInfo(valid=False), "dns": DnsRecords(has_spf=False)})
    titles = [r.title for r in _generate(audit, reliable=False)]
    assert "Page blocked from indexing (noindex)" not in titles
    assert "Thin content (20 words)" not in titles
    assert "Canonical URL missing" not in titles
    assert "robots.txt blocks the whole site" in titles
    assert "TLS certificate invalid" in titles
    assert "No SPF record" in titles


def test_online_presence_rules_need_data():
    audit = _audit(content=ContentStats(word_count=500))
    assert not any(r.category == "Online Presence" for r in _generate(audit))

    flagged = audit.model_copy(update={"online_presence": OnlinePresence(search_index=SearchIndex(no_data=True))})
    assert not any(r.category == "Online Presence" for r in _generate(flagged))

    missing = audit.model_copy(update={"online_presence": OnlinePresence()})
    titles = [r.title for r in _generate(missing)]
    assert "Site not indexed by Google" in titles


def test_recommendation_key_ignores_counts():
    a = _generate(_audit(images=Images(total=12, total_missing_alt=12)))
    b = _generate(_audit(images=Images(total=3, total_missing_alt=3)))
    key_a = next(r.key for r in a if r.title.endswith("images missing alt text"))
    key_b = next(r.key for r in b if r.title.endswith("images missing alt text"))
    assert key_a == key_b == "accessibility::images-missing-alt-text"


def test_recommendation_key_folds_diacritics():
    assert recommendation_key("Güvenlik", "HTTPS yok") == recommendation_key("Guvenlik", "HTTPS yok")
    assert recommendation_key("SEO", "Başlık (45 karakter)") == "seo::baslik-karakter"


def test_remediation_is_numbered_steps():
    recs = _generate(_audit(content=ContentStats(word_count=20)))
    thin = next(r for r in recs if r.title.startswith("Thin content"))
    assert thin.remediation.splitlines()[0].startswith("1. ")


def _rec(priority):
    return Recommendation(
        category="SEO", priority=priority, title=f"t-{priority.value}", description="d", remediation="1. x", effort=Effort.easy
    )


def test_treatment_plan_partitions_by_priority():
    recs = [_rec(Priority.critical), _rec(Priority.high), _rec(Priority.medium), _rec(Priority.low), _rec(Priority.low)]
    plan = treatment_plan.build(recs)
    assert plan.total_steps == 5
    assert [p.id for p in plan.phases] == [PhaseId.urgent, PhaseId.foundational, PhaseId.advanced]
    assert [len(p.steps) for p in plan.phases] == [2, 1, 2]
    assert sum(len(p.steps) for p in plan.phases) == plan.total_steps


def test_treatment_plan_omits_empty_phases():
    plan = treatment_plan.build([_rec(Priority.medium)])
    assert [p.id for p in plan.phases] == [PhaseId.foundational]
    assert treatment_plan.build([]).phases == []
