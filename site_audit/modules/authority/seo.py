from __future__ import annotations

from ...models.results import AuthorityKind, Verdict
from .engine import AuthorityContext, InsightRule, RuleSet, SubScorer, Tally


def title_and_description(ctx: AuthorityContext, t: Tally, full: int, partial: int = 2) -> None:
    info = ctx.snapshot.basic_info
    title_len = len(info.title or "")
    if info.title and 30 <= title_len <= 60:
        t.add(full, f"Title length fits ({title_len} chars)")
    elif info.title:
        t.add(partial, f"Title present but {'short' if title_len < 30 else 'long'} ({title_len} chars)")
    else:
        t.note("Title not found")

    desc_len = len(info.meta_description or "")
    if info.meta_description and 120 <= desc_len <= 160:
        t.add(full, f"Meta description fits ({desc_len} chars)")
    elif info.meta_description:
        t.add(partial, f"Meta description present but {'short' if desc_len < 120 else 'long'} ({desc_len} chars)")
    else:
        t.note("Meta description not found")


def single_h1(ctx: AuthorityContext, t: Tally, full: int, partial: int = 2) -> None:
    total_h1 = ctx.snapshot.headings.total_h1
    if total_h1 == 1:
        t.add(full, "Single H1 present")
    elif total_h1 > 1:
        t.add(partial, f"Several H1 headings ({total_h1})")
    else:
        t.note("No H1 heading")


def _intent(ctx: AuthorityContext, t: Tally) -> None:
    title_and_description(ctx, t, 5)
    single_h1(ctx, t, 5)
    total_h2 = ctx.snapshot.headings.total_h2
    if total_h2 >= 2:
        t.add(5, f"H2 structure present ({total_h2})")
    elif total_h2 == 1:
        t.add(2, "Only one H2, weak structure")
    else:
        t.note("No H2 heading")


def _topical(ctx: AuthorityContext, t: Tally) -> None:
    s = ctx.snapshot
    if s.headings.total_h2 >= 5:
        t.add(5, f"Strong H2 structure ({s.headings.total_h2}, pillar signal)")
    elif s.headings.total_h2 >= 2:
        t.add(2, f"H2 structure present but thin ({s.headings.total_h2})")
    else:
        t.note("H2 structure very weak or missing")

    if s.links.total_internal >= 5:
        t.add(5, f"Enough internal links ({s.links.total_internal})")
    elif s.links.total_internal >= 1:
        t.add(2, f"Few internal links ({s.links.total_internal})")
    else:
        t.note("No internal links")

    words = s.content.word_count
    if words >= 2000:
        t.add(5, f"Rich content ({words} words)")
    elif words >= 500:
        t.add(2, f"Content present but short ({words} words)")
    else:
        t.note(f"Content very short ({words} words)")

    if s.technical.has_schema_org:
        t.add(5, f"Schema.org present ({', '.join(s.technical.schema_types)})")
    else:
        t.note("Schema.org not configured")


def _technical(ctx: AuthorityContext, t: Tally) -> None:
    s = ctx.snapshot
    if s.technical.has_robots_txt:
        t.add(3, "robots.txt present")
    else:
        t.note("robots.txt not found")
    if s.technical.has_sitemap:
        t.add(3, "sitemap.xml present")
    else:
        t.note("sitemap.xml not found")
    if s.meta_seo.canonical:
        t.add(4, "Canonical URL set")
    else:
        t.note("Canonical URL not set")
    if not s.noindex:
        t.add(5, "No noindex, page can be indexed")
    else:
        t.note("noindex present, search engines will not see the page")

    speed = ctx.audit.speed
    lcp_ok = speed.web_vitals.lcp is not None and speed.web_vitals.lcp <= 2500
    perf_ok = speed.scores.performance is not None and speed.scores.performance >= 75
    if lcp_ok or perf_ok:
        t.add(5, "Core Web Vitals in good shape")
    elif speed.scores.performance is not None:
        t.note(f"Low performance ({speed.scores.performance:g}/100)")
    else:
        t.note("Performance data unavailable")


def _trust(ctx: AuthorityContext, t: Tally) -> None:
    s = ctx.snapshot
    trust = ctx.heuristics.trust_signals
    if s.links.total_external >= 1:
        t.add(5, f"External references present ({s.links.total_external})")
    else:
        t.note("No external references")
    if trust.has_privacy_policy:
        t.add(5, "Privacy policy present")
    else:
        t.note("Privacy policy not found")
    if trust.has_contact_info:
        t.add(5, "Contact information present")
    else:
        t.note("Contact information not found")
    if ctx.audit.tls.valid:
        t.add(5, "TLS certificate valid")
    else:
        t.note("TLS certificate invalid or missing")


def _backlink_mention(ctx: AuthorityContext, t: Tally) -> None:
    presence = ctx.presence
    t.no_data = True
    if presence is None:
        t.note("Online presence data unavailable")
        return

    mentions = presence.search_index.brand_mentions
    if presence.search_index.no_data:
        t.note("Brand mention data unavailable (API key required)")
    elif mentions >= 10:
        t.add(10, f"Strong brand awareness ({mentions} mentions)")
    elif mentions >= 1:
        t.add(5, f"Some brand mentions ({mentions})")
    else:
        t.note("No brand mentions found")

    verified = presence.social_presence.total_verified
    if verified >= 3:
        t.add(5, f"Social media verified ({verified} profiles)")
    elif verified >= 1:
        t.add(2, f"Little social media ({verified} profiles verified)")
    else:
        t.note("No verified social profiles")

    snapshots = presence.archive_history.snapshot_count
    if snapshots >= 10:
        t.add(5, f"Strong archive history ({snapshots} snapshots)")
    elif snapshots >= 1:
        t.add(2, f"Archive history present ({snapshots} snapshots)")
    else:
        t.note("No web archive snapshots")
    t.note("No backlink profile data (backlink index required)")


RULE_SET = RuleSet(
    kind=AuthorityKind.seo,
    label="SEO Authority",
    sub_scorers=[
        SubScorer("intent", "Search Intent Match", 20, _intent, always_no_data=True),
        SubScorer("topical_authority", "Topical Authority", 20, _topical, always_no_data=True),
        SubScorer("technical", "Technical Foundation", 20, _technical),
        SubScorer("trust", "Trust Signals", 20, _trust),
        SubScorer("backlink_mention", "Backlinks & Mentions", 20, _backlink_mention),
    ],
    insights=[
        InsightRule("technical", 15, "Building strategy without a technical audit is gambling."),
        InsightRule("topical_authority", 10, "Without one pillar and five supporting pieces there is no topical authority."),
        InsightRule("intent", 10, "SEO theory does not work without analysing the top five results."),
        InsightRule("trust", 10, "External references and author details are trust signals."),
        InsightRule("backlink_mention", 10, "Quality beats quantity. Competitive niches still need backlinks."),
    ],
    strong_insight="With a solid SEO base, content refreshes speed up growth.",
    fallback_insight="Regular content updates every 30-60 days make a difference in rankings.",
    action_plans={
        Verdict.rebuild: [
            "Weeks 1-2: technical audit + critical fixes (robots, sitemap, canonical)",
            "Week 3: write the first pillar page + set up internal linking",
            "Week 4: add trust signals (author details, external sources) + report",
        ],
        Verdict.strengthen: [
            "Week 1: complete the missing technical items",
            "Weeks 2-3: 2 new pieces + refresh 1 old piece",
            "Week 4: 1 backlink effort + progress report",
        ],
        Verdict.approve: [
            "Weeks 1-2: refresh the best pages (title, sources, date)",
            "Week 3: start a new pillar page",
            "Week 4: backlinks + digital PR",
        ],
    },
    unreliable=("intent", "topical_authority"),
)
