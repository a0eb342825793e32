from __future__ import annotations

import re

from ...models.results import AuthorityKind, Verdict
from .engine import AuthorityContext, InsightRule, RuleSet, SubScorer, Tally
from .seo import single_h1, title_and_description

RICH_SCHEMA_RE = re.compile(r"article|faq|howto|product|breadcrumb", re.I)


def _seo_foundation(ctx: AuthorityContext, t: Tally) -> None:
    s = ctx.snapshot
    title_and_description(ctx, t, 4)
    single_h1(ctx, t, 4)
    if s.meta_seo.canonical:
        t.add(4, "Canonical URL set")
    else:
        t.note("Canonical URL not set")
    robots, sitemap = s.technical.has_robots_txt, s.technical.has_sitemap
    if robots and sitemap:
        t.add(4, "robots.txt and sitemap.xml present")
    elif robots or sitemap:
        t.add(2, f"{'robots.txt' if robots else 'sitemap.xml'} present, the other missing")
    else:
        t.note("robots.txt and sitemap.xml not found")


def _structured_data(ctx: AuthorityContext, t: Tally) -> None:
    s = ctx.snapshot
    if s.technical.has_schema_org:
        t.add(5, f"Schema.org present ({', '.join(s.technical.schema_types)})")
    else:
        t.note("Schema.org not configured")

    rich = [x for x in s.technical.schema_types if RICH_SCHEMA_RE.search(x)]
    if len(rich) >= 2:
        t.add(5, f"Rich schema types: {', '.join(rich)}")
    elif len(rich) == 1:
        t.add(3, f"Schema type: {rich[0]}")
    elif s.technical.has_schema_org:
        t.add(1, "Schema present but no rich type (Article/FAQ/HowTo)")

    sd = ctx.presence.structured_data if ctx.presence else None
    if sd and sd.og_complete:
        t.add(5, "Open Graph tags complete")
    elif s.meta_seo.og_tags:
        t.add(2, f"Open Graph partly present ({len(s.meta_seo.og_tags)} tags)")
    else:
        t.note("No Open Graph tags")

    # twitter card and JSON-LD completeness share a 5 point allowance
    extra = 0
    if sd and sd.twitter_card_complete:
        extra += 3
        t.note("Twitter Card tags complete")
    elif s.meta_seo.twitter_tags:
        extra += 1
        t.note(f"Twitter Card partly present ({len(s.meta_seo.twitter_tags)} tags)")
    else:
        t.note("No Twitter Card tags")
    if sd and sd.schema_complete:
        extra += 2
        t.note("JSON-LD structure complete")
    t.score += min(extra, 5)


def _citability(ctx: AuthorityContext, t: Tally) -> None:
    s = ctx.snapshot
    words = s.content.word_count
    if words >= 1500:
        t.add(5, f"Rich content ({words} words)")
    elif words >= 500:
        t.add(3, f"Medium content ({words} words)")
    else:
        t.add(1, f"Short content ({words} words)")

    paragraphs = s.content.paragraph_count
    if paragraphs >= 5:
        t.add(5, f"Sectioned structure ({paragraphs} paragraphs)")
    elif paragraphs >= 2:
        t.add(2, f"Few paragraphs ({paragraphs})")
    else:
        t.note("Weak paragraph structure")

    h2 = s.headings.total_h2
    if h2 >= 4:
        t.add(5, f"Good sectioning ({h2} H2 headings)")
    elif h2 >= 2:
        t.add(3, f"Some sectioning ({h2} H2)")
    else:
        t.note("Not enough H2 headings")

    external = s.links.total_external
    if external >= 3:
        t.add(5, f"External references ({external} links)")
    elif external >= 1:
        t.add(2, f"Few external references ({external} links)")
    else:
        t.note("No external references")


def _brand_mention(ctx: AuthorityContext, t: Tally) -> None:
    presence = ctx.presence
    if presence is None:
        t.no_data = True
        t.note("Online presence data unavailable")
        return

    mentions = presence.search_index.brand_mentions
    if presence.search_index.no_data:
        t.no_data = True
        t.note("Brand mention data unavailable (API key required)")
    elif mentions >= 10:
        t.add(7, f"Strong brand awareness ({mentions} mentions)")
    elif mentions >= 1:
        t.add(4, f"Some brand mentions ({mentions})")
    else:
        t.note("No brand mentions found")

    verified = presence.social_presence.total_verified
    if verified >= 3:
        t.add(6, f"Strong social presence ({verified} verified profiles)")
    elif verified >= 1:
        t.add(3, f"Little social media ({verified} profiles)")
    else:
        t.note("No verified social profiles")

    snapshots = presence.archive_history.snapshot_count
    if snapshots >= 10:
        t.add(7, f"Strong archive history ({snapshots} snapshots)")
    elif snapshots >= 1:
        t.add(3, f"Archive history present ({snapshots} snapshots)")
    else:
        t.note("No web archive snapshots")


def _llm_visibility(ctx: AuthorityContext, t: Tally) -> None:
    s = ctx.snapshot
    if not s.noindex:
        t.add(5, "No noindex, LLM crawlers can reach the page")
    else:
        t.note("noindex present, LLM crawlers cannot see the page")
    if s.meta_seo.canonical:
        t.add(4, "Canonical URL set, single source is clear")
    else:
        t.note("No canonical, LLMs may be unsure of the source")

    sd = ctx.presence.structured_data if ctx.presence else None
    if sd and sd.schema_complete and sd.og_complete:
        t.add(5, "JSON-LD and Open Graph complete, easy for AI to read")
    elif sd and (sd.schema_complete or sd.og_complete):
        t.add(3, "Structured data partly present")
    elif s.technical.has_schema_org:
        t.add(1, "Schema present but incomplete")
    else:
        t.note("No structured data, LLMs cannot extract content")

    if s.content.word_count >= 1000 and s.headings.total_h2 >= 3:
        t.add(3, "Content rich and structured, high citation potential")
    elif s.content.word_count >= 300:
        t.add(1, "Content present but low citation potential")
    else:
        t.note("Content too short, LLMs will not prefer this source")

    if s.technical.has_sitemap:
        t.add(3, "Sitemap present, LLM crawlers can find every page")
    else:
        t.note("No sitemap, LLM crawlers may miss pages")


RULE_SET = RuleSet(
    kind=AuthorityKind.geo,
    label="AI Search (GEO) Authority",
    sub_scorers=[
        SubScorer("seo_foundation", "SEO Foundation", 20, _seo_foundation),
        SubScorer("structured_data", "Structured Data", 20, _structured_data),
        SubScorer("citability", "Citability", 20, _citability),
        SubScorer("brand_mention", "Brand Mentions", 20, _brand_mention),
        SubScorer("llm_visibility", "LLM Visibility", 20, _llm_visibility, always_no_data=True),
    ],
    insights=[
        InsightRule("seo_foundation", 12, "GEO still rests on SEO. Fix the technical base first."),
        InsightRule("structured_data", 10, "Without schema markup AI search engines cannot recognise you. JSON-LD is a must."),
        InsightRule("citability", 10, "LLMs prefer well-structured, detailed content when citing sources."),
        InsightRule("brand_mention", 10, "AI tools gauge brand awareness from mentions across the web, so digital PR matters."),
        InsightRule("llm_visibility", 10, "AI crawlers respect robots.txt. Stay open to them."),
    ],
    strong_insight="With a solid GEO base, the chance of being cited by AI grows quickly.",
    fallback_insight="As AI search grows, GEO optimization is no longer optional.",
    action_plans={
        Verdict.rebuild: [
            "Weeks 1-2: core SEO fixes (canonical, sitemap, robots) + add JSON-LD",
            "Week 3: make content sectioned and citable (H2 structure, source links)",
            "Week 4: strengthen social profiles and brand mentions + report",
        ],
        Verdict.strengthen: [
            "Week 1: complete missing structured data (add FAQ/HowTo schema)",
            "Weeks 2-3: turn content into an LLM-friendly format (short answers, clear headings)",
            "Week 4: brand mention work + AI visibility test",
        ],
        Verdict.approve: [
            "Weeks 1-2: enrich existing content with structured data",
            "Week 3: test citation potential in AI assistants",
            "Week 4: new GEO-focused content + digital PR strategy",
        ],
    },
    unreliable=("seo_foundation", "citability"),
)
