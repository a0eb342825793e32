from __future__ import annotations

import re

from ...models.results import AuthorityKind, Verdict
from .engine import AuthorityContext, InsightRule, RuleSet, SubScorer, Tally

AUTHOR_SCHEMA_RE = re.compile(r"person|author", re.I)
ASSET_PATTERNS = [
    (("pdf", "download", "indir"), "Downloadable resources"),
    (("template", "şablon", "sablon", "checklist"), "Templates or checklists"),
    (("calculator", "hesaplayıcı", "hesapla", "tool"), "Interactive tools"),
]


def _has_blog(ctx: AuthorityContext) -> bool:
    return bool(ctx.classification and ctx.classification.content_structure.has_blog)


def _content_depth(ctx: AuthorityContext, t: Tally) -> None:
    s = ctx.snapshot
    pages = s.technical.sitemap_page_count or 0
    if pages >= 20:
        t.add(12, f"Large content library ({pages} pages in sitemap)")
    elif pages >= 12:
        t.add(8, f"Growing content library ({pages} pages)")
    elif pages >= 8:
        t.add(5, f"Minimum content library ({pages} pages)")
    elif pages >= 1:
        t.add(2, f"Small content library ({pages} pages)")
    else:
        t.note("Sitemap page count unknown")

    words = s.content.word_count
    if words >= 2000:
        t.add(8, f"Long-form content ({words} words)")
    elif words >= 1200:
        t.add(5, f"Solid content length ({words} words)")
    elif words >= 600:
        t.add(3, f"Medium content length ({words} words)")
    else:
        t.add(1, f"Short content ({words} words)")

    if _has_blog(ctx):
        t.add(5, "Blog section detected")
    else:
        t.note("No blog section detected")

    h2 = s.headings.total_h2
    if h2 >= 5:
        t.add(5, f"Deep section structure ({h2} H2)")
    elif h2 >= 3:
        t.add(3, f"Section structure present ({h2} H2)")


def _pillar_cluster(ctx: AuthorityContext, t: Tally) -> None:
    s = ctx.snapshot
    internal = s.links.total_internal
    if internal >= 10:
        t.add(8, f"Strong internal linking ({internal})")
    elif internal >= 5:
        t.add(5, f"Internal linking present ({internal})")
    elif internal >= 1:
        t.add(2, f"Few internal links ({internal})")
    else:
        t.note("No internal links, no cluster structure")

    h2 = s.headings.total_h2
    if h2 >= 7:
        t.add(7, f"Pillar-style H2 structure ({h2})")
    elif h2 >= 4:
        t.add(4, f"H2 structure present ({h2})")
    elif h2 >= 2:
        t.add(2, f"Thin H2 structure ({h2})")
    else:
        t.note("H2 structure missing")

    h3 = s.headings.total_h3
    if h3 >= 3:
        t.add(5, f"Subtopics under H3 ({h3})")
    elif h3 >= 1:
        t.add(2, f"Few H3 subtopics ({h3})")


def _originality(ctx: AuthorityContext, t: Tally) -> None:
    s = ctx.snapshot
    paragraphs = s.content.paragraph_count
    if paragraphs >= 10:
        t.add(5, f"Rich paragraph structure ({paragraphs})")
    elif paragraphs >= 5:
        t.add(3, f"Paragraph structure present ({paragraphs})")
    else:
        t.add(1, f"Few paragraphs ({paragraphs})")

    images = s.images.total
    if images >= 3:
        t.add(5, f"Visual content ({images} images)")
    elif images >= 1:
        t.add(2, f"Few images ({images})")
    else:
        t.note("No images")

    markup = ctx.markup
    has_author = (
        "author" in markup
        or "yazar" in markup
        or any(AUTHOR_SCHEMA_RE.search(x) for x in s.technical.schema_types)
    )
    if has_author:
        t.add(5, "Author signal present")
    else:
        t.note("No author signal")


def _asset_production(ctx: AuthorityContext, t: Tally) -> None:
    markup = ctx.markup
    for words, label in ASSET_PATTERNS:
        if any(w in markup for w in words):
            t.add(5, f"{label} found")
        else:
            t.note(f"{label} not found")


def _trust_signals(ctx: AuthorityContext, t: Tally) -> None:
    s = ctx.snapshot
    external = s.links.total_external
    if external >= 2:
        t.add(4, f"Cites external sources ({external})")
    elif external >= 1:
        t.add(2, "Cites one external source")
    else:
        t.note("No external sources cited")

    if s.images.total > 0:
        ratio = (s.images.total - s.images.total_missing_alt) / s.images.total
        if ratio >= 0.8:
            t.add(3, f"Images described with alt text ({ratio:.0%})")
        elif ratio >= 0.5:
            t.add(1, f"Some images lack alt text ({ratio:.0%} described)")
        else:
            t.note(f"Most images lack alt text ({ratio:.0%} described)")

    trust = ctx.heuristics.trust_signals
    if trust.has_contact_info or trust.has_email:
        t.add(3, "Contact details present")
    else:
        t.note("No contact details")


def _distribution_signal(ctx: AuthorityContext, t: Tally) -> None:
    socials = len(ctx.heuristics.social_links)
    verified = ctx.presence.social_presence.total_verified if ctx.presence else 0
    if verified >= 3:
        t.add(4, f"Active social channels ({verified} verified)")
    elif verified >= 1 or socials >= 1:
        t.add(2, f"Some social channels ({max(verified, socials)})")
    else:
        t.note("No social channels")

    if ctx.classification and ctx.classification.content_structure.has_newsletter:
        t.add(3, "Newsletter signup present")
    elif ctx.heuristics.cta.has_contact_form:
        t.add(1, "Contact form present, no newsletter")
    else:
        t.note("No newsletter or contact form")

    if socials >= 2 and verified >= 2:
        t.add(3, "Multiple verified distribution channels")


RULE_SET = RuleSet(
    kind=AuthorityKind.blog,
    label="Blog Authority",
    sub_scorers=[
        SubScorer("content_depth", "Content Depth", 30, _content_depth, always_no_data=True),
        SubScorer("pillar_cluster", "Pillar & Cluster", 20, _pillar_cluster, always_no_data=True),
        SubScorer("originality", "Originality", 15, _originality, always_no_data=True),
        SubScorer("asset_production", "Asset Production", 15, _asset_production, always_no_data=True),
        SubScorer("trust_signals", "Trust Signals", 10, _trust_signals),
        SubScorer("distribution_signal", "Distribution Signal", 10, _distribution_signal, always_no_data=True),
    ],
    insights=[
        InsightRule("content_depth", 15, "No blog authority without 8+ posts. Aim for one main and one short piece a week."),
        InsightRule("pillar_cluster", 10, "Without one pillar and five supporting pieces there is no topical authority."),
        InsightRule("originality", 8, "Posts that read as machine-written drop in rankings. Add a human voice and experience."),
        InsightRule("asset_production", 8, "Posts without a PDF checklist or template are not saved or shared."),
        InsightRule("trust_signals", 5, "External references and author details are trust signals; E-E-A-T is critical."),
        InsightRule("distribution_signal", 5, "Publishing is not enough. Help in communities, pin visuals, announce by e-mail."),
    ],
    strong_insight="Blog base is solid. Keep rankings with content refreshes every 30-60 days.",
    fallback_insight="Regular production + distribution is the only formula for blog growth.",
    action_plans={
        Verdict.rebuild: [
            "Week 1: sharpen the niche + pick 1 pillar topic + list 10 supporting topics + write 2 posts",
            "Week 2: 2 more posts + optimize 1 old post + prepare share visuals",
            "Week 3: 2 posts + 1 short video summary + e-mail announcement + 1 case study",
            "Week 4: 2 posts + update internal links + 30-day report + strengthen the best post",
        ],
        Verdict.strengthen: [
            "Week 1: update the pillar post + complete missing H2/H3 structure",
            "Weeks 2-3: 3 new supporting posts, each with an asset (PDF/checklist)",
            "Week 4: activate distribution channels + content refresh report",
        ],
        Verdict.approve: [
            "Weeks 1-2: refresh the best posts (title, visuals, sources)",
            "Week 3: start a new pillar topic + publish a case study",
            "Week 4: widen distribution (video + e-mail + social media)",
        ],
    },
    unreliable=("content_depth", "originality", "asset_production"),
)
