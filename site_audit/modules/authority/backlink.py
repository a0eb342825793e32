from __future__ import annotations

import re
from urllib.parse import urljoin, urlparse

from ...models.results import AuthorityKind, Verdict
from ...utils.normalize import host_of
from .engine import AuthorityContext, InsightRule, RuleSet, SubScorer, Tally

GENERIC_ANCHOR_RE = re.compile(r"^(click here|buraya|tıklayın|here|link|read more|devamı)$", re.I)


def _relevance(ctx: AuthorityContext, t: Tally) -> None:
    s = ctx.snapshot
    external = s.links.total_external
    if external >= 5:
        t.add(10, f"Links out to related sources ({external})")
    elif external >= 2:
        t.add(5, f"Some outbound links ({external})")
    elif external >= 1:
        t.add(2, "Single outbound link")
    else:
        t.note("No outbound links")

    types = s.technical.schema_types
    if s.technical.has_schema_org and len(types) >= 2:
        t.add(8, f"Niche is clear from schema ({', '.join(types)})")
    elif s.technical.has_schema_org:
        t.add(4, "Schema present, niche signal weak")
    else:
        t.note("No schema, niche unclear")

    internal = s.links.total_internal
    if internal >= 10:
        t.add(7, f"Strong internal linking ({internal})")
    elif internal >= 5:
        t.add(4, f"Internal linking present ({internal})")
    elif internal >= 1:
        t.add(2, f"Few internal links ({internal})")
    else:
        t.note("No internal links")

    h2 = s.headings.total_h2
    if h2 >= 5:
        t.add(5, f"Clear topic sections ({h2} H2)")
    elif h2 >= 2:
        t.add(2, f"Some topic sections ({h2} H2)")
    t.note("No backlink profile data (backlink API required), scored from indirect signals")


def _traffic_signal(ctx: AuthorityContext, t: Tally) -> None:
    presence = ctx.presence
    if presence is None or presence.search_index.no_data:
        t.no_data = True
        t.note("Search index data unavailable")
    else:
        index = presence.search_index
        if index.is_indexed:
            t.add(7, "Site indexed by Google")
            if index.indexed_page_count >= 50:
                t.add(3, f"Many pages indexed ({index.indexed_page_count})")
        else:
            t.note("Site not indexed")
        if index.has_rich_snippet:
            t.add(5, "Rich snippet shown in results")

    technical = ctx.snapshot.technical
    pages = technical.sitemap_page_count
    if pages is not None and pages >= 50:
        t.add(5, f"Large sitemap ({pages} pages)")
    elif pages is not None and pages >= 10:
        t.add(3, f"Medium sitemap ({pages} pages)")
    elif pages is not None and pages >= 1:
        t.add(1, f"Small sitemap ({pages} pages)")
    elif technical.has_sitemap:
        t.add(2, "Sitemap present, page count unknown")
    else:
        t.note("No sitemap")


def _link_diversity(ctx: AuthorityContext, t: Tally) -> None:
    links = ctx.snapshot.links
    hosts = {host_of(link.href) for link in links.external} - {""}
    if len(hosts) >= 5:
        t.add(8, f"Diverse outbound domains ({len(hosts)})")
    elif len(hosts) >= 2:
        t.add(4, f"Some outbound domains ({len(hosts)})")
    elif len(hosts) == 1:
        t.add(1, "Single outbound domain")
    else:
        t.note("No outbound domains")

    paths = {urlparse(urljoin("https://example.com/", link.href)).path for link in links.internal}
    if len(paths) >= 10:
        t.add(7, f"Many distinct internal targets ({len(paths)})")
    elif len(paths) >= 5:
        t.add(4, f"Some distinct internal targets ({len(paths)})")
    elif len(paths) >= 1:
        t.add(2, f"Few distinct internal targets ({len(paths)})")
    else:
        t.note("No internal targets")

    if links.total_broken == 0:
        t.add(5, "No broken links")
    elif links.total_broken <= 2:
        t.add(2, f"Few broken links ({links.total_broken})")
    else:
        t.note(f"Many broken links ({links.total_broken})")


def _anchor_naturalness(ctx: AuthorityContext, t: Tally) -> None:
    anchors = [link.text.strip() for link in ctx.snapshot.links.external if link.text.strip()]
    if not anchors:
        t.note("No outbound anchor text to inspect")
        t.note("Anchor profile of inbound links unavailable")
        return

    ratio = len({a.lower() for a in anchors}) / len(anchors)
    if ratio >= 0.7:
        t.add(5, f"Varied anchor text ({ratio:.0%} unique)")
    elif ratio >= 0.4:
        t.add(3, f"Somewhat varied anchor text ({ratio:.0%} unique)")
    else:
        t.add(1, f"Repetitive anchor text ({ratio:.0%} unique)")

    generic = [a for a in anchors if GENERIC_ANCHOR_RE.match(a)]
    if not generic:
        t.add(5, "No generic anchors")
    else:
        t.add(2, f"Generic anchors found ({len(generic)})")


def _mention_signal(ctx: AuthorityContext, t: Tally) -> None:
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
        t.add(8, f"Strong brand mentions ({mentions})")
    elif mentions >= 3:
        t.add(5, f"Some brand mentions ({mentions})")
    elif mentions >= 1:
        t.add(2, f"Few brand mentions ({mentions})")
    else:
        t.note("No brand mentions found")

    verified = presence.social_presence.total_verified
    if verified >= 4:
        t.add(6, f"Broad social presence ({verified} verified profiles)")
    elif verified >= 2:
        t.add(3, f"Some social presence ({verified} verified profiles)")
    elif verified >= 1:
        t.add(1, "Single verified social profile")
    else:
        t.note("No verified social profiles")

    archive = presence.archive_history
    age = archive.website_age_years or 0
    if archive.snapshot_count >= 20 and age >= 3:
        t.add(6, f"Long archive history ({archive.snapshot_count} snapshots, {age:g} years)")
    elif archive.snapshot_count >= 5:
        t.add(3, f"Archive history present ({archive.snapshot_count} snapshots)")
    elif archive.snapshot_count >= 1:
        t.add(1, f"Thin archive history ({archive.snapshot_count} snapshots)")
    else:
        t.note("No web archive snapshots")


RULE_SET = RuleSet(
    kind=AuthorityKind.backlink,
    label="Backlink Authority",
    sub_scorers=[
        SubScorer("relevance", "Relevance", 30, _relevance, always_no_data=True),
        SubScorer("traffic_signal", "Traffic Signal", 20, _traffic_signal),
        SubScorer("link_diversity", "Link Diversity", 20, _link_diversity, always_no_data=True),
        SubScorer("anchor_naturalness", "Anchor Naturalness", 10, _anchor_naturalness, always_no_data=True),
        SubScorer("mention_signal", "Mention Signal", 20, _mention_signal),
    ],
    insights=[
        InsightRule("relevance", 15, "Chasing DA/DR is pointless. Relevance beats DA/DR, get links from sites in the same niche."),
        InsightRule("traffic_signal", 10, "Links from pages that get traffic matter; links from dead sites are worthless."),
        InsightRule("link_diversity", 10, "Quality over quantity. Competitive niches need backlinks, but diversity matters too."),
        InsightRule("anchor_naturalness", 5, "Anchor text naturalness is one of the backlink signals Google weighs most."),
        InsightRule("mention_signal", 10, "Digital PR is the strongest link source. Build linkable assets (research, data, graphics)."),
    ],
    strong_insight="Backlink foundation solid. Move on to competitor backlink gap analysis.",
    fallback_insight="Most quality links come from outreach. Guest posts and digital PR work best.",
    action_plans={
        Verdict.rebuild: [
            "Week 1: competitor backlink analysis + prepare a linkable asset (research, data, infographic)",
            "Week 2: send 10 outreach emails + start 2-3 guest post talks",
            "Week 3: 2 digital PR pitches + 1 resource page link effort",
            "Week 4: backlink report + strengthen the best link",
        ],
        Verdict.strengthen: [
            "Week 1: competitor backlink gap analysis + list missing niche sites",
            "Weeks 2-3: 5 targeted outreach emails + publish 1 linkable asset",
            "Week 4: link profile report + anchor text diversity check",
        ],
        Verdict.approve: [
            "Weeks 1-2: protect the strongest links + broken link check",
            "Week 3: start a new data-driven digital PR strategy",
            "Week 4: clean up link exchanges + progress report",
        ],
    },
    unreliable=("relevance", "link_diversity", "anchor_naturalness"),
)
