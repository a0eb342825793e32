from __future__ import annotations

import re

from ...models.results import AuthorityKind, Verdict
from ...utils.markup import scan_markup
from .engine import AuthorityContext, InsightRule, RuleSet, SubScorer, Tally

QUESTION_HEADING_RE = re.compile(r"\?$|nasıl|nedir|neden|ne zaman|kaç|hangi|how|what|why|when|which", re.I)
QUESTION_TITLE_RE = re.compile(r"\?|nasıl|nedir|neden|ne zaman|kaç|how|what|why|when", re.I)


def _question_h2s(ctx: AuthorityContext) -> int:
    return sum(1 for h in ctx.snapshot.headings.h2 if QUESTION_HEADING_RE.search(h.text))


def _answer_blocks(ctx: AuthorityContext, t: Tally) -> None:
    s = ctx.snapshot
    paragraphs = s.content.paragraph_count
    if paragraphs >= 5:
        t.add(5, f"Good paragraph structure ({paragraphs} paragraphs)")
    elif paragraphs >= 3:
        t.add(3, f"Paragraph structure present ({paragraphs} paragraphs)")
    else:
        t.note("Weak paragraph structure, answer blocks cannot form")

    words = s.content.word_count
    if words >= 1000:
        t.add(5, f"Rich content ({words} words)")
    elif words >= 500:
        t.add(3, f"Medium content ({words} words)")
    else:
        t.note(f"Short content ({words} words), not enough for answers")

    h2 = s.headings.total_h2
    if h2 >= 4:
        t.add(5, f"Strong sectioning ({h2} H2 headings)")
    elif h2 >= 2:
        t.add(3, f"Some sectioning ({h2} H2)")
    else:
        t.note("No H2 sectioning, each question needs its own section")

    facts = scan_markup(ctx.audit.raw_markup)
    if facts.list_count >= 3 or facts.has_summary:
        summary = " + summary" if facts.has_summary else ""
        t.add(5, f"List or summary structure present ({facts.list_count} lists{summary})")
    elif facts.list_count >= 1:
        t.add(2, f"Few lists ({facts.list_count})")
    else:
        t.note("No list or summary structure found")


def _faq_howto_schema(ctx: AuthorityContext, t: Tally) -> None:
    technical = ctx.snapshot.technical
    types = [x.lower() for x in technical.schema_types]
    if any("faq" in x for x in types):
        t.add(7, "FAQPage schema present")
    else:
        t.note("FAQPage schema not found")
    if any("howto" in x for x in types):
        t.add(7, "HowTo schema present")
    else:
        t.note("HowTo schema not found")

    has_article = any("article" in x or "blogposting" in x for x in types)
    has_breadcrumb = any("breadcrumb" in x for x in types)
    if has_article and has_breadcrumb:
        t.add(6, "Article + BreadcrumbList schema present")
    elif has_article:
        t.add(4, "Article schema present")
    elif has_breadcrumb:
        t.add(2, "BreadcrumbList schema present")
    elif technical.has_schema_org:
        t.add(1, f"Other schema types: {', '.join(technical.schema_types)}")
    else:
        t.note("No Schema.org configuration")


def _snippet_targeting(ctx: AuthorityContext, t: Tally) -> None:
    s = ctx.snapshot
    desc_len = len(s.basic_info.meta_description or "")
    if 120 <= desc_len <= 160:
        t.add(5, f"Meta description ideal for snippets ({desc_len} chars)")
    elif 50 <= desc_len < 120:
        t.add(3, f"Meta description short ({desc_len} chars)")
    elif desc_len > 160:
        t.add(2, f"Meta description long ({desc_len} chars), will be cut")
    else:
        t.note("Meta description missing or very short")

    questions = _question_h2s(ctx)
    if questions >= 3:
        t.add(5, f"H2 headings phrased as questions ({questions})")
    elif questions >= 1:
        t.add(3, f"Some H2 headings phrased as questions ({questions})")
    else:
        t.note("H2 headings are not phrased as questions")

    h2 = s.headings.total_h2
    ratio = s.content.paragraph_count / h2 if h2 > 0 else 0
    if 2 <= ratio <= 5:
        t.add(5, "Each H2 has a short but sufficient answer")
    elif ratio > 0:
        t.add(2, "Paragraph to H2 ratio not ideal for snippets")
    else:
        t.note("No H2 structure, snippets cannot be targeted")

    ratio_pct = s.content.content_to_code_ratio
    if ratio_pct >= 30:
        t.add(5, f"Good content to code ratio ({ratio_pct:.0f}%)")
    elif ratio_pct >= 15:
        t.add(2, f"Low content to code ratio ({ratio_pct:.0f}%)")
    else:
        t.note("Very low content to code ratio, snippets hard to extract")


def _intent_match(ctx: AuthorityContext, t: Tally) -> None:
    s = ctx.snapshot
    title = s.basic_info.title or ""
    title_q = bool(QUESTION_TITLE_RE.search(title))
    h1_q = bool(QUESTION_TITLE_RE.search(" ".join(h.text for h in s.headings.h1)))
    if title_q and h1_q:
        t.add(7, "Title and H1 phrased as questions, matching user intent")
    elif title_q or h1_q:
        t.add(4, f"{'Title' if title_q else 'H1'} phrased as a question")
    else:
        t.note("Title and H1 are not phrased as questions")

    questions = _question_h2s(ctx)
    if questions >= 3:
        t.add(7, f"H2 headings match user questions ({questions})")
    elif questions >= 1:
        t.add(4, f"Some H2 headings phrased as questions ({questions})")
    else:
        t.note("H2 headings do not reflect user questions")

    total_h1 = s.headings.total_h1
    if total_h1 == 1:
        t.add(4, "Single H1, focused page")
    elif total_h1 > 1:
        t.add(1, f"Several H1 headings ({total_h1}), scattered focus")
    else:
        t.note("No H1, page focus unclear")

    if total_h1 == 1 and title and s.headings.h1:
        lowered = title.lower()
        words = s.headings.h1[0].text.lower().split(" ")
        if sum(1 for w in words if len(w) > 3 and w in lowered) >= 2:
            t.add(2, "Title and H1 consistent")


def _measurement(ctx: AuthorityContext, t: Tally) -> None:
    analytics = ctx.heuristics.analytics
    if analytics.has_google_analytics:
        t.add(5, "Google Analytics present")
    else:
        t.note("Google Analytics not found")
    if analytics.has_gtm:
        t.add(5, "Google Tag Manager present")
    else:
        t.note("GTM not found")

    tags = ctx.presence.webmaster_tags if ctx.presence else None
    if tags and tags.google:
        t.add(5, "Search Console verification present")
    else:
        t.note("Search Console verification not found")
    if tags and tags.bing:
        t.add(2, "Bing Webmaster verification present")
    if tags and tags.yandex:
        t.add(1, "Yandex Webmaster verification present")

    others = (["Meta Pixel"] if analytics.has_meta_pixel else []) + (["Hotjar"] if analytics.has_hotjar else [])
    others += analytics.other_tools
    if others:
        t.add(min(len(others), 2), f"Extra analytics tools: {', '.join(others)}")


RULE_SET = RuleSet(
    kind=AuthorityKind.aeo,
    label="Answer Engine (AEO) Authority",
    sub_scorers=[
        SubScorer("answer_blocks", "Answer Blocks", 20, _answer_blocks),
        SubScorer("faq_howto_schema", "FAQ/HowTo Schema", 20, _faq_howto_schema),
        SubScorer("snippet_targeting", "Snippet Targeting", 20, _snippet_targeting),
        SubScorer("intent_match", "Intent Match", 20, _intent_match, always_no_data=True),
        SubScorer("measurement", "Measurement & Tracking", 20, _measurement),
    ],
    insights=[
        InsightRule("answer_blocks", 10, "Answer engines prefer short, clear, structured answers. Use H2 + list formats."),
        InsightRule("faq_howto_schema", 10, "Without FAQ and HowTo schema a featured snippet is almost out of reach."),
        InsightRule("snippet_targeting", 10, "Position zero needs a good meta description and a question-answer format."),
        InsightRule("intent_match", 10, "Using the user's exact question in headings is the basis of AEO."),
        InsightRule("measurement", 10, "You cannot improve what you do not measure. Analytics + Search Console is the minimum."),
    ],
    strong_insight="AEO base is solid. Move on to People Also Ask and voice search optimization.",
    fallback_insight="AEO is SEO evolved, keep producing answer-focused content.",
    action_plans={
        Verdict.rebuild: [
            "Weeks 1-2: add FAQ/HowTo schema + rephrase H2 headings as questions",
            "Week 3: write 3-5 short answer blocks per page (40-60 words)",
            "Week 4: set up analytics + Search Console + progress report",
        ],
        Verdict.strengthen: [
            "Week 1: complete missing schema types (FAQ + HowTo)",
            "Weeks 2-3: convert the most important pages to answer-block format",
            "Week 4: target People Also Ask + start snippet tracking",
        ],
        Verdict.approve: [
            "Weeks 1-2: update and enrich existing answer blocks",
            "Week 3: voice search optimization (conversational phrasing, short answers)",
            "Week 4: new question-targeted content + AEO performance report",
        ],
    },
    unreliable=("answer_blocks", "snippet_targeting", "intent_match"),
)
