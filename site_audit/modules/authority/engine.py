"""One scoring protocol shared by every authority report.

A ``RuleSet`` is plain data: an ordered list of sub-scorers, insight rules
and per-verdict action plans. ``score_rule_set`` runs the sub-scorers, sums
them, and derives verdict, color, insights and action plan the same way for
every rule set.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional

from ...models.results import AuthorityKind, AuthorityReport, AuthoritySubScore, ColorBand, Verdict
from ...models.snapshot import AuditInput, Classification, OnlinePresence, PageHeuristics, Snapshot

UNRELIABLE_DETAIL = "data unreliable due to bot protection"


@dataclass
class AuthorityContext:
    audit: AuditInput
    reliable: bool = True

    @property
    def snapshot(self) -> Snapshot:
        return self.audit.snapshot

    @property
    def heuristics(self) -> PageHeuristics:
        return self.audit.heuristics

    @property
    def presence(self) -> Optional[OnlinePresence]:
        return self.audit.online_presence

    @property
    def classification(self) -> Optional[Classification]:
        return self.audit.classification

    @property
    def markup(self) -> str:
        return self.audit.raw_markup.lower()


@dataclass
class Tally:
    score: int = 0
    details: list[str] = field(default_factory=list)
    no_data: bool = False

    def add(self, points: int, detail: str) -> None:
        self.score += points
        self.details.append(detail)

    def note(self, detail: str) -> None:
        self.details.append(detail)


@dataclass(frozen=True)
class SubScorer:
    key: str
    label: str
    max: int
    fn: Callable[[AuthorityContext, Tally], None]
    always_no_data: bool = False

    def run(self, ctx: AuthorityContext) -> AuthoritySubScore:
        tally = Tally()
        self.fn(ctx, tally)
        return AuthoritySubScore(
            score=min(tally.score, self.max),
            max=self.max,
            label=self.label,
            details=tally.details,
            no_data=tally.no_data or self.always_no_data,
        )


@dataclass(frozen=True)
class InsightRule:
    key: str
    below: int
    text: str


@dataclass(frozen=True)
class RuleSet:
    kind: AuthorityKind
    label: str
    sub_scorers: list[SubScorer]
    insights: list[InsightRule]
    strong_insight: str
    fallback_insight: str
    action_plans: dict[Verdict, list[str]]
    unreliable: tuple[str, ...] = ()
    approve_at: int = 70
    strengthen_at: int = 50


def verdict_for(overall: int, approve_at: int = 70, strengthen_at: int = 50) -> Verdict:
    if overall >= approve_at:
        return Verdict.approve
    if overall >= strengthen_at:
        return Verdict.strengthen
    return Verdict.rebuild


def authority_color(overall: int) -> ColorBand:
    if overall >= 80:
        return ColorBand.green
    if overall >= 70:
        return ColorBand.lime
    if overall >= 50:
        return ColorBand.yellow
    if overall >= 30:
        return ColorBand.orange
    return ColorBand.red


def _mark_unreliable(sub: AuthoritySubScore) -> AuthoritySubScore:
    details = sub.details if UNRELIABLE_DETAIL in sub.details else sub.details + [UNRELIABLE_DETAIL]
    return sub.model_copy(update={"no_data": True, "details": details})


def select_insights(rule_set: RuleSet, categories: dict[str, AuthoritySubScore], overall: int) -> list[str]:
    insights = [rule.text for rule in rule_set.insights if categories[rule.key].score < rule.below]
    if overall >= rule_set.approve_at:
        insights.append(rule_set.strong_insight)
    if not insights:
        insights.append(rule_set.fallback_insight)
    return insights


def score_rule_set(rule_set: RuleSet, ctx: AuthorityContext) -> AuthorityReport:
    categories: dict[str, AuthoritySubScore] = {}
    for scorer in rule_set.sub_scorers:
        sub = scorer.run(ctx)
        if not ctx.reliable and scorer.key in rule_set.unreliable:
            sub = _mark_unreliable(sub)
        categories[scorer.key] = sub

    overall = sum(sub.score for sub in categories.values())
    verdict = verdict_for(overall, rule_set.approve_at, rule_set.strengthen_at)
    return AuthorityReport(
        kind=rule_set.kind,
        label=rule_set.label,
        overall=overall,
        color=authority_color(overall),
        verdict=verdict,
        categories=categories,
        insights=select_insights(rule_set, categories, overall),
        action_plan=list(rule_set.action_plans[verdict]),
    )
