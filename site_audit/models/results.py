from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..utils.normalize import recommendation_key
from .snapshot import Classification, OnlinePresence, PageHeuristics, Snapshot


class ColorBand(str, Enum):
    green = "green"
    lime = "lime"
    yellow = "yellow"
    orange = "orange"
    red = "red"


class Axis(str, Enum):
    performance = "performance"
    seo = "seo"
    security = "security"
    accessibility = "accessibility"
    best_practices = "best_practices"
    domain_trust = "domain_trust"
    content = "content"
    technology = "technology"
    online_presence = "online_presence"


class Priority(str, Enum):
    critical = "critical"
    high = "high"
    medium = "medium"
    low = "low"

    @property
    def rank(self) -> int:
        return PRIORITY_RANK[self]


PRIORITY_RANK = {Priority.critical: 0, Priority.high: 1, Priority.medium: 2, Priority.low: 3}


class Effort(str, Enum):
    easy = "easy"
    medium = "medium"
    hard = "hard"


class PhaseId(str, Enum):
    urgent = "urgent"
    foundational = "foundational"
    advanced = "advanced"


class Verdict(str, Enum):
    approve = "approve"
    strengthen = "strengthen"
    rebuild = "rebuild"


class AuthorityKind(str, Enum):
    seo = "seo"
    geo = "geo"
    aeo = "aeo"
    backlink = "backlink"
    blog = "blog"


class RedirectStatus(str, Enum):
    ok = "ok"
    redirect_loop = "redirect-loop"
    too_many_hops = "too-many-hops"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class CategoryScore(_Frozen):
    score: int
    label: str
    color: ColorBand
    details: list[str] = Field(default_factory=list)
    no_data: bool = False


class ScoringResult(_Frozen):
    overall: int
    overall_color: ColorBand
    categories: dict[str, CategoryScore]

    def category(self, axis: Axis) -> CategoryScore:
        return self.categories[axis.value]


class ValidationCheckResult(_Frozen):
    field: str
    verified: bool
    reason: str


class ValidationSummary(_Frozen):
    total_checks: int
    verified: int
    unverified: int
    filtered: int
    verification_score: int
    duration_ms: int
    checks: list[ValidationCheckResult] = Field(default_factory=list)


class Recommendation(_Frozen):
    category: str
    priority: Priority
    title: str
    description: str
    remediation: str
    effort: Effort

    @property
    def key(self) -> str:
        return recommendation_key(self.category, self.title)


class TreatmentPhase(_Frozen):
    id: PhaseId
    name: str
    description: str
    steps: list[Recommendation] = Field(default_factory=list)


class TreatmentPlan(_Frozen):
    phases: list[TreatmentPhase] = Field(default_factory=list)
    total_steps: int = 0


class AuthoritySubScore(_Frozen):
    score: int
    max: int
    label: str
    details: list[str] = Field(default_factory=list)
    no_data: bool = False


class AuthorityReport(_Frozen):
    kind: AuthorityKind
    label: str
    overall: int
    color: ColorBand
    verdict: Verdict
    categories: dict[str, AuthoritySubScore]
    insights: list[str] = Field(default_factory=list)
    action_plan: list[str] = Field(default_factory=list)


class RedirectChain(_Frozen):
    status: RedirectStatus
    hops: list[str] = Field(default_factory=list)
    final_url: Optional[str] = None
    final_status: Optional[int] = None


class ValidationOutcome(_Frozen):
    snapshot: Snapshot
    heuristics: PageHeuristics
    scores: ScoringResult
    classification: Optional[Classification] = None
    online_presence: Optional[OnlinePresence] = None
    summary: ValidationSummary
