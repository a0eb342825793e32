from __future__ import annotations

from ...models.results import AuthorityKind, AuthorityReport
from . import aeo, backlink, blog, geo, seo
from .engine import AuthorityContext, RuleSet, score_rule_set

REGISTRY: dict[AuthorityKind, RuleSet] = {
    AuthorityKind.seo: seo.RULE_SET,
    AuthorityKind.geo: geo.RULE_SET,
    AuthorityKind.aeo: aeo.RULE_SET,
    AuthorityKind.backlink: backlink.RULE_SET,
    AuthorityKind.blog: blog.RULE_SET,
}


def generate_report(kind: AuthorityKind, ctx: AuthorityContext) -> AuthorityReport:
    return score_rule_set(REGISTRY[kind], ctx)


def generate_all(ctx: AuthorityContext) -> dict[AuthorityKind, AuthorityReport]:
    return {kind: generate_report(kind, ctx) for kind in REGISTRY}
