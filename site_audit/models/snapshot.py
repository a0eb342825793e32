from __future__ import annotations

import logging
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator

from ..utils.parsing import MalformedUpstreamData, recover_json

logger = logging.getLogger(__name__)


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class BasicInfo(_Frozen):
    url: str
    final_url: str = ""
    title: Optional[str] = None
    meta_description: Optional[str] = None
    favicon: Optional[str] = None
    language: Optional[str] = None
    charset: Optional[str] = None


class HeadingInfo(_Frozen):
    tag: str
    text: str


class Headings(_Frozen):
    h1: list[HeadingInfo] = Field(default_factory=list)
    h2: list[HeadingInfo] = Field(default_factory=list)
    h3: list[HeadingInfo] = Field(default_factory=list)
    total_h1: int = 0
    total_h2: int = 0
    total_h3: int = 0


class MetaSeo(_Frozen):
    canonical: Optional[str] = None
    robots: Optional[str] = None
    og_tags: dict[str, str] = Field(default_factory=dict)
    twitter_tags: dict[str, str] = Field(default_factory=dict)
    hreflang: list[str] = Field(default_factory=list)
    viewport: Optional[str] = None


class ContentStats(_Frozen):
    word_count: int = 0
    paragraph_count: int = 0
    content_to_code_ratio: float = 0.0


class LinkInfo(_Frozen):
    href: str
    text: str = ""
    is_external: bool = False


class Links(_Frozen):
    internal: list[LinkInfo] = Field(default_factory=list)
    external: list[LinkInfo] = Field(default_factory=list)
    broken: list[str] = Field(default_factory=list)
    total_internal: int = 0
    total_external: int = 0
    total_broken: int = 0


class ImageInfo(_Frozen):
    src: str
    alt: Optional[str] = None
    width: Optional[str] = None
    height: Optional[str] = None


class Images(_Frozen):
    total: int = 0
    missing_alt: list[str] = Field(default_factory=list)
    total_missing_alt: int = 0
    images: list[ImageInfo] = Field(default_factory=list)


class TechnicalInfo(_Frozen):
    has_schema_org: bool = False
    schema_types: list[str] = Field(default_factory=list)
    has_sitemap: bool = False
    sitemap_url: Optional[str] = None
    sitemap_page_count: Optional[int] = None
    has_robots_txt: bool = False
    robots_txt_content: Optional[str] = None


class TechDetection(_Frozen):
    platform: Optional[str] = None
    confidence: int = 0
    signals: list[str] = Field(default_factory=list)


class SecurityInfo(_Frozen):
    is_https: bool = False
    has_mixed_content: bool = False
    mixed_content_urls: list[str] = Field(default_factory=list)


class Snapshot(_Frozen):
    """Everything the crawler extracted from one page at one instant."""

    basic_info: BasicInfo
    headings: Headings = Field(default_factory=Headings)
    meta_seo: MetaSeo = Field(default_factory=MetaSeo)
    content: ContentStats = Field(default_factory=ContentStats)
    links: Links = Field(default_factory=Links)
    images: Images = Field(default_factory=Images)
    technical: TechnicalInfo = Field(default_factory=TechnicalInfo)
    tech_detection: TechDetection = Field(default_factory=TechDetection)
    security: SecurityInfo = Field(default_factory=SecurityInfo)

    @property
    def noindex(self) -> bool:
        return "noindex" in (self.meta_seo.robots or "").lower()


# Collaborator records. Defaults mean "the collector returned nothing".


class SpeedScores(_Frozen):
    performance: Optional[float] = None
    accessibility: Optional[float] = None
    best_practices: Optional[float] = None
    seo: Optional[float] = None


class WebVitals(_Frozen):
    lcp: Optional[float] = None
    fid: Optional[float] = None
    cls: Optional[float] = None
    inp: Optional[float] = None
    ttfb: Optional[float] = None


class SpeedResult(_Frozen):
    scores: SpeedScores = Field(default_factory=SpeedScores)
    web_vitals: WebVitals = Field(default_factory=WebVitals)
    error: Optional[str] = None


class TlsInfo(_Frozen):
    valid: bool = False
    issuer: Optional[str] = None
    expires_at: Optional[str] = None
    days_until_expiry: Optional[int] = None
    protocol: Optional[str] = None
    error: Optional[str] = None


class DomainInfo(_Frozen):
    domain_age_days: Optional[int] = None
    registrar: Optional[str] = None
    created_date: Optional[str] = None
    first_archive_date: Optional[str] = None
    error: Optional[str] = None


class SecurityHeaders(_Frozen):
    grade: Optional[str] = None
    headers: dict[str, bool] = Field(default_factory=dict)
    missing_headers: list[str] = Field(default_factory=list)
    error: Optional[str] = None


class ThreatListResult(_Frozen):
    safe: bool = True
    threats: list[str] = Field(default_factory=list)
    error: Optional[str] = None


class DnsRecords(_Frozen):
    a_records: list[str] = Field(default_factory=list)
    mx_records: list[str] = Field(default_factory=list)
    txt_records: list[str] = Field(default_factory=list)
    has_spf: bool = False
    has_dmarc: bool = False
    nameservers: list[str] = Field(default_factory=list)
    error: Optional[str] = None


class MarkupValidation(_Frozen):
    errors: int = 0
    warnings: int = 0
    details: list[str] = Field(default_factory=list)
    error: Optional[str] = None


class AnalyticsSignals(_Frozen):
    has_google_analytics: bool = False
    has_gtm: bool = False
    has_meta_pixel: bool = False
    has_hotjar: bool = False
    other_tools: list[str] = Field(default_factory=list)


class SocialLink(_Frozen):
    platform: str
    url: str


class CtaSignals(_Frozen):
    forms: int = 0
    buttons: int = 0
    has_contact_form: bool = False


class TrustSignals(_Frozen):
    has_privacy_policy: bool = False
    has_terms: bool = False
    has_contact_info: bool = False
    has_phone: bool = False
    has_email: bool = False
    has_address: bool = False


class CookieConsent(_Frozen):
    detected: bool = False
    patterns: list[str] = Field(default_factory=list)


class PageHeuristics(_Frozen):
    analytics: AnalyticsSignals = Field(default_factory=AnalyticsSignals)
    social_links: list[SocialLink] = Field(default_factory=list)
    cta: CtaSignals = Field(default_factory=CtaSignals)
    trust_signals: TrustSignals = Field(default_factory=TrustSignals)
    fonts: list[str] = Field(default_factory=list)
    css_frameworks: list[str] = Field(default_factory=list)
    cookie_consent: CookieConsent = Field(default_factory=CookieConsent)


class SearchIndex(_Frozen):
    is_indexed: bool = False
    indexed_page_count: int = 0
    has_rich_snippet: bool = False
    serp_appearance: Optional[str] = None
    brand_mentions: int = 0
    no_data: bool = False


class SocialProfile(_Frozen):
    platform: str
    url: str
    accessible: bool = False


class SocialPresence(_Frozen):
    profiles: list[SocialProfile] = Field(default_factory=list)
    total_verified: int = 0
    total_invalid: int = 0


class WebmasterTags(_Frozen):
    google: bool = False
    bing: bool = False
    yandex: bool = False


class ArchiveHistory(_Frozen):
    first_snapshot: Optional[str] = None
    last_snapshot: Optional[str] = None
    snapshot_count: int = 0
    website_age_years: Optional[float] = None


class StructuredDataStatus(_Frozen):
    schema_types: list[str] = Field(default_factory=list)
    schema_complete: bool = False
    og_complete: bool = False
    twitter_card_complete: bool = False


class OnlinePresence(_Frozen):
    search_index: SearchIndex = Field(default_factory=SearchIndex)
    social_presence: SocialPresence = Field(default_factory=SocialPresence)
    webmaster_tags: WebmasterTags = Field(default_factory=WebmasterTags)
    archive_history: ArchiveHistory = Field(default_factory=ArchiveHistory)
    structured_data: StructuredDataStatus = Field(default_factory=StructuredDataStatus)


class Identity(_Frozen):
    site_type: str = "unknown"
    site_type_confidence: int = 0
    industry: Optional[str] = None
    primary_language: Optional[str] = None


class TargetMarket(_Frozen):
    audience: str = "unknown"
    region: Optional[str] = None


class Maturity(_Frozen):
    level: str = "unknown"
    score: int = 0
    signals: list[str] = Field(default_factory=list)


class Scale(_Frozen):
    level: str = "unknown"
    estimated_pages: Optional[int] = None
    signals: list[str] = Field(default_factory=list)


class RevenueModel(_Frozen):
    primary: str = "unknown"
    signals: list[str] = Field(default_factory=list)


class ContactChannels(_Frozen):
    social_platforms: list[str] = Field(default_factory=list)
    emails: list[str] = Field(default_factory=list)
    phones: list[str] = Field(default_factory=list)


class TechStack(_Frozen):
    platform: Optional[str] = None
    hosting: Optional[str] = None
    frameworks: list[str] = Field(default_factory=list)


class LegalTrust(_Frozen):
    has_privacy_policy: bool = False
    has_terms: bool = False
    has_cookie_policy: bool = False


class ContentStructure(_Frozen):
    has_blog: bool = False
    has_ecommerce: bool = False
    has_newsletter: bool = False
    has_pricing: bool = False


class Synthesis(_Frozen):
    summary: Optional[str] = None


class Classification(_Frozen):
    """Best-effort site classification from the identity collaborator."""

    identity: Identity = Field(default_factory=Identity)
    target_market: TargetMarket = Field(default_factory=TargetMarket)
    maturity: Maturity = Field(default_factory=Maturity)
    scale: Scale = Field(default_factory=Scale)
    revenue_model: RevenueModel = Field(default_factory=RevenueModel)
    contact: ContactChannels = Field(default_factory=ContactChannels)
    tech_stack: TechStack = Field(default_factory=TechStack)
    legal_trust: LegalTrust = Field(default_factory=LegalTrust)
    content_structure: ContentStructure = Field(default_factory=ContentStructure)
    synthesis: Synthesis = Field(default_factory=Synthesis)


class AuditInput(_Frozen):
    snapshot: Snapshot
    raw_markup: str = ""
    speed: SpeedResult = Field(default_factory=lambda: SpeedResult(error="no speed result"))
    tls: TlsInfo = Field(default_factory=TlsInfo)
    domain_info: DomainInfo = Field(default_factory=DomainInfo)
    security_headers: SecurityHeaders = Field(default_factory=SecurityHeaders)
    threat_list: ThreatListResult = Field(default_factory=ThreatListResult)
    dns: DnsRecords = Field(default_factory=DnsRecords)
    markup_validation: MarkupValidation = Field(default_factory=MarkupValidation)
    heuristics: PageHeuristics = Field(default_factory=PageHeuristics)
    online_presence: Optional[OnlinePresence] = None
    classification: Optional[Classification] = None

    @field_validator(
        "speed",
        "tls",
        "domain_info",
        "security_headers",
        "threat_list",
        "dns",
        "markup_validation",
        "heuristics",
        mode="before",
    )
    @classmethod
    def _null_record_is_empty(cls, value: Any, info: ValidationInfo) -> Any:
        # a collaborator that returned nothing degrades to its empty record
        if value is None:
            return cls.model_fields[info.field_name].get_default(call_default_factory=True)
        return value

    @field_validator("classification", mode="before")
    @classmethod
    def _recover_classification(cls, value: Any) -> Any:
        if value is None or isinstance(value, Classification):
            return value
        if isinstance(value, str):
            try:
                value = recover_json(value)
            except MalformedUpstreamData:
                return None
        if not isinstance(value, dict):
            return None
        try:
            return Classification.model_validate(value)
        except ValidationError as exc:
            logger.debug("Discarding classification with unexpected shape: %s", exc.error_count())
            return None
