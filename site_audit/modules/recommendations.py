from __future__ import annotations

from ..models.results import Axis, Effort, Priority, Recommendation, ScoringResult
from ..models.snapshot import AuditInput
from .scoring import LABELS, has_full_disallow


def _steps(*lines: str) -> str:
    return "\n".join(f"{i}. {line}" for i, line in enumerate(lines, start=1))


def _rec(axis: Axis, priority: Priority, title: str, description: str, remediation: str, effort: Effort) -> Recommendation:
    return Recommendation(
        category=LABELS[axis],
        priority=priority,
        title=title,
        description=description,
        remediation=remediation,
        effort=effort,
    )


def _performance(audit: AuditInput, scores: ScoringResult) -> list[Recommendation]:
    recs: list[Recommendation] = []
    perf = scores.category(Axis.performance)
    if not perf.no_data and perf.score < 50:
        recs.append(
            _rec(
                Axis.performance,
                Priority.critical,
                "Page speed is very low",
                "Slow pages lose visitors and rank lower. Compress images, defer scripts and enable caching.",
                _steps(
                    "Convert images to WebP/AVIF and serve them at display size",
                    "Add defer or async to non-critical scripts",
                    "Enable browser caching and a CDN",
                    "Remove unused CSS and JavaScript",
                ),
                Effort.hard,
            )
        )
    vitals = audit.speed.web_vitals
    if vitals.lcp is not None and vitals.lcp > 4000:
        recs.append(
            _rec(
                Axis.performance,
                Priority.high,
                "LCP very slow (>4s)",
                "The largest element takes too long to render. Optimize the hero image and server response.",
                _steps(
                    "Identify the LCP element in the speed report",
                    "Preload the hero image and give it explicit dimensions",
                    "Reduce server response time",
                ),
                Effort.hard,
            )
        )
    if vitals.cls is not None and vitals.cls > 0.25:
        recs.append(
            _rec(
                Axis.performance,
                Priority.high,
                "Layout shift too high (CLS)",
                "Content moves while the page loads. Reserve space for images, ads and embeds.",
                _steps(
                    "Set width and height on every image and iframe",
                    "Reserve space for ads and late-loading widgets",
                    "Use font-display: swap with size-matched fallback fonts",
                ),
                Effort.hard,
            )
        )
    if vitals.ttfb is not None and vitals.ttfb > 1800:
        recs.append(
            _rec(
                Axis.performance,
                Priority.medium,
                "Server response slow (TTFB)",
                "The server takes too long to send the first byte. Add caching or upgrade hosting.",
                _steps(
                    "Enable server-side page caching",
                    "Put a CDN in front of the origin",
                    "Review slow database queries or move to faster hosting",
                ),
                Effort.hard,
            )
        )
    return recs


def _seo(audit: AuditInput, reliable: bool) -> list[Recommendation]:
    recs: list[Recommendation] = []
    snapshot = audit.snapshot
    if reliable and snapshot.noindex:
        recs.append(
            _rec(
                Axis.seo,
                Priority.critical,
                "Page blocked from indexing (noindex)",
                "A noindex robots meta tag keeps this page out of search results.",
                _steps(
                    "Remove noindex from the robots meta tag",
                    "Check SEO plugin settings for a site-wide noindex switch",
                    "Request indexing in Search Console",
                ),
                Effort.easy,
            )
        )
    if has_full_disallow(snapshot.technical.robots_txt_content):
        recs.append(
            _rec(
                Axis.seo,
                Priority.critical,
                "robots.txt blocks the whole site",
                "A 'Disallow: /' rule stops search engines from crawling any page.",
                _steps(
                    "Remove the 'Disallow: /' line from robots.txt",
                    "Disallow only private paths such as /admin",
                    "Test the file in Search Console",
                ),
                Effort.easy,
            )
        )
    if not reliable:
        return recs

    title = snapshot.basic_info.title
    if not title:
        recs.append(
            _rec(
                Axis.seo,
                Priority.critical,
                "Page title missing",
                "The title tag is the most important on-page SEO signal.",
                _steps(
                    "Add a <title> inside <head>",
                    "Put the main keyword near the start",
                    "Keep it between 30 and 60 characters",
                ),
                Effort.easy,
            )
        )
    elif len(title) < 30 or len(title) > 60:
        recs.append(
            _rec(
                Axis.seo,
                Priority.medium,
                f"Title length not ideal ({len(title)} chars)",
                "Titles between 30 and 60 characters display fully in search results.",
                _steps("Rewrite the title to 30-60 characters", "Keep the brand name at the end"),
                Effort.easy,
            )
        )
    if not snapshot.basic_info.meta_description:
        recs.append(
            _rec(
                Axis.seo,
                Priority.high,
                "Meta description missing",
                "Without a description search engines pick a random snippet.",
                _steps(
                    'Add <meta name="description"> to <head>',
                    "Summarize the page in 120-160 characters",
                    "End with a call to action",
                ),
                Effort.easy,
            )
        )
    total_h1 = snapshot.headings.total_h1
    if total_h1 == 0:
        recs.append(
            _rec(
                Axis.seo,
                Priority.high,
                "No H1 heading",
                "Every page needs one H1 that states its main topic.",
                _steps("Add a single <h1> describing the page", "Include the main keyword"),
                Effort.easy,
            )
        )
    elif total_h1 > 1:
        recs.append(
            _rec(
                Axis.seo,
                Priority.medium,
                f"{total_h1} H1 headings",
                "Use a single H1 per page and turn the others into H2 or H3.",
                _steps("Keep the H1 that best describes the page", "Demote the rest to H2 or H3"),
                Effort.easy,
            )
        )
    if not snapshot.meta_seo.canonical:
        recs.append(
            _rec(
                Axis.seo,
                Priority.medium,
                "Canonical URL missing",
                'Add <link rel="canonical"> to prevent duplicate content issues.',
                _steps(
                    'Add <link rel="canonical" href="..."> pointing at the preferred URL',
                    "Use absolute URLs",
                    "Make paginated and filtered pages point at the main page",
                ),
                Effort.medium,
            )
        )
    if len(snapshot.meta_seo.og_tags) < 3:
        recs.append(
            _rec(
                Axis.seo,
                Priority.low,
                "Open Graph tags missing or incomplete",
                "Add og:title, og:description and og:image to improve how shares look on social media.",
                _steps("Add og:title, og:description, og:image and og:url", "Use a 1200x630 share image"),
                Effort.easy,
            )
        )
    if not snapshot.technical.has_sitemap:
        recs.append(
            _rec(
                Axis.seo,
                Priority.high,
                "No sitemap",
                "An XML sitemap helps search engines find every page.",
                _steps(
                    "Generate sitemap.xml with the CMS or a generator",
                    "Reference it from robots.txt",
                    "Submit it in Search Console",
                ),
                Effort.medium,
            )
        )
    if not snapshot.technical.has_robots_txt:
        recs.append(
            _rec(
                Axis.seo,
                Priority.medium,
                "No robots.txt",
                "robots.txt tells search engines which pages they may crawl.",
                _steps("Create /robots.txt", "Allow public paths and list the sitemap URL"),
                Effort.easy,
            )
        )
    if not snapshot.technical.has_schema_org:
        recs.append(
            _rec(
                Axis.seo,
                Priority.medium,
                "No structured data (Schema)",
                "JSON-LD Schema.org markup makes the page eligible for rich results.",
                _steps(
                    "Add Organization or LocalBusiness JSON-LD to the homepage",
                    "Add Article, Product or FAQPage where relevant",
                    "Check the markup with the Rich Results Test",
                ),
                Effort.medium,
            )
        )
    return recs


def _security(audit: AuditInput) -> list[Recommendation]:
    recs: list[Recommendation] = []
    if not audit.snapshot.security.is_https:
        recs.append(
            _rec(
                Axis.security,
                Priority.critical,
                "HTTPS not enabled",
                "Install a TLS certificate now. Browsers warn visitors and search engines rank plain HTTP lower.",
                _steps(
                    "Get a free certificate from Let's Encrypt or the hosting panel",
                    "Redirect every HTTP URL to HTTPS with a 301",
                    "Update internal links to HTTPS",
                ),
                Effort.medium,
            )
        )
    if not audit.tls.valid:
        recs.append(
            _rec(
                Axis.security,
                Priority.critical,
                "TLS certificate invalid",
                "Visitors see a 'not secure' warning. Renew or fix the certificate.",
                _steps("Check the certificate chain and hostname", "Reissue the certificate if needed"),
                Effort.medium,
            )
        )
    days = audit.tls.days_until_expiry
    if days is not None and days <= 30:
        recs.append(
            _rec(
                Axis.security,
                Priority.high,
                f"TLS certificate expires in {days} days",
                "Renew the certificate now and turn on automatic renewal.",
                _steps("Renew the certificate", "Enable auto-renewal"),
                Effort.easy,
            )
        )
    missing = audit.security_headers.missing_headers
    if missing:
        recs.append(
            _rec(
                Axis.security,
                Priority.high,
                f"{len(missing)} security headers missing",
                f"Missing: {', '.join(missing[:3])}. These headers block attacks such as XSS and clickjacking.",
                _steps(
                    "Add Strict-Transport-Security",
                    "Add X-Content-Type-Options: nosniff and X-Frame-Options",
                    "Roll out a Content-Security-Policy in report-only mode first",
                ),
                Effort.hard,
            )
        )
    if audit.snapshot.security.has_mixed_content:
        recs.append(
            _rec(
                Axis.security,
                Priority.high,
                "Mixed content found",
                "Load every resource over HTTPS. Browsers may block HTTP resources on HTTPS pages.",
                _steps("List http:// resources in the page", "Switch them to https:// or host them locally"),
                Effort.medium,
            )
        )
    if not audit.threat_list.safe:
        recs.append(
            _rec(
                Axis.security,
                Priority.critical,
                "Threat list flagged the site",
                "The site is marked as harmful. Check Search Console for details and clean it up.",
                _steps(
                    "Review the security issues report in Search Console",
                    "Remove malware and injected content",
                    "Request a review once clean",
                ),
                Effort.hard,
            )
        )
    return recs


def _accessibility(audit: AuditInput, reliable: bool) -> list[Recommendation]:
    recs: list[Recommendation] = []
    if not reliable:
        return recs
    snapshot = audit.snapshot
    missing_alt = snapshot.images.total_missing_alt
    if missing_alt > 0:
        recs.append(
            _rec(
                Axis.accessibility,
                Priority.high if missing_alt > 5 else Priority.medium,
                f"{missing_alt} images missing alt text",
                "Give every image descriptive alt text for screen readers and image search.",
                _steps("Describe what each image shows in its alt attribute", 'Use alt="" for decorative images'),
                Effort.easy,
            )
        )
    if not snapshot.basic_info.language:
        recs.append(
            _rec(
                Axis.accessibility,
                Priority.medium,
                "HTML lang attribute missing",
                'Add <html lang="en"> so screen readers use the right language.',
                _steps("Set the lang attribute on the <html> element"),
                Effort.easy,
            )
        )
    return recs


def _best_practices(audit: AuditInput, reliable: bool) -> list[Recommendation]:
    recs: list[Recommendation] = []
    errors = audit.markup_validation.errors
    if errors > 10:
        recs.append(
            _rec(
                Axis.best_practices,
                Priority.high,
                f"{errors} markup validation errors",
                "Invalid markup can break rendering in some browsers. Fix the errors the validator reports.",
                _steps("Run the page through validator.w3.org", "Fix unclosed and misnested elements first"),
                Effort.hard,
            )
        )
    elif errors > 0:
        recs.append(
            _rec(
                Axis.best_practices,
                Priority.low,
                f"{errors} markup errors",
                "Fix the small markup errors reported by validator.w3.org.",
                _steps("Run the page through validator.w3.org", "Fix the reported errors"),
                Effort.medium,
            )
        )
    if not reliable:
        return recs
    if not audit.snapshot.basic_info.favicon:
        recs.append(
            _rec(
                Axis.best_practices,
                Priority.low,
                "Favicon missing",
                "A favicon shows in tabs and bookmarks and looks professional.",
                _steps("Create a 32x32 icon", 'Reference it with <link rel="icon">'),
                Effort.easy,
            )
        )
    broken = audit.snapshot.links.total_broken
    if broken > 0:
        recs.append(
            _rec(
                Axis.best_practices,
                Priority.high,
                f"{broken} broken links",
                "Fix or remove broken links. They hurt both visitors and SEO.",
                _steps("Update links that moved", "Remove links to pages that no longer exist"),
                Effort.medium,
            )
        )
    return recs


def _domain_trust(audit: AuditInput, reliable: bool) -> list[Recommendation]:
    recs: list[Recommendation] = []
    trust = audit.heuristics.trust_signals
    if reliable and not trust.has_privacy_policy:
        recs.append(
            _rec(
                Axis.domain_trust,
                Priority.high,
                "No privacy policy page",
                "Privacy laws such as GDPR require one, and it is a trust signal.",
                _steps("Publish a privacy policy page", "Link it from the footer"),
                Effort.easy,
            )
        )
    if reliable and not trust.has_terms:
        recs.append(
            _rec(
                Axis.domain_trust,
                Priority.medium,
                "No terms of use page",
                "Terms of use give legal protection and add credibility.",
                _steps("Publish a terms of use page", "Link it from the footer"),
                Effort.easy,
            )
        )
    if reliable and not trust.has_contact_info:
        recs.append(
            _rec(
                Axis.domain_trust,
                Priority.high,
                "No contact information found",
                "Show an e-mail address, phone number or street address so visitors can reach you.",
                _steps("Add a contact page", "Put the main contact details in the footer"),
                Effort.easy,
            )
        )
    if not audit.dns.has_spf:
        recs.append(
            _rec(
                Axis.domain_trust,
                Priority.medium,
                "No SPF record",
                "Add an SPF record to DNS to stop e-mail spoofing.",
                _steps("List every service that sends mail for the domain", "Publish a TXT record ending in -all"),
                Effort.medium,
            )
        )
    if not audit.dns.has_dmarc:
        recs.append(
            _rec(
                Axis.domain_trust,
                Priority.medium,
                "No DMARC record",
                "DMARC completes e-mail protection together with SPF.",
                _steps("Publish _dmarc TXT with p=none and a report address", "Move to quarantine once reports are clean"),
                Effort.medium,
            )
        )
    if reliable and not audit.heuristics.social_links:
        recs.append(
            _rec(
                Axis.domain_trust,
                Priority.low,
                "No social media links",
                "Link your social media accounts from the footer to build brand credibility.",
                _steps("Add links to active social profiles in the footer"),
                Effort.easy,
            )
        )
    if reliable and not audit.heuristics.cookie_consent.detected:
        recs.append(
            _rec(
                Axis.domain_trust,
                Priority.medium,
                "No cookie consent banner found",
                "Cookie laws require a consent banner. Tools such as Cookiebot or OneTrust handle it.",
                _steps("Pick a consent management tool", "Block non-essential cookies until consent is given"),
                Effort.medium,
            )
        )
    return recs


def _content(audit: AuditInput, reliable: bool) -> list[Recommendation]:
    recs: list[Recommendation] = []
    if not reliable:
        return recs
    snapshot = audit.snapshot
    words = snapshot.content.word_count
    if words < 50:
        recs.append(
            _rec(
                Axis.content,
                Priority.critical,
                f"Thin content ({words} words)",
                "The page has almost no content. Aim for at least 300 words for visitors and search engines.",
                _steps(
                    "Describe what the business offers and for whom",
                    "Answer the questions customers ask most",
                    "Add at least 300 words of original text",
                ),
                Effort.medium,
            )
        )
    elif words < 300:
        recs.append(
            _rec(
                Axis.content,
                Priority.high if words < 100 else Priority.medium,
                f"Too little content ({words} words)",
                "Add more quality content to the page. Aim for at least 300 words.",
                _steps("Expand the main sections", "Add an FAQ block"),
                Effort.medium,
            )
        )
    if snapshot.images.total == 0:
        recs.append(
            _rec(
                Axis.content,
                Priority.medium,
                "No images on the page",
                "Relevant images raise engagement.",
                _steps("Add images that support the text", "Give them alt text"),
                Effort.easy,
            )
        )
    if snapshot.links.total_internal < 3:
        recs.append(
            _rec(
                Axis.content,
                Priority.medium,
                "Few internal links",
                "Link to your other pages. It helps both SEO and navigation.",
                _steps("Link related pages from the body text", "Add a navigation menu and footer links"),
                Effort.easy,
            )
        )
    return recs


def _technology(audit: AuditInput, reliable: bool) -> list[Recommendation]:
    analytics = audit.heuristics.analytics
    if reliable and not analytics.has_google_analytics and not analytics.has_gtm:
        return [
            _rec(
                Axis.technology,
                Priority.high,
                "No analytics",
                "Install Google Analytics or GTM. Without visitor data there is nothing to improve against.",
                _steps("Create a GA4 property", "Install the tag directly or through GTM", "Define key conversions"),
                Effort.medium,
            )
        ]
    return []


def _online_presence(audit: AuditInput) -> list[Recommendation]:
    presence = audit.online_presence
    if presence is None or presence.search_index.no_data:
        return []
    recs: list[Recommendation] = []
    index = presence.search_index
    if not index.is_indexed:
        recs.append(
            _rec(
                Axis.online_presence,
                Priority.critical,
                "Site not indexed by Google",
                "Google does not know this site. Register it in Search Console and submit a sitemap.",
                _steps("Verify the site in Search Console", "Submit the sitemap", "Request indexing for the homepage"),
                Effort.medium,
            )
        )
    if index.is_indexed and index.indexed_page_count < 10:
        recs.append(
            _rec(
                Axis.online_presence,
                Priority.high,
                f"Very few pages indexed ({index.indexed_page_count})",
                "Google knows only a few pages. Build a sitemap and strengthen internal links.",
                _steps("Submit a complete sitemap", "Link every important page from at least one other page"),
                Effort.medium,
            )
        )
    if not presence.webmaster_tags.google:
        recs.append(
            _rec(
                Axis.online_presence,
                Priority.high,
                "No Search Console verification",
                "No Search Console verification tag was found. Register and verify the site.",
                _steps("Add the site property in Search Console", "Verify it with the meta tag or DNS"),
                Effort.easy,
            )
        )
    if presence.social_presence.total_invalid > 0:
        recs.append(
            _rec(
                Axis.online_presence,
                Priority.medium,
                f"{presence.social_presence.total_invalid} social media links broken",
                "Unreachable social media links hurt credibility. Fix or remove them.",
                _steps("Check each profile URL", "Update or remove the dead ones"),
                Effort.easy,
            )
        )
    if index.brand_mentions == 0:
        recs.append(
            _rec(
                Axis.online_presence,
                Priority.medium,
                "No brand mentions found online",
                "No other site mentions the brand. Run a digital PR and guest post strategy.",
                _steps("List industry sites and directories", "Pitch a guest post or data story"),
                Effort.hard,
            )
        )
    if not presence.structured_data.og_complete:
        recs.append(
            _rec(
                Axis.online_presence,
                Priority.medium,
                "Open Graph tags missing or incomplete",
                "Shares on social media will look poor. Add og:title, og:description and og:image.",
                _steps("Add og:title, og:description and og:image", "Preview the page with a share debugger"),
                Effort.easy,
            )
        )
    if presence.archive_history.snapshot_count == 0:
        recs.append(
            _rec(
                Axis.online_presence,
                Priority.low,
                "No web archive snapshots",
                "The site has not been archived yet. Save it manually to leave a digital trail.",
                _steps("Submit the homepage to the web archive's save page"),
                Effort.easy,
            )
        )
    return recs


def generate(audit: AuditInput, scores: ScoringResult, reliable: bool = True) -> list[Recommendation]:
    """Run every rule in order and sort by priority.

    Rules that read crawled markup are skipped when ``reliable`` is false;
    transport, certificate, DNS and threat-list rules always run.
    """
    recs: list[Recommendation] = []
    recs.extend(_performance(audit, scores))
    recs.extend(_seo(audit, reliable))
    recs.extend(_security(audit))
    recs.extend(_accessibility(audit, reliable))
    recs.extend(_best_practices(audit, reliable))
    recs.extend(_domain_trust(audit, reliable))
    recs.extend(_content(audit, reliable))
    recs.extend(_technology(audit, reliable))
    recs.extend(_online_presence(audit))
    return sorted(recs, key=lambda r: r.priority.rank)
