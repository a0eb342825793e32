from site_audit.utils.markup import platform_fingerprinted, scan_markup
from site_audit.utils.normalize import host_of, truncate

PAGE = """
<html lang="en"><head>
<title>Acme</title>
<meta name="Description" content="Widgets">
<link rel="canonical" href="https://example.com/">
<script type="application/ld+json">{"@type": "Organization", "name": "Acme"}</script>
<script type="application/ld+json">{"@type": ["FAQPage", "WebPage"]}</script>
<script type="application/ld+json">{"name": "no type"}</script>
<script type="application/ld+json">{broken</script>
</head><body>
<h1>Acme</h1><h2>One</h2><h2>Two</h2>
<ul><li>a</li></ul><ol><li>b</li></ol>
<details><summary>More</summary>text</details>
<img src="/wp-content/uploads/a.png">
</body></html>
"""


def test_scan_markup_counts():
    facts = scan_markup(PAGE)
    assert facts.has_title
    assert facts.has_meta_description
    assert facts.has_canonical
    assert facts.h1_count == 1
    assert facts.h2_count == 2
    assert facts.list_count == 2
    assert facts.has_summary


def test_jsonld_valid_and_invalid_blocks():
    scan = scan_markup(PAGE).jsonld
    assert scan.valid == 2
    assert scan.invalid == 2
    assert scan.total == 4
    assert scan.types == ["Organization", "FAQPage", "WebPage"]


def test_empty_markup():
    facts = scan_markup("")
    assert not facts.has_title
    assert facts.h1_count == 0
    assert facts.jsonld.total == 0


def test_platform_fingerprints():
    lowered = scan_markup(PAGE).lowered
    assert platform_fingerprinted("WordPress", lowered)
    assert not platform_fingerprinted("Shopify", lowered)
    assert not platform_fingerprinted("UnknownCMS", lowered)


def test_host_helpers():
    assert host_of("https://WWW.Example.com:8443/path") == "www.example.com"
    assert host_of("not a url") == ""
    assert truncate("x" * 70) == "x" * 60 + "..."
