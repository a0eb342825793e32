import json
from datetime import datetime
from pathlib import Path

import httpx

from site_audit.models.config import RunConfig
from site_audit.models.snapshot import AuditInput, BasicInfo, ContentStats, MetaSeo, Snapshot
from site_audit.modules import validator
from site_audit.pipeline import runner


class _FakeHttp:
    def __init__(self, *args, **kwargs):
        self.calls = []

    async def request(self, method, url, headers=None, timeout=None, stream_body=True):
        self.calls.append((method, url))
        return httpx.Response(200, request=httpx.Request(method, url))

    async def close(self):
        return None


def _config(tmp_path, **overrides):
    base = dict(
        target="example.com",
        run_id="r1",
        timestamp=datetime(2026, 1, 2, 3, 4, 5),
        out_dir=str(tmp_path),
    )
    base.update(overrides)
    return RunConfig(**base)


def _audit(markup=""):
    snapshot = Snapshot(
        basic_info=BasicInfo(url="https://example.com", final_url="https://example.com", title="Acme"),
        meta_seo=MetaSeo(robots="noindex"),
        content=ContentStats(word_count=20),
    )
    return AuditInput(snapshot=snapshot, raw_markup=markup)


def test_pipeline_writes_findings_and_artifacts(tmp_path, monkeypatch):
    monkeypatch.setattr(runner, "HttpClient", _FakeHttp)
    markup = "<html><head><title>Acme</title></head><body>" + "<p>word</p>" * 600 + "</body></html>"
    result = runner.run_pipeline_sync(_config(tmp_path), _audit(markup))

    run_path = Path(result["run_path"])
    assert run_path == tmp_path / "example.com" / "20260102_030405"
    assert result["reliable"] is True
    findings = json.loads((run_path / "findings.json").read_text(encoding="utf-8"))
    for key in runner.REQUIRED_FINDINGS_KEYS:
        assert key in findings
    assert set(findings["authority"]) == {"seo", "geo", "aeo", "backlink", "blog"}
    titles = [r["title"] for r in findings["recommendations"]]
    assert "Page blocked from indexing (noindex)" in titles
    assert all(r["key"] and r["group"] for r in findings["recommendations"])
    assert findings["treatment_plan"]["total_steps"] == len(findings["recommendations"])
    assert all(m["status"] == "ok" for m in findings["modules"])

    for name in ("summary.md", "recommendations.csv", "report.html"):
        assert (run_path / "artifacts" / name).exists()
    for name in ("scoring.json", "validation.json", "recommendations.json", "authority.json", "network_ledger.json", "run_manifest.json"):
        assert (run_path / "raw" / name).exists()


def test_short_markup_degrades_markup_axes(tmp_path, monkeypatch):
    monkeypatch.setattr(runner, "HttpClient", _FakeHttp)
    result = runner.run_pipeline_sync(_config(tmp_path), _audit("<html></html>"))
    assert result["reliable"] is False
    findings = json.loads((Path(result["run_path"]) / "findings.json").read_text(encoding="utf-8"))
    assert findings["scores"]["categories"]["seo"]["no_data"]
    titles = [r["title"] for r in findings["recommendations"]]
    assert "Page blocked from indexing (noindex)" not in titles


def test_validation_failure_falls_back_to_unvalidated_data(tmp_path, monkeypatch):
    monkeypatch.setattr(runner, "HttpClient", _FakeHttp)

    async def boom(*args, **kwargs):
        raise RuntimeError("probe layer down")

    monkeypatch.setattr(validator, "validate", boom)
    result = runner.run_pipeline_sync(_config(tmp_path), _audit())
    statuses = {m["module"]: m["status"] for m in result["modules"]}
    assert statuses["validation"] == "error"
    assert statuses["recommendations"] == "ok"

    findings = json.loads((Path(result["run_path"]) / "findings.json").read_text(encoding="utf-8"))
    checks = findings["validation"]["checks"]
    assert checks == [{"field": "validation", "verified": False, "reason": "validation failed: probe layer down"}]
    assert findings["recommendations"]


def test_scoring_failure_yields_no_data_scores(tmp_path, monkeypatch):
    monkeypatch.setattr(runner, "HttpClient", _FakeHttp)

    def broken(*args, **kwargs):
        raise ValueError("bad weights")

    monkeypatch.setattr(runner.scoring, "score_all", broken)
    result = runner.run_pipeline_sync(_config(tmp_path), _audit())
    findings = json.loads((Path(result["run_path"]) / "findings.json").read_text(encoding="utf-8"))
    assert findings["scores"]["overall"] == 0
    assert all(c["no_data"] for c in findings["scores"]["categories"].values())
