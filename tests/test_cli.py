import json

import httpx
from typer.testing import CliRunner

from site_audit.cli import app, load_audit
from site_audit.pipeline import runner as pipeline_runner

cli = CliRunner()


class _FakeHttp:
    def __init__(self, *args, **kwargs):
        pass

    async def request(self, method, url, headers=None, timeout=None, stream_body=True):
        return httpx.Response(200, request=httpx.Request(method, url))

    async def close(self):
        return None


def _write_input(tmp_path):
    path = tmp_path / "audit.json"
    path.write_text(
        json.dumps({"snapshot": {"basic_info": {"url": "https://Example.com/", "title": "Acme"}}}),
        encoding="utf-8",
    )
    return path


def test_load_audit_merges_markup_and_classification(tmp_path):
    markup = tmp_path / "page.html"
    markup.write_text("<html><title>Acme</title></html>", encoding="utf-8")
    classification = tmp_path / "classification.txt"
    classification.write_text('Result:\n```json\n{"scale": {"level": "small"}}\n```', encoding="utf-8")

    audit = load_audit(str(_write_input(tmp_path)), str(markup), str(classification))
    assert audit.raw_markup.startswith("<html>")
    assert audit.classification.scale.level == "small"


def test_run_command_writes_run_directory(tmp_path, monkeypatch):
    monkeypatch.setattr(pipeline_runner, "HttpClient", _FakeHttp)
    out = tmp_path / "out"
    result = cli.invoke(app, ["run", "--input", str(_write_input(tmp_path)), "--out", str(out)])
    assert result.exit_code == 0
    runs = list((out / "example.com").iterdir())
    assert len(runs) == 1
    assert (runs[0] / "findings.json").exists()


def test_run_command_rejects_invalid_input(tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"snapshot": {}}), encoding="utf-8")
    result = cli.invoke(app, ["run", "--input", str(bad)])
    assert result.exit_code == 1


def test_validate_command(tmp_path):
    good = tmp_path / "findings.json"
    good.write_text(json.dumps({key: {} for key in pipeline_runner.REQUIRED_FINDINGS_KEYS}), encoding="utf-8")
    assert cli.invoke(app, ["validate", "--input", str(good)]).exit_code == 0

    partial = tmp_path / "partial.json"
    partial.write_text(json.dumps({"scores": {}}), encoding="utf-8")
    assert cli.invoke(app, ["validate", "--input", str(partial)]).exit_code == 1

    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    assert cli.invoke(app, ["validate", "--input", str(broken)]).exit_code == 1


def test_report_command(tmp_path):
    assert cli.invoke(app, ["report", "--input", str(tmp_path)]).exit_code == 1

    (tmp_path / "findings.json").write_text(json.dumps({"target": "example.com", "recommendations": []}), encoding="utf-8")
    result = cli.invoke(app, ["report", "--input", str(tmp_path)])
    assert result.exit_code == 0
    assert (tmp_path / "artifacts" / "summary.md").exists()
    assert (tmp_path / "artifacts" / "report.html").exists()


def test_run_command_accepts_null_collaborator_records(tmp_path, monkeypatch):
    monkeypatch.setattr(pipeline_runner, "HttpClient", _FakeHttp)
    path = tmp_path / "nulls.json"
    path.write_text(
        json.dumps({"snapshot": {"basic_info": {"url": "https://example.com"}}, "tls": None, "dns": None, "speed": None}),
        encoding="utf-8",
    )
    result = cli.invoke(app, ["run", "--input", str(path), "--out", str(tmp_path / "out")])
    assert result.exit_code == 0
