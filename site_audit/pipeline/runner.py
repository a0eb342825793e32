from __future__ import annotations

import asyncio
import json
import logging
import subprocess
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from .. import __version__
from ..models.config import ModuleResult, RunConfig
from ..models.results import ValidationCheckResult, ValidationOutcome
from ..models.snapshot import AuditInput
from ..modules import recommendations, scoring, treatment_plan, validator
from ..modules.authority import REGISTRY, generate_report
from ..modules.authority.engine import AuthorityContext
from ..pipeline.context import RunContext
from ..reporting.csv_backlog import build_csv
from ..reporting.html import build_html
from ..reporting.markdown import build_summary
from ..utils.http import HttpClient
from ..utils.network import NetworkLedger, ProbePolicy

logger = logging.getLogger(__name__)

REQUIRED_FINDINGS_KEYS = ["scores", "validation", "recommendations", "treatment_plan", "authority"]


def _write_json(path: str, data: Any) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, default=str)


def _git_sha() -> str | None:
    try:
        return subprocess.check_output(["git", "rev-parse", "HEAD"], text=True, stderr=subprocess.DEVNULL).strip()
    except (OSError, subprocess.CalledProcessError):
        return None


def _dump(value: Any) -> Any:
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [_dump(v) for v in value]
    return value


def _result(name: str, status: str, payload: Any, errors: list[str], started: datetime) -> ModuleResult:
    return ModuleResult(
        module=name,
        status=status,
        data=payload if isinstance(payload, (dict, list)) else {},
        warnings=[],
        errors=errors,
        started_at=started,
        finished_at=datetime.utcnow(),
    )


def _wrap_module(name: str, fallback: Callable[[Exception], Any], func, *args, **kwargs) -> tuple[ModuleResult, Any]:
    """Run one stage; a failure is logged and replaced by ``fallback(exc)``."""
    started = datetime.utcnow()
    try:
        value = func(*args, **kwargs)
    except Exception as exc:
        logger.exception("stage %s failed", name)
        return _result(name, "error", {}, [str(exc)], started), fallback(exc)
    return _result(name, "ok", _dump(value), [], started), value


async def _wrap_module_async(name: str, fallback: Callable[[Exception], Any], coro) -> tuple[ModuleResult, Any]:
    started = datetime.utcnow()
    try:
        value = await coro
    except Exception as exc:
        logger.exception("stage %s failed", name)
        return _result(name, "error", {}, [str(exc)], started), fallback(exc)
    return _result(name, "ok", _dump(value), [], started), value


def _unvalidated(audit: AuditInput, scores) -> Callable[[Exception], ValidationOutcome]:
    def fallback(exc: Exception) -> ValidationOutcome:
        check = ValidationCheckResult(field="validation", verified=False, reason=f"validation failed: {exc}")
        return ValidationOutcome(
            snapshot=audit.snapshot,
            heuristics=audit.heuristics,
            scores=scores,
            classification=audit.classification,
            online_presence=audit.online_presence,
            summary=validator.build_summary([check], 0),
        )

    return fallback


def _build_manifest(context: RunContext) -> dict:
    return {
        "tool_version": __version__,
        "git_sha": _git_sha(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "config": context.config.model_dump(mode="json"),
        "budgets": context.policy.budgets(),
        "ledger_totals": context.ledger.totals(),
    }


def write_artifacts(findings: dict, artifacts_path: str) -> None:
    Path(artifacts_path).mkdir(parents=True, exist_ok=True)
    with open(f"{artifacts_path}/summary.md", "w", encoding="utf-8") as f:
        f.write(build_summary(findings))
    with open(f"{artifacts_path}/recommendations.csv", "w", encoding="utf-8", newline="") as f:
        f.write(build_csv(findings))
    with open(f"{artifacts_path}/report.html", "w", encoding="utf-8") as f:
        f.write(build_html(findings))


def is_reliable(audit: AuditInput, config: RunConfig) -> bool:
    return len(audit.raw_markup) > config.reliable_markup_min_chars


async def run_pipeline(config: RunConfig, audit: AuditInput) -> dict:
    run_path = config.run_path
    raw_path = f"{run_path}/raw"
    artifacts_path = f"{run_path}/artifacts"

    Path(raw_path).mkdir(parents=True, exist_ok=True)
    Path(artifacts_path).mkdir(parents=True, exist_ok=True)

    ledger = NetworkLedger()
    policy = ProbePolicy.from_config(config)
    http = HttpClient(timeout_seconds=config.status_timeout_seconds, retries=config.retries, policy=policy, ledger=ledger)
    context = RunContext(config=config, policy=policy, ledger=ledger, http_client=http)

    modules: list[ModuleResult] = []
    reliable = is_reliable(audit, config)
    if not reliable:
        logger.warning("markup below %s chars, markup-based checks degraded", config.reliable_markup_min_chars)
    try:
        scoring_result, scores = _wrap_module(
            "scoring",
            lambda exc: scoring.unavailable(f"scoring failed: {exc}"),
            scoring.score_all,
            audit,
            reliable,
            config.scoring,
        )
        modules.append(scoring_result)
        _write_json(f"{raw_path}/scoring.json", scoring_result.data)

        validation_result, outcome = await _wrap_module_async(
            "validation",
            _unvalidated(audit, scores),
            validator.validate(audit, scores, context.http_client, config),
        )
        modules.append(validation_result)
        _write_json(f"{raw_path}/validation.json", validation_result.data)

        corrected = audit.model_copy(
            update={
                "snapshot": outcome.snapshot,
                "heuristics": outcome.heuristics,
                "classification": outcome.classification,
                "online_presence": outcome.online_presence,
            }
        )

        recs_result, recs = _wrap_module(
            "recommendations", lambda exc: [], recommendations.generate, corrected, outcome.scores, reliable
        )
        modules.append(recs_result)
        _write_json(f"{raw_path}/recommendations.json", recs_result.data)

        plan_result, plan = _wrap_module(
            "treatment_plan", lambda exc: treatment_plan.build([]), treatment_plan.build, recs
        )
        modules.append(plan_result)

        authority_ctx = AuthorityContext(audit=corrected, reliable=reliable)
        reports = {}
        for kind in REGISTRY:
            report_result, report = _wrap_module(f"authority_{kind.value}", lambda exc: None, generate_report, kind, authority_ctx)
            modules.append(report_result)
            if report is not None:
                reports[kind.value] = report
        _write_json(f"{raw_path}/authority.json", {k: _dump(v) for k, v in reports.items()})

        findings = {
            "target": config.target,
            "run_id": config.run_id,
            "reliable": reliable,
            "scores": _dump(outcome.scores),
            "groups": scoring.score_groups(outcome.scores, config.scoring),
            "validation": _dump(outcome.summary),
            "classification": _dump(outcome.classification),
            "recommendations": [
                {**_dump(rec), "key": rec.key, "group": scoring.group_for_label(rec.category, config.scoring)}
                for rec in recs
            ],
            "treatment_plan": _dump(plan),
            "authority": {k: _dump(v) for k, v in reports.items()},
            "modules": [{"module": m.module, "status": m.status, "errors": m.errors} for m in modules],
        }
        _write_json(f"{run_path}/findings.json", findings)
        write_artifacts(findings, artifacts_path)

        return {
            "run_path": run_path,
            "reliable": reliable,
            "overall": outcome.scores.overall,
            "verification_score": outcome.summary.verification_score,
            "recommendations": len(recs),
            "modules": [m.model_dump(mode="json", exclude={"data"}) for m in modules],
        }
    finally:
        await http.close()
        _write_json(f"{raw_path}/network_ledger.json", context.ledger.to_dict())
        _write_json(f"{raw_path}/run_manifest.json", _build_manifest(context))


def run_pipeline_sync(config: RunConfig, audit: AuditInput) -> dict:
    return asyncio.run(run_pipeline(config, audit))
