from __future__ import annotations

import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from uuid import uuid4

import typer
from pydantic import ValidationError

from .models.config import RunConfig
from .models.snapshot import AuditInput
from .pipeline.runner import REQUIRED_FINDINGS_KEYS, run_pipeline_sync, write_artifacts
from .utils.normalize import host_of

app = typer.Typer(add_completion=False)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
            "time": datetime.utcnow().isoformat(),
        }
        return json.dumps(payload)


def setup_logging() -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    logging.basicConfig(level=logging.INFO, handlers=[handler])


def load_audit(input: str, markup: str | None = None, classification: str | None = None) -> AuditInput:
    data = json.loads(Path(input).read_text(encoding="utf-8"))
    if markup:
        data["raw_markup"] = Path(markup).read_text(encoding="utf-8", errors="replace")
    if classification:
        # free-form text is recovered by the model
        data["classification"] = Path(classification).read_text(encoding="utf-8")
    return AuditInput.model_validate(data)


@app.command()
def run(
    input: str = typer.Option(..., "--input", help="Collected audit data (snapshot and collaborator records) as JSON."),
    markup: str | None = typer.Option(None, "--markup", help="Raw page markup; overrides raw_markup in the input."),
    classification: str | None = typer.Option(None, "--classification", help="Site classification, JSON or free-form text."),
    out: str = typer.Option("./output", "--out"),
    reachability_timeout: float = typer.Option(5.0, "--reachability-timeout"),
    domain_timeout: float = typer.Option(8.0, "--domain-timeout"),
    status_timeout: float = typer.Option(8.0, "--status-timeout"),
    probe_batch_size: int = typer.Option(5, "--probe-batch-size"),
    max_redirect_hops: int = typer.Option(10, "--max-redirect-hops"),
    external_link_sample: int = typer.Option(20, "--external-link-sample"),
    image_sample: int = typer.Option(10, "--image-sample"),
    reliable_markup_min_chars: int = typer.Option(5000, "--reliable-markup-min-chars"),
    max_probe_requests: int = typer.Option(120, "--max-probe-requests"),
    max_bytes_per_response: int = typer.Option(262_144, "--max-bytes-per-response"),
    allow_private_networks: bool = typer.Option(False, "--allow-private-networks"),
    retries: int = typer.Option(0, "--retries"),
) -> None:
    """Score, verify and report on one crawled site."""
    setup_logging()
    try:
        audit = load_audit(input, markup, classification)
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        typer.echo(f"invalid input: {exc}", err=True)
        raise typer.Exit(1)

    config = RunConfig(
        target=host_of(audit.snapshot.basic_info.url) or "unknown",
        run_id=str(uuid4()),
        timestamp=datetime.utcnow(),
        out_dir=out,
        reachability_timeout_seconds=reachability_timeout,
        domain_timeout_seconds=domain_timeout,
        status_timeout_seconds=status_timeout,
        probe_batch_size=probe_batch_size,
        max_redirect_hops=max_redirect_hops,
        external_link_sample=external_link_sample,
        image_sample=image_sample,
        reliable_markup_min_chars=reliable_markup_min_chars,
        max_probe_requests=max_probe_requests,
        max_bytes_per_response=max_bytes_per_response,
        block_private_networks=not allow_private_networks,
        retries=retries,
    )
    result = run_pipeline_sync(config, audit)
    typer.echo(json.dumps(result, indent=2, default=str))


@app.command()
def report(input: str = typer.Option(..., "--input")) -> None:
    """Generate report artifacts from an existing run directory."""
    setup_logging()
    path = Path(input)
    findings_path = path / "findings.json"
    if not findings_path.exists():
        typer.echo("findings.json not found", err=True)
        raise typer.Exit(1)
    findings = json.loads(findings_path.read_text(encoding="utf-8"))
    write_artifacts(findings, str(path / "artifacts"))
    typer.echo("reports generated")


@app.command()
def validate(input: str = typer.Option(..., "--input")) -> None:
    """Validate findings.json structure."""
    setup_logging()
    try:
        data = json.loads(Path(input).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        typer.echo(f"invalid JSON: {exc}", err=True)
        raise typer.Exit(1)

    missing = [field for field in REQUIRED_FINDINGS_KEYS if field not in data]
    if missing:
        typer.echo(f"missing fields: {', '.join(missing)}", err=True)
        raise typer.Exit(1)

    typer.echo("valid")
