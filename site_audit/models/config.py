from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

DEFAULT_WEIGHTS = {
    "performance": 0.18,
    "seo": 0.18,
    "security": 0.14,
    "accessibility": 0.09,
    "best_practices": 0.09,
    "domain_trust": 0.09,
    "content": 0.09,
    "technology": 0.04,
    "online_presence": 0.10,
}

DEFAULT_GROUPS = {
    "performance": ["performance"],
    "security": ["security", "domain_trust"],
    "technology": ["technology", "best_practices", "accessibility"],
    "seo": ["seo"],
    "content": ["content"],
    "presence": ["online_presence"],
}


class ScoringConfig(BaseModel):
    weights: dict[str, float] = Field(default_factory=lambda: dict(DEFAULT_WEIGHTS))
    groups: dict[str, list[str]] = Field(default_factory=lambda: {k: list(v) for k, v in DEFAULT_GROUPS.items()})


class RunConfig(BaseModel):
    target: str
    run_id: str
    timestamp: datetime
    out_dir: str = "./output"
    reachability_timeout_seconds: float = 5.0
    domain_timeout_seconds: float = 8.0
    status_timeout_seconds: float = 8.0
    probe_batch_size: int = 5
    max_redirect_hops: int = 10
    slow_chain_hops: int = 3
    external_link_sample: int = 20
    image_sample: int = 10
    reliable_markup_min_chars: int = 5000
    overall_tolerance: int = 2
    max_probe_requests: int = 120
    max_bytes_per_response: int = 262_144
    block_private_networks: bool = True
    retries: int = 0
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)

    @property
    def run_path(self) -> str:
        return f"{self.out_dir}/{self.target}/{self.timestamp.strftime('%Y%m%d_%H%M%S')}"


class ModuleResult(BaseModel):
    module: str
    status: str
    data: dict | list = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    started_at: datetime
    finished_at: datetime
