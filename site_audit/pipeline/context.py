from __future__ import annotations

from dataclasses import dataclass

from ..models.config import RunConfig
from ..utils.http import HttpClient
from ..utils.network import NetworkLedger, ProbePolicy


@dataclass
class RunContext:
    config: RunConfig
    policy: ProbePolicy
    ledger: NetworkLedger
    http_client: HttpClient
