from __future__ import annotations

import asyncio
import ipaddress
import socket
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlparse

from ..models.config import RunConfig

ALLOWED_SCHEMES = {"http", "https"}


class NetworkPolicyError(RuntimeError):
    pass


@dataclass
class NetworkLedgerEntry:
    timestamp: str
    type: str
    destination_host: str
    url: str | None = None
    method: str | None = None
    status: int | str | None = None
    error: str | None = None
    bytes_out: int = 0
    bytes_in: int = 0
    duration_ms: int = 0


@dataclass
class NetworkLedger:
    entries: list[NetworkLedgerEntry] = field(default_factory=list)

    def add(self, **kwargs: Any) -> None:
        self.entries.append(NetworkLedgerEntry(timestamp=datetime.now(timezone.utc).isoformat(), **kwargs))

    def to_dict(self) -> dict[str, Any]:
        return {"entries": [e.__dict__ for e in self.entries], "totals": self.totals()}

    def totals(self) -> dict[str, Any]:
        counts = defaultdict(int)
        bytes_in = defaultdict(int)
        failures = defaultdict(int)
        for entry in self.entries:
            counts[entry.type] += 1
            bytes_in[entry.type] += entry.bytes_in
            if entry.error:
                failures[entry.type] += 1
        return {
            "counts": dict(counts),
            "bytes_in": dict(bytes_in),
            "failures": dict(failures),
            "total_entries": len(self.entries),
        }


@dataclass
class ProbePolicy:
    """Guards every verification probe: scheme, destination and budget."""

    target: str
    max_requests_total: int
    max_bytes_per_response: int
    block_private_networks: bool = True
    requests_total: int = 0
    per_host: dict[str, int] = field(default_factory=lambda: defaultdict(int))

    @classmethod
    def from_config(cls, config: RunConfig) -> "ProbePolicy":
        return cls(
            target=config.target.lower(),
            max_requests_total=config.max_probe_requests,
            max_bytes_per_response=config.max_bytes_per_response,
            block_private_networks=config.block_private_networks,
        )

    def classify_http(self, url: str) -> str:
        host = (urlparse(url).hostname or "").lower()
        if host == self.target or host.endswith(f".{self.target}"):
            return "target_http"
        return "third_party_http"

    def enforce_http_request(self, method: str, url: str) -> str:
        host = self._check_request(method, url)
        if self.block_private_networks:
            self._assert_public_resolution(host)
        return self._count(host, url)

    async def admit(self, method: str, url: str) -> str:
        """Same checks as ``enforce_http_request`` with DNS resolution run off the event loop."""
        host = self._check_request(method, url)
        if self.block_private_networks:
            await asyncio.to_thread(self._assert_public_resolution, host)
            # other requests may have spent the budget while resolving
            self._check_budget()
        return self._count(host, url)

    def _check_request(self, method: str, url: str) -> str:
        parsed = urlparse(url)
        if parsed.scheme.lower() not in ALLOWED_SCHEMES:
            raise NetworkPolicyError(f"scheme not allowed: {parsed.scheme or 'none'}")
        host = (parsed.hostname or "").lower()
        if not host:
            raise NetworkPolicyError("url has no host")
        if method.upper() not in {"HEAD", "GET"}:
            raise NetworkPolicyError("only HEAD/GET are allowed for probes")
        self._check_budget()
        return host

    def _check_budget(self) -> None:
        if self.requests_total >= self.max_requests_total:
            raise NetworkPolicyError("probe budget exceeded")

    def _count(self, host: str, url: str) -> str:
        self.requests_total += 1
        self.per_host[host] += 1
        return self.classify_http(url)

    def _assert_public_resolution(self, host: str) -> None:
        try:
            infos = socket.getaddrinfo(host, None)
        except OSError as exc:
            raise NetworkPolicyError(f"failed to resolve host {host}: {exc}") from exc

        for info in infos:
            ip = ipaddress.ip_address(info[4][0])
            if ip.is_private or ip.is_loopback or ip.is_link_local:
                raise NetworkPolicyError(f"blocked probe to non-public IP {ip}")

    def budgets(self) -> dict[str, Any]:
        return {
            "max_requests_total": self.max_requests_total,
            "max_bytes_per_response": self.max_bytes_per_response,
            "block_private_networks": self.block_private_networks,
            "requests_used": self.requests_total,
        }
