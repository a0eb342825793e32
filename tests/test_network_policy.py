import asyncio
import threading
from datetime import datetime

import httpx
import pytest

from site_audit.models.config import RunConfig
from site_audit.utils.http import REACHABILITY_MAX_HOPS, HttpClient, probe_batch, probe_reachable
from site_audit.utils.network import NetworkLedger, NetworkPolicyError, ProbePolicy


def _config(**overrides):
    base = dict(
        target="example.com",
        run_id="r1",
        timestamp=datetime.utcnow(),
    )
    base.update(overrides)
    return RunConfig(**base)


def _public_dns(monkeypatch):
    monkeypatch.setattr("socket.getaddrinfo", lambda host, port: [(None, None, None, None, ("93.184.216.34", 0))])


class FakeStream:
    def __init__(self, url, status=200, body=b"", method="HEAD", headers=None):
        self.status_code = status
        self.headers = headers or {}
        self.request = httpx.Request(method, url)
        self._body = body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def aiter_bytes(self):
        yield self._body


def test_ledger_totals():
    ledger = NetworkLedger()
    ledger.add(type="third_party_http", destination_host="facebook.com", method="HEAD")
    ledger.add(type="target_http", destination_host="example.com", method="GET", error="timeout")
    totals = ledger.totals()
    assert totals["counts"]["third_party_http"] == 1
    assert totals["counts"]["target_http"] == 1
    assert totals["failures"] == {"target_http": 1}
    assert totals["total_entries"] == 2


def test_policy_rejects_non_http_schemes():
    policy = ProbePolicy.from_config(_config())
    with pytest.raises(NetworkPolicyError):
        policy.enforce_http_request("GET", "file:///etc/passwd")
    with pytest.raises(NetworkPolicyError):
        policy.enforce_http_request("GET", "javascript:alert(1)")


def test_policy_allows_only_head_and_get(monkeypatch):
    _public_dns(monkeypatch)
    policy = ProbePolicy.from_config(_config())
    with pytest.raises(NetworkPolicyError):
        policy.enforce_http_request("POST", "https://example.com")
    assert policy.enforce_http_request("HEAD", "https://www.example.com/a") == "target_http"
    assert policy.enforce_http_request("GET", "https://instagram.com/acme") == "third_party_http"


def test_policy_enforces_request_budget(monkeypatch):
    _public_dns(monkeypatch)
    policy = ProbePolicy.from_config(_config(max_probe_requests=2))
    policy.enforce_http_request("HEAD", "https://example.com")
    policy.enforce_http_request("HEAD", "https://example.com/b")
    with pytest.raises(NetworkPolicyError):
        policy.enforce_http_request("HEAD", "https://example.com/c")
    assert policy.budgets()["requests_used"] == 2


def test_policy_blocks_private_ip_resolution(monkeypatch):
    policy = ProbePolicy.from_config(_config())
    monkeypatch.setattr("socket.getaddrinfo", lambda host, port: [(None, None, None, None, ("127.0.0.1", 0))])
    with pytest.raises(NetworkPolicyError):
        policy.enforce_http_request("HEAD", "https://example.com")


def test_policy_private_networks_allowed_when_disabled(monkeypatch):
    policy = ProbePolicy.from_config(_config(block_private_networks=False))
    monkeypatch.setattr("socket.getaddrinfo", lambda host, port: [(None, None, None, None, ("10.0.0.5", 0))])
    assert policy.enforce_http_request("HEAD", "https://example.com") == "target_http"


def test_http_client_never_follows_redirects_and_caps_bytes(monkeypatch):
    policy = ProbePolicy.from_config(_config(max_bytes_per_response=3))
    ledger = NetworkLedger()
    client = HttpClient(policy=policy, ledger=ledger, retries=0)
    assert client.follow_redirects is False

    seen = []

    def stream(method, url, **kwargs):
        seen.append(kwargs["follow_redirects"])
        return FakeStream("https://example.com", body=b"abcd")

    monkeypatch.setattr(client._client, "stream", stream)
    _public_dns(monkeypatch)

    with pytest.raises(NetworkPolicyError):
        asyncio.run(client.request("GET", "https://example.com"))
    assert seen == [False]


def test_http_request_records_ledger_entry(monkeypatch):
    policy = ProbePolicy.from_config(_config())
    ledger = NetworkLedger()
    client = HttpClient(policy=policy, ledger=ledger)
    monkeypatch.setattr(client._client, "stream", lambda *args, **kwargs: FakeStream("https://example.com", body=b"ok"))
    _public_dns(monkeypatch)

    response = asyncio.run(client.request("GET", "https://example.com"))
    assert response.status_code == 200
    assert response.content == b"ok"
    assert ledger.entries[0].type == "target_http"
    assert ledger.entries[0].bytes_in == 2


def test_probe_counts_policy_refusal_as_unreachable():
    policy = ProbePolicy.from_config(_config())
    client = HttpClient(policy=policy)
    assert asyncio.run(probe_reachable(client, "ftp://example.com/file")) is False


class _FakeHttp:
    def __init__(self, statuses):
        self.statuses = statuses
        self.calls = []

    async def request(self, method, url, headers=None, timeout=None, stream_body=True):
        self.calls.append((method, url))
        status = self.statuses[(method, url)] if (method, url) in self.statuses else self.statuses.get(url, 200)
        if isinstance(status, Exception):
            raise status
        return httpx.Response(status, request=httpx.Request(method, url))


def test_probe_falls_back_to_get_when_head_unsupported():
    http = _FakeHttp({("HEAD", "https://a.test"): 405, ("GET", "https://a.test"): 200})
    assert asyncio.run(probe_reachable(http, "https://a.test")) is True
    assert http.calls == [("HEAD", "https://a.test"), ("GET", "https://a.test")]


def test_probe_falls_back_to_get_after_head_error():
    http = _FakeHttp({("HEAD", "https://a.test"): httpx.ConnectError("boom"), ("GET", "https://a.test"): 404})
    assert asyncio.run(probe_reachable(http, "https://a.test")) is False


def test_probe_batch_preserves_order():
    http = _FakeHttp({"https://b.test": 500})
    results = asyncio.run(probe_batch(http, ["https://a.test", "https://b.test", "https://c.test"], batch_size=2))
    assert results == [True, False, True]


def _resolve_loopback_literal(monkeypatch):
    def resolve(host, port):
        ip = "127.0.0.1" if host == "127.0.0.1" else "93.184.216.34"
        return [(None, None, None, None, (ip, 0))]

    monkeypatch.setattr("socket.getaddrinfo", resolve)


def _redirecting_client(monkeypatch, location):
    client = HttpClient(policy=ProbePolicy.from_config(_config()), ledger=NetworkLedger())
    streamed = []

    def stream(method, url, **kwargs):
        streamed.append((method, url))
        if url == "https://example.com/favicon.ico":
            return FakeStream(url, status=302, method=method, headers={"location": location})
        return FakeStream(url, method=method)

    monkeypatch.setattr(client._client, "stream", stream)
    return client, streamed


def test_redirect_into_private_network_is_unreachable(monkeypatch):
    _resolve_loopback_literal(monkeypatch)
    client, streamed = _redirecting_client(monkeypatch, "http://127.0.0.1/admin")
    assert asyncio.run(probe_reachable(client, "https://example.com/favicon.ico")) is False
    assert streamed == [("HEAD", "https://example.com/favicon.ico")]
    assert client.policy.budgets()["requests_used"] == 1


def test_public_redirect_is_followed_hop_by_hop(monkeypatch):
    _resolve_loopback_literal(monkeypatch)
    client, streamed = _redirecting_client(monkeypatch, "/static/favicon.ico")
    assert asyncio.run(probe_reachable(client, "https://example.com/favicon.ico")) is True
    assert streamed == [("HEAD", "https://example.com/favicon.ico"), ("HEAD", "https://example.com/static/favicon.ico")]
    assert [entry.url for entry in client.ledger.entries] == [url for _, url in streamed]


class _EndlessRedirects:
    def __init__(self):
        self.calls = []

    async def request(self, method, url, headers=None, timeout=None, stream_body=True):
        self.calls.append((method, url))
        step = int(url.rsplit("/", 1)[1])
        return httpx.Response(302, headers={"location": f"/{step + 1}"}, request=httpx.Request(method, url))


def test_endless_redirects_are_unreachable():
    http = _EndlessRedirects()
    assert asyncio.run(probe_reachable(http, "https://a.test/0")) is False
    assert len(http.calls) == REACHABILITY_MAX_HOPS


class _TrackingHttp:
    def __init__(self):
        self.in_flight = 0
        self.peak = 0
        self.events = []

    async def request(self, method, url, headers=None, timeout=None, stream_body=True):
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        self.events.append(("start", url))
        await asyncio.sleep(0.01)
        self.in_flight -= 1
        self.events.append(("end", url))
        return httpx.Response(200, request=httpx.Request(method, url))


def test_batches_run_one_after_another():
    http = _TrackingHttp()
    urls = [f"https://a.test/{i}" for i in range(7)]
    assert asyncio.run(probe_batch(http, urls, batch_size=3)) == [True] * 7
    assert http.peak == 3
    for index, url in enumerate(urls):
        batch_start = (index // 3) * 3
        started = http.events.index(("start", url))
        for earlier in urls[:batch_start]:
            assert http.events.index(("end", earlier)) < started


def test_admit_resolves_hosts_off_the_event_loop(monkeypatch):
    resolver_threads = []

    def resolve(host, port):
        resolver_threads.append(threading.get_ident())
        return [(None, None, None, None, ("10.0.0.5", 0))]

    monkeypatch.setattr("socket.getaddrinfo", resolve)
    policy = ProbePolicy.from_config(_config())

    async def admit():
        with pytest.raises(NetworkPolicyError):
            await policy.admit("HEAD", "https://example.com")
        return threading.get_ident()

    loop_thread = asyncio.run(admit())
    assert resolver_threads and resolver_threads[0] != loop_thread
    assert policy.budgets()["requests_used"] == 0


def test_admit_keeps_budget_across_concurrent_requests(monkeypatch):
    _public_dns(monkeypatch)
    policy = ProbePolicy.from_config(_config(max_probe_requests=1))

    async def admit_both():
        return await asyncio.gather(
            policy.admit("HEAD", "https://example.com/a"),
            policy.admit("HEAD", "https://example.com/b"),
            return_exceptions=True,
        )

    results = asyncio.run(admit_both())
    assert sum(isinstance(r, NetworkPolicyError) for r in results) == 1
    assert policy.budgets()["requests_used"] == 1
