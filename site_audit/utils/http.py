from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional
from urllib.parse import urljoin

import httpx

from .. import __version__
from ..models.results import RedirectChain, RedirectStatus
from .network import NetworkLedger, NetworkPolicyError, ProbePolicy

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "User-Agent": f"Mozilla/5.0 (compatible; site-audit/{__version__})",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}
HEAD_UNSUPPORTED = {405, 501}
REACHABILITY_MAX_HOPS = 5


class HttpClient:
    def __init__(
        self,
        timeout_seconds: float = 8.0,
        retries: int = 0,
        policy: ProbePolicy | None = None,
        ledger: NetworkLedger | None = None,
    ) -> None:
        self.timeout = httpx.Timeout(timeout_seconds)
        self.retries = retries
        self.policy = policy
        self.ledger = ledger
        self.follow_redirects = False
        self._client = httpx.AsyncClient(
            timeout=self.timeout, follow_redirects=self.follow_redirects, headers=DEFAULT_HEADERS
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        url: str,
        headers: Optional[dict] = None,
        timeout: Optional[float] = None,
        stream_body: bool = True,
    ) -> httpx.Response:
        """Send one request; with ``stream_body=False`` only status and headers are kept."""
        method = method.upper()
        category = "third_party_http"
        if self.policy:
            category = await self.policy.admit(method, url)
        request_timeout = httpx.Timeout(timeout) if timeout is not None else self.timeout

        last_exc: Optional[Exception] = None
        for attempt in range(self.retries + 1):
            start = time.monotonic()
            try:
                async with self._client.stream(
                    method,
                    url,
                    headers=headers,
                    timeout=request_timeout,
                    follow_redirects=self.follow_redirects,
                ) as resp:
                    content = bytearray()
                    if stream_body:
                        async for chunk in resp.aiter_bytes():
                            content.extend(chunk)
                            if self.policy and len(content) > self.policy.max_bytes_per_response:
                                raise NetworkPolicyError("response byte cap exceeded")
                    response = httpx.Response(
                        status_code=resp.status_code,
                        headers=resp.headers,
                        content=bytes(content),
                        request=resp.request,
                    )
                    if self.ledger:
                        self.ledger.add(
                            type=category,
                            destination_host=resp.request.url.host or "",
                            url=str(resp.request.url),
                            method=method,
                            status=resp.status_code,
                            bytes_in=len(content),
                            duration_ms=int((time.monotonic() - start) * 1000),
                        )
                    return response
            except NetworkPolicyError:
                raise
            except Exception as exc:  # pragma: no cover - best-effort network
                last_exc = exc
                if self.ledger:
                    self.ledger.add(
                        type=category,
                        destination_host=httpx.URL(url).host or "",
                        url=url,
                        method=method,
                        status=None,
                        error=str(exc) or type(exc).__name__,
                        duration_ms=int((time.monotonic() - start) * 1000),
                    )
                logger.debug("http error", extra={"url": url, "error": str(exc), "attempt": attempt})
                if attempt < self.retries:
                    await asyncio.sleep(0.2 * (attempt + 1))
        if last_exc:
            raise last_exc
        raise RuntimeError("http request failed")


async def probe_reachable(http: HttpClient, url: str, timeout: float = 5.0) -> bool:
    """True when the url answers 2xx, following at most ``REACHABILITY_MAX_HOPS`` redirects.

    Every hop goes through ``http.request`` so the network policy sees each
    destination. A HEAD error falls back to GET; anything short of a final
    2xx counts as unreachable.
    """
    try:
        chain = await walk_redirects(
            http, url, max_hops=REACHABILITY_MAX_HOPS, timeout=timeout, head_errors_fall_back=True
        )
    except NetworkPolicyError as exc:
        logger.debug("request refused", extra={"url": url, "error": str(exc)})
        return False
    except Exception as exc:
        logger.debug("reachability check failed", extra={"url": url, "error": str(exc)})
        return False
    return chain.status == RedirectStatus.ok and 200 <= (chain.final_status or 0) < 300


async def probe_batch(http: HttpClient, urls: list[str], timeout: float = 5.0, batch_size: int = 5) -> list[bool]:
    """Probe urls in fixed-size batches; a batch finishes before the next starts."""
    results: list[bool] = []
    size = max(batch_size, 1)
    for i in range(0, len(urls), size):
        batch = urls[i : i + size]
        results.extend(await asyncio.gather(*(probe_reachable(http, url, timeout) for url in batch)))
    return results


async def _status_request(
    http: HttpClient, url: str, timeout: float, head_errors_fall_back: bool = False
) -> httpx.Response:
    response: httpx.Response | None = None
    try:
        response = await http.request("HEAD", url, timeout=timeout, stream_body=False)
    except NetworkPolicyError:
        raise
    except Exception as exc:
        if not head_errors_fall_back:
            raise
        logger.debug("head request failed", extra={"url": url, "error": str(exc)})
    if response is None or response.status_code in HEAD_UNSUPPORTED:
        response = await http.request("GET", url, timeout=timeout, stream_body=False)
    return response


async def walk_redirects(
    http: HttpClient,
    url: str,
    max_hops: int = 10,
    timeout: float = 8.0,
    head_errors_fall_back: bool = False,
) -> RedirectChain:
    """Follow a redirect chain one hop at a time.

    Visits at most ``max_hops`` urls. A url seen twice is a loop; a chain
    still redirecting after ``max_hops`` urls is too long. Transport errors
    propagate to the caller unless ``head_errors_fall_back`` lets a failed
    HEAD be retried as GET.
    """
    visited: set[str] = set()
    hops: list[str] = []
    current = url
    for _ in range(max_hops):
        if current in visited:
            return RedirectChain(status=RedirectStatus.redirect_loop, hops=hops + [current], final_url=current)
        visited.add(current)
        hops.append(current)
        response = await _status_request(http, current, timeout, head_errors_fall_back)
        location = response.headers.get("location")
        if 300 <= response.status_code < 400 and location:
            current = urljoin(current, location)
            continue
        return RedirectChain(
            status=RedirectStatus.ok, hops=hops, final_url=current, final_status=response.status_code
        )
    if current in visited:
        return RedirectChain(status=RedirectStatus.redirect_loop, hops=hops + [current], final_url=current)
    return RedirectChain(status=RedirectStatus.too_many_hops, hops=hops, final_url=current)
