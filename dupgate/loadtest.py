"""Load generator and smoke check for a running dupgate server."""

import argparse
import asyncio
import json
import math
import os
import sys
import time
import uuid
from typing import Dict, List, Optional

import httpx


DEFAULT_URL = "http://localhost:3000"
REQUEST_TIMEOUT = 10.0
PERCENTILES = (50, 75, 90, 95, 99)


class LoadStats:
    """Aggregated outcome of a load run."""

    def __init__(self):
        self.durations: List[float] = []
        self.status_codes: Dict[int, int] = {}
        self.started_at: Optional[float] = None
        self.finished_at: Optional[float] = None

    def record(self, status_code: int, duration_ms: float):
        self.durations.append(duration_ms)
        self.status_codes[status_code] = self.status_codes.get(status_code, 0) + 1

    @property
    def total(self) -> int:
        return len(self.durations)

    def count(self, status_code: int) -> int:
        return self.status_codes.get(status_code, 0)


def percentile(values: List[float], pct: float) -> float:
    """Nearest-rank percentile; 0.0 for an empty list."""
    if not values:
        return 0.0
    ordered = sorted(values)
    index = max(0, math.ceil(len(ordered) * pct / 100) - 1)
    return ordered[index]


def summarize(stats: LoadStats) -> dict:
    """Reduce raw samples to the figures printed in the report."""
    elapsed = 0.0
    if stats.started_at is not None and stats.finished_at is not None:
        elapsed = stats.finished_at - stats.started_at

    total = stats.total
    success = stats.count(200)
    duplicates = stats.count(409)
    bad_request = stats.count(400)
    errors = total - success - duplicates - bad_request

    summary = {
        "total": total,
        "success": success,
        "duplicates": duplicates,
        "bad_request": bad_request,
        "errors": errors,
        "elapsed_seconds": round(elapsed, 3),
        "requests_per_second": round(total / elapsed, 2) if elapsed > 0 else 0.0,
        "success_rate": round(success * 100.0 / total, 2) if total else 0.0,
        "status_codes": dict(sorted(stats.status_codes.items())),
        "latency_ms": {
            "min": round(min(stats.durations), 2) if stats.durations else 0.0,
            "max": round(max(stats.durations), 2) if stats.durations else 0.0,
            "avg": round(sum(stats.durations) / total, 2) if total else 0.0,
        },
    }
    for pct in PERCENTILES:
        summary["latency_ms"][f"p{pct}"] = round(percentile(stats.durations, pct), 2)
    return summary


def build_body(request_id: int) -> dict:
    """Unique body per request so every one should be admitted."""
    return {
        "requestId": request_id,
        "timestamp": int(time.time() * 1000),
        "data": f"load-test-{request_id}",
    }


async def _send(client: httpx.AsyncClient, url: str, client_id: str, body, stats: LoadStats):
    started = time.perf_counter()
    try:
        response = await client.post(f"{url}/validate", json=body, headers={"client": client_id})
        status_code = response.status_code
    except httpx.HTTPError:
        # Transport failures are counted under status 0
        status_code = 0
    stats.record(status_code, (time.perf_counter() - started) * 1000)


async def run_load(url: str, client_id: str, concurrent: int = 10, total: int = 1000,
                   ramp: float = 0.0, client: Optional[httpx.AsyncClient] = None) -> LoadStats:
    """Send `total` unique requests with at most `concurrent` in flight.

    With `ramp` > 0 request starts are spread linearly over that many seconds.
    """
    stats = LoadStats()
    semaphore = asyncio.Semaphore(max(1, concurrent))
    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=REQUEST_TIMEOUT)

    async def worker(request_id: int):
        if ramp > 0:
            await asyncio.sleep(ramp * request_id / total)
        async with semaphore:
            await _send(client, url, client_id, build_body(request_id), stats)

    stats.started_at = time.perf_counter()
    try:
        await asyncio.gather(*(worker(i) for i in range(total)))
    finally:
        stats.finished_at = time.perf_counter()
        if owns_client:
            await client.aclose()
    return stats


async def run_smoke(url: str, ttl_wait: float = 2.5,
                    client: Optional[httpx.AsyncClient] = None) -> List[tuple]:
    """Exercise the admission scenarios once. Returns (name, passed, detail) rows."""
    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=REQUEST_TIMEOUT)
    results = []
    run_id = uuid.uuid4().hex[:8]
    body = {"key": "value", "data": f"smoke-{run_id}"}

    async def post(payload, client_id: Optional[str]) -> int:
        headers = {"client": client_id} if client_id is not None else {}
        response = await client.post(f"{url}/validate", json=payload, headers=headers)
        return response.status_code

    def check(name: str, got: int, expected: int):
        results.append((name, got == expected, f"expected {expected}, got {got}"))

    try:
        check("first request admitted", await post(body, "client-001"), 200)
        check("identical request rejected", await post(body, "client-001"), 409)
        check("missing client header", await post(body, None), 400)
        check("same body, other client", await post(body, "client-002"), 200)

        reordered = dict(reversed(list(body.items())))
        check("reordered keys rejected", await post(reordered, "client-001"), 409)

        await asyncio.sleep(ttl_wait)
        check("admitted again after TTL", await post(body, "client-001"), 200)

        response = await client.post(f"{url}/health")
        check("health check", response.status_code, 200)
    finally:
        if owns_client:
            await client.aclose()
    return results


def main():
    parser = argparse.ArgumentParser(description="dupgate load and smoke testing")
    parser.add_argument("--url", default=os.getenv("API_URL", DEFAULT_URL), help="Service base URL (or API_URL env)")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    load = subparsers.add_parser("load", help="Send unique requests concurrently")
    load.add_argument("--concurrent", type=int, default=int(os.getenv("CONCURRENT", "10")), help="Requests in flight")
    load.add_argument("--total", type=int, default=int(os.getenv("TOTAL", "1000")), help="Total requests to send")
    load.add_argument("--ramp", type=float, default=float(os.getenv("RAMP", "0")), help="Seconds to ramp up the load")
    load.add_argument("--client-id", default=os.getenv("CLIENT_ID", "load-test-client"), help="Value of the client header")

    smoke = subparsers.add_parser("smoke", help="Run the admission scenarios once")
    smoke.add_argument("--ttl-wait", type=float, default=2.5, help="Seconds to wait for entries to expire")

    args = parser.parse_args()

    if args.command == "load":
        stats = asyncio.run(run_load(args.url, args.client_id, args.concurrent, args.total, args.ramp))
        summary = summarize(stats)
        print(json.dumps(summary, indent=2))
        sys.exit(0 if summary["errors"] == 0 else 1)
    elif args.command == "smoke":
        results = asyncio.run(run_smoke(args.url, ttl_wait=args.ttl_wait))
        for name, passed, detail in results:
            print(f"{'PASS' if passed else 'FAIL'}  {name} ({detail})")
        passed_count = sum(1 for _, passed, _ in results if passed)
        print(f"{passed_count}/{len(results)} checks passed")
        sys.exit(0 if passed_count == len(results) else 1)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
