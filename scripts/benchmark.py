"""HTTP benchmark for the comment API, cached vs uncached list reads."""
import asyncio
import argparse
import time
import statistics
import httpx

BASE_URL = "http://localhost:8000"

LIST_PATH = "/api/v1/comments"


async def _timed_get(client: httpx.AsyncClient, path: str) -> tuple[float, httpx.Response]:
    start = time.perf_counter()
    resp = await client.get(f"{BASE_URL}{path}")
    return (time.perf_counter() - start) * 1000, resp


async def _invalidate(client: httpx.AsyncClient) -> None:
    """Force a miss on the next list read by writing through the API."""
    resp = await client.post(
        f"{BASE_URL}{LIST_PATH}",
        json={"post_id": 1, "user_id": 1, "content": "benchmark invalidation"},
    )
    resp.raise_for_status()
    await client.delete(f"{BASE_URL}{LIST_PATH}/{resp.json()['id']}")


def _summarise(name: str, times: list[float], queries: list[int], statuses: list[str]) -> dict:
    ordered = sorted(times)
    return {
        "name": name,
        "avg_ms": round(statistics.mean(times), 2),
        "p50_ms": round(ordered[len(ordered) // 2], 2),
        "p95_ms": round(ordered[int(len(ordered) * 0.95)], 2),
        "queries": round(statistics.mean(queries), 1) if queries else "N/A",
        "hits": statuses.count("HIT"),
        "iterations": len(times),
    }


async def benchmark_list(client: httpx.AsyncClient, iterations: int, cold: bool) -> dict:
    times: list[float] = []
    queries: list[int] = []
    statuses: list[str] = []

    # Warm the cache once so the hot run starts from a HIT.
    await client.get(f"{BASE_URL}{LIST_PATH}")

    for _ in range(iterations):
        if cold:
            await _invalidate(client)
        elapsed, resp = await _timed_get(client, LIST_PATH)
        if resp.status_code != 200:
            continue
        times.append(elapsed)
        statuses.append(resp.headers.get("X-Cache", "?"))
        qc = resp.headers.get("X-Query-Count")
        if qc is not None:
            queries.append(int(qc))

    name = "GET /api/v1/comments (miss)" if cold else "GET /api/v1/comments (hit)"
    if not times:
        return {"name": name, "error": f"All {iterations} requests failed"}
    return _summarise(name, times, queries, statuses)


async def run_benchmark(iterations: int = 50):
    print("=" * 80)
    print(f"Comment API Benchmark - {iterations} iterations per scenario")
    print(f"Target: {BASE_URL}")
    print("=" * 80)

    async with httpx.AsyncClient() as client:
        try:
            resp = await client.get(f"{BASE_URL}/health")
            print(f"Health: {resp.json()}")
        except httpx.HTTPError as e:
            print(f"ERROR: Cannot connect to {BASE_URL} - {e}")
            return

        print()
        print(f"{'Scenario':<36} {'Avg':>9} {'P50':>9} {'P95':>9} {'Queries':>8} {'Hits':>5}")
        print("-" * 80)

        for cold in (True, False):
            result = await benchmark_list(client, iterations, cold)
            if "error" in result:
                print(f"{result['name']:<36} {'ERROR':>9}")
                continue
            print(
                f"{result['name']:<36} "
                f"{result['avg_ms']:>7.1f}ms "
                f"{result['p50_ms']:>7.1f}ms "
                f"{result['p95_ms']:>7.1f}ms "
                f"{str(result['queries']):>8} "
                f"{result['hits']:>5}"
            )

        print("-" * 80)
        print("\nBenchmark complete.")


def main():
    global BASE_URL
    parser = argparse.ArgumentParser(description="Benchmark the comment list cache")
    parser.add_argument("-n", "--iterations", type=int, default=50, help="Iterations per scenario")
    parser.add_argument("--base-url", default=BASE_URL, help="API base URL")
    args = parser.parse_args()

    BASE_URL = args.base_url
    asyncio.run(run_benchmark(args.iterations))


if __name__ == "__main__":
    main()
