"""
Diagnostics tests - health, metrics, diagnostic response headers and CORS.
"""
import pytest
from httpx import AsyncClient


async def _post(client: AsyncClient, **fields) -> dict:
    payload = {"post_id": 1, "user_id": 1, "content": "hello"}
    payload.update(fields)
    resp = await client.post("/api/v1/comments", json=payload)
    assert resp.status_code == 201
    return resp.json()


@pytest.mark.asyncio
async def test_health(async_client: AsyncClient):
    resp = await async_client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["store"] is True
    assert data["cache"] is True


@pytest.mark.asyncio
async def test_health_reports_missing_cache(async_client: AsyncClient):
    from comment_api.cache import cache

    cache._redis = None
    resp = await async_client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["cache"] is False


@pytest.mark.asyncio
async def test_metrics_counts_and_cache_info(async_client: AsyncClient):
    root = await _post(async_client)
    await _post(async_client, parent_id=root["id"])
    await _post(async_client)
    await async_client.get("/api/v1/comments")
    await async_client.get("/api/v1/comments")

    resp = await async_client.get("/api/v1/metrics")
    assert resp.status_code == 200
    data = resp.json()
    assert data["total_comments"] == 3
    assert data["replies"] == 1
    assert data["root_comments"] == 2
    assert data["cache_info"]["hits"] == 1
    assert data["cache_info"]["misses"] == 1
    assert data["cache_info"]["hit_rate"] == 50.0


@pytest.mark.asyncio
async def test_timing_headers_present(async_client: AsyncClient):
    resp = await async_client.get("/health")
    assert "x-response-time-ms" in resp.headers
    assert "x-query-count" in resp.headers
    assert "x-cache" not in resp.headers


@pytest.mark.asyncio
async def test_query_count_for_single_read(async_client: AsyncClient):
    created = await _post(async_client)
    resp = await async_client.get(f"/api/v1/comments/{created['id']}")
    assert resp.headers["x-query-count"] == "1"


@pytest.mark.asyncio
async def test_cors_no_credentials_with_wildcard_origin(async_client: AsyncClient):
    """
    When allow_origins=["*"], the response must NOT include
    Access-Control-Allow-Credentials: true, per the CORS specification.
    """
    resp = await async_client.options(
        "/api/v1/comments",
        headers={
            "Origin": "https://example.com",
            "Access-Control-Request-Method": "GET",
        },
    )
    cred_header = resp.headers.get("access-control-allow-credentials", "").lower()
    assert cred_header != "true"
