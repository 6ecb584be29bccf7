"""
Health Check Router - Award Assessment Platform
app/routers/health.py

Liveness of Snowflake and Redis plus leaderboard cache statistics.
"""
from datetime import datetime, timezone
from typing import Dict, Optional

import redis
import structlog
from fastapi import APIRouter, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from snowflake.connector.errors import Error as SnowflakeError

from app.config import settings
from app.services.cache import RANKINGS_PREFIX, get_cache
from app.services.snowflake import get_snowflake_connection

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    version: str
    dependencies: Dict[str, str]


class DependencyHealth(BaseModel):
    service: str
    status: str
    is_healthy: bool
    timestamp: datetime


class LeaderboardCacheStats(BaseModel):
    redis_connected: bool
    cached_leaderboards: Optional[int] = None
    ttl_seconds: int = settings.CACHE_TTL_RANKINGS
    memory_used: Optional[str] = None
    error: Optional[str] = None


def _short(error: Exception) -> str:
    message = str(error)
    return message[:100] + "..." if len(message) > 100 else message


async def check_snowflake() -> str:
    missing = [
        name for name, value in (
            ("SNOWFLAKE_ACCOUNT", settings.SNOWFLAKE_ACCOUNT),
            ("SNOWFLAKE_USER", settings.SNOWFLAKE_USER),
            ("SNOWFLAKE_PASSWORD", settings.SNOWFLAKE_PASSWORD),
        )
        if not value
    ]
    if missing:
        return f"unhealthy: Missing settings: {', '.join(missing)}"

    try:
        conn = get_snowflake_connection()
        try:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) FROM ASSESSMENT_SESSIONS")
            sessions = cursor.fetchone()[0]
            cursor.close()
        finally:
            conn.close()
        return f"healthy ({sessions} sessions)"
    except SnowflakeError as e:
        logger.warning("snowflake_health_failed", error=_short(e))
        return f"unhealthy: {_short(e)}"


async def check_redis() -> str:
    cache = get_cache()
    if cache is None:
        return "unhealthy: Redis not configured or unreachable"
    try:
        cache.client.ping()
        return "healthy"
    except redis.RedisError as e:
        logger.warning("redis_health_failed", error=_short(e))
        return f"unhealthy: {_short(e)}"


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={
        200: {"description": "All dependencies healthy"},
        503: {"description": "One or more dependencies unhealthy"},
    },
    summary="Health check",
)
async def health_check():
    dependencies = {
        "snowflake": await check_snowflake(),
        "redis": await check_redis(),
    }
    all_healthy = all(v.startswith("healthy") for v in dependencies.values())

    response = HealthResponse(
        status="healthy" if all_healthy else "degraded",
        timestamp=datetime.now(timezone.utc),
        version=settings.APP_VERSION,
        dependencies=dependencies,
    )
    if all_healthy:
        return response
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=response.model_dump(mode="json"),
    )


@router.get(
    "/health/cache",
    response_model=LeaderboardCacheStats,
    summary="Leaderboard cache statistics",
)
async def leaderboard_cache_stats() -> LeaderboardCacheStats:
    cache = get_cache()
    if cache is None:
        return LeaderboardCacheStats(redis_connected=False, error="Redis not configured or unreachable")
    try:
        cached = sum(1 for _ in cache.client.scan_iter(match=f"{RANKINGS_PREFIX}:*"))
        info = cache.client.info("memory")
        return LeaderboardCacheStats(
            redis_connected=True,
            cached_leaderboards=cached,
            memory_used=info.get("used_memory_human"),
        )
    except redis.RedisError as e:
        return LeaderboardCacheStats(redis_connected=False, error=_short(e))


@router.get(
    "/health/{dependency}",
    response_model=DependencyHealth,
    responses={404: {"description": "Unknown dependency"}},
    summary="Check one dependency",
)
async def dependency_health(dependency: str) -> DependencyHealth:
    checks = {"snowflake": check_snowflake, "redis": check_redis}
    if dependency not in checks:
        raise HTTPException(status_code=404, detail=f"Unknown dependency '{dependency}'")
    result = await checks[dependency]()
    return DependencyHealth(
        service=dependency,
        status=result,
        is_healthy=result.startswith("healthy"),
        timestamp=datetime.now(timezone.utc),
    )
