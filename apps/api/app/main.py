import logging
from contextlib import asynccontextmanager

from dotenv import find_dotenv, load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from pydantic_settings import BaseSettings, SettingsConfigDict

from cinetrack_cache.lease import RedisRefreshLease
from cinetrack_cache.refresh_queue import RefreshQueue
from cinetrack_catalog.response_cache import CatalogResponseCache
from cinetrack_catalog.tmdb_client import TMDBClient
from cinetrack_core.config import (
    CATALOG_CACHE_TTL_SEC,
    DEFAULT_RECOMMENDATION_LIMIT,
    RECOMMENDATION_TTL,
    REFRESH_LEASE_TTL_SEC,
)
from app.infrastructure.cache.redis_infra import make_redis_clients
from .routers import all_routers

log = logging.getLogger(__name__)


class Settings(BaseSettings):
    app_name: str = "Cinetrack Insights API"
    # credentials
    tmdb_api_key: str | None = None
    supabase_url: str | None = None
    supabase_api_key: str | None = None
    # redis
    redis_url: str | None = None
    use_redis_catalog_cache: bool = False
    catalog_cache_ttl_sec: int = CATALOG_CACHE_TTL_SEC
    use_redis_refresh_lease: bool = False
    refresh_lease_ttl_sec: int = REFRESH_LEASE_TTL_SEC
    # bundle cache
    recommendation_ttl_sec: int = int(RECOMMENDATION_TTL.total_seconds())
    recommendation_limit: int = DEFAULT_RECOMMENDATION_LIMIT
    # env config
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


def _check_required(settings: Settings) -> None:
    required = {
        "TMDB_API_KEY": settings.tmdb_api_key,
        "SUPABASE_URL": settings.supabase_url,
        "SUPABASE_API_KEY": settings.supabase_api_key,
    }
    missing = [name for name, value in required.items() if not (value and value.strip())]
    if missing:
        raise RuntimeError("Missing settings in environment: " + ", ".join(sorted(missing)))
    if (settings.use_redis_catalog_cache or settings.use_redis_refresh_lease) and not settings.redis_url:
        raise RuntimeError("REDIS_URL is required when a Redis feature is enabled")


@asynccontextmanager
async def lifespan(app: FastAPI):
    load_dotenv(find_dotenv(), override=False)

    settings = Settings()
    _check_required(settings)
    app.state.settings = settings

    redis_clients = None
    if settings.use_redis_catalog_cache or settings.use_redis_refresh_lease:
        redis_clients = make_redis_clients(settings.redis_url)

    response_cache = None
    if settings.use_redis_catalog_cache:
        response_cache = CatalogResponseCache(
            client=redis_clients.blobs, ttl_sec=settings.catalog_cache_ttl_sec
        )
    app.state.catalog = TMDBClient(settings.tmdb_api_key, cache=response_cache)

    lease = None
    if settings.use_redis_refresh_lease:
        lease = RedisRefreshLease(
            client=redis_clients.text, ttl_sec=settings.refresh_lease_ttl_sec
        )
    app.state.refresh_queue = RefreshQueue(lease=lease)
    log.info(
        "startup: catalog cache=%s, refresh lease=%s",
        settings.use_redis_catalog_cache,
        settings.use_redis_refresh_lease,
    )

    try:
        yield
    finally:
        await app.state.refresh_queue.shutdown()
        await app.state.catalog.aclose()
        if redis_clients is not None:
            await redis_clients.aclose()


app = FastAPI(title="Cinetrack Insights API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema
    schema = get_openapi(
        title=app.title,
        version="0.1.0",
        description="Recommendations, behavior profile and stats over a user's library",
        routes=app.routes,
    )
    components = schema.setdefault("components", {})
    components.setdefault("securitySchemes", {})["BearerAuth"] = {
        "type": "http",
        "scheme": "bearer",
        "bearerFormat": "JWT",
    }
    for path_item in schema.get("paths", {}).values():
        for operation in path_item.values():
            operation.setdefault("security", []).append({"BearerAuth": []})
    app.openapi_schema = schema
    return app.openapi_schema


app.openapi = _custom_openapi


@app.get("/health")
def health():
    s = getattr(app.state, "settings", None)
    return {"status": "ok", "service": s.app_name if s else app.title}


for r in all_routers:
    app.include_router(r)
