"""
City Explorer - Main FastAPI Application
Location, weather, events, movies and business search, served from a
persistent cache in front of the upstream providers.
"""
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from city_explorer import schemas
from city_explorer.cache import (
    CacheError,
    CacheKey,
    CacheManager,
    FetchFn,
    KeyKindMismatch,
    NoDataAvailable,
    RowStore,
    UpstreamUnavailable,
    build_registry,
)
from city_explorer.cache.freshness import Clock, now_millis
from city_explorer.providers import fetchers
from config.settings import settings

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("city_explorer.main")

APP_NAME = "City Explorer"
APP_VERSION = "0.1.0"

# HTTP status per resolution failure; anything unlisted is a 500
ERROR_STATUS = {
    NoDataAvailable: 404,
    UpstreamUnavailable: 502,
    KeyKindMismatch: 422,
}


def create_app(database_url: Optional[str] = None, clock: Clock = now_millis) -> FastAPI:
    """
    Build the application.

    Args:
        database_url: Row store URL (defaults to settings.database_url)
        clock: Epoch-millisecond clock used for freshness decisions
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store = RowStore(database_url or settings.database_url, echo=settings.database_echo)
        await store.open()
        app.state.store = store
        app.state.cache = CacheManager(
            store,
            registry=build_registry(settings.ttl_overrides_seconds),
            clock=clock,
            coalesce_misses=settings.coalesce_misses,
        )
        logger.info(f"{APP_NAME} backend is up")
        try:
            yield
        finally:
            await store.close()

    app = FastAPI(
        title=APP_NAME,
        description="Cached city data from geocoding, weather, events, movie and business providers",
        version=APP_VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.exception_handler(CacheError)
    async def cache_error_handler(request: Request, exc: CacheError):
        """Map resolution failures to JSON error responses."""
        status = next(
            (code for kind, code in ERROR_STATUS.items() if isinstance(exc, kind)), 500
        )
        if status >= 500:
            logger.error(f"{request.url.path} failed: {exc.code}: {exc.message}")
        body = schemas.ErrorResponse(code=exc.code, message=exc.message)
        return JSONResponse(status_code=status, content=body.model_dump())

    _register_routes(app)
    return app


def get_cache(request: Request) -> CacheManager:
    """Cache manager owned by the running application."""
    return request.app.state.cache


async def _resolve_list(
    cache: CacheManager, resource_type: str, location_id: int, fetch_fn: FetchFn
) -> list:
    """Resolve a location-scoped resource; no upstream data is an empty list."""
    try:
        rows = await cache.resolve(resource_type, CacheKey.location(location_id), fetch_fn)
    except NoDataAvailable:
        return []
    return [row.to_dict() for row in rows]


def _register_routes(app: FastAPI) -> None:

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "ok"}

    @app.get("/version")
    def version_info():
        """Version information endpoint."""
        return {"name": APP_NAME, "version": APP_VERSION}

    @app.get("/cache/stats")
    def cache_stats(cache: CacheManager = Depends(get_cache)):
        """Get cache statistics."""
        return cache.get_stats()

    @app.get("/location", response_model=schemas.Location)
    async def get_location(
        data: str = Query(..., min_length=1, description="Free-text location search"),
        cache: CacheManager = Depends(get_cache),
    ):
        """Geocode a search string; the returned id keys the other endpoints."""
        rows = await cache.resolve("locations", CacheKey.search(data), fetchers.location_fetcher(data))
        return rows[0].to_dict()

    @app.get("/weather", response_model=List[schemas.Weather])
    async def get_weather(
        id: int = Query(..., description="Location id from /location"),
        latitude: float = Query(...),
        longitude: float = Query(...),
        cache: CacheManager = Depends(get_cache),
    ):
        """Daily forecast for a location."""
        return await _resolve_list(cache, "weather", id, fetchers.weather_fetcher(latitude, longitude))

    @app.get("/events", response_model=List[schemas.Event])
    async def get_events(
        id: int = Query(..., description="Location id from /location"),
        latitude: float = Query(...),
        longitude: float = Query(...),
        cache: CacheManager = Depends(get_cache),
    ):
        """Events near a location."""
        return await _resolve_list(cache, "events", id, fetchers.events_fetcher(latitude, longitude))

    @app.get("/movies", response_model=List[schemas.Movie])
    async def get_movies(
        id: int = Query(..., description="Location id from /location"),
        search_query: str = Query(..., min_length=1, description="Location search string"),
        cache: CacheManager = Depends(get_cache),
    ):
        """Movies matching the location's name."""
        return await _resolve_list(cache, "movies", id, fetchers.movies_fetcher(search_query))

    @app.get("/yelp", response_model=List[schemas.Yelp])
    async def get_yelp(
        id: int = Query(..., description="Location id from /location"),
        latitude: float = Query(...),
        longitude: float = Query(...),
        cache: CacheManager = Depends(get_cache),
    ):
        """Businesses near a location."""
        return await _resolve_list(cache, "yelp", id, fetchers.yelp_fetcher(latitude, longitude))


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.port)
