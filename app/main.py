"""Entry point for the FastAPI-powered watchlist service."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, Query, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, settings as default_settings
from .errors import ReelmarkError
from .models import MarkWatchedRequest, ShareRequest, WatchlistItemCreate
from .services.export import ExportFormat, export_watchlist
from .services.metadata import MetadataService, normalize_content_type
from .services.omdb import OMDBClient
from .services.sharing import ShareRegistry
from .services.stats import compute_stats
from .services.tmdb import TMDBClient
from .services.watchlist import WatchlistStore
from .utils import slugify

logging.basicConfig(level=default_settings.log_level)
logger = logging.getLogger(__name__)


def build_lifespan(settings: Settings):
    @asynccontextmanager
    async def lifespan(fastapi_app: FastAPI):
        exit_stack = AsyncExitStack()
        timeout = httpx.Timeout(settings.request_timeout_seconds)

        tmdb: TMDBClient | None = None
        if settings.tmdb_api_key:
            tmdb_http = await exit_stack.enter_async_context(
                httpx.AsyncClient(base_url=str(settings.tmdb_api_url), timeout=timeout)
            )
            tmdb = TMDBClient(settings, tmdb_http)
        else:
            logger.warning("TMDB_API_KEY is not set; TMDB lookups are disabled")

        omdb: OMDBClient | None = None
        if settings.omdb_api_key:
            omdb_http = await exit_stack.enter_async_context(
                httpx.AsyncClient(timeout=timeout)
            )
            omdb = OMDBClient(settings, omdb_http)
        else:
            logger.warning("OMDB_API_KEY is not set; OMDb lookups are disabled")

        store = WatchlistStore(settings.data_dir)
        fastapi_app.state.watchlist_store = store
        fastapi_app.state.share_registry = ShareRegistry(store)
        fastapi_app.state.metadata_service = MetadataService(tmdb, omdb)

        try:
            yield
        finally:  # pragma: no cover - teardown path exercised at runtime
            await exit_stack.aclose()

    return lifespan


def create_app(settings: Settings | None = None) -> FastAPI:
    resolved = settings or default_settings
    fastapi_app = FastAPI(
        title=resolved.app_name,
        description="Movie and TV metadata with personal watchlists",
        version="1.0.0",
        lifespan=build_lifespan(resolved),
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def _state(fastapi_app: FastAPI, name: str, expected: type) -> Any:
    service = getattr(fastapi_app.state, name, None)
    if not isinstance(service, expected):
        raise RuntimeError(f"{expected.__name__} not initialised")
    return service


def get_watchlist_store(fastapi_app: FastAPI) -> WatchlistStore:
    return _state(fastapi_app, "watchlist_store", WatchlistStore)


def get_share_registry(fastapi_app: FastAPI) -> ShareRegistry:
    return _state(fastapi_app, "share_registry", ShareRegistry)


def get_metadata_service(fastapi_app: FastAPI) -> MetadataService:
    return _state(fastapi_app, "metadata_service", MetadataService)


def register_routes(fastapi_app: FastAPI) -> None:
    @fastapi_app.exception_handler(ReelmarkError)
    async def reelmark_error_handler(request: Request, exc: ReelmarkError) -> JSONResponse:
        log = logger.error if exc.status_code >= 500 else logger.warning
        log("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/api/movie/{movie_id}")
    async def movie_details(
        movie_id: int, content_type: str | None = Query(default=None, alias="type")
    ) -> dict[str, Any]:
        service = get_metadata_service(fastapi_app)
        combined = await service.details(movie_id, normalize_content_type(content_type))
        return combined.model_dump(mode="json")

    @fastapi_app.get("/api/lookup")
    async def lookup(
        title: str = "", content_type: str | None = Query(default=None, alias="type")
    ) -> dict[str, Any]:
        service = get_metadata_service(fastapi_app)
        combined = await service.lookup_title(title, normalize_content_type(content_type))
        return combined.model_dump(mode="json")

    @fastapi_app.get("/api/movie/{movie_id}/credits")
    async def movie_credits(
        movie_id: int, content_type: str | None = Query(default=None, alias="type")
    ) -> dict[str, Any]:
        service = get_metadata_service(fastapi_app)
        return await service.credits(movie_id, normalize_content_type(content_type))

    @fastapi_app.get("/api/trending")
    async def trending(
        content_type: str | None = Query(default=None, alias="type"),
        page: int = Query(default=1, ge=1),
    ) -> list[dict[str, Any]]:
        service = get_metadata_service(fastapi_app)
        return await service.trending(normalize_content_type(content_type), page=page)

    @fastapi_app.get("/api/genres")
    async def genres(
        content_type: str | None = Query(default=None, alias="type"),
    ) -> list[dict[str, Any]]:
        service = get_metadata_service(fastapi_app)
        return await service.genres(normalize_content_type(content_type))

    @fastapi_app.get("/api/search")
    async def search(
        q: str = "",
        content_type: str | None = Query(default=None, alias="type"),
        page: int = Query(default=1, ge=1),
    ) -> list[dict[str, Any]]:
        service = get_metadata_service(fastapi_app)
        return await service.search(q, normalize_content_type(content_type), page=page)

    @fastapi_app.get("/api/discover")
    async def discover(
        request: Request,
        content_type: str | None = Query(default=None, alias="type"),
        page: int = Query(default=1, ge=1),
    ) -> list[dict[str, Any]]:
        service = get_metadata_service(fastapi_app)
        filters = {
            key: value
            for key, value in request.query_params.items()
            if key in {"genre", "year", "rating", "runtime", "sort_by"}
        }
        return await service.discover(
            normalize_content_type(content_type), filters, page=page
        )

    @fastapi_app.get("/api/watchlist/{user_id}")
    async def get_watchlist(user_id: str) -> dict[str, Any]:
        watchlist = await get_watchlist_store(fastapi_app).get(user_id)
        return watchlist.model_dump(mode="json")

    @fastapi_app.post("/api/watchlist/{user_id}", status_code=status.HTTP_201_CREATED)
    async def add_to_watchlist(user_id: str, payload: WatchlistItemCreate) -> dict[str, Any]:
        item = await get_watchlist_store(fastapi_app).add(user_id, payload)
        return {
            "status": "success",
            "message": "Movie added to watchlist",
            "item": item.model_dump(mode="json"),
        }

    @fastapi_app.post(
        "/api/watchlist/{user_id}/catalog/{movie_id}", status_code=status.HTTP_201_CREATED
    )
    async def add_from_catalog(
        user_id: str,
        movie_id: int,
        content_type: str | None = Query(default=None, alias="type"),
    ) -> dict[str, Any]:
        combined = await get_metadata_service(fastapi_app).details(
            movie_id, normalize_content_type(content_type)
        )
        item = await get_watchlist_store(fastapi_app).add(
            user_id, combined.details.to_watchlist_item()
        )
        return {
            "status": "success",
            "message": "Movie added to watchlist",
            "item": item.model_dump(mode="json"),
        }

    @fastapi_app.get("/api/watchlist/{user_id}/stats")
    async def watchlist_stats(user_id: str) -> dict[str, Any]:
        stats = await get_watchlist_store(fastapi_app).stats(user_id)
        return stats.model_dump(mode="json")

    @fastapi_app.get("/api/watchlist/{user_id}/export")
    async def export(
        user_id: str, format_name: str | None = Query(default=None, alias="format")
    ) -> Response:
        export_format = ExportFormat.parse(format_name)
        watchlist = await get_watchlist_store(fastapi_app).get(user_id)
        body, media_type, extension = export_watchlist(
            export_format, watchlist, compute_stats(watchlist)
        )
        filename = f"watchlist_{slugify(user_id)}.{extension}"
        return Response(
            content=body,
            media_type=media_type,
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    @fastapi_app.post("/api/watchlist/{user_id}/share")
    async def share_watchlist(user_id: str, payload: ShareRequest) -> dict[str, Any]:
        shared = await get_share_registry(fastapi_app).create(
            user_id, payload.title, payload.description, payload.is_public
        )
        return shared.model_dump(mode="json")

    @fastapi_app.delete("/api/watchlist/{user_id}/{item_id}")
    async def remove_from_watchlist(user_id: str, item_id: str) -> dict[str, str]:
        await get_watchlist_store(fastapi_app).remove(user_id, item_id)
        return {"status": "success", "message": "Movie removed from watchlist"}

    @fastapi_app.put("/api/watchlist/{user_id}/{item_id}/watched")
    async def mark_watched(
        user_id: str, item_id: str, payload: MarkWatchedRequest | None = None
    ) -> dict[str, Any]:
        notes = payload.notes if payload is not None else ""
        item = await get_watchlist_store(fastapi_app).mark_watched(user_id, item_id, notes)
        return {
            "status": "success",
            "message": "Movie marked as watched",
            "item": item.model_dump(mode="json"),
        }

    @fastapi_app.put("/api/watchlist/{user_id}/{item_id}/unwatched")
    async def mark_unwatched(user_id: str, item_id: str) -> dict[str, Any]:
        item = await get_watchlist_store(fastapi_app).mark_unwatched(user_id, item_id)
        return {
            "status": "success",
            "message": "Movie marked as unwatched",
            "item": item.model_dump(mode="json"),
        }

    @fastapi_app.get("/api/shared/{share_token}")
    async def shared_watchlist(share_token: str) -> dict[str, Any]:
        shared = await get_share_registry(fastapi_app).resolve(share_token)
        return shared.model_dump(mode="json")


app = create_app()
