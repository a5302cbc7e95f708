"""Client for The Movie Database (TMDB), the primary metadata catalog."""

from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from ..config import Settings
from ..errors import CatalogRequestError
from ..models import AttributeBag, ContentType


PROVIDER = "TMDB"
DEFAULT_SORT = "popularity.desc"


class TMDBClient:
    """Thin wrapper around the TMDB v3 HTTP API.

    Every call returns the decoded JSON (or the list nested under it) and
    raises :class:`CatalogRequestError` on transport errors, timeouts,
    non-2xx responses and malformed payloads. Nothing is retried.
    """

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        if not settings.tmdb_api_key:
            raise ValueError("TMDB API key is required when initialising TMDBClient")
        self._settings = settings
        self._client = http_client
        self._logger = logger or logging.getLogger(__name__)

    async def movie_details(self, movie_id: int) -> AttributeBag:
        return await self._fetch(f"/movie/{movie_id}")

    async def tv_details(self, tv_id: int) -> AttributeBag:
        return await self._fetch(
            f"/tv/{tv_id}", params={"append_to_response": "external_ids"}
        )

    async def details(self, tmdb_id: int, content_type: ContentType) -> AttributeBag:
        if content_type == "tv":
            return await self.tv_details(tmdb_id)
        return await self.movie_details(tmdb_id)

    async def credits(self, tmdb_id: int, content_type: ContentType = "movie") -> AttributeBag:
        return await self._fetch(f"/{content_type}/{tmdb_id}/credits")

    async def trending(
        self, content_type: ContentType = "movie", *, page: int = 1
    ) -> list[AttributeBag]:
        data = await self._fetch(f"/trending/{content_type}/week", params={"page": page})
        return self._extract_list(data, "results", "trending")

    async def genres(self, content_type: ContentType = "movie") -> list[AttributeBag]:
        data = await self._fetch(f"/genre/{content_type}/list")
        return self._extract_list(data, "genres", "genres")

    async def search(
        self, query: str, content_type: ContentType = "movie", *, page: int = 1
    ) -> list[AttributeBag]:
        data = await self._fetch(
            f"/search/{content_type}",
            params={"query": query, "include_adult": "false", "page": page},
        )
        return self._extract_list(data, "results", "search")

    async def discover(
        self,
        content_type: ContentType = "movie",
        filters: Mapping[str, str] | None = None,
        *,
        page: int = 1,
    ) -> list[AttributeBag]:
        params = self.discover_params(content_type, filters or {})
        params["page"] = page
        data = await self._fetch(f"/discover/{content_type}", params=params)
        return self._extract_list(data, "results", "discover")

    @staticmethod
    def discover_params(
        content_type: ContentType, filters: Mapping[str, str]
    ) -> dict[str, Any]:
        """Translate user-facing discover filters into TMDB query parameters."""

        def selected(name: str) -> str | None:
            value = (filters.get(name) or "").strip()
            if not value or value.lower() == "all":
                return None
            return value

        params: dict[str, Any] = {"sort_by": selected("sort_by") or DEFAULT_SORT}
        genre = selected("genre")
        if genre:
            params["with_genres"] = genre
        year = selected("year")
        if year:
            if content_type == "tv":
                params["first_air_date_year"] = year
            else:
                params["primary_release_year"] = year
        rating = selected("rating")
        if rating:
            params["vote_average.gte"] = rating
        runtime = selected("runtime")
        if runtime:
            params["with_runtime.gte"] = runtime
        return params

    async def _fetch(
        self, path: str, *, params: Mapping[str, Any] | None = None
    ) -> dict[str, Any]:
        query: dict[str, Any] = {"api_key": self._settings.tmdb_api_key, "language": "en-US"}
        if params:
            query.update(params)
        try:
            response = await self._client.get(path, params=query)
        except httpx.HTTPError as exc:
            self._logger.error("Failed to make request to TMDB %s: %s", path, exc)
            raise CatalogRequestError(PROVIDER, f"request failed: {exc}") from exc

        if not response.is_success:
            self._logger.error(
                "TMDB request %s failed with status code %s", path, response.status_code
            )
            raise CatalogRequestError(
                PROVIDER,
                f"request failed with status code {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            self._logger.error("Unexpected non-JSON TMDB response for %s", path)
            raise CatalogRequestError(PROVIDER, "invalid JSON response") from exc
        if not isinstance(data, dict):
            raise CatalogRequestError(PROVIDER, "unexpected response structure")
        return data

    @staticmethod
    def _extract_list(data: dict[str, Any], key: str, operation: str) -> list[AttributeBag]:
        values = data.get(key)
        if not isinstance(values, list):
            raise CatalogRequestError(
                PROVIDER, f"could not find '{key}' array in {operation} response"
            )
        return [value for value in values if isinstance(value, dict)]
