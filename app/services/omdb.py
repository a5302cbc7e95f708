"""Client for the OMDb API, the secondary metadata catalog."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import Settings
from ..errors import CatalogRequestError
from ..models import AttributeBag

PROVIDER = "OMDb"


class OMDBClient:
    """Looks titles up on OMDb by IMDb id or by exact title."""

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        if not settings.omdb_api_key:
            raise ValueError("OMDb API key is required when initialising OMDBClient")
        self._settings = settings
        self._client = http_client
        self._logger = logger or logging.getLogger(__name__)

    async def by_imdb_id(self, imdb_id: str) -> AttributeBag:
        return await self._fetch({"i": imdb_id})

    async def by_title(self, title: str) -> AttributeBag:
        return await self._fetch({"t": title})

    async def _fetch(self, params: dict[str, Any]) -> AttributeBag:
        query = {**params, "apikey": self._settings.omdb_api_key}
        lookup = ", ".join(f"{key}={value}" for key, value in params.items())
        try:
            response = await self._client.get(str(self._settings.omdb_api_url), params=query)
        except httpx.HTTPError as exc:
            self._logger.error("Failed to make request to OMDb (%s): %s", lookup, exc)
            raise CatalogRequestError(PROVIDER, f"request failed: {exc}") from exc

        if not response.is_success:
            self._logger.error(
                "OMDb request (%s) failed with status code %s", lookup, response.status_code
            )
            raise CatalogRequestError(
                PROVIDER,
                f"request failed with status code {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as exc:
            self._logger.error("Unexpected non-JSON OMDb response for %s", lookup)
            raise CatalogRequestError(PROVIDER, "invalid JSON response") from exc
        if not isinstance(data, dict):
            raise CatalogRequestError(PROVIDER, "unexpected response structure")

        # OMDb reports lookup misses with HTTP 200 and Response=False.
        if str(data.get("Response", "True")).lower() == "false":
            message = data.get("Error") or "movie not found or other issue"
            self._logger.warning("OMDb API error for %s: %s", lookup, message)
            raise CatalogRequestError(PROVIDER, str(message))
        return data
