"""Aggregates TMDB and OMDb metadata behind one fallback policy."""

from __future__ import annotations

import logging
from typing import Awaitable, Mapping, TypeVar

from ..errors import CatalogRequestError, InvalidInputError, UpstreamUnavailableError
from ..models import AttributeBag, CombinedDetails, ContentType, MediaDetails
from .omdb import OMDBClient
from .tmdb import TMDBClient

T = TypeVar("T")

_CONTENT_TYPE_ALIASES: dict[str, ContentType] = {
    "movie": "movie",
    "movies": "movie",
    "tv": "tv",
    "show": "tv",
    "shows": "tv",
    "series": "tv",
}


def normalize_content_type(value: str | None) -> ContentType:
    """Return ``movie`` or ``tv``; blank values default to ``movie``."""

    normalized = (value or "").strip().lower()
    if not normalized:
        return "movie"
    try:
        return _CONTENT_TYPE_ALIASES[normalized]
    except KeyError as exc:
        raise InvalidInputError(
            "Invalid content type. Use 'movie' or 'tv'", details={"type": value}
        ) from exc


class MetadataService:
    """Prefers TMDB data and lets OMDb fill in extra fields.

    A failing catalog is logged and treated as having no data; a request
    fails only when neither catalog returns anything.
    """

    def __init__(
        self,
        tmdb: TMDBClient | None,
        omdb: OMDBClient | None,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._tmdb = tmdb
        self._omdb = omdb
        self._logger = logger or logging.getLogger(__name__)

    async def details(
        self, tmdb_id: int, content_type: ContentType = "movie", *, title: str = ""
    ) -> CombinedDetails:
        """Return merged details for a TMDB id, falling back to OMDb."""

        tmdb_data: AttributeBag | None = None
        if self._tmdb is not None:
            tmdb_data = await self._attempt(
                self._tmdb.details(tmdb_id, content_type),
                f"TMDB {content_type} {tmdb_id}",
            )

        primary = MediaDetails.from_tmdb(tmdb_data or {}, content_type)
        omdb_data = await self._secondary_lookup(primary.imdb_id, primary.title or title)

        if tmdb_data is None and omdb_data is None:
            raise UpstreamUnavailableError(
                f"Could not retrieve {content_type} {tmdb_id} from either TMDB or OMDb",
                details={"id": tmdb_id, "type": content_type},
            )

        if primary.tmdb_id is None:
            primary = primary.model_copy(update={"tmdb_id": tmdb_id})
        merged = primary.merge_omdb(omdb_data) if omdb_data else primary
        self._warn_on_missing_fields(tmdb_data, omdb_data, tmdb_id)
        return CombinedDetails(tmdb=tmdb_data, omdb=omdb_data, details=merged)

    async def lookup_title(
        self, title: str, content_type: ContentType = "movie"
    ) -> CombinedDetails:
        """Resolve a title through TMDB search and OMDb's exact-title lookup."""

        query = title.strip()
        if not query:
            raise InvalidInputError("Title is required")

        tmdb_data: AttributeBag | None = None
        if self._tmdb is not None:
            results = await self._attempt(
                self._tmdb.search(query, content_type), f"TMDB search '{query}'"
            )
            if results:
                tmdb_data = results[0]

        primary = MediaDetails.from_tmdb(tmdb_data or {}, content_type)
        omdb_data = await self._secondary_lookup(None, primary.title or query)
        if tmdb_data is None and omdb_data is None:
            raise UpstreamUnavailableError(
                f"Could not find '{query}' in either TMDB or OMDb",
                details={"title": query, "type": content_type},
            )
        merged = primary.merge_omdb(omdb_data) if omdb_data else primary
        return CombinedDetails(tmdb=tmdb_data, omdb=omdb_data, details=merged)

    async def credits(self, tmdb_id: int, content_type: ContentType = "movie") -> AttributeBag:
        return await self._primary(self._require_tmdb().credits(tmdb_id, content_type))

    async def trending(
        self, content_type: ContentType = "movie", *, page: int = 1
    ) -> list[AttributeBag]:
        return await self._primary(self._require_tmdb().trending(content_type, page=page))

    async def genres(self, content_type: ContentType = "movie") -> list[AttributeBag]:
        return await self._primary(self._require_tmdb().genres(content_type))

    async def search(
        self, query: str, content_type: ContentType = "movie", *, page: int = 1
    ) -> list[AttributeBag]:
        if not query.strip():
            raise InvalidInputError("Search query is required")
        return await self._primary(
            self._require_tmdb().search(query.strip(), content_type, page=page)
        )

    async def discover(
        self,
        content_type: ContentType = "movie",
        filters: Mapping[str, str] | None = None,
        *,
        page: int = 1,
    ) -> list[AttributeBag]:
        return await self._primary(
            self._require_tmdb().discover(content_type, filters, page=page)
        )

    async def _secondary_lookup(
        self, imdb_id: str | None, title: str
    ) -> AttributeBag | None:
        if self._omdb is None:
            return None
        if imdb_id:
            data = await self._attempt(self._omdb.by_imdb_id(imdb_id), f"OMDb id {imdb_id}")
            if data is not None:
                return data
        if title:
            return await self._attempt(self._omdb.by_title(title), f"OMDb title '{title}'")
        return None

    async def _attempt(self, call: Awaitable[T], label: str) -> T | None:
        try:
            return await call
        except CatalogRequestError as exc:
            self._logger.warning("Error fetching %s: %s", label, exc)
            return None

    async def _primary(self, call: Awaitable[T]) -> T:
        try:
            return await call
        except CatalogRequestError as exc:
            raise UpstreamUnavailableError(str(exc)) from exc

    def _require_tmdb(self) -> TMDBClient:
        if self._tmdb is None:
            raise UpstreamUnavailableError("TMDB is not configured")
        return self._tmdb

    def _warn_on_missing_fields(
        self,
        tmdb_data: AttributeBag | None,
        omdb_data: AttributeBag | None,
        tmdb_id: int,
    ) -> None:
        problems: list[str] = []
        if tmdb_data is not None:
            if not (tmdb_data.get("title") or tmdb_data.get("name")):
                problems.append("TMDB data missing 'title'")
            if "overview" not in tmdb_data:
                problems.append("TMDB data missing 'overview'")
        if omdb_data is not None:
            if "Title" not in omdb_data:
                problems.append("OMDb data missing 'Title'")
            if "imdbRating" not in omdb_data:
                problems.append("OMDb data missing 'imdbRating'")
        if problems:
            self._logger.warning(
                "Validation warnings for %s: %s", tmdb_id, "; ".join(problems)
            )
