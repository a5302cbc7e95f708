"""Pydantic models describing watchlists, shares and catalog metadata."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .utils import utcnow

ContentType = Literal["movie", "tv"]
AttributeBag = dict[str, Any]

GENRE_SEPARATOR = ", "


class WatchlistItemCreate(BaseModel):
    """Fields a caller supplies when adding a title to a watchlist."""

    movie_id: int = Field(gt=0)
    title: str = ""
    poster_path: str = ""
    release_date: str = ""
    genre: str = ""
    rating: float = 0.0
    overview: str = ""
    user_notes: str = ""


class WatchlistItem(BaseModel):
    """A single title tracked in a user's watchlist."""

    id: str
    movie_id: int
    title: str = ""
    poster_path: str = ""
    release_date: str = ""
    genre: str = ""
    rating: float = 0.0
    overview: str = ""
    is_watched: bool = False
    added_at: datetime
    watched_at: datetime | None = None
    user_notes: str = ""

    @model_validator(mode="after")
    def _check_watched_state(self) -> "WatchlistItem":
        """Reject items whose watched flag and watched date disagree."""

        if self.is_watched and self.watched_at is None:
            raise ValueError(f"Item {self.id} is watched but has no watched_at")
        if not self.is_watched and self.watched_at is not None:
            raise ValueError(f"Item {self.id} is unwatched but has a watched_at")
        return self

    def genre_names(self) -> list[str]:
        """Return the individual genre names stored in ``genre``."""

        names: list[str] = []
        for token in self.genre.split(GENRE_SEPARATOR):
            token = token.strip()
            if token:
                names.append(token)
        return names


class Watchlist(BaseModel):
    """One user's whole collection."""

    user_id: str
    items: list[WatchlistItem] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def empty(cls, user_id: str) -> "Watchlist":
        now = utcnow()
        return cls(user_id=user_id, items=[], created_at=now, updated_at=now)

    def find(self, item_id: str) -> int | None:
        """Return the index of ``item_id`` or ``None`` when it is absent."""

        for index, item in enumerate(self.items):
            if item.id == item_id:
                return index
        return None

    def contains_movie(self, movie_id: int) -> bool:
        return any(item.movie_id == movie_id for item in self.items)

    def touch(self) -> None:
        self.updated_at = utcnow()


class GenreCount(BaseModel):
    genre: str
    count: int


class WatchlistStats(BaseModel):
    """Aggregate counts derived from a watchlist snapshot."""

    total_items: int = 0
    watched_items: int = 0
    unwatched_items: int = 0
    average_rating: float = 0.0
    top_genres: list[GenreCount] = Field(default_factory=list)


class ShareRequest(BaseModel):
    title: str = ""
    description: str = ""
    is_public: bool = False


class MarkWatchedRequest(BaseModel):
    notes: str = ""


class ShareableWatchlist(BaseModel):
    """Immutable snapshot of a watchlist addressed by its share token."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str = ""
    items: list[WatchlistItem] = Field(default_factory=list)
    created_by: str
    created_at: datetime
    is_public: bool = False
    share_token: str


class MediaDetails(BaseModel):
    """Normalised view over the provider-specific attribute bags."""

    content_type: ContentType = "movie"
    tmdb_id: int | None = None
    imdb_id: str | None = None
    title: str | None = None
    overview: str | None = None
    poster_path: str | None = None
    release_date: str | None = None
    genres: list[str] = Field(default_factory=list)
    rating: float | None = None
    runtime: int | None = None

    director: str | None = None
    actors: str | None = None
    imdb_rating: float | None = None
    rated: str | None = None
    awards: str | None = None

    @classmethod
    def from_tmdb(cls, data: AttributeBag, content_type: ContentType) -> "MediaDetails":
        title = data.get("title") or data.get("name")
        release_date = data.get("release_date") or data.get("first_air_date")
        external = data.get("external_ids") or {}
        imdb_id = data.get("imdb_id") or (
            external.get("imdb_id") if isinstance(external, dict) else None
        )

        genres: list[str] = []
        for genre in data.get("genres") or []:
            if isinstance(genre, dict) and genre.get("name"):
                genres.append(str(genre["name"]))

        runtime = data.get("runtime")
        if runtime is None:
            episode_runtimes = data.get("episode_run_time") or []
            if isinstance(episode_runtimes, list) and episode_runtimes:
                runtime = episode_runtimes[0]

        return cls(
            content_type=content_type,
            tmdb_id=_parse_int(data.get("id")),
            imdb_id=str(imdb_id) if imdb_id else None,
            title=str(title) if title else None,
            overview=data.get("overview") or None,
            poster_path=data.get("poster_path") or None,
            release_date=str(release_date) if release_date else None,
            genres=genres,
            rating=_parse_float(data.get("vote_average")),
            runtime=_parse_int(runtime),
        )

    def merge_omdb(self, data: AttributeBag) -> "MediaDetails":
        """Fill gaps with OMDb fields; TMDB values always win."""

        update: dict[str, Any] = {}
        if not self.title and _present(data.get("Title")):
            update["title"] = data["Title"]
        if not self.overview and _present(data.get("Plot")):
            update["overview"] = data["Plot"]
        if not self.imdb_id and _present(data.get("imdbID")):
            update["imdb_id"] = data["imdbID"]
        if not self.poster_path and _present(data.get("Poster")):
            update["poster_path"] = data["Poster"]
        if not self.release_date:
            released = data.get("Released") or data.get("Year")
            if _present(released):
                update["release_date"] = released
        if not self.genres and _present(data.get("Genre")):
            update["genres"] = [
                name.strip() for name in str(data["Genre"]).split(",") if name.strip()
            ]
        if self.runtime is None and _present(data.get("Runtime")):
            update["runtime"] = _parse_int(data["Runtime"])

        imdb_rating = _parse_float(data.get("imdbRating"))
        if imdb_rating is not None:
            update["imdb_rating"] = imdb_rating
            if not self.rating:
                update["rating"] = imdb_rating
        for source_key, field_name in (
            ("Director", "director"),
            ("Actors", "actors"),
            ("Rated", "rated"),
            ("Awards", "awards"),
        ):
            if _present(data.get(source_key)):
                update[field_name] = data[source_key]

        if not update:
            return self
        return self.model_copy(update=update)

    def to_watchlist_item(self) -> WatchlistItemCreate:
        """Return the payload used to add this title to a watchlist."""

        if self.tmdb_id is None:
            raise ValueError("A TMDB id is required to track a title")
        return WatchlistItemCreate(
            movie_id=self.tmdb_id,
            title=self.title or "",
            poster_path=self.poster_path or "",
            release_date=self.release_date or "",
            genre=GENRE_SEPARATOR.join(self.genres),
            rating=self.rating or 0.0,
            overview=self.overview or "",
        )


class CombinedDetails(BaseModel):
    """Raw bags from both catalogs alongside the merged view."""

    tmdb: AttributeBag | None = None
    omdb: AttributeBag | None = None
    details: MediaDetails


_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")


def _present(value: Any) -> bool:
    return value is not None and str(value).strip() not in {"", "N/A"}


def _parse_float(value: Any) -> float | None:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if not _present(value):
        return None
    match = _NUMBER_RE.search(str(value))
    if not match:
        return None
    return float(match.group(0))


def _parse_int(value: Any) -> int | None:
    number = _parse_float(value)
    if number is None:
        return None
    return int(number)
