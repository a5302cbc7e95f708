"""File-backed storage for per-user watchlists."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable, TypeVar

from ..errors import DuplicateItemError, InvalidInputError, NotFoundError, PersistenceError
from ..models import Watchlist, WatchlistItem, WatchlistItemCreate, WatchlistStats
from ..utils import generate_id, read_json, storage_key, utcnow, write_json_atomic
from .stats import compute_stats

T = TypeVar("T")

WATCHLIST_FILE_PREFIX = "watchlist_"


class WatchlistStore:
    """Owns one JSON document per user under ``data_dir``.

    Each mutation loads the whole document, applies one change and writes the
    document back. Mutations for the same user run under a per-user lock and
    every write replaces the file atomically. Disk I/O runs in a worker
    thread so the event loop never blocks on reads or fsync.
    """

    def __init__(
        self,
        data_dir: Path,
        *,
        logger: logging.Logger | None = None,
        id_factory: Callable[[], str] = generate_id,
        max_id_attempts: int = 5,
    ) -> None:
        self._data_dir = Path(data_dir)
        self._logger = logger or logging.getLogger(__name__)
        self._id_factory = id_factory
        self._max_id_attempts = max_id_attempts
        self._locks: dict[str, asyncio.Lock] = {}
        try:
            self._data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            self._logger.error("Failed to create data directory %s: %s", self._data_dir, exc)

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def path_for(self, user_id: str) -> Path:
        """Return the document path backing ``user_id``."""

        key = self._key(user_id)
        return self._data_dir / f"{WATCHLIST_FILE_PREFIX}{key}.json"

    async def get(self, user_id: str) -> Watchlist:
        """Return the user's watchlist, or a fresh unsaved one."""

        return await asyncio.to_thread(self._load, user_id)

    async def stats(self, user_id: str) -> WatchlistStats:
        return compute_stats(await self.get(user_id))

    async def add(self, user_id: str, payload: WatchlistItemCreate) -> WatchlistItem:
        """Append a new title; rejects a ``movie_id`` that is already tracked."""

        def apply(watchlist: Watchlist) -> WatchlistItem:
            if watchlist.contains_movie(payload.movie_id):
                raise DuplicateItemError(payload.movie_id)
            item = WatchlistItem(
                id=self._new_item_id(watchlist),
                added_at=utcnow(),
                is_watched=False,
                watched_at=None,
                **payload.model_dump(),
            )
            watchlist.items.append(item)
            return item

        item = await self._mutate(user_id, apply)
        self._logger.info("Added movie %s to watchlist for user %s", item.movie_id, user_id)
        return item

    async def remove(self, user_id: str, item_id: str) -> None:
        def apply(watchlist: Watchlist) -> None:
            index = self._require_index(watchlist, item_id)
            del watchlist.items[index]

        await self._mutate(user_id, apply)
        self._logger.info("Removed item %s from watchlist for user %s", item_id, user_id)

    async def mark_watched(self, user_id: str, item_id: str, notes: str = "") -> WatchlistItem:
        def apply(watchlist: Watchlist) -> WatchlistItem:
            index = self._require_index(watchlist, item_id)
            item = watchlist.items[index].model_copy(
                update={"is_watched": True, "watched_at": utcnow(), "user_notes": notes}
            )
            watchlist.items[index] = item
            return item

        return await self._mutate(user_id, apply)

    async def mark_unwatched(self, user_id: str, item_id: str) -> WatchlistItem:
        def apply(watchlist: Watchlist) -> WatchlistItem:
            index = self._require_index(watchlist, item_id)
            item = watchlist.items[index].model_copy(
                update={"is_watched": False, "watched_at": None, "user_notes": ""}
            )
            watchlist.items[index] = item
            return item

        return await self._mutate(user_id, apply)

    async def _mutate(self, user_id: str, apply: Callable[[Watchlist], T]) -> T:
        key = self._key(user_id)
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            watchlist = await asyncio.to_thread(self._load, user_id)
            result = apply(watchlist)
            watchlist.touch()
            await asyncio.to_thread(self._save, watchlist)
            return result

    def _load(self, user_id: str) -> Watchlist:
        path = self.path_for(user_id)
        if not path.exists():
            return Watchlist.empty(user_id)
        try:
            data = read_json(path)
            return Watchlist.model_validate(data)
        except (OSError, ValueError) as exc:
            self._logger.error("Failed to read watchlist for user %s: %s", user_id, exc)
            raise PersistenceError(f"Failed to read watchlist for user {user_id}") from exc

    def _save(self, watchlist: Watchlist) -> None:
        path = self.path_for(watchlist.user_id)
        try:
            write_json_atomic(path, watchlist.model_dump_json(indent=2))
        except OSError as exc:
            self._logger.error(
                "Failed to save watchlist for user %s: %s", watchlist.user_id, exc
            )
            raise PersistenceError(
                f"Failed to save watchlist for user {watchlist.user_id}"
            ) from exc
        self._logger.debug("Watchlist saved for user %s", watchlist.user_id)

    def _new_item_id(self, watchlist: Watchlist) -> str:
        existing = {item.id for item in watchlist.items}
        for _ in range(self._max_id_attempts):
            candidate = self._id_factory()
            if candidate not in existing:
                return candidate
            self._logger.warning("Generated item id %s collided, retrying", candidate)
        raise PersistenceError(
            f"Could not allocate a unique item id after {self._max_id_attempts} attempts"
        )

    @staticmethod
    def _require_index(watchlist: Watchlist, item_id: str) -> int:
        index = watchlist.find(item_id)
        if index is None:
            raise NotFoundError("Watchlist item", item_id)
        return index

    @staticmethod
    def _key(user_id: str) -> str:
        if not user_id or not user_id.strip():
            raise InvalidInputError("User ID is required")
        return storage_key(user_id)
