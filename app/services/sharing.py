"""Token-addressed snapshots of user watchlists."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Callable

from ..errors import InvalidInputError, NotFoundError, PersistenceError
from ..models import ShareableWatchlist, WatchlistItem
from ..utils import generate_id, generate_share_token, read_json, utcnow, write_json_atomic
from .watchlist import WatchlistStore

SHARED_FILE_PREFIX = "shared_watchlist_"
SHARE_INDEX_FILE = "shared_index.json"


class ShareRegistry:
    """Creates immutable watchlist snapshots and resolves them by token.

    Snapshots live next to the watchlists as ``shared_watchlist_<id>.json``.
    ``shared_index.json`` maps each share token to its snapshot id so a
    lookup reads exactly one snapshot file. Several registries may share a
    data directory: the index is re-read before every update and on a
    lookup miss, and a token still missing is recovered by scanning the
    snapshots.
    """

    def __init__(
        self,
        store: WatchlistStore,
        *,
        data_dir: Path | None = None,
        logger: logging.Logger | None = None,
        token_factory: Callable[[], str] = generate_share_token,
        id_factory: Callable[[], str] = generate_id,
    ) -> None:
        self._store = store
        self._data_dir = Path(data_dir) if data_dir is not None else store.data_dir
        self._logger = logger or logging.getLogger(__name__)
        self._token_factory = token_factory
        self._id_factory = id_factory
        self._index: dict[str, str] | None = None
        self._lock = asyncio.Lock()

    @property
    def index_path(self) -> Path:
        return self._data_dir / SHARE_INDEX_FILE

    def snapshot_path(self, share_id: str) -> Path:
        return self._data_dir / f"{SHARED_FILE_PREFIX}{share_id}.json"

    async def create(
        self,
        user_id: str,
        title: str = "",
        description: str = "",
        is_public: bool = False,
    ) -> ShareableWatchlist:
        """Snapshot the user's current items under a freshly minted token."""

        watchlist = await self._store.get(user_id)
        shared_items = [item.model_copy(deep=True) for item in watchlist.items]
        async with self._lock:
            shared = await asyncio.to_thread(
                self._persist_share, user_id, title, description, is_public, shared_items
            )

        self._logger.info(
            "Created shared watchlist %s for user %s with %d items",
            shared.id,
            user_id,
            len(shared.items),
        )
        return shared

    async def resolve(self, share_token: str) -> ShareableWatchlist:
        """Return the snapshot addressed by ``share_token``."""

        if not share_token or not share_token.strip():
            raise InvalidInputError("Share token is required")

        async with self._lock:
            share_id = await asyncio.to_thread(self._lookup, share_token)
        if share_id is None:
            raise NotFoundError("Shared watchlist", share_token)
        return await asyncio.to_thread(self._read_snapshot, share_id, share_token)

    def _persist_share(
        self,
        user_id: str,
        title: str,
        description: str,
        is_public: bool,
        items: list[WatchlistItem],
    ) -> ShareableWatchlist:
        # Other processes may have added tokens since this registry last looked.
        index = self._load_index(refresh=True)
        share_id = self._id_factory()
        while self.snapshot_path(share_id).exists():
            share_id = self._id_factory()
        token = self._token_factory()
        while token in index:
            token = self._token_factory()

        shared = ShareableWatchlist(
            id=share_id,
            title=title.strip() or f"{user_id}'s Watchlist",
            description=description,
            items=items,
            created_by=user_id,
            created_at=utcnow(),
            is_public=is_public,
            share_token=token,
        )
        self._write(self.snapshot_path(share_id), shared.model_dump_json(indent=2))
        self._store_index({**index, token: share_id})
        return shared

    def _lookup(self, share_token: str) -> str | None:
        share_id = self._load_index().get(share_token)
        if share_id is None:
            share_id = self._load_index(refresh=True).get(share_token)
        if share_id is None:
            share_id = self._recover(share_token)
        return share_id

    def _recover(self, share_token: str) -> str | None:
        """Find a snapshot whose token never made it into the index."""

        scanned = self._rebuild_index()
        share_id = scanned.get(share_token)
        if share_id is None:
            return None
        self._logger.warning("Share token for snapshot %s was missing from the index", share_id)
        self._store_index({**(self._index or {}), **scanned})
        return share_id

    def _read_snapshot(self, share_id: str, share_token: str) -> ShareableWatchlist:
        path = self.snapshot_path(share_id)
        if not path.exists():
            self._logger.warning(
                "Share index points at missing snapshot %s for token %s", share_id, share_token
            )
            raise NotFoundError("Shared watchlist", share_token)
        try:
            shared = ShareableWatchlist.model_validate(read_json(path))
        except (OSError, ValueError) as exc:
            raise PersistenceError(f"Failed to read shared watchlist {share_id}") from exc
        if shared.share_token != share_token:
            raise NotFoundError("Shared watchlist", share_token)
        return shared

    def _load_index(self, *, refresh: bool = False) -> dict[str, str]:
        if self._index is not None and not refresh:
            return self._index
        path = self.index_path
        if path.exists():
            try:
                data = read_json(path)
            except (OSError, ValueError) as exc:
                raise PersistenceError("Failed to read the share index") from exc
            if not isinstance(data, dict):
                raise PersistenceError("Share index is not a JSON object")
            self._index = {str(token): str(share_id) for token, share_id in data.items()}
            return self._index

        index = self._rebuild_index()
        if index:
            self._store_index(index)
        else:
            self._index = index
        return index

    def _store_index(self, index: dict[str, str]) -> None:
        self._write(self.index_path, json.dumps(index, indent=2, sort_keys=True))
        self._index = index

    def _rebuild_index(self) -> dict[str, str]:
        """Map the token of every readable snapshot on disk to its id."""

        index: dict[str, str] = {}
        if not self._data_dir.exists():
            return index
        for path in sorted(self._data_dir.glob(f"{SHARED_FILE_PREFIX}*.json")):
            try:
                shared = ShareableWatchlist.model_validate(read_json(path))
            except (OSError, ValueError) as exc:
                self._logger.warning("Skipping unreadable snapshot %s: %s", path.name, exc)
                continue
            index[shared.share_token] = shared.id
        if index:
            self._logger.info("Scanned %d share snapshots", len(index))
        return index

    def _write(self, path: Path, payload: str) -> None:
        try:
            write_json_atomic(path, payload)
        except OSError as exc:
            self._logger.error("Failed to write %s: %s", path.name, exc)
            raise PersistenceError(f"Failed to write {path.name}") from exc
