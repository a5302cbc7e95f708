"""Utility helpers for the Reelmark service."""

from __future__ import annotations

import hashlib
import json
import os
import re
import secrets
import tempfile
import unicodedata
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


SAFE_KEY_RE = re.compile(r"^[A-Za-z0-9_-]{1,128}$")
HASHED_KEY_PREFIX = "u-"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def slugify(value: str) -> str:
    """Return a URL-friendly slug."""

    value = unicodedata.normalize("NFKD", value)
    value = value.encode("ascii", "ignore").decode("ascii")
    value = re.sub(r"[^a-zA-Z0-9]+", "-", value)
    value = value.strip("-")
    value = re.sub(r"-+", "-", value)
    return value.lower() or "watchlist"


def storage_key(identifier: str) -> str:
    """Map a caller-supplied identifier onto a filename-safe key.

    Plain identifiers are kept verbatim so existing documents stay
    addressable; anything else is hashed and can never escape the data
    directory. Identifiers that already start with the hashed prefix are
    hashed too, so a verbatim key never equals another identifier's hash.
    """

    if SAFE_KEY_RE.match(identifier) and not identifier.startswith(HASHED_KEY_PREFIX):
        return identifier
    digest = hashlib.sha256(identifier.encode("utf-8")).hexdigest()
    return f"{HASHED_KEY_PREFIX}{digest}"


def generate_id() -> str:
    """Return a random 64-bit identifier in hex."""

    return secrets.token_hex(8)


def generate_share_token() -> str:
    """Return an unguessable 128-bit share token in hex."""

    return secrets.token_hex(16)


def read_json(path: Path) -> Any:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def write_json_atomic(path: Path, payload: str) -> None:
    """Replace ``path`` with ``payload`` without exposing a partial file."""

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
    )
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
        tmp_path.replace(path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
