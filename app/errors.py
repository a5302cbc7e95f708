"""Typed failures raised by the watchlist, sharing and metadata services."""

from __future__ import annotations

from typing import Any


class ReelmarkError(Exception):
    """Base error carrying a machine-readable code and an HTTP status."""

    status_code: int = 500
    error: str = "internal_error"

    def __init__(self, message: str, *, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.error, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class NotFoundError(ReelmarkError):
    """A watchlist item or share token does not exist."""

    status_code = 404
    error = "not_found"

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            f"{resource} {identifier} not found",
            details={"resource": resource, "id": identifier},
        )


class DuplicateItemError(ReelmarkError):
    """The catalog id is already tracked in the user's watchlist."""

    status_code = 409
    error = "duplicate_item"

    def __init__(self, movie_id: int):
        super().__init__(
            f"Movie {movie_id} is already in the watchlist",
            details={"movie_id": movie_id},
        )


class UpstreamUnavailableError(ReelmarkError):
    """Neither metadata catalog returned usable data."""

    status_code = 502
    error = "upstream_unavailable"


class PersistenceError(ReelmarkError):
    """Reading, writing or decoding a stored document failed."""

    status_code = 500
    error = "persistence_failure"


class InvalidInputError(ReelmarkError):
    """A required identifier is missing or a selector is not recognised."""

    status_code = 400
    error = "invalid_input"


class CatalogRequestError(Exception):
    """A single upstream catalog request failed."""

    def __init__(self, provider: str, message: str, *, status_code: int | None = None):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status_code = status_code
