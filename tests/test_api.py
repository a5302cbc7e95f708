"""HTTP surface tests for the watchlist and metadata routes."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.config import Settings
from app.main import register_routes
from app.services.metadata import MetadataService
from app.services.omdb import OMDBClient
from app.services.sharing import ShareRegistry
from app.services.tmdb import TMDBClient
from app.services.watchlist import WatchlistStore

INCEPTION = {
    "movie_id": 27205,
    "title": "Inception",
    "poster_path": "/inception.jpg",
    "release_date": "2010-07-16",
    "genre": "Action, Science Fiction",
    "rating": 8.4,
    "overview": "Dreams within dreams.",
}


def tmdb_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/3/movie/27205":
        return httpx.Response(
            200, json={"id": 27205, "title": "Inception", "overview": "", "imdb_id": "tt1375666"}
        )
    if request.url.path == "/3/trending/movie/week":
        return httpx.Response(200, json={"results": [{"id": 27205, "title": "Inception"}]})
    return httpx.Response(404, json={"status_message": "not found"})


def omdb_handler(request: httpx.Request) -> httpx.Response:
    if request.url.params.get("i") == "tt1375666":
        return httpx.Response(
            200, json={"Title": "Inception", "imdbRating": "8.8", "Response": "True"}
        )
    return httpx.Response(200, json={"Response": "False", "Error": "Movie not found!"})


def build_app(data_dir: Path) -> FastAPI:
    settings = Settings(_env_file=None, TMDB_API_KEY="tmdb-key", OMDB_API_KEY="omdb-key")
    tmdb = TMDBClient(
        settings,
        httpx.AsyncClient(
            transport=httpx.MockTransport(tmdb_handler), base_url=str(settings.tmdb_api_url)
        ),
    )
    omdb = OMDBClient(settings, httpx.AsyncClient(transport=httpx.MockTransport(omdb_handler)))

    app = FastAPI()
    register_routes(app)
    store = WatchlistStore(data_dir)
    app.state.watchlist_store = store
    app.state.share_registry = ShareRegistry(store)
    app.state.metadata_service = MetadataService(tmdb, omdb)
    return app


@pytest.fixture
def client(tmp_path: Path) -> Iterator[TestClient]:
    with TestClient(build_app(tmp_path)) as test_client:
        yield test_client


def test_healthcheck(client: TestClient) -> None:
    response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_add_then_duplicate_returns_conflict(client: TestClient) -> None:
    created = client.post("/api/watchlist/alice", json=INCEPTION)

    assert created.status_code == 201
    body = created.json()
    assert body["status"] == "success"
    assert body["item"]["movie_id"] == 27205
    assert body["item"]["is_watched"] is False

    duplicate = client.post("/api/watchlist/alice", json=INCEPTION)
    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == "duplicate_item"

    watchlist = client.get("/api/watchlist/alice").json()
    assert [item["title"] for item in watchlist["items"]] == ["Inception"]


def test_add_rejects_non_positive_catalog_id(client: TestClient) -> None:
    response = client.post("/api/watchlist/alice", json={**INCEPTION, "movie_id": 0})

    assert response.status_code == 422


def test_watched_lifecycle_and_removal(client: TestClient) -> None:
    item_id = client.post("/api/watchlist/alice", json=INCEPTION).json()["item"]["id"]

    watched = client.put(f"/api/watchlist/alice/{item_id}/watched", json={"notes": "Great"})
    assert watched.status_code == 200
    assert watched.json()["item"]["is_watched"] is True
    assert watched.json()["item"]["user_notes"] == "Great"

    stats = client.get("/api/watchlist/alice/stats").json()
    assert stats["watched_items"] == 1
    assert stats["top_genres"][0] == {"genre": "Action", "count": 1}

    unwatched = client.put(f"/api/watchlist/alice/{item_id}/unwatched")
    assert unwatched.json()["item"]["watched_at"] is None

    removed = client.delete(f"/api/watchlist/alice/{item_id}")
    assert removed.status_code == 200
    assert client.get("/api/watchlist/alice").json()["items"] == []

    missing = client.delete(f"/api/watchlist/alice/{item_id}")
    assert missing.status_code == 404
    assert missing.json()["error"] == "not_found"


def test_mark_watched_without_body(client: TestClient) -> None:
    item_id = client.post("/api/watchlist/alice", json=INCEPTION).json()["item"]["id"]

    response = client.put(f"/api/watchlist/alice/{item_id}/watched")

    assert response.status_code == 200
    assert response.json()["item"]["user_notes"] == ""


def test_export_csv_sets_attachment_headers(client: TestClient) -> None:
    client.post("/api/watchlist/alice", json=INCEPTION)

    response = client.get("/api/watchlist/alice/export")

    assert response.status_code == 200
    assert response.headers["content-type"] == "text/csv; charset=utf-8"
    assert response.headers["content-disposition"] == 'attachment; filename="watchlist_alice.csv"'
    lines = response.text.splitlines()
    assert lines[0].startswith("Title,Release Date,Genre")
    assert lines[1].startswith('Inception,2010-07-16,"Action, Science Fiction",8.4,Unwatched')


def test_export_report_and_invalid_format(client: TestClient) -> None:
    report = client.get("/api/watchlist/alice/export", params={"format": "pdf"})

    assert report.status_code == 200
    assert report.headers["content-type"].startswith("text/html")
    assert report.headers["content-disposition"].endswith('.html"')
    assert "My Watchlist Report" in report.text

    invalid = client.get("/api/watchlist/alice/export", params={"format": "xlsx"})
    assert invalid.status_code == 400
    assert invalid.json()["error"] == "invalid_input"


def test_share_and_resolve(client: TestClient) -> None:
    client.post("/api/watchlist/alice", json=INCEPTION)

    shared = client.post(
        "/api/watchlist/alice/share", json={"title": "", "description": "Faves", "is_public": True}
    ).json()

    assert shared["title"] == "alice's Watchlist"
    assert len(shared["share_token"]) == 32

    resolved = client.get(f"/api/shared/{shared['share_token']}")
    assert resolved.status_code == 200
    assert resolved.json()["items"][0]["title"] == "Inception"

    assert client.get("/api/shared/not-a-real-token").status_code == 404


def test_movie_details_merge_catalogs(client: TestClient) -> None:
    response = client.get("/api/movie/27205")

    assert response.status_code == 200
    body = response.json()
    assert body["details"]["title"] == "Inception"
    assert body["details"]["imdb_rating"] == 8.8
    assert body["omdb"]["Title"] == "Inception"


def test_movie_details_unavailable_from_both_catalogs(client: TestClient) -> None:
    response = client.get("/api/movie/99")

    assert response.status_code == 502
    assert response.json()["error"] == "upstream_unavailable"


def test_invalid_content_type_is_rejected(client: TestClient) -> None:
    response = client.get("/api/movie/27205", params={"type": "podcast"})

    assert response.status_code == 400


def test_trending_passes_through_results(client: TestClient) -> None:
    response = client.get("/api/trending")

    assert response.status_code == 200
    assert response.json() == [{"id": 27205, "title": "Inception"}]


def test_add_from_catalog_uses_merged_details(client: TestClient) -> None:
    response = client.post("/api/watchlist/alice/catalog/27205")

    assert response.status_code == 201
    item = response.json()["item"]
    assert (item["movie_id"], item["title"], item["rating"]) == (27205, "Inception", 8.8)

    again = client.post("/api/watchlist/alice/catalog/27205")
    assert again.status_code == 409


def test_lookup_requires_title(client: TestClient) -> None:
    response = client.get("/api/lookup", params={"title": "  "})

    assert response.status_code == 400
