"""Watchlist, sharing, export and catalog services."""
