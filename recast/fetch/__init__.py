"""Origin feed fetching for Recast."""

from .client import FetchedFeed, fetch_feed

__all__ = ["FetchedFeed", "fetch_feed"]
