"""API routers for Recast."""

from recast.api.routes_rss import router as rss_router

__all__ = ["rss_router"]
