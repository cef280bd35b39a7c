"""FastAPI route modules.

Exports all route modules for inclusion in the main application.
"""

from src.api.routes import (
    ai,
    blocks,
    conversations,
    dashboards,
    data_sources,
    epesi_agent,
    organizations,
    projects,
    stats,
)

__all__ = [
    "ai",
    "blocks",
    "conversations",
    "dashboards",
    "data_sources",
    "epesi_agent",
    "organizations",
    "projects",
    "stats",
]
