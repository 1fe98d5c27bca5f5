"""
API Dependencies - Dependency injection for FastAPI routes.

The search stack is opened once in the lifespan handler and kept on
app.state; routes receive the orchestrator through Depends so tests can
substitute a fake.
"""

from __future__ import annotations

from fastapi import FastAPI, Request

from kbsearch.config import get_settings
from kbsearch.domains.search import SearchOrchestrator
from kbsearch.services import open_services


def get_orchestrator(request: Request) -> SearchOrchestrator:
    """Get the orchestrator opened at startup."""
    return request.app.state.services.orchestrator


async def init_services(app: FastAPI) -> None:
    """
    Initialize services on startup.

    This should be called from the FastAPI lifespan handler.
    """
    app.state.services = await open_services(get_settings())


async def cleanup_services(app: FastAPI) -> None:
    """Cleanup services on shutdown."""
    services = getattr(app.state, "services", None)
    if services is not None:
        await services.close()
        app.state.services = None
