"""Route table."""

from fastapi import FastAPI

from coverage_server.routers import home


def register(app: FastAPI) -> None:
    """Register all routes on a FastAPI application."""
    # Landing page
    app.include_router(home.router)
