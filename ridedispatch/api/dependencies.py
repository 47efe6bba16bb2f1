"""FastAPI dependency injection helpers."""

from fastapi import Request

from ridedispatch.config import Settings
from ridedispatch.services.dispatch import DispatchFacade


def get_dispatch(request: Request) -> DispatchFacade:
    """The facade built by ``create_app`` for this application instance."""
    return request.app.state.dispatch


def get_settings(request: Request) -> Settings:
    return request.app.state.settings
