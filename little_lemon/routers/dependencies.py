from fastapi import Request

from little_lemon.services.menu_store import MenuStore
from little_lemon.services.profile_store import ProfileStore
from little_lemon.services.sync import SyncOrchestrator


def request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


def get_menu_store(request: Request) -> MenuStore:
    return request.app.state.menu_store


def get_orchestrator(request: Request) -> SyncOrchestrator:
    return request.app.state.orchestrator


def get_profile_store(request: Request) -> ProfileStore:
    return request.app.state.profile_store
