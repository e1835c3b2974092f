"""FastAPI dependencies reading application-scoped collaborators."""

from fastapi import Request

from backend.equiptrack.api.auth import TokenAuthority
from backend.equiptrack.config import Settings
from backend.equiptrack.equipment.lifecycle import EquipmentLifecycle


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_authority(request: Request) -> TokenAuthority:
    return request.app.state.token_authority


def get_lifecycle(request: Request) -> EquipmentLifecycle:
    return request.app.state.lifecycle
