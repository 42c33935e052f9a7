"""
FastAPI dependencies.

Long-lived collaborators are created in the application lifespan and kept
on ``app.state``; routes reach them through these functions so tests can
swap them with ``app.dependency_overrides``.
"""

from typing import Any

from fastapi import Request
from sqlalchemy.orm import Session, sessionmaker

from .exceptions import ValidationError
from .services.config_normalizer import unflatten_form
from .services.orchestrator import ExecutionOrchestrator
from .services.token_manager import TokenManager


def get_orchestrator(request: Request) -> ExecutionOrchestrator:
    return request.app.state.orchestrator


def get_token_manager(request: Request) -> TokenManager:
    return request.app.state.token_manager


def get_session_factory(request: Request) -> sessionmaker[Session]:
    return request.app.state.session_factory


async def read_payload(request: Request) -> dict[str, Any]:
    """
    Decode an event body sent either as JSON or as a PHP-style form.

    The workflow engine posts ``application/x-www-form-urlencoded`` bodies
    with keys such as ``auth[domain]``; those are rebuilt into objects.
    """
    content_type = request.headers.get("content-type", "")

    if "application/json" in content_type:
        try:
            data = await request.json()
        except ValueError:
            raise ValidationError("Request body must be valid JSON")
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")
        return data

    form = await request.form()
    return unflatten_form(form.multi_items())
