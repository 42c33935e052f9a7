"""
Application install and uninstall event routes.

Installation stores the portal's OAuth credential and creates the tenant's
account; uninstallation forgets the credential.
"""

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from ..dependencies import get_session_factory, get_token_manager, read_payload
from ..exceptions import ValidationError
from ..logging_config import get_logger
from ..schemas.invocation import InvocationAuth, InvocationResponse
from ..services import account_service
from ..services.config_normalizer import normalize_auth
from ..services.token_manager import TokenManager


router = APIRouter(prefix="/bitrix-handler", tags=["lifecycle"])

logger = get_logger("lifecycle")


def _event_auth(payload: dict[str, Any]) -> InvocationAuth:
    auth = payload.get("auth")
    if not auth or not isinstance(auth, dict):
        raise ValidationError("auth is required")
    return normalize_auth(auth)


@router.post("/install", response_model=InvocationResponse)
async def install(
    payload: dict[str, Any] = Depends(read_payload),
    token_manager: TokenManager = Depends(get_token_manager),
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
):
    """Handle the application install event."""
    auth = _event_auth(payload)
    logger.info("App installation event", event=payload.get("event"), domain=auth.domain)

    if auth.member_id:
        await token_manager.save_credential(auth)

        def upsert() -> None:
            with session_factory() as db:
                account_service.upsert_account(db, auth.member_id, auth.domain or "unknown")

        await run_in_threadpool(upsert)

    return InvocationResponse(success=True, message="Installation successful")


@router.post("/uninstall", response_model=InvocationResponse)
async def uninstall(
    payload: dict[str, Any] = Depends(read_payload),
    token_manager: TokenManager = Depends(get_token_manager),
):
    """Handle the application uninstall event."""
    auth = _event_auth(payload)
    logger.info("App uninstallation event", event=payload.get("event"), domain=auth.domain)

    if auth.member_id:
        await token_manager.delete_credential(auth.member_id)

    return InvocationResponse(success=True, message="Uninstallation successful")
