"""
Robot execution API routes.

``/execute`` is called by the workflow engine each time the robot runs;
``/test`` is called by the settings UI to try a configuration.
"""

from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..dependencies import get_orchestrator, read_payload
from ..schemas.invocation import InvocationResponse
from ..schemas.preview import PreviewRequest, PreviewResponse
from ..services.orchestrator import ExecutionOrchestrator


router = APIRouter(prefix="/bitrix-handler", tags=["execute"])


@router.post(
    "/execute",
    response_model=InvocationResponse,
    responses={
        400: {"model": InvocationResponse, "description": "Invalid invocation"},
        429: {"model": InvocationResponse, "description": "Quota exceeded"},
        502: {"model": InvocationResponse, "description": "Callback delivery failed"},
    }
)
async def execute_robot(
    payload: dict[str, Any] = Depends(read_payload),
    orchestrator: ExecutionOrchestrator = Depends(get_orchestrator),
):
    """
    Run the configured HTTP request for a workflow step.

    The outcome of the target request itself is reported through the
    callback; this response only says whether the invocation was handled.
    """
    outcome = await orchestrator.handle_invocation(payload)
    return JSONResponse(
        status_code=outcome.status_code,
        content=outcome.response.model_dump(exclude_none=True),
    )


@router.post("/test", response_model=PreviewResponse)
async def test_request(
    request: PreviewRequest,
    orchestrator: ExecutionOrchestrator = Depends(get_orchestrator),
):
    """
    Execute a configuration once with its test values.

    Returns the response, output mapping previews and whether unresolved
    template variables were sent literally.
    """
    return await orchestrator.run_preview(request.config)
