"""
Execution orchestration for robot invocations and test requests.

An invocation moves through
``Received -> Validated -> Compiling -> Executing -> Mapping -> Callback -> Done``
and may drop to ``Failed`` from any state. Whatever happens, the workflow
step gets its return values through the callback whenever there is an event
token and auth block to call back with.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

import httpx

from ..config import Settings
from ..exceptions import (
    CallbackError,
    CredentialError,
    QuotaExceededError,
    TransportError,
    ValidationError,
)
from ..logging_config import get_logger
from ..schemas.execute import ReturnValues
from ..schemas.invocation import CallbackCredential, Invocation, InvocationResponse
from ..schemas.preview import PreviewResponse
from .callback_sender import CallbackSender
from .config_normalizer import normalize_config, normalize_invocation
from .http_executor import execute_request
from .quota_service import QuotaService
from .request_compiler import apply_test_data, compile_request
from .response_mapper import build_return_values, preview_mappings, response_body_text
from .template_variables import has_unresolved_variables
from .token_manager import TokenManager


logger = get_logger("orchestrator")


class ExecutionState(str, Enum):
    RECEIVED = "received"
    VALIDATED = "validated"
    COMPILING = "compiling"
    EXECUTING = "executing"
    MAPPING = "mapping"
    CALLBACK = "callback"
    DONE = "done"
    FAILED = "failed"


@dataclass
class InvocationOutcome:
    """Result of handling one invocation."""
    response: InvocationResponse
    status_code: int
    state: ExecutionState
    return_values: ReturnValues | None = None
    callback_delivered: bool = False


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


class ExecutionOrchestrator:
    """
    Runs invocations end to end.

    Args:
        settings: Application settings
        client: HTTP client for outbound requests
        callback_sender: Delivers return values to the workflow engine
        token_manager: Source of stored credentials when
            ``settings.callback_credentials`` is ``"stored"``
        quota_service: Quota checks and request logging; optional
    """

    def __init__(
        self,
        settings: Settings,
        client: httpx.AsyncClient,
        callback_sender: CallbackSender,
        token_manager: TokenManager | None = None,
        quota_service: QuotaService | None = None,
    ):
        self.settings = settings
        self.client = client
        self.callback_sender = callback_sender
        self.token_manager = token_manager
        self.quota_service = quota_service

    async def resolve_credential(self, invocation: Invocation) -> CallbackCredential:
        """
        Pick the credential the callback is sent with.

        Raises:
            CredentialError: If no usable credential exists
        """
        auth = invocation.auth

        if self.settings.callback_credentials == "stored":
            if self.token_manager is None:
                raise CredentialError("Stored credentials requested but no token manager is configured")
            if not auth.member_id:
                raise CredentialError("member_id is required to look up stored credentials")
            stored = await self.token_manager.get_valid_token(auth.member_id)
            if stored is None:
                raise CredentialError(f"No stored credential for tenant {auth.member_id}")
            try:
                return stored.as_callback_credential()
            except ValueError as e:
                raise CredentialError(str(e))

        if not auth.domain and not auth.client_endpoint:
            raise CredentialError("Domain not found in auth object")
        if not auth.access_token:
            raise CredentialError("Access token not found in auth object")
        return CallbackCredential(
            domain=auth.domain or "",
            access_token=auth.access_token,
            member_id=auth.member_id,
            client_endpoint=auth.client_endpoint,
        )

    async def deliver(self, invocation: Invocation, return_values: ReturnValues, log_message: str) -> bool:
        """
        Send the return values back to the workflow.

        Returns:
            False if the callback was skipped for lack of a credential

        Raises:
            CallbackError: If the delivery itself failed
        """
        try:
            credential = await self.resolve_credential(invocation)
        except CredentialError as e:
            logger.error("Callback skipped, no usable credential", event_token=invocation.event_token, error=e.detail)
            return False

        ack = await self.callback_sender.send(invocation.event_token, return_values, log_message, credential)
        logger.info("Callback delivered", event_token=invocation.event_token, result=ack.get("result"))
        return True

    async def _finish(
        self,
        invocation: Invocation,
        return_values: ReturnValues,
        log_message: str,
        log: Any,
        failed: bool,
        status_code: int = 200,
    ) -> InvocationOutcome:
        log.debug("Execution state", state=ExecutionState.CALLBACK.value)
        final_state = ExecutionState.FAILED if failed else ExecutionState.DONE
        error = return_values.error or None

        try:
            delivered = await self.deliver(invocation, return_values, log_message)
        except CallbackError as e:
            log.error("Failed to send result to workflow", error=e.detail, original_error=error)
            return InvocationOutcome(
                response=InvocationResponse(success=False, error=e.detail),
                status_code=e.status_code,
                state=ExecutionState.FAILED,
                return_values=return_values,
            )

        log.debug("Execution state", state=final_state.value)
        if status_code >= 400:
            response = InvocationResponse(success=False, error=error)
        elif not delivered:
            response = InvocationResponse(success=True, message="Request processed; callback skipped")
        elif error:
            response = InvocationResponse(success=True, message="Request failed; error delivered to workflow")
        else:
            response = InvocationResponse(success=True, message="Request processed successfully")

        return InvocationOutcome(
            response=response,
            status_code=status_code,
            state=final_state,
            return_values=return_values,
            callback_delivered=delivered,
        )

    async def handle_invocation(self, payload: Mapping[str, Any]) -> InvocationOutcome:
        """
        Handle one invocation from the workflow engine.

        Args:
            payload: Decoded invocation body

        Returns:
            InvocationOutcome holding the synchronous response
        """
        start = time.perf_counter()
        log = logger.bind(event_token=payload.get("event_token"))
        log.info("Received HTTP request execution", document_id=payload.get("document_id"))

        try:
            invocation = normalize_invocation(payload)
        except ValidationError as e:
            log.warning("Invocation rejected", error=e.detail)
            return InvocationOutcome(
                response=InvocationResponse(success=False, error=e.detail),
                status_code=e.status_code,
                state=ExecutionState.FAILED,
            )

        try:
            config = normalize_config(invocation.properties, self.settings.default_request_timeout_ms)
        except ValidationError as e:
            log.warning("Invalid request configuration", error=e.detail)
            return await self._finish(
                invocation, ReturnValues.from_error(e.detail), f"Error: {e.detail}", log,
                failed=True, status_code=e.status_code,
            )
        log.debug("Execution state", state=ExecutionState.VALIDATED.value)

        account_id = None
        member_id = invocation.auth.member_id
        if self.quota_service is not None and self.settings.quota_enabled and member_id:
            quota = await self.quota_service.check_quota(member_id, invocation.auth.domain)
            account_id = quota.account_id
            if not quota.allowed:
                exceeded = QuotaExceededError(quota.usage, int(quota.quota), quota.plan)
                log.warning("Quota exceeded", member_id=member_id, usage=quota.usage, plan=quota.plan)
                return await self._finish(
                    invocation, ReturnValues.from_error(exceeded.detail), f"Error: {exceeded.detail}", log,
                    failed=True, status_code=exceeded.status_code,
                )

        log.debug("Execution state", state=ExecutionState.COMPILING.value)
        compiled = compile_request(config)

        log.debug("Execution state", state=ExecutionState.EXECUTING.value)
        try:
            result = await execute_request(compiled, config.timeout_ms, self.client)
        except TransportError as e:
            elapsed = _elapsed_ms(start)
            log.error("HTTP request failed", url=config.url, method=config.method, error=e.detail)
            if self.quota_service is not None:
                await self.quota_service.record_execution(
                    account_id, config.url, config.method, None, False, elapsed, e.detail
                )
            return await self._finish(
                invocation, ReturnValues.from_error(e.detail), f"Error: {e.detail}", log, failed=True
            )

        elapsed = _elapsed_ms(start)
        log.info(
            "HTTP request completed",
            url=config.url,
            method=config.method,
            status_code=result.status_code,
            execution_time_ms=elapsed,
        )

        log.debug("Execution state", state=ExecutionState.MAPPING.value)
        return_values = build_return_values(result, config.output_mappings)

        if self.quota_service is not None:
            await self.quota_service.record_execution(
                account_id, config.url, config.method, result.status_code, True, elapsed
            )

        log_message = (
            f"HTTP {config.method} request to {config.url} completed "
            f"with status {result.status_code} in {elapsed}ms"
        )
        return await self._finish(invocation, return_values, log_message, log, failed=False)

    async def run_preview(self, config_payload: Mapping[str, Any] | str) -> PreviewResponse:
        """
        Execute a configuration once in test mode for the settings UI.

        Test values replace production values before compilation; no
        callback is sent and nothing is logged against a quota.
        """
        start = time.perf_counter()

        try:
            config = normalize_config(config_payload, self.settings.default_request_timeout_ms)
        except ValidationError as e:
            return PreviewResponse(success=False, error=e.detail, executionTime=_elapsed_ms(start))

        test_config = apply_test_data(config)
        has_variables = has_unresolved_variables(test_config)
        compiled = compile_request(test_config)

        try:
            result = await execute_request(compiled, config.timeout_ms, self.client)
        except TransportError as e:
            return PreviewResponse(
                success=False,
                error=e.detail,
                executionTime=_elapsed_ms(start),
                hasVariables=has_variables,
            )

        return PreviewResponse(
            success=True,
            statusCode=result.status_code,
            statusText=result.status_text,
            responseHeaders=result.headers,
            responseBody=response_body_text(result),
            responseBodyParsed=result.parsed_body if result.is_json else None,
            outputMappings=preview_mappings(result, config.output_mappings),
            executionTime=_elapsed_ms(start),
            hasVariables=has_variables,
        )
