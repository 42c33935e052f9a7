"""
Delivery of results back to the workflow engine.

The robot is registered with ``USE_SUBSCRIPTION``, so the workflow step waits
until ``bizproc.event.send`` is called with the invocation's event token.
"""

from typing import Any

import httpx

from ..exceptions import CallbackError
from ..logging_config import get_logger
from ..schemas.execute import ReturnValues
from ..schemas.invocation import CallbackCredential


EVENT_SEND_METHOD = "bizproc.event.send"

logger = get_logger("callback_sender")


class CallbackSender:
    """Posts return values to a portal's event-completion method."""

    def __init__(self, client: httpx.AsyncClient, timeout: float = 15.0):
        self.client = client
        self.timeout = timeout

    async def send(
        self,
        event_token: str,
        return_values: ReturnValues,
        log_message: str,
        credential: CallbackCredential,
    ) -> dict[str, Any]:
        """
        Complete the waiting workflow step.

        Returns:
            The decoded acknowledgement from the portal

        Raises:
            CallbackError: On transport failure, a non-2xx status or an
                ``error`` field in the response
        """
        url = f"{credential.rest_endpoint}{EVENT_SEND_METHOD}"
        payload = {
            "auth": credential.access_token,
            "event_token": event_token,
            "return_values": return_values.to_payload(),
            "log_message": log_message or "Request completed",
        }

        try:
            response = await self.client.post(url, json=payload, timeout=self.timeout)
        except httpx.HTTPError as e:
            raise CallbackError(f"Failed to deliver callback to {credential.domain}: {e}")

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {"result": data}

        if data.get("error"):
            raise CallbackError(str(data.get("error_description") or data["error"]))
        if not response.is_success:
            raise CallbackError(f"Callback rejected with HTTP {response.status_code}")

        logger.debug("Callback delivered", event_token=event_token, domain=credential.domain)
        return data
