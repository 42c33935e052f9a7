"""
Pydantic schemas for the workflow engine's inbound calls and credentials.
"""

from typing import Any

from pydantic import BaseModel


class CallbackCredential(BaseModel):
    """What the callback sender needs to reach a portal's REST API."""
    domain: str
    access_token: str
    member_id: str | None = None
    client_endpoint: str | None = None

    @property
    def rest_endpoint(self) -> str:
        """Base REST URL, always ending with a slash."""
        if self.client_endpoint:
            return self.client_endpoint.rstrip("/") + "/"
        return f"https://{self.domain}/rest/"


class OAuthCredential(BaseModel):
    """
    A tenant's stored OAuth credential.

    Attributes:
        tenant_id: Portal member id
        domain: Portal domain
        access_token: Current access token
        refresh_token: Token used to obtain a new access token
        expires_at: Expiry as epoch seconds
    """
    tenant_id: str
    domain: str | None = None
    access_token: str
    refresh_token: str
    expires_at: float
    client_endpoint: str | None = None
    server_endpoint: str | None = None
    scope: str | None = None

    def as_callback_credential(self) -> CallbackCredential:
        if not self.domain and not self.client_endpoint:
            raise ValueError(f"Credential for {self.tenant_id} has neither domain nor endpoint")
        return CallbackCredential(
            domain=self.domain or "",
            access_token=self.access_token,
            member_id=self.tenant_id,
            client_endpoint=self.client_endpoint,
        )


class InvocationAuth(BaseModel):
    """Auth block of an invocation after normalizing its dual casing."""
    domain: str | None = None
    access_token: str | None = None
    refresh_token: str | None = None
    member_id: str | None = None
    client_endpoint: str | None = None
    server_endpoint: str | None = None
    expires_in: int | None = None
    scope: str | None = None


class Invocation(BaseModel):
    """A validated robot invocation."""
    event_token: str
    auth: InvocationAuth
    properties: dict[str, Any]
    document_id: Any | None = None
    document_type: Any | None = None


class InvocationResponse(BaseModel):
    """Synchronous answer to an invocation or lifecycle event."""
    success: bool
    message: str | None = None
    error: str | None = None
