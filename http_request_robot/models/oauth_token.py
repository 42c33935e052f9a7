"""
OAuth token model for persisting callback credentials per tenant.

A row is created when the application is installed on a portal, refreshed
in place whenever the access token nears expiry, and removed on uninstall.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Text, Float
from sqlalchemy.orm import Mapped, mapped_column

from ..database import Base


class OAuthToken(Base):
    """
    SQLAlchemy model for stored OAuth credentials.

    Attributes:
        member_id: Stable tenant identifier supplied by the portal
        domain: Portal domain used to build REST endpoints
        access_token: Current access token
        refresh_token: Refresh token exchanged for a new access token
        expires_at: Expiry as epoch seconds
        client_endpoint: REST endpoint base URL of the portal, if known
        server_endpoint: OAuth server endpoint, if known
        scope: Granted scopes
        created_at: Timestamp when the credential was first stored
        updated_at: Timestamp of the last refresh or reinstall
    """
    __tablename__ = "oauth_tokens"

    member_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    domain: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    access_token: Mapped[str] = mapped_column(Text)
    refresh_token: Mapped[str] = mapped_column(Text)
    expires_at: Mapped[float] = mapped_column(Float)
    client_endpoint: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    server_endpoint: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    scope: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, onupdate=datetime.utcnow)
