"""
Account and request log models.

An account is created for each tenant that installs or uses the robot;
every executed invocation is recorded as a request log row, which is what
monthly quota usage is counted from.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import String, Text, Integer, Boolean, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..database import Base


class Account(Base):
    """
    SQLAlchemy model for tenant accounts.

    Attributes:
        id: Unique identifier for the account
        member_id: Stable tenant identifier, unique per portal
        domain: Portal domain
        plan: Billing plan name (free, basic, pro, enterprise)
        installed_at: Timestamp when the account was created
        updated_at: Timestamp when the account was last updated
        request_logs: Executions recorded for this account
    """
    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(primary_key=True)
    member_id: Mapped[str] = mapped_column(String(255), unique=True)
    domain: Mapped[str] = mapped_column(String(255))
    plan: Mapped[str] = mapped_column(String(50), default="free")
    installed_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, onupdate=datetime.utcnow)

    request_logs: Mapped[List["RequestLog"]] = relationship(
        "RequestLog",
        back_populates="account",
        cascade="all, delete-orphan",
        passive_deletes=True
    )


class RequestLog(Base):
    """SQLAlchemy model for one executed invocation."""
    __tablename__ = "request_logs"

    id: Mapped[int] = mapped_column(primary_key=True)
    account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id", ondelete="CASCADE"),
        index=True
    )
    url: Mapped[str] = mapped_column(Text)
    method: Mapped[str] = mapped_column(String(10))
    status_code: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    success: Mapped[bool] = mapped_column(Boolean)
    execution_time: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, index=True)

    account: Mapped["Account"] = relationship("Account", back_populates="request_logs")
