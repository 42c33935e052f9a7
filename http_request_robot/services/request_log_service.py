"""
Request log service for recording executed invocations.

Each executed invocation creates one row; monthly quota usage is counted
from these rows.
"""

from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models.account import RequestLog


def save_request_log(
    db: Session,
    account_id: int,
    url: str,
    method: str,
    status_code: int | None,
    success: bool,
    execution_time: int | None = None,
    error_message: str | None = None,
) -> RequestLog:
    """
    Save an executed invocation to the request log.

    Args:
        db: Database session
        account_id: Owning account
        url: Target URL that was called
        method: HTTP method used
        status_code: Upstream status code, None if no response was received
        success: Whether the execution produced a response
        execution_time: Total handling time in milliseconds
        error_message: Error reported to the workflow, if any

    Returns:
        The created log record
    """
    entry = RequestLog(
        account_id=account_id,
        url=url,
        method=method,
        status_code=status_code,
        success=success,
        execution_time=execution_time,
        error_message=error_message or None,
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return entry


def month_start(now: datetime) -> datetime:
    """First instant of the calendar month containing ``now``."""
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def get_monthly_count(db: Session, account_id: int, now: datetime | None = None) -> int:
    """Number of logged requests for the account in the current calendar month."""
    since = month_start(now or datetime.utcnow())
    return (
        db.query(func.count(RequestLog.id))
        .filter(RequestLog.account_id == account_id, RequestLog.created_at >= since)
        .scalar()
    ) or 0
