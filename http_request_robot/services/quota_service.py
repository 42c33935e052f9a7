"""
Quota checks and usage recording per tenant.

Quota checks fail open: when the datastore is unavailable the request is
allowed, so automations keep running during outages at the cost of
occasionally exceeding a plan's limit.
"""

import math

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from ..logging_config import get_logger
from . import account_service, request_log_service
from .ttl_cache import TTLCache


PLAN_LIMITS: dict[str, float] = {
    "free": 100,
    "basic": 1000,
    "pro": 10000,
    "enterprise": math.inf,
}

logger = get_logger("quota_service")


class QuotaCheck(BaseModel):
    """Outcome of a quota check."""
    allowed: bool
    usage: int
    quota: float
    plan: str
    account_id: int | None = None


def plan_limit(plan: str | None) -> float:
    """Monthly request limit for a plan; unknown plans get the free limit."""
    return PLAN_LIMITS.get(plan or "free", PLAN_LIMITS["free"])


class QuotaService:
    """
    Checks monthly usage against plan limits and records executions.

    Successful checks are cached per tenant for the cache's TTL.
    """

    def __init__(self, session_factory: sessionmaker[Session], cache: TTLCache[str, QuotaCheck]):
        self.session_factory = session_factory
        self.cache = cache

    def _check(self, member_id: str, domain: str | None) -> QuotaCheck:
        with self.session_factory() as db:
            account = account_service.get_or_create(db, member_id, domain)
            plan = account.plan or "free"
            quota = plan_limit(plan)
            usage = request_log_service.get_monthly_count(db, account.id)
            return QuotaCheck(
                allowed=usage < quota,
                usage=usage,
                quota=quota,
                plan=plan,
                account_id=account.id,
            )

    async def check_quota(self, member_id: str, domain: str | None) -> QuotaCheck:
        """
        Check whether the tenant may run another request.

        Returns:
            QuotaCheck; ``allowed`` is True whenever the check itself fails
        """
        cached = self.cache.get(member_id)
        if cached is not None:
            return cached

        try:
            result = await run_in_threadpool(self._check, member_id, domain)
        except SQLAlchemyError as e:
            logger.error("Quota check failed, allowing request (fail-open)", member_id=member_id, error=str(e))
            return QuotaCheck(allowed=True, usage=0, quota=0, plan="unknown", account_id=None)

        self.cache.put(member_id, result)
        return result

    def _record(
        self,
        account_id: int,
        url: str,
        method: str,
        status_code: int | None,
        success: bool,
        execution_time: int | None,
        error_message: str | None,
    ) -> None:
        with self.session_factory() as db:
            request_log_service.save_request_log(
                db,
                account_id=account_id,
                url=url,
                method=method,
                status_code=status_code,
                success=success,
                execution_time=execution_time,
                error_message=error_message,
            )

    async def record_execution(
        self,
        account_id: int | None,
        url: str,
        method: str,
        status_code: int | None,
        success: bool,
        execution_time: int | None = None,
        error_message: str | None = None,
    ) -> None:
        """Log an execution; storage failures are logged, never raised."""
        if account_id is None:
            return
        try:
            await run_in_threadpool(
                self._record, account_id, url, method, status_code, success, execution_time, error_message
            )
        except SQLAlchemyError as e:
            logger.error("Failed to log request", account_id=account_id, error=str(e))
