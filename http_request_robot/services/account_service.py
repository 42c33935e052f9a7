"""
Account service for tenant bookkeeping.

Accounts are created on install or on the first invocation from a tenant.
"""

from sqlalchemy.orm import Session

from ..models.account import Account


def get_by_member_id(db: Session, member_id: str) -> Account | None:
    """Get the account for a tenant, if any."""
    return db.query(Account).filter(Account.member_id == member_id).first()


def upsert_account(db: Session, member_id: str, domain: str) -> Account:
    """
    Create the tenant's account, or update its domain if it exists.

    Args:
        db: Database session
        member_id: Tenant identifier
        domain: Portal domain

    Returns:
        The stored account
    """
    account = get_by_member_id(db, member_id)
    if account is None:
        account = Account(member_id=member_id, domain=domain)
        db.add(account)
    else:
        account.domain = domain
    db.commit()
    db.refresh(account)
    return account


def get_or_create(db: Session, member_id: str, domain: str | None) -> Account:
    """Ensure an account row exists and return it."""
    account = get_by_member_id(db, member_id)
    if account is None:
        account = upsert_account(db, member_id, domain or "unknown")
    return account


def update_plan(db: Session, member_id: str, plan: str) -> Account | None:
    """Change a tenant's plan. Returns None if the tenant has no account."""
    account = get_by_member_id(db, member_id)
    if account is None:
        return None
    account.plan = plan
    db.commit()
    db.refresh(account)
    return account
