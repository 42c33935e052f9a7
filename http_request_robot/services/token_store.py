"""
Persistence of OAuth credentials.

Thin repository over the ``oauth_tokens`` table. Methods are synchronous;
async callers run them in the thread pool.
"""

from typing import Protocol

from sqlalchemy.orm import Session, sessionmaker

from ..models.oauth_token import OAuthToken
from ..schemas.invocation import OAuthCredential


class TokenStore(Protocol):
    """Storage operations the token manager relies on."""

    def get(self, tenant_id: str) -> OAuthCredential | None: ...

    def save(self, credential: OAuthCredential) -> OAuthCredential: ...

    def update(self, credential: OAuthCredential, previous_refresh_token: str) -> OAuthCredential | None: ...

    def delete(self, tenant_id: str) -> None: ...


def _to_credential(row: OAuthToken) -> OAuthCredential:
    return OAuthCredential(
        tenant_id=row.member_id,
        domain=row.domain,
        access_token=row.access_token,
        refresh_token=row.refresh_token,
        expires_at=row.expires_at,
        client_endpoint=row.client_endpoint,
        server_endpoint=row.server_endpoint,
        scope=row.scope,
    )


class SqlTokenStore:
    """TokenStore backed by SQLAlchemy."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self.session_factory = session_factory

    def get(self, tenant_id: str) -> OAuthCredential | None:
        with self.session_factory() as db:
            row = db.get(OAuthToken, tenant_id)
            return _to_credential(row) if row is not None else None

    def _write(self, db: Session, row: OAuthToken, credential: OAuthCredential) -> OAuthCredential:
        # Tokens and expiry are always overwritten; the rest only when given
        row.access_token = credential.access_token
        row.refresh_token = credential.refresh_token
        row.expires_at = credential.expires_at
        row.domain = credential.domain or row.domain
        row.client_endpoint = credential.client_endpoint or row.client_endpoint
        row.server_endpoint = credential.server_endpoint or row.server_endpoint
        row.scope = credential.scope or row.scope

        db.commit()
        db.refresh(row)
        return _to_credential(row)

    def save(self, credential: OAuthCredential) -> OAuthCredential:
        """
        Insert or update the tenant's row.

        Domain, endpoints and scope keep their stored value when the new
        credential omits them.
        """
        with self.session_factory() as db:
            row = db.get(OAuthToken, credential.tenant_id)
            if row is None:
                row = OAuthToken(member_id=credential.tenant_id)
                db.add(row)
            return self._write(db, row, credential)

    def update(self, credential: OAuthCredential, previous_refresh_token: str) -> OAuthCredential | None:
        """
        Replace a refreshed credential, never inserting one.

        Returns None when the row is gone or no longer holds
        ``previous_refresh_token``, meaning the tenant was uninstalled or
        reinstalled while the refresh was running.
        """
        with self.session_factory() as db:
            row = db.get(OAuthToken, credential.tenant_id)
            if row is None or row.refresh_token != previous_refresh_token:
                return None
            return self._write(db, row, credential)

    def delete(self, tenant_id: str) -> None:
        with self.session_factory() as db:
            row = db.get(OAuthToken, tenant_id)
            if row is not None:
                db.delete(row)
                db.commit()
