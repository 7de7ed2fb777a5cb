from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.time import utcnow
from app.models.external_account import ExternalAccount


def get_account(db: Session, *, provider: str, provider_account_id: str) -> ExternalAccount | None:
    stmt = select(ExternalAccount).where(
        ExternalAccount.provider == provider,
        ExternalAccount.provider_account_id == provider_account_id,
    )
    return db.execute(stmt).scalars().first()


def list_accounts(db: Session, *, user_id: uuid.UUID) -> list[ExternalAccount]:
    stmt = select(ExternalAccount).where(ExternalAccount.user_id == user_id).order_by(ExternalAccount.provider)
    return list(db.execute(stmt).scalars().all())


def create_account(
    db: Session,
    *,
    user_id: uuid.UUID,
    provider: str,
    provider_account_id: str,
    encrypted_access_token: str,
    encrypted_refresh_token: str | None,
    expires_at: datetime | None,
) -> ExternalAccount:
    now = utcnow()
    row = ExternalAccount(
        user_id=user_id,
        provider=provider,
        provider_account_id=provider_account_id,
        encrypted_access_token=encrypted_access_token,
        encrypted_refresh_token=encrypted_refresh_token,
        expires_at=expires_at,
        created_at=now,
        updated_at=now,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def update_tokens(
    db: Session,
    account: ExternalAccount,
    *,
    encrypted_access_token: str,
    encrypted_refresh_token: str | None,
    expires_at: datetime | None,
) -> ExternalAccount:
    # Providers do not always re-issue a refresh token or an expiry; keep the stored ones.
    account.encrypted_access_token = encrypted_access_token
    if encrypted_refresh_token is not None:
        account.encrypted_refresh_token = encrypted_refresh_token
    if expires_at is not None:
        account.expires_at = expires_at
    account.updated_at = utcnow()
    db.add(account)
    db.commit()
    db.refresh(account)
    return account
