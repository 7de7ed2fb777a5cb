"""Reconcile an external provider identity with exactly one local user.

Order matters: look up the provider account first, then the email, and only
then create. Both lookups are backed by unique constraints, so when two
first-time logins race, the loser's insert fails with an IntegrityError and
another pass of the same sequence finds the winner's rows. The loser can
collide twice: once on the user's email and once more on the account if the
winner has not committed it yet.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.sessions import SessionData
from app.core.time import utcnow
from app.crypto.fernet import TokenCipher
from app.models.user import User
from app.providers.base import OAuthToken, Provider, ProviderProfile
from app.repos.accounts import create_account, get_account, update_tokens
from app.repos.users import create_user, get_user_by_email, get_user_by_id, update_profile

logger = logging.getLogger(__name__)

# One collision per unique step: users.email, then the external account.
_ATTEMPTS = 3


class LinkingError(RuntimeError):
    pass


class UnverifiedEmailError(LinkingError):
    pass


def link_identity(
    db: Session,
    *,
    provider: Provider,
    profile: ProviderProfile,
    token: OAuthToken,
    cipher: TokenCipher,
) -> User:
    if not profile.external_id:
        raise LinkingError(f"{provider.value} profile has no account id")

    attempt = 1
    while True:
        try:
            return _reconcile(db, provider=provider, profile=profile, token=token, cipher=cipher)
        except IntegrityError:
            db.rollback()
            if attempt >= _ATTEMPTS:
                logger.error(f"Could not link {provider.value} account after {attempt} attempts", exc_info=True)
                raise
            logger.info(f"Concurrent signup detected for {provider.value}; retrying lookup")
            attempt += 1


def _reconcile(
    db: Session,
    *,
    provider: Provider,
    profile: ProviderProfile,
    token: OAuthToken,
    cipher: TokenCipher,
) -> User:
    account = get_account(db, provider=provider.value, provider_account_id=profile.external_id)

    if account is not None:
        user = get_user_by_id(db, account.user_id)
        if user is None:
            raise LinkingError(f"{provider.value} account {account.id} points at a missing user")
        user = update_profile(db, user, name=profile.display_name, picture=profile.avatar_url)
        update_tokens(
            db,
            account,
            encrypted_access_token=cipher.encrypt_str(token.access_token),
            encrypted_refresh_token=cipher.encrypt_optional(token.refresh_token),
            expires_at=token.expires_at,
        )
        logger.info(f"Returning {provider.value} login for user {user.id}")
        return user

    if not profile.email or not profile.verified_email:
        raise UnverifiedEmailError(f"{provider.value} did not provide a verified email address")

    user = get_user_by_email(db, profile.email)
    if user is None:
        user = create_user(db, email=profile.email, name=profile.display_name, picture=profile.avatar_url)
        logger.info(f"Created user {user.id} from {provider.value} login")
    else:
        logger.info(f"Linking {provider.value} account to existing user {user.id}")

    create_account(
        db,
        user_id=user.id,
        provider=provider.value,
        provider_account_id=profile.external_id,
        encrypted_access_token=cipher.encrypt_str(token.access_token),
        encrypted_refresh_token=cipher.encrypt_optional(token.refresh_token),
        expires_at=token.expires_at,
    )
    return user


def create_session(user: User, ttl: timedelta, now: datetime | None = None) -> SessionData:
    if now is None:
        now = utcnow()
    return SessionData(
        user_id=str(user.id),
        email=user.email,
        name=user.name or "",
        picture=user.picture or "",
        expires_at=now + ttl,
    )
