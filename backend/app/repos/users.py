from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.time import utcnow
from app.models.user import User


def get_user_by_email(db: Session, email: str) -> User | None:
    stmt = select(User).where(User.email == email.lower())
    return db.execute(stmt).scalars().first()


def get_user_by_id(db: Session, user_id: uuid.UUID) -> User | None:
    return db.get(User, user_id)


def create_user(db: Session, *, email: str, name: str, picture: str) -> User:
    now = utcnow()
    user = User(email=email.lower(), name=name, picture=picture, created_at=now, updated_at=now)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def update_profile(db: Session, user: User, *, name: str, picture: str) -> User:
    user.name = name
    user.picture = picture
    user.updated_at = utcnow()
    db.add(user)
    db.commit()
    db.refresh(user)
    return user
