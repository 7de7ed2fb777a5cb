from app.models.external_account import ExternalAccount
from app.models.user import User

__all__ = [
    "User",
    "ExternalAccount",
]
