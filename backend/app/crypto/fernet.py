from __future__ import annotations

from cryptography.fernet import Fernet, InvalidToken


class TokenDecryptError(ValueError):
    pass


class TokenCipher:
    """Field-level encryption for provider credentials stored in the database."""

    def __init__(self, key: str):
        self._fernet = Fernet(key.encode("utf-8"))

    def encrypt_str(self, value: str) -> str:
        return self._fernet.encrypt(value.encode("utf-8")).decode("utf-8")

    def encrypt_optional(self, value: str | None) -> str | None:
        return self.encrypt_str(value) if value else None

    def decrypt_str(self, value: str) -> str:
        try:
            return self._fernet.decrypt(value.encode("utf-8")).decode("utf-8")
        except InvalidToken as e:
            raise TokenDecryptError("Invalid encrypted token") from e
