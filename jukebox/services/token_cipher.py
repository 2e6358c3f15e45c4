"""
Encryption of provider tokens stored at rest.

Keys are derived from configured secrets. New values are always encrypted with
the current secret; previous secrets are only tried when decrypting, so the
encryption secret can be rotated without forcing every user to sign in again.
"""

from __future__ import annotations

import base64
import hashlib
from typing import Iterable, Optional

from cryptography.fernet import Fernet, InvalidToken, MultiFernet


def _derive_fernet(secret: str) -> Fernet:
    digest = hashlib.sha256(secret.encode("utf-8")).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


class TokenCipherService:
    def __init__(self, *, secret: str, previous_secrets: Iterable[str] = ()) -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        keys = [_derive_fernet(secret)]
        keys.extend(_derive_fernet(old) for old in previous_secrets if old and old != secret)
        self._fernet = MultiFernet(keys)

    def encrypt(self, token: str) -> str:
        return self._fernet.encrypt(token.encode("utf-8")).decode("ascii")

    def decrypt(self, ciphertext: str) -> str:
        """Decrypt a stored token. Raises ``ValueError`` if no known secret matches."""
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode("ascii"))
        except (InvalidToken, UnicodeEncodeError) as exc:
            raise ValueError(
                "Failed to decrypt token; was the token encryption secret rotated?"
            ) from exc
        return plaintext.decode("utf-8")

    def encrypt_optional(self, token: Optional[str]) -> Optional[str]:
        return self.encrypt(token) if token else None

    def decrypt_optional(self, ciphertext: Optional[str]) -> Optional[str]:
        return self.decrypt(ciphertext) if ciphertext else None


__all__ = ["TokenCipherService"]
