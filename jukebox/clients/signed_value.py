"""
HMAC signed values.

Signed values carry the OAuth ``state`` parameter, the session cookie and the
"return to" links. The wire format is ``base64(payload)|base64(mac)``.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import logging
from hashlib import sha256
from typing import Optional

logger = logging.getLogger(__name__)

_SEPARATOR = "|"


class SignatureInvalidError(Exception):
    """Raised when a signed value is malformed or has been tampered with."""


class SignedValueCodec:
    """Sign and verify opaque strings with a process-wide secret."""

    def __init__(self, secret_key: str) -> None:
        if not secret_key:
            raise ValueError("Signing secret must be provided.")
        self._secret_key = secret_key.encode("utf-8")

    def _mac(self, payload: bytes) -> bytes:
        return hmac.new(self._secret_key, payload, sha256).digest()

    def sign(self, payload: str) -> str:
        raw = payload.encode("utf-8")
        encoded_payload = base64.b64encode(raw).decode("ascii")
        encoded_mac = base64.b64encode(self._mac(raw)).decode("ascii")
        return f"{encoded_payload}{_SEPARATOR}{encoded_mac}"

    def unsign(self, signed: str) -> str:
        """Return the payload of ``signed`` or raise ``SignatureInvalidError``."""
        parts = signed.split(_SEPARATOR)
        if len(parts) != 2:
            raise SignatureInvalidError("Signed value must have exactly two parts.")

        encoded_payload, encoded_mac = parts
        try:
            raw = base64.b64decode(encoded_payload.encode("ascii"), validate=True)
            mac = base64.b64decode(encoded_mac.encode("ascii"), validate=True)
        except (binascii.Error, UnicodeEncodeError) as exc:
            raise SignatureInvalidError("Signed value is not valid base64.") from exc

        # Reject alternate encodings that differ only in unused padding bits.
        if (
            base64.b64encode(raw).decode("ascii") != encoded_payload
            or base64.b64encode(mac).decode("ascii") != encoded_mac
        ):
            raise SignatureInvalidError("Signed value is not canonically encoded.")

        if not hmac.compare_digest(mac, self._mac(raw)):
            raise SignatureInvalidError("Signature mismatch.")

        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise SignatureInvalidError("Signed payload is not UTF-8.") from exc

    def verify(self, signed: Optional[str]) -> Optional[str]:
        """
        Return the payload of ``signed``, or ``None`` if it cannot be trusted.

        A failed verification is indistinguishable from an absent value.
        """
        if not signed:
            return None
        try:
            return self.unsign(signed)
        except SignatureInvalidError as exc:
            logger.warning("Invalid signed value", extra={"error": str(exc)})
            return None


__all__ = ["SignatureInvalidError", "SignedValueCodec"]
