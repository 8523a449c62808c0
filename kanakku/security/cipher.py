"""
Cipher Codec

Reversible transform used for everything stored obscured or exported:
JSON text -> UTF-8 bytes -> XOR with a repeating key -> base64.

IMPORTANT: This is obfuscation against casual inspection, not
encryption. The default key ships with the application, so anyone with
the source can read a file made with it. Backups may use a user
password as the key instead.
"""

import base64
import binascii
import json
from typing import Any, Optional

import structlog

from kanakku.config import get_settings
from kanakku.models.result import FailureKind, OperationResult


logger = structlog.get_logger(__name__)


class CipherCodec:
    """
    Encode JSON-compatible values to printable cipher text and back.

    `decode` never raises for bad input; it returns a DECODE_FAILURE
    result and the caller decides how to surface it.
    """

    def __init__(self, secret_key: Optional[str] = None):
        key = secret_key or get_settings().security.secret_key
        self._key = key.encode("utf-8")

    @staticmethod
    def xor_bytes(data: bytes, key: bytes) -> bytes:
        """XOR each byte with the key repeated cyclically."""
        if not key:
            raise ValueError("Cipher key must not be empty")
        key_length = len(key)
        return bytes(b ^ key[i % key_length] for i, b in enumerate(data))

    def _key_for(self, key: Optional[str]) -> bytes:
        return key.encode("utf-8") if key else self._key

    def encode(self, value: Any, key: Optional[str] = None) -> str:
        """
        Encode a JSON-compatible value.

        Args:
            value: dict/list/str/number/bool/None
            key: Optional override of the default key (backup password)

        Raises:
            TypeError: If value is not JSON serializable
        """
        text = json.dumps(value, ensure_ascii=False, separators=(",", ":"))
        obscured = self.xor_bytes(text.encode("utf-8"), self._key_for(key))
        return base64.b64encode(obscured).decode("ascii")

    def decode(self, cipher_text: Optional[str], key: Optional[str] = None) -> OperationResult:
        """
        Reverse `encode`.

        Returns:
            OperationResult with the decoded value, or DECODE_FAILURE
        """
        if not cipher_text or not cipher_text.strip():
            return OperationResult.fail(
                FailureKind.DECODE_FAILURE,
                "Nothing to decode",
            )

        try:
            obscured = base64.b64decode(cipher_text.strip(), validate=True)
            text = self.xor_bytes(obscured, self._key_for(key)).decode("utf-8")
            value = json.loads(text)
        except (binascii.Error, UnicodeDecodeError, ValueError) as e:
            logger.warning("cipher_decode_failed", error_type=type(e).__name__)
            return OperationResult.fail(
                FailureKind.DECODE_FAILURE,
                "Data is corrupted or was encoded with a different key",
            )

        return OperationResult.ok(value)
