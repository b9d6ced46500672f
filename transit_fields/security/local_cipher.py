"""Local Cipher - in-process AES fallback when the transit service is disabled

Self-Explanatory: Development/test stand-in for the transit service.
How: AES-128-CBC with a key derived from (path, key[, context]), so no local
key store is needed.

Framing (both modes): base64(iv(16 bytes) || AES-CBC(PKCS7(plaintext)))
- Random mode: fresh os.urandom IV per call
- Convergent mode: IV derived from the context, so equal plaintexts give
  equal ciphertext

NOT for production data: anyone who knows the path and key name can decrypt.
"""

import base64
import binascii
import hashlib
import hmac
import os
from typing import Optional

import structlog
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from transit_fields.errors import RequestError

logger = structlog.get_logger()

KEY_BYTES = 16
IV_BYTES = 16
BLOCK_BITS = 128
CONVERGENT_IV_LABEL = b"transit-fields/convergent-iv"


class LocalCipher:
    """AES-128-CBC cipher keyed by transit path and key name"""

    @staticmethod
    def key_for(path: str, key: str, context: Optional[bytes] = None) -> bytes:
        """Derive the 16-byte AES key for a path/key(/context) triple"""
        material = f"{path}/{key}".encode("utf-8")
        if context is not None:
            material += b"/" + context
        return hashlib.sha256(material).digest()[:KEY_BYTES]

    @staticmethod
    def convergent_iv(context: bytes) -> bytes:
        return hmac.new(context, CONVERGENT_IV_LABEL, hashlib.sha256).digest()[:IV_BYTES]

    def encrypt(self, path: str, key: str, plaintext: bytes, context: Optional[bytes] = None) -> str:
        """Encrypt plaintext bytes

        Args:
            path: Transit mount path
            key: Key name
            plaintext: Bytes to encrypt
            context: Convergent context; None means random mode

        Returns:
            base64(iv || ciphertext) as str
        """
        iv = os.urandom(IV_BYTES) if context is None else self.convergent_iv(context)

        padder = padding.PKCS7(BLOCK_BITS).padder()
        padded = padder.update(plaintext) + padder.finalize()

        encryptor = self._cipher(path, key, context, iv).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()

        return base64.b64encode(iv + ciphertext).decode("ascii")

    def decrypt(self, path: str, key: str, ciphertext: str, context: Optional[bytes] = None) -> bytes:
        """Decrypt a value produced by encrypt with the same path, key and context

        Raises:
            RequestError: if the value is not valid base64 framing or fails to decrypt
        """
        try:
            raw = base64.b64decode(ciphertext, validate=True)
        except (binascii.Error, ValueError):
            raise RequestError("invalid ciphertext: not base64")

        if len(raw) < IV_BYTES + BLOCK_BITS // 8 or (len(raw) - IV_BYTES) % (BLOCK_BITS // 8):
            raise RequestError("invalid ciphertext: bad length")

        iv, body = raw[:IV_BYTES], raw[IV_BYTES:]
        decryptor = self._cipher(path, key, context, iv).decryptor()
        padded = decryptor.update(body) + decryptor.finalize()

        try:
            unpadder = padding.PKCS7(BLOCK_BITS).unpadder()
            return unpadder.update(padded) + unpadder.finalize()
        except ValueError:
            raise RequestError("invalid ciphertext: decryption failed")

    def _cipher(self, path: str, key: str, context: Optional[bytes], iv: bytes) -> Cipher:
        return Cipher(
            algorithms.AES(self.key_for(path, key, context)),
            modes.CBC(iv),
            backend=default_backend(),
        )
