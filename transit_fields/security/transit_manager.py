"""Transit Manager - field encryption through a transit secrets engine

Self-Explanatory: Single entry point for encrypt/decrypt/batch_encrypt/batch_decrypt.
How: Remote transit service when enabled, in-process LocalCipher otherwise.

Modes:
- RANDOM: every call yields a different ciphertext
- CONVERGENT: same (path, key, plaintext, context) always yields the same
  ciphertext, so encrypted values can be compared for equality

Convergent context is the per-field/per-record context when one is given,
otherwise the process-wide convergent_encryption_context secret.

Guarantees:
- None/"" pass through untouched, with no network call
- encrypt/decrypt retry connection and 5xx failures, never 4xx
- batch calls make exactly one round trip for all non-blank items and return
  results at the same positions as the input
- a failed call is raised, never replaced by plaintext or a partial batch
"""

from functools import lru_cache
from typing import Any, Callable, List, Optional, Sequence, Union

import structlog

from transit_fields.config import TransitSettings
from transit_fields.errors import TransitError, ValidationError
from transit_fields.integrations.transit.transit_client import TransitClient
from transit_fields.security.encryption_spec import EncryptionMode
from transit_fields.security.local_cipher import LocalCipher
from transit_fields.utils.metrics import record_batch_items, record_failure, record_operation
from transit_fields.utils.retry import with_retries

logger = structlog.get_logger()

Mode = Union[EncryptionMode, str]


def is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, (str, bytes)) and len(value) == 0)


class TransitManager:
    """Encryption orchestrator: backend selection, retries, encoding, context"""

    def __init__(
        self,
        settings: TransitSettings,
        client: Optional[TransitClient] = None,
        local_cipher: Optional[LocalCipher] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.settings = settings
        if client is None and settings.enabled:
            client = TransitClient.from_settings(settings)
        self.client = client
        self.local_cipher = local_cipher or LocalCipher()
        self._sleep = sleep

        logger.info(
            "Transit manager initialized",
            backend=self.backend,
            retry_attempts=settings.retry_attempts,
        )
        if not settings.enabled:
            logger.warning("Transit service disabled, using local cipher (development only)")

    @property
    def backend(self) -> str:
        return "transit" if self.settings.enabled else "local"

    # ------------------------------------------------------------------
    # Single value
    # ------------------------------------------------------------------

    def encrypt(
        self,
        path: Any,
        key: Any,
        plaintext: Optional[str],
        mode: Mode = EncryptionMode.RANDOM,
        context: Optional[str] = None,
    ) -> Optional[str]:
        """Encrypt plaintext for path/key

        Args:
            path: Transit mount path (coerced to str)
            key: Key name (coerced to str)
            plaintext: Value to encrypt; None or "" is returned unchanged
            mode: RANDOM or CONVERGENT
            context: Convergent context overriding the process-wide secret

        Returns:
            Ciphertext string
        """
        if is_empty(plaintext):
            return plaintext

        path, key, mode = str(path), str(key), self._mode(mode)

        try:
            raw = self._to_bytes(plaintext)
            context_bytes = self._context_bytes(mode, context)
            if self.settings.enabled:
                ciphertext = self._retrying(
                    "encrypt", lambda: self.client.encrypt(path, key, raw, context_bytes)
                )
            else:
                self._warn_in_memory("encrypt", path, key)
                ciphertext = self.local_cipher.encrypt(path, key, raw, context_bytes)
        except TransitError as e:
            self._fail("encrypt", path, key, e)
            raise

        record_operation("encrypt", self.backend)
        return self._to_text(ciphertext)

    def decrypt(
        self,
        path: Any,
        key: Any,
        ciphertext: Optional[str],
        mode: Mode = EncryptionMode.RANDOM,
        context: Optional[str] = None,
    ) -> Optional[str]:
        """Decrypt ciphertext produced by encrypt with the same path, key, mode and context"""
        if is_empty(ciphertext):
            return ciphertext

        path, key, mode = str(path), str(key), self._mode(mode)

        try:
            context_bytes = self._context_bytes(mode, context)
            if self.settings.enabled:
                raw = self._retrying(
                    "decrypt", lambda: self.client.decrypt(path, key, ciphertext, context_bytes)
                )
            else:
                self._warn_in_memory("decrypt", path, key)
                raw = self.local_cipher.decrypt(path, key, ciphertext, context_bytes)
            plaintext = self._to_text(raw)
        except TransitError as e:
            self._fail("decrypt", path, key, e)
            raise

        record_operation("decrypt", self.backend)
        return plaintext

    # ------------------------------------------------------------------
    # Batch (convergent only)
    # ------------------------------------------------------------------

    def batch_encrypt(
        self,
        path: Any,
        key: Any,
        plaintexts: Optional[Sequence[Optional[str]]],
        mode: Mode = EncryptionMode.CONVERGENT,
        context: Optional[str] = None,
    ) -> List[Optional[str]]:
        """Encrypt many values in one round trip

        Blank entries are not sent and keep their position in the result.

        Raises:
            ValidationError: mode is not CONVERGENT
        """
        return self._batch("batch_encrypt", path, key, plaintexts, mode, context)

    def batch_decrypt(
        self,
        path: Any,
        key: Any,
        ciphertexts: Optional[Sequence[Optional[str]]],
        mode: Mode = EncryptionMode.CONVERGENT,
        context: Optional[str] = None,
    ) -> List[Optional[str]]:
        """Decrypt many values in one round trip; mirror of batch_encrypt"""
        return self._batch("batch_decrypt", path, key, ciphertexts, mode, context)

    def _batch(self, operation, path, key, values, mode, context) -> List[Optional[str]]:
        if self._mode(mode) != EncryptionMode.CONVERGENT:
            raise ValidationError("Batch operations work only with convergent encryption")

        values = list(values or [])
        positions = [index for index, value in enumerate(values) if not is_empty(value)]
        if not positions:
            return values

        path, key = str(path), str(key)
        encrypting = operation == "batch_encrypt"
        try:
            items = [self._to_bytes(values[i]) if encrypting else values[i] for i in positions]
            context_bytes = self._context_bytes(EncryptionMode.CONVERGENT, context)
            if self.settings.enabled:
                call = self.client.batch_encrypt if encrypting else self.client.batch_decrypt
                results = call(path, key, items, context_bytes)
            else:
                self._warn_in_memory(operation, path, key)
                call = self.local_cipher.encrypt if encrypting else self.local_cipher.decrypt
                results = [call(path, key, item, context_bytes) for item in items]

            output = list(values)
            for index, result in zip(positions, results):
                output[index] = self._to_text(result)
        except TransitError as e:
            self._fail(operation, path, key, e)
            raise

        record_operation(operation, self.backend)
        record_batch_items(operation, len(positions))
        logger.debug(
            "Batch completed",
            operation=operation,
            path=path,
            key=key,
            items=len(positions),
            total=len(values),
        )
        return output

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _retrying(self, operation: str, call: Callable):
        return with_retries(
            call,
            attempts=self.settings.retry_attempts,
            base_delay=self.settings.retry_base_delay,
            max_wait=self.settings.retry_max_wait,
            operation_name=operation,
            sleep=self._sleep,
        )

    @staticmethod
    def _mode(mode: Mode) -> EncryptionMode:
        try:
            return EncryptionMode(mode)
        except ValueError:
            raise ValidationError(f"unknown encryption mode {mode!r}")

    def _context_bytes(self, mode: EncryptionMode, context: Optional[Union[str, bytes]]) -> Optional[bytes]:
        if mode != EncryptionMode.CONVERGENT:
            return None
        if isinstance(context, bytes) and context:
            return context
        if context:
            return self._to_bytes(str(context))
        return self.settings.require_convergent_context()

    def _to_bytes(self, value: Union[str, bytes]) -> bytes:
        if isinstance(value, bytes):
            return value
        try:
            return str(value).encode(self.settings.text_encoding)
        except UnicodeEncodeError:
            raise ValidationError(
                f"value cannot be encoded as {self.settings.text_encoding} text"
            )

    def _to_text(self, value: Union[str, bytes]) -> str:
        if isinstance(value, str):
            return value
        try:
            return value.decode(self.settings.text_encoding)
        except UnicodeDecodeError:
            raise ValidationError(
                f"decrypted value is not valid {self.settings.text_encoding} text"
            )

    def _warn_in_memory(self, operation: str, path: str, key: str):
        if self.settings.in_memory_warnings_enabled:
            logger.warning(
                "Using in-memory cipher instead of transit service; not for production data",
                operation=operation,
                path=path,
                key=key,
            )

    def _fail(self, operation: str, path: str, key: str, error: TransitError):
        record_failure(operation, error)
        logger.error(
            "Transit operation failed",
            operation=operation,
            path=path,
            key=key,
            error=str(error),
            error_type=type(error).__name__,
        )


@lru_cache(maxsize=1)
def get_transit_manager() -> TransitManager:
    """Process-wide manager configured from the environment, built on first use"""
    return TransitManager(TransitSettings.from_env())
