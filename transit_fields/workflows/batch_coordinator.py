"""Batch Coordinator - encrypt or decrypt one field across many records

How: Encode every value with the field's codec, make one batch call through
the TransitManager, then write each result back onto its record.

Only convergent fields with a single shared context can be batched.
"""

from typing import Any, List, Sequence

import structlog

from transit_fields.errors import ValidationError
from transit_fields.security.encryption_spec import EncryptionSpec
from transit_fields.security.transit_manager import TransitManager

logger = structlog.get_logger()


class BatchCoordinator:
    """Gathers one field of many records into a single batch call"""

    def __init__(self, spec: EncryptionSpec, manager: TransitManager):
        self.spec = spec
        self.manager = manager

    def encrypt(self, records: Sequence[Any], plaintexts: Sequence[Any], validate: bool = True) -> List[Any]:
        """Encrypt plaintexts and store each ciphertext on the matching record

        Args:
            records: Objects receiving the ciphertext on spec.encrypted_column
            plaintexts: Domain values, same length and order as records
            validate: Passed to record.save() when the record has one

        Returns:
            Ciphertexts in record order
        """
        self._check_batchable()
        if len(records) != len(plaintexts):
            raise ValidationError(
                f"{len(records)} records but {len(plaintexts)} plaintexts for {self.spec.attribute}"
            )

        raw_plaintexts = [self.spec.encode(value) for value in plaintexts]
        ciphertexts = self.manager.batch_encrypt(
            self.spec.path,
            self.spec.key,
            raw_plaintexts,
            self.spec.mode,
            context=self.spec.resolve_context(),
        )

        for record, ciphertext in zip(records, ciphertexts):
            setattr(record, self.spec.encrypted_column, ciphertext)
            save = getattr(record, "save", None)
            if callable(save):
                save(validate=validate)

        logger.info("Batch encrypted", attribute=self.spec.attribute, records=len(records))
        return ciphertexts

    def decrypt(self, records: Sequence[Any]) -> List[Any]:
        """Decrypt spec.encrypted_column of every record and set the decoded value on spec.attribute

        Returns:
            Decoded values in record order
        """
        self._check_batchable()

        ciphertexts = [getattr(record, self.spec.encrypted_column, None) for record in records]
        raw_plaintexts = self.manager.batch_decrypt(
            self.spec.path,
            self.spec.key,
            ciphertexts,
            self.spec.mode,
            context=self.spec.resolve_context(),
        )
        plaintexts = [self.spec.decode(raw) for raw in raw_plaintexts]

        for record, plaintext in zip(records, plaintexts):
            setattr(record, self.spec.attribute, plaintext)

        logger.info("Batch decrypted", attribute=self.spec.attribute, records=len(records))
        return plaintexts

    def _check_batchable(self):
        if not self.spec.convergent:
            raise ValidationError("Batch operations work only with convergent attributes")
        if self.spec.has_record_context:
            raise ValidationError(
                f"{self.spec.attribute}: a per-record context cannot be shared by a batch"
            )
