"""Encrypted Fields - per-field descriptor table

Holds the EncryptionSpec of every encrypted attribute and routes values
through codec + TransitManager. Persistence layers call into this instead of
talking to the manager directly.
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence

import structlog

from transit_fields.errors import ValidationError
from transit_fields.security.encryption_spec import EncryptionSpec
from transit_fields.security.transit_manager import TransitManager
from transit_fields.workflows.batch_coordinator import BatchCoordinator

logger = structlog.get_logger()


class EncryptedFields:
    """Registry of encrypted attributes for one record type"""

    def __init__(self, manager: TransitManager):
        self.manager = manager
        self._specs: Dict[str, EncryptionSpec] = {}

    def register(self, spec: EncryptionSpec) -> EncryptionSpec:
        self._specs[spec.attribute] = spec
        logger.debug(
            "Encrypted field registered",
            attribute=spec.attribute,
            path=spec.path,
            key=spec.key,
            mode=spec.mode.value,
        )
        return spec

    def declare(self, attribute: str, **options) -> EncryptionSpec:
        """EncryptionSpec.declare + register, with the manager's application as default"""
        options.setdefault("application", self.manager.settings.application)
        return self.register(EncryptionSpec.declare(attribute, **options))

    def spec_for(self, attribute: str) -> EncryptionSpec:
        try:
            return self._specs[attribute]
        except KeyError:
            raise ValidationError(f"{attribute!r} is not an encrypted attribute")

    def __contains__(self, attribute: str) -> bool:
        return attribute in self._specs

    def __iter__(self):
        return iter(self._specs.values())

    def encrypt_value(self, attribute: str, value: Any, record: Any = None) -> Optional[str]:
        """Encode value with the field's codec and encrypt it"""
        spec = self.spec_for(attribute)
        return self.manager.encrypt(
            spec.path,
            spec.key,
            spec.encode(value),
            spec.mode,
            context=spec.resolve_context(record),
        )

    def decrypt_value(self, attribute: str, ciphertext: Optional[str], record: Any = None) -> Any:
        """Decrypt ciphertext and decode it with the field's codec"""
        spec = self.spec_for(attribute)
        plaintext = self.manager.decrypt(
            spec.path,
            spec.key,
            ciphertext,
            spec.mode,
            context=spec.resolve_context(record),
        )
        return spec.decode(plaintext)

    def search_options(self, attributes: Mapping[str, Any], record: Any = None) -> Dict[str, Optional[str]]:
        """Map plaintext lookups to {encrypted_column: ciphertext} for equality queries

        Raises:
            ValidationError: an attribute is not convergent
        """
        options = {}
        for attribute, value in attributes.items():
            spec = self.spec_for(attribute)
            if not spec.convergent:
                raise ValidationError(f"You cannot search with non-convergent field {attribute!r}")
            options[spec.encrypted_column] = self.encrypt_value(attribute, value, record)
        return options

    def persist_all(
        self, attribute: str, records: Sequence[Any], plaintexts: Sequence[Any], validate: bool = True
    ) -> List[Any]:
        """Batch-encrypt one attribute for many records"""
        return BatchCoordinator(self.spec_for(attribute), self.manager).encrypt(
            records, plaintexts, validate=validate
        )

    def load_all(self, attribute: str, records: Sequence[Any]) -> List[Any]:
        """Batch-decrypt one attribute for many records"""
        return BatchCoordinator(self.spec_for(attribute), self.manager).decrypt(records)
