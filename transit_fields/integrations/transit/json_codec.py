"""Transit JSON Codec - encrypt arbitrary JSON values under one transit key

Values are JSON-dumped before encryption and JSON-loaded after decryption,
using random (non-convergent) encryption on the transit mount.
"""

import json
from typing import Any, List, Optional, Sequence

import structlog

from transit_fields.integrations.transit.transit_client import TransitClient
from transit_fields.utils.serializers import is_blank

logger = structlog.get_logger()


class TransitJsonCodec:
    def __init__(self, key: str, client: TransitClient, path: str = "transit"):
        self.key = key
        self.client = client
        self.path = path

    def encrypt(self, value: Any) -> Optional[str]:
        if is_blank(value):
            return None
        return self.client.encrypt(self.path, self.key, self._dump(value))

    def decrypt(self, ciphertext: Optional[str]) -> Any:
        if is_blank(ciphertext):
            return None
        return self._load(self.client.decrypt(self.path, self.key, ciphertext))

    def batch_encrypt(self, values: Optional[Sequence[Any]]) -> List[str]:
        if not values:
            return []
        return self.client.batch_encrypt(self.path, self.key, [self._dump(v) for v in values])

    def batch_decrypt(self, ciphertexts: Optional[Sequence[str]]) -> List[Any]:
        if not ciphertexts:
            return []
        raws = self.client.batch_decrypt(self.path, self.key, list(ciphertexts))
        return [self._load(raw) for raw in raws]

    @staticmethod
    def _dump(value: Any) -> bytes:
        return json.dumps(value).encode("utf-8")

    @staticmethod
    def _load(raw: bytes) -> Any:
        return json.loads(raw.decode("utf-8"))
