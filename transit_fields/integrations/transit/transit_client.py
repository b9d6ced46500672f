"""Transit Client - wire adapter for the transit secrets engine

Self-Explanatory: Thin translation of encrypt/decrypt calls into HTTP requests.
How: PUT {address}/v1/{path}/encrypt/{key} and {path}/decrypt/{key}, single
item or batch_input payloads, strict base64 on everything that crosses the wire.

Wire format:
- encrypt: {plaintext: b64, [context: b64, convergent_encryption: true, derived: true]}
  -> {data: {ciphertext}}
- decrypt: {ciphertext, [context: b64]} -> {data: {plaintext: b64}}
- batch:   {batch_input: [{plaintext|ciphertext, context}, ...], ...}
  -> {data: {batch_results: [...]}} in request order

Errors are mapped to typed exceptions and never retried here; retry is the
caller's decision.
"""

import base64
import binascii
from typing import Dict, List, Optional

import httpx
import structlog
from pydantic import BaseModel

from transit_fields.errors import (
    RequestError,
    ServiceError,
    TransitConnectionError,
)
from transit_fields.utils.metrics import track_duration

logger = structlog.get_logger()


def b64encode(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def b64decode(value: str) -> bytes:
    """Strict base64 decode (no whitespace or junk tolerated)"""
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError, TypeError) as e:
        raise RequestError(f"transit service returned invalid base64: {e}")


class BatchResult(BaseModel):
    """One entry of a batch_results array"""
    ciphertext: Optional[str] = None
    plaintext: Optional[str] = None
    error: Optional[str] = None


class TransitClient:
    """Client for the transit encrypt/decrypt endpoints"""

    def __init__(
        self,
        address: str = "http://127.0.0.1:8200",
        token: Optional[str] = None,
        namespace: Optional[str] = None,
        timeout: float = 30.0,
        http_client: Optional[httpx.Client] = None,
    ):
        self.address = address.rstrip("/")
        self.token = token
        self.namespace = namespace
        self.timeout = timeout
        self._http = http_client or httpx.Client(timeout=timeout)
        logger.info("Transit client initialized", address=self.address, namespace=namespace)

    @classmethod
    def from_settings(cls, settings, http_client: Optional[httpx.Client] = None) -> "TransitClient":
        return cls(
            address=settings.address,
            token=settings.token,
            namespace=settings.namespace,
            timeout=settings.timeout,
            http_client=http_client,
        )

    def close(self):
        self._http.close()

    # ------------------------------------------------------------------
    # Single item
    # ------------------------------------------------------------------

    def encrypt(self, path: str, key: str, plaintext: bytes, context: Optional[bytes] = None) -> str:
        """Encrypt one value

        Args:
            path: Transit mount path
            key: Named key
            plaintext: Raw plaintext bytes
            context: Convergent context; None means random encryption

        Returns:
            Ciphertext token from the service
        """
        payload = {"plaintext": b64encode(plaintext)}
        if context is not None:
            payload.update(self._convergent_flags(context))
        data = self.write(self._route(path, "encrypt", key), payload)
        return self._field(data, "ciphertext")

    def decrypt(self, path: str, key: str, ciphertext: str, context: Optional[bytes] = None) -> bytes:
        """Decrypt one ciphertext token into raw plaintext bytes"""
        payload = {"ciphertext": ciphertext}
        if context is not None:
            payload["context"] = b64encode(context)
        data = self.write(self._route(path, "decrypt", key), payload)
        return b64decode(self._field(data, "plaintext"))

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    def batch_encrypt(
        self, path: str, key: str, plaintexts: List[bytes], context: Optional[bytes] = None
    ) -> List[str]:
        """Encrypt many values in one round trip; results in input order"""
        encoded_context = b64encode(context) if context is not None else None
        items = []
        for plaintext in plaintexts:
            item = {"plaintext": b64encode(plaintext)}
            if encoded_context is not None:
                item["context"] = encoded_context
            items.append(item)

        payload = {"batch_input": items}
        if context is not None:
            payload.update({"convergent_encryption": True, "derived": True})

        results = self._batch_results(
            self._route(path, "encrypt", key), payload, len(items), "ciphertext"
        )
        return [result.ciphertext for result in results]

    def batch_decrypt(
        self, path: str, key: str, ciphertexts: List[str], context: Optional[bytes] = None
    ) -> List[bytes]:
        """Decrypt many ciphertexts in one round trip; results in input order"""
        encoded_context = b64encode(context) if context is not None else None
        items = []
        for ciphertext in ciphertexts:
            item = {"ciphertext": ciphertext}
            if encoded_context is not None:
                item["context"] = encoded_context
            items.append(item)

        results = self._batch_results(
            self._route(path, "decrypt", key), {"batch_input": items}, len(items), "plaintext"
        )
        return [b64decode(result.plaintext) for result in results]

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    @track_duration("transit_write")
    def write(self, route: str, payload: Dict) -> Dict:
        """PUT payload to /v1/{route} and return the response's data block

        Raises:
            TransitConnectionError: transport failure (refused, timeout, reset)
            ServiceError: 5xx response
            RequestError: 4xx response or malformed body
        """
        url = f"{self.address}/v1/{route}"
        try:
            response = self._http.put(url, json=payload, headers=self._headers())
        except httpx.TransportError as e:
            logger.error("Transit service unreachable", route=route, error=str(e))
            raise TransitConnectionError(f"could not reach transit service: {e}")

        if response.status_code >= 400:
            errors = self._errors_from(response)
            message = "; ".join(errors) or response.reason_phrase or "transit request failed"
            logger.error(
                "Transit request failed",
                route=route,
                status=response.status_code,
                errors=errors,
            )
            error_class = ServiceError if response.status_code >= 500 else RequestError
            raise error_class(message, status_code=response.status_code, errors=errors)

        try:
            body = response.json()
        except ValueError:
            raise RequestError("transit service returned a non-JSON body", status_code=response.status_code)

        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict):
            raise RequestError("transit response is missing its data block", status_code=response.status_code)

        logger.debug("Transit request completed", route=route, status=response.status_code)
        return data

    def _batch_results(self, route: str, payload: Dict, expected: int, field: str) -> List[BatchResult]:
        data = self.write(route, payload)
        results = [BatchResult(**item) for item in data.get("batch_results") or []]

        errors = [result.error for result in results if result.error]
        if errors:
            raise RequestError(f"batch request failed: {errors[0]}", errors=errors)
        if len(results) != expected:
            raise RequestError(
                f"batch response has {len(results)} results for {expected} inputs"
            )
        missing = [index for index, result in enumerate(results) if getattr(result, field) is None]
        if missing:
            raise RequestError(f"batch results {missing} are missing '{field}'")
        return results

    @staticmethod
    def _field(data: Dict, field: str) -> str:
        value = data.get(field)
        if not isinstance(value, str):
            raise RequestError(f"transit response is missing '{field}'")
        return value

    def _headers(self) -> Dict[str, str]:
        headers = {}
        if self.token:
            headers["X-Vault-Token"] = self.token
        if self.namespace:
            headers["X-Vault-Namespace"] = self.namespace
        return headers

    @staticmethod
    def _route(path: str, operation: str, key: str) -> str:
        return "/".join([str(path).strip("/"), operation, str(key)])

    @staticmethod
    def _convergent_flags(context: bytes) -> Dict:
        return {
            "context": b64encode(context),
            "convergent_encryption": True,
            "derived": True,
        }

    @staticmethod
    def _errors_from(response: httpx.Response) -> List[str]:
        try:
            body = response.json()
        except ValueError:
            return [response.text] if response.text else []
        if isinstance(body, dict) and isinstance(body.get("errors"), list):
            return [str(e) for e in body["errors"]]
        return []
