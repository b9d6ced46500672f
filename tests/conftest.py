"""Shared fixtures: an in-memory fake transit service and managers wired to it

Run: pytest tests/ -v
"""
import base64
import hashlib
import json
import uuid

import httpx
import pytest

from transit_fields.config import TransitSettings
from transit_fields.integrations.transit.transit_client import TransitClient
from transit_fields.security.transit_manager import TransitManager

CONVERGENT_CONTEXT = "unit-test-convergent-context-0123456789"


class FakeTransit:
    """Enough of the transit secrets engine to round-trip values

    Convergent ciphertext is a pure function of (key, context, plaintext);
    random ciphertext is unique per call. Queue failures with fail_next().
    """

    def __init__(self):
        self.calls = []
        self.failures = []
        self._store = {}

    def fail_next(self, failure, times=1):
        """failure: HTTP status code, or an httpx.TransportError subclass"""
        self.failures.extend([failure] * times)

    def handler(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content or b"{}")
        self.calls.append((request.url.path, payload))

        if self.failures:
            failure = self.failures.pop(0)
            if isinstance(failure, int):
                return httpx.Response(failure, json={"errors": [f"injected {failure}"]})
            raise failure("injected transport failure", request=request)

        route = request.url.path[len("/v1/"):]
        mount, operation, key = route.rsplit("/", 2)

        if "batch_input" in payload:
            results = []
            for item in payload["batch_input"]:
                merged = dict(payload, **item)
                results.append(self._one(operation, key, merged))
            return httpx.Response(200, json={"data": {"batch_results": results}})

        result = self._one(operation, key, payload)
        if "error" in result:
            return httpx.Response(400, json={"errors": [result["error"]]})
        return httpx.Response(200, json={"data": result})

    def _one(self, operation, key, payload):
        context = payload.get("context")
        if operation == "encrypt":
            if payload.get("convergent_encryption") and not context:
                return {"error": "missing 'context' for key derivation"}
            plaintext = payload["plaintext"]
            base64.b64decode(plaintext, validate=True)
            if payload.get("convergent_encryption"):
                digest = hashlib.sha256(f"{key}|{context}|{plaintext}".encode()).hexdigest()
                ciphertext = f"vault:v1:{digest}"
            else:
                ciphertext = f"vault:v1:{uuid.uuid4().hex}"
            self._store[ciphertext] = (key, context, plaintext)
            return {"ciphertext": ciphertext}

        stored = self._store.get(payload.get("ciphertext"))
        if stored is None or stored[0] != key or stored[1] != context:
            return {"error": "invalid ciphertext: unable to decrypt"}
        return {"plaintext": stored[2]}


@pytest.fixture
def fake_transit():
    return FakeTransit()


@pytest.fixture
def transit_client(fake_transit):
    http_client = httpx.Client(transport=httpx.MockTransport(fake_transit.handler))
    client = TransitClient(address="http://vault.test:8200", token="s.test-token", http_client=http_client)
    yield client
    client.close()


@pytest.fixture
def remote_settings():
    return TransitSettings(
        enabled=True,
        address="http://vault.test:8200",
        token="s.test-token",
        application="dummy",
        convergent_encryption_context=CONVERGENT_CONTEXT,
        retry_attempts=3,
        retry_base_delay=0.01,
        retry_max_wait=0.05,
    )


@pytest.fixture
def local_settings():
    return TransitSettings(
        enabled=False,
        application="dummy",
        convergent_encryption_context=CONVERGENT_CONTEXT,
    )


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def remote_manager(remote_settings, transit_client, sleeps):
    return TransitManager(remote_settings, client=transit_client, sleep=sleeps.append)


@pytest.fixture
def local_manager(local_settings):
    return TransitManager(local_settings)
