"""Unit Tests for EncryptionSpec declaration and context resolution"""
from types import SimpleNamespace

import pytest

from transit_fields.errors import ConfigurationError, UnknownSerializerError, ValidationError
from transit_fields.security.encryption_spec import EncryptionMode, EncryptionSpec
from transit_fields.utils.serializers import IntegerCodec


def test_defaults():
    spec = EncryptionSpec.declare("ssn", table_name="people", application="dummy")

    assert spec.path == "transit"
    assert spec.key == "dummy_people_ssn"
    assert spec.encrypted_column == "ssn_encrypted"
    assert spec.mode == EncryptionMode.RANDOM
    assert spec.codec is None


def test_explicit_options():
    spec = EncryptionSpec.declare(
        "credit_card",
        path="credit-secrets",
        key="people_credit_cards",
        encrypted_column="cc_encrypted",
        convergent=True,
        serializer="integer",
    )

    assert spec.path == "credit-secrets"
    assert spec.key == "people_credit_cards"
    assert spec.encrypted_column == "cc_encrypted"
    assert spec.convergent
    assert isinstance(spec.codec, IntegerCodec)


def test_default_key_requires_application():
    with pytest.raises(ConfigurationError):
        EncryptionSpec.declare("ssn", table_name="people")


def test_default_key_requires_table_name():
    with pytest.raises(ValidationError):
        EncryptionSpec.declare("ssn", application="dummy")


def test_spec_is_immutable():
    spec = EncryptionSpec.declare("ssn", key="k")
    with pytest.raises(Exception):
        spec.key = "other"


@pytest.mark.parametrize(
    "options",
    [
        {"serializer": "integer", "encode": str, "decode": int},
        {"encode": str},
        {"decode": int},
    ],
)
def test_conflicting_codec_options(options):
    with pytest.raises(ValidationError):
        EncryptionSpec.declare("age", key="k", **options)


def test_unknown_serializer():
    with pytest.raises(UnknownSerializerError) as exc:
        EncryptionSpec.declare("age", key="k", serializer="bogus")
    assert "'integer'" in str(exc.value)


def test_context_requires_convergent():
    with pytest.raises(ValidationError):
        EncryptionSpec.declare("email", key="k", context="tenant")


def test_resolve_static_context():
    spec = EncryptionSpec.declare("email", key="k", convergent=True, context="tenant-7")
    assert spec.resolve_context() == "tenant-7"
    assert not spec.has_record_context


def test_resolve_record_context():
    spec = EncryptionSpec.declare(
        "email", key="k", convergent=True, context=lambda record: record.tenant_id
    )
    assert spec.has_record_context
    assert spec.resolve_context(SimpleNamespace(tenant_id=12)) == "12"


def test_no_context_means_process_secret():
    assert EncryptionSpec.declare("email", key="k", convergent=True).resolve_context() is None


def test_custom_codec_pair():
    spec = EncryptionSpec.declare("flags", key="k", encode=lambda v: ",".join(v), decode=lambda s: s.split(","))
    assert spec.encode(["a", "b"]) == "a,b"
    assert spec.decode("a,b") == ["a", "b"]
