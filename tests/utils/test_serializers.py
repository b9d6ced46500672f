"""Unit Tests for value codecs"""
import ipaddress
from datetime import date, datetime

import pytest

from transit_fields.errors import UnknownSerializerError, ValidationError
from transit_fields.utils.serializers import (
    SERIALIZERS,
    CustomCodec,
    IntegerCodec,
    codec_for,
    is_blank,
    resolve_codec,
)


@pytest.mark.parametrize("value", [None, "", "   ", b"", [], {}, ()])
def test_blank(value):
    assert is_blank(value)


@pytest.mark.parametrize("value", [0, False, "x", b"\x00", [None], 0.0])
def test_not_blank(value):
    assert not is_blank(value)


def test_registered_names():
    assert set(SERIALIZERS) == {"string", "integer", "float", "date", "time", "datetime", "json", "ipaddr"}


def test_lookup_is_case_insensitive():
    assert isinstance(codec_for("INTEGER"), IntegerCodec)


def test_unknown_name_lists_valid_names():
    with pytest.raises(UnknownSerializerError) as exc:
        codec_for("yaml")
    assert "'date'" in str(exc.value)
    assert isinstance(exc.value, ValidationError)


@pytest.mark.parametrize(
    "name,value,encoded",
    [
        ("string", "abc", "abc"),
        ("integer", 1234, "1234"),
        ("integer", -7, "-7"),
        ("float", 2.5, "2.5"),
        ("date", date(2024, 2, 29), "2024-02-29"),
        ("time", datetime(2024, 1, 2, 3, 4, 5, 678000), "2024-01-02T03:04:05.678"),
        ("datetime", datetime(2024, 1, 2, 3, 4, 5), "2024-01-02T03:04:05.000"),
        ("json", {"b": [1, 2], "a": None}, '{"b":[1,2],"a":null}'),
        ("ipaddr", ipaddress.ip_interface("10.0.0.1/24"), "10.0.0.1/24"),
    ],
)
def test_encode_decode(name, value, encoded):
    codec = codec_for(name)
    assert codec.encode(value) == encoded
    assert codec.decode(encoded) == value


@pytest.mark.parametrize("name", ["integer", "float", "date", "time", "datetime", "ipaddr"])
def test_blank_is_none(name):
    codec = codec_for(name)
    assert codec.encode(None) is None
    assert codec.encode("") is None
    assert codec.decode(None) is None
    assert codec.decode("") is None


def test_json_blank_is_empty_object():
    codec = codec_for("json")
    assert codec.encode(None) == "{}"
    assert codec.decode(None) == {}
    assert codec.decode("") == {}


def test_date_accepts_iso_string_and_datetime():
    codec = codec_for("date")
    assert codec.encode("1999-12-31") == "1999-12-31"
    assert codec.encode(datetime(1999, 12, 31, 23, 59)) == "1999-12-31"


def test_ipaddr_plain_address_gets_full_prefix():
    assert codec_for("ipaddr").encode("192.168.1.5") == "192.168.1.5/32"
    assert codec_for("ipaddr").encode("::1") == "::1/128"


def test_resolve_codec_variants():
    assert resolve_codec() is None
    assert isinstance(resolve_codec("integer"), IntegerCodec)
    assert isinstance(resolve_codec(encode=str, decode=int), CustomCodec)

    duck = type("Upper", (), {"encode": lambda self, v: v.upper(), "decode": lambda self, s: s.lower()})()
    assert resolve_codec(duck) is duck


def test_resolve_codec_rejects_object_without_methods():
    with pytest.raises(ValidationError):
        resolve_codec(object())
