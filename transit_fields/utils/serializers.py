"""Codecs - turn domain values into plaintext strings and back

Applied before encryption and after decryption. Built-ins are looked up by
name; anything with encode/decode methods works as a codec too, and a pair of
plain functions can be wrapped with CustomCodec.
"""

import ipaddress
import json
from datetime import date, datetime
from typing import Any, Callable, Dict, Optional

from transit_fields.errors import UnknownSerializerError, ValidationError


def is_blank(value: Any) -> bool:
    """None, a whitespace-only string, or an empty bytes/collection"""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (bytes, list, tuple, dict, set)):
        return len(value) == 0
    return False


class Codec:
    """Two operations: encode(value) -> str and decode(str) -> value"""

    name = "codec"

    def encode(self, value: Any) -> Optional[str]:
        raise NotImplementedError

    def decode(self, raw: Optional[str]) -> Any:
        raise NotImplementedError


class StringCodec(Codec):
    name = "string"

    def encode(self, value):
        return value if is_blank(value) else str(value)

    def decode(self, raw):
        return raw


class IntegerCodec(Codec):
    name = "integer"

    def encode(self, value):
        return None if is_blank(value) else str(value)

    def decode(self, raw):
        return None if is_blank(raw) else int(raw)


class FloatCodec(Codec):
    name = "float"

    def encode(self, value):
        return None if is_blank(value) else str(value)

    def decode(self, raw):
        return None if is_blank(raw) else float(raw)


class DateCodec(Codec):
    """ISO 8601 calendar date (YYYY-MM-DD)"""

    name = "date"

    def encode(self, value):
        if is_blank(value):
            return None
        if isinstance(value, str):
            value = date.fromisoformat(value)
        if isinstance(value, datetime):
            value = value.date()
        return value.strftime("%Y-%m-%d")

    def decode(self, raw):
        if is_blank(raw):
            return None
        return datetime.strptime(raw, "%Y-%m-%d").date()


class TimeCodec(Codec):
    """ISO 8601 timestamp with millisecond precision"""

    name = "time"

    def encode(self, value):
        if is_blank(value):
            return None
        if isinstance(value, str):
            value = datetime.fromisoformat(value)
        return value.isoformat(timespec="milliseconds")

    def decode(self, raw):
        if is_blank(raw):
            return None
        return datetime.fromisoformat(raw)


class DateTimeCodec(TimeCodec):
    name = "datetime"


class JSONCodec(Codec):
    """Compact JSON; None encodes as {} and blank decodes to {}"""

    name = "json"

    def encode(self, value):
        if value is None:
            value = {}
        return json.dumps(value, separators=(",", ":"))

    def decode(self, raw):
        if raw is None or raw == "":
            return {}
        return json.loads(raw)


class IPAddrCodec(Codec):
    """IP address with prefix length, e.g. 10.0.0.1/32"""

    name = "ipaddr"

    def encode(self, value):
        if is_blank(value):
            return None
        interface = value if hasattr(value, "network") else ipaddress.ip_interface(value)
        return f"{interface.ip}/{interface.network.prefixlen}"

    def decode(self, raw):
        if is_blank(raw):
            return None
        return ipaddress.ip_interface(raw)


class CustomCodec(Codec):
    """Codec built from an encode/decode function pair"""

    name = "custom"

    def __init__(self, encode: Callable[[Any], Any], decode: Callable[[Any], Any]):
        self._encode = encode
        self._decode = decode

    def encode(self, value):
        return self._encode(value)

    def decode(self, raw):
        return self._decode(raw)


SERIALIZERS: Dict[str, Codec] = {
    codec.name: codec
    for codec in (
        StringCodec(),
        IntegerCodec(),
        FloatCodec(),
        DateCodec(),
        TimeCodec(),
        DateTimeCodec(),
        JSONCodec(),
        IPAddrCodec(),
    )
}


def codec_for(name: str) -> Codec:
    """Built-in codec registered under name

    Raises:
        UnknownSerializerError: if no codec has that name
    """
    key = str(name).lower()
    if key not in SERIALIZERS:
        raise UnknownSerializerError(name, list(SERIALIZERS))
    return SERIALIZERS[key]


def resolve_codec(
    serializer: Any = None,
    encode: Optional[Callable] = None,
    decode: Optional[Callable] = None,
) -> Optional[Codec]:
    """Pick the codec for a field declaration

    Args:
        serializer: Registered codec name, or an object with encode/decode
        encode: Custom encode function (requires decode)
        decode: Custom decode function (requires encode)

    Returns:
        Codec, or None when the field stores plain strings
    """
    if serializer is not None and (encode or decode):
        raise ValidationError("Cannot use a custom encoder/decoder if a serializer is specified")
    if encode and not decode:
        raise ValidationError("Cannot specify encode without specifying decode as well")
    if decode and not encode:
        raise ValidationError("Cannot specify decode without specifying encode as well")

    if serializer is not None:
        if isinstance(serializer, str):
            return codec_for(serializer)
        if not (callable(getattr(serializer, "encode", None)) and callable(getattr(serializer, "decode", None))):
            raise ValidationError(f"Serializer {serializer!r} must provide encode and decode")
        return serializer
    if encode and decode:
        return CustomCodec(encode, decode)
    return None
