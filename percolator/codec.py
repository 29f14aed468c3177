"""
Layout-driven encoder / decoder.

    encode(layout, {"amount": 1_000_000_000}) -> bytes
    decode(layout, data) -> dict | Invalid

`encode` raises on bad caller input (the caller owns those values).
`decode` never raises on bad bytes: account data comes from an untrusted
store, so every failure is reported as an `Invalid` value instead.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Union

from .errors import CodecError, FieldOutOfRange, ValueTooLargeForWidth
from .keys import b58encode, pubkey_bytes
from .layout import INT_KINDS, Field, Layout

INT_FORMATS = {
    "u8": "<B",
    "u16": "<H",
    "u32": "<I",
    "u64": "<Q",
    "i8": "<b",
    "i16": "<h",
    "i32": "<i",
    "i64": "<q",
}

# LP-seat context ids appear both in instruction payloads and in PDA seeds;
# both sides serialise through this kind.
CONTEXT_ID_KIND = "u32"
NONCE_KIND = "u64"


class DecodeError(str, Enum):
    TOO_SHORT = "TooShort"
    BAD_MAGIC = "BadMagic"
    UNSUPPORTED_VERSION = "UnsupportedVersion"
    FIELD_OUT_OF_RANGE = "FieldOutOfRange"


@dataclass(frozen=True)
class Invalid:
    reason: DecodeError
    detail: str = ""

    def __bool__(self) -> bool:
        return False

    def __str__(self) -> str:
        return f"{self.reason.value}: {self.detail}" if self.detail else self.reason.value


class _FieldRange(Exception):
    """Internal signal carrying a FieldOutOfRange detail out of nested decodes."""


def int_range(kind: str) -> tuple[int, int]:
    width, signed = INT_KINDS[kind]
    bits = width * 8
    if signed:
        return -(1 << (bits - 1)), (1 << (bits - 1)) - 1
    return 0, (1 << bits) - 1


def pack_int(kind: str, value: int) -> bytes:
    if isinstance(value, bool) or not isinstance(value, int):
        raise CodecError(f"{kind} expects int, got {type(value).__name__}")
    lo, hi = int_range(kind)
    if not lo <= value <= hi:
        raise ValueTooLargeForWidth(f"{value} does not fit in {kind} [{lo}, {hi}]")
    return struct.pack(INT_FORMATS[kind], value)


def unpack_int(kind: str, data: bytes, offset: int = 0) -> int:
    return struct.unpack_from(INT_FORMATS[kind], data, offset)[0]


def pack_context_id(context_id: int) -> bytes:
    return pack_int(CONTEXT_ID_KIND, context_id)


def pack_nonce(nonce: int) -> bytes:
    return pack_int(NONCE_KIND, nonce)


# ---- encode ----


def _encode_field(field: Field, value: Any, buf: bytearray, base: int) -> None:
    start = base + field.offset
    kind = field.kind
    if kind in INT_KINDS:
        raw = pack_int(kind, value)
        if field.bounds is not None and not field.bounds[0] <= value <= field.bounds[1]:
            raise FieldOutOfRange(f"{field.name}={value} outside {field.bounds}")
    elif kind == "bool":
        if not isinstance(value, bool) and value not in (0, 1):
            raise CodecError(f"{field.name} expects bool, got {value!r}")
        raw = b"\x01" if value else b"\x00"
    elif kind == "pubkey":
        try:
            raw = pubkey_bytes(value)
        except (AttributeError, TypeError, ValueError) as exc:
            raise CodecError(f"{field.name}: {exc}") from exc
    elif kind == "bytes":
        if isinstance(value, str):
            value = value.encode("utf-8")
        if not isinstance(value, (bytes, bytearray)):
            raise CodecError(f"{field.name} expects bytes, got {type(value).__name__}")
        if len(value) > field.width:
            raise ValueTooLargeForWidth(
                f"{field.name}: {len(value)} bytes exceeds width {field.width}"
            )
        raw = bytes(value).ljust(field.width, b"\x00")
    else:  # array
        items = list(value)
        if len(items) != field.count:
            raise CodecError(f"{field.name}: expected {field.count} items, got {len(items)}")
        assert field.item is not None
        for idx, item in enumerate(items):
            _encode_into(field.item, item, buf, start + idx * field.item.size)
        return
    buf[start : start + field.width] = raw


def _encode_into(layout: Layout, value: Mapping[str, Any], buf: bytearray, base: int) -> None:
    if not isinstance(value, Mapping):
        raise CodecError(f"{layout.name}: expected a mapping, got {type(value).__name__}")
    known = {field.name for field in layout.value_fields}
    unknown = set(value) - known
    if unknown:
        raise CodecError(f"{layout.name}: unknown fields {sorted(unknown)}")
    if layout.magic is not None:
        start = base + layout.magic_offset
        buf[start : start + len(layout.magic)] = layout.magic
    for field in layout.value_fields:
        if field.name in value:
            item = value[field.name]
        elif field.name == layout.version_field:
            item = layout.versions[-1]
        else:
            raise CodecError(f"{layout.name}: missing field {field.name!r}")
        if field.name == layout.version_field and item not in layout.versions:
            raise CodecError(f"{layout.name}: version {item} not in {layout.versions}")
        _encode_field(field, item, buf, base)


def encode(layout: Layout, value: Mapping[str, Any]) -> bytes:
    """Serialise `value` into exactly `layout.size` bytes."""
    buf = bytearray(layout.size)
    _encode_into(layout, value, buf, 0)
    return bytes(buf)


# ---- decode ----


def _decode_field(field: Field, data: bytes, base: int) -> Any:
    start = base + field.offset
    kind = field.kind
    if kind in INT_KINDS:
        value = unpack_int(kind, data, start)
        if field.bounds is not None and not field.bounds[0] <= value <= field.bounds[1]:
            raise _FieldRange(f"{field.name}={value} outside {field.bounds}")
        return value
    if kind == "bool":
        byte = data[start]
        if byte > 1:
            raise _FieldRange(f"{field.name}: bool byte {byte}")
        return byte == 1
    if kind == "pubkey":
        return b58encode(data[start : start + 32])
    if kind == "bytes":
        return bytes(data[start : start + field.width])
    assert field.item is not None
    return [
        _decode_fields(field.item, data, start + idx * field.item.size)
        for idx in range(field.count)
    ]


def _decode_fields(layout: Layout, data: bytes, base: int) -> Dict[str, Any]:
    return {field.name: _decode_field(field, data, base) for field in layout.value_fields}


def check_header(layout: Layout, data: bytes, base: int = 0) -> Union[Invalid, None]:
    """Length, magic and version checks, in that order."""
    available = len(data) - base
    if available < layout.size:
        return Invalid(DecodeError.TOO_SHORT, f"{layout.name}: {available} < {layout.size}")
    if layout.magic is not None:
        start = base + layout.magic_offset
        found = bytes(data[start : start + len(layout.magic)])
        if found != layout.magic:
            return Invalid(
                DecodeError.BAD_MAGIC,
                f"{layout.name}: expected {layout.magic.hex()}, got {found.hex()}",
            )
    if layout.version_field is not None:
        field = layout.field(layout.version_field)
        version = unpack_int(field.kind, data, base + field.offset)
        if version not in layout.versions:
            return Invalid(
                DecodeError.UNSUPPORTED_VERSION,
                f"{layout.name}: version {version} not in {layout.versions}",
            )
    return None


def decode(layout: Layout, data: bytes, offset: int = 0) -> Union[Dict[str, Any], Invalid]:
    data = bytes(data)
    if offset < 0:
        return Invalid(DecodeError.TOO_SHORT, f"{layout.name}: negative offset")
    problem = check_header(layout, data, offset)
    if problem is not None:
        return problem
    try:
        return _decode_fields(layout, data, offset)
    except _FieldRange as exc:
        return Invalid(DecodeError.FIELD_OUT_OF_RANGE, str(exc))


__all__ = [
    "CONTEXT_ID_KIND",
    "NONCE_KIND",
    "DecodeError",
    "Invalid",
    "int_range",
    "pack_int",
    "unpack_int",
    "pack_context_id",
    "pack_nonce",
    "encode",
    "decode",
    "check_header",
]
