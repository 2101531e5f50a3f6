"""
Host value <-> OPC UA Variant conversion.

This module provides strict, type-checked conversion between Python values
and the tagged scalar/array Variants of the OPC UA wire model. Unlike a
lenient converter, nothing here coerces between kinds: a mismatch between
the requested kind and the Variant tag is an error.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Sequence
import math
import struct

from asyncua import ua

from ..errors import InvalidArgumentError, ShapeError, TypeMismatchError


class WireKind(Enum):
    """
    The closed set of OPC UA primitive kinds handled by the client.

    Each member's value is the matching asyncua VariantType.
    """
    BYTE = ua.VariantType.Byte
    SBYTE = ua.VariantType.SByte
    INT16 = ua.VariantType.Int16
    UINT16 = ua.VariantType.UInt16
    INT32 = ua.VariantType.Int32
    UINT32 = ua.VariantType.UInt32
    INT64 = ua.VariantType.Int64
    UINT64 = ua.VariantType.UInt64
    FLOAT = ua.VariantType.Float
    DOUBLE = ua.VariantType.Double
    BOOLEAN = ua.VariantType.Boolean
    STRING = ua.VariantType.String
    DATETIME = ua.VariantType.DateTime

    @property
    def variant_type(self) -> ua.VariantType:
        return self.value

    @property
    def is_integer(self) -> bool:
        return self in INTEGER_RANGES

    @property
    def is_floating(self) -> bool:
        return self in (WireKind.FLOAT, WireKind.DOUBLE)

    @classmethod
    def from_variant_type(cls, variant_type: ua.VariantType) -> 'WireKind':
        """
        Get the kind for an asyncua VariantType.

        Raises:
            ValueError: If the VariantType is outside the supported set
        """
        return cls(variant_type)

    @classmethod
    def from_string(cls, type_str: str) -> 'WireKind':
        """
        Parse a kind from string, case-insensitive.

        Args:
            type_str: Kind name (e.g., "UInt32", "bool", "REAL")

        Returns:
            Corresponding WireKind

        Raises:
            ValueError: If the name is not recognized
        """
        normalized = type_str.upper().strip()

        # PLC-style and short aliases
        aliases = {
            "BOOL": "BOOLEAN",
            "USINT": "BYTE",
            "SINT": "SBYTE",
            "INT": "INT16",
            "UINT": "UINT16",
            "WORD": "UINT16",
            "DINT": "INT32",
            "UDINT": "UINT32",
            "DWORD": "UINT32",
            "LINT": "INT64",
            "ULINT": "UINT64",
            "LWORD": "UINT64",
            "REAL": "FLOAT",
            "LREAL": "DOUBLE",
            "DT": "DATETIME",
            "DATE_AND_TIME": "DATETIME",
        }

        normalized = aliases.get(normalized, normalized)

        try:
            return cls[normalized]
        except KeyError:
            raise ValueError(f"Unknown OPC UA kind: {type_str}")


# Inclusive host ranges for integer kinds
INTEGER_RANGES: dict[WireKind, tuple[int, int]] = {
    WireKind.BYTE: (0, (1 << 8) - 1),
    WireKind.SBYTE: (-(1 << 7), (1 << 7) - 1),
    WireKind.INT16: (-(1 << 15), (1 << 15) - 1),
    WireKind.UINT16: (0, (1 << 16) - 1),
    WireKind.INT32: (-(1 << 31), (1 << 31) - 1),
    WireKind.UINT32: (0, (1 << 32) - 1),
    WireKind.INT64: (-(1 << 63), (1 << 63) - 1),
    WireKind.UINT64: (0, (1 << 64) - 1),
}

# Largest finite IEEE-754 binary32 value
FLOAT32_MAX = struct.unpack('<f', struct.pack('<I', 0x7F7FFFFF))[0]

# Kinds decoded by the untyped subscription path
UNTYPED_KINDS = frozenset({
    WireKind.DATETIME,
    WireKind.INT32,
    WireKind.INT16,
    WireKind.BOOLEAN,
    WireKind.FLOAT,
})


class _Unsupported:
    """Sentinel type returned for Variants the untyped path cannot decode."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSUPPORTED"

    def __bool__(self) -> bool:
        return False


UNSUPPORTED = _Unsupported()


def to_utc(value: datetime) -> datetime:
    """Return a timezone-aware UTC datetime. Naive values are taken as UTC."""
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class VariantCodec:
    """
    Converts between host values and asyncua Variants.

    All methods are stateless classmethods. Decoding verifies the Variant tag
    and shape before touching the payload; encoding validates the host value
    before building a new Variant.
    """

    # Decoding

    @classmethod
    def decode(cls, variant: ua.Variant, kind: WireKind) -> Any:
        """
        Decode a scalar Variant that must carry ``kind``.

        Raises:
            ShapeError: If the Variant is an array
            TypeMismatchError: If the Variant tag is not ``kind``
        """
        cls._check_tag(variant, kind)
        if variant.is_array:
            raise ShapeError(
                f"Expected scalar {kind.variant_type.name} but got array value"
            )
        return cls._decode_element(variant.Value, kind)

    @classmethod
    def decode_array(cls, variant: ua.Variant, kind: WireKind) -> list:
        """
        Decode an array Variant whose elements must be ``kind``.

        A null array decodes to an empty list.

        Raises:
            ShapeError: If the Variant is a scalar
            TypeMismatchError: If the Variant tag is not ``kind``
        """
        if not variant.is_array:
            raise ShapeError("Expected array but got scalar value")
        cls._check_tag(variant, kind)
        if variant.Value is None:
            return []
        return [cls._decode_element(element, kind) for element in variant.Value]

    @classmethod
    def decode_untyped(cls, variant: ua.Variant, extended: bool = False) -> Any:
        """
        Best-effort decode for data-change notifications.

        Only scalar DateTime, Int32, Int16, Boolean and Float Variants are
        decoded; any other Variant yields UNSUPPORTED rather than an error.
        With ``extended`` every scalar kind of WireKind is decoded.
        """
        if variant is None or variant.is_array:
            return UNSUPPORTED
        try:
            kind = WireKind.from_variant_type(variant.VariantType)
        except ValueError:
            return UNSUPPORTED
        if not extended and kind not in UNTYPED_KINDS:
            return UNSUPPORTED
        return cls._decode_element(variant.Value, kind)

    @classmethod
    def decode_tagged(cls, variant: ua.Variant) -> Any:
        """
        Decode a Variant of any supported kind using its own tag.

        Arrays decode to lists. Kinds outside WireKind decode to None.
        """
        try:
            kind = WireKind.from_variant_type(variant.VariantType)
        except ValueError:
            return None
        if variant.is_array:
            return cls.decode_array(variant, kind)
        return cls._decode_element(variant.Value, kind)

    @classmethod
    def _check_tag(cls, variant: ua.Variant, kind: WireKind) -> None:
        if variant.VariantType != kind.variant_type:
            raise TypeMismatchError(
                f"UA type mismatch: requested {kind.variant_type.name}, "
                f"node holds {variant.VariantType.name}"
            )

    @classmethod
    def _decode_element(cls, value: Any, kind: WireKind) -> Any:
        if kind == WireKind.BOOLEAN:
            return bool(value)
        elif kind.is_integer:
            return int(value)
        elif kind.is_floating:
            return float(value)
        elif kind == WireKind.STRING:
            return value if value is not None else ""
        elif kind == WireKind.DATETIME:
            return to_utc(value) if value is not None else None
        return value

    # Encoding

    @classmethod
    def encode(cls, value: Any, kind: WireKind) -> ua.Variant:
        """
        Build a scalar Variant of ``kind`` from a host value.

        Raises:
            InvalidArgumentError: If the value's type or range does not fit
        """
        return ua.Variant(cls._encode_element(value, kind), kind.variant_type)

    @classmethod
    def encode_array(cls, values: Sequence[Any], kind: WireKind) -> ua.Variant:
        """
        Build an array Variant of ``kind``. An empty sequence gives an empty
        array Variant, not a null one.

        Raises:
            InvalidArgumentError: If ``values`` is not a list/tuple or any
                element does not fit
        """
        if not isinstance(values, (list, tuple)):
            raise InvalidArgumentError(
                f"Expected a list of values, got {type(values).__name__}"
            )
        encoded = [cls._encode_element(value, kind) for value in values]
        return ua.Variant(encoded, kind.variant_type)

    @classmethod
    def _encode_element(cls, value: Any, kind: WireKind) -> Any:
        if kind == WireKind.BOOLEAN:
            if not isinstance(value, bool):
                raise InvalidArgumentError(
                    f"Boolean write requires true or false, got {value!r}"
                )
            return value

        if kind.is_integer:
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidArgumentError(
                    f"{kind.variant_type.name} write requires an integer, got {value!r}"
                )
            low, high = INTEGER_RANGES[kind]
            if not low <= value <= high:
                raise InvalidArgumentError(
                    f"{value} out of range for {kind.variant_type.name} [{low}, {high}]"
                )
            return value

        if kind.is_floating:
            if not isinstance(value, float):
                raise InvalidArgumentError(
                    f"{kind.variant_type.name} write requires a float, got {value!r}"
                )
            if kind == WireKind.FLOAT:
                return cls._to_float32(value)
            return value

        if kind == WireKind.STRING:
            if not isinstance(value, str):
                raise InvalidArgumentError(f"String write requires a str, got {value!r}")
            return value

        if kind == WireKind.DATETIME:
            if not isinstance(value, datetime):
                raise InvalidArgumentError(
                    f"DateTime write requires a datetime, got {value!r}"
                )
            return to_utc(value)

        raise InvalidArgumentError(f"Unsupported type: {kind}")

    @classmethod
    def _to_float32(cls, value: float) -> float:
        """Round a float to IEEE-754 binary32."""
        if math.isfinite(value) and abs(value) > FLOAT32_MAX:
            raise InvalidArgumentError(f"{value} out of range for Float")
        return struct.unpack('<f', struct.pack('<f', value))[0]
