"""
Fixed-layout binary records.

A record is a dataclass whose fields carry their ``struct`` format in the
field metadata. The packed layout, the record size and the byte codec are
all generated from that one definition, so the attribute set and the
persisted layout can never disagree.

    @dataclass
    class Example(FixedRecord):
        epoch: int = u64()
        masks: list = array("H", 4)
"""
import struct
from dataclasses import dataclass, field, fields
from typing import Any, ClassVar

from .constants import U16_MAX, U64_MAX
from .errors import NumericalOverflow, NumericalUnderflow


# =============================================================================
# Field declarations
# =============================================================================

def _scalar(fmt: str, default: int = 0, pad: int = 0) -> Any:
    return field(default=default, metadata={"fmt": fmt, "count": 1, "pad": pad})


def u8(default: int = 0, pad: int = 0) -> Any:
    return _scalar("B", default, pad)


def u16(default: int = 0, pad: int = 0) -> Any:
    return _scalar("H", default, pad)


def u64(default: int = 0, pad: int = 0) -> Any:
    return _scalar("Q", default, pad)


def raw(size: int, pad: int = 0) -> Any:
    """Opaque byte string of fixed size (identities, hashes)."""
    return field(default=bytes(size), metadata={"fmt": f"{size}s", "count": 1, "pad": pad})


def array(fmt: str, count: int, default: int = 0, pad: int = 0) -> Any:
    """Fixed-length list of scalars."""
    return field(
        default_factory=lambda: [default] * count,
        metadata={"fmt": f"{count}{fmt}", "count": count, "pad": pad},
    )


def raw_array(size: int, count: int, pad: int = 0) -> Any:
    """Fixed-length list of fixed-size byte strings."""
    return field(
        default_factory=lambda: [bytes(size)] * count,
        metadata={"fmt": f"{size}s" * count, "count": count, "pad": pad, "raw": size},
    )


# =============================================================================
# Record base
# =============================================================================

@dataclass
class FixedRecord:
    """Mixin giving a field-annotated dataclass a little-endian byte codec."""

    _struct: ClassVar[struct.Struct]

    @classmethod
    def layout(cls) -> struct.Struct:
        cached = cls.__dict__.get("_struct")
        if cached is None:
            parts = ["<"]
            for f in fields(cls):
                parts.append(f.metadata["fmt"])
                if f.metadata["pad"]:
                    parts.append(f"{f.metadata['pad']}x")
            cached = struct.Struct("".join(parts))
            cls._struct = cached
        return cached

    @classmethod
    def size(cls) -> int:
        return cls.layout().size

    def to_bytes(self) -> bytes:
        values = []
        for f in fields(self):
            value = getattr(self, f.name)
            if f.metadata["count"] > 1 or "raw" in f.metadata:
                values.extend(value)
            else:
                values.append(value)
        return self.layout().pack(*values)

    @classmethod
    def from_bytes(cls, data: bytes):
        if len(data) != cls.size():
            raise ValueError(f"{cls.__name__} expects {cls.size()} bytes, got {len(data)}")
        flat = list(cls.layout().unpack(data))
        kwargs = {}
        position = 0
        for f in fields(cls):
            count = f.metadata["count"]
            if count > 1 or "raw" in f.metadata:
                kwargs[f.name] = flat[position:position + count]
            else:
                kwargs[f.name] = flat[position]
            position += count
        return cls(**kwargs)


# =============================================================================
# Bitmask helpers
# =============================================================================

def bit(index: int) -> int:
    return 1 << index


def has_bit(mask: int, index: int) -> bool:
    return bool(mask & (1 << index))


def is_subset(inner: int, outer: int) -> bool:
    """True if every bit set in ``inner`` is also set in ``outer``."""
    return inner & ~outer == 0


def slots_mask(count: int) -> int:
    """Mask with the low ``count`` bits set."""
    return (1 << count) - 1 & U16_MAX


def bits_of(mask: int) -> list[int]:
    return [i for i in range(mask.bit_length()) if mask & (1 << i)]


# =============================================================================
# Checked arithmetic
# =============================================================================

def checked_add(a: int, b: int, limit: int = U64_MAX) -> int:
    result = a + b
    if result > limit:
        raise NumericalOverflow(left=a, right=b)
    return result


def checked_sub(a: int, b: int) -> int:
    result = a - b
    if result < 0:
        raise NumericalUnderflow(left=a, right=b)
    return result


def checked_mul(a: int, b: int, limit: int = U64_MAX) -> int:
    result = a * b
    if result > limit:
        raise NumericalOverflow(left=a, right=b)
    return result
