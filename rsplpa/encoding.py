"""Hex, GSM BCD, BER-TLV and bit-string helpers used by the eUICC commands."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass

_HEX_DIGITS = "0123456789abcdefABCDEF"


@dataclass(frozen=True)
class Tlv:
    """One BER-TLV element: its tag, its value and its full encoding."""

    tag: int
    value: bytes
    raw: bytes

    def children(self) -> Iterator[Tlv]:
        """Iterate over the elements nested in this element's value."""
        return iter_tlv(self.value)

    def find(self, tag: int) -> Tlv:
        """Return the first nested element with the given tag."""
        return find_tag(self.value, tag)


def bin2hex(data: bytes) -> str:
    """Return the lower-case hex form of ``data``."""
    return bytes(data).hex()


def hex2bin(text: str) -> bytes:
    """Decode a hex string; its length must be even."""
    if len(text) % 2 != 0:
        raise ValueError("hex string has an odd length")
    if any(ch not in _HEX_DIGITS for ch in text):
        raise ValueError(f"invalid hex string: {text!r}")
    return bytes.fromhex(text)


def gsmbcd2bin(text: str, padding_to: int = 0) -> bytes:
    """Encode decimal digits as swapped-nibble BCD, padded with 0xFF bytes."""
    out = bytearray()
    for start in range(0, len(text), 2):
        low = text[start]
        high = text[start + 1] if start + 1 < len(text) else "F"
        if not "0" <= low <= "9":
            raise ValueError(f"invalid BCD digit: {low!r}")
        if "0" <= high <= "9":
            out.append((int(high) << 4) | int(low))
        elif high == "F":
            out.append(0xF0 | int(low))
        else:
            raise ValueError(f"invalid BCD digit: {high!r}")
    if len(out) < padding_to:
        out.extend(b"\xff" * (padding_to - len(out)))
    return bytes(out)


def bin2gsmbcd(data: bytes) -> str:
    """Decode swapped-nibble BCD, dropping trailing filler nibbles."""
    hexed = bin2hex(data)
    swapped = "".join(hexed[i + 1] + hexed[i] for i in range(0, len(hexed), 2))
    return swapped.rstrip("f")


def _parse_one(data: bytes, offset: int) -> tuple[Tlv, int]:
    start = offset
    end = len(data)

    if offset >= end:
        raise ValueError("truncated TLV tag")
    first = data[offset]
    offset += 1
    tag = first
    if first & 0x1F == 0x1F:
        while True:
            if offset >= end:
                raise ValueError("truncated TLV tag")
            byte = data[offset]
            offset += 1
            tag = (tag << 8) | byte
            if not byte & 0x80:
                break

    if offset >= end:
        raise ValueError("truncated TLV length")
    length_byte = data[offset]
    offset += 1
    if length_byte < 0x80:
        length = length_byte
    elif length_byte == 0x80:
        raise ValueError("indefinite TLV length is not supported")
    else:
        count = length_byte & 0x7F
        if count > 4:
            raise ValueError("TLV length field too long")
        if offset + count > end:
            raise ValueError("truncated TLV length")
        length = int.from_bytes(data[offset : offset + count], "big")
        offset += count

    if offset + length > end:
        raise ValueError("truncated TLV value")
    value = bytes(data[offset : offset + length])
    offset += length
    return Tlv(tag, value, bytes(data[start:offset])), offset


def iter_tlv(data: bytes) -> Iterator[Tlv]:
    """Iterate over the consecutive TLV elements in ``data``."""
    offset = 0
    while offset < len(data):
        element, offset = _parse_one(data, offset)
        yield element


def first_tlv(data: bytes) -> Tlv:
    """Return the first TLV element in ``data``."""
    if not data:
        raise ValueError("no TLV element in empty data")
    return _parse_one(data, 0)[0]


def find_tag(data: bytes, tag: int) -> Tlv:
    """Return the first top-level element with ``tag``; KeyError if absent."""
    for element in iter_tlv(data):
        if element.tag == tag:
            return element
    raise KeyError(f"tag {tag:#x} not found")


def find_alias_tags(data: bytes, tags: Iterable[int]) -> Tlv:
    """Return the first top-level element whose tag is any of ``tags``."""
    wanted = set(tags)
    for element in iter_tlv(data):
        if element.tag in wanted:
            return element
    raise KeyError("none of the tags " + ", ".join(f"{t:#x}" for t in sorted(wanted)) + " found")


def encode_tlv(tag: int, value: bytes = b"") -> bytes:
    """Encode one TLV element with a definite length."""
    if tag < 0:
        raise ValueError("negative tag")
    tag_bytes = tag.to_bytes(max(1, (tag.bit_length() + 7) // 8), "big")
    length = len(value)
    if length < 0x80:
        length_bytes = bytes([length])
    else:
        body = length.to_bytes((length.bit_length() + 7) // 8, "big")
        length_bytes = bytes([0x80 | len(body)]) + body
    return tag_bytes + length_bytes + bytes(value)


def bytes_to_int(data: bytes) -> int:
    """Read a big-endian two's complement integer; empty data reads as 0."""
    if not data:
        return 0
    return int.from_bytes(data, "big", signed=True)


def int_to_bytes(value: int) -> bytes:
    """Encode an integer in the minimal big-endian two's complement form."""
    magnitude = value if value >= 0 else ~value
    size = (magnitude.bit_length() + 8) // 8
    return value.to_bytes(size, "big", signed=True)


def bits_to_names(data: bytes, names: Sequence[str]) -> list[str]:
    """Return the names of the bits set in a BIT STRING value."""
    if not data:
        raise ValueError("empty bit string")
    unused = data[0]
    if unused > 7:
        raise ValueError("invalid unused-bits count")
    bits = data[1:]
    total = len(bits) * 8 - unused if bits else 0
    return [
        name
        for index, name in enumerate(names)
        if index < total and bits[index // 8] & (0x80 >> (index % 8))
    ]