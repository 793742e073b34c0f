"""ANS-104 data item encoding and signing for AO messages."""

import hashlib
import os
from dataclasses import dataclass

from ao_price_oracle.core.credentials import Signer, b64url_decode, b64url_encode
from ao_price_oracle.core.types import Tag

_TARGET_LENGTH = 32
_ANCHOR_LENGTH = 32


def deep_hash(data: bytes | list) -> bytes:
    """Arweave deep hash (SHA-384) over nested byte chunks."""

    if isinstance(data, list):
        acc = hashlib.sha384(b"list" + str(len(data)).encode()).digest()
        for chunk in data:
            acc = hashlib.sha384(acc + deep_hash(chunk)).digest()
        return acc

    tag = hashlib.sha384(b"blob" + str(len(data)).encode()).digest()
    return hashlib.sha384(tag + hashlib.sha384(data).digest()).digest()


def _zigzag_varint(value: int) -> bytes:
    encoded = (value << 1) ^ (value >> 63)
    out = bytearray()
    while encoded & ~0x7F:
        out.append((encoded & 0x7F) | 0x80)
        encoded >>= 7
    out.append(encoded)
    return bytes(out)


def _avro_bytes(value: bytes) -> bytes:
    return _zigzag_varint(len(value)) + value


def serialize_tags(tags: list[Tag]) -> bytes:
    """Avro-encode tags as an array of {name: bytes, value: bytes} records."""

    if not tags:
        return b""

    out = bytearray(_zigzag_varint(len(tags)))
    for tag in tags:
        out += _avro_bytes(tag.name.encode("utf-8"))
        out += _avro_bytes(tag.value.encode("utf-8"))
    out += _zigzag_varint(0)
    return bytes(out)


@dataclass(frozen=True, slots=True)
class DataItem:
    """A signed ANS-104 data item ready to be posted to a messenger unit."""

    id: str
    raw: bytes


def decode_target(target: str) -> bytes:
    try:
        raw_target = b64url_decode(target)
    except ValueError as exc:
        raise ValueError(f"target {target!r} is not base64url") from exc
    if len(raw_target) != _TARGET_LENGTH:
        raise ValueError(f"target {target!r} must decode to {_TARGET_LENGTH} bytes")
    return raw_target


def create_data_item(
    signer: Signer,
    data: bytes,
    tags: list[Tag],
    target: str | None = None,
    anchor: bytes | None = None,
) -> DataItem:
    """Build and sign a data item; ``anchor`` defaults to 32 random bytes."""

    raw_target = decode_target(target) if target else b""
    raw_anchor = anchor if anchor is not None else os.urandom(_ANCHOR_LENGTH)
    if len(raw_anchor) != _ANCHOR_LENGTH:
        raise ValueError(f"anchor must be {_ANCHOR_LENGTH} bytes")
    raw_tags = serialize_tags(tags)

    message = deep_hash(
        [
            b"dataitem",
            b"1",
            str(signer.signature_type).encode(),
            signer.owner,
            raw_target,
            raw_anchor,
            raw_tags,
            data,
        ]
    )
    signature = signer.sign(message)

    raw = bytearray()
    raw += signer.signature_type.to_bytes(2, "little")
    raw += signature
    raw += signer.owner
    raw += (b"\x01" + raw_target) if raw_target else b"\x00"
    raw += b"\x01" + raw_anchor
    raw += len(tags).to_bytes(8, "little")
    raw += len(raw_tags).to_bytes(8, "little")
    raw += raw_tags
    raw += data

    return DataItem(id=b64url_encode(hashlib.sha256(signature).digest()), raw=bytes(raw))
