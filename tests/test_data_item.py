"""ANS-104 data item layout and signature checks."""

import hashlib

import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding

from ao_price_oracle.core.credentials import ArweaveSigner, b64url_decode, b64url_encode
from ao_price_oracle.core.types import Tag
from ao_price_oracle.services.submission.data_item import create_data_item, deep_hash, serialize_tags

TARGET = b64url_encode(bytes(range(32)))


def test_serialize_tags_avro_layout() -> None:
    assert serialize_tags([]) == b""
    assert serialize_tags([Tag("a", "b")]) == b"\x02\x02a\x02b\x00"


def test_deep_hash_distinguishes_lists_from_blobs() -> None:
    blob = deep_hash(b"abc")
    nested = deep_hash([b"abc"])

    assert len(blob) == 48
    assert nested == hashlib.sha384(hashlib.sha384(b"list1").digest() + blob).digest()
    assert blob != nested


def test_data_item_is_signed_over_its_fields(signer: ArweaveSigner) -> None:
    tags = [Tag("Action", "UpdatePaymentTokenPrice"), Tag("Price", "12.345678")]
    anchor = b"a" * 32

    item = create_data_item(signer, data=b"1234", tags=tags, target=TARGET, anchor=anchor)
    raw = item.raw

    assert int.from_bytes(raw[0:2], "little") == 1
    signature = raw[2:514]
    assert raw[514:1026] == signer.owner
    assert raw[1026] == 1 and raw[1027:1059] == b64url_decode(TARGET)
    assert raw[1059] == 1 and raw[1060:1092] == anchor
    assert int.from_bytes(raw[1092:1100], "little") == 2
    tag_length = int.from_bytes(raw[1100:1108], "little")
    raw_tags = raw[1108 : 1108 + tag_length]
    assert raw_tags == serialize_tags(tags)
    assert raw[1108 + tag_length :] == b"1234"

    assert item.id == b64url_encode(hashlib.sha256(signature).digest())

    message = deep_hash(
        [b"dataitem", b"1", b"1", signer.owner, b64url_decode(TARGET), anchor, raw_tags, b"1234"]
    )
    public_key = signer._private_key.public_key()
    public_key.verify(
        signature,
        message,
        padding.PSS(mgf=padding.MGF1(hashes.SHA256()), salt_length=32),
        hashes.SHA256(),
    )


def test_data_item_without_target(signer: ArweaveSigner) -> None:
    item = create_data_item(signer, data=b"", tags=[])

    assert item.raw[1026] == 0
    assert item.raw[1027] == 1


@pytest.mark.parametrize("target", ["short", "!!!not-base64!!!"])
def test_invalid_target_is_rejected(signer: ArweaveSigner, target: str) -> None:
    with pytest.raises(ValueError):
        create_data_item(signer, data=b"1234", tags=[], target=target)
