import pytest

from storefront.catalog.errors import InvalidIdentifier
from storefront.catalog.identity import decode_composite_id, encode_composite_id
from storefront.catalog.models import CompositeId, Source


@pytest.mark.parametrize(
    "source, raw_id",
    [
        (Source.ZECAT, "123"),
        (Source.ZECAT, "abc-def"),
        (Source.CDO, "456"),
        (Source.CDO, "AB_12"),
    ],
)
def test_round_trip(source, raw_id):
    encoded = encode_composite_id(source, raw_id)
    assert decode_composite_id(encoded) == CompositeId(source=source, raw_id=raw_id)


def test_encode_format():
    assert encode_composite_id(Source.CDO, 42) == "cdo_42"
    assert encode_composite_id("zecat", "7") == "zecat_7"


def test_decode_splits_on_first_separator():
    decoded = decode_composite_id("cdo_T_SHIRT_01")
    assert decoded.source is Source.CDO
    assert decoded.raw_id == "T_SHIRT_01"


@pytest.mark.parametrize("value", ["not-a-valid-id", "unknownsource:123", "bogus_123", "zecat_", "", "_123", "ZECAT_1"])
def test_decode_rejects_malformed(value):
    with pytest.raises(InvalidIdentifier):
        decode_composite_id(value)


def test_encode_rejects_empty_raw_id_and_unknown_source():
    with pytest.raises(InvalidIdentifier):
        encode_composite_id(Source.ZECAT, "")
    with pytest.raises(InvalidIdentifier):
        encode_composite_id("amazon", "1")


def test_invalid_identifier_is_a_value_error():
    with pytest.raises(ValueError):
        decode_composite_id("nope")
