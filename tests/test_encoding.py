"""Bit-level checks for the sidecar's base64 encodings."""

import base64
import math
import struct

import pytest

from nksc_geosync import encoding as enc


@pytest.mark.parametrize(
    ("code", "expected"),
    [("N", "AAAAAA=="), ("S", "AQAAAA=="), ("E", "AgAAAA=="), ("W", "AwAAAA==")],
)
def test_encode_reference_matches_known_values(code: str, expected: str) -> None:
    """Compass codes map to the little-endian enum 0..3, padded."""
    assert enc.encode_reference(code) == expected
    assert enc.encode_reference(code).count("=") == 2


def test_encode_reference_tolerates_whitespace_and_nul() -> None:
    assert enc.encode_reference(" s\x00") == "AQAAAA=="


def test_encode_reference_rejects_unknown_code() -> None:
    with pytest.raises(ValueError, match="unknown GPS reference"):
        enc.encode_reference("X")


def test_pack_double_is_little_endian_ieee754() -> None:
    """The serializer emits exactly the bytes of a little-endian double."""
    assert enc.pack_double(1.0) == b"\x00\x00\x00\x00\x00\x00\xf0\x3f"
    assert enc.pack_double(-2.5) == struct.pack("<d", -2.5)


def test_latitude_scenario_round_trips_exactly() -> None:
    encoded = enc.encode_triple(40.0, 26.0, 46.56)
    assert enc.decode_triple(encoded) == (40.0, 26.0, 46.56)


@pytest.mark.parametrize(
    "triple",
    [
        (0.0, 0.0, 0.0),
        (-0.0, 59.0, 59.999999),
        (179.0, 59.0, 1e-300),
        (1.7976931348623157e308, 5e-324, 123456.789),
        (14.0, 30.0, 15.5),
    ],
)
def test_triple_round_trip_is_bit_identical(triple: tuple[float, float, float]) -> None:
    """Decoding restores the very same bit patterns, including the sign of zero."""
    decoded = enc.decode_triple(enc.encode_triple(*triple))
    assert [struct.pack("<d", v) for v in decoded] == [struct.pack("<d", v) for v in triple]


def test_triple_encoding_never_pads() -> None:
    for triple in [(1.0, 2.0, 3.0), (40.0, 26.0, 46.56), (-1e10, math.pi, math.e)]:
        encoded = enc.encode_triple(*triple)
        assert "=" not in encoded
        assert len(encoded) == 32
        assert len(base64.b64decode(encoded)) == enc.TRIPLE_SIZE


def test_double_encoding_has_exactly_one_pad() -> None:
    for value in (0.0, 272.5, -12.75, 8848.86):
        encoded = enc.encode_double(value)
        assert encoded.count("=") == 1
        assert base64.b64decode(encoded) == struct.pack("<d", value)


def test_decode_triple_rejects_wrong_length() -> None:
    with pytest.raises(ValueError, match="expected 24 bytes"):
        enc.decode_triple(enc.encode_double(1.0))


def test_unpack_doubles_requires_whole_doubles() -> None:
    assert enc.unpack_doubles(enc.pack_double(3.5) * 2) == (3.5, 3.5)
    with pytest.raises(ValueError, match="multiple of 8"):
        enc.unpack_doubles(b"\x00" * 7)


def test_date_stamp_uses_colons() -> None:
    assert enc.encode_date_stamp("2020-05-14") == "2020:05:14"
    assert enc.encode_date_stamp("2020:05:14") == "2020:05:14"


def test_decimal_degrees() -> None:
    assert enc.decimal_degrees(40.0, 26.0, 46.56) == pytest.approx(40.4462666667)


def test_altitude_ref_is_one_padded_byte() -> None:
    assert enc.encode_altitude_ref(0) == "AA=="
    assert enc.encode_altitude_ref(1) == "AQ=="
    with pytest.raises(ValueError, match="0 or 1"):
        enc.encode_altitude_ref(2)
