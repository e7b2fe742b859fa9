"""
Byte-level encodings used by NX Studio for GPS fields in NKSC_PARAM sidecars.

The sidecar stores numbers as base64 of their raw in-memory representation:

- reference codes (N/S/E/W) are a little-endian uint32 enum, padded base64
- latitude, longitude and time stamp are three little-endian IEEE-754 doubles
  (24 bytes), base64 without padding (24 is a multiple of 3, so there is none)
- altitude is a single double (8 bytes), padded base64 (always one ``=``)
- the date stamp is plain ASCII with ``:`` separators

Examples:
    >>> encode_reference("N")
    'AAAAAA=='
    >>> decode_triple(encode_triple(40.0, 26.0, 46.56))
    (40.0, 26.0, 46.56)

"""

import base64
import struct


DOUBLE_SIZE = 8
TRIPLE_SIZE = 3 * DOUBLE_SIZE

REFERENCE_CODES = {
    "N": 0,
    "S": 1,
    "E": 2,
    "W": 3,
}


def pack_double(value: float) -> bytes:
    """Serialize a float as 8 bytes of little-endian IEEE-754."""
    return struct.pack("<d", value)


def unpack_doubles(raw: bytes) -> tuple[float, ...]:
    """
    Read consecutive little-endian doubles from ``raw``.

    Raises:
        ValueError: if the length is not a multiple of 8 bytes.

    """
    if len(raw) % DOUBLE_SIZE:
        msg = f"expected a multiple of {DOUBLE_SIZE} bytes, got {len(raw)}"
        raise ValueError(msg)
    count = len(raw) // DOUBLE_SIZE
    return struct.unpack(f"<{count}d", raw)


def encode_reference(code: str) -> str:
    """
    Encode a compass reference as the sidecar's padded base64 uint32 enum.

    Examples:
        >>> [encode_reference(c) for c in "NSEW"]
        ['AAAAAA==', 'AQAAAA==', 'AgAAAA==', 'AwAAAA==']

    """
    key = code.strip().strip("\x00").upper()
    if key not in REFERENCE_CODES:
        msg = f"unknown GPS reference code: {code!r}"
        raise ValueError(msg)
    return base64.b64encode(struct.pack("<I", REFERENCE_CODES[key])).decode("ascii")


def encode_triple(first: float, second: float, third: float) -> str:
    """Encode three doubles (deg/min/sec or h/m/s) as unpadded base64."""
    raw = pack_double(first) + pack_double(second) + pack_double(third)
    return base64.b64encode(raw).decode("ascii").rstrip("=")


def decode_triple(text: str) -> tuple[float, float, float]:
    """Inverse of :func:`encode_triple`."""
    padded = text + "=" * (-len(text) % 4)
    raw = base64.b64decode(padded, validate=True)
    if len(raw) != TRIPLE_SIZE:
        msg = f"expected {TRIPLE_SIZE} bytes, got {len(raw)}"
        raise ValueError(msg)
    first, second, third = unpack_doubles(raw)
    return first, second, third


def encode_double(value: float) -> str:
    """Encode a single double as padded base64."""
    return base64.b64encode(pack_double(value)).decode("ascii")


def encode_altitude_ref(below_sea_level: int) -> str:
    """
    Encode the altitude reference byte (0 above, 1 below sea level) as padded base64.

    Examples:
        >>> encode_altitude_ref(0), encode_altitude_ref(1)
        ('AA==', 'AQ==')

    """
    if below_sea_level not in (0, 1):
        msg = f"altitude reference must be 0 or 1, got {below_sea_level!r}"
        raise ValueError(msg)
    return base64.b64encode(bytes([below_sea_level])).decode("ascii")


def encode_date_stamp(text: str) -> str:
    """
    Store the GPS date with colon separators.

    Examples:
        >>> encode_date_stamp("2020-05-14")
        '2020:05:14'

    """
    return text.replace("-", ":")


def decimal_degrees(degrees: float, minutes: float, seconds: float) -> float:
    """Collapse a sexagesimal triple; diagnostics only, never stored."""
    return degrees + minutes / 60.0 + seconds / 3600.0
