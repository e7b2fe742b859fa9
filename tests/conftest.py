"""Fixtures that build tiny TIFF images with GPS tags and NX Studio sidecars."""

import struct
from collections.abc import Callable
from pathlib import Path

import pytest


BYTE = 1
ASCII = 2
SHORT = 3
LONG = 4
RATIONAL = 5

TAG_IMAGE_WIDTH = 0x0100
TAG_GPS_INFO = 0x8825

SAMPLE_NKSC = (
    '<?xml version="1.0" encoding="UTF-8"?>\n'
    '<x:xmpmeta xmlns:x="adobe:ns:meta/">\n'
    '   <rdf:RDF xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#">\n'
    '      <rdf:Description rdf:about="" xmlns:ast="http://ns.nikon.com/asteroid/1.0/"'
    ' xmlns:astype="http://ns.nikon.com/asteroid/type/1.0/">\n'
    "         <ast:XMLPackets>\n"
    "            <rdf:Bag>\n"
    '               <rdf:li>&lt;Item name="NoiseReduction.chkSpike"&gt;0&lt;/Item&gt;</rdf:li>\n'
    '               <rdf:li>&lt;Item name="NoiseReduction.cbMethod"&gt;0&lt;/Item&gt;</rdf:li>\n'
    '               <rdf:li>&lt;Item name="NoiseReduction.chkEdge"&gt;1&lt;/Item&gt;</rdf:li>\n'
    "            </rdf:Bag>\n"
    "         </ast:XMLPackets>\n"
    "      </rdf:Description>\n"
    "   </rdf:RDF>\n"
    "</x:xmpmeta>\n"
)

GpsEntry = tuple[int, int, int, bytes]


def rational(*pairs: tuple[int, int]) -> bytes:
    return b"".join(struct.pack("<II", num, den) for num, den in pairs)


FULL_GPS: list[GpsEntry] = [
    (0x0000, BYTE, 4, bytes([2, 2, 0, 0])),
    (0x0001, ASCII, 2, b"N\x00"),
    (0x0002, RATIONAL, 3, rational((40, 1), (26, 1), (4656, 100))),
    (0x0003, ASCII, 2, b"W\x00"),
    (0x0004, RATIONAL, 3, rational((79, 1), (58, 1), (5616, 100))),
    (0x0005, BYTE, 1, b"\x00"),
    (0x0006, RATIONAL, 1, rational((2725, 10))),
    (0x0007, RATIONAL, 3, rational((14, 1), (30, 1), (15, 1))),
    (0x001D, ASCII, 11, b"2020:05:14\x00"),
]

POSITION_ONLY_GPS: list[GpsEntry] = [
    entry for entry in FULL_GPS if entry[0] in {0x0000, 0x0001, 0x0002, 0x0003, 0x0004}
]


def _ifd(entries: list[GpsEntry], offset: int) -> bytes:
    """Serialize one IFD at ``offset`` with its out-of-line values appended after it."""
    entries = sorted(entries)
    data_offset = offset + 2 + 12 * len(entries) + 4
    table = struct.pack("<H", len(entries))
    data = b""
    for tag, kind, count, payload in entries:
        if len(payload) <= 4:  # noqa: PLR2004
            value = payload.ljust(4, b"\x00")
        else:
            value = struct.pack("<I", data_offset + len(data))
            data += payload + (b"\x00" if len(payload) % 2 else b"")
        table += struct.pack("<HHI", tag, kind, count) + value
    table += struct.pack("<I", 0)
    return table + data


def build_tiff(gps: list[GpsEntry] | None) -> bytes:
    """Little-endian TIFF with IFD0 and, when ``gps`` is given, a GPS IFD."""
    header = b"II" + struct.pack("<HI", 42, 8)
    if gps is None:
        ifd0 = _ifd([(TAG_IMAGE_WIDTH, SHORT, 1, struct.pack("<H", 1))], 8)
        return header + ifd0
    ifd0_size = 2 + 12 + 4
    gps_offset = 8 + ifd0_size
    ifd0 = _ifd([(TAG_GPS_INFO, LONG, 1, struct.pack("<I", gps_offset))], 8)
    return header + ifd0 + _ifd(gps, gps_offset)


@pytest.fixture
def make_image(tmp_path: Path) -> Callable[..., Path]:
    """Create ``<tmp>/photos/<name>`` holding a TIFF with the given GPS entries."""

    def _make(name: str = "DSC_0001.NEF", gps: list[GpsEntry] | None = FULL_GPS) -> Path:
        folder = tmp_path / "photos"
        folder.mkdir(exist_ok=True)
        image = folder / name
        image.write_bytes(build_tiff(gps))
        return image

    return _make


@pytest.fixture
def make_sidecar() -> Callable[..., Path]:
    """Create the NKSC_PARAM sidecar for an image."""

    def _make(image: Path, text: str = SAMPLE_NKSC) -> Path:
        folder = image.parent / "NKSC_PARAM"
        folder.mkdir(exist_ok=True)
        sidecar = folder / f"{image.name}.nksc"
        sidecar.write_bytes(text.encode("utf-8"))
        return sidecar

    return _make
