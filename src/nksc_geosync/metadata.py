"""
Read GPS tags from an image's EXIF container and convert them to sidecar encoding.

NEF files are TIFF containers, so exifread handles them directly; JPEG/TIFF
work the same way when another extension is requested.
"""

from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

import exifread  # type: ignore[import-untyped]
from loguru import logger

from nksc_geosync.encoding import (
    decimal_degrees,
    encode_altitude_ref,
    encode_date_stamp,
    encode_double,
    encode_reference,
    encode_triple,
)
from nksc_geosync.errors import MetadataReadError
from nksc_geosync.models import GeoRecord


if TYPE_CHECKING:
    from exifread.classes import IfdTag  # type: ignore[import-untyped]


GPS_VERSION_TAG = "GPS GPSVersionID"
GPS_LATITUDE_REF_TAG = "GPS GPSLatitudeRef"
GPS_LATITUDE_TAG = "GPS GPSLatitude"
GPS_LONGITUDE_REF_TAG = "GPS GPSLongitudeRef"
GPS_LONGITUDE_TAG = "GPS GPSLongitude"
GPS_ALTITUDE_REF_TAG = "GPS GPSAltitudeRef"
GPS_ALTITUDE_TAG = "GPS GPSAltitude"
GPS_TIME_STAMP_TAG = "GPS GPSTimeStamp"
# exifread names 0x001D "GPSDate"; other readers call it GPSDateStamp.
GPS_DATE_STAMP_TAGS = ("GPS GPSDate", "GPS GPSDateStamp")


def read_exif_tags(image_path: Path) -> dict[str, "IfdTag"]:
    """
    Read all EXIF tags (without makernote/thumbnail details) from an image.

    Raises:
        MetadataReadError: if the file cannot be opened, the container cannot be
            parsed, or the file carries no EXIF data at all.

    """
    try:
        with image_path.open("rb") as fh:
            tags = exifread.process_file(fh, details=False)
    except OSError as exc:
        msg = f"could not open {image_path.name}: {exc}"
        raise MetadataReadError(msg) from exc
    except Exception as exc:
        msg = f"could not parse EXIF data in {image_path.name}: {exc}"
        raise MetadataReadError(msg) from exc

    if not tags:
        msg = f"no EXIF container found in {image_path.name}"
        raise MetadataReadError(msg)

    logger.debug("exif_tags_read", file=image_path.name, count=len(tags))
    return tags


def has_gps_block(tags: Mapping[str, Any]) -> bool:
    """Return True when the GPS version tag is present, which marks a usable GPS IFD."""
    return GPS_VERSION_TAG in tags


def _to_float(value: Any) -> float:  # noqa: ANN401
    """Convert an exifread Ratio (or plain integer) to a float without going through str."""
    if isinstance(value, int):
        return float(value)
    numerator, denominator = value.num, value.den
    if denominator == 0:
        msg = f"rational with zero denominator: {numerator}/0"
        raise MetadataReadError(msg)
    return numerator / denominator


def _rational_values(tag: "IfdTag", name: str, expected: int) -> list[float]:
    values = tag.values
    if not isinstance(values, Sequence) or isinstance(values, str):
        msg = f"{name} is not a rational value: {tag.printable!r}"
        raise MetadataReadError(msg)
    if len(values) != expected:
        msg = f"{name} has {len(values)} values, expected {expected}"
        raise MetadataReadError(msg)
    return [_to_float(v) for v in values]


def _reference(tag: "IfdTag", name: str) -> str:
    code = str(tag.printable)
    try:
        encoded = encode_reference(code)
    except ValueError as exc:
        msg = f"{name} has unexpected value {code!r}"
        raise MetadataReadError(msg) from exc
    logger.debug("gps_reference_decoded", tag=name, code=code.strip(), encoded=encoded)
    return encoded


def _altitude_ref(tag: "IfdTag") -> str:
    values = tag.values
    value = values[0] if isinstance(values, Sequence) and values else values
    try:
        return encode_altitude_ref(int(value))
    except (TypeError, ValueError) as exc:
        msg = f"GPSAltitudeRef has unexpected value {tag.printable!r}"
        raise MetadataReadError(msg) from exc


def _coordinate(tag: "IfdTag", name: str) -> str:
    degrees, minutes, seconds = _rational_values(tag, name, 3)
    encoded = encode_triple(degrees, minutes, seconds)
    logger.debug(
        "gps_coordinate_decoded",
        tag=name,
        triple=(degrees, minutes, seconds),
        decimal_degrees=decimal_degrees(degrees, minutes, seconds),
        encoded=encoded,
    )
    return encoded


def decode_gps_tags(tags: Mapping[str, Any]) -> GeoRecord:
    """
    Convert exifread GPS tags into a :class:`GeoRecord`.

    Absent tags leave their field empty. Malformed values raise
    :class:`MetadataReadError`.
    """
    record = GeoRecord()

    if tag := tags.get(GPS_LATITUDE_REF_TAG):
        record.latitude_ref = _reference(tag, "GPSLatitudeRef")
    if tag := tags.get(GPS_LONGITUDE_REF_TAG):
        record.longitude_ref = _reference(tag, "GPSLongitudeRef")
    if tag := tags.get(GPS_LATITUDE_TAG):
        record.latitude = _coordinate(tag, "GPSLatitude")
    if tag := tags.get(GPS_LONGITUDE_TAG):
        record.longitude = _coordinate(tag, "GPSLongitude")

    if tag := tags.get(GPS_ALTITUDE_TAG):
        (altitude,) = _rational_values(tag, "GPSAltitude", 1)
        record.altitude = encode_double(altitude)
        if ref_tag := tags.get(GPS_ALTITUDE_REF_TAG):
            record.altitude_ref = _altitude_ref(ref_tag)
        logger.debug(
            "gps_altitude_decoded",
            altitude=altitude,
            encoded=record.altitude,
            ref=record.altitude_ref or None,
        )

    for date_tag in GPS_DATE_STAMP_TAGS:
        if tag := tags.get(date_tag):
            record.date_stamp = encode_date_stamp(str(tag.printable).strip().strip("\x00"))
            logger.debug("gps_date_stamp_decoded", date_stamp=record.date_stamp)
            break

    if tag := tags.get(GPS_TIME_STAMP_TAG):
        hours, minutes, seconds = _rational_values(tag, "GPSTimeStamp", 3)
        record.time_stamp = encode_triple(hours, minutes, seconds)
        logger.debug("gps_time_stamp_decoded", encoded=record.time_stamp)

    return record


def read_geo_record(image_path: Path) -> GeoRecord:
    """Read an image and return its GPS fields in sidecar encoding."""
    return decode_gps_tags(read_exif_tags(image_path))
