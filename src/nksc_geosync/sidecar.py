"""
Text-level patching of NX Studio ``.nksc`` sidecars.

The sidecar is an XMP/RDF document, but it is treated as opaque text: the
strings below are the only format knowledge this module relies on.
"""

import os
import shutil
import tempfile
from collections.abc import Iterable
from pathlib import Path

from loguru import logger

from nksc_geosync.errors import AnchorNotFoundError, IncompleteGeoRecordError, SidecarReadError
from nksc_geosync.models import Flag, GeoRecord


GEO_MARKER = "GPSLatitude rdf:parseType"
ANCHOR = "</rdf:Description>"
BACKUP_SUFFIX = ".original"
INDENT_STEP = "   "

GPS_VERSION_ID = "AgIAAA=="  # bytes 2.2.0.0
GPS_ALTITUDE_REF_ABOVE_SEA = "AA=="
GPS_MAP_DATUM = "WGS-84"


def backup_path_for(sidecar_path: Path) -> Path:
    return sidecar_path.with_name(sidecar_path.name + BACKUP_SUFFIX)


def read_sidecar(sidecar_path: Path) -> str:
    """Read a sidecar verbatim, keeping its line endings."""
    try:
        with sidecar_path.open(encoding="utf-8", newline="") as fh:
            return fh.read()
    except (OSError, UnicodeDecodeError) as exc:
        msg = f"could not read {sidecar_path}: {exc}"
        raise SidecarReadError(msg) from exc


def has_geo_block(text: str) -> bool:
    return GEO_MARKER in text


def write_sidecar(sidecar_path: Path, text: str, *, backup: bool) -> None:
    """
    Replace a sidecar's contents.

    When ``backup`` is set and no ``.original`` copy exists yet, the current
    file is copied there first. An existing backup is never touched: it holds
    the sidecar as it was before the first change. The new text goes to a
    temporary file in the same directory, which is then moved over the sidecar.
    """
    if backup:
        backup_path = backup_path_for(sidecar_path)
        if backup_path.exists():
            logger.debug("backup_already_present", backup=str(backup_path))
        else:
            shutil.copy2(sidecar_path, backup_path)
            logger.info("sidecar_backed_up", backup=str(backup_path))

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{sidecar_path.name}.",
        suffix=".tmp",
        dir=sidecar_path.parent,
    )
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
            fh.write(text)
        shutil.copymode(sidecar_path, tmp_path)
        tmp_path.replace(sidecar_path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    logger.debug("sidecar_written", sidecar=str(sidecar_path), size=len(text))


def locate_anchor(text: str) -> int:
    """
    Return the offset of the start of the line holding the closing description tag.

    Examples:
        >>> locate_anchor("<a>\\n   </rdf:Description>\\n")
        4

    """
    idx = text.find(ANCHOR)
    if idx < 0:
        msg = f"sidecar has no {ANCHOR} tag to insert before"
        raise AnchorNotFoundError(msg)
    return text.rfind("\n", 0, idx) + 1


def _newline_for(text: str, line_start: int) -> str:
    if line_start >= 2 and text[line_start - 2 : line_start] == "\r\n":  # noqa: PLR2004
        return "\r\n"
    return "\n"


def _block(name: str, value: str, value_type: str, indent: str, newline: str) -> str:
    inner = indent + INDENT_STEP
    return (
        f'{indent}<ast:{name} rdf:parseType="Resource">{newline}'
        f"{inner}<rdf:value>{value}</rdf:value>{newline}"
        f"{inner}<astype:Type>{value_type}</astype:Type>{newline}"
        f"{indent}</ast:{name}>{newline}"
    )


def build_fragment(record: GeoRecord, indent: str = "         ", newline: str = "\n") -> str:
    """
    Render the GPS resource blocks for a record.

    Version, position and datum are always written; altitude, date and time
    only when present. Each ``astype:Type`` matches how the value was encoded.
    """
    if not record.has_position:
        msg = "GPS block has no latitude/longitude to write"
        raise IncompleteGeoRecordError(msg)

    blocks = [
        ("GPSVersionID", GPS_VERSION_ID, "Binary"),
        ("GPSLatitudeRef", record.latitude_ref, "Long"),
        ("GPSLatitude", record.latitude, "Double"),
        ("GPSLongitudeRef", record.longitude_ref, "Long"),
        ("GPSLongitude", record.longitude, "Double"),
        ("GPSMapDatum", GPS_MAP_DATUM, "Ascii"),
    ]
    if record.altitude:
        altitude_ref = record.altitude_ref or GPS_ALTITUDE_REF_ABOVE_SEA
        blocks.append(("GPSAltitudeRef", altitude_ref, "Binary"))
        blocks.append(("GPSAltitude", record.altitude, "Double"))
    if record.date_stamp:
        blocks.append(("GPSDateStamp", record.date_stamp, "Ascii"))
    if record.time_stamp:
        blocks.append(("GPSTimeStamp", record.time_stamp, "Double"))

    return "".join(_block(name, value, kind, indent, newline) for name, value, kind in blocks)


def insert_fragment(text: str, record: GeoRecord) -> str:
    """Insert the GPS blocks as sibling lines just above the closing description tag."""
    line_start = locate_anchor(text)
    anchor_line = text[line_start : text.index(ANCHOR, line_start)]
    indent = anchor_line[: len(anchor_line) - len(anchor_line.lstrip(" \t"))]
    fragment = build_fragment(record, indent + INDENT_STEP, _newline_for(text, line_start))
    return text[:line_start] + fragment + text[line_start:]


def patch_sidecar(sidecar_path: Path, record: GeoRecord, *, backup: bool) -> str:
    """Insert the record into a sidecar on disk and return the new text."""
    text = read_sidecar(sidecar_path)
    patched = insert_fragment(text, record)
    write_sidecar(sidecar_path, patched, backup=backup)
    logger.info("geolocation_inserted", sidecar=str(sidecar_path))
    return patched


def pending_flags(text: str, flags: Iterable[Flag]) -> list[Flag]:
    """Return the requested flags that are not already switched on."""
    return [flag for flag in flags if flag.on_marker not in text]


def toggle_flags(sidecar_path: Path, flags: Iterable[Flag], *, backup: bool) -> list[Flag]:
    """
    Switch the given flags on, writing the sidecar once if anything changed.

    Returns:
        The flags whose off-marker was found and replaced.

    """
    text = read_sidecar(sidecar_path)
    changed: list[Flag] = []
    for flag in flags:
        if flag.off_marker in text:
            text = text.replace(flag.off_marker, flag.on_marker)
            changed.append(flag)
        elif flag.on_marker not in text:
            logger.warning("flag_marker_not_found", flag=flag.label, sidecar=str(sidecar_path))

    if changed:
        write_sidecar(sidecar_path, text, backup=backup)
        logger.info(
            "flags_switched_on",
            sidecar=str(sidecar_path),
            flags=[flag.label for flag in changed],
        )
    return changed
