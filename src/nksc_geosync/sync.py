"""
Per-file decisions: does an image/sidecar pair need its GPS block copied,
and which noise-reduction flags still have to be switched on.
"""

from pathlib import Path

from loguru import logger

from nksc_geosync.errors import GeoSyncError, IncompleteGeoRecordError
from nksc_geosync.metadata import has_gps_block, read_exif_tags, read_geo_record
from nksc_geosync.models import FileOutcome, OutcomeStatus, SyncOptions, SyncState
from nksc_geosync.sidecar import (
    has_geo_block,
    patch_sidecar,
    pending_flags,
    read_sidecar,
    toggle_flags,
)


SIDECAR_FOLDER = "NKSC_PARAM"
SIDECAR_SUFFIX = ".nksc"

_STATE_TABLE = {
    (True, True): SyncState.NEEDS_WRITE,
    (True, False): SyncState.NO_LOCATION,
    (False, True): SyncState.IN_SYNC,
    (False, False): SyncState.SIDECAR_ONLY,
}


def sidecar_path_for(image_path: Path) -> Path:
    """
    Return where NX Studio keeps the develop settings for an image.

    Examples:
        >>> sidecar_path_for(Path("/photos/DSC_0001.NEF")).as_posix()
        '/photos/NKSC_PARAM/DSC_0001.NEF.nksc'

    """
    return image_path.parent / SIDECAR_FOLDER / f"{image_path.name}{SIDECAR_SUFFIX}"


def sidecar_lacks_geo(sidecar_path: Path) -> bool:
    return not has_geo_block(read_sidecar(sidecar_path))


def image_has_geo(image_path: Path) -> bool:
    return has_gps_block(read_exif_tags(image_path))


def classify(*, sidecar_lacks: bool, image_has: bool) -> SyncState:
    """Map the two presence checks onto one of the four sync states."""
    return _STATE_TABLE[(sidecar_lacks, image_has)]


def classify_pair(sidecar_path: Path, image_path: Path) -> SyncState:
    return classify(
        sidecar_lacks=sidecar_lacks_geo(sidecar_path),
        image_has=image_has_geo(image_path),
    )


def _report(event: str, *, shown: bool, **extra: object) -> None:
    if shown:
        logger.info(event, **extra)
    else:
        logger.debug(event, **extra)


def sync_geolocation(image_path: Path, options: SyncOptions) -> FileOutcome:
    """
    Copy the GPS block of an image into its sidecar when the sidecar has none.

    Geolocation only flows from image to sidecar: a sidecar that has GPS data
    the image lacks is reported as a mismatch and left alone.
    """
    sidecar_path = sidecar_path_for(image_path)
    if not sidecar_path.is_file():
        logger.debug("no_sidecar_for_image", sidecar=str(sidecar_path))
        return FileOutcome(
            image=image_path,
            operation="geo",
            status=OutcomeStatus.SKIPPED,
            reason="no sidecar",
        )

    state = classify_pair(sidecar_path, image_path)
    extra = {"sidecar": sidecar_path.name, "state": str(state)}

    if state is SyncState.NEEDS_WRITE:
        record = read_geo_record(image_path)
        # Checked before the write switch so list-only fails the same pairs.
        if not record.has_position:
            msg = f"GPS block of {image_path.name} has no latitude/longitude to write"
            raise IncompleteGeoRecordError(msg)
        if options.write_enabled:
            patch_sidecar(sidecar_path, record, backup=options.backup_original)
            logger.info("sidecar_updated", **extra)
            status = OutcomeStatus.UPDATED
        else:
            logger.info("sidecar_missing_location", **extra)
            status = OutcomeStatus.LISTED
    elif state is SyncState.NO_LOCATION:
        _report("no_location_anywhere", shown=options.show_everything, **extra)
        status = OutcomeStatus.NO_LOCATION
    elif state is SyncState.IN_SYNC:
        if options.show_everything:
            # Decoded for the DEBUG diagnostics only; nothing is written.
            try:
                read_geo_record(image_path)
            except GeoSyncError as exc:
                logger.warning("location_decode_failed", error=str(exc), **extra)
        _report("sidecar_in_sync", shown=options.show_everything, **extra)
        status = OutcomeStatus.IN_SYNC
    else:
        logger.warning("sidecar_has_location_image_does_not", **extra)
        status = OutcomeStatus.MISMATCH

    return FileOutcome(image=image_path, operation="geo", status=status, state=state)


def sync_flags(image_path: Path, options: SyncOptions) -> FileOutcome:
    """Switch on the requested noise-reduction flags in an image's sidecar."""
    sidecar_path = sidecar_path_for(image_path)
    if not sidecar_path.is_file():
        logger.debug("no_sidecar_for_image", sidecar=str(sidecar_path))
        return FileOutcome(
            image=image_path,
            operation="flags",
            status=OutcomeStatus.SKIPPED,
            reason="no sidecar",
        )

    requested = sorted(options.flags, key=lambda flag: flag.value)
    text = read_sidecar(sidecar_path)
    pending = pending_flags(text, requested)

    for flag in requested:
        if flag in pending:
            logger.info("flag_off", flag=flag.label, sidecar=sidecar_path.name)
        else:
            _report(
                "flag_already_on",
                shown=options.show_everything,
                flag=flag.label,
                sidecar=sidecar_path.name,
            )

    if not pending:
        return FileOutcome(image=image_path, operation="flags", status=OutcomeStatus.IN_SYNC)

    if not options.write_enabled:
        return FileOutcome(image=image_path, operation="flags", status=OutcomeStatus.LISTED)

    changed = toggle_flags(sidecar_path, pending, backup=options.backup_original)
    if not changed:
        return FileOutcome(
            image=image_path,
            operation="flags",
            status=OutcomeStatus.SKIPPED,
            reason="flag settings not found in sidecar",
        )
    return FileOutcome(image=image_path, operation="flags", status=OutcomeStatus.UPDATED)
