#!/usr/bin/env python3
"""
NKSC GeoSync: CLI app to copy GPS data from Nikon raw files into NX Studio sidecars.

NX Studio keeps non-destructive edits in NKSC_PARAM/<image>.nksc next to each NEF.
When a photo was geotagged in-camera (or by a GPS unit) after the sidecar was first
created, NX Studio ignores the EXIF GPS block and shows no location. This tool
inserts the location into the sidecar, encoded the way NX Studio writes it.

It can also switch on the astro, best-quality and edge noise-reduction settings in
the same sidecars.

The original sidecar is kept as <name>.nksc.original unless --no-backup is given.
"""
# ruff: noqa: PLR0913

import os
import sys
from collections import Counter
from collections.abc import Callable
from datetime import UTC, datetime
from itertools import chain
from pathlib import Path
from typing import Annotated, Literal

from cyclopts import App, Parameter, validators
from loguru import logger

from nksc_geosync.errors import GeoSyncError
from nksc_geosync.models import FileOutcome, Flag, OutcomeStatus, SyncOptions
from nksc_geosync.sync import sync_flags, sync_geolocation


LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL", "OFF"]

# Configuration defaults
DEFAULT_EXTENSION = os.getenv("NKSC_EXTENSION", "nef")
DEFAULT_LOG_FOLDER = Path(os.getenv("NKSC_LOG_FOLDER", "logs"))


# Cyclopts app
__version__ = "0.1.0"
app = App(
    name="nksc-geosync",
    version=__version__,
)


def setup_logging(
    file_log_level: LogLevel = "DEBUG",
    console_log_level: LogLevel = "INFO",
    log_folder: Path = DEFAULT_LOG_FOLDER,
) -> None:
    """
    Configure Loguru sinks for a sync run.

    Every record is an event name (``sidecar_updated``, ``flag_off``,
    ``processing_failed``...) with its values as extras. ``run_batch`` contextualizes
    each file, so ``{extra}`` also carries the image name and the operation
    (``geo`` or ``flags``). The decoder's per-tag ``gps_*_decoded`` records are
    DEBUG, which the file sink keeps by default and the console shows only with
    ``--verbose``. The run ends with one ``processing_summary`` record of status counts.

    Args:
        file_log_level: Log level for file (use 'OFF' to disable)
        console_log_level: Log level for console (use 'OFF' to disable)
        log_folder: Directory where log files are stored

    """
    # Remove default handler
    logger.remove()

    # Add file logging
    if file_log_level != "OFF":
        log_folder.mkdir(parents=True, exist_ok=True)
        log_file = log_folder / Path(
            datetime.now(tz=UTC).strftime("%Y%m%d%H%M%S-nksc_geosync.log"),
        )
        logger.add(
            log_file,
            level=file_log_level,
            format=(
                "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
                "{level: <8} | "
                "{name:<8}:{function:<25}:{line:>4} | "
                "{message:<40} | "
                "{extra}"
            ),
            rotation="500 MB",
            retention="10 days",
            compression="zip",
        )

    # Add console logging
    if console_log_level != "OFF":
        logger.add(
            sys.stderr,
            level=console_log_level,
            colorize=True,
            format=(
                "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
                "<level>{level: <7}</level> | "
                "<level>{message:<40.50}</level> | "
                "<yellow>{extra}</yellow>"
            ),
        )


def _parse_extensions(image_extensions: str) -> set[str]:
    """
    Normalize comma-separated extensions into a lowercase set like {".nef", ".jpg"}.

    Examples:
        >>> sorted(_parse_extensions("NEF, jpg ,.Nrw"))
        ['.jpg', '.nef', '.nrw']

    """
    return {
        f".{ext.strip().lstrip('.').lower()}"
        for ext in image_extensions.split(",")
        if ext.strip().lstrip(".")
    }


def _walk_directory(
    directory: Path,
    ext_set: set[str],
    *,
    recursive: bool,
    visited: set[Path],
) -> list[Path]:
    """
    List matching files in a directory, depth-first when recursive.

    Directories already in ``visited`` (compared by resolved path) are skipped,
    so symlink loops end after one pass.
    """
    resolved = directory.resolve()
    if resolved in visited:
        logger.debug("directory_already_visited", directory=str(directory))
        return []
    visited.add(resolved)
    logger.debug("scanning_directory", directory=str(directory))

    try:
        entries = sorted(directory.iterdir())
    except OSError as exc:
        logger.error("directory_unreadable", directory=str(directory), error=str(exc))
        return []

    found: list[Path] = []
    for entry in entries:
        if entry.is_file():
            if entry.suffix.lower() in ext_set:
                found.append(entry)
        elif entry.is_dir() and recursive:
            found.extend(_walk_directory(entry, ext_set, recursive=True, visited=visited))
    return found


def _resolve_image_files(
    inputs: list[Path],
    ext_set: set[str],
    *,
    recursive: bool,
) -> list[Path]:
    """
    Resolve provided inputs into a list of files.

    - Directories are expanded by extension (honoring --recursive)
    - Explicit files are accepted as-is (extension filter not applied)
    - Order is preserved and duplicates removed
    """
    files_from_dirs: list[Path] = []
    files_explicit: list[Path] = []
    visited: set[Path] = set()

    for path in inputs:
        if path.is_dir():
            files_from_dirs.extend(
                _walk_directory(path, ext_set, recursive=recursive, visited=visited),
            )
        elif path.is_file():
            files_explicit.append(path)
        else:
            logger.warning("input_not_file_or_dir", path=str(path))

    combined: list[Path] = []
    seen = set()
    for f in chain(files_explicit, files_from_dirs):
        key = f.resolve()
        if key not in seen:
            combined.append(f)
            seen.add(key)

    return combined


def _resolve_image_batch(
    inputs: list[Path] | None,
    image_extensions: str,
    *,
    recursive: bool,
) -> list[Path]:
    ext_set = _parse_extensions(image_extensions)
    if not ext_set:
        logger.error("no_valid_extensions_provided", raw_input=image_extensions)
        raise SystemExit(1)
    logger.debug("parsed_extensions", extensions=sorted(ext_set))

    if not inputs:
        inputs = [Path.cwd()]
        logger.info("no_inputs_using_current_directory", directory=str(inputs[0]))

    image_files = _resolve_image_files(inputs, ext_set, recursive=recursive)
    if not image_files:
        logger.error(
            "no_image_files_found",
            inputs=[str(p) for p in inputs],
            recursive=recursive,
            extensions=sorted(ext_set),
        )
        raise SystemExit(1)

    logger.info("image_files_discovered", count=len(image_files))
    return image_files


def _execute_sync(
    image_file: Path,
    operation: Callable[[Path, SyncOptions], FileOutcome],
    options: SyncOptions,
    *,
    name: Literal["geo", "flags"],
    index: str,
) -> FileOutcome:
    """Run one operation on one file; failures are recorded instead of ending the batch."""
    with logger.contextualize(file=image_file.name, operation=name):
        try:
            outcome = operation(image_file, options)
        except (GeoSyncError, OSError) as exc:
            logger.exception("processing_failed", index=index, error=str(exc))
            return FileOutcome(
                image=image_file,
                operation=name,
                status=OutcomeStatus.FAILED,
                reason=str(exc),
            )
        logger.debug("processing_done", index=index, status=str(outcome.status))
        return outcome


def run_batch(image_files: list[Path], options: SyncOptions, *, geo: bool) -> list[FileOutcome]:
    """Process every file start to finish: geo sync first, then flags."""
    outcomes: list[FileOutcome] = []
    file_count = len(image_files)
    for idx, image_file in enumerate(image_files, start=1):
        index = f"{idx}/{file_count}"
        if geo:
            outcomes.append(
                _execute_sync(image_file, sync_geolocation, options, name="geo", index=index),
            )
        if options.flags:
            outcomes.append(
                _execute_sync(image_file, sync_flags, options, name="flags", index=index),
            )
    return outcomes


@app.default
def sync(
    inputs: Annotated[
        list[Path] | None,
        Parameter(
            name=("--input", "-i", "-d"),
            validator=validators.Path(exists=True),
            help="Files and/or directories to process. Defaults to the current directory",
        ),
    ] = None,
    *,
    image_extensions: Annotated[
        str,
        Parameter(
            name=("--ext", "-e"),
            help="Comma-separated image file extensions to search for (case insensitive)",
        ),
    ] = DEFAULT_EXTENSION,
    recursive: Annotated[
        bool,
        Parameter(
            name=("--recursive", "-r"),
            help="Search subdirectories recursively",
        ),
    ] = False,
    list_only: Annotated[
        bool,
        Parameter(
            name=("--list-only", "-l"),
            negative="",
            help="Report what is out of sync without changing any sidecar",
        ),
    ] = False,
    backup: Annotated[
        bool,
        Parameter(
            name=("--backup",),
            negative="--no-backup",
            help="Keep the untouched sidecar as <name>.nksc.original (created once)",
        ),
    ] = True,
    show_everything: Annotated[
        bool,
        Parameter(
            name=("--show-all",),
            negative="--only-mismatches",
            help="Report every image/sidecar pair, not only those out of sync",
        ),
    ] = True,
    geo: Annotated[
        bool,
        Parameter(
            name=("--geo",),
            negative="--no-geo",
            help="Copy GPS data into sidecars (use --no-geo to only toggle flags)",
        ),
    ] = True,
    astro: Annotated[
        bool,
        Parameter(name=("--astro",), negative="", help='Set "Astro Noise Reduction" on'),
    ] = False,
    best_quality: Annotated[
        bool,
        Parameter(name=("--best",), negative="", help='Set noise reduction to "Best"'),
    ] = False,
    edge: Annotated[
        bool,
        Parameter(name=("--edge",), negative="", help='Set "Edge Noise Reduction" on'),
    ] = False,
    verbose: Annotated[
        bool,
        Parameter(
            name=("--verbose", "-v"),
            negative="",
            help="Show decoded GPS values and per-file details on the console",
        ),
    ] = False,
    file_log_level: Annotated[
        LogLevel,
        Parameter(
            name="--file-log-level",
            help="Log level for file (use 'OFF' to disable)",
        ),
    ] = "DEBUG",
    log_folder: Annotated[
        Path,
        Parameter(
            name=("--log-folder",),
            help="Folder where log files are stored",
        ),
    ] = DEFAULT_LOG_FOLDER,
    console_log_level: Annotated[
        LogLevel,
        Parameter(
            name="--console-log-level",
            help="Log level for console (use 'OFF' to disable)",
        ),
    ] = "INFO",
) -> None:
    """
    Insert missing GPS data into NKSC_PARAM sidecars and optionally switch on noise reduction.

    Inputs:
    - Files and/or directories; the current directory when none are given.
    - Files are processed as is. Directories use --ext (add --recursive for subfolders).
    - Each image's sidecar is looked up at <dir>/NKSC_PARAM/<image name>.nksc.

    Behavior:
    - If the image has a GPS block and the sidecar has none, the GPS fields are inserted.
    - A sidecar that already has location data is never patched again.
    - --list-only reports without writing; --only-mismatches hides pairs that are fine.
    - --astro/--best/--edge switch the matching noise-reduction settings on.

    Exit status: returns 1 if no images are found or any file fails.

    Examples:
        nksc-geosync -r ./photos
        nksc-geosync -l ./photos/DSC_0001.NEF
        nksc-geosync --no-geo --astro --edge ./photos

    """
    if verbose and console_log_level != "OFF":
        console_log_level = "DEBUG"
    setup_logging(
        file_log_level=file_log_level,
        console_log_level=console_log_level,
        log_folder=log_folder,
    )

    requested_flags = frozenset(
        flag
        for flag, wanted in (
            (Flag.ASTRO, astro),
            (Flag.BEST_QUALITY, best_quality),
            (Flag.EDGE, edge),
        )
        if wanted
    )
    options = SyncOptions(
        write_enabled=not list_only,
        show_everything=show_everything,
        backup_original=backup,
        flags=requested_flags,
    )
    logger.info(
        "starting_nksc_geosync",
        version=__version__,
        inputs=[str(p) for p in (inputs or [])],
        extensions=image_extensions,
        recursive=recursive,
        geo=geo,
        write_enabled=options.write_enabled,
        show_everything=options.show_everything,
        backup=options.backup_original,
        flags=sorted(flag.label for flag in options.flags),
    )

    if not geo and not options.flags:
        logger.warning("nothing_to_do", hint="Drop --no-geo or pass --astro/--best/--edge")
        return

    image_files = _resolve_image_batch(inputs, image_extensions, recursive=recursive)
    outcomes = run_batch(image_files, options, geo=geo)

    # Summary
    counts = Counter(str(outcome.status) for outcome in outcomes)
    logger.info("processing_summary", total_files=len(image_files), **counts)
    failures = [outcome for outcome in outcomes if outcome.status is OutcomeStatus.FAILED]
    if failures:
        logger.error(
            "files_failed",
            files=[f"{o.image} ({o.operation}): {o.reason}" for o in failures],
        )
        raise SystemExit(1)


if __name__ == "__main__":
    app()
