"""Exceptions raised while reading images and patching NKSC sidecars."""


class GeoSyncError(Exception):
    """Base class for per-file failures; the batch driver reports them and moves on."""


class MetadataReadError(GeoSyncError):
    """The image could not be opened or its EXIF container could not be parsed."""


class SidecarReadError(GeoSyncError):
    """The NKSC sidecar could not be read."""


class AnchorNotFoundError(GeoSyncError):
    """The sidecar has no closing ``rdf:Description`` tag to insert before."""


class IncompleteGeoRecordError(GeoSyncError):
    """The image GPS block carries no usable latitude/longitude."""
