"""Shared types: the per-file GPS record, run options, states and outcomes."""

from enum import Enum, StrEnum
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class GeoRecord(BaseModel):
    """
    GPS fields already converted to the sidecar's encoding.

    Built fresh for each image, consumed once by the patcher. Empty strings
    mean the tag was absent; such fields are left out of the fragment.
    """

    latitude_ref: str = ""
    latitude: str = ""
    longitude_ref: str = ""
    longitude: str = ""
    altitude_ref: str = ""
    altitude: str = ""
    date_stamp: str = ""
    time_stamp: str = ""

    @property
    def has_position(self) -> bool:
        return all((self.latitude_ref, self.latitude, self.longitude_ref, self.longitude))


class Flag(Enum):
    """Noise-reduction switches that can be turned on in a sidecar."""

    ASTRO = ("astro", "NoiseReduction.chkSpike")
    BEST_QUALITY = ("best_quality", "NoiseReduction.cbMethod")
    EDGE = ("edge", "NoiseReduction.chkEdge")

    def __init__(self, label: str, setting: str) -> None:
        self.label = label
        self.setting = setting

    @property
    def off_marker(self) -> str:
        return f'{self.setting}"&gt;0&lt;'

    @property
    def on_marker(self) -> str:
        return f'{self.setting}"&gt;1&lt;'


class SyncOptions(BaseModel):
    """Run-wide switches, read-only once the CLI has parsed them."""

    model_config = ConfigDict(frozen=True)

    write_enabled: bool = True
    show_everything: bool = True
    backup_original: bool = True
    flags: frozenset[Flag] = Field(default_factory=frozenset)


class SyncState(StrEnum):
    """Classification of an image/sidecar pair."""

    NEEDS_WRITE = "needs_write"
    NO_LOCATION = "no_location"
    IN_SYNC = "in_sync"
    SIDECAR_ONLY = "sidecar_only"


class OutcomeStatus(StrEnum):
    UPDATED = "updated"
    LISTED = "listed"
    IN_SYNC = "in_sync"
    NO_LOCATION = "no_location"
    MISMATCH = "mismatch"
    SKIPPED = "skipped"
    FAILED = "failed"


class FileOutcome(BaseModel):
    """What happened to one image during one operation."""

    image: Path
    operation: Literal["geo", "flags"]
    status: OutcomeStatus
    state: SyncState | None = None
    reason: str | None = None
