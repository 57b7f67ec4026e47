from __future__ import annotations

import tempfile
from dataclasses import dataclass, field
from typing import Optional

from edsdk_session.constants import (
    DEFAULT_BYTES_PER_SECTOR,
    DEFAULT_FREE_CLUSTERS,
    DRIVE_MODE_CONTINUOUS,
    SAVE_TO_HOST,
)


@dataclass
class SessionConfig:
    """Tunables shared by the manager and every session it opens.

    Attributes:
        download_dir: Directory downloaded images are written to.
        poll_interval: Seconds between two event pumps.
        shutter_settle_delay: Seconds the shutter button stays pressed before
            it is released. Bodies differ, 0 skips the wait.
        save_to: Value written to the SaveTo property at session open.
        drive_mode: Value written to the DriveMode property at session open.
        capacity_free_clusters / capacity_bytes_per_sector: Host capacity
            hint sent before each capture.
        file_pattern: Optional name template for downloads, e.g.
            "{timestamp}_{seq:04d}.{ext}". Fields: basename, ext, timestamp, seq.
        download_workers: Threads used for the download pipeline.
        unclaimed_limit: How many images downloaded while nobody was
            subscribed are kept per session; older ones are forgotten.
    """

    download_dir: str = field(default_factory=tempfile.gettempdir)
    poll_interval: float = 0.01
    shutter_settle_delay: float = 0.4
    save_to: int = SAVE_TO_HOST
    drive_mode: int = DRIVE_MODE_CONTINUOUS
    capacity_free_clusters: int = DEFAULT_FREE_CLUSTERS
    capacity_bytes_per_sector: int = DEFAULT_BYTES_PER_SECTOR
    file_pattern: Optional[str] = None
    download_workers: int = 1
    unclaimed_limit: int = 32

    def __post_init__(self) -> None:
        if self.poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive: {self.poll_interval}")
        if self.shutter_settle_delay < 0:
            raise ValueError(
                f"shutter_settle_delay must not be negative: {self.shutter_settle_delay}"
            )
        if self.download_workers < 1:
            raise ValueError(
                f"download_workers must be at least 1: {self.download_workers}"
            )
        if self.unclaimed_limit < 0:
            raise ValueError(f"unclaimed_limit must not be negative: {self.unclaimed_limit}")
        if self.capacity_free_clusters < 0 or self.capacity_bytes_per_sector <= 0:
            raise ValueError("Invalid capacity hint")
