from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from zsync.core.result import Err, Ok, Result
from zsync.services.sync import config
from zsync.services.sync.errors import SyncError


@dataclass(frozen=True, slots=True)
class StagingArea:
    """Local scratch folders for one run."""

    metadata_dir: Path
    assets_dir: Path


def prepare_staging(root: Path) -> Result[StagingArea, SyncError]:
    area = StagingArea(
        metadata_dir=root / config.METADATA_DIR,
        assets_dir=root / config.RELEASE_ASSETS_DIR,
    )
    for folder in (area.metadata_dir, area.assets_dir):
        try:
            folder.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            return Err(
                SyncError(
                    kind="configuration",
                    message=f"The {folder.name} folder could not be created. {e}",
                    hint=str(folder),
                )
            )
    return Ok(area)
