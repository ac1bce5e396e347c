"""
Local file store: writes each artifact to a file in a directory.
"""
import os
from pathlib import Path, PurePosixPath
from typing import Dict, Optional

from pydantic import Field, field_validator

from kiln.core.records import Artifact
from kiln.core.store import BaseStoreConfig, Store, StoreConfig
from kiln.utility.exceptions import StoreError, StoreWriteError

EXTENSIONS = {
    "text/css": "css",
    "application/javascript": "js",
}


class LocalStore(Store, store_type="local"):
    """
    Writes artifacts to files under a local directory.

    Each artifact is written to a staging file first and then renamed into
    place, so readers never see a half-written bundle. File names come from
    `file_pattern`, which may use `{id}`, `{name}` and `{ext}`.
    """

    def __init__(self, name: str, config: "LocalStoreConfig"):
        super().__init__(name, config.options)
        self.config = config
        self.base_path = Path(config.path)
        self.file_pattern = config.file_pattern
        self.saved_paths: Dict[int, Path] = {}
        # file name -> id of the flow that owns it
        self.claimed: Dict[str, int] = {}
        self.ensure_directories_exist()

    def ensure_directories_exist(self) -> None:
        try:
            self.get_staging_directory().mkdir(parents=True, exist_ok=True)
            self.get_final_directory().mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreError(f"Failed to create directories: {str(e)}") from e

    def get_staging_directory(self) -> Path:
        return self.base_path / ".tmp"

    def get_final_directory(self) -> Path:
        return self.base_path

    def get_filename(self, artifact: Artifact, by_id: bool = False) -> str:
        ext = EXTENSIONS.get(artifact.mime_type, "txt")
        if not by_id and isinstance(artifact.route, str) and artifact.route.strip("/"):
            name = PurePosixPath(artifact.route).name
            if name.endswith(f".{ext}"):
                name = name[: -len(ext) - 1]
        else:
            name = f"flow-{artifact.id}"
        return self.file_pattern.format(id=artifact.id, name=name, ext=ext)

    def claim_filename(self, artifact: Artifact) -> str:
        """
        Pick the file an artifact is written to and reserve it for its flow.

        When another flow already owns the route-based name (two routes with
        the same basename), the artifact falls back to its id-based name.

        Raises:
            StoreError: If the id-based name is taken as well
        """
        for by_id in (False, True):
            filename = self.get_filename(artifact, by_id=by_id)
            owner = self.claimed.setdefault(filename, artifact.id)
            if owner == artifact.id:
                return filename
            self.logger.warning(
                f"{filename} is already written by flow {owner}, "
                f"flow {artifact.id} falls back to its id"
            )
        raise StoreError(
            f"No free file name for flow {artifact.id} with pattern "
            f"'{self.file_pattern}'",
            flow_id=artifact.id,
        )

    async def _save(self, artifact: Artifact) -> None:
        filename = self.claim_filename(artifact)
        staging_path = self.get_staging_directory() / filename
        final_path = self.get_final_directory() / filename
        try:
            staging_path.parent.mkdir(parents=True, exist_ok=True)
            staging_path.write_bytes(artifact.data)
            await self._move_to_final(staging_path, final_path)
        except StoreError:
            raise
        except OSError as e:
            self.logger.error(f"Failed to write {final_path}: {e}")
            raise StoreWriteError(f"Failed to write {final_path}: {e}") from e

        self.saved_paths[artifact.id] = final_path
        self.logger.debug(f"Wrote {self.logger.path(str(final_path))}")

    async def _move_to_final(self, staging_path: Path, final_path: Path) -> None:
        if not staging_path.exists():
            raise StoreError(f"Staging file does not exist: {staging_path}")
        final_path.parent.mkdir(parents=True, exist_ok=True)
        os.replace(staging_path, final_path)

    def path_for(self, flow_id: int) -> Optional[Path]:
        """Get the file the latest artifact of a flow was written to."""
        return self.saved_paths.get(flow_id)

    async def close(self) -> None:
        staging_dir = self.get_staging_directory()
        try:
            if staging_dir.exists():
                for f in staging_dir.glob("**/*"):
                    if f.is_file():
                        f.unlink()
                staging_dir.rmdir()
        except OSError as e:
            self.logger.warning(f"Failed to cleanup staging directory: {e}")


class LocalStoreConfig(StoreConfig, BaseStoreConfig, config_type="local"):
    """Configuration for a LocalStore."""

    type: str = Field(default="local", description="Type of store")
    path: str = Field(..., description="Directory bundles are written to")
    file_pattern: str = Field(
        default="{name}.{ext}",
        description="Output file naming pattern ({id}, {name}, {ext})",
    )

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        if not v:
            raise ValueError("Path is required for local stores")
        return v

    @field_validator("file_pattern")
    @classmethod
    def validate_file_pattern(cls, v: str) -> str:
        try:
            v.format(id=0, name="bundle", ext="css")
        except (KeyError, IndexError, ValueError) as e:
            raise ValueError(f"Invalid file_pattern '{v}': {e}")
        return v
