"""
Local filesystem home: collects source files from directories and files.
"""
import os
import warnings
from pathlib import Path
from typing import Dict, List, Set

from kiln.core.home import Home
from kiln.core.records import FileRecord, content_type_for, strip_bom
from kiln.utility.exceptions import (
    FlowExecutionError,
    InvalidPathError,
    MissingPathWarning,
)


class LocalHome(Home, home_type="local"):
    """
    Collects a flow's sources from the local filesystem.

    Every configured path is resolved against the flow's base directory.
    Directories are walked recursively (children in sorted order) and only
    files whose extension is in the flow's extension set are kept; explicit
    file paths are always kept. A file reachable through several configured
    paths is collected once, at its first position.
    """

    def __init__(self, name, config, root=None):
        super().__init__(name, config, root)
        self.missing: List[Path] = []
        self._visited_dirs: Set[Path] = set()

    def collect(self) -> Dict[Path, FileRecord]:
        files: Dict[Path, FileRecord] = {}
        self.missing = []
        self._visited_dirs = set()
        self._add_files(self.config.paths, files)
        self.logger.debug(f"Collected {len(files)} files for {self.name}")
        return files

    def _add_files(self, paths: List[str], files: Dict[Path, FileRecord]) -> None:
        """Add every file found under paths, recursing into directories."""
        for file_path in paths:
            full_path = self.base / file_path

            if not full_path.exists():
                self._warn_missing(full_path)
                continue

            if full_path.is_dir():
                resolved_dir = full_path.resolve()
                if resolved_dir in self._visited_dirs:
                    continue
                self._visited_dirs.add(resolved_dir)
                self._add_files(
                    self._relevant_children(file_path, full_path, files), files
                )

            elif full_path.is_file():
                resolved = full_path.resolve()
                if resolved in files:
                    continue
                files[resolved] = FileRecord(
                    name=full_path.name,
                    path=resolved,
                    contents=self._read(resolved),
                    content_type=content_type_for(resolved),
                )

            else:
                raise InvalidPathError(str(full_path))

    def _relevant_children(
        self, file_path: str, full_path: Path, files: Dict[Path, FileRecord]
    ) -> List[str]:
        """List a directory's children that are worth visiting."""
        children = []
        for child in sorted(os.listdir(full_path)):
            child_path = full_path / child
            extension = child_path.suffix[1:]
            is_relevant = extension in self.config.extensions
            is_added = child_path.resolve() in files
            if (is_relevant and not is_added) or child_path.is_dir():
                children.append(os.path.join(file_path, child))
        return children

    def _read(self, path: Path) -> str:
        try:
            contents = path.read_bytes().decode(self.config.encoding)
        except UnicodeDecodeError as e:
            raise FlowExecutionError(
                f"Could not decode {path} as {self.config.encoding}: {e}"
            ) from e
        return strip_bom(contents)

    def _warn_missing(self, full_path: Path) -> None:
        message = f"WARNING: {full_path} does not exist!"
        self.missing.append(full_path)
        self.logger.warning(message)
        warnings.warn(message, MissingPathWarning, stacklevel=3)

    def watch_paths(self) -> List[Path]:
        """
        Resolve configured paths to absolute paths for watching.

        Missing paths are skipped with a warning.

        Raises:
            InvalidPathError: If a path is neither a file nor a directory
        """
        watched = []
        for file_path in self.config.paths:
            full_path = self.base / file_path
            if not full_path.exists():
                self._warn_missing(full_path)
                continue
            if not full_path.is_file() and not full_path.is_dir():
                raise InvalidPathError(str(full_path))
            watched.append(full_path.resolve())
        return watched
