"""
In-memory records that travel through a flow run.

A FileRecord is one collected source file; it lives from collection until
concatenation folds it into the bundle. An Artifact is the finished bundle
handed to a Store.
"""
import mimetypes
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional, Pattern, Union

BOM = "\ufeff"

# Sub-language content types that kiln knows how to compile
_mime = mimetypes.MimeTypes()
for _type, _extensions in {
    "text/css": ["css"],
    "application/javascript": ["js"],
    "application/coffeescript": ["coffee"],
    "text/sass": ["sass", "scss"],
    "text/less": ["less"],
    "text/stylus": ["styl"],
    "text/template": ["jst"],
}.items():
    for _extension in _extensions:
        _mime.add_type(_type, f".{_extension}")


def content_type_for(path: Union[str, Path]) -> Optional[str]:
    """Detect a file's content type from its extension."""
    content_type, _ = _mime.guess_type(str(path), strict=False)
    return content_type


def strip_bom(contents: str) -> str:
    """Remove a single leading byte-order mark, if present."""
    if contents.startswith(BOM):
        return contents[1:]
    return contents


@dataclass
class FileRecord:
    """One collected source file."""

    name: str
    path: Path
    contents: str
    content_type: Optional[str] = None

    @property
    def extension(self) -> str:
        return self.path.suffix[1:]

    @property
    def stem(self) -> str:
        return self.path.stem


@dataclass(frozen=True)
class Artifact:
    """A finished bundle, ready to be persisted by a Store."""

    id: int
    data: bytes
    route: Union[str, Pattern, None] = None
    mime_type: Optional[str] = None
    modified: Optional[datetime] = field(default=None, compare=False)

    def __len__(self) -> int:
        return len(self.data)
