"""
Local file storage for uploaded profile photos.

Files live flat under one directory.  Stored names are prefixed with a
UUID so two uploads of ``me.jpg`` never collide; lookups refuse any name
that would resolve outside the directory.
"""

from __future__ import annotations

import logging
import re
import uuid
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def _clean_name(original: Optional[str]) -> str:
    name = _UNSAFE.sub("_", Path(original or "").name).strip("._")
    return name or "upload"


class FileStorage:
    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def save(self, original_name: Optional[str], data: bytes) -> str:
        """Write *data* under a fresh unique name and return that name."""
        self.root.mkdir(parents=True, exist_ok=True)
        name = f"{uuid.uuid4()}-{_clean_name(original_name)}"
        (self.root / name).write_bytes(data)
        logger.info("Stored %s (%d bytes)", name, len(data))
        return name

    def path_for(self, name: str) -> Optional[Path]:
        """Path of a stored file, or ``None`` if it is missing or out of bounds."""
        root = self.root.resolve()
        path = (root / name).resolve()
        if path.parent != root or not path.is_file():
            return None
        return path

    def delete(self, name: Optional[str]) -> None:
        if not name:
            return
        path = self.path_for(name)
        if path is not None:
            path.unlink()
            logger.info("Deleted %s", name)
