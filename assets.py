"""
Uploaded file storage and asset lifecycle

An AssetManager owns one directory (the asset root). Records reference
stored files by their public path ("/uploads/<filename>"); the manager maps
those paths back onto the root and refuses anything that would land outside it.
"""

import os
import random
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from starlette.datastructures import UploadFile
from loguru import logger

from config import settings
from errors import ValidationError

ALLOWED_TYPES = re.compile(r"jpeg|jpg|png|gif|webp|pdf")
CHUNK_SIZE = 1024 * 1024


@dataclass
class StoredFile:
    filename: str
    originalname: str
    mimetype: str


class AssetManager:
    def __init__(self, root: str, url_prefix: str = "/uploads", max_size: int = 10 * 1024 * 1024):
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)
        self.url_prefix = "/" + url_prefix.strip("/")
        self.max_size = max_size

    # ------
    # Upload
    # ------
    def save(self, upload: UploadFile, field: str = "file") -> StoredFile:
        """Validate and write one uploaded file under the root."""
        originalname = upload.filename or ""
        ext = os.path.splitext(originalname)[1].lower()
        mimetype = upload.content_type or ""
        if not (ALLOWED_TYPES.search(ext) and ALLOWED_TYPES.search(mimetype)):
            raise ValidationError("Only image files (jpeg, jpg, png, gif, webp) and PDFs are allowed!")

        filename = f"{field}-{int(time.time() * 1000)}-{random.randint(0, 10**9)}{ext}"
        target = self.root / filename
        written = 0
        try:
            with open(target, "wb") as out:
                while True:
                    chunk = upload.file.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    written += len(chunk)
                    if written > self.max_size:
                        raise ValidationError(f"File too large (max {self.max_size // (1024 * 1024)}MB)")
                    out.write(chunk)
        except Exception:
            target.unlink(missing_ok=True)
            raise
        logger.debug(f"Stored upload {originalname!r} as {filename} ({written} bytes)")
        return StoredFile(filename=filename, originalname=originalname, mimetype=mimetype)

    def discard(self, stored: Iterable[StoredFile]) -> None:
        """Remove freshly stored files whose record write did not go through."""
        for item in stored:
            self.unbind(self.public_path(item.filename))

    # ---------
    # Lifecycle
    # ---------
    def public_path(self, filename: str) -> str:
        return f"{self.url_prefix}/{filename}"

    def bind(self, record: Dict[str, Any], field: str, stored: StoredFile) -> str:
        path = self.public_path(stored.filename)
        record[field] = path
        return path

    def bind_many(self, record: Dict[str, Any], field: str, stored: List[StoredFile], append: bool = False) -> List[str]:
        paths = [self.public_path(item.filename) for item in stored]
        if append:
            paths = list(record.get(field) or []) + paths
        record[field] = paths
        return paths

    def resolve(self, public_path: Optional[str]) -> Optional[Path]:
        """Map a public path onto the root; None if it points anywhere else."""
        if not public_path or not isinstance(public_path, str):
            return None
        relative = public_path
        if relative.startswith(self.url_prefix + "/"):
            relative = relative[len(self.url_prefix) + 1:]
        relative = relative.lstrip("/")
        if not relative:
            return None
        candidate = (self.root / relative).resolve()
        if candidate == self.root or not candidate.is_relative_to(self.root):
            logger.warning(f"Refusing asset path outside upload root: {public_path}")
            return None
        return candidate

    def unbind(self, public_path: Optional[str]) -> bool:
        """Delete the file behind a public path. Never raises."""
        target = self.resolve(public_path)
        if target is None or not target.is_file():
            return False
        try:
            target.unlink()
        except OSError as e:
            logger.error(f"Failed to delete asset {public_path}: {e}")
            return False
        logger.info(f"Deleted asset {public_path}")
        return True

    def unbind_all(self, public_paths: Iterable[Optional[str]]) -> int:
        return sum(1 for path in public_paths if self.unbind(path))


_asset_manager: Optional[AssetManager] = None


def get_asset_manager() -> AssetManager:
    global _asset_manager
    if _asset_manager is None:
        _asset_manager = AssetManager(settings.UPLOAD_DIR, settings.UPLOAD_URL_PREFIX, settings.MAX_UPLOAD_SIZE)
    return _asset_manager
