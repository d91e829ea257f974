"""Flat download cache for cloud images, keyed by a hash of the source URL."""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse

from pvetemplate.constants import CACHE_DIR
from pvetemplate.utils import download_file, ensure_directory, log


class ImageCache:
    def __init__(self, directory: Optional[Path] = None) -> None:
        self.directory = directory or CACHE_DIR

    def prepare(self) -> None:
        ensure_directory(self.directory)

    def path_for(self, url: str) -> Path:
        url_hash = hashlib.md5(url.encode("utf-8")).hexdigest()
        file_name = Path(unquote(urlparse(url).path)).name or "image"
        return self.directory / f"{url_hash}-{file_name}"

    def is_cached(self, url: str) -> bool:
        return self.path_for(url).is_file()

    def ensure_image(self, url: str, no_cache: bool = False) -> Path:
        """Return the cached image for ``url``, downloading it when needed."""
        path = self.path_for(url)
        if path.is_file() and not no_cache:
            log("INFO", f"Using cached image: {path}")
            return path
        if path.is_file():
            path.unlink()
        self.prepare()
        download_file(url, path, label="Downloading cloud image from")
        log("INFO", f"Download complete: {path}")
        return path

    def delete(self, path: Path) -> bool:
        if not path.is_file():
            return False
        path.unlink()
        log("INFO", "Cached image deleted")
        return True
