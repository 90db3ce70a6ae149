"""
Writes downloaded photos into the local picture album directory.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)


def gallery_display_name(circle_id: str, photo_id: str) -> str:
    return f"Circle_{circle_id}_{photo_id}"


class GallerySaver:
    """Saves JPEG bytes under an album directory without overwriting files."""

    def __init__(self, album_dir: Union[str, Path]):
        self._album_dir = Path(album_dir)

    @property
    def album_dir(self) -> Path:
        return self._album_dir

    def _target_path(self, display_name: str) -> Path:
        path = self._album_dir / f"{display_name}.jpg"
        counter = 1
        while path.exists():
            path = self._album_dir / f"{display_name} ({counter}).jpg"
            counter += 1
        return path

    def _write(self, data: bytes, display_name: str) -> Path:
        self._album_dir.mkdir(parents=True, exist_ok=True)
        path = self._target_path(display_name)
        tmp_path = path.with_name(path.name + ".part")
        with tmp_path.open("wb") as f:
            f.write(data)
        os.replace(tmp_path, path)
        return path

    async def save_jpeg(self, data: bytes, display_name: str) -> Path:
        """
        Write an image into the album.

        Raises:
            OSError: If the file cannot be written
        """
        path = await asyncio.to_thread(self._write, data, display_name)
        logger.info(f"Saved {display_name} to {path}")
        return path
