"""
Object storage for synthesized audio.

Objects are written under a local directory and addressed by a public
base URL that serves that directory.
"""
import asyncio
from pathlib import Path, PurePosixPath
from typing import Protocol
from urllib.parse import quote

from speechtask.config import STORAGE_DIR, STORAGE_BASE_URL

_EXTENSIONS = {
    'audio/mpeg': '.mp3',
    'audio/mp3': '.mp3',
    'audio/wav': '.wav',
    'audio/x-wav': '.wav',
    'audio/wave': '.wav',
    'audio/ogg': '.ogg',
    'audio/opus': '.opus',
    'audio/flac': '.flac',
    'audio/aac': '.aac',
}


def extension_for(content_type: str) -> str:
    """File extension for an audio content type ('.bin' when unknown)."""
    return _EXTENSIONS.get(content_type.split(';')[0].strip().lower(), '.bin')


class ObjectStorage(Protocol):
    """Blob storage contract: store bytes under a key, get back a public URL."""

    async def put(self, key: str, data: bytes, content_type: str) -> str: ...


class LocalObjectStorage:
    """Stores objects as files under root_dir."""

    def __init__(self, root_dir: Path = STORAGE_DIR, base_url: str = STORAGE_BASE_URL):
        self._root_dir = Path(root_dir)
        self._base_url = base_url.rstrip('/')

    def path_for(self, key: str) -> Path:
        """Filesystem path for a key. Rejects keys that escape root_dir."""
        parts = PurePosixPath(key).parts
        if not parts or key.startswith('/') or '..' in parts:
            raise ValueError(f'Invalid object key: {key!r}')
        return self._root_dir.joinpath(*parts)

    async def put(self, key: str, data: bytes, content_type: str) -> str:
        """
        Store bytes under key.

        Returns:
            Public URL of the stored object
        """
        path = self.path_for(key)
        await asyncio.to_thread(self._write, path, data)
        return f'{self._base_url}/{quote(key)}'

    @staticmethod
    def _write(path: Path, data: bytes):
        # Ensure output directory exists
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
