"""Persistence of generated audio bytes."""

from __future__ import annotations

import asyncio
import re
import time
from pathlib import Path
from typing import Callable, Optional, Protocol

from loguru import logger

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-z0-9.-]", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")


class ArtifactStore(Protocol):
    async def store(self, data: bytes, filename: str) -> str: ...


def sanitize_filename(filename: str) -> str:
    """Replace anything outside ``[A-Za-z0-9.-]`` with a dash."""
    return _UNSAFE_FILENAME_CHARS.sub("-", filename)


def song_filename(
    title: str,
    *,
    extension: str = "mp3",
    clock: Callable[[], float] = time.time,
) -> str:
    stem = _WHITESPACE.sub("-", title.strip().lower()) or "song"
    timestamp = int(clock() * 1000)
    return sanitize_filename(f"{stem}-{timestamp}.{extension}")


class LocalArtifactStore:
    """Writes audio into the artifact directory and returns a stable URL for it."""

    def __init__(self, root: Path, *, base_url: Optional[str] = None) -> None:
        self._root = root
        self._base_url = base_url.rstrip("/") if base_url else None

    async def store(self, data: bytes, filename: str) -> str:
        path = self._root / "audio" / filename
        await asyncio.to_thread(self._write, path, data)
        logger.info("Stored {} bytes at {}", len(data), path)
        if self._base_url is not None:
            return f"{self._base_url}/audio/{filename}"
        return path.resolve().as_uri()

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
