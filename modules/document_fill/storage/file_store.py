"""
Filesystem abstraction for document fill.

Byte-level reads and writes run in a worker thread so engine coroutines
only suspend at I/O.
"""

import asyncio
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Union

from modules.document_fill.core.exceptions import SourceNotFoundException, WriteFailureException

PathLike = Union[str, Path]


class IFileStore(ABC):
    """
    Abstract interface for document file access.

    Allows swapping the filesystem for object storage or an in-memory store.
    """

    @abstractmethod
    async def read_bytes(self, path: PathLike) -> bytes:
        """
        Read a whole file.

        Raises:
            SourceNotFoundException: If the file does not exist
        """
        pass

    @abstractmethod
    async def write_bytes(self, path: PathLike, data: bytes) -> str:
        """
        Write a whole file, creating parent directories.

        Returns:
            The path written

        Raises:
            WriteFailureException: If the file cannot be written
        """
        pass

    @abstractmethod
    async def exists(self, path: PathLike) -> bool:
        """Check if a file exists."""
        pass


class LocalFileStore(IFileStore):
    """Local disk implementation."""

    def __init__(self, base_dir: Union[str, Path, None] = None):
        self.base_dir = Path(base_dir) if base_dir else None

    def _resolve(self, path: PathLike) -> Path:
        path = Path(path)
        if self.base_dir and not path.is_absolute():
            return self.base_dir / path
        return path

    async def read_bytes(self, path: PathLike) -> bytes:
        target = self._resolve(path)
        if not await asyncio.to_thread(target.is_file):
            raise SourceNotFoundException(f"File not found: {target}")
        try:
            return await asyncio.to_thread(target.read_bytes)
        except OSError as e:
            raise SourceNotFoundException(f"Cannot read {target}: {e}")

    async def write_bytes(self, path: PathLike, data: bytes) -> str:
        target = self._resolve(path)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            raise WriteFailureException(f"Cannot write {target}: {e}")
        return str(target)

    async def exists(self, path: PathLike) -> bool:
        return await asyncio.to_thread(self._resolve(path).exists)


class InMemoryFileStore(IFileStore):
    """
    Dict-backed file store.

    Useful for tests and for callers that stream documents themselves.
    """

    def __init__(self, files: Dict[str, bytes] = None):
        self._files: Dict[str, bytes] = dict(files or {})

    async def read_bytes(self, path: PathLike) -> bytes:
        key = str(path)
        if key not in self._files:
            raise SourceNotFoundException(f"File not found: {key}")
        return self._files[key]

    async def write_bytes(self, path: PathLike, data: bytes) -> str:
        self._files[str(path)] = bytes(data)
        return str(path)

    async def exists(self, path: PathLike) -> bool:
        return str(path) in self._files
