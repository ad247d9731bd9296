"""Local Staging Store - Implementation of StagingStorePort on the filesystem.

One file per in-flight message, named after the session's staging id, inside
the configured staging directory. All file I/O goes through aiofiles so that
sessions interleaved on the event loop never block each other.

Architecture: Hexagonal - Adapter implementation in infrastructure layer
"""

import logging
import os
from pathlib import Path
from typing import AsyncIterator, Union

import aiofiles
import aiofiles.os

from ...domain.mail.ports.staging_store_port import (
    StagedArtifact,
    StagingError,
    StagingStorePort,
    StagingWriter,
)
from ...domain.mail.session import STAGING_ID_PATTERN

logger = logging.getLogger(__name__)


class LocalStagingStore(StagingStorePort):
    """Filesystem-backed staging store.

    Example:
        store = LocalStagingStore(".tmp")
        store.ensure_directory()

        writer = await store.begin(staging_id)
        await store.append(writer, b"Subject: hi\\r\\n\\r\\nbody\\r\\n")
        artifact = await store.finalize(writer)
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def ensure_directory(self) -> None:
        """Create the staging directory if absent (called once at startup).

        Raises:
            StagingError: If the directory cannot be created
        """
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StagingError(f"Cannot create staging directory {self.directory}: {e}") from e

    def path_for(self, staging_id: str) -> Path:
        """Return the artifact path for a staging id.

        Raises:
            StagingError: If the id is not a 160-bit hex identifier
        """
        if not STAGING_ID_PATTERN.match(staging_id):
            raise StagingError(f"Invalid staging id: {staging_id!r}")
        return self.directory / staging_id

    async def begin(self, staging_id: str) -> StagingWriter:
        path = self.path_for(staging_id)
        try:
            await aiofiles.os.makedirs(self.directory, exist_ok=True)
            handle = await aiofiles.open(path, "wb")
        except OSError as e:
            logger.error(f"Cannot open staging artifact: path={path}, error={e}")
            raise StagingError(f"Cannot open staging artifact {path}: {e}") from e

        logger.debug(f"Opened staging artifact: path={path}")
        return StagingWriter(staging_id=staging_id, handle=handle)

    async def append(self, writer: StagingWriter, chunk: bytes) -> None:
        if writer.closed:
            raise StagingError(f"Staging artifact {writer.staging_id} is closed for writing")
        try:
            await writer.handle.write(chunk)
        except OSError as e:
            logger.error(f"Staging write failed: staging_id={writer.staging_id}, error={e}")
            raise StagingError(f"Failed to write staging artifact: {e}") from e
        writer.bytes_written += len(chunk)

    async def finalize(self, writer: StagingWriter) -> StagedArtifact:
        if writer.closed:
            raise StagingError(f"Staging artifact {writer.staging_id} is already closed")
        try:
            await writer.handle.close()
        except OSError as e:
            raise StagingError(f"Failed to close staging artifact: {e}") from e
        finally:
            writer.closed = True

        path = self.path_for(writer.staging_id)
        logger.debug(f"Staged {writer.bytes_written} bytes: path={path}")
        return StagedArtifact(
            staging_id=writer.staging_id,
            location=str(path),
            size_bytes=writer.bytes_written,
        )

    async def release(self, writer: StagingWriter) -> None:
        if writer.closed:
            return
        writer.closed = True
        try:
            await writer.handle.close()
        except OSError as e:
            logger.warning(f"Failed to close staging writer {writer.staging_id}: {e}")

    async def read(self, artifact: StagedArtifact) -> bytes:
        try:
            async with aiofiles.open(artifact.location, "rb") as f:
                return await f.read()
        except OSError as e:
            logger.error(f"Staging read failed: path={artifact.location}, error={e}")
            raise StagingError(f"Failed to read staging artifact: {e}") from e

    async def stream(self, artifact: StagedArtifact, chunk_size: int = 8192) -> AsyncIterator[bytes]:
        try:
            async with aiofiles.open(artifact.location, "rb") as f:
                while True:
                    chunk = await f.read(chunk_size)
                    if not chunk:
                        break
                    yield chunk
        except OSError as e:
            logger.error(f"Staging read failed: path={artifact.location}, error={e}")
            raise StagingError(f"Failed to read staging artifact: {e}") from e

    async def dispose(self, staging_id: str) -> bool:
        try:
            path = self.path_for(staging_id)
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            logger.warning(f"Staging artifact already gone: staging_id={staging_id}")
            return False
        except (OSError, StagingError) as e:
            logger.error(f"Failed to remove staging artifact: staging_id={staging_id}, error={e}")
            return False

        logger.debug(f"Removed staging artifact: path={path}")
        return True

    def list_artifacts(self) -> list:
        """Staging ids currently present on disk (diagnostics and tests)."""
        if not self.directory.is_dir():
            return []
        return sorted(
            name for name in os.listdir(self.directory)
            if STAGING_ID_PATTERN.match(name)
        )
