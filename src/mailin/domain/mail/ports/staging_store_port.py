"""Staging Store Port - Domain interface for in-flight message storage.

Holds the raw bytes of one message per session between DATA and the end of
its pipeline. Artifacts are addressed by the session's random staging id, so
concurrent sessions never touch the same artifact.

Architecture: Hexagonal - Port interface in domain layer
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncIterator


class StagingError(Exception):
    """Staging I/O failure (directory unavailable, write or read failure)."""
    pass


@dataclass
class StagingWriter:
    """Open write handle for one staging artifact.

    Attributes:
        staging_id: Identifier of the artifact being written
        handle: Backend-specific open handle
        bytes_written: Running count of appended bytes
        closed: True once finalized or released
    """
    staging_id: str
    handle: Any
    bytes_written: int = 0
    closed: bool = False


@dataclass(frozen=True)
class StagedArtifact:
    """Read handle for a fully written artifact.

    Attributes:
        staging_id: Identifier of the artifact
        location: Backend-specific location (a path for the local store)
        size_bytes: Total bytes written
    """
    staging_id: str
    location: str
    size_bytes: int


class StagingStorePort(ABC):
    """Port interface for per-session staging of raw message bytes.

    Example Usage:
        writer = await store.begin(staging_id)
        await store.append(writer, chunk)
        artifact = await store.finalize(writer)
        raw = await store.read(artifact)
        await store.dispose(staging_id)
    """

    @abstractmethod
    async def begin(self, staging_id: str) -> StagingWriter:
        """Create a new artifact and open it for writing.

        Raises:
            StagingError: If the backing directory is unavailable and cannot be created
        """
        pass

    @abstractmethod
    async def append(self, writer: StagingWriter, chunk: bytes) -> None:
        """Append raw bytes in arrival order.

        Raises:
            StagingError: If the write fails or the writer is closed
        """
        pass

    @abstractmethod
    async def finalize(self, writer: StagingWriter) -> StagedArtifact:
        """Close writing and expose the artifact for sequential reading."""
        pass

    @abstractmethod
    async def release(self, writer: StagingWriter) -> None:
        """Close a writer without finalizing it. Safe to call on a closed writer."""
        pass

    @abstractmethod
    async def read(self, artifact: StagedArtifact) -> bytes:
        """Read the whole artifact."""
        pass

    @abstractmethod
    def stream(self, artifact: StagedArtifact, chunk_size: int = 8192) -> AsyncIterator[bytes]:
        """Iterate over the artifact in chunks."""
        pass

    @abstractmethod
    async def dispose(self, staging_id: str) -> bool:
        """Remove the artifact.

        Returns:
            bool: True if removed, False if it was already missing or could not be
            deleted (both are logged, never raised)
        """
        pass
