"""aioftp path IO adapter over a ``StorageBackend``.

aioftp drives file access through ``AbstractPathIO``: it opens a file,
optionally seeks to the REST offset, writes blocks as they arrive on the data
connection, then closes. ``StorageBackend.put`` instead consumes a stream and
returns once the upload is settled. ``UploadHandle`` connects the two by
running ``put`` in a background task fed through a bounded queue; ``close``
waits for it, so the FTP reply to STOR reflects the bridge's outcome.
"""

import asyncio
import io
import logging
import stat
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Optional

from aioftp.pathio import AbstractPathIO, universal_exception

from paperbridge.core.exceptions import LocalIOError, UnsupportedOperation
from paperbridge.models.upload import Principal
from paperbridge.storage.base import Metadata, StorageBackend

logger = logging.getLogger(__name__)

QUEUE_SIZE = 16  # data blocks buffered between the FTP connection and the bridge


class QueueStream:
    """Byte stream fed block by block by the FTP data connection."""

    def __init__(self, maxsize: int = QUEUE_SIZE):
        self._queue: asyncio.Queue[Optional[bytes]] = asyncio.Queue(maxsize)
        self._buffer = b""
        self._eof = False

    async def feed(self, chunk: Optional[bytes]) -> None:
        """Queue a block; ``None`` marks the end of the stream."""
        await self._queue.put(chunk)

    async def read(self, n: int) -> bytes:
        if not self._buffer:
            if self._eof:
                return b""
            chunk = await self._queue.get()
            if chunk is None:
                self._eof = True
                return b""
            self._buffer = chunk

        data, self._buffer = self._buffer[:n], self._buffer[n:]
        return data


class UploadHandle:
    """Write side of one STOR transfer."""

    def __init__(self, storage: StorageBackend, principal: Optional[Principal], path: str, queue_size: int = QUEUE_SIZE):
        self.storage = storage
        self.principal = principal
        self.path = path
        self.offset = 0
        self.bytes_written: Optional[int] = None
        self._stream = QueueStream(queue_size)
        self._task: Optional[asyncio.Task] = None

    @property
    def started(self) -> bool:
        return self._task is not None

    def seek(self, offset: int) -> None:
        if self.started:
            raise UnsupportedOperation("seek after transfer start")
        if offset < 0:
            raise ValueError("offset must not be negative")
        self.offset = offset

    async def write(self, data: bytes) -> None:
        await self._feed(bytes(data))

    async def close(self) -> Optional[int]:
        """Finish the stream and wait for the storage backend's verdict.

        Raises the backend's failure. If the transfer itself is being
        cancelled the upload is abandoned instead of submitted.
        """
        current = asyncio.current_task()
        if current is not None and current.cancelling():
            await self.abort()
            return None

        await self._feed(None)
        self.bytes_written = await self._task
        return self.bytes_written

    async def abort(self) -> None:
        if self._task is None or self._task.done():
            return
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)

    async def _feed(self, chunk: Optional[bytes]) -> None:
        if self._task is None:
            self._task = asyncio.create_task(
                self.storage.put(self.principal, self._stream, self.path, self.offset)
            )
        elif self._task.done():
            self._task.result()
            raise LocalIOError("Upload ended before the transfer was complete")

        feed = asyncio.ensure_future(self._stream.feed(chunk))
        try:
            done, _ = await asyncio.wait({feed, self._task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            if not feed.done():
                feed.cancel()

        if feed in done:
            return
        # The backend stopped reading; surface its failure.
        self._task.result()
        raise LocalIOError("Upload ended before the transfer was complete")


@dataclass
class StatResult:
    """Minimal ``os.stat_result`` look-alike for aioftp listings."""

    st_size: int
    st_mtime: float
    st_ctime: float
    st_mode: int
    st_nlink: int = 1

    @classmethod
    def from_metadata(cls, metadata: Metadata) -> "StatResult":
        if metadata.is_dir:
            mode = stat.S_IFDIR | 0o755
        else:
            mode = stat.S_IFREG | 0o644
        return cls(
            st_size=metadata.size,
            st_mtime=metadata.modified,
            st_ctime=metadata.modified,
            st_mode=mode,
        )


class BridgePathIO(AbstractPathIO):
    """Maps aioftp file-system calls onto a ``StorageBackend``.

    Exceptions raised here are converted to ``aioftp.errors.PathIOError`` by
    ``universal_exception``; aioftp answers those with a generic file-system
    error so no details reach the client.
    """

    def __init__(self, *args, storage: StorageBackend, **kwargs):
        super().__init__(*args, **kwargs)
        self.storage = storage

    @property
    def principal(self) -> Optional[Principal]:
        user = getattr(self.connection, "user", None)
        return getattr(user, "principal", None)

    @universal_exception
    async def exists(self, path):
        await self.storage.metadata(self.principal, str(path))
        return True

    @universal_exception
    async def is_dir(self, path):
        metadata = await self.storage.metadata(self.principal, str(path))
        return metadata.is_dir

    @universal_exception
    async def is_file(self, path):
        metadata = await self.storage.metadata(self.principal, str(path))
        return metadata.is_file

    @universal_exception
    async def mkdir(self, path, *, parents=False, exist_ok=False):
        await self.storage.mkdir(self.principal, str(path))

    @universal_exception
    async def rmdir(self, path):
        await self.storage.rmdir(self.principal, str(path))

    @universal_exception
    async def unlink(self, path):
        await self.storage.delete(self.principal, str(path))

    def list(self, path):
        return self._list(path)

    async def _list(self, path):
        for entry, _ in await self.storage.list(self.principal, str(path)):
            yield PurePosixPath(entry)

    @universal_exception
    async def stat(self, path):
        metadata = await self.storage.metadata(self.principal, str(path))
        return StatResult.from_metadata(metadata)

    @universal_exception
    async def _open(self, path, mode="rb", *args, **kwargs):
        if "r" in mode and "+" not in mode:
            return await self.storage.get(self.principal, str(path))
        return UploadHandle(self.storage, self.principal, str(path))

    @universal_exception
    async def seek(self, file, offset, whence=io.SEEK_SET):
        if not isinstance(file, UploadHandle) or whence != io.SEEK_SET:
            raise UnsupportedOperation("seek")
        file.seek(offset)
        return offset

    @universal_exception
    async def write(self, file, data):
        if not isinstance(file, UploadHandle):
            raise UnsupportedOperation("write")
        await file.write(data)

    @universal_exception
    async def read(self, file, block_size):
        if isinstance(file, UploadHandle):
            raise UnsupportedOperation("read")
        return await file.read(block_size)

    @universal_exception
    async def close(self, file):
        if isinstance(file, UploadHandle):
            written = await file.close()
            logger.debug("Transfer closed", extra={"path": file.path, "bytes_written": written})

    @universal_exception
    async def rename(self, source, destination):
        await self.storage.rename(self.principal, str(source), str(destination))
