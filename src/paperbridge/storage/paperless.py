"""Write-only storage backend that forwards uploads to Paperless."""

import logging
import time
from typing import Optional

from paperbridge.core.exceptions import UnsupportedOperation
from paperbridge.models.upload import ByteStream, Principal, UploadRequest
from paperbridge.services.bridge import UploadBridge
from paperbridge.storage.base import Metadata, StorageBackend

logger = logging.getLogger(__name__)


class PaperlessStorage(StorageBackend):
    """Flat, write-only namespace backed by the upload bridge.

    Every path looks like an empty directory so clients can change into any
    folder they are configured with. Uploads are handed to the bridge; there
    is no way to read, list, or modify anything afterwards.
    """

    def __init__(self, bridge: UploadBridge):
        self.bridge = bridge

    async def metadata(self, principal: Optional[Principal], path: str) -> Metadata:
        logger.debug(f"METADATA called for path: {path}")
        return Metadata(size=0, is_dir=True, modified=time.time())

    async def list(self, principal: Optional[Principal], path: str) -> list[tuple[str, Metadata]]:
        logger.debug(f"LIST called for path: {path}")
        return []

    async def get(self, principal: Optional[Principal], path: str, start_pos: int = 0) -> ByteStream:
        raise UnsupportedOperation("get")

    async def put(
        self, principal: Optional[Principal], stream: ByteStream, path: str, start_pos: int = 0
    ) -> int:
        request = UploadRequest(principal=principal, destination=path, stream=stream, resume_offset=start_pos)
        result = await self.bridge.run(request)
        if not result.ok:
            raise result.cause
        return result.bytes_written

    async def delete(self, principal: Optional[Principal], path: str) -> None:
        raise UnsupportedOperation("delete")

    async def mkdir(self, principal: Optional[Principal], path: str) -> None:
        raise UnsupportedOperation("mkdir")

    async def rename(self, principal: Optional[Principal], source: str, destination: str) -> None:
        raise UnsupportedOperation("rename")

    async def rmdir(self, principal: Optional[Principal], path: str) -> None:
        raise UnsupportedOperation("rmdir")

    async def change_directory(self, principal: Optional[Principal], path: str) -> None:
        logger.debug(f"CWD called for path: {path}")
