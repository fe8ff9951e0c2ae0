"""Abstract storage backend interface consumed by the FTP layer."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from paperbridge.models.upload import ByteStream, Principal


@dataclass
class Metadata:
    """File or directory attributes reported to FTP clients."""

    size: int
    is_dir: bool
    modified: float

    @property
    def is_file(self) -> bool:
        return not self.is_dir


class StorageBackend(ABC):
    """Storage operations an FTP session can request.

    Backends that do not support an operation raise
    ``UnsupportedOperation`` instead of failing in an unrelated way.

    aioftp answers CWD itself after checking ``metadata(path).is_dir``, so
    ``change_directory`` is only reached by callers outside the FTP session.
    """

    @abstractmethod
    async def metadata(self, principal: Optional[Principal], path: str) -> Metadata:
        """Return attributes of ``path``."""
        pass

    @abstractmethod
    async def list(self, principal: Optional[Principal], path: str) -> list[tuple[str, Metadata]]:
        """Return the entries of directory ``path``."""
        pass

    @abstractmethod
    async def get(self, principal: Optional[Principal], path: str, start_pos: int = 0) -> ByteStream:
        """Open ``path`` for reading from ``start_pos``."""
        pass

    @abstractmethod
    async def put(
        self, principal: Optional[Principal], stream: ByteStream, path: str, start_pos: int = 0
    ) -> int:
        """Store ``stream`` at ``path`` starting at ``start_pos``.

        Returns:
            Number of bytes received from the stream
        """
        pass

    @abstractmethod
    async def delete(self, principal: Optional[Principal], path: str) -> None:
        pass

    @abstractmethod
    async def mkdir(self, principal: Optional[Principal], path: str) -> None:
        pass

    @abstractmethod
    async def rename(self, principal: Optional[Principal], source: str, destination: str) -> None:
        pass

    @abstractmethod
    async def rmdir(self, principal: Optional[Principal], path: str) -> None:
        pass

    @abstractmethod
    async def change_directory(self, principal: Optional[Principal], path: str) -> None:
        pass
