"""Local staging of inbound uploads."""

import logging
import re
import shutil
import tempfile
import uuid
from pathlib import Path, PurePosixPath

from paperbridge.core.exceptions import LocalIOError
from paperbridge.models.upload import ByteStream, StagedFile

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_SIZE = 65536  # 64KB chunks


class StagingStore:
    """Buffers upload streams into temporary files before submission.

    Each upload gets its own private directory so the staged file can keep
    the client's file name, which Paperless uses as the document title.
    """

    def __init__(self, directory: str | Path | None = None, buffer_size: int = DEFAULT_BUFFER_SIZE):
        if buffer_size < 1:
            raise ValueError("buffer_size must be positive")
        self.directory = Path(directory) if directory else None
        self.buffer_size = buffer_size

    async def stage(self, name_hint: str | None, stream: ByteStream, resume_offset: int = 0) -> StagedFile:
        """Copy ``stream`` into a new temporary file.

        Args:
            name_hint: Destination path given by the client, only its base
                name is kept
            stream: Source of the upload bytes
            resume_offset: Byte position to start writing at

        Returns:
            The staged file; the caller must ``release`` it

        Raises:
            LocalIOError: If the file cannot be created or written
        """
        if resume_offset < 0:
            raise ValueError("resume_offset must not be negative")

        try:
            if self.directory is not None:
                self.directory.mkdir(parents=True, exist_ok=True)
            workdir = Path(tempfile.mkdtemp(prefix="paperbridge-", dir=self.directory))
        except OSError as e:
            logger.error("Failed to allocate staging directory", extra={"error": str(e)})
            raise LocalIOError(f"Failed to allocate staging file: {e}") from e

        path = workdir / self.staged_name(name_hint)
        logger.debug(f"Saving upload to {path}", extra={"resume_offset": resume_offset})

        written = 0
        try:
            with open(path, "wb") as f:
                f.truncate(resume_offset)
                f.seek(resume_offset)
                while chunk := await stream.read(self.buffer_size):
                    f.write(chunk)
                    written += len(chunk)
        except OSError as e:
            self._discard(workdir)
            logger.error(
                "Failed to stage upload",
                extra={"path": str(path), "bytes_written": written, "error": str(e)},
            )
            raise LocalIOError(f"Failed to stage upload: {e}") from e
        except BaseException:
            self._discard(workdir)
            raise

        return StagedFile(path=path, bytes_written=written, resume_offset=resume_offset)

    def release(self, staged: StagedFile) -> None:
        """Remove a staged file and its private directory."""
        self._discard(staged.path.parent)

    @staticmethod
    def staged_name(name_hint: str | None) -> str:
        """Derive a safe local file name from the client's destination path."""
        base = PurePosixPath((name_hint or "").replace("\\", "/")).name
        safe = re.sub(r"[^a-zA-Z0-9._-]", "_", base)[:255]
        if not safe.strip("."):
            return f"upload-{uuid.uuid4().hex}"
        return safe

    @staticmethod
    def _discard(workdir: Path) -> None:
        try:
            shutil.rmtree(workdir)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(
                "Failed to remove staging directory",
                extra={"path": str(workdir), "error": str(e)},
            )
