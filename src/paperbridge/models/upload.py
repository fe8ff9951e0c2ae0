"""Upload data models."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Protocol

from pydantic import BaseModel, ConfigDict

from paperbridge.core.exceptions import BridgeError


class ByteStream(Protocol):
    """Readable async byte stream, as provided by ``asyncio.StreamReader``."""

    async def read(self, n: int) -> bytes:
        ...


@dataclass(frozen=True)
class Principal:
    """Identity granted by a successful login."""

    username: str


class JobState(str, Enum):
    """Paperless task states."""

    PENDING = "PENDING"
    STARTED = "STARTED"  # running
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    REVOKED = "REVOKED"  # cancelled

    @classmethod
    def parse(cls, value: Any) -> "JobState":
        """Map a reported status onto a state, defaulting to PENDING."""
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        return cls.PENDING


class TaskStatus(BaseModel):
    """One entry of the ``/api/tasks/`` lookup response."""

    model_config = ConfigDict(extra="ignore")

    status: Optional[Any] = None

    @property
    def state(self) -> JobState:
        return JobState.parse(self.status)


class UploadState(str, Enum):
    """States of a single upload passing through the bridge."""

    STAGING = "staging"
    SUBMITTED = "submitted"
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    REMOTE_FAILED = "remote_failed"
    TIMED_OUT = "timed_out"
    LOCAL_FAILED = "local_failed"

    @property
    def is_terminal(self) -> bool:
        return self in (
            UploadState.SUCCEEDED,
            UploadState.REMOTE_FAILED,
            UploadState.TIMED_OUT,
            UploadState.LOCAL_FAILED,
        )


@dataclass
class UploadRequest:
    """A file handed over by the FTP engine."""

    principal: Optional[Principal]
    destination: str
    stream: ByteStream
    resume_offset: int = 0


@dataclass
class StagedFile:
    """Local copy of an upload, owned by the bridge until released."""

    path: Path
    bytes_written: int
    resume_offset: int = 0

    @property
    def size(self) -> int:
        return self.resume_offset + self.bytes_written


@dataclass
class UploadResult:
    """Terminal outcome of an upload."""

    state: UploadState
    bytes_written: int = 0
    task_id: Optional[str] = None
    cause: Optional[BridgeError] = None

    @property
    def ok(self) -> bool:
        return self.state is UploadState.SUCCEEDED
