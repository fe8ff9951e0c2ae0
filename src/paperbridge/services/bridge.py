"""Upload bridge: stage, submit, poll, and map the outcome of one upload.

The FTP client expects a synchronous answer to each transfer while Paperless
only acknowledges a consumption task. The bridge turns one into the other:

    STAGING -> SUBMITTED -> POLLING -> SUCCEEDED
                                    -> REMOTE_FAILED  (task FAILURE/REVOKED)
                                    -> TIMED_OUT      (still pending at deadline)
                                    -> LOCAL_FAILED   (staging/submit error, or
                                                       lookups failing past the
                                                       deadline)

Only SUCCEEDED is reported to the FTP engine as a successful transfer. The
polling deadline starts when POLLING is entered, so staging and submission
time do not count against it. Clock and sleep are injectable.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from paperbridge.clients.paperless import PaperlessClient
from paperbridge.core.exceptions import (
    BridgeError,
    RemoteJobFailed,
    RemoteUnavailable,
    UploadTimeout,
)
from paperbridge.core.logging import upload_context
from paperbridge.models.upload import (
    JobState,
    StagedFile,
    UploadRequest,
    UploadResult,
    UploadState,
)
from paperbridge.storage.staging import StagingStore

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 1.0  # seconds between task lookups
DEFAULT_POLL_TIMEOUT = 10.0  # seconds from first poll until giving up

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


class UploadBridge:
    """Runs the upload state machine for single uploads."""

    def __init__(
        self,
        staging: StagingStore,
        client: PaperlessClient,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        poll_timeout: float = DEFAULT_POLL_TIMEOUT,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ):
        self.staging = staging
        self.client = client
        self.poll_interval = poll_interval
        self.poll_timeout = poll_timeout
        self._clock = clock
        self._sleep = sleep

    async def run(self, request: UploadRequest) -> UploadResult:
        """Process one upload to a terminal state.

        Per-upload failures are returned as a failed ``UploadResult`` with
        the cause attached, never raised. Cancellation propagates. The staged
        file is released on every path.
        """
        token = upload_context.set(request.destination)
        staged: Optional[StagedFile] = None
        try:
            logger.info(
                "Received upload request",
                extra={"destination": request.destination, "resume_offset": request.resume_offset},
            )

            # STAGING
            try:
                staged = await self.staging.stage(request.destination, request.stream, request.resume_offset)
            except BridgeError as e:
                return self._finish(UploadState.LOCAL_FAILED, cause=e)

            # SUBMITTED
            try:
                task_id = await self.client.submit(staged.path)
            except BridgeError as e:
                return self._finish(UploadState.LOCAL_FAILED, staged.bytes_written, cause=e)

            # POLLING
            state, cause = await self._poll(task_id)
            return self._finish(state, staged.bytes_written, task_id, cause)
        finally:
            if staged is not None:
                self.staging.release(staged)
            upload_context.reset(token)

    async def _poll(self, task_id: str) -> tuple[UploadState, Optional[BridgeError]]:
        started = self._clock()
        while True:
            await self._sleep(self.poll_interval)

            try:
                job_state = await self.client.poll_status(task_id)
            except RemoteUnavailable as e:
                elapsed = self._clock() - started
                if elapsed > self.poll_timeout:
                    timeout = UploadTimeout(task_id, elapsed)
                    timeout.__cause__ = e
                    return UploadState.LOCAL_FAILED, timeout
                logger.warning(f"Failed to get task status: {e}", extra={"task_id": task_id})
                continue

            logger.debug(f"Task status: {job_state.value}", extra={"task_id": task_id})

            if job_state is JobState.SUCCESS:
                return UploadState.SUCCEEDED, None
            if job_state in (JobState.FAILURE, JobState.REVOKED):
                return UploadState.REMOTE_FAILED, RemoteJobFailed(task_id, job_state.value)

            elapsed = self._clock() - started
            if elapsed > self.poll_timeout:
                return UploadState.TIMED_OUT, UploadTimeout(task_id, elapsed)

    def _finish(
        self,
        state: UploadState,
        bytes_written: int = 0,
        task_id: Optional[str] = None,
        cause: Optional[BridgeError] = None,
    ) -> UploadResult:
        result = UploadResult(state=state, bytes_written=bytes_written, task_id=task_id, cause=cause)
        extra = {"state": state.value, "task_id": task_id, "bytes_written": bytes_written}
        if result.ok:
            logger.info("File uploaded successfully", extra=extra)
        else:
            extra["error_type"] = type(cause).__name__
            logger.error(f"Upload failed: {cause}", extra=extra)
        return result
