"""HTTP client for the Paperless document-ingestion API."""

import logging
from pathlib import Path

import httpx
from pydantic import ValidationError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential
from tenacity.wait import wait_base

from paperbridge.core.exceptions import LocalIOError, RemoteUnavailable
from paperbridge.models.upload import JobState, TaskStatus

logger = logging.getLogger(__name__)


class PaperlessClient:
    """Stateless binding to the Paperless REST API.

    One instance is shared by all uploads; it owns the HTTP connection pool.
    None of the calls sleep or retry, timing policy belongs to the caller.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            base_url: Root URL of the Paperless instance
            token: Paperless API token
            timeout: Per-request timeout in seconds
            transport: Optional transport override, used by tests
        """
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            headers={"Authorization": f"Token {token}"},
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "PaperlessClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def health_check(self) -> None:
        """Validate URL and API token by hitting ``/api/ui_settings/``.

        Raises:
            RemoteUnavailable: If the request fails or is rejected
        """
        await self._request("GET", "/api/ui_settings/")

    async def submit(self, path: str | Path) -> str:
        """Upload a document for consumption.

        Paperless answers immediately with the id of the consumption task,
        the document itself is processed asynchronously.

        Args:
            path: Local file to upload; its name becomes the document title

        Returns:
            Task id to poll

        Raises:
            LocalIOError: If the staged file cannot be read
            RemoteUnavailable: If the upload request fails
        """
        path = Path(path)
        logger.info(f"Uploading {path.name}", extra={"path": str(path)})

        try:
            with open(path, "rb") as document:
                response = await self._request(
                    "POST",
                    "/api/documents/post_document/",
                    files={"document": (path.name, document)},
                )
        except OSError as e:
            raise LocalIOError(f"Failed to read staged file {path}: {e}") from e

        task_id = response.text.strip().strip('"')
        if not task_id:
            raise RemoteUnavailable("Paperless returned an empty task id", status_code=response.status_code)

        logger.debug("Upload accepted", extra={"task_id": task_id})
        return task_id

    async def poll_status(self, task_id: str) -> JobState:
        """Look up the current state of a consumption task.

        An empty result or a missing status field means the task is not
        known yet and is reported as PENDING.

        Raises:
            RemoteUnavailable: If the lookup fails or the payload is malformed
        """
        response = await self._request("GET", "/api/tasks/", params={"task_id": task_id})

        try:
            payload = response.json()
        except ValueError as e:
            raise RemoteUnavailable(f"Undecodable task status response: {e}") from e

        if not isinstance(payload, list):
            raise RemoteUnavailable(f"Unexpected task status payload: {type(payload).__name__}")
        if not payload:
            return JobState.PENDING

        try:
            status = TaskStatus.model_validate(payload[0])
        except ValidationError as e:
            raise RemoteUnavailable(f"Malformed task status entry: {e}") from e
        return status.state

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        url = f"{self.base_url}{path}"
        try:
            response = await self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            logger.debug(
                "Paperless API returned an error status",
                extra={"url": url, "status_code": status_code},
            )
            raise RemoteUnavailable(
                f"{method} {path} returned HTTP {status_code}", status_code=status_code
            ) from e
        except httpx.HTTPError as e:
            logger.debug(
                "Paperless API request failed",
                extra={"url": url, "error": str(e), "error_type": type(e).__name__},
            )
            raise RemoteUnavailable(f"{method} {path} failed: {e}") from e
        return response


async def verify_connection(
    client: PaperlessClient,
    attempts: int = 3,
    wait: wait_base = wait_exponential(multiplier=1, min=1, max=10),
) -> None:
    """Run the health check, retrying with exponential back-off.

    Raises:
        RemoteUnavailable: If every attempt failed
    """
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(attempts),
        wait=wait,
        retry=retry_if_exception_type(RemoteUnavailable),
        reraise=True,
    ):
        with attempt:
            if attempt.retry_state.attempt_number > 1:
                logger.warning(
                    "Retrying Paperless health check",
                    extra={"attempt": attempt.retry_state.attempt_number, "max_attempts": attempts},
                )
            await client.health_check()
