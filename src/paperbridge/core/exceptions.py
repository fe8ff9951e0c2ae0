"""Exceptions raised by the bridge.

Every per-upload failure is a ``BridgeError``. The FTP layer only ever
reports a generic failure to the peer; the concrete class and message are
for server-side logs.
"""

import enum


class BridgeError(Exception):
    """Base exception for paperbridge."""
    pass


class LocalIOError(BridgeError):
    """Staging the upload on local storage failed."""
    pass


class RemoteUnavailable(BridgeError):
    """The Paperless API could not be reached or answered with an error status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RemoteJobFailed(BridgeError):
    """The remote ingestion task finished in a failed or revoked state."""

    def __init__(self, task_id: str, state: str):
        super().__init__(f"Ingestion task {task_id} ended with state {state}")
        self.task_id = task_id
        self.state = state


class UploadTimeout(BridgeError):
    """No terminal task state was observed before the polling deadline."""

    def __init__(self, task_id: str, elapsed: float):
        super().__init__(f"Ingestion task {task_id} not finished after {elapsed:.1f}s")
        self.task_id = task_id
        self.elapsed = elapsed


class UnsupportedOperation(BridgeError):
    """The storage backend does not implement the requested operation."""

    def __init__(self, operation: str):
        super().__init__(f"Operation not supported: {operation}")
        self.operation = operation


class AuthErrorKind(str, enum.Enum):
    """Reason an authentication attempt was rejected."""

    BAD_USER = "bad_user"
    BAD_PASSWORD = "bad_password"


class AuthError(BridgeError):
    """Presented credentials do not match the configured ones."""

    def __init__(self, kind: AuthErrorKind):
        super().__init__(f"Authentication failed: {kind.value}")
        self.kind = kind
