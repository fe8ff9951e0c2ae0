"""FTP server construction."""

import functools

import aioftp

from paperbridge.auth.authenticator import Authenticator
from paperbridge.core.config import Settings
from paperbridge.ftp.pathio import BridgePathIO
from paperbridge.ftp.users import BridgeUserManager
from paperbridge.storage.base import StorageBackend


def build_server(settings: Settings, storage: StorageBackend, authenticator: Authenticator) -> aioftp.Server:
    """Create an aioftp server serving ``storage`` to authenticated users.

    Passive data connections are restricted to the configured port range.
    """
    return aioftp.Server(
        users=BridgeUserManager(authenticator),
        path_io_factory=functools.partial(BridgePathIO, storage=storage),
        data_ports=settings.passive_ports,
    )
