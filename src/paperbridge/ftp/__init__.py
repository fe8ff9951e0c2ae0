"""
FTP front end.

Adapts the aioftp server to the bridge: logins go through the
single-credential authenticator and every file operation is routed to a
StorageBackend.
"""

from paperbridge.ftp.pathio import BridgePathIO
from paperbridge.ftp.server import build_server
from paperbridge.ftp.users import BridgeUserManager

__all__ = [
    "BridgePathIO",
    "BridgeUserManager",
    "build_server",
]
