"""aioftp user manager backed by the single-credential authenticator."""

import logging
from pathlib import PurePosixPath
from typing import Optional

import aioftp

from paperbridge.auth.authenticator import Authenticator
from paperbridge.core.exceptions import AuthError
from paperbridge.models.upload import Principal

logger = logging.getLogger(__name__)


class BridgeUser(aioftp.User):
    """FTP session user carrying the principal once logged in."""

    def __init__(self, login: str):
        super().__init__(
            login=login,
            base_path=PurePosixPath("/"),
            home_path=PurePosixPath("/"),
        )
        self.principal: Optional[Principal] = None


class BridgeUserManager(aioftp.AbstractUserManager):
    """Asks every login for a password, then defers to the authenticator.

    Unknown usernames are not rejected at the USER step, so a client learns
    nothing about which half of the credential was wrong.
    """

    def __init__(self, authenticator: Authenticator, *, timeout: Optional[float] = None):
        super().__init__(timeout=timeout)
        self.authenticator = authenticator

    async def get_user(self, login):
        return (
            self.GetUserResponse.PASSWORD_REQUIRED,
            BridgeUser(login),
            "password required",
        )

    async def authenticate(self, user, password):
        try:
            user.principal = self.authenticator.authenticate(user.login, password)
        except AuthError as e:
            logger.debug("Login rejected", extra={"reason": e.kind.value})
            return False
        return True

    async def notify_logout(self, user):
        logger.debug("User logged out", extra={"username": user.login})
