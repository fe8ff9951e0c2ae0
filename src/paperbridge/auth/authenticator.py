"""Single-credential authenticator for FTP logins."""

import hmac
import logging

from paperbridge.core.exceptions import AuthError, AuthErrorKind
from paperbridge.models.upload import Principal

logger = logging.getLogger(__name__)


class Authenticator:
    """Checks logins against the one configured username/password pair."""

    def __init__(self, username: str, password: str):
        self.username = username
        self.password = password

    def authenticate(self, username: str, password: str | None) -> Principal:
        """Verify a login.

        The password is checked before the username, so a login with both
        wrong is reported as BAD_PASSWORD.

        Returns:
            Principal for the authenticated user

        Raises:
            AuthError: BAD_PASSWORD for a wrong or missing password,
                BAD_USER for an unknown username with the right password
        """
        if password is None or not hmac.compare_digest(password.encode(), self.password.encode()):
            logger.warning("Provided password doesn't match", extra={"username": username})
            raise AuthError(AuthErrorKind.BAD_PASSWORD)
        if username != self.username:
            logger.warning("Provided username doesn't match", extra={"username": username})
            raise AuthError(AuthErrorKind.BAD_USER)

        logger.info("Successfully authenticated", extra={"username": username})
        return Principal(username=username)
