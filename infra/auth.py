"""
API Authentication
------------------
Bearer-token authentication with a CSRF header check on
state-changing requests.

Default deny: an empty token table rejects everyone.
"""

from dataclasses import dataclass
from typing import Dict, Optional
import hmac
import logging


STATE_CHANGING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
CSRF_HEADER = "X-CSRF-Token"


@dataclass(frozen=True)
class Principal:
    """An authenticated caller."""
    user: str


class AuthError(Exception):
    """Authentication or CSRF failure, with the HTTP status to return."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


class TokenAuthenticator:
    """
    Maps bearer tokens to users.
    Tokens are compared in constant time.
    """

    def __init__(self, tokens: Dict[str, str]):
        self._tokens = dict(tokens)
        self._logger = logging.getLogger("controller.infra.auth")
        if not self._tokens:
            self._logger.warning("No API tokens configured; all requests will be rejected")

    def identify(self, authorization: Optional[str]) -> Optional[Principal]:
        """Resolve an Authorization header to a principal."""
        if not authorization:
            return None

        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token:
            return None

        token = token.strip()
        for known, user in self._tokens.items():
            if hmac.compare_digest(known.encode(), token.encode()):
                return Principal(user=user)
        return None

    def authenticate(
        self,
        method: str,
        authorization: Optional[str],
        csrf_token: Optional[str]
    ) -> Principal:
        """
        Authenticate a request.
        Raises AuthError (401 unauthenticated, 403 missing CSRF token).
        """
        if method.upper() in STATE_CHANGING_METHODS and not csrf_token:
            raise AuthError("CSRF token missing", 403)

        principal = self.identify(authorization)
        if principal is None:
            raise AuthError("Unauthorized: Please log in", 401)

        return principal
