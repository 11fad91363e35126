"""
Identity Context boundary.

Credential issuance lives outside this service. The core only needs a way to turn
a bearer token into a verified Identity, invoked once per request.
"""

from abc import ABC, abstractmethod
from typing import Dict, Mapping, Optional, Tuple

from capture.errors import AuthError
from capture.models import Identity


def bearer_token(headers: Mapping[str, str]) -> Optional[str]:
    """Extracts the token from an 'Authorization: Bearer <token>' header."""
    auth_header = headers.get("Authorization", "") or ""
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


class IdentityVerifier(ABC):
    @abstractmethod
    def verify_identity(self, token: Optional[str]) -> Identity:
        """Return the Identity behind token, or raise AuthError."""
        pass


class TokenTableVerifier(IdentityVerifier):
    """
    Verifies tokens against a static table {token: (identity_id, username)},
    typically loaded from CAPTURE_API_TOKENS.
    """

    def __init__(self, table: Dict[str, Tuple[str, Optional[str]]]):
        self._table = dict(table)

    def verify_identity(self, token: Optional[str]) -> Identity:
        if not token:
            raise AuthError(missing=True)
        entry = self._table.get(token)
        if entry is None:
            raise AuthError()
        identity_id, username = entry
        return Identity(identity_id=identity_id, username=username)
