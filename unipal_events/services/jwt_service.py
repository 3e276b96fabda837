"""
Bearer token handling for the UniPal Events Service.

Tokens are minted by the auth service; this service only needs to check the
signature and turn the claims into an ``Actor`` with a canonical role.
"""

import logging
from typing import Any, Dict, Optional
from jose import ExpiredSignatureError, JWTError, jwt

from ..core.config import config
from ..core.roles import Actor

logger = logging.getLogger(__name__)

REQUIRED_CLAIMS = ("user_id", "email", "role")


class JWTService:
    """Verifies auth-service tokens and resolves the calling actor."""

    def __init__(self):
        self.secret_key: Optional[str] = None
        self.algorithm: Optional[str] = None
        self._initialized = False

    async def initialize(self):
        """Load the shared signing key from secrets."""
        self.configure(await config.get_jwt_secret(), await config.get_jwt_algorithm())

    def configure(self, secret_key: str, algorithm: str = "HS256"):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self._initialized = True

    def create_token(self, claims: Dict[str, Any]) -> str:
        """Sign claims with the shared key. Used by tooling and tests."""
        if not self._initialized:
            raise RuntimeError("JWT service not initialized")
        return jwt.encode(claims, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> Optional[Dict[str, Any]]:
        """
        Decode a token and check it carries the claims an actor needs.

        Returns:
            The claims, or None when the signature, expiry or claim set is wrong
        """
        if not self._initialized:
            logger.error("JWT service not initialized")
            return None

        try:
            claims = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            logger.info("Rejected expired access token")
            return None
        except JWTError as e:
            logger.warning(f"JWT verification failed: {e}")
            return None

        missing = [claim for claim in REQUIRED_CLAIMS if claim not in claims]
        if missing:
            logger.warning(f"Access token missing claims: {', '.join(missing)}")
            return None
        return claims

    def authenticate(self, token: str) -> Optional[Actor]:
        """
        Resolve the caller behind a bearer token.

        Legacy role names map onto the canonical roles; tokens whose role or
        user id cannot be interpreted are treated as invalid.
        """
        claims = self.verify_token(token)
        if claims is None:
            return None

        try:
            return Actor.from_token_payload(claims)
        except (TypeError, ValueError) as e:
            logger.warning(f"Access token for user {claims.get('user_id')!r} rejected: {e}")
            return None
