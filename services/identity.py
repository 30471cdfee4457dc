"""
Identity providers: turn a bearer credential into the caller's user id.

verify() never raises for a bad credential; it returns None and leaves the
decision (anonymous vs. 401) to the caller.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import jwt

from utils.config import Settings

logger = logging.getLogger("backend.identity")


@dataclass(frozen=True)
class Identity:
    uid: str


def extract_credential(authorization: Optional[str]) -> Optional[str]:
    """Token from an Authorization header; the "Bearer " prefix is optional."""
    if not authorization:
        return None
    value = authorization.strip()
    if value.lower().startswith("bearer "):
        value = value.split(" ", 1)[1].strip()
    return value or None


class IdentityProvider:
    def verify(self, credential: Optional[str]) -> Optional[Identity]:
        raise NotImplementedError


class JWTIdentityProvider(IdentityProvider):
    """HS256 (by default) tokens signed with JWT_SECRET; user id from userId, uid or sub."""

    USER_CLAIMS = ("userId", "uid", "sub")

    def __init__(self, secret: str, algorithm: str = "HS256"):
        if not secret:
            raise ValueError("JWT_SECRET is required for the jwt auth provider")
        self.secret = secret
        self.algorithm = algorithm

    def verify(self, credential: Optional[str]) -> Optional[Identity]:
        if not credential:
            return None
        try:
            payload = jwt.decode(credential, self.secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            logger.info("Rejected expired token")
            return None
        except jwt.InvalidTokenError as e:
            logger.info(f"Rejected invalid token: {type(e).__name__}")
            return None
        for claim in self.USER_CLAIMS:
            uid = payload.get(claim)
            if uid:
                return Identity(uid=str(uid))
        logger.warning("Token decoded but no user id claim found")
        return None


class FirebaseIdentityProvider(IdentityProvider):
    """Firebase ID tokens verified with the Admin SDK (initialized on first use)."""

    def __init__(self):
        self._auth = None

    def _admin_auth(self):
        if self._auth is None:
            import firebase_admin
            from firebase_admin import auth

            try:
                firebase_admin.get_app()
            except ValueError:
                logger.info("Firebase Admin not initialized yet, initializing with application default credentials")
                firebase_admin.initialize_app()
            self._auth = auth
        return self._auth

    def verify(self, credential: Optional[str]) -> Optional[Identity]:
        if not credential:
            return None
        try:
            decoded = self._admin_auth().verify_id_token(credential)
        except Exception as e:
            logger.info(f"Firebase token verification failed: {type(e).__name__}")
            return None
        uid = decoded.get("uid")
        if not uid:
            logger.error("Token decoded but no uid found")
            return None
        return Identity(uid=uid)


def build_identity_provider(settings: Settings) -> IdentityProvider:
    if settings.auth_provider == "jwt":
        return JWTIdentityProvider(settings.jwt_secret, settings.jwt_algorithm)
    if settings.auth_provider == "firebase":
        return FirebaseIdentityProvider()
    raise ValueError(f"Unknown AUTH_PROVIDER: {settings.auth_provider}")
