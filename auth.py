"""Google sign-in and session tokens.

A verified Google ID token is exchanged for our own HS256 session token.
Protected routes depend on ``require_session`` (or ``optional_session``),
which read ``Authorization: Bearer <token>``.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

import jwt
from bson.errors import InvalidId
from bson.objectid import ObjectId
from fastapi import Header, Request
from google.auth import exceptions as google_exceptions
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token as google_id_token
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

import database
from errors import AuthError, PersistenceError, UpstreamError, UserNotFound
from schemas import User

logger = logging.getLogger("checkout.auth")

JWT_ALGORITHM = "HS256"


@dataclass
class SessionIdentity:
    user_id: str
    email: str


class GoogleIdentityVerifier:
    def __init__(self, client_id: str):
        self.client_id = client_id
        self._request = google_requests.Request()

    def verify(self, token: str) -> dict:
        """Return the verified claims of a Google ID token."""
        if not token:
            raise AuthError("Invalid token")
        try:
            claims = google_id_token.verify_oauth2_token(token, self._request, self.client_id)
        except google_exceptions.TransportError as e:
            logger.error("identity provider unreachable", extra={"error": str(e)})
            raise UpstreamError("Identity provider unavailable") from e
        except (ValueError, google_exceptions.GoogleAuthError) as e:
            logger.warning("google token rejected", extra={"error": str(e)})
            raise AuthError("Invalid token") from e
        if not claims.get("sub") or not claims.get("email"):
            raise AuthError("Invalid token")
        return claims


class SessionTokens:
    def __init__(self, secret: str, ttl: timedelta = timedelta(days=7)):
        self._secret = secret
        self.ttl = ttl

    def issue(self, user_id: str, email: str) -> str:
        now = database.utcnow()
        payload = {"user_id": user_id, "email": email, "iat": now, "exp": now + self.ttl}
        return jwt.encode(payload, self._secret, algorithm=JWT_ALGORITHM)

    def decode(self, token: str) -> SessionIdentity:
        try:
            payload = jwt.decode(token, self._secret, algorithms=[JWT_ALGORITHM])
        except jwt.InvalidTokenError as e:
            raise AuthError("Invalid or expired token", status_code=403) from e
        if not payload.get("user_id"):
            raise AuthError("Invalid or expired token", status_code=403)
        return SessionIdentity(user_id=payload["user_id"], email=payload.get("email", ""))


def public_profile(user: dict) -> dict:
    return {
        "id": str(user["_id"]),
        "name": user.get("name"),
        "email": user.get("email"),
        "picture": user.get("picture"),
    }


class AuthService:
    def __init__(self, db: Database, identity: GoogleIdentityVerifier, sessions: SessionTokens):
        self._db = db
        self._identity = identity
        self.sessions = sessions

    @property
    def users(self):
        return self._db[database.USER]

    def login(self, token: str) -> dict:
        claims = self._identity.verify(token)
        now = database.utcnow()
        try:
            user = self.users.find_one({"google_id": claims["sub"]})
            if user is None:
                profile = User(
                    google_id=claims["sub"],
                    email=claims["email"],
                    name=claims.get("name"),
                    picture=claims.get("picture"),
                    last_login=now,
                )
                user_id = database.create_document(self._db, database.USER, profile.model_dump())
                user = self.users.find_one({"_id": ObjectId(user_id)})
                logger.info("user created", extra={"user_id": user_id})
            else:
                self.users.update_one({"_id": user["_id"]}, {"$set": {"last_login": now, "updated_at": now}})
                user["last_login"] = now
        except DuplicateKeyError as e:
            logger.warning("email already linked to another account", extra={"email": claims["email"]})
            raise PersistenceError("Email already linked to another account", status_code=409) from e
        except PyMongoError as e:
            logger.exception("user upsert failed")
            raise PersistenceError("Error saving user") from e

        logger.info("user login", extra={"user_id": str(user["_id"])})
        return {
            "success": True,
            "token": self.sessions.issue(str(user["_id"]), user["email"]),
            "user": public_profile(user),
        }

    def get_profile(self, user_id: str) -> dict:
        try:
            user = self.users.find_one({"_id": ObjectId(user_id)})
        except InvalidId:
            user = None
        except PyMongoError as e:
            logger.exception("user lookup failed", extra={"user_id": user_id})
            raise PersistenceError("Error checking authentication") from e
        if user is None:
            raise UserNotFound()
        return public_profile(user)


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def optional_session(request: Request, authorization: Optional[str] = Header(None)) -> Optional[SessionIdentity]:
    """Decode the bearer token when one is sent; a bad token is still rejected."""
    if authorization is None:
        return None
    token = _bearer_token(authorization)
    if token is None:
        raise AuthError("Access token required")
    return request.app.state.auth_service.sessions.decode(token)


def require_session(request: Request, authorization: Optional[str] = Header(None)) -> SessionIdentity:
    token = _bearer_token(authorization)
    if token is None:
        raise AuthError("Access token required")
    return request.app.state.auth_service.sessions.decode(token)
