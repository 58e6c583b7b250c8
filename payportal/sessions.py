"""Signed, time-bounded session tokens for customers and staff.

The two principal kinds live in separate namespaces: each has its own JWT
audience, lifetime and cookie, so a token minted for one is refused by the
other.
"""
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Optional

import structlog
from jose import ExpiredSignatureError, JWTError, jwt

from payportal.config import Settings
from payportal.errors import Unauthenticated

logger = structlog.get_logger(__name__)

ALGORITHM = "HS256"


class PrincipalKind(str, Enum):
    CUSTOMER = "customer"
    STAFF = "staff"


@dataclass(frozen=True)
class Namespace:
    kind: PrincipalKind
    audience: str
    cookie_name: str
    csrf_cookie_name: str
    ttl: int


@dataclass(frozen=True)
class SessionClaims:
    principal_id: str
    kind: PrincipalKind
    role: str
    session_id: str
    expires_at: datetime


@dataclass(frozen=True)
class Principal:
    kind: PrincipalKind
    id: str
    role: str
    record: Any
    session_id: str


@dataclass(frozen=True)
class IssuedSession:
    token: str
    claims: SessionClaims


def build_namespaces(settings: Settings):
    return {
        PrincipalKind.CUSTOMER: Namespace(
            kind=PrincipalKind.CUSTOMER,
            audience="payportal:customer",
            cookie_name="token",
            csrf_cookie_name="XSRF-TOKEN",
            ttl=settings.customer_session_ttl,
        ),
        PrincipalKind.STAFF: Namespace(
            kind=PrincipalKind.STAFF,
            audience="payportal:staff",
            cookie_name="admin_token",
            csrf_cookie_name="ADMIN-XSRF-TOKEN",
            ttl=settings.staff_session_ttl,
        ),
    }


class SessionAuthenticator:
    def __init__(self, settings: Settings, resolver: Callable[[PrincipalKind, str], Optional[Any]]):
        """
        Args:
            settings: Process configuration holding the signing key and lifetimes
            resolver: Looks a principal record up by kind and id, None if it is gone
        """
        self._secret = settings.jwt_secret
        self._resolver = resolver
        self.namespaces = build_namespaces(settings)

    def issue(self, kind: PrincipalKind, principal_id: str, role: str,
              now: Optional[datetime] = None) -> IssuedSession:
        namespace = self.namespaces[kind]
        issued_at = now or datetime.now(timezone.utc)
        expires_at = issued_at + timedelta(seconds=namespace.ttl)
        session_id = secrets.token_hex(16)

        payload = {
            "sub": principal_id,
            "kind": kind.value,
            "role": role,
            "sid": session_id,
            "aud": namespace.audience,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        token = jwt.encode(payload, self._secret, algorithm=ALGORITHM)
        claims = SessionClaims(principal_id, kind, role, session_id, expires_at)
        return IssuedSession(token=token, claims=claims)

    def decode(self, token: Optional[str], kind: PrincipalKind) -> SessionClaims:
        """Check signature, audience and expiry without touching the store."""
        if not token:
            raise Unauthenticated()

        namespace = self.namespaces[kind]
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                audience=namespace.audience,
            )
        except ExpiredSignatureError:
            logger.info("session_expired", kind=kind.value)
            raise Unauthenticated("Session expired")
        except JWTError as exc:
            logger.info("session_rejected", kind=kind.value, reason=type(exc).__name__)
            raise Unauthenticated("Invalid token")

        if payload.get("kind") != kind.value or not payload.get("sub") or not payload.get("sid"):
            logger.info("session_rejected", kind=kind.value, reason="claims")
            raise Unauthenticated("Invalid token")

        return SessionClaims(
            principal_id=payload["sub"],
            kind=kind,
            role=payload.get("role", ""),
            session_id=payload["sid"],
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )

    def resolve(self, claims: SessionClaims) -> Principal:
        record = self._resolver(claims.kind, claims.principal_id)
        if record is None:
            # same answer as a bad token
            logger.info("session_principal_missing", kind=claims.kind.value)
            raise Unauthenticated("Invalid token")
        return Principal(
            kind=claims.kind,
            id=claims.principal_id,
            role=claims.role,
            record=record,
            session_id=claims.session_id,
        )

    def authenticate(self, token: Optional[str], kind: PrincipalKind) -> Principal:
        return self.resolve(self.decode(token, kind))
