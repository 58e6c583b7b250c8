"""Double-submit anti-forgery tokens bound to a session.

The token for a session is an HMAC of its random session id, so it changes
whenever a new session is established and a token taken from an earlier
session no longer matches.
"""
import base64
import hashlib
import hmac
from typing import Optional

import structlog

from payportal.config import Settings
from payportal.errors import ForgeryRejected

logger = structlog.get_logger(__name__)

HEADER_NAME = "X-CSRF-Token"


def _same(a: str, b: str) -> bool:
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


class AntiForgeryGate:
    def __init__(self, settings: Settings):
        self._key = settings.csrf_secret.encode("utf-8")

    def issue(self, session_id: str) -> str:
        digest = hmac.new(self._key, b"csrf|" + session_id.encode("utf-8"), hashlib.sha256).digest()
        return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")

    def check_double_submit(self, cookie_value: Optional[str], header_value: Optional[str]) -> None:
        if not header_value:
            logger.info("csrf_rejected", reason="missing_header")
            raise ForgeryRejected()
        if not cookie_value or not _same(cookie_value, header_value):
            logger.info("csrf_rejected", reason="cookie_mismatch")
            raise ForgeryRejected()

    def check_binding(self, header_value: str, session_id: str) -> None:
        if not _same(header_value, self.issue(session_id)):
            logger.info("csrf_rejected", reason="stale_or_foreign")
            raise ForgeryRejected()

    def check(self, cookie_value: Optional[str], header_value: Optional[str], session_id: str) -> None:
        self.check_double_submit(cookie_value, header_value)
        self.check_binding(header_value, session_id)
