import base64
import hashlib

import bcrypt
import structlog

logger = structlog.get_logger(__name__)


class CredentialStore:
    """Salted one-way hashing of principal secrets.

    Secrets are SHA-256 pre-hashed before bcrypt so long passwords are neither
    truncated nor rejected by bcrypt's 72 byte input limit.
    """

    def __init__(self, rounds: int):
        self.rounds = rounds
        self.dummy_digest = self.hash("unknown-principal-placeholder")

    @staticmethod
    def _prepare(plaintext: str) -> bytes:
        return base64.b64encode(hashlib.sha256(plaintext.encode("utf-8")).digest())

    def hash(self, plaintext: str) -> str:
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(self._prepare(plaintext), salt).decode("utf-8")

    def verify(self, plaintext: str, digest: str) -> bool:
        try:
            return bcrypt.checkpw(self._prepare(plaintext), digest.encode("utf-8"))
        except ValueError:
            logger.warning("password_digest_malformed")
            return False
