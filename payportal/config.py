import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

# Force-load .env (reload-safe)
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"


class Settings(BaseModel):
    """Process-wide configuration, built once at startup."""

    model_config = ConfigDict(frozen=True)

    database_url: str
    jwt_secret: str
    csrf_secret: str
    customer_session_ttl: int = 60 * 60
    staff_session_ttl: int = 8 * 60 * 60
    customer_hash_rounds: int = 12
    staff_hash_rounds: int = 10
    store_timeout: float = 5.0
    secure_cookies: bool = False
    frontend_origin: str = "https://localhost:3000"
    log_level: str = "INFO"

    @field_validator("jwt_secret", "csrf_secret")
    @classmethod
    def validate_secret(cls, v: str) -> str:
        if len(v) < 16:
            raise ValueError("Secrets must be at least 16 characters long")
        return v

    @field_validator("customer_hash_rounds", "staff_hash_rounds")
    @classmethod
    def validate_rounds(cls, v: int) -> int:
        if v < 10:
            raise ValueError("Hash work factor must be at least 10")
        return v

    @classmethod
    def from_env(cls, env_path: Optional[Path] = ENV_PATH) -> "Settings":
        if env_path is not None:
            load_dotenv(dotenv_path=env_path)

        values = {}
        for name in ("DATABASE_URL", "JWT_SECRET", "CSRF_SECRET"):
            value = os.getenv(name)
            if not value:
                raise RuntimeError(f"{name} is not set. Check your .env file.")
            values[name.lower()] = value

        optional = {
            "customer_session_ttl": "CUSTOMER_SESSION_TTL",
            "staff_session_ttl": "STAFF_SESSION_TTL",
            "store_timeout": "STORE_TIMEOUT",
            "frontend_origin": "FRONTEND_ORIGIN",
            "log_level": "LOG_LEVEL",
        }
        for field, name in optional.items():
            value = os.getenv(name)
            if value:
                values[field] = value

        values["secure_cookies"] = os.getenv("USE_SECURE_COOKIES", "false").lower() == "true"
        return cls(**values)
