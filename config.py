import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from dotenv import load_dotenv


DEFAULT_ALLOWED_ORIGINS = [
    "https://www.theektaproject.org",
    "http://localhost:8000",
    "http://127.0.0.1:5500",
    "http://127.0.0.1:3001",
    "http://localhost:3001",
]

REQUIRED_KEYS = (
    "RAZORPAY_KEY_ID",
    "RAZORPAY_KEY_SECRET",
    "MONGO_URI",
    "GOOGLE_CLIENT_ID",
    "JWT_SECRET",
)


class ConfigError(RuntimeError):
    pass


@dataclass
class Settings:
    razorpay_key_id: str
    razorpay_key_secret: str
    mongo_uri: str
    google_client_id: str
    jwt_secret: str
    mongo_db_name: str = "checkout"
    session_ttl_days: int = 7
    allowed_origins: List[str] = field(default_factory=lambda: list(DEFAULT_ALLOWED_ORIGINS))
    default_currency: str = "INR"
    checkout_requires_login: bool = True
    log_level: str = "INFO"
    port: int = 8000


def validate_currency(value: Optional[str]) -> str:
    v = (value or "INR").strip().upper()
    if len(v) != 3 or not v.isalpha():
        raise ConfigError("Invalid currency code: expected ISO4217 length 3")
    return v


def _parse_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _parse_origins(value: Optional[str]) -> List[str]:
    if not value:
        return list(DEFAULT_ALLOWED_ORIGINS)
    return [o.strip().rstrip("/") for o in value.split(",") if o.strip()]


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build settings from the process environment (``.env`` is read first).

    Passing ``env`` skips the ``.env`` lookup and reads only that mapping.
    """
    if env is None:
        load_dotenv(override=False)
        env = os.environ

    missing = [k for k in REQUIRED_KEYS if not env.get(k)]
    if missing:
        raise ConfigError(f"Missing required configuration: {', '.join(missing)}")

    try:
        session_ttl_days = int(env.get("SESSION_TTL_DAYS", "7"))
        port = int(env.get("PORT", "8000"))
    except ValueError as e:
        raise ConfigError(f"Invalid numeric configuration: {e}") from e

    return Settings(
        razorpay_key_id=env["RAZORPAY_KEY_ID"],
        razorpay_key_secret=env["RAZORPAY_KEY_SECRET"],
        mongo_uri=env["MONGO_URI"],
        google_client_id=env["GOOGLE_CLIENT_ID"],
        jwt_secret=env["JWT_SECRET"],
        mongo_db_name=env.get("MONGO_DB_NAME") or "checkout",
        session_ttl_days=session_ttl_days,
        allowed_origins=_parse_origins(env.get("ALLOWED_ORIGINS")),
        default_currency=validate_currency(env.get("DEFAULT_CURRENCY")),
        checkout_requires_login=_parse_bool(env.get("CHECKOUT_REQUIRES_LOGIN"), True),
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
        port=port,
    )
