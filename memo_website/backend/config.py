import os

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Persistence
    DB_PATH: str = os.getenv("MEMO_DB_PATH", "memos.db")

    # Sessions
    SESSION_TTL_HOURS: float = float(os.getenv("SESSION_TTL_HOURS", "168"))  # 1 week
    SESSION_COOKIE_NAME: str = os.getenv("SESSION_COOKIE_NAME", "memo_session")
    SESSION_COOKIE_SECURE: bool = _env_bool("SESSION_COOKIE_SECURE")

    # Passwords
    PASSWORD_HASH_ITERATIONS: int = int(os.getenv("PASSWORD_HASH_ITERATIONS", "260000"))
    MIN_PASSWORD_LENGTH: int = int(os.getenv("MIN_PASSWORD_LENGTH", "8"))
    # When set, registration requires every strength check, not just the minimum length
    ENFORCE_PASSWORD_STRENGTH: bool = _env_bool("ENFORCE_PASSWORD_STRENGTH")

    # HTTP
    # Cross-origin requests carry the session cookie only for listed origins; "*" disables credentials
    CORS_ORIGINS: list[str] = [
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "http://localhost:8000,http://127.0.0.1:8000").split(",")
        if origin.strip()
    ]
    WEBSITE_DIR: str = os.getenv("WEBSITE_DIR", "")
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    VERSION = "1.0.0"
