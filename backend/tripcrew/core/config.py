import os
import re

from dotenv import find_dotenv, load_dotenv

_ENV_ALIASES = {"dev": "development", "prod": "production", "stg": "staging"}


def _load(name: str) -> bool:
    path = name if os.path.isabs(name) else find_dotenv(name, usecwd=True)
    if not path:
        return False
    load_dotenv(path, override=False)
    return True


def _load_env_files() -> None:
    """
    .env first, then ENV_FILE if given, otherwise .env.<ENVIRONMENT>.
    Variables already set in the process win over every file.
    """
    _load(".env")
    if os.environ.get("ENV_FILE") and _load(os.environ["ENV_FILE"]):
        return

    env_name = os.environ.get("ENVIRONMENT") or os.environ.get("ENV")
    if env_name:
        slug = env_name.strip().lower()
        if not _load(f".env.{_ENV_ALIASES.get(slug, slug)}"):
            _load(f".env.{slug}")


def _get_int_env(var_name: str, default_value: int) -> int:
    """Integer env var; tolerates stray whitespace or a trailing ';'."""
    text = os.environ.get(var_name, str(default_value)).strip().rstrip(";")
    try:
        return int(text)
    except ValueError:
        match = re.search(r"[-+]?\d+", text)
        return int(match.group(0)) if match else default_value


_load_env_files()

ENVIRONMENT = os.environ.get("ENVIRONMENT", "development")  # development | staging | production | test

# === Server ===
SERVER_HOST = os.environ.get("SERVER_HOST", "0.0.0.0")
SERVER_PORT = _get_int_env("SERVER_PORT", 8070)
DEBUG = os.environ.get("DEBUG", "true").lower() == "true"


# === CORS ===
def _get_cors_origins() -> list[str]:
    """Comma-separated CORS_ORIGINS; everything allowed when unset."""
    raw = os.environ.get("CORS_ORIGINS", "").strip()
    if not raw:
        return ["*"]
    return [o.strip() for o in raw.split(",") if o.strip()]


CORS_ORIGINS = _get_cors_origins()

# === Database Configuration ===
MONGODB_URI = os.environ.get("MONGODB_URI")
DATABASE_NAME = os.environ.get("DATABASE_NAME", "tripcrew")

# === JWT Configuration ===
# Tokens are issued by the auth service; this API only verifies them.
JWT_SECRET = os.environ.get("JWT_SECRET", "your-secret-key-change-this-in-production")
JWT_ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")

# === Logging ===
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
LOG_FORMAT = os.environ.get("LOG_FORMAT", "console")  # console | json

# === Reputation ===
# Compare-and-set attempts before a score update gives up
REPUTATION_CAS_RETRIES = _get_int_env("REPUTATION_CAS_RETRIES", 5)

# === Join requests ===
# An accept that has held its claim this long is presumed dead and may be re-driven
REQUEST_CLAIM_TIMEOUT_SECONDS = _get_int_env("REQUEST_CLAIM_TIMEOUT_SECONDS", 120)

# === Application Settings ===
APP_NAME = "TripCrew API"
APP_VERSION = "1.0.0"
