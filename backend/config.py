import os
from pathlib import Path

from dotenv import load_dotenv


BACKEND_DIR = Path(__file__).resolve().parent
APP_ENV = os.getenv("APP_ENV", "dev").strip().lower()

# The stub server reads backend-scoped env files only.
_env_variant = {
    "dev": ".env.dev",
    "prod": ".env.prod",
    "cloud": ".env.cloud",
}.get(APP_ENV, ".env")
ENV_FILE_PRIORITY = [
    BACKEND_DIR / ".env",
    BACKEND_DIR / _env_variant,
]
for env_file in ENV_FILE_PRIORITY:
    # Project-scoped mode: env files override machine/user env vars.
    load_dotenv(env_file, override=True)
ENV_FILES_PRESENT = [str(path) for path in ENV_FILE_PRIORITY if path.exists()]

_railway_port = os.getenv("PORT")
API_HOST = os.getenv("API_HOST", "0.0.0.0" if _railway_port else "127.0.0.1")
API_PORT = int(os.getenv("API_PORT", _railway_port or "8000"))
API_TLS_CERTFILE = os.getenv("API_TLS_CERTFILE", "").strip()
API_TLS_KEYFILE = os.getenv("API_TLS_KEYFILE", "").strip()
API_PROXY_HEADERS = os.getenv("API_PROXY_HEADERS", "true").strip().lower() in {"1", "true", "yes", "on"}
API_JWT_SECRET = os.getenv("API_JWT_SECRET", "CHANGE_ME_IN_ENV")
API_JWT_ALGORITHM = "HS256"
API_TOKEN_MINUTES = int(os.getenv("API_TOKEN_MINUTES", "60"))

API_ADMIN_PHONE = os.getenv("API_ADMIN_PHONE", "998900000001")
API_ADMIN_PASSWORD = os.getenv("API_ADMIN_PASSWORD", "change-me")
API_TEACHER_PHONE = os.getenv("API_TEACHER_PHONE", "998901112233")
API_TEACHER_PASSWORD = os.getenv("API_TEACHER_PASSWORD", "change-me")


def validate_security_settings() -> None:
    if APP_ENV not in {"prod", "cloud"}:
        return

    if API_JWT_SECRET == "CHANGE_ME_IN_ENV" or len(API_JWT_SECRET.strip()) < 32:
        raise RuntimeError(
            "Invalid API_JWT_SECRET for production/cloud. Set a strong secret with at least 32 characters."
        )
    for name, value in (("API_ADMIN_PASSWORD", API_ADMIN_PASSWORD), ("API_TEACHER_PASSWORD", API_TEACHER_PASSWORD)):
        if value == "change-me" or len(value.strip()) < 12:
            raise RuntimeError(
                f"Invalid {name} for production/cloud. Set a non-default password with at least 12 characters."
            )
