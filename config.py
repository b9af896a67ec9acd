import json
import logging
import os
from pathlib import Path

from dotenv import load_dotenv


ROOT_DIR = Path(__file__).resolve().parent
APP_SETTINGS_PATH = ROOT_DIR / "app_settings.json"
APP_ENV = os.getenv("APP_ENV", "dev").strip().lower()

_env_variant = {
    "dev": ".env.dev",
    "prod": ".env.prod",
    "cloud": ".env.cloud",
}.get(APP_ENV, ".env")
ENV_FILE_PRIORITY = [
    ROOT_DIR / ".env",
    ROOT_DIR / _env_variant,
]
for env_file in ENV_FILE_PRIORITY:
    # Machine env vars win on the client; env files only fill gaps.
    load_dotenv(env_file, override=False)
ENV_FILES_PRESENT = [str(path) for path in ENV_FILE_PRIORITY if path.exists()]


def _load_json(path: Path) -> dict:
    try:
        with path.open("r", encoding="utf-8-sig") as handle:
            data = json.load(handle)
            return data if isinstance(data, dict) else {}
    except (OSError, json.JSONDecodeError):
        return {}


def _api_settings() -> dict:
    cfg = _load_json(APP_SETTINGS_PATH).get("api", {})
    return cfg if isinstance(cfg, dict) else {}


_api = _api_settings()

API_BASE_URL = (os.getenv("API_BASE_URL") or str(_api.get("base_url") or "")).strip().rstrip("/")
API_TIMEOUT_SECONDS = float(os.getenv("API_TIMEOUT_SECONDS", _api.get("timeout_seconds", 12)))
API_TOKEN = (os.getenv("API_TOKEN") or "").strip()
API_KEYRING_SERVICE = os.getenv("API_KEYRING_SERVICE", "lms_admin_api")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()
LOG_FILE = os.getenv("LOG_FILE", "").strip()
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(level: str | None = None, filename: str | None = None) -> None:
    target = filename if filename is not None else LOG_FILE
    kwargs = {"filename": target} if target else {}
    logging.basicConfig(
        level=getattr(logging, (level or LOG_LEVEL), logging.INFO),
        format=LOG_FORMAT,
        **kwargs,
    )


def validate_client_settings(env: str | None = None, base_url: str | None = None) -> None:
    env_name = (env or APP_ENV).strip().lower()
    url = API_BASE_URL if base_url is None else base_url.strip()
    if env_name not in {"prod", "cloud"}:
        return

    if not url:
        raise RuntimeError("API_BASE_URL is required for production/cloud.")
    if not url.lower().startswith("https://"):
        raise RuntimeError(
            "Invalid API_BASE_URL for production/cloud. The API must be reached over https."
        )
