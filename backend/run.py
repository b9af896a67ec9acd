import logging

from backend.config import (
    APP_ENV,
    API_HOST,
    API_PORT,
    API_PROXY_HEADERS,
    API_TLS_CERTFILE,
    API_TLS_KEYFILE,
    ENV_FILES_PRESENT,
)

logger = logging.getLogger("lms_admin.backend")


def _ssl_kwargs() -> dict:
    certfile = API_TLS_CERTFILE
    keyfile = API_TLS_KEYFILE
    if certfile and keyfile:
        return {"ssl_certfile": certfile, "ssl_keyfile": keyfile}
    if certfile or keyfile:
        raise RuntimeError("Both API_TLS_CERTFILE and API_TLS_KEYFILE must be set together.")
    return {}


def main():
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(name)s | %(message)s")
    env_sources = ", ".join(ENV_FILES_PRESENT) if ENV_FILES_PRESENT else "none"
    logger.info("stub API startup env=%s listen=%s:%s env_files=%s", APP_ENV, API_HOST, API_PORT, env_sources)

    uvicorn.run(
        "backend.main:app",
        host=API_HOST,
        port=API_PORT,
        proxy_headers=API_PROXY_HEADERS,
        **_ssl_kwargs(),
    )


if __name__ == "__main__":
    main()
