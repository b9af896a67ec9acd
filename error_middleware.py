import logging

from api_client import error_message

logger = logging.getLogger("lms_admin.errors")


def handle_api_error(exc, context="", fallback="Something went wrong", notifier=None):
    """
    Central API error handler:
    - Logs technical info
    - Emits one user-friendly notification
    """

    status = getattr(exc, "status", None)
    message = error_message(exc, fallback)

    logger.error(
        "API ERROR | context=%s | type=%s | status=%s | msg=%s",
        context,
        type(exc).__name__,
        status,
        str(exc),
    )

    if notifier is not None:
        notifier.error("Error", message)
    return message


def log_validation_error(context, errors):
    logger.info("VALIDATION | context=%s | fields=%s", context, ", ".join(sorted(errors)))
