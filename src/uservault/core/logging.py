import logging
import sys


def configure_logging(level: int = logging.INFO) -> None:
    """
    Route every log record to STDOUT through a single handler. Calling this
    more than once replaces the handler instead of stacking duplicates.
    """
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove default handlers to avoid duplication
    for h in list(logger.handlers):
        logger.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    ))

    logger.addHandler(handler)


def quiet_library_loggers() -> None:
    """Lowers the aiohttp loggers to WARNING so per-request access lines stay out of the output."""
    for name in ("aiohttp.client", "aiohttp.internal", "aiohttp.access"):
        logging.getLogger(name).setLevel(logging.WARNING)


def mask_token(token: str | None) -> str:
    """Render a bearer token safe for log output."""
    if not token:
        return "<none>"
    if len(token) <= 8:
        return "***"
    return f"{token[:4]}...{token[-4:]} (len={len(token)})"
