"""Process-wide logging setup."""

import logging

from parcelhub.core.config import Settings


def configure_logging(settings: Settings) -> None:
    level = logging.DEBUG if settings.debug else getattr(logging, settings.logging.level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=settings.logging.format)
    # httpx logs every request line at INFO; partner payloads are logged by the adapters.
    logging.getLogger("httpx").setLevel(logging.WARNING)
