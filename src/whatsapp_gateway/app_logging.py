"""Logging configuration helpers."""

import logging

LOGGER_NAME = "whatsapp_gateway"


def configure_logging(level: str = "INFO") -> None:
    """Attach one stream handler to the gateway logger; safe to call twice."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level.upper())
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s: %(name)s: %(message)s")
    )
    logger.addHandler(handler)
    logger.propagate = False
