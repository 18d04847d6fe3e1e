"""
Logging setup
Module code logs through logging.getLogger(__name__); this only configures the root handler
"""
import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """
    Configure the root logger once at startup.

    Args:
        level: Level name such as "DEBUG" or "INFO"
    """
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
