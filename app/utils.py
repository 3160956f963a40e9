"""
Shared helpers.
"""
import logging

from app.core import config

_configured = False


def get_logger(name: str) -> logging.Logger:
    """
    Get a module logger, configuring the root handler on first use.

    Usage:
        log = get_logger(__name__)
        log.info("Role %s created in org %s", role.id, organization_id)
    """
    global _configured
    if not _configured:
        logging.basicConfig(
            level=config.LOG_LEVEL,
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )
        _configured = True
    return logging.getLogger(name)
