"""
Logging setup.

Configures the root logger once from application config; modules obtain
their logger with ``get_logger(__name__)``.
"""

import logging
import sys
from typing import Optional

_configured = False


def setup_logging(config=None, level: Optional[str] = None) -> None:
    """
    Configure root logging from config (LOG_LEVEL / LOG_FORMAT).

    Safe to call more than once; only the first call installs a handler.
    """
    global _configured

    log_level = level or (config.LOG_LEVEL if config else "INFO")
    log_format = (
        config.LOG_FORMAT if config else "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    root = logging.getLogger()
    root.setLevel(getattr(logging, str(log_level).upper(), logging.INFO))

    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(log_format))
    root.addHandler(handler)

    # Third-party clients are chatty at INFO
    for noisy in ("httpx", "httpcore", "botocore", "boto3", "urllib3", "aiosmtplib"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    _configured = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
