"""
Application entrypoint.

Configures logging and re-exports the FastAPI ``app`` from
``cv_intake.api.main`` for ``uvicorn cv_intake.main:app``.
"""

from cv_intake.config import get_config
from cv_intake.utils.logger import get_logger, setup_logging

config = get_config()
setup_logging(config)
logger = get_logger(__name__)

from cv_intake.api.main import app  # noqa: E402,F401
