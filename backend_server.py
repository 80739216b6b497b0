"""
Run FastAPI HTTP Server

Starts the FastAPI server for CV submissions.
"""

import os
import uvicorn
from cv_intake.config import get_config

if __name__ == "__main__":
    config = get_config()

    # Hosting platforms provide PORT; otherwise fall back to config
    port = int(os.environ.get("PORT", config.server.port))
    host = os.environ.get("HOST", config.server.host)

    uvicorn.run(
        "cv_intake.main:app",
        host=host,
        port=port,
        reload=False,  # Disable reload for production
        log_level=config.LOG_LEVEL.lower(),
    )
