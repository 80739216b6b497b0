"""
FastAPI Application

HTTP API for CV submissions, follow-up email scheduling and inbound webhooks.
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from cv_intake import __version__
from cv_intake.config import get_config
from cv_intake.api import schedule_email as schedule_email_api
from cv_intake.api import submit as submit_api
from cv_intake.api import webhook as webhook_api
from cv_intake.schemas.submission import ErrorResponse
from cv_intake.utils.exceptions import AgentError
from cv_intake.utils.limiter import limiter
from cv_intake.utils.logger import get_logger

logger = get_logger(__name__)
config = get_config()

# Create FastAPI app
app = FastAPI(
    title="CV Intake API",
    description="API for job application submission and CV processing",
    version=__version__,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware: with allow_credentials=True, origins cannot be "*" (must be explicit).
_cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
if config.server.frontend_url:
    _cors_origins.append(config.server.frontend_url.rstrip("/"))
for _origin in config.server.cors_origins:
    if _origin not in _cors_origins:
        _cors_origins.append(_origin)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AgentError)
async def agent_error_handler(request: Request, exc: AgentError):
    """Map pipeline errors to a single ``{error, message}`` body"""
    if exc.status_code >= 500:
        logger.error(f"[API] {request.url.path} failed: {exc}")
    else:
        logger.warning(f"[API] {request.url.path} rejected: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.error, message=exc.message).model_dump(),
    )


@app.get("/health")
async def health():
    """Liveness probe: returns 200 if the process is running."""
    return {"status": "ok"}


app.include_router(submit_api.router)
app.include_router(schedule_email_api.router)
app.include_router(webhook_api.router)
