from typing import List

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from starlette.datastructures import UploadFile

from cv_intake.config import get_config
from cv_intake.schemas.submission import ErrorResponse, SubmitResponse
from cv_intake.services.container import get_pipeline
from cv_intake.services.submission_pipeline import Submission, SubmissionPipeline, UploadedFile
from cv_intake.utils.exceptions import AgentError
from cv_intake.utils.limiter import limiter
from cv_intake.utils.logger import get_logger

logger = get_logger(__name__)
config = get_config()

# Application submission endpoint
router = APIRouter(prefix="/api", tags=["Submission"])

# Multipart field names accepted for the CV file(s)
FILE_FIELDS = ("file", "cv")


async def _read_files(form) -> List[UploadedFile]:
    uploaded = []
    for field_name in FILE_FIELDS:
        for part in form.getlist(field_name):
            # Browsers send an empty, unnamed part when no file was chosen
            if not isinstance(part, UploadFile) or not part.filename:
                continue
            uploaded.append(
                UploadedFile(
                    content=await part.read(),
                    filename=part.filename,
                    content_type=part.content_type,
                )
            )
    return uploaded


def _form_text(form, name: str) -> str:
    value = form.get(name)
    return value.strip() if isinstance(value, str) else ""


@router.post(
    "/submit",
    response_model=SubmitResponse,
    responses={
        400: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
@limiter.limit(config.server.submit_rate_limit)
async def submit_application(
    request: Request,
    pipeline: SubmissionPipeline = Depends(get_pipeline),
):
    """
    Accept an application form with one or more CV files.

    Stores the files, extracts and structures the CV, records the
    application and notifies the applicant.
    """
    try:
        form = await request.form()
        submission = Submission(
            name=_form_text(form, "name"),
            email=_form_text(form, "email"),
            phone=_form_text(form, "phone"),
            files=await _read_files(form),
        )
        logger.info(
            f"[API] Received application from {submission.email or '<no email>'} "
            f"with {len(submission.files)} file(s)"
        )

        result = await pipeline.process(submission)
        return SubmitResponse(success=True, fileUrl=result.file_url, fileUrls=result.file_urls)

    except AgentError:
        raise
    except Exception as e:
        logger.error(f"[API] Failed to process application: {e}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(error="Failed to process application", message=str(e)).model_dump(),
        )
