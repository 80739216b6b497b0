"""
Sheet Service

Appends one row per processed application to a spreadsheet through its
script endpoint (e.g. a Google Apps Script web app bound to the sheet).
One POST per record; the script performs the append, so there is no
read-modify-write on our side.
"""

import json
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from cv_intake.config import Config
from cv_intake.schemas.cv import StructuredCV
from cv_intake.utils.datetime_utils import format_iso_utc, get_now_utc
from cv_intake.utils.exceptions import SinkError
from cv_intake.utils.logger import get_logger

logger = get_logger(__name__)

# Column order of the sheet (A:I)
RECORD_COLUMNS = (
    "name",
    "email",
    "phone",
    "cvUrl",
    "personalInfo",
    "education",
    "qualifications",
    "projects",
    "timestamp",
)


@dataclass
class ApplicationRecord:
    """One flattened sheet row; CV sections are stored as JSON text"""
    name: str
    email: str
    phone: str
    cvUrl: str
    personalInfo: str
    education: str
    qualifications: str
    projects: str
    timestamp: str = field(default_factory=lambda: format_iso_utc(get_now_utc()))

    @classmethod
    def from_structured(
        cls,
        name: str,
        email: str,
        phone: str,
        cv_url: str,
        structured: StructuredCV,
    ) -> "ApplicationRecord":
        return cls(
            name=name,
            email=email,
            phone=phone,
            cvUrl=cv_url,
            personalInfo=json.dumps(structured.personal_info.model_dump(), ensure_ascii=False),
            education=json.dumps(structured.education, ensure_ascii=False),
            qualifications=json.dumps(structured.qualifications, ensure_ascii=False),
            projects=json.dumps(structured.projects, ensure_ascii=False),
        )

    def to_row(self) -> List[str]:
        data = asdict(self)
        return [data[column] for column in RECORD_COLUMNS]


class SheetService:
    """Append-only record sink backed by a spreadsheet script endpoint"""

    def __init__(self, config: Config, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._transport = transport

    async def append(self, record: ApplicationRecord) -> None:
        """
        Append one record.

        Raises:
            SinkError: If the endpoint is not configured, unreachable, or reports failure
        """
        url = self.config.sheet.script_url
        if not url:
            raise SinkError("SHEET_SCRIPT_URL environment variable is required", "SheetService")

        payload: Dict[str, Any] = {
            "sheet": self.config.sheet.sheet_name,
            "values": [record.to_row()],
            "record": asdict(record),
        }

        try:
            # Apps Script web apps answer with a redirect to the script output
            async with httpx.AsyncClient(
                timeout=self.config.HTTP_TIMEOUT,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.post(url, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"[SheetService] Append request failed: {e}", exc_info=True)
            raise SinkError(f"Failed to reach sheet endpoint: {str(e)}", "SheetService") from e

        if not response.is_success:
            logger.error(f"[SheetService] Append rejected with HTTP {response.status_code}: {response.text[:300]}")
            raise SinkError(f"Sheet endpoint returned HTTP {response.status_code}", "SheetService")

        self._check_body(response)
        logger.info(f"[SheetService] ✅ Appended application row for {record.email}")

    def _check_body(self, response: httpx.Response) -> None:
        """
        Only a JSON object without an error flag counts as an append.

        A restricted script deployment redirects to a sign-in page, which
        arrives here as a 200 HTML document.
        """
        content_type = response.headers.get("content-type", "").lower()
        if "text/html" in content_type:
            logger.error(f"[SheetService] Append answered with an HTML page: {response.text[:300]}")
            raise SinkError(
                "Sheet endpoint returned an HTML page instead of a script result "
                "(check the web app deployment access)",
                "SheetService",
            )

        try:
            body = response.json()
        except ValueError as e:
            logger.error(f"[SheetService] Append answered with a non-JSON body: {response.text[:300]}")
            raise SinkError("Sheet endpoint returned a non-JSON response", "SheetService") from e

        if not isinstance(body, dict):
            raise SinkError("Sheet endpoint returned an unexpected response", "SheetService")
        if body.get("success") is False or str(body.get("status", "")).lower() == "error":
            message = body.get("error") or body.get("message") or "unknown error"
            logger.error(f"[SheetService] Append reported failure: {message}")
            raise SinkError(f"Sheet endpoint reported failure: {message}", "SheetService")
