"""
CV Structuring Service

Sends extracted CV text to Google Gemini with a fixed instruction prompt and
turns the reply into a StructuredCV. The reply is treated as free text:
malformed or mis-shaped JSON degrades to the default structure, only a
failed API call raises.
"""

from typing import Any, Dict, List, Optional

import httpx

from cv_intake.config import Config
from cv_intake.schemas.cv import PersonalInfo, StructuredCV
from cv_intake.utils.exceptions import StructuringError
from cv_intake.utils.json_extract import extract_json_object
from cv_intake.utils.logger import get_logger

logger = get_logger(__name__)

SECTION_KEYS = ("education", "qualifications", "projects")
PERSONAL_INFO_KEYS = ("name", "email", "phone", "address", "linkedin")

CV_PROMPT_TEMPLATE = """Extract the following information from this CV text and structure it into JSON format:

1. Personal Information (name, email, phone, address, LinkedIn profile URL)
2. Education (institution names, degrees, years)
3. Qualifications (skills, certifications, etc.)
4. Projects (titles, descriptions, technology used)

CV Text:
{cv_text}

Respond with valid JSON only, using exactly this structure:
{{
    "personal_info": {{
        "name": "",
        "email": "",
        "phone": "",
        "address": "",
        "linkedin": ""
    }},
    "education": [
        {{"institution": "", "degree": "", "year": ""}}
    ],
    "qualifications": [
        "<skill or certification>"
    ],
    "projects": [
        {{"title": "", "description": "", "technologies": []}}
    ]
}}
Use empty strings or empty lists for anything not present in the CV."""


def build_prompt(cv_text: str) -> str:
    return CV_PROMPT_TEMPLATE.format(cv_text=cv_text)


def default_structured_cv(cv_public_link: str = "") -> StructuredCV:
    """Fallback used when the model reply cannot be parsed"""
    return StructuredCV(cv_public_link=cv_public_link)


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (list, tuple)):
        return ", ".join(_as_text(v) for v in value if v is not None)
    return str(value)


def _as_entries(value: Any) -> List[Any]:
    if isinstance(value, list):
        return [v for v in value if v not in (None, "", {}, [])]
    if isinstance(value, dict) and value:
        return [value]
    if isinstance(value, str) and value.strip():
        return [value.strip()]
    return []


def coerce_structured_cv(data: Optional[Dict[str, Any]], cv_public_link: str = "") -> StructuredCV:
    """
    Coerce parsed model output into the StructuredCV shape.

    Sections with the wrong type are replaced field by field. Output that
    has none of the expected sections is a shape mismatch and yields the
    default structure.
    """
    if not data or not any(k in data for k in ("personal_info",) + SECTION_KEYS):
        logger.warning("[StructuringService] Model output has no CV sections, using fallback structure")
        return default_structured_cv(cv_public_link)

    raw_info = data.get("personal_info")
    if not isinstance(raw_info, dict):
        raw_info = {}
    personal_info = PersonalInfo(**{key: _as_text(raw_info.get(key)) for key in PERSONAL_INFO_KEYS})

    return StructuredCV(
        personal_info=personal_info,
        education=_as_entries(data.get("education")),
        qualifications=_as_entries(data.get("qualifications")),
        projects=_as_entries(data.get("projects")),
        cv_public_link=cv_public_link,
    )


def parse_structured_cv(response_text: str, cv_public_link: str = "") -> StructuredCV:
    """Best-effort parse of a model reply; never raises"""
    return coerce_structured_cv(extract_json_object(response_text), cv_public_link)


class StructuringService:
    """Structures raw CV text with Google Gemini"""

    def __init__(self, config: Config, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._transport = transport

    @property
    def endpoint(self) -> str:
        gemini = self.config.gemini_llm
        return f"{gemini.base_url}/models/{gemini.model}:generateContent"

    async def structure(self, text: str, cv_public_link: str = "") -> StructuredCV:
        """
        Structure CV text into personal info, education, qualifications and projects.

        Args:
            text: Extracted CV text
            cv_public_link: Public URL of the stored CV, copied into the result

        Returns:
            StructuredCV (the default structure if the reply is unusable)

        Raises:
            StructuringError: If the API key is missing or the API call fails
        """
        response_text = await self._generate(build_prompt(text))
        structured = parse_structured_cv(response_text, cv_public_link)
        logger.info(
            f"[StructuringService] ✅ Structured CV: {len(structured.education)} education, "
            f"{len(structured.qualifications)} qualification(s), {len(structured.projects)} project(s)"
        )
        return structured

    async def _generate(self, prompt: str) -> str:
        gemini = self.config.gemini_llm
        if not gemini.api_key:
            raise StructuringError("GEMINI_API_KEY environment variable is required", "StructuringService")

        try:
            async with httpx.AsyncClient(timeout=self.config.HTTP_TIMEOUT * 2, transport=self._transport) as client:
                response = await client.post(
                    self.endpoint,
                    headers={
                        "x-goog-api-key": gemini.api_key,
                        "Content-Type": "application/json",
                    },
                    json={
                        "contents": [{"parts": [{"text": prompt}]}],
                        "generationConfig": {"temperature": gemini.temperature},
                    },
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"[StructuringService] Gemini returned HTTP {e.response.status_code}", exc_info=True)
            raise StructuringError(
                f"Gemini API returned HTTP {e.response.status_code}", "StructuringService"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"[StructuringService] Gemini request failed: {e}", exc_info=True)
            raise StructuringError(f"Gemini request failed: {str(e)}", "StructuringService") from e

        content = ""
        candidates = data.get("candidates") if isinstance(data, dict) else None
        if candidates:
            parts = (candidates[0].get("content") or {}).get("parts") or []
            content = "".join(part.get("text", "") for part in parts if isinstance(part, dict))
        if not content:
            logger.warning("[StructuringService] No content in Gemini API response")
        return content
