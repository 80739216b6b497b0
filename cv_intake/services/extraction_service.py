"""
Text Extraction Service

Validates uploaded CV files and extracts their plain text.

Two extractors share one contract, ``extract(content, filename, content_type, stored)``:
- LocalTextExtractor parses PDF (PyPDF2) and DOCX (python-docx) in-process.
- TextractTextExtractor runs PDFs through an asynchronous AWS Textract job
  and polls it at a fixed interval with an upper bound on attempts.
"""

import asyncio
import re
from io import BytesIO
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional

import boto3
from docx import Document
from PyPDF2 import PdfReader

from cv_intake.config import Config
from cv_intake.services.storage_service import StoredFile
from cv_intake.utils.exceptions import AgentError, ExtractionError, ExtractionServiceError, ValidationError
from cv_intake.utils.logger import get_logger

logger = get_logger(__name__)

PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

_EXTENSION_FORMATS = {".pdf": "pdf", ".docx": "docx"}
_MIME_FORMATS = {PDF_MIME: "pdf", DOCX_MIME: "docx"}

# Browsers send these for files they cannot classify
_GENERIC_MIME_TYPES = {"", "application/octet-stream", "binary/octet-stream"}


def detect_format(filename: str, content_type: Optional[str] = None) -> Optional[str]:
    """Return 'pdf', 'docx' or None, by extension first and MIME type second."""
    ext = Path(filename or "").suffix.lower()
    if ext in _EXTENSION_FORMATS:
        return _EXTENSION_FORMATS[ext]
    if content_type:
        return _MIME_FORMATS.get(content_type.split(";")[0].strip().lower())
    return None


def clean_text(text: str) -> str:
    """Collapse runs of spaces/tabs, drop blank lines, keep line order"""
    lines = []
    for line in text.splitlines():
        line = re.sub(r"[ \t\f\v\u00a0]+", " ", line).strip()
        if line:
            lines.append(line)
    return "\n".join(lines)


class LocalTextExtractor:
    """In-process extraction for PDF and DOCX files"""

    ALLOWED_EXTENSIONS = {'.pdf', '.docx'}
    ALLOWED_MIME_TYPES = {PDF_MIME, DOCX_MIME}

    def __init__(self, config: Config):
        self.config = config

    @property
    def max_file_size(self) -> int:
        return self.config.MAX_FILE_SIZE

    def validate_file(self, file_content: bytes, filename: str, content_type: Optional[str] = None) -> None:
        """
        Validate an uploaded CV file.

        Args:
            file_content: File content as bytes
            filename: Original filename
            content_type: MIME type sent by the client

        Raises:
            ValidationError: If the file is empty, too large or not PDF/DOCX
        """
        if not file_content:
            raise ValidationError(f"Uploaded file '{filename}' is empty", "TextExtractor")

        if len(file_content) > self.max_file_size:
            raise ValidationError(
                f"File size exceeds maximum of {self.max_file_size / 1024 / 1024:.0f}MB",
                "TextExtractor",
            )

        fmt = detect_format(filename, content_type)
        if fmt is None:
            raise ValidationError(
                f"File type not supported. Allowed: {', '.join(sorted(self.ALLOWED_EXTENSIONS))}",
                "TextExtractor",
            )

        mime = (content_type or "").split(";")[0].strip().lower()
        if mime not in _GENERIC_MIME_TYPES and mime not in self.ALLOWED_MIME_TYPES:
            raise ValidationError("Invalid file type. Expected PDF or DOCX", "TextExtractor")

    async def extract(
        self,
        file_content: bytes,
        filename: str,
        content_type: Optional[str] = None,
        stored: Optional[StoredFile] = None,
    ) -> str:
        """
        Extract plain text from a PDF or DOCX file.

        Raises:
            ExtractionError: If the format is unsupported, parsing fails or no text is found
        """
        fmt = detect_format(filename, content_type)
        if fmt == "pdf":
            parse = self._extract_pdf_text
        elif fmt == "docx":
            parse = self._extract_docx_text
        else:
            raise ExtractionError(f"Unsupported file type: {Path(filename or '').suffix or content_type}", "TextExtractor")

        try:
            raw_text = await asyncio.to_thread(parse, file_content)
        except ExtractionError:
            raise
        except Exception as e:
            logger.error(f"[TextExtractor] Failed to read {filename}: {e}", exc_info=True)
            raise ExtractionError(f"Failed to extract text: {str(e)}", "TextExtractor") from e

        return self._require_text(raw_text, filename)

    def _extract_pdf_text(self, file_content: bytes) -> str:
        """Extract text from PDF file"""
        reader = PdfReader(BytesIO(file_content))

        text_parts = []
        for page in reader.pages:
            text = page.extract_text()
            if text:
                text_parts.append(text)

        logger.debug(f"[TextExtractor] PDF has {len(reader.pages)} page(s)")
        return "\n".join(text_parts)

    def _extract_docx_text(self, file_content: bytes) -> str:
        """Extract text from DOCX paragraphs and table cells"""
        doc = Document(BytesIO(file_content))

        text_parts = [p.text for p in doc.paragraphs if p.text.strip()]
        for table in doc.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if cells:
                    text_parts.append(" | ".join(cells))

        return "\n".join(text_parts)

    def _require_text(self, raw_text: str, filename: str) -> str:
        cleaned_text = clean_text(raw_text or "")
        if not cleaned_text:
            raise ExtractionError(
                f"No text content found in '{filename}' (empty or image-based document)",
                "TextExtractor",
            )

        logger.info(f"[TextExtractor] ✅ Extraction complete: {len(cleaned_text)} characters from {filename}")
        if len(cleaned_text) < 50:
            logger.warning(f"[TextExtractor] ⚠️ Extracted text is very short ({len(cleaned_text)} chars)")
        return cleaned_text


class TextractTextExtractor(LocalTextExtractor):
    """
    AWS Textract extraction for PDFs stored in S3.

    Job states: IN_PROGRESS -> SUCCEEDED | PARTIAL_SUCCESS | FAILED.
    The job is polled every ``poll_interval`` seconds, at most ``max_polls``
    times. DOCX files are not supported by Textract and are parsed locally.
    """

    def __init__(
        self,
        config: Config,
        client: Optional[Any] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        super().__init__(config)
        self._client = client
        self._sleep = sleep

    @property
    def client(self) -> Any:
        if self._client is None:
            s3 = self.config.s3
            self._client = boto3.client(
                "textract",
                region_name=s3.region,
                aws_access_key_id=s3.access_key_id,
                aws_secret_access_key=s3.secret_access_key,
            )
        return self._client

    async def extract(
        self,
        file_content: bytes,
        filename: str,
        content_type: Optional[str] = None,
        stored: Optional[StoredFile] = None,
    ) -> str:
        if detect_format(filename, content_type) != "pdf":
            return await super().extract(file_content, filename, content_type, stored)

        bucket = self.config.s3.bucket
        if not bucket or stored is None:
            raise ExtractionServiceError(
                "Textract extraction requires the file to be stored in S3 (S3_BUCKET_NAME)",
                "TextractTextExtractor",
            )

        try:
            job_id = await self._start_job(bucket, stored.key)
            first_page = await self._wait_for_job(job_id)
            lines = await self._collect_lines(job_id, first_page)
        except ExtractionError:
            raise
        except Exception as e:
            logger.error(f"[TextractTextExtractor] Textract call failed for {stored.key}: {e}", exc_info=True)
            raise ExtractionServiceError(f"Textract request failed: {str(e)}", "TextractTextExtractor") from e

        return self._require_text("\n".join(lines), filename)

    async def _start_job(self, bucket: str, key: str) -> str:
        response = await asyncio.to_thread(
            self.client.start_document_text_detection,
            DocumentLocation={"S3Object": {"Bucket": bucket, "Name": key}},
        )
        job_id = response["JobId"]
        logger.info(f"[TextractTextExtractor] Started job {job_id} for {key}")
        return job_id

    async def _wait_for_job(self, job_id: str) -> dict:
        """Poll until the job reaches a terminal status; returns the first result page."""
        interval = self.config.extraction.poll_interval
        max_polls = self.config.extraction.max_polls

        for attempt in range(1, max_polls + 1):
            await self._sleep(interval)
            response = await asyncio.to_thread(
                self.client.get_document_text_detection, JobId=job_id
            )
            status = response.get("JobStatus")

            if status == "SUCCEEDED":
                logger.info(f"[TextractTextExtractor] Job {job_id} succeeded after {attempt} poll(s)")
                return response
            if status == "PARTIAL_SUCCESS":
                logger.warning(f"[TextractTextExtractor] Job {job_id} partially succeeded: {response.get('StatusMessage')}")
                return response
            if status == "FAILED":
                raise ExtractionError(
                    f"Textract job failed: {response.get('StatusMessage') or 'unknown reason'}",
                    "TextractTextExtractor",
                )

        raise ExtractionError(
            f"Textract job {job_id} did not finish after {max_polls} polls",
            "TextractTextExtractor",
        )

    async def _collect_lines(self, job_id: str, first_page: dict) -> List[str]:
        """Concatenate LINE blocks in order across NextToken pages"""
        lines: List[str] = []
        page = first_page
        while True:
            for block in page.get("Blocks", []):
                if block.get("BlockType") == "LINE" and block.get("Text"):
                    lines.append(block["Text"])

            next_token = page.get("NextToken")
            if not next_token:
                return lines
            page = await asyncio.to_thread(
                self.client.get_document_text_detection, JobId=job_id, NextToken=next_token
            )


def create_text_extractor(config: Config) -> LocalTextExtractor:
    backend = config.extraction.backend
    if backend == "textract":
        return TextractTextExtractor(config)
    if backend == "local":
        return LocalTextExtractor(config)
    raise AgentError(f"Unknown TEXT_EXTRACTOR '{backend}'", "TextExtractor")
