"""
Shared fixtures: a fully populated test Config, recording HTTP transports,
an in-memory storage backend and small PDF/DOCX builders.
"""

import json
from io import BytesIO
from typing import Callable, Dict, List, Optional

import httpx
import pytest
from docx import Document

from cv_intake.config import (
    Config,
    EmailAPIConfig,
    ExtractionConfig,
    FollowUpConfig,
    GeminiConfig,
    S3Config,
    ServerConfig,
    SheetConfig,
    SMTPConfig,
    StorageConfig,
    WebhookConfig,
)
from cv_intake.services.storage_service import StorageService

STORAGE_BASE_URL = "https://storage.example.com/resumes"
GEMINI_URL_PART = "generativelanguage.googleapis.com"
SHEET_URL = "https://script.example.com/macros/s/abc/exec"
WEBHOOK_URL = "https://hooks.example.com/cv"


def make_config() -> Config:
    return Config(
        storage=StorageConfig(backend="supabase", bucket="resumes"),
        s3=S3Config(bucket="cv-bucket", region="eu-west-1"),
        extraction=ExtractionConfig(backend="local", poll_interval=0, max_polls=5),
        gemini_llm=GeminiConfig(api_key="test-gemini-key", model="gemini-1.5-flash"),
        sheet=SheetConfig(script_url=SHEET_URL),
        smtp=SMTPConfig(),
        email_api=EmailAPIConfig(api_key="re_test", from_email="jobs@example.com"),
        follow_up=FollowUpConfig(strategy="provider", hour=10, timezone="UTC"),
        webhook=WebhookConfig(url=WEBHOOK_URL, status="testing"),
        server=ServerConfig(),
    )


@pytest.fixture
def config() -> Config:
    return make_config()


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served"""

    def __init__(self, responder: Callable[[httpx.Request], httpx.Response]):
        self.requests: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return responder(request)

        super().__init__(handler)

    def json_bodies(self) -> List[dict]:
        return [json.loads(r.content) for r in self.requests]


def json_response(status_code: int = 200, body: Optional[dict] = None) -> Callable[[httpx.Request], httpx.Response]:
    return lambda request: httpx.Response(status_code, json=body if body is not None else {"success": True})


def gemini_reply(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


class InMemoryStorage(StorageService):
    """Storage backend that keeps objects in a dict"""

    def __init__(self, config: Config, fail: bool = False):
        super().__init__(config)
        self.objects: Dict[str, bytes] = {}
        self.fail = fail
        self.calls = 0

    def _put(self, key: str, content: bytes, content_type: str) -> str:
        self.calls += 1
        if self.fail:
            raise RuntimeError("bucket unavailable")
        self.objects[key] = content
        return f"{STORAGE_BASE_URL}/{key}"

    def _remove(self, key: str) -> None:
        self.objects.pop(key, None)


def _pdf_escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def make_pdf(lines: List[str]) -> bytes:
    """Build a one-page PDF with the given text lines in Helvetica"""
    ops = ["BT", "/F1 12 Tf", "14 TL", "72 720 Td"]
    for line in lines:
        ops.append(f"({_pdf_escape(line)}) Tj T*")
    ops.append("ET")
    stream = "\n".join(ops).encode("latin-1") if lines else b""

    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
        b"/Contents 4 0 R /Resources << /Font << /F1 5 0 R >> >> >>",
        b"<< /Length " + str(len(stream)).encode() + b" >>\nstream\n" + stream + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica /Encoding /WinAnsiEncoding >>",
    ]

    out = BytesIO()
    out.write(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(out.tell())
        out.write(f"{number} 0 obj\n".encode() + body + b"\nendobj\n")

    xref_offset = out.tell()
    out.write(f"xref\n0 {len(objects) + 1}\n".encode())
    out.write(b"0000000000 65535 f \n")
    for offset in offsets:
        out.write(f"{offset:010d} 00000 n \n".encode())
    out.write(
        f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\nstartxref\n{xref_offset}\n%%EOF\n".encode()
    )
    return out.getvalue()


def make_docx(paragraphs: List[str]) -> bytes:
    doc = Document()
    for text in paragraphs:
        doc.add_paragraph(text)
    buffer = BytesIO()
    doc.save(buffer)
    return buffer.getvalue()
