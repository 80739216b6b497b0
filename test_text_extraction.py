import asyncio
from unittest.mock import MagicMock

import pytest

from conftest import make_docx, make_pdf
from cv_intake.services.container import build_pipeline
from cv_intake.services.extraction_service import (
    DOCX_MIME,
    PDF_MIME,
    LocalTextExtractor,
    TextractTextExtractor,
    clean_text,
    detect_format,
)
from cv_intake.services.storage_service import StoredFile
from cv_intake.utils.exceptions import AgentError, ExtractionError, ExtractionServiceError, ValidationError


async def _no_sleep(seconds):
    return None


def test_detect_format_prefers_extension():
    assert detect_format("cv.PDF") == "pdf"
    assert detect_format("cv.docx", "application/octet-stream") == "docx"
    assert detect_format("cv", PDF_MIME) == "pdf"
    assert detect_format("cv.txt", "text/plain") is None


def test_clean_text_keeps_lines_and_drops_blanks():
    assert clean_text("  Jane   Doe \n\n\t\nBSc\tComputer  Science  ") == "Jane Doe\nBSc Computer Science"


def test_extracts_docx_paragraphs(config):
    content = make_docx(["Jane Doe", "", "BSc Computer Science, 2020"])
    text = asyncio.run(LocalTextExtractor(config).extract(content, "cv.docx", DOCX_MIME))
    assert text == "Jane Doe\nBSc Computer Science, 2020"


def test_extracts_pdf_text(config):
    content = make_pdf(["Jane Doe", "BSc Computer Science, 2020"])
    text = asyncio.run(LocalTextExtractor(config).extract(content, "cv.pdf", PDF_MIME))
    assert "BSc Computer Science, 2020" in text
    assert "Jane Doe" in text


def test_blank_docx_raises(config):
    content = make_docx(["   ", "\t"])
    with pytest.raises(ExtractionError):
        asyncio.run(LocalTextExtractor(config).extract(content, "cv.docx", DOCX_MIME))


def test_blank_pdf_raises(config):
    with pytest.raises(ExtractionError):
        asyncio.run(LocalTextExtractor(config).extract(make_pdf([]), "cv.pdf", PDF_MIME))


def test_corrupt_file_raises_extraction_error(config):
    with pytest.raises(ExtractionError):
        asyncio.run(LocalTextExtractor(config).extract(b"not a real docx", "cv.docx"))


def test_unsupported_format_raises(config):
    with pytest.raises(ExtractionError, match="Unsupported"):
        asyncio.run(LocalTextExtractor(config).extract(b"hello", "cv.txt", "text/plain"))


def test_validate_file_rejections(config):
    extractor = LocalTextExtractor(config)
    with pytest.raises(ValidationError, match="empty"):
        extractor.validate_file(b"", "cv.pdf", PDF_MIME)
    with pytest.raises(ValidationError, match="not supported"):
        extractor.validate_file(b"data", "cv.exe", "application/x-msdownload")
    with pytest.raises(ValidationError, match="Invalid file type"):
        extractor.validate_file(b"data", "cv.pdf", "image/png")

    config.MAX_FILE_SIZE = 4
    with pytest.raises(ValidationError, match="exceeds"):
        extractor.validate_file(b"12345", "cv.pdf", PDF_MIME)


def test_validate_file_accepts_generic_mime(config):
    LocalTextExtractor(config).validate_file(b"%PDF-1.4", "cv.pdf", "application/octet-stream")
    LocalTextExtractor(config).validate_file(b"PK", "cv.docx", None)


def _textract_client(status_sequence, pages):
    """Mock Textract client: job statuses for polling, then NextToken pages"""
    client = MagicMock()
    client.start_document_text_detection.return_value = {"JobId": "job-1"}
    responses = [{"JobStatus": s} for s in status_sequence[:-1]]
    responses.append(dict(pages[0], JobStatus=status_sequence[-1]))
    responses.extend(pages[1:])
    client.get_document_text_detection.side_effect = responses
    return client


def _lines(*texts):
    return [{"BlockType": "PAGE"}] + [{"BlockType": "LINE", "Text": t} for t in texts] + [
        {"BlockType": "WORD", "Text": "ignored"}
    ]


def test_textract_polls_then_concatenates_pages(config):
    client = _textract_client(
        ["IN_PROGRESS", "IN_PROGRESS", "SUCCEEDED"],
        [
            {"Blocks": _lines("Jane Doe", "BSc Computer Science"), "NextToken": "t1"},
            {"Blocks": _lines("2020"), "NextToken": "t2"},
            {"Blocks": _lines("Projects")},
        ],
    )
    extractor = TextractTextExtractor(config, client=client, sleep=_no_sleep)
    stored = StoredFile(key="abc.pdf", public_url="https://cv-bucket/abc.pdf")

    text = asyncio.run(extractor.extract(b"%PDF", "cv.pdf", PDF_MIME, stored))

    assert text == "Jane Doe\nBSc Computer Science\n2020\nProjects"
    client.start_document_text_detection.assert_called_once_with(
        DocumentLocation={"S3Object": {"Bucket": "cv-bucket", "Name": "abc.pdf"}}
    )
    tokens = [c.kwargs.get("NextToken") for c in client.get_document_text_detection.call_args_list]
    assert tokens == [None, None, None, "t1", "t2"]


def test_textract_failed_job_raises(config):
    client = MagicMock()
    client.start_document_text_detection.return_value = {"JobId": "job-2"}
    client.get_document_text_detection.return_value = {"JobStatus": "FAILED", "StatusMessage": "bad document"}
    extractor = TextractTextExtractor(config, client=client, sleep=_no_sleep)

    with pytest.raises(ExtractionError, match="bad document"):
        asyncio.run(extractor.extract(b"%PDF", "cv.pdf", PDF_MIME, StoredFile("k.pdf", "u")))


def test_textract_poll_limit_raises(config):
    client = MagicMock()
    client.start_document_text_detection.return_value = {"JobId": "job-3"}
    client.get_document_text_detection.return_value = {"JobStatus": "IN_PROGRESS"}
    extractor = TextractTextExtractor(config, client=client, sleep=_no_sleep)

    with pytest.raises(ExtractionError, match="did not finish"):
        asyncio.run(extractor.extract(b"%PDF", "cv.pdf", PDF_MIME, StoredFile("k.pdf", "u")))
    assert client.get_document_text_detection.call_count == config.extraction.max_polls


def test_textract_empty_result_raises(config):
    client = _textract_client(["SUCCEEDED"], [{"Blocks": [{"BlockType": "PAGE"}]}])
    extractor = TextractTextExtractor(config, client=client, sleep=_no_sleep)
    with pytest.raises(ExtractionError):
        asyncio.run(extractor.extract(b"%PDF", "cv.pdf", PDF_MIME, StoredFile("k.pdf", "u")))


def test_textract_parses_docx_locally(config):
    client = MagicMock()
    extractor = TextractTextExtractor(config, client=client, sleep=_no_sleep)
    text = asyncio.run(extractor.extract(make_docx(["Jane Doe"]), "cv.docx", DOCX_MIME))
    assert text == "Jane Doe"
    client.start_document_text_detection.assert_not_called()


def test_textract_requires_s3_object(config):
    extractor = TextractTextExtractor(config, client=MagicMock(), sleep=_no_sleep)
    with pytest.raises(ExtractionServiceError) as excinfo:
        asyncio.run(extractor.extract(b"%PDF", "cv.pdf", PDF_MIME, None))
    assert excinfo.value.status_code == 500
    assert excinfo.value.error == "Failed to extract text"


def test_textract_transport_failure_is_extraction_service_error(config):
    client = MagicMock()
    client.start_document_text_detection.side_effect = RuntimeError("endpoint unreachable")
    extractor = TextractTextExtractor(config, client=client, sleep=_no_sleep)
    stored = StoredFile(key="abc.pdf", public_url="https://files/abc.pdf")

    with pytest.raises(ExtractionServiceError, match="endpoint unreachable") as excinfo:
        asyncio.run(extractor.extract(b"%PDF", "cv.pdf", PDF_MIME, stored))
    assert excinfo.value.status_code == 500


def test_pipeline_rejects_textract_without_s3_storage(config):
    config.extraction.backend = "textract"
    config.storage.backend = "supabase"
    with pytest.raises(AgentError, match="STORAGE_BACKEND=s3"):
        build_pipeline(config)


def test_pipeline_accepts_textract_with_s3_storage(config):
    config.extraction.backend = "textract"
    config.storage.backend = "s3"
    pipeline = build_pipeline(config)
    assert isinstance(pipeline.extractor, TextractTextExtractor)
