import asyncio
import json

import httpx
import pytest

from conftest import RecordingTransport, gemini_reply, json_response
from cv_intake.services.structuring_service import (
    StructuringService,
    build_prompt,
    coerce_structured_cv,
    default_structured_cv,
    parse_structured_cv,
)
from cv_intake.utils.exceptions import StructuringError


def test_parses_json_span_inside_prose():
    reply = 'here is the result: {"personal_info": {"name": "Jane Doe", "email": "jane@x.com"}} done'
    cv = parse_structured_cv(reply, "https://files/cv.pdf")

    assert cv.personal_info.name == "Jane Doe"
    assert cv.personal_info.email == "jane@x.com"
    assert cv.personal_info.linkedin == ""
    assert cv.education == [] and cv.qualifications == [] and cv.projects == []
    assert cv.cv_public_link == "https://files/cv.pdf"


def test_unparsable_reply_returns_fallback_shape():
    cv = parse_structured_cv("Sorry, I cannot help with that.")

    dumped = cv.model_dump()
    assert dumped["personal_info"] == {"name": "", "email": "", "phone": "", "address": "", "linkedin": ""}
    assert dumped["education"] == []
    assert dumped["qualifications"] == []
    assert dumped["projects"] == []
    assert cv == default_structured_cv()


def test_object_without_cv_sections_is_a_shape_mismatch():
    assert parse_structured_cv('{"answer": 42}') == default_structured_cv()


def test_mistyped_sections_are_coerced_individually():
    cv = coerce_structured_cv({
        "personal_info": "Jane Doe",
        "education": {"degree": "BSc Computer Science", "year": 2020},
        "qualifications": "Python",
        "projects": None,
    })

    assert cv.personal_info.name == ""
    assert cv.education == [{"degree": "BSc Computer Science", "year": 2020}]
    assert cv.qualifications == ["Python"]
    assert cv.projects == []


def test_personal_info_values_become_strings():
    cv = coerce_structured_cv({"personal_info": {"name": None, "phone": 5551234, "address": ["1 Main St", "Springfield"]}})
    assert cv.personal_info.name == ""
    assert cv.personal_info.phone == "5551234"
    assert cv.personal_info.address == "1 Main St, Springfield"


def test_prompt_embeds_cv_text_and_schema():
    prompt = build_prompt("BSc Computer Science, 2020")
    assert "BSc Computer Science, 2020" in prompt
    for key in ("personal_info", "education", "qualifications", "projects", "linkedin"):
        assert key in prompt


def test_structure_calls_gemini_and_parses_reply(config):
    body = {
        "personal_info": {"name": "Jane Doe"},
        "education": [{"degree": "BSc Computer Science", "year": "2020"}],
        "qualifications": ["Python"],
        "projects": [],
    }
    transport = RecordingTransport(json_response(200, gemini_reply("```json\n" + json.dumps(body) + "\n```")))
    service = StructuringService(config, transport=transport)

    cv = asyncio.run(service.structure("Jane Doe\nBSc Computer Science, 2020", "https://files/cv.pdf"))

    assert cv.education == [{"degree": "BSc Computer Science", "year": "2020"}]
    assert cv.cv_public_link == "https://files/cv.pdf"

    request = transport.requests[0]
    assert request.url.path.endswith("/models/gemini-1.5-flash:generateContent")
    assert request.headers["x-goog-api-key"] == "test-gemini-key"
    sent_prompt = json.loads(request.content)["contents"][0]["parts"][0]["text"]
    assert "BSc Computer Science, 2020" in sent_prompt


def test_garbage_reply_does_not_raise(config):
    transport = RecordingTransport(json_response(200, gemini_reply("{not json at all")))
    cv = asyncio.run(StructuringService(config, transport=transport).structure("some cv"))
    assert cv == default_structured_cv()


def test_empty_candidates_fall_back(config):
    transport = RecordingTransport(json_response(200, {"candidates": []}))
    cv = asyncio.run(StructuringService(config, transport=transport).structure("some cv"))
    assert cv == default_structured_cv()


def test_http_error_raises_structuring_error(config):
    transport = RecordingTransport(json_response(401, {"error": {"message": "API key not valid"}}))
    with pytest.raises(StructuringError, match="HTTP 401"):
        asyncio.run(StructuringService(config, transport=transport).structure("some cv"))


def test_transport_failure_raises_structuring_error(config):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    service = StructuringService(config, transport=httpx.MockTransport(refuse))
    with pytest.raises(StructuringError):
        asyncio.run(service.structure("some cv"))


def test_missing_api_key_raises(config):
    config.gemini_llm.api_key = None
    with pytest.raises(StructuringError, match="GEMINI_API_KEY"):
        asyncio.run(StructuringService(config).structure("some cv"))
