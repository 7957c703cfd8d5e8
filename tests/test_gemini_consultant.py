from __future__ import annotations

import pytest
import requests

import gemini_consultant
from gemini_consultant import (
    GeminiConsultant,
    GeminiError,
    build_analysis_contents,
    build_chat_contents,
    extract_text,
)


def gemini_body(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}], "role": "model"}}]}


class FakeResponse:
    def __init__(self, status_code: int = 200, body=None) -> None:
        self.status_code = status_code
        self._body = body
        self.text = str(body)

    def json(self):
        if self._body is None:
            raise ValueError("invalid json")
        return self._body

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error", response=self)


@pytest.fixture()
def post(monkeypatch):
    calls = []
    responses = []

    def fake_post(url, params=None, json=None, headers=None, timeout=None):
        calls.append({"url": url, "params": params, "json": json})
        result = responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    monkeypatch.setattr(gemini_consultant.requests, "post", fake_post)
    fake_post.calls = calls
    fake_post.responses = responses
    return fake_post


def test_extract_text() -> None:
    assert extract_text(gemini_body("Lavender likes sun.")) == "Lavender likes sun."


@pytest.mark.parametrize("data", [{}, {"candidates": []}, {"candidates": [{"content": {"parts": []}}]}])
def test_extract_text_rejects_unexpected_shapes(data) -> None:
    with pytest.raises(GeminiError):
        extract_text(data)


def test_chat_contents_map_roles_and_drop_bad_entries() -> None:
    history = [
        {"role": "user", "content": "What is valerian?"},
        {"role": "assistant", "content": "A sleep herb."},
        {"role": "system", "content": "ignored"},
        {"role": "user"},
        "not a dict",
    ]

    contents = build_chat_contents("Can I grow it indoors?", history)

    roles = [c["role"] for c in contents]
    assert roles == ["user", "model", "user", "model", "user"]
    assert contents[3]["parts"][0]["text"] == "A sleep herb."
    assert contents[-1]["parts"][0]["text"] == "Can I grow it indoors?"


def test_analysis_prompt_mentions_plant() -> None:
    contents = build_analysis_contents({"name": "Ginger", "scientific_name": "Zingiber officinale",
                                        "medical_uses": ["Nausea", "Digestion"]})
    prompt = contents[0]["parts"][0]["text"]

    assert "Ginger" in prompt
    assert "Zingiber officinale" in prompt
    assert "Nausea, Digestion" in prompt
    assert "Description: not specified" in prompt


def test_consult_calls_generate_content(post) -> None:
    post.responses.append(FakeResponse(body=gemini_body("Yes, in a bright window.")))
    consultant = GeminiConsultant("gem-key", model="gemini-test")

    reply = consultant.consult("Can I grow basil indoors?", [])

    assert reply == "Yes, in a bright window."
    call = post.calls[0]
    assert call["url"].endswith("/models/gemini-test:generateContent")
    assert call["params"] == {"key": "gem-key"}
    assert call["json"]["contents"][-1]["parts"][0]["text"] == "Can I grow basil indoors?"


def test_analyze_plant(post) -> None:
    post.responses.append(FakeResponse(body=gemini_body("Curcumin is anti-inflammatory.")))

    insights = GeminiConsultant("gem-key").analyze_plant({"name": "Turmeric"})

    assert insights == "Curcumin is anti-inflammatory."


def test_missing_key_fails_without_request(post) -> None:
    with pytest.raises(GeminiError, match="not configured"):
        GeminiConsultant("").consult("Hello", [])
    assert post.calls == []


def test_http_error_detail(post) -> None:
    post.responses.append(FakeResponse(status_code=400, body={"error": {"message": "API key not valid."}}))

    with pytest.raises(GeminiError, match="API key not valid."):
        GeminiConsultant("bad-key").consult("Hello", [])


def test_timeout(post) -> None:
    post.responses.append(requests.exceptions.Timeout())

    with pytest.raises(GeminiError, match="timed out"):
        GeminiConsultant("gem-key").consult("Hello", [])
