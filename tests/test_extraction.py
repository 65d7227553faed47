import json
import os
import time
from datetime import date
from types import SimpleNamespace

import pytest

from smb_advisor.config import ExtractionConfig
from smb_advisor.extraction import (
    EXTRACTION_PROMPT,
    MESSAGE_EXTRACTED,
    MESSAGE_FAILED,
    MESSAGE_NO_API_KEY,
    ExtractionGuard,
    ExtractionInProgressError,
    analyze_document,
    parse_extraction_response,
)
from smb_advisor.storage import ObjectStore

SETTINGS = ExtractionConfig(
    model="gpt-4o-mini",
    api_key_env="SMB_ADVISOR_TEST_OPENAI_KEY",
    max_tokens=1000,
    temperature=0.1,
    timeout_seconds=5,
)

PAYLOAD = {
    "year": 2024,
    "revenue": 500000,
    "fixed_costs": 50000,
    "variable_costs": 300000,
    "payroll": 100000,
    "cash_flow": 20000,
    "notes": "Liasse 2033",
}


class FakeCompletions:
    """Records the call and returns a canned answer (or raises)."""

    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def make_client(completions: FakeCompletions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


@pytest.fixture
def stored_pdf(tmp_path):
    store = ObjectStore(tmp_path)
    path = store.upload("u1", "liasse.pdf", b"%PDF-1.4 fake")
    return store, path


def test_parse_extraction_response_finds_embedded_json():
    answer = "Voici les données :\n```json\n" + json.dumps(PAYLOAD) + "\n```\nCordialement."

    record = parse_extraction_response(answer)

    assert record.year == 2024
    assert record.revenue == 500_000.0
    assert record.notes == "Liasse 2033"


def test_parse_extraction_response_stops_after_first_object():
    answer = json.dumps(PAYLOAD) + " puis {\"autre\": 1}"

    assert parse_extraction_response(answer).payroll == 100_000.0


@pytest.mark.parametrize("answer", ["", "pas de json", "{invalid json}", '{"revenue": "n/a"}'])
def test_parse_extraction_response_rejects_garbage(answer):
    with pytest.raises(ValueError):
        parse_extraction_response(answer)


def test_analyze_document_success(stored_pdf):
    """The PDF is sent base64-encoded with the fixed prompt and model settings."""
    store, path = stored_pdf
    completions = FakeCompletions(content=json.dumps(PAYLOAD))

    result = analyze_document(store, path, SETTINGS, client=make_client(completions))

    assert result.success is True
    assert result.status == "extracted"
    assert result.is_fallback is False
    assert result.message == MESSAGE_EXTRACTED
    assert result.data.revenue == 500_000.0

    (call,) = completions.calls
    assert call["model"] == "gpt-4o-mini"
    assert call["max_tokens"] == 1000
    assert call["temperature"] == 0.1
    parts = call["messages"][0]["content"]
    assert parts[0]["text"] == EXTRACTION_PROMPT
    assert parts[1]["file"]["file_data"].startswith("data:application/pdf;base64,")


def test_analyze_document_without_api_key(stored_pdf, monkeypatch):
    """No key configured: placeholder data, no network call."""
    store, path = stored_pdf
    monkeypatch.delenv(SETTINGS.api_key_env, raising=False)

    result = analyze_document(store, path, SETTINGS)

    assert result.success is False
    assert result.status == "no_api_key"
    assert result.message == MESSAGE_NO_API_KEY
    assert result.data.year == date.today().year
    assert result.data.revenue == 0.0
    assert result.data.notes


def test_analyze_document_api_failure_falls_back(stored_pdf):
    store, path = stored_pdf
    completions = FakeCompletions(error=RuntimeError("boom"))

    result = analyze_document(store, path, SETTINGS, client=make_client(completions))

    assert result.success is False
    assert result.status == "failed"
    assert result.message == MESSAGE_FAILED
    assert result.data.cash_flow == 0.0


def test_analyze_document_unparseable_answer_falls_back(stored_pdf):
    store, path = stored_pdf
    completions = FakeCompletions(content="Je ne peux pas lire ce document.")

    result = analyze_document(store, path, SETTINGS, client=make_client(completions))

    assert result.status == "failed"


def test_analyze_document_missing_file_falls_back(tmp_path):
    store = ObjectStore(tmp_path)
    completions = FakeCompletions(content=json.dumps(PAYLOAD))

    result = analyze_document(store, "u1/missing.pdf", SETTINGS, client=make_client(completions))

    assert result.status == "failed"
    assert completions.calls == []


def test_extraction_guard_rejects_concurrent_requests():
    guard = ExtractionGuard()

    with guard.hold("u1"):
        assert guard.is_running("u1")
        with pytest.raises(ExtractionInProgressError):
            with guard.hold("u1"):
                pass
        # Other users are not blocked.
        with guard.hold("u2"):
            assert guard.is_running("u2")

    assert not guard.is_running("u1")
    assert not guard.is_running("u2")


def test_extraction_guard_released_on_error():
    guard = ExtractionGuard()

    with pytest.raises(RuntimeError):
        with guard.hold("u1"):
            raise RuntimeError("failure")

    assert not guard.is_running("u1")


def test_lock_file_guards_share_state_across_instances(tmp_path):
    """Two guards on one lock directory behave like two separate processes."""
    first = ExtractionGuard(lock_dir=tmp_path / "locks")
    second = ExtractionGuard(lock_dir=tmp_path / "locks")

    with first.hold("u1"):
        assert (tmp_path / "locks" / "u1.lock").is_file()
        assert second.is_running("u1")
        with pytest.raises(ExtractionInProgressError):
            with second.hold("u1"):
                pass
        with second.hold("u2"):
            assert first.is_running("u2")

    assert not (tmp_path / "locks" / "u1.lock").exists()
    assert not second.is_running("u1")
    with second.hold("u1"):
        assert first.is_running("u1")


def test_stale_lock_file_is_taken_over(tmp_path, caplog):
    lock_dir = tmp_path / "locks"
    lock_dir.mkdir()
    lock = lock_dir / "u1.lock"
    lock.write_text("12345", encoding="utf-8")
    old = time.time() - 120
    os.utime(lock, (old, old))

    guard = ExtractionGuard(lock_dir=lock_dir, stale_after=60)
    assert not guard.is_running("u1")

    with caplog.at_level("WARNING", logger="smb_advisor.extraction"):
        with guard.hold("u1"):
            assert guard.is_running("u1")

    assert "stale extraction lock" in caplog.text
    assert not lock.exists()


def test_lock_file_name_is_sanitized(tmp_path):
    guard = ExtractionGuard(lock_dir=tmp_path)

    with guard.hold("../evil"):
        assert (tmp_path / "___evil.lock").is_file()
