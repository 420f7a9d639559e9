"""Tests for reporthub/services/similarity"""

import json

import pytest
import requests

from reporthub.core.settings import Settings
from reporthub.services.container import EngineContainer
from reporthub.services.report_store import InMemoryReportStore
from reporthub.services.similarity import (
    FileSizeSimilarityOracle,
    GeminiSimilarityOracle,
    OracleError,
    ResilientSimilarityOracle,
    SimilarityResult,
    TransientOracleError,
    build_similarity_oracle,
)

from conftest import FixedClock, RecordingSink, ScriptedOracle, triage

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/gemini-2.5-flash:generateContent"


def gemini_body(score, reasoning="same pothole", confidence=90):
    text = json.dumps({"similarityScore": score, "isSameIssue": score >= 80, "reasoning": reasoning, "confidence": confidence})
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


@pytest.fixture
def photos(tmp_path):
    (tmp_path / "a.jpg").write_bytes(b"x" * 1000)
    (tmp_path / "b.jpg").write_bytes(b"x" * 900)
    return tmp_path


@pytest.fixture
def gemini(photos) -> GeminiSimilarityOracle:
    return GeminiSimilarityOracle(api_key="test-key", uploads_dir=str(photos))


class Sleeps:
    def __init__(self):
        self.delays = []

    def __call__(self, seconds):
        self.delays.append(seconds)


# ---------------------------------------------------------------------------
# SimilarityResult / photo resolution
# ---------------------------------------------------------------------------

def test_result_score_is_clamped():
    assert SimilarityResult(score=140, reasoning="", model_name="m").score == 100
    assert SimilarityResult(score=-3, reasoning="", model_name="m").score == 0


def test_photo_refs_resolve_under_uploads_dir(photos):
    oracle = FileSizeSimilarityOracle(uploads_dir=str(photos))
    assert oracle.photo_exists("a.jpg")
    assert oracle.photo_exists("/uploads/a.jpg")
    assert not oracle.photo_exists("missing.jpg")
    assert not oracle.photo_exists(None)


# ---------------------------------------------------------------------------
# Gemini oracle
# ---------------------------------------------------------------------------

def test_gemini_parses_score(gemini, requests_mock):
    adapter = requests_mock.post(GEMINI_URL, json=gemini_body(87))

    result = gemini.compare("a.jpg", "b.jpg")

    assert result.score == 87
    assert result.confidence == 90
    assert result.fallback_used is False
    assert adapter.last_request.qs["key"] == ["test-key"]
    parts = adapter.last_request.json()["contents"][0]["parts"]
    assert len(parts) == 3
    assert parts[1]["inline_data"]["mime_type"] == "image/jpeg"


def test_gemini_strips_markdown_fences(gemini, requests_mock):
    body = gemini_body(70)
    text = body["candidates"][0]["content"]["parts"][0]["text"]
    body["candidates"][0]["content"]["parts"][0]["text"] = f"```json\n{text}\n```"
    requests_mock.post(GEMINI_URL, json=body)
    assert gemini.compare("a.jpg", "b.jpg").score == 70


@pytest.mark.parametrize("status_code", [429, 500, 503])
def test_gemini_overload_is_transient(gemini, requests_mock, status_code):
    requests_mock.post(GEMINI_URL, status_code=status_code)
    with pytest.raises(TransientOracleError):
        gemini.compare("a.jpg", "b.jpg")


def test_gemini_timeout_is_transient(gemini, requests_mock):
    requests_mock.post(GEMINI_URL, exc=requests.exceptions.Timeout)
    with pytest.raises(TransientOracleError):
        gemini.compare("a.jpg", "b.jpg")


def test_gemini_bad_request_is_definitive(gemini, requests_mock):
    requests_mock.post(GEMINI_URL, status_code=400, text="bad request")
    with pytest.raises(OracleError) as excinfo:
        gemini.compare("a.jpg", "b.jpg")
    assert not isinstance(excinfo.value, TransientOracleError)


def test_gemini_unparseable_response_is_definitive(gemini, requests_mock):
    requests_mock.post(GEMINI_URL, json={"candidates": []})
    with pytest.raises(OracleError):
        gemini.compare("a.jpg", "b.jpg")


def test_gemini_unreadable_photo_raises(gemini, requests_mock):
    requests_mock.post(GEMINI_URL, json=gemini_body(90))
    with pytest.raises(OracleError):
        gemini.compare("a.jpg", "missing.jpg")


def test_gemini_without_key_is_disabled(photos):
    oracle = GeminiSimilarityOracle(api_key=None, uploads_dir=str(photos))
    assert oracle.is_enabled() is False
    with pytest.raises(OracleError):
        oracle.compare("a.jpg", "b.jpg")


# ---------------------------------------------------------------------------
# File-size fallback
# ---------------------------------------------------------------------------

def test_file_size_score_is_capped(photos):
    result = FileSizeSimilarityOracle(uploads_dir=str(photos)).compare("a.jpg", "a.jpg")
    assert result.score == 50
    assert result.confidence == 30
    assert result.fallback_used is True
    assert result.ai_processed is False


def test_file_size_missing_photo_raises(photos):
    with pytest.raises(OracleError):
        FileSizeSimilarityOracle(uploads_dir=str(photos)).compare("a.jpg", "missing.jpg")


# ---------------------------------------------------------------------------
# Retry then fallback
# ---------------------------------------------------------------------------

def make_resilient(primary, photos, sleeps, attempts=3):
    return ResilientSimilarityOracle(
        primary=primary,
        fallback=FileSizeSimilarityOracle(uploads_dir=str(photos)),
        max_attempts=attempts,
        retry_delay_seconds=5,
        sleep=sleeps,
    )


def test_transient_failure_retried_then_succeeds(photos):
    primary = ScriptedOracle()
    primary.set_score("a.jpg", "b.jpg", 88)
    primary.errors = [TransientOracleError("503"), TransientOracleError("503")]
    sleeps = Sleeps()

    result = make_resilient(primary, photos, sleeps).compare("a.jpg", "b.jpg")

    assert result.score == 88
    assert len(primary.calls) == 3
    assert sleeps.delays == [5, 5]


def test_exhausted_retries_use_fallback(photos):
    primary = ScriptedOracle()
    primary.errors = [TransientOracleError("503")] * 3
    sleeps = Sleeps()

    result = make_resilient(primary, photos, sleeps).compare("a.jpg", "b.jpg")

    assert result.fallback_used is True
    assert result.score <= 50
    assert len(primary.calls) == 3
    assert sleeps.delays == [5, 5]


def test_definitive_failure_skips_retries(photos):
    primary = ScriptedOracle()
    primary.errors = [OracleError("bad request")]
    sleeps = Sleeps()

    result = make_resilient(primary, photos, sleeps).compare("a.jpg", "b.jpg")

    assert result.fallback_used is True
    assert len(primary.calls) == 1
    assert sleeps.delays == []


def test_without_primary_fallback_is_used(photos):
    result = make_resilient(None, photos, Sleeps()).compare("a.jpg", "b.jpg")
    assert result.fallback_used is True


def test_gemini_retries_over_http(photos, requests_mock):
    requests_mock.post(GEMINI_URL, [
        {"status_code": 503},
        {"json": gemini_body(91)},
    ])
    sleeps = Sleeps()
    oracle = make_resilient(GeminiSimilarityOracle(api_key="k", uploads_dir=str(photos)), photos, sleeps)

    result = oracle.compare("a.jpg", "b.jpg")

    assert result.score == 91
    assert requests_mock.call_count == 2
    assert sleeps.delays == [5]


def test_build_similarity_oracle_respects_ai_toggle(photos):
    settings = Settings(AI_ENABLED=False, UPLOADS_DIR=str(photos))
    oracle = build_similarity_oracle(settings)
    assert oracle.primary is None
    assert oracle.get_model_info()["name"] == FileSizeSimilarityOracle.MODEL_NAME


def test_build_similarity_oracle_uses_retry_settings(photos):
    settings = Settings(
        AI_ENABLED=True,
        GEMINI_API_KEY="k",
        UPLOADS_DIR=str(photos),
        SIMILARITY_MAX_RETRIES=2,
        SIMILARITY_RETRY_DELAY_SECONDS=0.5,
    )
    oracle = build_similarity_oracle(settings)
    assert isinstance(oracle.primary, GeminiSimilarityOracle)
    assert oracle.max_attempts == 2
    assert oracle.retry_delay_seconds == 0.5


def test_gemini_outage_surfaces_low_confidence_submission(photos, requests_mock):
    requests_mock.post(GEMINI_URL, status_code=503)
    sleeps = Sleeps()
    oracle = make_resilient(GeminiSimilarityOracle(api_key="k", uploads_dir=str(photos)), photos, sleeps)
    service = EngineContainer(
        store=InMemoryReportStore(), oracle=oracle, sink=RecordingSink(), clock=FixedClock()
    ).report_service
    service.submit_report(12.0, 77.0, "a.jpg", triage())

    result = service.submit_report(12.0, 77.0, "b.jpg", triage())

    assert result.is_primary is True
    assert result.low_confidence is True
    assert requests_mock.call_count == 3
    assert sleeps.delays == [5, 5]
