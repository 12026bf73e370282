"""Tests for the imagery, analysis and report stages."""

import copy
import json
from datetime import datetime

import httpx
import pytest

from conftest import PLACEHOLDER_URL, SAMPLE_ANALYSIS, SAMPLE_USAGE, analysis_handler, completion_body, make_inference_client
from roofdynamics.exceptions import (
    ConfigurationError,
    ContractViolationError,
    PreconditionError,
    RunNotFoundError,
    UpstreamError,
)
from roofdynamics.stages import AnalysisStage, ImageryStage, ReportStage
from roofdynamics.stages.analysis import SYSTEM_PROMPT, parse_analysis


def _failing_handler(status_code, text):
    def handler(request):
        return httpx.Response(status_code, text=text)
    return handler


# Imagery

def test_imagery_stage_writes_placeholder(store, test_db):
    """Imagery moves the run to processing and records the placeholder."""
    run = store.create("9 Birch Ln")
    captured = datetime(2025, 3, 1, 12, 0, 0)
    stage = ImageryStage(test_db, PLACEHOLDER_URL, clock=lambda: captured)

    result = stage.execute({"run_id": str(run.id), "address": "9 Birch Ln"})

    run = store.require(run.id)
    assert result.success
    assert run.status == "processing"
    assert run.current_step == "imagery_complete"
    assert run.imagery["address"] == "9 Birch Ln"
    assert run.imagery["coordinates"] == {"lat": 40.7128, "lng": -74.0060}
    assert run.imagery["satellite_url"] == PLACEHOLDER_URL
    assert run.imagery["date_captured"] == "2025-03-01T12:00:00"
    assert result.to_response() == {"success": True, "imagery": run.imagery}


def test_imagery_stage_unknown_run(test_db):
    """An unknown run id propagates as an error."""
    stage = ImageryStage(test_db, PLACEHOLDER_URL)

    with pytest.raises(RunNotFoundError):
        stage.execute({"run_id": "00000000-0000-0000-0000-000000000000", "address": "x"})


def test_imagery_stage_records_its_own_failure(store, test_db):
    """A stage failure is written to the run before it propagates."""
    run = store.create("9 Birch Ln")

    def broken_clock():
        raise RuntimeError("clock unavailable")

    stage = ImageryStage(test_db, PLACEHOLDER_URL, clock=broken_clock)
    with pytest.raises(RuntimeError):
        stage.execute({"run_id": str(run.id)})

    run = store.require(run.id)
    assert run.status == "failed"
    assert run.current_step == "failed"
    assert run.error_message == "clock unavailable"


# Analysis

def test_analysis_stage_passes_json_through(imaged_run, store, test_db):
    """The parsed response is stored unmodified, with usage metadata."""
    calls = []
    stage = AnalysisStage(test_db, make_inference_client(analysis_handler(calls=calls)))

    result = stage.execute({"run_id": str(imaged_run.id)})

    run = store.require(imaged_run.id)
    assert run.analysis == SAMPLE_ANALYSIS
    assert run.current_step == "analysis_complete"
    assert run.status == "processing"
    assert run.run_metadata == {"token_usage": SAMPLE_USAGE, "model_used": "gpt-4o-mini"}
    assert result.data["analysis"] == SAMPLE_ANALYSIS

    request = calls[0]
    assert request["response_format"] == {"type": "json_object"}
    assert request["temperature"] == 0.2
    assert request["messages"][0] == {"role": "system", "content": SYSTEM_PROMPT}
    assert '"123 Main St, Springfield, IL"' in request["messages"][1]["content"]


def test_analysis_stage_keeps_unknown_fields(imaged_run, store, test_db):
    """Extra keys in the model output survive untouched."""
    analysis = dict(SAMPLE_ANALYSIS, confidence={"score": 0.8}, risks=[])
    stage = AnalysisStage(test_db, make_inference_client(analysis_handler(analysis)))

    stage.execute({"run_id": str(imaged_run.id)})

    assert store.require(imaged_run.id).analysis == analysis


def test_analysis_stage_cancelled_before_call(imaged_run, store, test_db):
    """A set flag cancels the run without calling the API."""
    calls = []
    store.request_cancel(imaged_run.id)
    stage = AnalysisStage(test_db, make_inference_client(analysis_handler(calls=calls)))

    result = stage.execute({"run_id": str(imaged_run.id)})

    run = store.require(imaged_run.id)
    assert result.cancelled
    assert result.to_response() == {"success": False, "cancelled": True}
    assert run.status == "cancelled"
    assert run.current_step == "cancelled"
    assert run.analysis is None
    assert calls == []


def test_analysis_stage_missing_credential(imaged_run, store, test_db):
    """No API key is a configuration error that fails the run."""
    client = make_inference_client(analysis_handler(), api_key=None)
    stage = AnalysisStage(test_db, client)

    with pytest.raises(ConfigurationError):
        stage.execute({"run_id": str(imaged_run.id)})

    run = store.require(imaged_run.id)
    assert run.status == "failed"
    assert run.error_message == "OpenAI API key not configured"


def test_analysis_stage_upstream_error(imaged_run, store, test_db):
    """A non-2xx answer fails the run with the upstream text."""
    stage = AnalysisStage(test_db, make_inference_client(_failing_handler(429, "rate limited")))

    with pytest.raises(UpstreamError):
        stage.execute({"run_id": str(imaged_run.id)})

    run = store.require(imaged_run.id)
    assert run.status == "failed"
    assert run.error_message == "OpenAI API error: 429 rate limited"
    assert run.analysis is None


def test_analysis_stage_invalid_json(imaged_run, store, test_db):
    """Non-JSON content is a contract violation, not a retry."""
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json=completion_body("Sure! Here is your report."))

    stage = AnalysisStage(test_db, make_inference_client(handler))

    with pytest.raises(ContractViolationError):
        stage.execute({"run_id": str(imaged_run.id)})

    run = store.require(imaged_run.id)
    assert run.status == "failed"
    assert run.current_step == "failed"
    assert run.error_message == "OpenAI returned invalid JSON"
    assert len(calls) == 1


@pytest.mark.parametrize("content", [
    json.dumps(["not", "an", "object"]),
    json.dumps({"cost_breakdown": {"total_usd": "a lot"}}),
    json.dumps({"cost_breakdown": {"total_usd": "14850"}}),
    json.dumps({"measurements": {"total_area_sqft": True}}),
    json.dumps({"risks": "none"}),
])
def test_parse_analysis_rejects_wrong_shape(content):
    """Valid JSON of the wrong shape is rejected."""
    with pytest.raises(ContractViolationError):
        parse_analysis(content)


def test_analysis_stage_rejects_numeric_strings(imaged_run, store, test_db):
    """A cost given as a string fails the run instead of reaching the report as zero."""
    analysis = copy.deepcopy(SAMPLE_ANALYSIS)
    analysis["cost_breakdown"]["total_usd"] = "14850"
    stage = AnalysisStage(test_db, make_inference_client(analysis_handler(analysis)))

    with pytest.raises(ContractViolationError):
        stage.execute({"run_id": str(imaged_run.id)})

    run = store.require(imaged_run.id)
    assert run.status == "failed"
    assert run.analysis is None
    assert "analysis schema" in run.error_message


def test_analysis_stage_response_without_choices(imaged_run, store, test_db):
    """A body without a message is an invalid response."""
    def handler(request):
        return httpx.Response(200, json={"choices": []})

    stage = AnalysisStage(test_db, make_inference_client(handler))

    with pytest.raises(ContractViolationError):
        stage.execute({"run_id": str(imaged_run.id)})

    assert store.require(imaged_run.id).error_message == "Invalid response from OpenAI API"


# Report

def _analysed_run(imaged_run, test_db):
    AnalysisStage(test_db, make_inference_client(analysis_handler())).execute({"run_id": str(imaged_run.id)})
    return imaged_run


def test_report_stage_stores_text_report(imaged_run, store, test_db, artifact_store, tmp_path):
    """The plain-text report is stored and its URL written to the run."""
    run = _analysed_run(imaged_run, test_db)
    stage = ReportStage(test_db, artifact_store)

    result = stage.execute({"run_id": str(run.id)})

    run = store.require(run.id)
    name = f"roof-report-{run.id}.txt"
    assert run.pdf_url == f"http://testserver/artifacts/{name}"
    assert run.current_step == "pdf_complete"
    assert result.data["url"] == run.pdf_url
    assert result.data["html_url"].endswith(f"roof-report-{run.id}.html")

    text = (tmp_path / "artifacts" / name).read_text(encoding="utf-8")
    assert "TOTAL ESTIMATED COST: $14,850" in text
    assert "Property Address: 123 Main St, Springfield, IL" in text


def test_report_stage_requires_analysis(imaged_run, store, test_db, artifact_store):
    """Without an analysis the stage fails and pdf_url stays empty."""
    stage = ReportStage(test_db, artifact_store)

    with pytest.raises(PreconditionError):
        stage.execute({"run_id": str(imaged_run.id)})

    run = store.require(imaged_run.id)
    assert run.pdf_url is None
    assert run.status == "failed"
    assert run.error_message == "No analysis data found for report generation"


def test_report_stage_cancelled(imaged_run, store, test_db, artifact_store):
    """A set flag cancels before anything is rendered."""
    run = _analysed_run(imaged_run, test_db)
    store.request_cancel(run.id)

    result = ReportStage(test_db, artifact_store).execute({"run_id": str(run.id)})

    run = store.require(run.id)
    assert result.cancelled
    assert run.status == "cancelled"
    assert run.analysis == SAMPLE_ANALYSIS
    assert run.pdf_url is None


def test_report_stage_storage_failure(imaged_run, store, test_db):
    """A storage error fails the run."""
    class BrokenStore:
        def put(self, name, data, content_type):
            raise UpstreamError("Storage upload failed: 503 unavailable")

    run = _analysed_run(imaged_run, test_db)

    with pytest.raises(UpstreamError):
        ReportStage(test_db, BrokenStore()).execute({"run_id": str(run.id)})

    run = store.require(run.id)
    assert run.status == "failed"
    assert run.error_message == "Storage upload failed: 503 unavailable"
    assert run.pdf_url is None


def test_report_stage_stores_text_report_first(imaged_run, store, test_db):
    """The run's text artifact is written before the HTML rendering."""
    names = []

    class HtmlFailsStore:
        def put(self, name, data, content_type):
            names.append(name)
            if name.endswith(".html"):
                raise UpstreamError("Storage upload failed: 503 unavailable")
            return f"http://testserver/artifacts/{name}"

    run = _analysed_run(imaged_run, test_db)

    with pytest.raises(UpstreamError):
        ReportStage(test_db, HtmlFailsStore()).execute({"run_id": str(run.id)})

    assert names == [f"roof-report-{run.id}.txt", f"roof-report-{run.id}.html"]
    run = store.require(run.id)
    assert run.status == "failed"
    assert run.pdf_url is None
