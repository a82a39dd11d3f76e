import json

import pytest

from conftest import ANALYSIS_JSON, SUMMARY_JSON, FakeModel
from app.core.config import settings
from app.schemas.planning import PlanningDocumentAnalysis, PlanningDocumentSummary, RiskLevel
from app.services.exceptions import SchemaError, UnreadableDocumentError, UpstreamError
from app.services.extraction import PlanningExtractionAdapter, extract_pdf_text, find_json_object, parse_model_json


def test_parse_plain_json():
    summary = parse_model_json(SUMMARY_JSON, PlanningDocumentSummary, "summary")
    assert summary.site.local_authority == "Exampleton DC"
    assert summary.proposal.route == ["PIP"]
    assert summary.fees.planning_authority_fee.amount == 2688.0
    assert summary.fees.agent_fee.vat_excluded is True


def test_parse_recovers_json_wrapped_in_prose_and_fences():
    raw = "Here is the extraction:\n```json\n" + ANALYSIS_JSON + "\n```\nLet me know if you need more."
    analysis = parse_model_json(raw, PlanningDocumentAnalysis, "analysis")
    assert analysis.risk_level == RiskLevel.MEDIUM
    assert analysis.key_issues == ["Highways access"]


def test_find_json_object_respects_braces_inside_strings():
    raw = 'noise {"headlineRisk": "uses {curly} braces and a \\"quote\\"", "keyIssues": []} trailing }'
    assert find_json_object(raw) == '{"headlineRisk": "uses {curly} braces and a \\"quote\\"", "keyIssues": []}'


def test_find_json_object_skips_unparseable_candidates():
    raw = "{not json} then {\"riskLevel\": \"LOW\"}"
    assert find_json_object(raw) == '{"riskLevel": "LOW"}'


def test_parse_without_json_raises_schema_error():
    with pytest.raises(SchemaError) as exc:
        parse_model_json("Sorry, I cannot help with that.", PlanningDocumentSummary, "summary")
    assert exc.value.artifact == "summary"


def test_parse_rejects_non_object_json():
    with pytest.raises(SchemaError):
        parse_model_json('["a", "b"]', PlanningDocumentAnalysis, "analysis")


def test_schema_violation_raises_schema_error():
    with pytest.raises(SchemaError):
        parse_model_json('{"riskLevel": "SEVERE"}', PlanningDocumentAnalysis, "analysis")
    with pytest.raises(SchemaError):
        parse_model_json('{"fees": {"agentFee": {"currency": "EUR"}}}', PlanningDocumentSummary, "summary")


def test_reply_without_artifact_keys_raises_schema_error():
    with pytest.raises(SchemaError):
        parse_model_json('{"error": "I cannot read this document"}', PlanningDocumentSummary, "summary")
    with pytest.raises(SchemaError):
        parse_model_json("{}", PlanningDocumentAnalysis, "analysis")


def test_analysis_shaped_reply_to_summary_prompt_raises_schema_error():
    with pytest.raises(SchemaError):
        parse_model_json(ANALYSIS_JSON, PlanningDocumentSummary, "summary")
    with pytest.raises(SchemaError):
        parse_model_json(SUMMARY_JSON, PlanningDocumentAnalysis, "analysis")


def test_missing_top_level_key_raises_schema_error():
    data = json.loads(SUMMARY_JSON)
    del data["documentsRequired"]
    with pytest.raises(SchemaError):
        parse_model_json(json.dumps(data), PlanningDocumentSummary, "summary")


def test_nulls_default_to_empty_structures():
    summary = parse_model_json(
        '{"site": null, "proposal": {"route": null, "isHousingLed": null}, "process": null,'
        ' "fees": null, "documentsRequired": null, "meta": null}',
        PlanningDocumentSummary,
        "summary",
    )
    assert summary.site.name is None
    assert summary.proposal.route == []
    assert summary.proposal.is_housing_led is False
    assert summary.documents_required == []
    assert summary.fees.planning_authority_fee.currency == "GBP"


def test_summary_dumps_camel_case():
    summary = parse_model_json(SUMMARY_JSON, PlanningDocumentSummary, "summary")
    dumped = summary.model_dump(by_alias=True, mode="json")
    assert set(dumped) == {"site", "proposal", "process", "fees", "documentsRequired", "meta"}
    assert "localAuthority" in dumped["site"]
    assert "planningAuthorityFee" in dumped["fees"]


def test_summarize_text_sets_source_file_name_and_prompt():
    model = FakeModel()
    adapter = PlanningExtractionAdapter(generate=model)

    summary = adapter.summarize_text("Some planning text", "pip-application.pdf")

    assert summary.meta.source_file_name == "pip-application.pdf"
    prompt = model.contents[0]
    assert "Some planning text" in prompt
    assert 'Set "sourceFileName" to "pip-application.pdf"' in prompt


def test_long_text_is_truncated(monkeypatch):
    monkeypatch.setattr(settings, "MAX_PROMPT_CHARS", 100)
    model = FakeModel()
    adapter = PlanningExtractionAdapter(generate=model)

    adapter.analyze_text("A" * 90 + "B" * 500, "long.pdf")

    prompt = model.contents[0]
    assert "A" * 90 + "B" * 10 in prompt
    assert "B" * 11 not in prompt


def test_upstream_error_propagates():
    model = FakeModel()
    model.summary = UpstreamError("gemini", "generate_content", "429 resource exhausted")
    adapter = PlanningExtractionAdapter(generate=model)

    with pytest.raises(UpstreamError):
        adapter.summarize_text("text", "doc.pdf")


def test_undecodable_image_raises_content_error():
    adapter = PlanningExtractionAdapter(generate=FakeModel())
    with pytest.raises(UnreadableDocumentError):
        adapter.analyze_image(b"garbage", "image/png", "plan.png")


def test_unreadable_pdf_raises_content_error():
    with pytest.raises(UnreadableDocumentError):
        extract_pdf_text(b"%PDF-1.4\nthis is not really a pdf")
