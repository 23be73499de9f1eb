"""
Enhancement pipeline tests against a scripted LLM
"""

import asyncio
import json

import pytest

from claimdoc.core.exceptions import UpstreamCallError, UpstreamDecodeError
from claimdoc.models.enhancement import CodingResult, NarrativeResult, SynthesisResult, AnalysisResult
from claimdoc.prompts.enhancement import IMPLEMENTED_CHANGE_CATEGORIES
from claimdoc.services.enhancement_pipeline import EnhancementPipeline, aggregate_results

from conftest import (
    ANALYSIS_PAYLOAD,
    CODING_PAYLOAD,
    NARRATIVE_PAYLOAD,
    SYNTHESIS_TEXT,
    ScriptedLLM,
    stage_replies,
)


def make_pipeline(llm, **kwargs):
    kwargs.setdefault("concurrent_stages", False)
    kwargs.setdefault("analysis_uses_narrative", False)
    return EnhancementPipeline(llm, region="MENA", **kwargs)


async def test_full_run_returns_aggregated_result(enhancement_request):
    llm = ScriptedLLM(stage_replies())

    result = await make_pipeline(llm).run(enhancement_request, request_id="req-1")

    assert llm.stages == ["coding", "narrative", "synthesis", "analysis"]
    assert result.formatted_note == SYNTHESIS_TEXT
    assert result.enhanced_note.chief_complaint == "Headache for 3 days"
    assert result.enhanced_note.primary_assessment.icd10_code == "G44.2"
    assert len(result.enhanced_note.secondary_assessments) == 1
    assert result.gaps_resolved == ["Added allergy status"]


async def test_stage_call_parameters(enhancement_request):
    llm = ScriptedLLM(stage_replies())

    await make_pipeline(llm).run(enhancement_request)

    expected = {
        "coding": (0.2, 1500, True),
        "narrative": (0.3, 2000, True),
        "synthesis": (0.3, 2500, False),
        "analysis": (0.2, 1000, True),
    }
    for stage, (temperature, max_tokens, json_mode) in expected.items():
        call = llm.call_for(stage)
        assert (call.temperature, call.max_tokens, call.json_mode) == (temperature, max_tokens, json_mode)
    assert "MENA" in llm.call_for("coding").system_prompt


async def test_synthesis_prompt_carries_both_structured_results(enhancement_request):
    llm = ScriptedLLM(stage_replies())

    await make_pipeline(llm).run(enhancement_request)

    prompt = llm.call_for("synthesis").user_prompt
    assert "G44.2" in prompt
    assert "99213" in prompt
    assert "Headache for 3 days" in prompt
    assert enhancement_request.notes in prompt


async def test_unparseable_coding_reply_aborts_before_other_stages(enhancement_request):
    llm = ScriptedLLM(stage_replies(coding="Sure! Here are the codes: I10"))

    with pytest.raises(UpstreamDecodeError) as exc_info:
        await make_pipeline(llm).run(enhancement_request)

    assert exc_info.value.stage == "coding"
    assert llm.stages == ["coding"]


async def test_coding_reply_without_secondary_is_a_decode_failure(enhancement_request):
    payload = dict(CODING_PAYLOAD, assessments=CODING_PAYLOAD["assessments"][:1])
    llm = ScriptedLLM(stage_replies(coding=json.dumps(payload)))

    with pytest.raises(UpstreamDecodeError, match="coding"):
        await make_pipeline(llm).run(enhancement_request)


async def test_analysis_extra_key_fails_whole_run(enhancement_request):
    analysis = dict(ANALYSIS_PAYLOAD, overallScore=9)
    llm = ScriptedLLM(stage_replies(analysis=json.dumps(analysis)))

    with pytest.raises(UpstreamDecodeError) as exc_info:
        await make_pipeline(llm).run(enhancement_request)

    assert exc_info.value.stage == "analysis"
    assert llm.stages == ["coding", "narrative", "synthesis", "analysis"]


async def test_blank_synthesis_is_a_decode_failure(enhancement_request):
    llm = ScriptedLLM(stage_replies(synthesis="   "))

    with pytest.raises(UpstreamDecodeError) as exc_info:
        await make_pipeline(llm).run(enhancement_request)

    assert exc_info.value.stage == "synthesis"
    assert "analysis" not in llm.stages


async def test_upstream_failure_stops_the_pipeline(enhancement_request):
    llm = ScriptedLLM(stage_replies(narrative=UpstreamCallError("openai", "narrative: upstream returned HTTP 500", 500)))

    with pytest.raises(UpstreamCallError):
        await make_pipeline(llm).run(enhancement_request)

    assert llm.stages == ["coding", "narrative"]


async def test_synthesis_server_error_skips_analysis(enhancement_request):
    llm = ScriptedLLM(stage_replies(synthesis=UpstreamCallError("openai", "synthesis: upstream returned HTTP 500", 500)))

    with pytest.raises(UpstreamCallError) as exc_info:
        await make_pipeline(llm).run(enhancement_request)

    assert exc_info.value.upstream_status == 500
    assert llm.stages == ["coding", "narrative", "synthesis"]
    assert "analysis" not in llm.stages


async def test_null_optional_fields_are_accepted(enhancement_request):
    coding = json.loads(json.dumps(CODING_PAYLOAD))
    coding["medications"][0].update(dosage=None, frequency=None)
    coding["assessments"][0]["clinicalEvidence"] = None
    coding["plan"][0]["medicalNecessity"] = None
    narrative = dict(NARRATIVE_PAYLOAD, pastMedicalHistory=None, followUp=None)
    llm = ScriptedLLM(stage_replies(coding=json.dumps(coding), narrative=json.dumps(narrative)))

    result = await make_pipeline(llm).run(enhancement_request)

    note = result.enhanced_note
    assert note.medications[0].dosage is None
    assert note.medications[0].rationale == "Analgesia"
    assert note.follow_up is None
    assert note.past_medical_history is None
    prompt = llm.call_for("synthesis").user_prompt
    assert "PMH: Not documented" in prompt
    assert "None" not in prompt.split("Follow-up:")[1]


async def test_null_required_narrative_field_is_a_decode_failure(enhancement_request):
    narrative = dict(NARRATIVE_PAYLOAD, chiefComplaint=None)
    llm = ScriptedLLM(stage_replies(narrative=json.dumps(narrative)))

    with pytest.raises(UpstreamDecodeError) as exc_info:
        await make_pipeline(llm).run(enhancement_request)

    assert exc_info.value.stage == "narrative"


async def test_narrative_prompt_asks_for_quoted_vitals(enhancement_request):
    llm = ScriptedLLM(stage_replies())

    await make_pipeline(llm).run(enhancement_request)

    assert "Every vital sign is a quoted string" in llm.call_for("narrative").user_prompt


async def test_review_feedback_reaches_every_stage(enhancement_request):
    request = enhancement_request.model_copy(update={"review_feedback": "Missing elements: allergies section"})
    llm = ScriptedLLM(stage_replies())

    await make_pipeline(llm).run(request)

    for stage in ("coding", "narrative", "synthesis", "analysis"):
        assert "Missing elements: allergies section" in llm.call_for(stage).user_prompt
    assert "If the feedback says a section is missing" in llm.call_for("synthesis").user_prompt


async def test_no_feedback_line_without_feedback(enhancement_request):
    llm = ScriptedLLM(stage_replies())

    await make_pipeline(llm).run(enhancement_request)

    assert "Review Feedback" not in llm.call_for("coding").user_prompt


async def test_analysis_uses_change_categories_by_default(enhancement_request):
    llm = ScriptedLLM(stage_replies())

    await make_pipeline(llm).run(enhancement_request)

    prompt = llm.call_for("analysis").user_prompt
    for category in IMPLEMENTED_CHANGE_CATEGORIES:
        assert category in prompt
    assert SYNTHESIS_TEXT not in prompt


async def test_analysis_can_use_the_synthesized_narrative(enhancement_request):
    llm = ScriptedLLM(stage_replies())

    await make_pipeline(llm, analysis_uses_narrative=True).run(enhancement_request)

    assert SYNTHESIS_TEXT in llm.call_for("analysis").user_prompt


async def test_concurrent_mode_produces_same_result(enhancement_request):
    sequential = await make_pipeline(ScriptedLLM(stage_replies())).run(enhancement_request)
    llm = ScriptedLLM(stage_replies())

    concurrent = await make_pipeline(llm, concurrent_stages=True).run(enhancement_request)

    assert concurrent == sequential
    assert llm.stages[2:] == ["synthesis", "analysis"]


async def test_concurrent_failure_cancels_sibling(enhancement_request):
    narrative_cancelled = asyncio.Event()

    async def slow_narrative():
        try:
            await asyncio.sleep(30)
        except asyncio.CancelledError:
            narrative_cancelled.set()
            raise
        return json.dumps(NARRATIVE_PAYLOAD)

    async def failing_coding():
        await asyncio.sleep(0)
        return "not json"

    llm = ScriptedLLM(stage_replies(coding=failing_coding, narrative=slow_narrative))

    with pytest.raises(UpstreamDecodeError):
        await asyncio.wait_for(make_pipeline(llm, concurrent_stages=True).run(enhancement_request), timeout=5)

    assert narrative_cancelled.is_set()
    assert "synthesis" not in llm.stages


def test_aggregate_merges_narrative_and_coding():
    result = aggregate_results(
        CodingResult.model_validate(CODING_PAYLOAD),
        NarrativeResult.model_validate(NARRATIVE_PAYLOAD),
        SynthesisResult(text=SYNTHESIS_TEXT),
        AnalysisResult.model_validate(ANALYSIS_PAYLOAD),
    )

    dumped = result.model_dump(by_alias=True)
    note = dumped["enhancedNote"]
    assert note["chiefComplaint"] == "Headache for 3 days"
    assert note["assessments"][0]["icd10Code"] == "G44.2"
    assert note["medications"][0]["name"] == "Paracetamol"
    assert dumped["formattedNote"] == SYNTHESIS_TEXT
    assert dumped["inconsistenciesFound"] == ANALYSIS_PAYLOAD["inconsistenciesFound"]
