"""
Doctor notes enhancement pipeline.

Four dependent LLM calls turn raw notes into a coded, structured clinical note:

    coding ──┐
             ├─> synthesis ──> analysis ──> aggregate
    narrative┘

Every stage reply is decoded strictly against its contract. Any failure
aborts the run: the caller gets the full EnhancementResult or an exception,
never a partial result.
"""

import asyncio
import time
from enum import Enum
from typing import Optional, Protocol, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError

from claimdoc.config import settings
from claimdoc.core.exceptions import UpstreamDecodeError
from claimdoc.core.logging import get_logger, audit_logger
from claimdoc.core.metrics import pipeline_runs, pipeline_stage_duration
from claimdoc.models.enhancement import (
    AnalysisResult,
    CodingResult,
    EnhancedNote,
    EnhancementResult,
    NarrativeResult,
    SynthesisResult,
)
from claimdoc.models.requests import EnhancementRequest
from claimdoc.prompts import enhancement as prompts

logger = get_logger(__name__)

PayloadT = TypeVar("PayloadT", bound=BaseModel)


class StageName(str, Enum):
    CODING = "coding"
    NARRATIVE = "narrative"
    SYNTHESIS = "synthesis"
    ANALYSIS = "analysis"


class CompletionClient(Protocol):
    async def complete(
        self,
        stage: str,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_tokens: int,
        json_mode: bool = False,
        model: Optional[str] = None,
    ) -> str:
        ...


def decode_stage_payload(stage: StageName, raw: str, model: Type[PayloadT]) -> PayloadT:
    """Parses and validates one stage reply. Nothing is coerced or repaired."""
    try:
        return model.model_validate_json(raw)
    except PydanticValidationError as e:
        errors = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        raise UpstreamDecodeError(
            stage.value,
            f"{stage.value} stage reply violates its contract",
            {"errors": errors[:10]},
        ) from e


def decode_text_payload(stage: StageName, raw: str) -> SynthesisResult:
    try:
        return SynthesisResult(text=raw)
    except PydanticValidationError as e:
        raise UpstreamDecodeError(stage.value, f"{stage.value} stage returned an empty narrative") from e


def aggregate_results(
    coding: CodingResult,
    narrative: NarrativeResult,
    synthesis: SynthesisResult,
    analysis: AnalysisResult,
) -> EnhancementResult:
    """Merges the four stage results. Coding fields win on overlap."""
    merged = {**narrative.model_dump(), **coding.model_dump()}
    return EnhancementResult(
        enhanced_note=EnhancedNote.model_validate(merged),
        formatted_note=synthesis.text,
        inconsistencies_found=list(analysis.inconsistencies_found),
        gaps_resolved=list(analysis.gaps_resolved),
        enhancements_implemented=list(analysis.enhancements_implemented),
    )


class EnhancementPipeline:
    """Runs the enhancement stages for one request at a time. Holds no per-run state."""

    def __init__(
        self,
        llm: CompletionClient,
        region: Optional[str] = None,
        concurrent_stages: Optional[bool] = None,
        analysis_uses_narrative: Optional[bool] = None,
        model: Optional[str] = None,
    ):
        self.llm = llm
        self.region = region or settings.documentation_region
        self.concurrent_stages = (
            settings.pipeline_concurrent_stages if concurrent_stages is None else concurrent_stages
        )
        self.analysis_uses_narrative = (
            settings.analysis_uses_narrative if analysis_uses_narrative is None else analysis_uses_narrative
        )
        self.model = model or settings.default_llm_model

    async def run(self, request: EnhancementRequest, request_id: Optional[str] = None) -> EnhancementResult:
        feedback = request.review_feedback
        logger.info(
            "Starting enhancement pipeline",
            request_id=request_id,
            notes_length=len(request.notes),
            has_feedback=bool(feedback),
            concurrent_stages=self.concurrent_stages,
        )

        try:
            if self.concurrent_stages:
                coding, narrative = await self._run_independent_stages_concurrently(request, feedback, request_id)
            else:
                coding = await self._coding_stage(request, feedback, request_id)
                narrative = await self._narrative_stage(request, feedback, request_id)

            synthesis = await self._synthesis_stage(request, feedback, coding, narrative, request_id)
            analysis = await self._analysis_stage(request, feedback, synthesis, request_id)
        except Exception:
            pipeline_runs.labels(outcome="failure").inc()
            raise

        pipeline_runs.labels(outcome="success").inc()
        logger.info("Enhancement pipeline completed", request_id=request_id)
        return aggregate_results(coding, narrative, synthesis, analysis)

    async def _run_independent_stages_concurrently(
        self,
        request: EnhancementRequest,
        feedback: Optional[str],
        request_id: Optional[str],
    ) -> Tuple[CodingResult, NarrativeResult]:
        coding_task = asyncio.create_task(self._coding_stage(request, feedback, request_id))
        narrative_task = asyncio.create_task(self._narrative_stage(request, feedback, request_id))
        try:
            coding, narrative = await asyncio.gather(coding_task, narrative_task)
        except BaseException:
            for task in (coding_task, narrative_task):
                task.cancel()
            await asyncio.gather(coding_task, narrative_task, return_exceptions=True)
            raise
        return coding, narrative

    async def _call_stage(
        self,
        stage: StageName,
        request_id: Optional[str],
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_tokens: int,
        json_mode: bool,
        payload_model: Type[PayloadT],
    ) -> PayloadT:
        start_time = time.time()
        outcome = "failure"
        try:
            raw = await self.llm.complete(
                stage=stage.value,
                system_prompt=system_prompt,
                user_prompt=user_prompt,
                temperature=temperature,
                max_tokens=max_tokens,
                json_mode=json_mode,
                model=self.model,
            )
            if json_mode:
                payload = decode_stage_payload(stage, raw, payload_model)
            else:
                payload = decode_text_payload(stage, raw)
            outcome = "success"
            return payload
        finally:
            duration = time.time() - start_time
            pipeline_stage_duration.labels(stage=stage.value).observe(duration)
            audit_logger.log_pipeline_stage(
                request_id=request_id,
                stage=stage.value,
                outcome=outcome,
                duration_ms=int(duration * 1000),
                model_used=self.model,
            )

    async def _coding_stage(self, request, feedback, request_id) -> CodingResult:
        return await self._call_stage(
            StageName.CODING,
            request_id,
            prompts.coding_system_prompt(self.region),
            prompts.render_coding_prompt(request, feedback, self.region),
            temperature=0.2,
            max_tokens=1500,
            json_mode=True,
            payload_model=CodingResult,
        )

    async def _narrative_stage(self, request, feedback, request_id) -> NarrativeResult:
        return await self._call_stage(
            StageName.NARRATIVE,
            request_id,
            prompts.narrative_system_prompt(self.region),
            prompts.render_narrative_prompt(request, feedback, self.region),
            temperature=0.3,
            max_tokens=2000,
            json_mode=True,
            payload_model=NarrativeResult,
        )

    async def _synthesis_stage(self, request, feedback, coding, narrative, request_id) -> SynthesisResult:
        return await self._call_stage(
            StageName.SYNTHESIS,
            request_id,
            prompts.SYNTHESIS_SYSTEM_PROMPT,
            prompts.render_synthesis_prompt(request, feedback, coding, narrative, self.region),
            temperature=0.3,
            max_tokens=2500,
            json_mode=False,
            payload_model=SynthesisResult,
        )

    async def _analysis_stage(self, request, feedback, synthesis: SynthesisResult, request_id) -> AnalysisResult:
        if self.analysis_uses_narrative:
            changes = synthesis.text
        else:
            changes = prompts.describe_implemented_changes()
        return await self._call_stage(
            StageName.ANALYSIS,
            request_id,
            prompts.ANALYSIS_SYSTEM_PROMPT,
            prompts.render_analysis_prompt(request, feedback, changes, self.region),
            temperature=0.2,
            max_tokens=1000,
            json_mode=True,
            payload_model=AnalysisResult,
        )
