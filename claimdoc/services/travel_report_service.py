"""
Medical travel reports and travel medicine questions
"""

from datetime import datetime, timezone
from typing import List

from claimdoc.config import settings
from claimdoc.core.exceptions import ValidationError
from claimdoc.core.logging import get_logger
from claimdoc.models.travel import (
    SUPPORTED_REPORT_LANGUAGES,
    GeneratedTravelReport,
    TravelLanguage,
    TravelQueryAnswer,
    TravelQueryRequest,
    TravelReport,
    TravelReportMetadata,
    TravelReportRequest,
)
from claimdoc.prompts.travel import (
    TRAVEL_QUERY_SYSTEM_PROMPT,
    render_patient_context,
    render_travel_report_prompt,
    render_travel_report_system_prompt,
)
from claimdoc.services.llm_service import LLMService

logger = get_logger(__name__)


class TravelReportService:
    """Generates medical travel reports for patients seeking care abroad"""

    def __init__(self, llm: LLMService):
        self.llm = llm
        self.model = settings.travel_report_model

    @staticmethod
    def supported_languages() -> List[TravelLanguage]:
        return [TravelLanguage(code=code, name=name) for code, name in SUPPORTED_REPORT_LANGUAGES.items()]

    async def generate_report(self, request: TravelReportRequest) -> TravelReport:
        if request.language not in SUPPORTED_REPORT_LANGUAGES:
            raise ValidationError(
                f"Unsupported report language: {request.language}",
                {"supported": list(SUPPORTED_REPORT_LANGUAGES)},
            )
        if not request.visits:
            raise ValidationError("At least one visit is required to generate a travel report")

        visits = sorted(request.visits, key=lambda visit: visit.visit_date, reverse=True)
        logger.info(
            f"Generating medical travel report in {request.language}",
            patient_id=request.patient.id,
            visit_count=len(visits),
        )

        generated = await self.llm.complete_structured(
            stage="travel_report",
            response_model=GeneratedTravelReport,
            system_prompt=render_travel_report_system_prompt(SUPPORTED_REPORT_LANGUAGES[request.language]),
            user_prompt=render_travel_report_prompt(request.patient, visits),
            temperature=0.2,
            max_tokens=2500,
            model=self.model,
        )

        return TravelReport(
            **generated.model_dump(),
            metadata=TravelReportMetadata(
                patient_id=request.patient.id,
                generated_at=datetime.now(timezone.utc),
                language=request.language,
                model=self.model,
            ),
        )

    async def answer_query(self, request: TravelQueryRequest) -> TravelQueryAnswer:
        context = render_patient_context(request.patient)
        user_prompt = f"{context}\n\n{request.query}" if context else request.query

        answer = await self.llm.complete(
            stage="travel_query",
            system_prompt=TRAVEL_QUERY_SYSTEM_PROMPT,
            user_prompt=user_prompt,
            temperature=0.7,
            max_tokens=1000,
            model=self.model,
        )
        return TravelQueryAnswer(answer=answer.strip())
