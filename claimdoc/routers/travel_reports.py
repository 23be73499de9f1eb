"""
Medical travel report endpoints
"""

from typing import List

from fastapi import APIRouter, Depends, Request

from claimdoc.config import settings
from claimdoc.core.security import get_current_user, limiter
from claimdoc.dependencies import get_travel_report_service
from claimdoc.models.responses import ApiResponse, ErrorResponse
from claimdoc.models.travel import (
    TravelLanguage,
    TravelQueryAnswer,
    TravelQueryRequest,
    TravelReport,
    TravelReportRequest,
)
from claimdoc.services.travel_report_service import TravelReportService

router = APIRouter(
    prefix="/travel-reports",
    tags=["travel-reports"],
    dependencies=[Depends(get_current_user)],
    responses={code: {"model": ErrorResponse} for code in (400, 401, 502, 503, 504)},
)


@router.post("/generate", response_model=ApiResponse[TravelReport])
@limiter.limit(f"{settings.rate_limit_requests}/minute")
async def generate_travel_report(
    request: Request,
    body: TravelReportRequest,
    travel_service: TravelReportService = Depends(get_travel_report_service),
):
    report = await travel_service.generate_report(body)
    return ApiResponse(data=report)


@router.post("/query", response_model=ApiResponse[TravelQueryAnswer])
@limiter.limit(f"{settings.rate_limit_requests}/minute")
async def travel_query(
    request: Request,
    body: TravelQueryRequest,
    travel_service: TravelReportService = Depends(get_travel_report_service),
):
    """Answers a free-text travel medicine question, optionally about a given patient."""
    answer = await travel_service.answer_query(body)
    return ApiResponse(data=answer)


@router.get("/languages", response_model=ApiResponse[List[TravelLanguage]])
async def supported_languages():
    return ApiResponse(data=TravelReportService.supported_languages())
