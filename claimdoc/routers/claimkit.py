"""
ClaimKit partner endpoints
"""

from fastapi import APIRouter, Depends, Request

from claimdoc.config import settings
from claimdoc.core.logging import get_logger
from claimdoc.core.security import get_current_user, limiter
from claimdoc.dependencies import get_claimkit_service, get_review_store
from claimdoc.models.requests import (
    ClaimKitClaimRequest,
    ClaimKitDenialRequest,
    ClaimKitEnhanceRequest,
    ClaimKitReviewRequest,
)
from claimdoc.models.responses import (
    ApiResponse,
    ClaimKitEnhanceData,
    ClaimKitResultData,
    ClaimKitReviewData,
    ErrorResponse,
)
from claimdoc.services.claimkit_service import ClaimKitService
from claimdoc.services.review_store import ReviewSessionStore, ReviewSource

logger = get_logger(__name__)

router = APIRouter(
    prefix="/claimkit",
    tags=["claimkit"],
    dependencies=[Depends(get_current_user)],
    responses={code: {"model": ErrorResponse} for code in (400, 401, 404, 502, 503, 504)},
)


@router.post("/review-documentation", response_model=ApiResponse[ClaimKitReviewData])
@limiter.limit(f"{settings.rate_limit_requests}/minute")
async def review_documentation(
    request: Request,
    body: ClaimKitReviewRequest,
    claimkit_service: ClaimKitService = Depends(get_claimkit_service),
    review_store: ReviewSessionStore = Depends(get_review_store),
):
    """Sends doctor notes to ClaimKit for review and keeps the partner request for enhancement."""
    review = await claimkit_service.review_medical_documentation(body, request_id=request.state.request_id)
    session = await review_store.create(
        source=ReviewSource.CLAIMKIT,
        notes=body.doctor_notes,
        feedback=review.to_feedback_text(),
        partner_request_id=review.request_id,
    )
    logger.info(
        "ClaimKit review stored",
        request_id=request.state.request_id,
        review_id=session.review_id,
        findings=len(review.review),
    )
    return ApiResponse(
        data=ClaimKitReviewData(review_id=session.review_id, request_id=review.request_id, review=review.review)
    )


@router.post("/enhance-notes", response_model=ApiResponse[ClaimKitEnhanceData])
@limiter.limit(f"{settings.rate_limit_requests}/minute")
async def enhance_notes(
    request: Request,
    body: ClaimKitEnhanceRequest,
    claimkit_service: ClaimKitService = Depends(get_claimkit_service),
    review_store: ReviewSessionStore = Depends(get_review_store),
):
    """Asks ClaimKit to enhance a note it reviewed earlier."""
    session = await review_store.get(body.review_id, source=ReviewSource.CLAIMKIT)
    enhanced_notes = await claimkit_service.enhance_doctor_notes(
        session.partner_request_id,
        hospital_id=body.hospital_id,
        api_key=body.claimkit_api_key,
        request_id=request.state.request_id,
    )
    return ApiResponse(data=ClaimKitEnhanceData(review_id=session.review_id, enhanced_notes=enhanced_notes))


@router.post("/generate-claim", response_model=ApiResponse[ClaimKitResultData])
@limiter.limit(f"{settings.rate_limit_requests}/minute")
async def generate_claim(
    request: Request,
    body: ClaimKitClaimRequest,
    claimkit_service: ClaimKitService = Depends(get_claimkit_service),
):
    """Drafts an insurance claim from enhanced notes."""
    result = await claimkit_service.generate_insurance_claim(body, request_id=request.state.request_id)
    return ApiResponse(data=ClaimKitResultData(result=result))


@router.post("/handle-denial", response_model=ApiResponse[ClaimKitResultData])
@limiter.limit(f"{settings.rate_limit_requests}/minute")
async def handle_denial(
    request: Request,
    body: ClaimKitDenialRequest,
    claimkit_service: ClaimKitService = Depends(get_claimkit_service),
):
    """Requests a corrected claim for a denied one."""
    logger.info("ClaimKit denial correction requested", request_id=request.state.request_id)
    result = await claimkit_service.handle_claim_denial(body, request_id=request.state.request_id)
    return ApiResponse(data=ClaimKitResultData(result=result))
