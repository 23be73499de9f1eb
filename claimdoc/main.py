"""
ClaimDoc Engine - FastAPI Main Application
"""

import time
import traceback
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request, Depends, status, UploadFile, File
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from claimdoc.config import settings, Environment
from claimdoc.core.exceptions import ClaimDocError
from claimdoc.core.logging import setup_logging, get_logger, audit_logger
from claimdoc.core.metrics import request_count, request_duration
from claimdoc.core.security import get_current_user, limiter, security_manager
from claimdoc.dependencies import (
    close_services,
    get_enhancement_pipeline,
    get_llm_service,
    get_review_store,
    get_stt_service,
)
from claimdoc.models.documentation import ClinicalDocumentation
from claimdoc.models.enhancement import EnhancementResult
from claimdoc.models.requests import ClinicalDocumentationRequest, EnhancementRequest, ReviewRequest
from claimdoc.models.responses import (
    ApiResponse,
    ErrorResponse,
    HealthCheckResponse,
    RateLimitResponse,
    ReviewOutcome,
    TranscriptionResult,
)
from claimdoc.routers import claimkit, travel_reports
from claimdoc.services.enhancement_pipeline import EnhancementPipeline
from claimdoc.services.llm_service import LLMService
from claimdoc.services.review_store import ReviewSessionStore, ReviewSource, fingerprint_notes
from claimdoc.services.stt_service import STTService

# Initialize logging
setup_logging()
logger = get_logger(__name__)

STARTED_AT = time.time()

ERROR_RESPONSES: Dict[int, Dict[str, Any]] = {
    code: {"model": ErrorResponse} for code in (400, 401, 404, 429, 500, 502, 503, 504)
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    # Startup
    logger.info("ClaimDoc Engine starting...")
    logger.info(f"Environment: {settings.environment.value}")
    logger.info(f"API Version: {settings.api_version}")

    yield

    # Shutdown
    await close_services()
    logger.info("ClaimDoc Engine shutting down...")


# Create FastAPI app
app = FastAPI(
    title=settings.api_title,
    description=settings.api_description,
    version=settings.api_version,
    lifespan=lifespan,
    docs_url="/docs" if settings.environment == Environment.DEVELOPMENT else None,
    redoc_url="/redoc" if settings.environment == Environment.DEVELOPMENT else None,
    debug=settings.debug,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Rate limiting
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)


# Middleware for security headers
@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    """Add security headers to all responses."""
    response = await call_next(request)
    if "Strict-Transport-Security" not in response.headers:
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    if "X-Content-Type-Options" not in response.headers:
        response.headers["X-Content-Type-Options"] = "nosniff"
    if "X-Frame-Options" not in response.headers:
        response.headers["X-Frame-Options"] = "DENY"
    if "Content-Security-Policy" not in response.headers:
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
    return response


# Middleware for request tracking and metrics
@app.middleware("http")
async def track_requests(request: Request, call_next):
    """Request tracking and Prometheus metrics"""

    start_time = time.time()
    request_id = security_manager.generate_request_id()

    request.state.request_id = request_id
    request.state.start_time = start_time

    api_key = request.headers.get("X-API-Key")
    audit_logger.log_api_request(
        request_id=request_id,
        endpoint=request.url.path,
        method=request.method,
        api_key_hash=security_manager.hash_api_key(api_key) if api_key else None,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.client.host if request.client else None,
    )

    try:
        response = await call_next(request)
    except Exception as e:
        request_count.labels(method=request.method, endpoint=request.url.path, status=500).inc()
        logger.error(f"Request {request_id} failed: {e}")
        return _error_response(
            request,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error="internal_server_error",
            message="An internal error occurred",
        )

    duration = time.time() - start_time
    request_count.labels(
        method=request.method,
        endpoint=request.url.path,
        status=response.status_code
    ).inc()
    request_duration.observe(duration)

    response.headers["X-Request-ID"] = request_id
    response.headers["X-Processing-Time"] = f"{duration:.3f}s"
    return response


def _error_response(
    request: Request,
    status_code: int,
    error: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    body = ErrorResponse(
        status="fail" if 400 <= status_code < 500 else "error",
        error=error,
        message=message,
        request_id=request_id,
        timestamp=datetime.now(timezone.utc),
        details=details if settings.environment == Environment.DEVELOPMENT else None,
    )
    response_headers = dict(headers or {})
    if request_id:
        response_headers["X-Request-ID"] = request_id
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", exclude_none=True),
        headers=response_headers,
    )


# Health check endpoint
@app.get("/health", response_model=HealthCheckResponse)
async def health_check():
    """Service health check"""

    return HealthCheckResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        version=settings.api_version,
        uptime_seconds=int(time.time() - STARTED_AT),
    )


@app.get("/ready")
async def readiness_check(llm_service: LLMService = Depends(get_llm_service)):
    """
    Checks if the service and its dependencies are ready to accept traffic.
    Returns 200 OK if all checks pass, otherwise 503 Service Unavailable.
    """
    details = {
        "openai": {
            "status": "ok" if llm_service.is_configured else "error",
            "message": "OpenAI client configured." if llm_service.is_configured else "OPENAI_API_KEY is not set.",
        },
        "claimkit": {
            "status": "ok" if settings.claimkit_api_key and settings.claimkit_hospital_id else "not_configured",
            "message": "Partner credentials may also be supplied per request.",
        },
    }
    all_ok = details["openai"]["status"] == "ok"

    response_data = HealthCheckResponse(
        status="ready" if all_ok else "unavailable",
        timestamp=datetime.now(timezone.utc),
        version=settings.api_version,
        uptime_seconds=int(time.time() - STARTED_AT),
        details=details,
    )

    if all_ok:
        return JSONResponse(status_code=status.HTTP_200_OK, content=response_data.model_dump(mode="json"))
    logger.warning(f"Readiness check failed: {details}")
    return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=response_data.model_dump(mode="json"))


# Prometheus metrics endpoint
@app.get("/metrics")
async def metrics():
    """Prometheus metrics"""
    if not settings.enable_metrics:
        raise HTTPException(status_code=404, detail="Metrics disabled")

    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.post(
    "/transcribe",
    response_model=ApiResponse[TranscriptionResult],
    responses=ERROR_RESPONSES,
)
@limiter.limit(f"{settings.rate_limit_requests}/minute")
async def transcribe_audio(
    request: Request,
    audio_file: UploadFile = File(..., alias="file"),
    user_info: dict = Depends(get_current_user),
    stt_service: STTService = Depends(get_stt_service),
):
    """
    Transcribes a recorded encounter. The recording is validated before it
    is sent anywhere and is only stored encrypted while it is transcribed.
    """
    audio_data = await audio_file.read()
    result = await stt_service.transcribe_upload(
        request_id=request.state.request_id,
        audio_data=audio_data,
        content_type=audio_file.content_type,
        filename=audio_file.filename,
    )
    return ApiResponse(data=result)


@app.post(
    "/doctor-notes/review",
    response_model=ApiResponse[ReviewOutcome],
    responses=ERROR_RESPONSES,
)
@limiter.limit(f"{settings.rate_limit_requests}/minute")
async def review_doctor_notes(
    request: Request,
    body: ReviewRequest,
    user_info: dict = Depends(get_current_user),
    llm_service: LLMService = Depends(get_llm_service),
    review_store: ReviewSessionStore = Depends(get_review_store),
):
    """Reviews doctor notes. Pass the returned reviewId to /doctor-notes/enhance to apply the feedback."""
    review = await llm_service.review_doctor_notes(body)
    session = await review_store.create(
        source=ReviewSource.OPENAI,
        notes=body.notes,
        feedback=review.to_feedback_text(),
    )
    logger.info(
        "Doctor notes reviewed",
        request_id=request.state.request_id,
        review_id=session.review_id,
        overall_rating=review.overall_rating,
    )
    return ApiResponse(data=ReviewOutcome(review_id=session.review_id, review=review))


@app.post(
    "/doctor-notes/enhance",
    response_model=ApiResponse[EnhancementResult],
    responses=ERROR_RESPONSES,
)
@limiter.limit(f"{settings.rate_limit_requests}/minute")
async def enhance_doctor_notes(
    request: Request,
    body: EnhancementRequest,
    user_info: dict = Depends(get_current_user),
    pipeline: EnhancementPipeline = Depends(get_enhancement_pipeline),
    review_store: ReviewSessionStore = Depends(get_review_store),
):
    """
    Runs the enhancement pipeline. Either the full result is returned or an
    error; partial results are never returned.
    """
    if body.review_id and not body.review_feedback:
        session = await review_store.get(body.review_id)
        if session.notes_fingerprint != fingerprint_notes(body.notes):
            logger.warning(
                "Notes changed since review; applying review feedback anyway",
                review_id=session.review_id,
            )
        body = body.model_copy(update={"review_feedback": session.feedback or None})

    result = await pipeline.run(body, request_id=request.state.request_id)
    return ApiResponse(data=result)


@app.post(
    "/clinical-documentation/generate",
    response_model=ApiResponse[ClinicalDocumentation],
    responses=ERROR_RESPONSES,
)
@limiter.limit(f"{settings.rate_limit_requests}/minute")
async def generate_clinical_documentation(
    request: Request,
    body: ClinicalDocumentationRequest,
    user_info: dict = Depends(get_current_user),
    llm_service: LLMService = Depends(get_llm_service),
):
    """Generates EMR-ready clinical documentation from an encounter transcription."""
    documentation = await llm_service.generate_clinical_documentation(body)
    return ApiResponse(data=documentation)


app.include_router(claimkit.router)
app.include_router(travel_reports.router)


@app.exception_handler(ClaimDocError)
async def claimdoc_error_handler(request: Request, exc: ClaimDocError):
    """Renders domain errors into the standard envelope"""
    request_id = getattr(request.state, "request_id", None)
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        f"{type(exc).__name__}: {exc.message}",
        request_id=request_id,
        error_code=exc.error_code,
        status_code=exc.status_code,
    )
    if exc.status_code >= 500:
        audit_logger.log_error(
            request_id=request_id,
            error_type=type(exc).__name__,
            error_message=exc.message,
            **{k: v for k, v in exc.context.items() if k in ("stage", "service", "upstream_status")},
        )
    return _error_response(request, exc.status_code, exc.error_code, exc.message, details=exc.context)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Schema violations in the request body are client errors (400)"""
    errors: List[str] = [
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
    ]
    return _error_response(
        request,
        status.HTTP_400_BAD_REQUEST,
        "validation_error",
        "; ".join(errors) or "Invalid request",
        details={"errors": errors},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _error_response(
        request,
        exc.status_code,
        "unauthorized" if exc.status_code == status.HTTP_401_UNAUTHORIZED else "http_error",
        str(exc.detail),
        headers=getattr(exc, "headers", None),
    )


# Override rate limit handler
@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    """Custom rate limit error handler"""

    response = RateLimitResponse(
        message=f"Too many requests. Limit: {exc.detail}",
        request_id=getattr(request.state, "request_id", None),
        limit=settings.rate_limit_requests,
        window=settings.rate_limit_window,
        timestamp=datetime.now(timezone.utc),
    )

    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content=response.model_dump(mode="json", exclude_none=True),
        headers={"Retry-After": str(settings.rate_limit_window)},
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors"""

    request_id = getattr(request.state, 'request_id', None)

    logger.error(f"Unhandled error in request {request_id}: {exc}")
    audit_logger.log_error(
        request_id=request_id,
        error_type=type(exc).__name__,
        error_message=str(exc),
        stack_trace=traceback.format_exc(),
    )

    return _error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "internal_server_error",
        "An unexpected error occurred",
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "claimdoc.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.environment == Environment.DEVELOPMENT
    )
