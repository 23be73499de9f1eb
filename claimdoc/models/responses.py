"""
Pydantic Models for API Responses
"""

from typing import Any, Dict, Generic, List, Literal, Optional, TypeVar
from datetime import datetime
from pydantic import BaseModel, Field
from claimdoc.models.base import CamelModel
from claimdoc.models.documentation import DoctorNotesReview

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Success envelope shared by every domain endpoint"""
    status: Literal["success"] = "success"
    data: T


class TranscriptionResult(CamelModel):
    """Whisper transcription of an uploaded recording"""
    text: str = Field(description="Transcribed text")
    duration_seconds: Optional[float] = Field(default=None, description="Audio duration from file metadata")
    content_type: str = Field(description="Normalized content type of the upload")
    size_bytes: int = Field(description="Size of the upload in bytes")


class ReviewOutcome(CamelModel):
    review_id: str = Field(description="Pass as reviewId to /doctor-notes/enhance to apply this feedback")
    review: DoctorNotesReview


class ClaimKitReviewData(CamelModel):
    review_id: str
    request_id: str = Field(description="Partner request ID")
    review: List[Any] = Field(default_factory=list)


class ClaimKitEnhanceData(CamelModel):
    review_id: str
    enhanced_notes: Dict[str, Any] = Field(default_factory=dict)


class ClaimKitResultData(CamelModel):
    """Partner result for claim generation and denial management"""
    result: Dict[str, Any] = Field(default_factory=dict)


class HealthCheckResponse(BaseModel):
    """Health Check Response"""
    status: str = Field(description="Service Status (healthy/unhealthy)")
    timestamp: datetime = Field(description="Check timestamp")
    version: str = Field(description="Service version")
    uptime_seconds: int = Field(description="Uptime in seconds")

    details: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Dependency status details"
    )


class ErrorResponse(BaseModel):
    """Standard error envelope"""
    status: Literal["fail", "error"] = Field(description="fail for client errors, error for server and upstream errors")
    error: str = Field(description="Error code")
    message: str = Field(description="Error description")
    request_id: Optional[str] = Field(default=None, description="Request ID for debugging")
    timestamp: datetime = Field(description="Time of the error")
    details: Optional[Dict[str, Any]] = Field(default=None, description="Error context (development only)")


class RateLimitResponse(ErrorResponse):
    """Rate Limit Exceeded Response"""
    status: Literal["fail"] = "fail"
    error: str = Field(default="rate_limit_exceeded")
    limit: int = Field(description="Request limit")
    window: int = Field(description="Time window in seconds")
