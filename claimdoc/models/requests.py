"""
Pydantic Models for API Requests
"""

from typing import List, Optional
from pydantic import Field, field_validator
from claimdoc.models.base import CamelModel, FrozenCamelModel
from claimdoc.models.enhancement import Gender


def _require_text(value: str) -> str:
    if not value or not value.strip():
        raise ValueError("must not be blank")
    return value.strip()


def _parse_gender(value):
    if isinstance(value, str):
        return value.strip().lower()
    return value


class DoctorNotesRequest(FrozenCamelModel):
    """Doctor notes together with the patient and visit they belong to"""
    notes: str = Field(description="Raw doctor notes or an encounter transcription")
    patient_age: int = Field(ge=0, le=150, description="Patient age in years")
    patient_gender: Gender = Field(description="male, female or other (case-insensitive)")
    visit_type: str = Field(description="e.g. initial consultation, follow-up, emergency")
    insurance_policy: Optional[str] = Field(default=None, description="Insurance policy details")

    @field_validator("notes", "visit_type")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        return _require_text(value)

    @field_validator("patient_gender", mode="before")
    @classmethod
    def _normalize_gender(cls, value):
        return _parse_gender(value)


class ReviewRequest(DoctorNotesRequest):
    """Request Model for a doctor notes review"""


class EnhancementRequest(DoctorNotesRequest):
    """Request Model for the enhancement pipeline"""
    review_feedback: Optional[str] = Field(default=None, description="Feedback from a previous review")
    review_id: Optional[str] = Field(
        default=None,
        description="Correlation ID returned by a previous review; its feedback is used when reviewFeedback is absent",
    )


class PatientInfo(CamelModel):
    age: int = Field(ge=0, le=150)
    gender: Gender
    visit_type: str

    @field_validator("visit_type")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        return _require_text(value)

    @field_validator("gender", mode="before")
    @classmethod
    def _normalize_gender(cls, value):
        return _parse_gender(value)


class ClinicalDocumentationRequest(CamelModel):
    """Request Model for generating clinical documentation from a transcription"""
    transcription: str = Field(description="Transcribed doctor-patient encounter")
    patient_info: PatientInfo
    existing_medications: List[str] = Field(default_factory=list)
    existing_conditions: List[str] = Field(default_factory=list)
    insurance_policy: Optional[str] = None

    @field_validator("transcription")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        return _require_text(value)


class ClaimKitReviewRequest(CamelModel):
    """Request Model for a partner documentation review"""
    doctor_notes: str
    patient_info: Optional[PatientInfo] = None
    insurance_policy: Optional[str] = None
    patient_history: List[str] = Field(default_factory=list)
    hospital_id: Optional[int] = Field(default=None, description="Overrides the configured hospital ID")
    claimkit_api_key: Optional[str] = Field(default=None, description="Overrides the configured partner API key")

    @field_validator("doctor_notes")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        return _require_text(value)


class ClaimKitClaimRequest(CamelModel):
    """Request Model for drafting an insurance claim from enhanced notes"""
    enhanced_notes: str
    insurance_policy: Optional[str] = None
    general_agreement: Optional[str] = Field(default=None, description="Insurer general agreement text")
    hospital_id: Optional[int] = None
    claimkit_api_key: Optional[str] = None

    @field_validator("enhanced_notes")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        return _require_text(value)


class ClaimKitDenialRequest(CamelModel):
    """Request Model for correcting a denied claim"""
    original_notes: str
    denial_reason: str
    enhanced_notes: Optional[str] = None
    patient_history: List[str] = Field(default_factory=list)
    insurance_policy: Optional[str] = None
    general_agreement: Optional[str] = None
    hospital_id: Optional[int] = None
    claimkit_api_key: Optional[str] = None

    @field_validator("original_notes", "denial_reason")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        return _require_text(value)


class ClaimKitEnhanceRequest(CamelModel):
    """Request Model for a partner enhancement of a previously reviewed note"""
    review_id: str
    hospital_id: Optional[int] = None
    claimkit_api_key: Optional[str] = None

    @field_validator("review_id")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        return _require_text(value)
