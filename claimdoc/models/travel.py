"""
Medical travel report models
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional
from pydantic import Field, field_validator
from claimdoc.models.base import CamelModel

SUPPORTED_REPORT_LANGUAGES: Dict[str, str] = {
    "english": "English",
    "spanish": "Spanish (Español)",
    "french": "French (Français)",
    "german": "German (Deutsch)",
    "italian": "Italian (Italiano)",
    "portuguese": "Portuguese (Português)",
    "russian": "Russian (Русский)",
    "chinese": "Chinese (中文)",
    "japanese": "Japanese (日本語)",
    "arabic": "Arabic (العربية)",
}


class InsuranceInfo(CamelModel):
    provider: Optional[str] = None
    policy_number: Optional[str] = None
    coverage: Optional[str] = None


class TravelPatient(CamelModel):
    id: Optional[str] = None
    name: str
    age: int = Field(ge=0, le=150)
    gender: str
    date_of_birth: Optional[date] = None
    medical_history: List[str] = Field(default_factory=list)
    insurance_info: Optional[InsuranceInfo] = None


class VisitRecord(CamelModel):
    id: Optional[str] = None
    visit_date: date
    type: str = ""
    provider: str = ""
    chief_complaint: str = ""
    diagnosis: List[str] = Field(default_factory=list)
    procedures: List[str] = Field(default_factory=list)
    medications: List[str] = Field(default_factory=list)
    vital_signs: Dict[str, str] = Field(default_factory=dict)
    notes: str = ""
    follow_up: str = ""


class TravelReportRequest(CamelModel):
    patient: TravelPatient
    visits: List[VisitRecord]
    language: str = "english"

    @field_validator("language")
    @classmethod
    def _lowercase(cls, value: str) -> str:
        return value.strip().lower()


class GeneratedTravelReport(CamelModel):
    """Report body as written by the model"""
    report_title: str = "Medical Travel Report"
    patient_info: Dict[str, Any] = Field(default_factory=dict)
    medical_history_summary: str
    current_conditions: List[str] = Field(default_factory=list)
    medications: List[str] = Field(default_factory=list)
    recent_visits: List[str] = Field(default_factory=list)
    recommendations: str = ""
    travel_considerations: str = ""


class TravelReportMetadata(CamelModel):
    patient_id: Optional[str] = None
    generated_at: datetime
    language: str
    model: str


class TravelReport(GeneratedTravelReport):
    metadata: TravelReportMetadata


class TravelQueryRequest(CamelModel):
    query: str
    patient: Optional[TravelPatient] = None

    @field_validator("query")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be blank")
        return value.strip()


class TravelQueryAnswer(CamelModel):
    answer: str


class TravelLanguage(CamelModel):
    code: str
    name: str
