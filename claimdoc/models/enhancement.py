"""
Enhancement pipeline contracts.

Each stage of the pipeline produces exactly one of the payload models below.
They double as the JSON contracts the upstream model must satisfy: a reply
that does not validate is a hard failure of the whole pipeline.
"""

import re
from enum import Enum
from typing import Dict, List, Optional

from pydantic import ConfigDict, Field, field_validator, model_validator

from claimdoc.models.base import FrozenCamelModel

ICD10_PATTERN = re.compile(r"^[A-Z][0-9][0-9A-Z](\.[0-9A-Z]{1,4})?$")
CPT_PATTERN = re.compile(r"^[0-9]{4}[0-9A-Z]$")


def normalize_code(value: str, pattern: re.Pattern, kind: str) -> str:
    code = value.strip().upper()
    if not pattern.match(code):
        raise ValueError(f"'{value}' is not a valid {kind} code")
    return code


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class DiagnosisRank(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


# --- Coding stage ---

class Assessment(FrozenCamelModel):
    rank: DiagnosisRank
    diagnosis: str = Field(min_length=1)
    icd10_code: str
    clinical_evidence: Optional[str] = None
    is_consistent: bool = True
    justification: Optional[str] = None
    is_inferred: bool = Field(
        default=False,
        description="True when the diagnosis is inferred rather than documented in the source notes",
    )

    @field_validator("icd10_code")
    @classmethod
    def _check_icd10(cls, value: str) -> str:
        return normalize_code(value, ICD10_PATTERN, "ICD-10")


class PlanItem(FrozenCamelModel):
    procedure: str = Field(min_length=1)
    cpt_code: str
    medical_necessity: Optional[str] = None
    is_consistent: bool = True

    @field_validator("cpt_code")
    @classmethod
    def _check_cpt(cls, value: str) -> str:
        return normalize_code(value, CPT_PATTERN, "CPT")


class MedicationItem(FrozenCamelModel):
    name: str = Field(min_length=1)
    dosage: Optional[str] = None
    frequency: Optional[str] = None
    rationale: Optional[str] = None
    is_consistent: bool = True


class CodingResult(FrozenCamelModel):
    assessments: List[Assessment]
    plan: List[PlanItem] = Field(default_factory=list)
    medications: List[MedicationItem] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_diagnosis_ranks(self):
        primaries = [a for a in self.assessments if a.rank == DiagnosisRank.PRIMARY]
        secondaries = [a for a in self.assessments if a.rank == DiagnosisRank.SECONDARY]
        if len(primaries) != 1:
            raise ValueError(f"expected exactly one primary diagnosis, got {len(primaries)}")
        if not secondaries:
            raise ValueError("expected at least one secondary diagnosis")
        for assessment in secondaries:
            if not (assessment.justification or "").strip():
                raise ValueError(f"secondary diagnosis '{assessment.diagnosis}' has no justification")
        return self

    @property
    def primary_assessment(self) -> Assessment:
        return next(a for a in self.assessments if a.rank == DiagnosisRank.PRIMARY)

    @property
    def secondary_assessments(self) -> List[Assessment]:
        return [a for a in self.assessments if a.rank == DiagnosisRank.SECONDARY]


# --- Clinical narrative stage ---

class VitalSigns(FrozenCamelModel):
    blood_pressure: Optional[str] = None
    heart_rate: Optional[str] = None
    respiratory_rate: Optional[str] = None
    temperature: Optional[str] = None
    height: Optional[str] = None
    weight: Optional[str] = None
    bmi: Optional[str] = None


class NarrativeResult(FrozenCamelModel):
    chief_complaint: str = Field(min_length=1)
    history_of_present_illness: str = Field(min_length=1)
    past_medical_history: Optional[str] = None
    allergies: List[str] = Field(default_factory=list)
    vital_signs: VitalSigns = Field(default_factory=VitalSigns)
    review_of_systems: Dict[str, str] = Field(default_factory=dict)
    physical_examination: Dict[str, str] = Field(default_factory=dict)
    follow_up: Optional[str] = None


# --- Synthesis stage ---

class SynthesisResult(FrozenCamelModel):
    text: str

    @field_validator("text")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("narrative is empty")
        return value.strip()


# --- Analysis stage ---

class AnalysisResult(FrozenCamelModel):
    model_config = ConfigDict(extra="forbid")

    inconsistencies_found: List[str]
    gaps_resolved: List[str]
    enhancements_implemented: List[str]


# --- Aggregate ---

class EnhancedNote(NarrativeResult, CodingResult):
    """Narrative sections and coding merged into one record."""


class EnhancementResult(FrozenCamelModel):
    enhanced_note: EnhancedNote
    formatted_note: str
    inconsistencies_found: List[str]
    gaps_resolved: List[str]
    enhancements_implemented: List[str]
