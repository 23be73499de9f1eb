"""
Test configuration and shared fakes for the ClaimDoc Engine.

Settings are read from the environment at import time, so the variables
below must be in place before anything from ``claimdoc`` is imported.
"""

import json
import os

os.environ.setdefault("API_SECRET_KEY", "test-secret-key-for-jwt-signing")
os.environ["API_KEYS"] = '["test-key"]'
os.environ["OPENAI_API_KEY"] = ""
os.environ["ENVIRONMENT"] = "development"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["AUDIT_LOG_ENABLED"] = "false"
os.environ["CLAIMKIT_API_KEY"] = "ck-test-key"
os.environ["CLAIMKIT_HOSPITAL_ID"] = "7"

from types import SimpleNamespace  # noqa: E402
from typing import Any, Dict, List  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from claimdoc.main import app  # noqa: E402
from claimdoc.models.documentation import (  # noqa: E402
    Completeness,
    DiagnosisProcedureCoherence,
    DoctorNotesReview,
    InsurancePolicyAlignment,
    MedicalCodingAccuracy,
    MedicalNecessity,
    MedicationDiagnosisCoherence,
    ProcedureHistoryAlignment,
)
from claimdoc.models.requests import EnhancementRequest  # noqa: E402

CODING_PAYLOAD: Dict[str, Any] = {
    "assessments": [
        {
            "rank": "primary",
            "diagnosis": "Tension-type headache",
            "icd10Code": "g44.2",
            "clinicalEvidence": "Bilateral band-like headache for 3 days",
            "isConsistent": True,
        },
        {
            "rank": "secondary",
            "diagnosis": "Essential hypertension",
            "icd10Code": "I10",
            "clinicalEvidence": "BP 150/95",
            "justification": "Elevated blood pressure documented at this visit",
            "isConsistent": True,
            "isInferred": True,
        },
    ],
    "plan": [
        {
            "procedure": "Office visit, established patient",
            "cptCode": "99213",
            "medicalNecessity": "Evaluation of new headache",
            "isConsistent": True,
        }
    ],
    "medications": [
        {"name": "Paracetamol", "dosage": "1 g", "frequency": "every 8 hours", "rationale": "Analgesia"}
    ],
}

NARRATIVE_PAYLOAD: Dict[str, Any] = {
    "chiefComplaint": "Headache for 3 days",
    "historyOfPresentIllness": "45-year-old male with a bilateral pressing headache, worse in the evening.",
    "pastMedicalHistory": "None significant",
    "allergies": ["No known drug allergies"],
    "vitalSigns": {"bloodPressure": "150/95", "heartRate": "78"},
    "reviewOfSystems": {"neurological": "No visual disturbance"},
    "physicalExamination": {"neurological": "No focal deficits"},
    "followUp": "Review in 2 weeks",
}

SYNTHESIS_TEXT = (
    "CHIEF COMPLAINT\nHeadache for 3 days.\n\n"
    "ASSESSMENT\n1. Tension-type headache (G44.2)\n2. Essential hypertension (I10)\n\n"
    "PLAN\nOffice visit (CPT 99213)."
)

ANALYSIS_PAYLOAD: Dict[str, Any] = {
    "inconsistenciesFound": ["No diagnosis code in original note"],
    "gapsResolved": ["Added allergy status"],
    "enhancementsImplemented": ["Embedded ICD-10 and CPT codes"],
}


def stage_replies(**overrides) -> Dict[str, Any]:
    """Valid replies for every pipeline stage, keyed by stage name."""
    replies = {
        "coding": json.dumps(CODING_PAYLOAD),
        "narrative": json.dumps(NARRATIVE_PAYLOAD),
        "synthesis": SYNTHESIS_TEXT,
        "analysis": json.dumps(ANALYSIS_PAYLOAD),
    }
    replies.update(overrides)
    return replies


def sample_review() -> DoctorNotesReview:
    return DoctorNotesReview(
        overall_rating=4,
        completeness=Completeness(score=3, missing_elements=["Allergy status"]),
        diagnosis_procedure_coherence=DiagnosisProcedureCoherence(score=6),
        medication_diagnosis_coherence=MedicationDiagnosisCoherence(score=7),
        procedure_patient_history_alignment=ProcedureHistoryAlignment(is_evaluable=False, score=0),
        insurance_policy_alignment=InsurancePolicyAlignment(score=5),
        medical_coding_accuracy=MedicalCodingAccuracy(score=2, missing_codes=["ICD-10 for headache"]),
        medical_necessity=MedicalNecessity(score=5),
    )


class ScriptedLLM:
    """
    Stand-in for LLMService.complete. Each stage answers with a fixed string,
    raises a fixed exception, or awaits a coroutine function.
    """

    def __init__(self, replies: Dict[str, Any]):
        self.replies = replies
        self.calls: List[SimpleNamespace] = []

    async def complete(self, stage, system_prompt, user_prompt, temperature, max_tokens, json_mode=False, model=None):
        self.calls.append(
            SimpleNamespace(
                stage=stage,
                system_prompt=system_prompt,
                user_prompt=user_prompt,
                temperature=temperature,
                max_tokens=max_tokens,
                json_mode=json_mode,
            )
        )
        reply = self.replies[stage]
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            return await reply()
        return reply

    @property
    def stages(self) -> List[str]:
        return [call.stage for call in self.calls]

    def call_for(self, stage: str) -> SimpleNamespace:
        return next(call for call in self.calls if call.stage == stage)


@pytest.fixture
def enhancement_request() -> EnhancementRequest:
    return EnhancementRequest(
        notes="Pt c/o headache x3 days. BP 150/95. Plan: paracetamol.",
        patient_age=45,
        patient_gender="male",
        visit_type="follow-up",
    )


@pytest.fixture
def auth_headers() -> Dict[str, str]:
    return {"X-API-Key": "test-key"}


@pytest.fixture
def client():
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()
