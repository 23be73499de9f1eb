"""
Prompts for medical travel reports and travel medicine questions
"""

import json
from typing import List, Optional

from claimdoc.models.travel import TravelPatient, VisitRecord

TRAVEL_QUERY_SYSTEM_PROMPT = """You are a medical professional specializing in travel medicine.
Provide accurate, helpful information about medical concerns related to travel.
Keep responses professional, evidence-based, and appropriate for a healthcare setting.
If asked about medications, include appropriate disclaimers about consulting with a physician."""


def render_travel_report_system_prompt(language_name: str) -> str:
    return f"""You are a medical professional creating a comprehensive medical travel report for a patient seeking healthcare services abroad.

The report must be thorough, accurate and easily understood by medical professionals in other countries.
Write the report in {language_name}.

Cover the following sections:
1. Patient Information: basic demographics
2. Medical History Summary: significant medical history
3. Current Conditions: active conditions requiring ongoing care
4. Medications: current medications with dosages and schedules
5. Recent Visits: recent visits, diagnoses and treatments
6. Recommendations: follow-up care and considerations for treatment abroad
7. Travel Considerations: medical considerations for travel given the patient's conditions"""


def render_travel_report_prompt(patient: TravelPatient, visits: List[VisitRecord]) -> str:
    patient_json = json.dumps(patient.model_dump(mode="json", by_alias=True, exclude_none=True), indent=2)
    visits_json = json.dumps(
        [visit.model_dump(mode="json", by_alias=True, exclude_none=True) for visit in visits],
        indent=2,
        ensure_ascii=False,
    )
    return f"""Please generate a medical travel report for the following patient:

Patient Information:
{patient_json}

Medical Visits (from most recent to oldest):
{visits_json}

Create a comprehensive medical travel report suitable for a patient seeking healthcare services abroad."""


def render_patient_context(patient: Optional[TravelPatient]) -> Optional[str]:
    if patient is None:
        return None
    history = ", ".join(patient.medical_history) or "None recorded"
    return f"""This question is regarding a patient:
Name: {patient.name}
Age: {patient.age}
Gender: {patient.gender}
Medical History: {history}"""
