"""
Prompts for the four enhancement pipeline stages
"""

import json
from typing import List, Optional

from claimdoc.models.enhancement import CodingResult, NarrativeResult
from claimdoc.models.requests import EnhancementRequest

# Fed to the analysis stage in place of the synthesized narrative
IMPLEMENTED_CHANGE_CATEGORIES: List[str] = [
    "Added diagnoses with proper ICD-10 codes",
    "Added procedures with proper CPT codes",
    "Enhanced clinical documentation",
    "Improved structure and organization",
]

CODING_SHAPE = """{
  "assessments": [
    {
      "rank": "primary",
      "diagnosis": "...",
      "icd10Code": "...",
      "clinicalEvidence": "...",
      "isConsistent": true,
      "isInferred": false
    },
    {
      "rank": "secondary",
      "diagnosis": "...",
      "icd10Code": "...",
      "clinicalEvidence": "...",
      "justification": "...",
      "isConsistent": true,
      "isInferred": false
    }
  ],
  "plan": [
    {"procedure": "...", "cptCode": "...", "medicalNecessity": "...", "isConsistent": true}
  ],
  "medications": [
    {"name": "...", "dosage": "...", "frequency": "...", "rationale": "...", "isConsistent": true}
  ]
}"""

NARRATIVE_SHAPE = """{
  "chiefComplaint": "...",
  "historyOfPresentIllness": "...",
  "pastMedicalHistory": "...",
  "allergies": ["..."],
  "vitalSigns": {
    "bloodPressure": "...",
    "heartRate": "...",
    "respiratoryRate": "...",
    "temperature": "...",
    "height": "...",
    "weight": "...",
    "bmi": "..."
  },
  "reviewOfSystems": {"system": "findings"},
  "physicalExamination": {"system": "findings"},
  "followUp": "..."
}"""

ANALYSIS_SHAPE = """{
  "inconsistenciesFound": ["..."],
  "gapsResolved": ["..."],
  "enhancementsImplemented": ["..."]
}"""


def coding_system_prompt(region: str) -> str:
    return f"You are a medical coding specialist for the {region} region who returns only valid JSON."


def narrative_system_prompt(region: str) -> str:
    return f"You are a medical documentation specialist who follows {region} region standards and returns only valid JSON."


SYNTHESIS_SYSTEM_PROMPT = "You are a healthcare documentation specialist who creates complete, enhanced medical notes."

ANALYSIS_SYSTEM_PROMPT = "You are a healthcare documentation compliance specialist who returns only valid JSON."


def _patient_line(request: EnhancementRequest) -> str:
    return f"Patient: {request.patient_age}-year-old {request.patient_gender.value}, {request.visit_type}"


def _optional_context(request: EnhancementRequest, feedback: Optional[str]) -> str:
    lines = []
    if feedback:
        lines.append(f"Review Feedback: {feedback}")
    if request.insurance_policy:
        lines.append(f"Insurance Policy: {request.insurance_policy}")
    return "\n".join(lines)


def render_coding_prompt(request: EnhancementRequest, feedback: Optional[str], region: str) -> str:
    return f"""
You are an expert in healthcare coding with deep knowledge of ICD-10-CM and CPT codes.
Focus ONLY on extracting diagnoses with ICD-10 codes and procedures with CPT codes from these notes.

Original Notes: {request.notes}

{_patient_line(request)}

{_optional_context(request, feedback)}

Based on British Medical Journal guidelines, {region} region practice and 2021 APCC ICD-10-CM standards, identify:
1. Exactly one primary diagnosis with its ICD-10 code (rank "primary")
2. At least one secondary diagnosis with its ICD-10 code (rank "secondary") and a justification.
   If the notes document no secondary diagnosis, infer a clinically plausible one and set "isInferred" to true.
3. All procedures with CPT codes and their medical necessity
4. Medication details

IMPORTANT: Do not just recommend changes - implement them by providing the correct codes and details.

Return ONLY a JSON object with exactly this shape:
{CODING_SHAPE}
"""


def render_narrative_prompt(request: EnhancementRequest, feedback: Optional[str], region: str) -> str:
    return f"""
You are a medical documentation specialist for the {region} region. Enhance these clinical notes with more complete information.
Focus on creating well-structured clinical narratives following British Medical Journal standards.

Original Notes: {request.notes}

{_patient_line(request)}

{_optional_context(request, feedback)}

IMPORTANT: Do not just recommend changes - implement them by providing a complete, enhanced version of the clinical documentation.
Every vital sign is a quoted string with its unit, or null when it was not recorded.

Return ONLY a JSON object with exactly this shape:
{NARRATIVE_SHAPE}
"""


def render_synthesis_prompt(
    request: EnhancementRequest,
    feedback: Optional[str],
    coding: CodingResult,
    narrative: NarrativeResult,
    region: str,
) -> str:
    insurance = f"\n- Insurance Policy: {request.insurance_policy}" if request.insurance_policy else ""
    feedback_block = f"\nReview Feedback: {feedback}\n" if feedback else ""
    coding_json = coding.model_dump(mode="json", by_alias=True)
    return f"""
You are a healthcare documentation specialist for the {region} region. Create a comprehensive, enhanced version of the following medical note.
Incorporate ALL relevant ICD-10 and CPT codes directly into the narrative.

Original Notes: {request.notes}

Patient Information:
- Age: {request.patient_age}
- Gender: {request.patient_gender.value}
- Visit Type: {request.visit_type}{insurance}
{feedback_block}
Clinical Data:
- Chief Complaint: {narrative.chief_complaint}
- HPI: {narrative.history_of_present_illness}
- PMH: {narrative.past_medical_history or "Not documented"}
- Allergies: {json.dumps(narrative.allergies)}
- Vital Signs: {narrative.vital_signs.model_dump_json(by_alias=True, exclude_none=True)}
- Review of Systems: {json.dumps(narrative.review_of_systems)}
- Physical Examination: {json.dumps(narrative.physical_examination)}

Assessments:
{json.dumps(coding_json["assessments"])}

Plan:
{json.dumps(coding_json["plan"])}

Medications:
{json.dumps(coding_json["medications"])}

Follow-up:
{narrative.follow_up or "Not documented"}

INSTRUCTIONS:
1. Create a complete, properly formatted medical note that follows {region} region documentation standards.
2. Embed every ICD-10 and CPT code inline next to its clinical mention (e.g., "Hypertension (I10)").
3. Include justification for all diagnoses, procedures, and medications.
4. Incorporate all review feedback. If the feedback says a section is missing (for example allergies), add that section.
5. Use clear section headings. Omit a section that has no supporting content unless the feedback asks for it.
6. Make sure the narrative implements all the improvements, not just recommends them.

Return ONLY the enhanced narrative note as plain text.
"""


def render_analysis_prompt(
    request: EnhancementRequest,
    feedback: Optional[str],
    changes: str,
    region: str,
) -> str:
    return f"""
You are an insurance documentation specialist for the {region} region. Analyze the original notes and the enhanced version.
Focus on identifying what specific changes were made to improve documentation quality and insurance compliance.

Original Notes: {request.notes}

{_patient_line(request)}

{_optional_context(request, feedback)}

Changes Implemented:
{changes}

Return ONLY a JSON object with exactly these three keys and no others:
{ANALYSIS_SHAPE}
"""


def describe_implemented_changes() -> str:
    return "\n".join(f"- {item}" for item in IMPLEMENTED_CHANGE_CATEGORIES)
