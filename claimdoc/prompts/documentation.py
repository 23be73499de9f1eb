"""
Prompts for the single-call generators: doctor notes review and clinical documentation
"""

from claimdoc.models.requests import ClinicalDocumentationRequest, ReviewRequest

REVIEW_SYSTEM_PROMPT = (
    "You are an expert healthcare documentation specialist with deep knowledge of "
    "Integrated Care Pathways and medical coding."
)

CLINICAL_DOCUMENTATION_SYSTEM_PROMPT = (
    "You are a clinical documentation specialist who creates detailed, structured EMR documentation."
)


def render_review_prompt(request: ReviewRequest) -> str:
    return f"""
Review the following doctor notes and evaluate them according to these criteria:

1. Diagnosis and Procedure Coherence: medical appropriateness of diagnoses in relation to procedures,
   alignment with clinical guidelines, no contradictory or unrelated procedures.
2. Medication and Diagnosis Coherence: appropriateness of medications for the diagnoses, allergies,
   contraindications and interactions.
3. Procedure and Patient History: recent procedures that might conflict, previous surgeries,
   missed first-line interventions, follow-ups without baseline procedures.
4. Insurance Policy Coverage: coverage of requested procedures, medical necessity requirements,
   prior authorization and step therapy requirements.
5. Medical Coding Accuracy: correct ICD-10 codes for all diagnoses (primary and secondary), correct
   CPT codes for all procedures, missing or imprecise codes.
6. Documentation Completeness: chief complaint, history, examination, assessment and plan.

## REVIEW DATA

Doctor Notes: {request.notes}
Patient Age: {request.patient_age}
Patient Gender: {request.patient_gender.value}
Visit Type: {request.visit_type}
Insurance Policy Details: {request.insurance_policy or "Not provided"}

## MISSING ELEMENTS

First identify all major missing elements and report them only once, in "completeness.missingElements".
If a criterion cannot be evaluated because an element is missing, set "isEvaluable" to false, give it a
score of 0 and note "Cannot be evaluated due to missing <element>".

Evaluate only what is present in the notes. Be specific about contradictions and misalignments, cite the
ICD-10 or CPT codes that should be used instead, and give actionable recommendations.
"""


def render_clinical_documentation_prompt(request: ClinicalDocumentationRequest) -> str:
    patient = request.patient_info
    optional_lines = []
    if request.existing_medications:
        optional_lines.append(f"- Current Medications: {', '.join(request.existing_medications)}")
    if request.existing_conditions:
        optional_lines.append(f"- Known Conditions: {', '.join(request.existing_conditions)}")
    if request.insurance_policy:
        optional_lines.append(f"- Insurance: {request.insurance_policy}")
    optional_block = "\n".join(optional_lines)

    return f"""
Analyze the provided transcription of a doctor-patient encounter and generate a complete EMR-ready
clinical document following medical documentation best practices.

### TRANSCRIPTION:
{request.transcription}

### PATIENT INFO:
- Age: {patient.age}
- Gender: {patient.gender.value}
- Visit Type: {patient.visit_type}
{optional_block}

### INSTRUCTIONS:
1. Extract all relevant clinical information from the transcription
2. Identify the chief complaint and any secondary complaints
3. Document history of present illness, past medical history and allergies
4. Document any vital signs or examination findings mentioned
5. Identify diagnoses and assign ICD-10 codes
6. Separate medications, treatments and procedures into those explicitly prescribed/performed by the
   doctor and those suggested by the standard of care, with a rationale for each suggestion
7. Include CPT codes where applicable

Be factual: only include information supported by the transcription. Use standard medical terminology.
"""
