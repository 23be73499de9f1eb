"""
Structured documents produced by single-call generators (review, clinical documentation)
"""

from typing import Dict, List, Optional
from pydantic import Field
from claimdoc.models.base import CamelModel


# --- Doctor notes review ---

class Completeness(CamelModel):
    score: int = Field(ge=0, le=10, description="Completeness score (0-10)")
    feedback: str = Field(default="", description="Completeness feedback")
    missing_elements: List[str] = Field(default_factory=list, description="Elements missing from the note")


class CriterionEvaluation(CamelModel):
    is_evaluable: bool = Field(default=True, description="False when the note lacks the elements needed for this criterion")
    score: int = Field(ge=0, le=10, description="Score (1-10), 0 when not evaluable")
    feedback: str = Field(default="")


class DiagnosisProcedureCoherence(CriterionEvaluation):
    issues: List[str] = Field(default_factory=list)


class MedicationDiagnosisCoherence(CriterionEvaluation):
    contradictions: List[str] = Field(default_factory=list)
    allergy_concerns: List[str] = Field(default_factory=list)


class ProcedureHistoryAlignment(CriterionEvaluation):
    conflicts: List[str] = Field(default_factory=list)
    recent_procedure_overlaps: List[str] = Field(default_factory=list)


class InsurancePolicyAlignment(CriterionEvaluation):
    coverage_issues: List[str] = Field(default_factory=list)
    authorization_needs: List[str] = Field(default_factory=list)


class MedicalCodingAccuracy(CriterionEvaluation):
    missing_codes: List[str] = Field(default_factory=list)
    incorrect_codes: List[str] = Field(default_factory=list)
    coding_improvements: List[str] = Field(default_factory=list)


class MedicalNecessity(CriterionEvaluation):
    improvement_suggestions: List[str] = Field(default_factory=list)


class ReviewRecommendations(CamelModel):
    diagnosis_improvement: List[str] = Field(default_factory=list)
    procedure_alignment: List[str] = Field(default_factory=list)
    medication_optimization: List[str] = Field(default_factory=list)
    coding_corrections: List[str] = Field(default_factory=list)
    documentation_enhancements: List[str] = Field(default_factory=list)

    def all_items(self) -> List[str]:
        return [
            *self.diagnosis_improvement,
            *self.procedure_alignment,
            *self.medication_optimization,
            *self.coding_corrections,
            *self.documentation_enhancements,
        ]


class DoctorNotesReview(CamelModel):
    """Review of a doctor's note against documentation, coding and coverage criteria"""
    overall_rating: int = Field(ge=1, le=10, description="Overall rating (1-10)")
    completeness: Completeness
    diagnosis_procedure_coherence: DiagnosisProcedureCoherence
    medication_diagnosis_coherence: MedicationDiagnosisCoherence
    procedure_patient_history_alignment: ProcedureHistoryAlignment
    insurance_policy_alignment: InsurancePolicyAlignment
    medical_coding_accuracy: MedicalCodingAccuracy
    medical_necessity: MedicalNecessity
    recommendations: ReviewRecommendations = Field(default_factory=ReviewRecommendations)

    def to_feedback_text(self) -> str:
        """Renders the actionable findings as plain feedback for the enhancement pipeline."""
        findings = [
            ("Missing elements", self.completeness.missing_elements),
            ("Diagnosis/procedure issues", self.diagnosis_procedure_coherence.issues),
            ("Medication contradictions", self.medication_diagnosis_coherence.contradictions),
            ("Allergy concerns", self.medication_diagnosis_coherence.allergy_concerns),
            ("Patient history conflicts", self.procedure_patient_history_alignment.conflicts),
            ("Coverage issues", self.insurance_policy_alignment.coverage_issues),
            ("Authorization needs", self.insurance_policy_alignment.authorization_needs),
            ("Missing codes", self.medical_coding_accuracy.missing_codes),
            ("Incorrect codes", self.medical_coding_accuracy.incorrect_codes),
            ("Medical necessity", self.medical_necessity.improvement_suggestions),
            ("Recommendations", self.recommendations.all_items()),
        ]
        return "\n".join(f"{label}: {'; '.join(items)}" for label, items in findings if items)


# --- Clinical documentation ---

class PastMedicalHistory(CamelModel):
    conditions: List[str] = Field(default_factory=list)
    surgeries: List[str] = Field(default_factory=list)
    allergies: List[str] = Field(default_factory=list)


class DocumentationVitalSigns(CamelModel):
    blood_pressure: Optional[str] = None
    heart_rate: Optional[str] = None
    respiratory_rate: Optional[str] = None
    temperature: Optional[str] = None
    oxygen_saturation: Optional[str] = None
    height: Optional[str] = None
    weight: Optional[str] = None
    bmi: Optional[str] = None


class CodedAssessment(CamelModel):
    diagnosis: str
    icd_code: str = Field(description="ICD-10 code")
    certainty: str = Field(default="", description="confirmed, probable or suspected")
    clinical_evidence: str = ""


class Medication(CamelModel):
    name: str
    dosage: str = ""
    frequency: str = ""
    duration: str = ""
    instructions: str = ""


class SuggestedMedication(Medication):
    rationale: str = ""


class MedicationPlan(CamelModel):
    prescribed: List[Medication] = Field(default_factory=list)
    suggested: List[SuggestedMedication] = Field(default_factory=list)


class Treatment(CamelModel):
    treatment: str
    instructions: str = ""
    duration: str = ""


class SuggestedTreatment(Treatment):
    rationale: str = ""


class TreatmentPlan(CamelModel):
    prescribed: List[Treatment] = Field(default_factory=list)
    suggested: List[SuggestedTreatment] = Field(default_factory=list)


class PerformedProcedure(CamelModel):
    name: str
    cpt_code: str = ""
    notes: str = ""


class SuggestedProcedure(CamelModel):
    name: str
    cpt_code: str = ""
    medical_necessity: str = ""
    rationale: str = ""


class Procedures(CamelModel):
    performed: List[PerformedProcedure] = Field(default_factory=list)
    suggested: List[SuggestedProcedure] = Field(default_factory=list)


class Referral(CamelModel):
    speciality: str
    reason: str = ""


class FollowUpPlan(CamelModel):
    timing: str = ""
    instructions: str = ""
    referrals: List[Referral] = Field(default_factory=list)


class ClinicalDocumentation(CamelModel):
    """EMR-ready clinical document generated from an encounter transcription"""
    chief_complaint: str = Field(description="The primary reason for the patient visit")
    secondary_complaints: List[str] = Field(default_factory=list)
    history_of_present_illness: str = Field(description="Narrative of the current medical issue")
    past_medical_history: PastMedicalHistory = Field(default_factory=PastMedicalHistory)
    vital_signs: DocumentationVitalSigns = Field(default_factory=DocumentationVitalSigns)
    physical_examination: Dict[str, str] = Field(default_factory=dict)
    assessments: List[CodedAssessment] = Field(default_factory=list)
    medications: MedicationPlan = Field(default_factory=MedicationPlan)
    treatment_plan: TreatmentPlan = Field(default_factory=TreatmentPlan)
    procedures: Procedures = Field(default_factory=Procedures)
    follow_up: FollowUpPlan = Field(default_factory=FollowUpPlan)
