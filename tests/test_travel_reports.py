"""
Medical travel report tests
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from claimdoc.core.exceptions import ValidationError
from claimdoc.dependencies import get_travel_report_service
from claimdoc.main import app
from claimdoc.models.travel import GeneratedTravelReport, TravelQueryRequest, TravelReportRequest
from claimdoc.services.travel_report_service import TravelReportService

PATIENT = {
    "id": "P-100",
    "name": "Layla Haddad",
    "age": 52,
    "gender": "female",
    "medicalHistory": ["Type 2 diabetes", "Hypertension"],
}

VISITS = [
    {"visitDate": "2023-01-10", "type": "initial", "chiefComplaint": "Fatigue", "diagnosis": ["E11.9"]},
    {"visitDate": "2024-05-01", "type": "follow-up", "chiefComplaint": "Knee pain", "diagnosis": ["M17.11"]},
    {"visitDate": "2023-09-15", "type": "follow-up", "chiefComplaint": "BP review"},
]

GENERATED = GeneratedTravelReport(
    medical_history_summary="Type 2 diabetes and hypertension, both controlled.",
    current_conditions=["Type 2 diabetes", "Hypertension"],
    medications=["Metformin 500 mg twice daily"],
    recommendations="Carry a glucose meter.",
)


def fake_llm():
    return SimpleNamespace(
        complete_structured=AsyncMock(return_value=GENERATED),
        complete=AsyncMock(return_value="  Stay hydrated and keep insulin cool.  "),
    )


def report_request(**overrides) -> TravelReportRequest:
    payload = {"patient": PATIENT, "visits": VISITS, "language": "English"}
    payload.update(overrides)
    return TravelReportRequest.model_validate(payload)


class TestReportGeneration:
    async def test_report_carries_metadata(self):
        llm = fake_llm()
        service = TravelReportService(llm)

        report = await service.generate_report(report_request())

        assert report.medical_history_summary == GENERATED.medical_history_summary
        assert report.metadata.patient_id == "P-100"
        assert report.metadata.language == "english"
        assert report.metadata.model == service.model

    async def test_visits_are_sent_newest_first(self):
        llm = fake_llm()

        await TravelReportService(llm).generate_report(report_request())

        kwargs = llm.complete_structured.await_args.kwargs
        prompt = kwargs["user_prompt"]
        assert prompt.index("2024-05-01") < prompt.index("2023-09-15") < prompt.index("2023-01-10")
        assert kwargs["response_model"] is GeneratedTravelReport
        assert kwargs["temperature"] == 0.2

    async def test_report_language_in_system_prompt(self):
        llm = fake_llm()

        await TravelReportService(llm).generate_report(report_request(language="arabic"))

        assert "Arabic" in llm.complete_structured.await_args.kwargs["system_prompt"]

    async def test_unsupported_language_rejected(self):
        llm = fake_llm()

        with pytest.raises(ValidationError, match="Unsupported report language"):
            await TravelReportService(llm).generate_report(report_request(language="klingon"))

        llm.complete_structured.assert_not_awaited()

    async def test_visits_required(self):
        llm = fake_llm()

        with pytest.raises(ValidationError):
            await TravelReportService(llm).generate_report(report_request(visits=[]))

        llm.complete_structured.assert_not_awaited()


class TestTravelQuery:
    async def test_patient_context_prepended(self):
        llm = fake_llm()
        request = TravelQueryRequest.model_validate({"query": "Can I fly after knee surgery?", "patient": PATIENT})

        answer = await TravelReportService(llm).answer_query(request)

        assert answer.answer == "Stay hydrated and keep insulin cool."
        kwargs = llm.complete.await_args.kwargs
        assert kwargs["user_prompt"].startswith("This question is regarding a patient:")
        assert "Type 2 diabetes, Hypertension" in kwargs["user_prompt"]
        assert kwargs["user_prompt"].endswith("Can I fly after knee surgery?")
        assert kwargs["temperature"] == 0.7

    async def test_query_without_patient(self):
        llm = fake_llm()

        await TravelReportService(llm).answer_query(TravelQueryRequest(query="Malaria prophylaxis for Kenya?"))

        assert llm.complete.await_args.kwargs["user_prompt"] == "Malaria prophylaxis for Kenya?"


class TestTravelEndpoints:
    def test_languages(self, client, auth_headers):
        response = client.get("/travel-reports/languages", headers=auth_headers)

        assert response.status_code == 200
        languages = response.json()["data"]
        assert len(languages) == 10
        assert {"code": "english", "name": "English"} in languages

    def test_generate(self, client, auth_headers):
        service = TravelReportService(fake_llm())
        app.dependency_overrides[get_travel_report_service] = lambda: service

        response = client.post(
            "/travel-reports/generate",
            json={"patient": PATIENT, "visits": VISITS, "language": "french"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["medicalHistorySummary"] == GENERATED.medical_history_summary
        assert data["metadata"]["language"] == "french"

    def test_unsupported_language_is_a_client_error(self, client, auth_headers):
        service = TravelReportService(fake_llm())
        app.dependency_overrides[get_travel_report_service] = lambda: service

        response = client.post(
            "/travel-reports/generate",
            json={"patient": PATIENT, "visits": VISITS, "language": "klingon"},
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.json()["status"] == "fail"

    def test_blank_query_rejected(self, client, auth_headers):
        response = client.post("/travel-reports/query", json={"query": " "}, headers=auth_headers)
        assert response.status_code == 400
