"""
ClaimKit partner API client

The partner exposes a single endpoint. Every call is a POST whose body names
an ``action`` and carries the hospital credentials; every answer carries a
``status`` of success, error or fail.
"""

import json
import random
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx
from tenacity import AsyncRetrying, stop_after_attempt, wait_random_exponential, retry_if_exception

from claimdoc.config import settings
from claimdoc.core.exceptions import (
    ConfigurationError,
    PartnerRequestError,
    UpstreamCallError,
    UpstreamDecodeError,
)
from claimdoc.core.logging import get_logger, audit_logger
from claimdoc.core.metrics import upstream_retries
from claimdoc.models.requests import ClaimKitClaimRequest, ClaimKitDenialRequest, ClaimKitReviewRequest
from claimdoc.services.llm_service import is_transient

logger = get_logger(__name__)

SERVICE = "claimkit"


@dataclass(frozen=True)
class ClaimKitReview:
    request_id: str
    review: List[Any]

    def to_feedback_text(self) -> str:
        return "\n".join(
            item if isinstance(item, str) else json.dumps(item, ensure_ascii=False)
            for item in self.review
        )


class ClaimKitService:
    """Async client for the ClaimKit review, enhance, claim and denial actions."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, wait=None):
        self.base_url = settings.claimkit_api_url
        self.client = client or httpx.AsyncClient(timeout=settings.claimkit_timeout)
        self.max_retries = settings.claimkit_max_retries
        # Capped exponential backoff with full jitter
        self.wait = wait or wait_random_exponential(multiplier=1, max=settings.claimkit_backoff_max)

    def _credentials(self, hospital_id: Optional[int], api_key: Optional[str]) -> Dict[str, Any]:
        hospital_id = hospital_id or settings.claimkit_hospital_id
        api_key = api_key or settings.claimkit_api_key
        if not hospital_id or not api_key:
            raise ConfigurationError("ClaimKit credentials are not configured", {"service": SERVICE})
        return {"hospital_id": hospital_id, "claimkit_api_key": api_key}

    @staticmethod
    def _generate_patient_id() -> str:
        return f"HP{str(int(time.time() * 1000))[-6:]}{random.randint(0, 999)}"

    async def review_medical_documentation(
        self,
        request: ClaimKitReviewRequest,
        request_id: Optional[str] = None,
    ) -> ClaimKitReview:
        payload = {
            "action": "review",
            **self._credentials(request.hospital_id, request.claimkit_api_key),
            "hospital_patient_id": self._generate_patient_id(),
            "doctor_notes": request.doctor_notes,
            "insurance_company": settings.claimkit_insurance_company,
            "policy_band": settings.claimkit_policy_band,
            "policy_id": settings.claimkit_policy_id,
            "patient_checkin_time": int(time.time()),
            "doctor_name": settings.claimkit_doctor_name,
            "doctor_specialization": settings.claimkit_doctor_specialization,
            "hospital_doctor_id": settings.claimkit_hospital_doctor_id,
            "patient_history": list(request.patient_history),
        }
        if request.insurance_policy:
            payload["insurance_policy_details"] = request.insurance_policy
        if request.patient_info is not None:
            payload.update(
                patient_age=request.patient_info.age,
                patient_gender=request.patient_info.gender.value,
                visit_type=request.patient_info.visit_type,
            )

        body = await self._post_action("review", payload, request_id)
        partner_request_id = body.get("request_id")
        if not partner_request_id:
            raise UpstreamDecodeError("claimkit_review", "ClaimKit review response has no request_id")
        review = body.get("review") or []
        if not isinstance(review, list):
            review = [review]
        return ClaimKitReview(request_id=str(partner_request_id), review=review)

    async def enhance_doctor_notes(
        self,
        partner_request_id: str,
        hospital_id: Optional[int] = None,
        api_key: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        payload = {
            "action": "enhance",
            **self._credentials(hospital_id, api_key),
            "request_id": partner_request_id,
        }
        body = await self._post_action("enhance", payload, request_id)
        data = body.get("data")
        if not isinstance(data, dict) or not isinstance(data.get("enhanced_notes"), dict):
            raise UpstreamDecodeError("claimkit_enhance", "ClaimKit enhance response has no enhanced_notes")
        return data["enhanced_notes"]

    async def generate_insurance_claim(
        self,
        request: ClaimKitClaimRequest,
        request_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Drafts an insurance claim from enhanced notes."""
        payload = {
            "action": "generate_claim",
            **self._credentials(request.hospital_id, request.claimkit_api_key),
            "enhanced_notes": request.enhanced_notes,
            "patient_insurance_policy": request.insurance_policy or "",
            "insurance_general_agreement": request.general_agreement or "",
        }
        body = await self._post_action("generate_claim", payload, request_id)
        return self._result_data("generate_claim", body)

    async def handle_claim_denial(
        self,
        request: ClaimKitDenialRequest,
        request_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Asks ClaimKit for a corrected claim after a denial.

        Without enhanced notes the original notes stand in for them.
        """
        payload = {
            "action": "denial_management",
            **self._credentials(request.hospital_id, request.claimkit_api_key),
            "original_claim": request.original_notes,
            "denial_reason": request.denial_reason,
            "enhanced_doctor_notes": request.enhanced_notes or request.original_notes,
            "patient_history": list(request.patient_history),
            "patient_insurance_policy": request.insurance_policy or "",
            "insurance_general_agreement": request.general_agreement or "",
        }
        body = await self._post_action("denial_management", payload, request_id)
        return self._result_data("denial_management", body)

    @staticmethod
    def _result_data(action: str, body: Dict[str, Any]) -> Dict[str, Any]:
        data = body.get("data")
        if not isinstance(data, dict):
            raise UpstreamDecodeError(f"claimkit_{action}", f"ClaimKit {action} response has no data")
        return data

    async def _post_action(self, action: str, payload: Dict[str, Any], request_id: Optional[str]) -> Dict[str, Any]:
        start_time = time.time()
        status_code = 0

        def _log_retry(retry_state):
            upstream_retries.labels(service=SERVICE).inc()
            logger.warning(
                f"Retrying ClaimKit {action}, attempt {retry_state.attempt_number}",
                request_id=request_id,
                error=str(retry_state.outcome.exception()),
            )

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.max_retries + 1),
                wait=self.wait,
                retry=retry_if_exception(is_transient),
                before_sleep=_log_retry,
                reraise=True,
            ):
                with attempt:
                    response = await self._send(action, payload)
                    status_code = response.status_code
                    return self._decode(action, response)
        finally:
            audit_logger.log_external_api_call(
                request_id=request_id,
                service=SERVICE,
                endpoint=action,
                response_status=status_code,
                response_time_ms=int((time.time() - start_time) * 1000),
            )

    async def _send(self, action: str, payload: Dict[str, Any]) -> httpx.Response:
        try:
            response = await self.client.post(self.base_url, json=payload)
        except httpx.TimeoutException as e:
            raise UpstreamCallError(SERVICE, f"ClaimKit {action} timed out", timed_out=True) from e
        except httpx.TransportError as e:
            raise UpstreamCallError(SERVICE, f"Could not reach ClaimKit: {e}") from e

        if response.status_code >= 500:
            raise UpstreamCallError(
                SERVICE,
                f"ClaimKit {action} failed with HTTP {response.status_code}",
                upstream_status=response.status_code,
            )
        if response.status_code >= 400:
            raise PartnerRequestError(
                SERVICE,
                self._partner_message(response) or f"ClaimKit rejected the {action} request",
                upstream_status=response.status_code,
            )
        return response

    def _decode(self, action: str, response: httpx.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError as e:
            raise UpstreamDecodeError(f"claimkit_{action}", f"ClaimKit {action} returned a non-JSON body") from e
        if not isinstance(body, dict):
            raise UpstreamDecodeError(f"claimkit_{action}", f"ClaimKit {action} returned an unexpected body")

        if body.get("status") in ("error", "fail"):
            raise UpstreamCallError(
                SERVICE,
                body.get("message") or f"ClaimKit {action} failed",
                upstream_status=response.status_code,
                context={"partner_status": body.get("status")},
            )
        return body

    @staticmethod
    def _partner_message(response: httpx.Response) -> Optional[str]:
        try:
            body = response.json()
        except ValueError:
            return None
        return body.get("message") if isinstance(body, dict) else None

    async def close(self):
        await self.client.aclose()
