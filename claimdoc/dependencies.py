"""
Service providers for FastAPI dependency injection
"""

from functools import lru_cache

from fastapi import Depends

from claimdoc.services.claimkit_service import ClaimKitService
from claimdoc.services.enhancement_pipeline import EnhancementPipeline
from claimdoc.services.llm_service import LLMService
from claimdoc.services.review_store import ReviewSessionStore
from claimdoc.services.stt_service import STTService
from claimdoc.services.travel_report_service import TravelReportService


@lru_cache
def get_llm_service() -> LLMService:
    return LLMService()


@lru_cache
def get_stt_service() -> STTService:
    return STTService()


@lru_cache
def get_claimkit_service() -> ClaimKitService:
    return ClaimKitService()


@lru_cache
def get_review_store() -> ReviewSessionStore:
    return ReviewSessionStore()


def get_enhancement_pipeline(llm_service: LLMService = Depends(get_llm_service)) -> EnhancementPipeline:
    return EnhancementPipeline(llm_service)


def get_travel_report_service(llm_service: LLMService = Depends(get_llm_service)) -> TravelReportService:
    return TravelReportService(llm_service)


async def close_services():
    """Closes the HTTP clients of every service created so far."""
    for provider in (get_llm_service, get_stt_service, get_claimkit_service):
        if provider.cache_info().currsize:
            await provider().close()
        provider.cache_clear()
