"""
LLM Service for medical documentation
"""
import instructor
from contextlib import contextmanager
from openai import AsyncOpenAI, APIConnectionError, APIStatusError, APITimeoutError
from instructor.exceptions import InstructorRetryException
from pydantic import BaseModel, ValidationError as PydanticValidationError
from typing import Optional, Type, TypeVar
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential, retry_if_exception
from claimdoc.config import settings
from claimdoc.core.exceptions import ConfigurationError, UpstreamCallError, UpstreamDecodeError
from claimdoc.core.logging import get_logger
from claimdoc.core.metrics import upstream_retries
from claimdoc.models.documentation import ClinicalDocumentation, DoctorNotesReview
from claimdoc.models.requests import ClinicalDocumentationRequest, ReviewRequest
from claimdoc.prompts.documentation import (
    CLINICAL_DOCUMENTATION_SYSTEM_PROMPT,
    REVIEW_SYSTEM_PROMPT,
    render_clinical_documentation_prompt,
    render_review_prompt,
)

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


@contextmanager
def upstream_errors(stage: str, service: str = "openai"):
    """Translates OpenAI SDK and instructor failures into domain errors."""
    try:
        yield
    except APITimeoutError as e:
        raise UpstreamCallError(service, f"{stage}: upstream request timed out", timed_out=True, context={"stage": stage}) from e
    except APIConnectionError as e:
        raise UpstreamCallError(service, f"{stage}: could not reach upstream service", context={"stage": stage}) from e
    except APIStatusError as e:
        if e.status_code in (401, 403):
            raise ConfigurationError("OpenAI rejected the configured credentials", {"stage": stage}) from e
        raise UpstreamCallError(
            service,
            f"{stage}: upstream returned HTTP {e.status_code}",
            upstream_status=e.status_code,
            context={"stage": stage},
        ) from e
    except (InstructorRetryException, PydanticValidationError) as e:
        raise UpstreamDecodeError(stage, f"{stage}: upstream reply did not match the expected structure") from e


def is_transient(exception: BaseException) -> bool:
    """Return True for timeouts, connection failures and 5xx answers"""
    if not isinstance(exception, UpstreamCallError):
        return False
    return exception.timed_out or exception.upstream_status is None or exception.upstream_status >= 500


class LLMService:
    """Chat completion calls against OpenAI, raw and structured."""

    def __init__(self, client: Optional[AsyncOpenAI] = None, structured_client=None):
        if client is None and settings.openai_api_key:
            # The enhancement pipeline never retries, so the SDK must not either
            client = AsyncOpenAI(
                api_key=settings.openai_api_key,
                base_url=settings.openai_base_url,
                timeout=settings.llm_timeout,
                max_retries=0,
            )
        self.openai_client = client
        self._structured_client = structured_client
        self.default_model = settings.default_llm_model
        self.retry_wait = wait_exponential(multiplier=1, min=2, max=30)

        if not self.is_configured:
            logger.warning("OPENAI_API_KEY not set; LLM endpoints will report service unavailable.")

    @property
    def is_configured(self) -> bool:
        return self.openai_client is not None or self._structured_client is not None

    @property
    def structured_client(self):
        # Patched lazily: enables the response_model keyword
        if self._structured_client is None:
            self._structured_client = instructor.from_openai(self._require_client())
        return self._structured_client

    def _require_client(self) -> AsyncOpenAI:
        if self.openai_client is None:
            raise ConfigurationError("OpenAI API key is not configured", {"service": "openai"})
        return self.openai_client

    async def complete(
        self,
        stage: str,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_tokens: int,
        json_mode: bool = False,
        model: Optional[str] = None,
    ) -> str:
        """
        Single chat completion, returned as raw text. Never retried.
        """
        client = self._require_client()
        extra = {"response_format": {"type": "json_object"}} if json_mode else {}

        with upstream_errors(stage):
            response = await client.chat.completions.create(
                model=model or self.default_model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
                **extra,
            )

        content = response.choices[0].message.content if response.choices else None
        if content is None:
            raise UpstreamDecodeError(stage, f"{stage}: upstream reply contained no message content")
        return content

    async def complete_structured(
        self,
        stage: str,
        response_model: Type[ModelT],
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_tokens: int,
        model: Optional[str] = None,
    ) -> ModelT:
        """
        Chat completion decoded into ``response_model`` by instructor.
        Transient upstream failures are retried with exponential backoff.
        """
        client = self.structured_client

        def _log_retry(retry_state):
            upstream_retries.labels(service="openai").inc()
            logger.warning(
                "Retrying structured completion",
                stage=stage,
                attempt=retry_state.attempt_number,
                error=str(retry_state.outcome.exception()),
            )

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(settings.max_retries),
            wait=self.retry_wait,
            retry=retry_if_exception(is_transient),
            before_sleep=_log_retry,
            reraise=True,
        ):
            with attempt:
                with upstream_errors(stage):
                    return await client.chat.completions.create(
                        model=model or self.default_model,
                        response_model=response_model,
                        messages=[
                            {"role": "system", "content": system_prompt},
                            {"role": "user", "content": user_prompt},
                        ],
                        temperature=temperature,
                        max_tokens=max_tokens,
                    )

    async def review_doctor_notes(self, request: ReviewRequest) -> DoctorNotesReview:
        logger.info(
            "Reviewing doctor notes",
            notes_length=len(request.notes),
            visit_type=request.visit_type,
        )
        return await self.complete_structured(
            stage="review",
            response_model=DoctorNotesReview,
            system_prompt=REVIEW_SYSTEM_PROMPT,
            user_prompt=render_review_prompt(request),
            temperature=0.3,
            max_tokens=2000,
        )

    async def generate_clinical_documentation(self, request: ClinicalDocumentationRequest) -> ClinicalDocumentation:
        logger.info(
            "Generating clinical documentation",
            transcription_length=len(request.transcription),
            model=settings.clinical_documentation_model,
        )
        return await self.complete_structured(
            stage="clinical_documentation",
            response_model=ClinicalDocumentation,
            system_prompt=CLINICAL_DOCUMENTATION_SYSTEM_PROMPT,
            user_prompt=render_clinical_documentation_prompt(request),
            temperature=0.2,
            max_tokens=3000,
            model=settings.clinical_documentation_model,
        )

    async def close(self):
        if self.openai_client is not None:
            await self.openai_client.close()
