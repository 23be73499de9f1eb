"""
Speech-to-Text Service
Uses OpenAI Whisper for transcription of recorded encounters.
"""

import time
from typing import Optional
from openai import AsyncOpenAI
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential, retry_if_exception

from claimdoc.config import settings
from claimdoc.core.exceptions import ConfigurationError
from claimdoc.core.logging import get_logger, audit_logger
from claimdoc.core.metrics import audio_processing_duration, upstream_retries
from claimdoc.models.responses import TranscriptionResult
from claimdoc.services.audio_processor import AudioProcessor
from claimdoc.services.llm_service import is_transient, upstream_errors

logger = get_logger(__name__)


class STTService:
    """Service for Speech-to-Text transcription using Whisper."""

    def __init__(self, client: Optional[AsyncOpenAI] = None, audio_processor: Optional[AudioProcessor] = None):
        if client is None and settings.openai_api_key:
            client = AsyncOpenAI(
                api_key=settings.openai_api_key,
                base_url=settings.openai_base_url,
                timeout=settings.stt_timeout,
                max_retries=0,
            )
        self.client = client
        self.audio_processor = audio_processor or AudioProcessor()
        self.model = settings.default_stt_model
        self.retry_wait = wait_exponential(multiplier=1, min=2, max=10)

        if self.client is None:
            logger.warning("OPENAI_API_KEY not set; transcription will report service unavailable.")

    async def transcribe_upload(
        self,
        request_id: str,
        audio_data: bytes,
        content_type: Optional[str],
        filename: Optional[str] = None,
    ) -> TranscriptionResult:
        """
        Validates, encrypts and transcribes one upload.
        Nothing is sent upstream unless validation passes; the encrypted
        temporary file is removed whether or not transcription succeeds.
        """
        start_time = time.time()
        normalized_type = self.audio_processor.validate(audio_data, content_type, filename)

        if self.client is None:
            raise ConfigurationError("OpenAI API key is not configured", {"service": "whisper"})

        temp_file_path = None
        try:
            temp_file_path = self.audio_processor.save_encrypted(audio_data)
            text = await self.transcribe(request_id, temp_file_path, normalized_type)
        finally:
            await self.audio_processor.cleanup(temp_file_path)

        duration = self.audio_processor.extract_duration(audio_data)
        processing_time = time.time() - start_time
        audio_processing_duration.observe(processing_time)
        audit_logger.log_audio_processing(
            request_id=request_id,
            audio_duration=duration,
            audio_size_bytes=len(audio_data),
            language=settings.stt_language,
            model_used=self.model,
            processing_time_ms=int(processing_time * 1000),
        )

        return TranscriptionResult(
            text=text,
            duration_seconds=duration,
            content_type=normalized_type,
            size_bytes=len(audio_data),
        )

    async def transcribe(self, request_id: str, file_path: str, content_type: str) -> str:
        """
        Transcribes the encrypted audio at ``file_path``.
        Timeouts, connection errors and 5xx answers are retried.
        """
        logger.info(f"Starting transcription with {self.model}", request_id=request_id)
        audio = self.audio_processor.read_decrypted(file_path)
        upload = (f"recording{self.audio_processor.extension_for(content_type)}", audio, content_type)

        def _log_retry(retry_state):
            upstream_retries.labels(service="whisper").inc()
            logger.warning(f"Retrying Whisper API call, attempt {retry_state.attempt_number}...")

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(settings.max_retries),
            wait=self.retry_wait,
            retry=retry_if_exception(is_transient),
            before_sleep=_log_retry,
            reraise=True,
        ):
            with attempt:
                with upstream_errors("transcription", service="whisper"):
                    transcription = await self.client.audio.transcriptions.create(
                        model=self.model,
                        file=upload,
                        language=settings.stt_language,
                        prompt=settings.stt_prompt,
                        temperature=0.0,
                    )

        text = (transcription.text or "").strip()
        logger.info(f"Transcription successful: {len(text)} characters", request_id=request_id)
        return text

    async def close(self):
        if self.client is not None:
            await self.client.close()
