"""
Structured logging setup for the ClaimDoc Engine
"""

import logging
import structlog
from datetime import datetime, timezone
from typing import Optional
from claimdoc.config import settings, Environment


def setup_logging():
    """Configures structured logging"""

    timestamper = structlog.processors.TimeStamper(fmt="ISO")

    processors = [
        structlog.processors.add_log_level,
        timestamper,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if settings.environment == Environment.DEVELOPMENT:
        processors.extend([
            structlog.dev.ConsoleRenderer(colors=True)
        ])
    else:
        processors.extend([
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer()
        ])

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level.upper(), logging.INFO)
        ),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = None):
    """Creates a configured logger"""
    return structlog.get_logger(name or __name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class AuditLogger:
    """Logger for audit events. Never receives note text, only sizes and fingerprints."""

    def __init__(self):
        self.logger = get_logger("audit")
        self.enabled = settings.audit_log_enabled

    def log_api_request(
        self,
        request_id: str,
        endpoint: str,
        method: str,
        api_key_hash: str = None,
        user_agent: str = None,
        ip_address: str = None,
        **kwargs
    ):
        """Logs API requests for audit purposes"""
        if not self.enabled:
            return
        self.logger.info(
            "api_request",
            request_id=request_id,
            endpoint=endpoint,
            method=method,
            api_key_hash=api_key_hash,
            user_agent=user_agent,
            ip_address=ip_address,
            timestamp=_now(),
            **kwargs
        )

    def log_audio_processing(
        self,
        request_id: str,
        audio_duration: Optional[float],
        audio_size_bytes: int,
        language: str,
        model_used: str,
        processing_time_ms: int,
        **kwargs
    ):
        """Logs audio processing events"""
        if not self.enabled:
            return
        self.logger.info(
            "audio_processing",
            request_id=request_id,
            audio_duration=audio_duration,
            audio_size_bytes=audio_size_bytes,
            language=language,
            model_used=model_used,
            processing_time_ms=processing_time_ms,
            timestamp=_now(),
            **kwargs
        )

    def log_external_api_call(
        self,
        request_id: Optional[str],
        service: str,
        endpoint: str,
        response_status: int,
        response_time_ms: int,
        **kwargs
    ):
        """Logs calls to external APIs"""
        if not self.enabled:
            return
        self.logger.info(
            "external_api_call",
            request_id=request_id,
            service=service,
            endpoint=endpoint,
            response_status=response_status,
            response_time_ms=response_time_ms,
            timestamp=_now(),
            **kwargs
        )

    def log_pipeline_stage(
        self,
        request_id: Optional[str],
        stage: str,
        outcome: str,
        duration_ms: int,
        model_used: str,
        **kwargs
    ):
        """Logs one enhancement pipeline stage"""
        if not self.enabled:
            return
        self.logger.info(
            "pipeline_stage",
            request_id=request_id,
            stage=stage,
            outcome=outcome,
            duration_ms=duration_ms,
            model_used=model_used,
            timestamp=_now(),
            **kwargs
        )

    def log_error(
        self,
        request_id: str,
        error_type: str,
        error_message: str,
        stack_trace: str = None,
        **kwargs
    ):
        """Logs error events"""
        if not self.enabled:
            return
        self.logger.error(
            "error_event",
            request_id=request_id,
            error_type=error_type,
            error_message=error_message,
            stack_trace=stack_trace,
            timestamp=_now(),
            **kwargs
        )


# Global audit logger instance
audit_logger = AuditLogger()
