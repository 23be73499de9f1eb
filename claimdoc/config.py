"""
Central configuration for the ClaimDoc Engine
"""

from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from enum import Enum


class Environment(str, Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class ModelName(str, Enum):
    CHATGPT_4O_LATEST = "chatgpt-4o-latest"
    GPT_4_TURBO = "gpt-4-turbo"
    GPT_4O = "gpt-4o"
    GPT_4O_MINI = "gpt-4o-mini"


class STTModel(str, Enum):
    WHISPER_1 = "whisper-1"
    GPT_4O_MINI_TRANSCRIBE = "gpt-4o-mini-transcribe"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Environment
    environment: Environment = Environment.DEVELOPMENT
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    # API Configuration
    api_title: str = Field(default="ClaimDoc Engine API")
    api_description: str = Field(default="Medical documentation review, enhancement and coding service")
    api_version: str = Field(default="1.0.0")
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=3000)
    api_secret_key: str = Field(...)
    api_keys: List[str] = Field(default=[])

    # OpenAI
    openai_api_key: str = Field(default="")
    openai_base_url: str = Field(default="https://api.openai.com/v1")
    default_llm_model: str = Field(default=ModelName.CHATGPT_4O_LATEST.value)
    clinical_documentation_model: str = Field(default=ModelName.GPT_4_TURBO.value)
    travel_report_model: str = Field(default=ModelName.GPT_4_TURBO.value)

    # Enhancement Pipeline
    pipeline_concurrent_stages: bool = Field(default=False)
    analysis_uses_narrative: bool = Field(default=False)
    documentation_region: str = Field(default="MENA")

    # Timeouts and Retries
    stt_timeout: int = Field(default=60)
    llm_timeout: int = Field(default=60)
    max_retries: int = Field(default=3)

    # STT Configuration
    default_stt_model: str = Field(default=STTModel.WHISPER_1.value)
    stt_language: str = Field(default="en")
    stt_prompt: str = Field(default="This is a medical conversation. Accurately transcribe it.")

    # Audio Processing Limits
    min_audio_bytes: int = Field(default=5120)
    max_file_size_mb: int = Field(default=25)
    supported_audio_formats: List[str] = Field(
        default=["audio/mpeg", "audio/wav", "audio/x-wav", "audio/mp4", "audio/m4a", "audio/ogg", "audio/webm"]
    )

    # ClaimKit partner API
    claimkit_api_url: str = Field(default="https://staging.claimkit.ai/ClaimkitAPI.php")
    claimkit_api_key: str = Field(default="")
    claimkit_hospital_id: Optional[int] = Field(default=None)
    claimkit_timeout: int = Field(default=60)
    claimkit_max_retries: int = Field(default=3)
    claimkit_backoff_max: int = Field(default=30)  # seconds
    claimkit_insurance_company: str = Field(default="ADNIC")
    claimkit_policy_band: str = Field(default="Gold")
    claimkit_policy_id: str = Field(default="17")
    claimkit_doctor_name: str = Field(default="Dr. MediVoice Assistant")
    claimkit_doctor_specialization: str = Field(default="General Practitioner")
    claimkit_hospital_doctor_id: str = Field(default="86")

    # Review sessions
    review_session_ttl_seconds: int = Field(default=3600)
    review_session_max_entries: int = Field(default=1000)

    # Rate Limiting
    rate_limit_enabled: bool = Field(default=True)
    rate_limit_requests: int = Field(default=100)
    rate_limit_window: int = Field(default=60)  # seconds

    # CORS Configuration
    cors_origins: List[str] = Field(
        default=[
            "http://localhost:3000",
            "http://localhost:8080",
        ]
    )
    cors_allow_credentials: bool = Field(default=True)
    cors_allow_methods: List[str] = Field(default=["GET", "POST"])
    cors_allow_headers: List[str] = Field(default=["*"])

    # Security
    token_algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(default=30)
    data_encryption_key: Optional[str] = Field(default=None)

    # Monitoring
    enable_metrics: bool = Field(default=True)

    # Audit Logging
    audit_log_enabled: bool = Field(default=True)

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024


# Global settings instance
settings = Settings()
