"""
Immutable configuration objects handed to agents and the conversation manager
at construction time.
"""
from pydantic import BaseModel, ConfigDict, Field

from agents.languages import DEFAULT_SUPPORTED_LANGUAGE_CODES


class LanguageDetectionConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    confidence_threshold: float = Field(default=0.5, ge=0, le=1)
    # Fall back to English when no requested language survives validation
    enable_fallback: bool = True
    max_languages: int = Field(default=5, ge=1)
    supported_language_codes: tuple[str, ...] = DEFAULT_SUPPORTED_LANGUAGE_CODES


class TranslationConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    enable_llm_translation: bool = True
    preserve_formatting: bool = True
    max_retries: int = Field(default=3, ge=1)
    timeout_ms: int = Field(default=30000, gt=0)
    retry_base_delay_ms: int = Field(default=1000, ge=0)


class QuestionConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_questions: int = Field(default=3, ge=1)
    history_window: int = Field(default=6, ge=0)


class ConversationConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    confidence_threshold: float = Field(default=0.7, ge=0, le=1)
    # Analysis rounds allowed to ask questions; the round after completes as best effort
    max_rounds: int = Field(default=5, ge=1)
    source_language: str = "en"
