from typing import Annotated, Optional, List
from pydantic_settings import BaseSettings, NoDecode
from pydantic import Field, SecretStr, field_validator
import json


DEFAULT_FILLER_WORDS = [
    "um", "uh", "er", "ah", "hmm",
    "you know", "i mean", "basically", "actually",
    "sort of", "kind of",
]


class Settings(BaseSettings):
    """Application configuration settings."""

    # Настройки Gemini API
    gemini_api_key: Optional[SecretStr] = Field(
        default=None, alias="GEMINI_API_KEY"
    )
    gemini_api_url: str = Field(
        default="https://generativelanguage.googleapis.com",
        alias="GEMINI_API_URL"
    )
    gemini_model: str = Field(
        default="gemini-2.0-flash", alias="GEMINI_MODEL"
    )
    gemini_timeout: int = Field(default=30, alias="GEMINI_TIMEOUT")
    gemini_temperature: float = Field(
        default=0.7, alias="GEMINI_TEMPERATURE")
    gemini_top_k: int = Field(default=40, alias="GEMINI_TOP_K")
    gemini_top_p: float = Field(default=0.95, alias="GEMINI_TOP_P")
    gemini_max_output_tokens: int = Field(
        default=1024, alias="GEMINI_MAX_OUTPUT_TOKENS")

    # Ограничения сессии и анализа
    analysis_timeout_sec: float = Field(
        default=45.0, alias="ANALYSIS_TIMEOUT_SEC")
    analysis_min_duration_sec: float = Field(
        default=10.0, alias="ANALYSIS_MIN_DURATION_SEC")
    session_min_duration_sec: float = Field(
        default=5.0, alias="SESSION_MIN_DURATION_SEC")
    history_limit: int = Field(default=20, alias="HISTORY_LIMIT")
    context_limit: int = Field(default=10, alias="CONTEXT_LIMIT")
    text_max_chars: int = Field(default=500, alias="TEXT_MAX_CHARS")

    # Слова-паразиты
    filler_words: Annotated[List[str], NoDecode] = Field(
        default=DEFAULT_FILLER_WORDS, alias="FILLER_WORDS"
    )

    # Хранилище (история сессий и ключ API)
    storage_path: str = Field(
        default="data/storage.json", alias="STORAGE_PATH")

    # Настройки логирования
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_file: Optional[str] = Field(default=None, alias="LOG_FILE")
    log_max_size_mb: int = Field(default=10, alias="LOG_MAX_SIZE_MB")
    log_backup_count: int = Field(default=5, alias="LOG_BACKUP_COUNT")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "populate_by_name": True,
    }

    @field_validator("filler_words", mode="before")
    def parse_filler_words(cls, v):
        """Парсит список слов-паразитов из JSON или строки с запятыми"""
        if v is None:
            return list(DEFAULT_FILLER_WORDS)

        if isinstance(v, str):
            try:
                parsed = json.loads(v)
                if isinstance(parsed, list):
                    v = parsed
                else:
                    v = [w for w in v.split(",")]
            except json.JSONDecodeError:
                v = [w for w in v.split(",")]

        # Нормализуем: нижний регистр, схлопываем пробелы внутри фраз
        if isinstance(v, list):
            normalized = []
            for word in v:
                if isinstance(word, str):
                    word = " ".join(word.lower().split())
                    if word and word not in normalized:
                        normalized.append(word)
            return normalized

        return v

    @field_validator("gemini_temperature")
    def validate_temperature(cls, v):
        if v < 0 or v > 2:
            raise ValueError("GEMINI_TEMPERATURE must be between 0 and 2")
        return v

    @field_validator("gemini_top_p")
    def validate_top_p(cls, v):
        if v <= 0 or v > 1:
            raise ValueError("GEMINI_TOP_P must be in (0, 1]")
        return v

    @field_validator("gemini_top_k", "gemini_max_output_tokens",
                     "history_limit", "context_limit", "text_max_chars")
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError("value must be positive")
        return v

    @field_validator("analysis_timeout_sec")
    def validate_analysis_timeout(cls, v):
        if v <= 0:
            raise ValueError("ANALYSIS_TIMEOUT_SEC must be positive")
        if v > 600:
            raise ValueError("ANALYSIS_TIMEOUT_SEC cannot exceed 600")
        return v

    @field_validator("log_max_size_mb")
    def validate_log_max_size(cls, v):
        if v <= 0:
            raise ValueError("LOG_MAX_SIZE_MB must be positive")
        if v > 100:  # 100 MB max
            raise ValueError("LOG_MAX_SIZE_MB cannot exceed 100")
        return v

    @field_validator("log_backup_count")
    def validate_log_backup_count(cls, v):
        if v < 0:
            raise ValueError("LOG_BACKUP_COUNT cannot be negative")
        if v > 20:
            raise ValueError("LOG_BACKUP_COUNT cannot exceed 20")
        return v

    def generation_config(self, **overrides) -> dict:
        """Параметры генерации в формате Gemini (camelCase)"""
        config = {
            "temperature": self.gemini_temperature,
            "topK": self.gemini_top_k,
            "topP": self.gemini_top_p,
            "maxOutputTokens": self.gemini_max_output_tokens,
        }
        config.update(overrides)
        return config


settings = Settings()
