from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Базовая модель: snake_case в Python, camelCase в JSON"""
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class Scenario(str, Enum):
    """Сценарий практики"""
    INTERVIEW = "interview"
    SOCIAL = "social"
    PUBLIC = "public"
    GENERAL = "general"


class SpeechMetrics(CamelModel):
    """Снимок метрик речи. Неизменяем: при росте транскрипта создается новый."""
    wpm: float = Field(0, ge=0, description="Слов в минуту")
    filler_word_count: int = Field(0, ge=0)
    vocabulary_diversity: float = Field(0.0, ge=0.0, le=1.0)
    word_count: int = Field(0, ge=0)
    duration: float = Field(0.0, ge=0.0, description="Длительность, сек")


class AnalysisRequest(CamelModel):
    transcript: str
    metrics: SpeechMetrics
    scenario: Scenario = Scenario.GENERAL


class Correction(CamelModel):
    type: str = "suggestion"
    original: str = ""
    correction: str = ""
    explanation: str = ""


class AnalysisResult(CamelModel):
    overall_score: int = Field(ge=1, le=10)
    tone_feedback: str = ""
    corrections: List[Correction] = Field(default_factory=list)
    feedback: str = ""
    improvements: List[str] = Field(default_factory=list)
    strengths: List[str] = Field(default_factory=list)
    is_fallback: bool = False


class TextAnalysisResult(CamelModel):
    """Результат анализа письменного текста (грамматика и стиль)"""
    grammar_score: int = Field(ge=1, le=10)
    style_score: int = Field(ge=1, le=10)
    corrections: List[Correction] = Field(default_factory=list)
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)
    is_fallback: bool = False
