from enum import Enum
from typing import Optional

from pydantic import Field

from speech_practice.models.analysis import (
    AnalysisResult, CamelModel, Scenario, SpeechMetrics
)


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ConversationEntry(CamelModel):
    role: Role
    content: str


class SessionState(str, Enum):
    """Состояния жизненного цикла сессии"""
    IDLE = "idle"
    RECORDING = "recording"
    STOPPING = "stopping"
    ANALYZING = "analyzing"
    ERROR = "error"


class SessionRecord(CamelModel):
    """Завершенная сессия в истории"""
    id: int = Field(description="Время создания, мс (уникально)")
    date: str = Field(description="ISO-8601")
    duration: float = Field(ge=0)
    transcript: str
    metrics: SpeechMetrics
    analysis: Optional[AnalysisResult] = None
    scenario: Scenario = Scenario.GENERAL


class SessionOutcome(CamelModel):
    """Итог остановки сессии"""
    metrics: SpeechMetrics
    analysis: Optional[AnalysisResult] = None
    record: Optional[SessionRecord] = None
    error: Optional[str] = None
    analyzed: bool = False


class SessionStatus(CamelModel):
    """Текущее состояние практики для UI"""
    state: SessionState
    scenario: Scenario
    metrics: SpeechMetrics
    transcript: str = ""
    display_transcript: str = ""
    analysis_in_flight: bool = False
    has_credential: bool = False
    last_error: Optional[str] = None
