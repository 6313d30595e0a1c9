import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from speech_practice.api.deps import get_practice, session_status
from speech_practice.models.analysis import AnalysisResult, Scenario
from speech_practice.models.session import SessionOutcome, SessionStatus
from speech_practice.models.transcript import TranscriptEvent
from speech_practice.services.context import PracticeContext

router = APIRouter(prefix="/api/v1", tags=["session"])
logger = logging.getLogger(__name__)


class ScenarioUpdate(BaseModel):
    scenario: Scenario


class MessageRequest(BaseModel):
    """Набранное сообщение вместо речи"""
    text: str = Field(..., description="Текст сообщения")


@router.get("/session", response_model=SessionStatus)
async def get_session(practice: PracticeContext = Depends(get_practice)):
    return session_status(practice)


@router.post("/session/start", response_model=SessionStatus)
async def start_session(practice: PracticeContext = Depends(get_practice)):
    """Начинает запись"""
    practice.supervisor.start()
    logger.info("Recording started")
    return session_status(practice)


@router.post("/session/events", response_model=SessionStatus)
async def push_event(event: TranscriptEvent, practice: PracticeContext = Depends(get_practice)):
    """Событие распознавания речи от браузера"""
    practice.supervisor.handle_event(event)
    return session_status(practice)


@router.post("/session/stop", response_model=SessionOutcome)
async def stop_session(practice: PracticeContext = Depends(get_practice)):
    """
    Останавливает запись. Для достаточно длинных сессий запускает анализ
    и ждет его; ошибка анализа возвращается в поле error.
    """
    return await practice.supervisor.stop()


@router.put("/session/scenario", response_model=SessionStatus)
async def set_scenario(update: ScenarioUpdate, practice: PracticeContext = Depends(get_practice)):
    practice.supervisor.set_scenario(update.scenario)
    return session_status(practice)


@router.post("/messages", response_model=AnalysisResult)
async def send_message(message: MessageRequest, practice: PracticeContext = Depends(get_practice)):
    """Анализ набранного сообщения в текущем сценарии"""
    return await practice.supervisor.submit_text(message.text)
