import logging

from fastapi import Depends, Request

from speech_practice.models.session import SessionStatus
from speech_practice.services.context import PracticeContext
from speech_practice.services.session_store import SessionStore
from speech_practice.services.storage import CredentialStore
from speech_practice.services.supervisor import SessionSupervisor
from speech_practice.services.text_analyzer import TextAnalyzer

logger = logging.getLogger(__name__)


def get_practice(request: Request) -> PracticeContext:
    """Контекст практики, созданный в lifespan"""
    return request.app.state.practice


def get_supervisor(practice: PracticeContext = Depends(get_practice)) -> SessionSupervisor:
    return practice.supervisor


def get_session_store(practice: PracticeContext = Depends(get_practice)) -> SessionStore:
    return practice.sessions


def get_credentials(practice: PracticeContext = Depends(get_practice)) -> CredentialStore:
    return practice.credentials


def get_text_analyzer(practice: PracticeContext = Depends(get_practice)) -> TextAnalyzer:
    return practice.text_analyzer


def session_status(practice: PracticeContext) -> SessionStatus:
    supervisor = practice.supervisor
    return SessionStatus(
        state=supervisor.state,
        scenario=supervisor.scenario,
        metrics=supervisor.metrics,
        transcript=supervisor.transcript,
        display_transcript=supervisor.display_transcript,
        analysis_in_flight=practice.orchestrator.in_flight,
        has_credential=practice.credentials.has_credential(),
        last_error=supervisor.last_error,
    )
