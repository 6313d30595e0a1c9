import logging
from pathlib import Path
from typing import Callable, Optional

from speech_practice.core.config import Settings, settings as default_settings
from speech_practice.services.conversation import ConversationContext
from speech_practice.services.events import EventBus
from speech_practice.services.gemini import GeminiClient
from speech_practice.services.metrics_engine import MetricsEngine
from speech_practice.services.orchestrator import AnalysisOrchestrator, TextGenerator
from speech_practice.services.recognizer import SpeechRecognizer
from speech_practice.services.response_parser import ResponseParser
from speech_practice.services.session_store import SessionStore
from speech_practice.services.storage import (
    CredentialStore, JsonFileKeyValueStore, KeyValueStore
)
from speech_practice.services.supervisor import SessionSupervisor
from speech_practice.services.text_analyzer import TextAnalyzer

logger = logging.getLogger(__name__)


class PracticeContext:
    """
    Все компоненты одной практики, собранные вместе.
    Создается в lifespan приложения (или в тестах) и передается явно.
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        store: Optional[KeyValueStore] = None,
        generator: Optional[TextGenerator] = None,
        recognizer: Optional[SpeechRecognizer] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.config = config or default_settings
        self.store = store if store is not None else JsonFileKeyValueStore(Path(self.config.storage_path))

        env_key = self.config.gemini_api_key.get_secret_value() if self.config.gemini_api_key else None
        self.credentials = CredentialStore(self.store, default=env_key)

        self.bus = EventBus()
        self.engine = MetricsEngine(self.config.filler_words)
        self.parser = ResponseParser()
        self.conversation = ConversationContext(self.config.context_limit)

        self._owns_generator = generator is None
        self.generator = generator if generator is not None else GeminiClient(self.credentials, self.config)

        self.orchestrator = AnalysisOrchestrator(
            self.generator,
            self.credentials,
            context=self.conversation,
            parser=self.parser,
            config=self.config,
        )
        self.sessions = SessionStore(
            self.store,
            limit=self.config.history_limit,
            min_duration_sec=self.config.session_min_duration_sec,
            bus=self.bus,
        )
        self.recognizer = recognizer
        self.supervisor = SessionSupervisor(
            self.engine,
            self.orchestrator,
            self.sessions,
            bus=self.bus,
            recognizer=self.recognizer,
            clock=clock,
            config=self.config,
        )
        self.text_analyzer = TextAnalyzer(
            self.generator,
            self.credentials,
            parser=self.parser,
            config=self.config,
        )
        logger.info(
            f"Practice context ready: history={len(self.sessions.history())}, "
            f"credential={'set' if self.credentials.has_credential() else 'missing'}")

    async def close(self):
        if self._owns_generator:
            await self.generator.close()
