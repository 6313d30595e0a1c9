import asyncio
import logging
import time
from typing import Callable, List, Optional, Union

from speech_practice.core.config import Settings, settings as default_settings
from speech_practice.core.exceptions import (
    EmptyInputError,
    InvalidTransitionError,
    MissingCredentialError,
    SpeechPracticeException,
)
from speech_practice.models.analysis import AnalysisResult, Scenario, SpeechMetrics
from speech_practice.models.session import SessionOutcome, SessionState
from speech_practice.models.transcript import TranscriptEvent
from speech_practice.services.events import (
    AnalysisCompleted, AnalysisFailed, EventBus, MetricsUpdated, StateChanged
)
from speech_practice.services.metrics_engine import MetricsEngine
from speech_practice.services.orchestrator import AnalysisOrchestrator
from speech_practice.services.recognizer import SpeechRecognizer
from speech_practice.services.session_store import SessionStore

logger = logging.getLogger(__name__)

# Сколько stop() ждет, пока распознаватель отдаст события из очереди
RECOGNIZER_DRAIN_TIMEOUT_SEC = 5.0


def _now_ms() -> float:
    return time.time() * 1000


class SessionSupervisor:
    """
    Конечный автомат сессии практики:
    idle -> recording -> stopping -> analyzing -> idle
    (analyzing -> error -> idle при ошибке сервиса).

    Все изменения состояния происходят в одном потоке событий; ожидание
    возможно только при дочитывании распознавателя и на вызове анализа.
    """

    def __init__(
        self,
        engine: MetricsEngine,
        orchestrator: AnalysisOrchestrator,
        store: SessionStore,
        bus: Optional[EventBus] = None,
        recognizer: Optional[SpeechRecognizer] = None,
        config: Optional[Settings] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        config = config or default_settings
        self.engine = engine
        self.orchestrator = orchestrator
        self.store = store
        self.bus = bus or EventBus()
        self.recognizer = recognizer
        self.analysis_min_duration_sec = config.analysis_min_duration_sec
        self._clock = clock or _now_ms

        self.scenario = Scenario.GENERAL
        self._state = SessionState.IDLE
        self._committed: List[str] = []
        self._interim = ""
        self._started_at_ms: Optional[float] = None
        self._metrics = SpeechMetrics()
        self._listen_done: Optional[asyncio.Event] = None
        self.last_error: Optional[str] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def metrics(self) -> SpeechMetrics:
        return self._metrics

    @property
    def transcript(self) -> str:
        """Зафиксированный текст (только финальные события)"""
        return " ".join(self._committed)

    @property
    def display_transcript(self) -> str:
        """Зафиксированный текст и промежуточный хвост (только для показа)"""
        if self._interim:
            return f"{self.transcript} {self._interim}".strip()
        return self.transcript

    def _transition(self, new_state: SessionState) -> None:
        previous = self._state
        self._state = new_state
        logger.debug(f"Session state: {previous.value} -> {new_state.value}")
        self.bus.emit(StateChanged(previous=previous, current=new_state))

    def set_scenario(self, scenario: Union[Scenario, str]) -> Scenario:
        """Меняет сценарий; контекст разговора при этом сбрасывается"""
        self.scenario = Scenario(scenario)
        self.orchestrator.context.clear()
        logger.info(f"Scenario set to {self.scenario.value}")
        return self.scenario

    def start(self) -> None:
        if self._state != SessionState.IDLE:
            raise InvalidTransitionError(f"Cannot start recording in state '{self._state.value}'")

        self._committed = []
        self._interim = ""
        self._metrics = SpeechMetrics()
        self.last_error = None
        self._started_at_ms = self._clock()

        if self.recognizer is not None:
            self.recognizer.start()
        self._transition(SessionState.RECORDING)

    def handle_event(self, event: TranscriptEvent) -> SpeechMetrics:
        """
        Применяет событие распознавания. Финальный текст добавляется
        навсегда, промежуточный заменяет хвост и в метрики не попадает.

        Время считается по часам сервиса в момент приема события:
        timestamp_ms приходит с часов клиента и с ними не сравнивается.
        """
        if self._state != SessionState.RECORDING:
            logger.debug(f"Ignoring transcript event in state '{self._state.value}'")
            return self._metrics
        return self._apply_event(event)

    def _apply_event(self, event: TranscriptEvent) -> SpeechMetrics:
        text = " ".join(event.text.split())
        if event.is_final:
            if text:
                self._committed.append(text)
            self._interim = ""
        else:
            self._interim = text

        self._metrics = self.engine.compute(self.transcript, self._elapsed_sec())
        self.bus.emit(MetricsUpdated(metrics=self._metrics, display_transcript=self.display_transcript))
        return self._metrics

    def _elapsed_sec(self) -> float:
        return max(self._clock() - self._started_at_ms, 0.0) / 1000.0

    async def listen(self) -> None:
        """
        Читает поток событий распознавателя до его конца. События, которые
        движок успел выдать до stop(), тоже применяются.
        """
        if self.recognizer is None:
            raise InvalidTransitionError("No speech recognizer attached")

        done = asyncio.Event()
        self._listen_done = done
        try:
            await self._consume_recognizer()
        finally:
            done.set()
            if self._listen_done is done:
                self._listen_done = None

    async def _consume_recognizer(self) -> None:
        async for event in self.recognizer.events():
            if self._state not in (SessionState.RECORDING, SessionState.STOPPING):
                break
            self._apply_event(event)

    async def _drain_recognizer(self) -> None:
        """Дожидается, пока очередь распознавателя будет прочитана до конца"""
        if self._listen_done is not None:
            drain = self._listen_done.wait()
        else:
            drain = self._consume_recognizer()
        try:
            await asyncio.wait_for(drain, timeout=RECOGNIZER_DRAIN_TIMEOUT_SEC)
        except asyncio.TimeoutError:
            logger.warning(
                f"Recognizer did not finish within {RECOGNIZER_DRAIN_TIMEOUT_SEC}s, "
                "finalizing with events received so far")

    async def stop(self) -> SessionOutcome:
        """
        Завершает запись. Анализ запускается только для сессий длиннее
        порога и если анализ еще не выполняется; иначе сессия сохраняется
        без анализа. Длительность фиксируется в момент вызова, затем
        дочитываются события, уже выданные распознавателем.
        """
        if self._state != SessionState.RECORDING:
            raise InvalidTransitionError(f"Cannot stop in state '{self._state.value}'")

        if self.recognizer is not None:
            self.recognizer.stop()
        self._transition(SessionState.STOPPING)

        try:
            elapsed_sec = self._elapsed_sec()
            if self.recognizer is not None:
                await self._drain_recognizer()

            self._interim = ""
            transcript = self.transcript
            metrics = self.engine.compute(transcript, elapsed_sec)
            self._metrics = metrics
            self.bus.emit(MetricsUpdated(metrics=metrics, display_transcript=transcript))

            if (metrics.duration > self.analysis_min_duration_sec
                    and transcript.strip()
                    and not self.orchestrator.in_flight):
                return await self._analyze_and_record(transcript, metrics)

            logger.info(f"Session finished without analysis ({metrics.duration}s)")
            record = self.store.record(transcript, metrics, None, self.scenario)
            return SessionOutcome(metrics=metrics, record=record)
        finally:
            if self._state != SessionState.IDLE:
                self._transition(SessionState.IDLE)

    async def _analyze_and_record(self, transcript: str, metrics: SpeechMetrics) -> SessionOutcome:
        self._transition(SessionState.ANALYZING)
        try:
            analysis = await self.orchestrator.analyze(transcript, metrics, self.scenario)
        except MissingCredentialError as e:
            # Без ключа анализ недоступен, но сессия сохраняется
            logger.info("Analysis skipped: API key not set")
            self.last_error = e.detail
            self.bus.emit(AnalysisFailed(error=e.detail, error_type=type(e).__name__))
            record = self.store.record(transcript, metrics, None, self.scenario)
            return SessionOutcome(metrics=metrics, record=record, error=e.detail)
        except SpeechPracticeException as e:
            logger.error(f"Error analyzing session: {e.detail}")
            self.last_error = e.detail
            self._transition(SessionState.ERROR)
            self.bus.emit(AnalysisFailed(error=e.detail, error_type=type(e).__name__))
            record = self.store.record(transcript, metrics, None, self.scenario)
            return SessionOutcome(metrics=metrics, record=record, error=e.detail)

        self.bus.emit(AnalysisCompleted(analysis=analysis))
        record = self.store.record(transcript, metrics, analysis, self.scenario)
        return SessionOutcome(metrics=metrics, analysis=analysis, record=record, analyzed=True)

    async def submit_text(self, text: str) -> AnalysisResult:
        """
        Набранное сообщение вместо речи: метрики оцениваются по тексту,
        результат анализа возвращается вызывающему (в историю не пишется).
        """
        if not text or not text.strip():
            raise EmptyInputError("Message is empty")

        metrics = self.engine.estimate_typed(text)
        try:
            analysis = await self.orchestrator.analyze(text, metrics, self.scenario)
        except SpeechPracticeException as e:
            self.bus.emit(AnalysisFailed(error=e.detail, error_type=type(e).__name__))
            raise

        self.bus.emit(AnalysisCompleted(analysis=analysis))
        return analysis
