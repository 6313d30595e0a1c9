"""
События для слоя отображения.

Ядро ничего не рисует: оно публикует типизированные события, а UI
(или SSE-эндпоинт) подписывается и отображает их.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Union

from speech_practice.models.analysis import AnalysisResult, SpeechMetrics
from speech_practice.models.session import SessionRecord, SessionState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StateChanged:
    previous: SessionState
    current: SessionState
    kind: str = field(default="state_changed", init=False)


@dataclass(frozen=True)
class MetricsUpdated:
    metrics: SpeechMetrics
    display_transcript: str = ""
    kind: str = field(default="metrics_updated", init=False)


@dataclass(frozen=True)
class AnalysisCompleted:
    analysis: AnalysisResult
    kind: str = field(default="analysis_completed", init=False)


@dataclass(frozen=True)
class AnalysisFailed:
    error: str
    error_type: str
    kind: str = field(default="analysis_failed", init=False)


@dataclass(frozen=True)
class SessionRecorded:
    record: SessionRecord
    kind: str = field(default="session_recorded", init=False)


@dataclass(frozen=True)
class HistoryCleared:
    removed: int
    kind: str = field(default="history_cleared", init=False)


Event = Union[StateChanged, MetricsUpdated, AnalysisCompleted,
              AnalysisFailed, SessionRecorded, HistoryCleared]
Listener = Callable[[Event], None]


def event_to_dict(event: Event) -> dict:
    """JSON-представление события (для SSE)"""
    payload = {"type": event.kind}
    if isinstance(event, StateChanged):
        payload.update(previous=event.previous.value, current=event.current.value)
    elif isinstance(event, MetricsUpdated):
        payload.update(metrics=event.metrics.to_json_dict(),
                       displayTranscript=event.display_transcript)
    elif isinstance(event, AnalysisCompleted):
        payload.update(analysis=event.analysis.to_json_dict())
    elif isinstance(event, AnalysisFailed):
        payload.update(error=event.error, errorType=event.error_type)
    elif isinstance(event, SessionRecorded):
        payload.update(record=event.record.to_json_dict())
    elif isinstance(event, HistoryCleared):
        payload.update(removed=event.removed)
    return payload


class EventBus:
    """Синхронная рассылка событий подписчикам в порядке подписки"""

    def __init__(self):
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Подписывает слушателя, возвращает функцию отписки"""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: Event) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                # Ошибка в UI-слушателе не должна ломать конечный автомат
                logger.error(f"Event listener failed on {event.kind}: {e}", exc_info=True)
