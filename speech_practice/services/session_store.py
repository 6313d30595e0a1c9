import logging
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

from pydantic import TypeAdapter, ValidationError

from speech_practice.core.exceptions import PersistenceError
from speech_practice.models.analysis import AnalysisResult, Scenario, SpeechMetrics
from speech_practice.models.session import SessionRecord
from speech_practice.services.events import EventBus, HistoryCleared, SessionRecorded
from speech_practice.services.storage import HISTORY_KEY, KeyValueStore

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 20
DEFAULT_MIN_DURATION_SEC = 5.0

_HISTORY_ADAPTER = TypeAdapter(List[SessionRecord])


def _iso_timestamp(ts: float) -> str:
    """ISO-8601 в UTC с миллисекундами: 2024-05-01T10:00:00.000Z"""
    dt = datetime.fromtimestamp(ts, tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class SessionStore:
    """
    Ограниченная история сессий (новые первыми), хранится одним JSON-блобом.

    Ошибки хранилища не выходят наружу: поврежденные данные читаются как
    пустая история, ошибка записи оставляет историю только в памяти.
    """

    def __init__(
        self,
        store: KeyValueStore,
        limit: int = DEFAULT_HISTORY_LIMIT,
        min_duration_sec: float = DEFAULT_MIN_DURATION_SEC,
        clock: Optional[Callable[[], float]] = None,
        bus: Optional[EventBus] = None,
    ):
        self._store = store
        self._limit = limit
        self._min_duration_sec = min_duration_sec
        self._clock = clock or time.time
        self._bus = bus
        self._history: List[SessionRecord] = []
        self.load()

    @property
    def limit(self) -> int:
        return self._limit

    def history(self) -> Tuple[SessionRecord, ...]:
        return tuple(self._history)

    def load(self) -> List[SessionRecord]:
        """Восстанавливает историю из хранилища"""
        try:
            blob = self._store.get(HISTORY_KEY)
        except (PersistenceError, OSError) as e:
            logger.warning(f"История недоступна, используется пустая: {e}")
            blob = None

        records: List[SessionRecord] = []
        if blob:
            try:
                records = _HISTORY_ADAPTER.validate_json(blob)
            except (ValidationError, ValueError) as e:
                logger.warning(f"История повреждена, используется пустая: {e}")
                records = []

        self._history = records[:self._limit]
        logger.debug(f"Loaded {len(self._history)} sessions from storage")
        return list(self._history)

    def record(
        self,
        transcript: str,
        metrics: SpeechMetrics,
        analysis: Optional[AnalysisResult] = None,
        scenario: Scenario = Scenario.GENERAL,
    ) -> Optional[SessionRecord]:
        """
        Сохраняет завершенную сессию.

        Returns:
            Сохраненная запись, или None если сессия слишком короткая
            или транскрипт пуст
        """
        if not transcript or not transcript.strip():
            logger.debug("Session not stored: empty transcript")
            return None
        if metrics.duration <= self._min_duration_sec:
            logger.debug(f"Session not stored: duration {metrics.duration}s <= {self._min_duration_sec}s")
            return None

        now = self._clock()
        record_id = int(now * 1000)
        if self._history:
            newest_id = max(r.id for r in self._history)
            if record_id <= newest_id:
                record_id = newest_id + 1

        record = SessionRecord(
            id=record_id,
            date=_iso_timestamp(now),
            duration=metrics.duration,
            transcript=transcript.strip(),
            metrics=metrics,
            analysis=analysis,
            scenario=scenario,
        )

        history = [record] + self._history
        history = history[:self._limit]
        self._persist(history)
        self._history = history

        logger.info(f"Session {record.id} stored ({len(self._history)}/{self._limit})")
        if self._bus is not None:
            self._bus.emit(SessionRecorded(record=record))
        return record

    def clear(self) -> bool:
        """
        Очищает историю и хранилище.

        Память очищается только после успешного удаления из хранилища,
        поэтому наблюдатель видит либо старую историю, либо пустую.
        """
        try:
            self._store.delete(HISTORY_KEY)
        except (PersistenceError, OSError) as e:
            logger.error(f"Не удалось очистить историю: {e}")
            return False

        removed = len(self._history)
        self._history = []
        logger.info(f"History cleared ({removed} sessions)")
        if self._bus is not None:
            self._bus.emit(HistoryCleared(removed=removed))
        return True

    def _persist(self, history: List[SessionRecord]) -> None:
        blob = _HISTORY_ADAPTER.dump_json(history, by_alias=True).decode("utf-8")
        try:
            self._store.set(HISTORY_KEY, blob)
        except (PersistenceError, OSError) as e:
            logger.error(f"История сохранена только в памяти: {e}")
