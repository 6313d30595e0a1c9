import asyncio
import logging
from typing import AsyncIterator, Optional, Protocol

from speech_practice.models.transcript import TranscriptEvent

logger = logging.getLogger(__name__)


class SpeechRecognizer(Protocol):
    """Внешний движок распознавания речи (черный ящик)"""

    def start(self) -> None: ...

    def stop(self) -> None: ...

    def events(self) -> AsyncIterator[TranscriptEvent]: ...


_STOP = object()


class QueueSpeechRecognizer:
    """
    Распознаватель, в который события передаются извне (браузер через API,
    тесты). Поток событий конечен в пределах одной записи и создается
    заново при каждом start().
    """

    def __init__(self):
        self._queue: Optional[asyncio.Queue] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        self._queue = asyncio.Queue()
        self._running = True
        logger.debug("Recognizer started")

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        self._queue.put_nowait(_STOP)
        logger.debug("Recognizer stopped")

    def push(self, event: TranscriptEvent) -> bool:
        """Добавляет событие в поток. False, если запись не идет"""
        if not self._running:
            return False
        self._queue.put_nowait(event)
        return True

    async def events(self) -> AsyncIterator[TranscriptEvent]:
        queue = self._queue
        if queue is None:
            return
        while True:
            # После stop() и чтения маркера ждать больше нечего
            if not self._running and queue.empty():
                return
            item = await queue.get()
            if item is _STOP:
                return
            yield item
