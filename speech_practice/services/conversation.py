from collections import deque
from typing import Deque, Tuple, Union

from speech_practice.models.session import ConversationEntry, Role

DEFAULT_CONTEXT_LIMIT = 10


class ConversationContext:
    """Скользящая история последних обменов (FIFO, старые вытесняются)"""

    def __init__(self, limit: int = DEFAULT_CONTEXT_LIMIT):
        if limit <= 0:
            raise ValueError("limit must be positive")
        self._entries: Deque[ConversationEntry] = deque(maxlen=limit)

    @property
    def limit(self) -> int:
        return self._entries.maxlen

    def append(self, role: Union[Role, str], content: str) -> ConversationEntry:
        entry = ConversationEntry(role=Role(role), content=content)
        self._entries.append(entry)
        return entry

    def snapshot(self) -> Tuple[ConversationEntry, ...]:
        """Последние записи, от старых к новым"""
        return tuple(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
