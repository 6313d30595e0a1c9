import math
import re
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from speech_practice.core.config import DEFAULT_FILLER_WORDS
from speech_practice.models.analysis import SpeechMetrics

logger = logging.getLogger(__name__)

# --------------------
# Константы
# --------------------

# Темп чтения для набранного текста (речи не было, длительность оценочная)
TYPED_READING_WPM = 150
TYPED_WORDS_PER_SECOND = 2.5

# Все, кроме букв, цифр и апострофа внутри слова
_NON_WORD_RE = re.compile(r"[^\w']+")


def normalize_token(token: str) -> str:
    """Нижний регистр, без пунктуации ("Um," -> "um", "don't" остается)"""
    return _NON_WORD_RE.sub("", token.lower()).strip("'_")


class MetricsEngine:
    """
    Вычисление метрик речи по транскрипту.

    Чистая функция от (текст, время): внутреннего состояния нет, кроме
    словаря слов-паразитов. Повторный вызов на растущем транскрипте дает
    тот же результат, что и однократный вызов на тексте целиком.
    """

    def __init__(self, filler_words: Optional[Iterable[str]] = None):
        words = DEFAULT_FILLER_WORDS if filler_words is None else filler_words
        fillers: List[Tuple[str, Tuple[str, ...]]] = []
        for phrase in words:
            tokens = tuple(t for t in (normalize_token(p) for p in phrase.split()) if t)
            name = " ".join(tokens)
            if tokens and name not in dict(fillers):
                fillers.append((name, tokens))

        # Длинные фразы проверяем первыми: "you know" раньше, чем "you"
        self._fillers = sorted(fillers, key=lambda f: len(f[1]), reverse=True)
        self._vocabulary = [name for name, _ in fillers]
        logger.debug(f"Filler vocabulary: {self._vocabulary}")

    @property
    def filler_vocabulary(self) -> List[str]:
        return list(self._vocabulary)

    def compute(self, transcript: str, elapsed_seconds: float) -> SpeechMetrics:
        """
        Возвращает снимок метрик для транскрипта на момент elapsed_seconds.

        Пустой транскрипт дает нулевые метрики (разнообразие 0, не NaN).
        Длительность не округляется: пороги хранения и анализа сравниваются
        с точным значением.
        """
        words = self.split_words(transcript)
        word_count = len(words)
        duration = max(float(elapsed_seconds or 0.0), 0.0)

        if word_count == 0:
            return SpeechMetrics(duration=duration)

        filler_total, _ = self.count_fillers(transcript)

        return SpeechMetrics(
            wpm=self._calculate_wpm(word_count, duration),
            filler_word_count=filler_total,
            vocabulary_diversity=self._vocabulary_diversity(words),
            word_count=word_count,
            duration=duration,
        )

    def count_fillers(self, text: str) -> Tuple[int, Dict[str, int]]:
        """Считает слова-паразиты. Возвращает (всего, {паразит: количество})"""
        tokens = [t for t in (normalize_token(w) for w in self.split_words(text)) if t]
        if not tokens:
            return 0, {}

        counts: Dict[str, int] = {}
        total = 0
        i = 0
        while i < len(tokens):
            matched = 0
            for name, phrase in self._fillers:
                size = len(phrase)
                if tuple(tokens[i:i + size]) == phrase:
                    counts[name] = counts.get(name, 0) + 1
                    total += 1
                    matched = size
                    break
            i += matched or 1

        ordered = {name: counts[name] for name in self._vocabulary if name in counts}
        return total, ordered

    def estimate_typed(self, text: str) -> SpeechMetrics:
        """
        Метрики для набранного текста: темп принимается равным скорости
        чтения, длительность оценивается по числу слов.
        """
        words = self.split_words(text)
        if not words:
            return SpeechMetrics()

        filler_total, _ = self.count_fillers(text)
        return SpeechMetrics(
            wpm=TYPED_READING_WPM,
            filler_word_count=filler_total,
            vocabulary_diversity=self._vocabulary_diversity(words),
            word_count=len(words),
            duration=float(math.ceil(len(words) / TYPED_WORDS_PER_SECOND)),
        )

    @staticmethod
    def split_words(text: str) -> List[str]:
        """Разделяет текст на слова по пробельным символам"""
        if not text:
            return []
        return text.split()

    @staticmethod
    def _calculate_wpm(words_total: int, elapsed_seconds: float) -> float:
        """Рассчитывает слова в минуту"""
        if elapsed_seconds <= 0 or words_total <= 0:
            return 0
        return round(words_total / (elapsed_seconds / 60.0))

    @staticmethod
    def _vocabulary_diversity(words: List[str]) -> float:
        normalized = [t for t in (normalize_token(w) for w in words) if t]
        if not normalized:
            return 0.0
        return round(len(set(normalized)) / len(normalized), 4)
