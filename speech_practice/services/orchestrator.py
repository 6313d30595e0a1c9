import asyncio
import json
import logging
from typing import Any, Dict, Optional, Protocol, Sequence, Union

from speech_practice.core.config import Settings, settings as default_settings
from speech_practice.core.exceptions import (
    AnalysisInProgressError,
    AnalysisServiceError,
    EmptyInputError,
    MissingCredentialError,
    SpeechPracticeException,
)
from speech_practice.models.analysis import (
    AnalysisRequest, AnalysisResult, Scenario, SpeechMetrics
)
from speech_practice.models.session import ConversationEntry, Role
from speech_practice.services.conversation import ConversationContext
from speech_practice.services.response_parser import ResponseParser
from speech_practice.services.storage import CredentialStore

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    """Внешний сервис генерации текста: инструкция -> сырой текст"""

    async def generate(
        self,
        prompt: str,
        history: Sequence[ConversationEntry] = (),
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> str: ...


SCENARIO_CONTEXTS = {
    Scenario.INTERVIEW: "You are in a job interview setting. Provide professional and concise responses.",
    Scenario.SOCIAL: "You are in a casual social conversation. Keep responses friendly and engaging.",
    Scenario.PUBLIC: "You are giving a public speech or presentation. Focus on clarity, structure, and engagement.",
    Scenario.GENERAL: "You are practicing general speaking skills. Focus on clear communication.",
}


def build_analysis_prompt(request: AnalysisRequest) -> str:
    """Инструкция для сервиса анализа вместе с требуемой JSON-схемой ответа"""
    metrics = request.metrics
    context = SCENARIO_CONTEXTS.get(request.scenario, SCENARIO_CONTEXTS[Scenario.GENERAL])

    return f"""You are a professional speech coach. Analyze the following speech transcript and metrics to provide detailed, actionable feedback.

Transcript: "{request.transcript}"

Speaking Metrics:
- Words per minute: {metrics.wpm:g}
- Filler word count: {metrics.filler_word_count}
- Vocabulary diversity: {metrics.vocabulary_diversity * 100:.1f}%
- Duration: {round(metrics.duration, 1):g} seconds

Context: {context}

Focus on:
1. Speaking pace and rhythm
2. Filler word usage and verbal habits
3. Vocabulary choice and variety
4. Sentence structure and flow
5. Overall clarity and impact
6. Specific improvements based on the practice scenario

Respond with a JSON object in this exact format:
{{
    "toneFeedback": "<emotional tone assessment>",
    "overallScore": <number between 1-10>,
    "corrections": [
        {{
            "type": "suggestion",
            "original": "<problematic phrase or pattern>",
            "correction": "<improved version>",
            "explanation": "<brief, actionable explanation>"
        }}
    ],
    "feedback": "<general feedback paragraph>",
    "strengths": ["<specific strength 1>", "<specific strength 2>"],
    "improvements": [
        "<specific improvement suggestion 1>",
        "<specific improvement suggestion 2>",
        "<specific improvement suggestion 3>"
    ]
}}

Keep feedback constructive and actionable. Focus on patterns rather than individual words unless they significantly impact clarity."""


class AnalysisOrchestrator:
    """
    Последовательный анализ сессии через внешний сервис.

    Один экземпляр на логическую сессию: одновременно выполняется не более
    одного запроса (флаг in_flight), второй вызов отклоняется.
    """

    def __init__(
        self,
        generator: TextGenerator,
        credentials: CredentialStore,
        context: Optional[ConversationContext] = None,
        parser: Optional[ResponseParser] = None,
        config: Optional[Settings] = None,
    ):
        config = config or default_settings
        self.generator = generator
        self.credentials = credentials
        self.context = context if context is not None else ConversationContext(config.context_limit)
        self.parser = parser or ResponseParser()
        self.timeout = config.analysis_timeout_sec
        self.generation_config = config.generation_config()
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def analyze(
        self,
        transcript: str,
        metrics: SpeechMetrics,
        scenario: Union[Scenario, str] = Scenario.GENERAL,
    ) -> AnalysisResult:
        """
        Анализирует транскрипт и возвращает результат (или fallback парсера).

        Raises:
            EmptyInputError: пустой транскрипт
            MissingCredentialError: ключ API не настроен
            AnalysisInProgressError: анализ этой сессии уже выполняется
            AnalysisServiceError: ошибка сервиса, сети или таймаут
        """
        if not transcript or not transcript.strip():
            raise EmptyInputError()
        if not self.credentials.has_credential():
            raise MissingCredentialError()
        if self._in_flight:
            logger.warning("Analysis already in flight, rejecting duplicate request")
            raise AnalysisInProgressError()

        # Флаг ставится до первого await, поэтому блокировка не нужна
        self._in_flight = True
        try:
            request = AnalysisRequest(
                transcript=transcript.strip(),
                metrics=metrics,
                scenario=Scenario(scenario),
            )
            prompt = build_analysis_prompt(request)

            history = self.context.snapshot()
            raw_text = await self._generate(prompt, history)
            result = self.parser.parse(raw_text)

            # Обмен пишется в контекст целиком, только после ответа сервиса
            self.context.append(Role.USER, request.transcript)
            self.context.append(
                Role.ASSISTANT,
                json.dumps(result.to_json_dict(), ensure_ascii=False),
            )
            logger.info(
                f"Analysis finished: score={result.overall_score}, "
                f"fallback={result.is_fallback}")
            return result
        finally:
            self._in_flight = False

    async def _generate(self, prompt: str, history: Sequence[ConversationEntry]) -> str:
        try:
            return await asyncio.wait_for(
                self.generator.generate(prompt, history, self.generation_config),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"Analysis request timed out after {self.timeout}s")
            raise AnalysisServiceError(f"Analysis timed out after {self.timeout:g}s")
        except SpeechPracticeException:
            raise
        except Exception as e:
            logger.error(f"Unexpected error from analysis service: {e}")
            raise AnalysisServiceError(f"Analysis service error: {e}") from e
