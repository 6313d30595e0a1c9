import asyncio
import logging
from typing import Optional

from speech_practice.core.config import Settings, settings as default_settings
from speech_practice.core.exceptions import (
    AnalysisServiceError,
    EmptyInputError,
    MissingCredentialError,
    SpeechPracticeException,
    TextTooLongError,
)
from speech_practice.models.analysis import TextAnalysisResult
from speech_practice.services.orchestrator import TextGenerator
from speech_practice.services.response_parser import ResponseParser
from speech_practice.services.storage import CredentialStore

logger = logging.getLogger(__name__)

TEXT_ANALYSIS_TOP_K = 32


def build_text_prompt(text: str) -> str:
    return f"""You are a professional writing coach. Analyze the following text for grammar, style, and clarity. Provide specific, actionable feedback.

Text to analyze: "{text}"

Focus on:
1. Grammar and punctuation accuracy
2. Sentence structure and flow
3. Word choice and vocabulary effectiveness
4. Style and tone appropriateness
5. Overall clarity and impact

Respond with a JSON object in this exact format:
{{
    "grammarScore": <number between 1-10>,
    "styleScore": <number between 1-10>,
    "corrections": [
        {{
            "type": "error",
            "original": "<exact text with error>",
            "correction": "<corrected version>",
            "explanation": "<brief explanation of the correction>"
        }}
    ],
    "strengths": ["<specific strength 1>", "<specific strength 2>", "<specific strength 3>"],
    "improvements": ["<specific improvement 1>", "<specific improvement 2>", "<specific improvement 3>"]
}}

Ensure the response is valid JSON and includes all fields. The corrections array can be empty if no errors are found.
Keep explanations concise and actionable."""


class TextAnalyzer:
    """Проверка грамматики и стиля набранного текста"""

    def __init__(
        self,
        generator: TextGenerator,
        credentials: CredentialStore,
        parser: Optional[ResponseParser] = None,
        config: Optional[Settings] = None,
    ):
        config = config or default_settings
        self.generator = generator
        self.credentials = credentials
        self.parser = parser or ResponseParser()
        self.max_chars = config.text_max_chars
        self.timeout = config.analysis_timeout_sec
        self.generation_config = config.generation_config(topK=TEXT_ANALYSIS_TOP_K)

    async def analyze(self, text: str) -> TextAnalysisResult:
        """
        Raises:
            EmptyInputError: пустой текст
            TextTooLongError: текст длиннее max_chars
            MissingCredentialError: ключ API не настроен
            AnalysisServiceError: ошибка сервиса или таймаут
        """
        text = (text or "").strip()
        if not text:
            raise EmptyInputError("Text is empty")
        if len(text) > self.max_chars:
            raise TextTooLongError(
                f"Text is too long: {len(text)} characters (max {self.max_chars})")
        if not self.credentials.has_credential():
            raise MissingCredentialError()

        logger.info(f"Analyzing text ({len(text)} characters)")
        try:
            raw_text = await asyncio.wait_for(
                self.generator.generate(build_text_prompt(text), (), self.generation_config),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"Text analysis timed out after {self.timeout}s")
            raise AnalysisServiceError(f"Analysis timed out after {self.timeout:g}s")
        except SpeechPracticeException:
            raise
        except Exception as e:
            logger.error(f"Unexpected error from analysis service: {e}")
            raise AnalysisServiceError(f"Analysis service error: {e}") from e

        result = self.parser.parse_text_analysis(raw_text)
        logger.info(
            f"Text analysis finished: grammar={result.grammar_score}, "
            f"style={result.style_score}, fallback={result.is_fallback}")
        return result
