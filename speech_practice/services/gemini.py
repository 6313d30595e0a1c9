import logging
from typing import Any, Dict, Optional, Sequence

import httpx

from speech_practice.core.config import Settings, settings as default_settings
from speech_practice.core.exceptions import AnalysisServiceError, MissingCredentialError
from speech_practice.models.session import ConversationEntry, Role
from speech_practice.services.storage import CredentialStore

logger = logging.getLogger(__name__)

SAFETY_SETTINGS = [
    {
        "category": "HARM_CATEGORY_HARASSMENT",
        "threshold": "BLOCK_MEDIUM_AND_ABOVE",
    }
]


class GeminiClient:
    """Gemini API client (generateContent)."""

    def __init__(
        self,
        credentials: CredentialStore,
        config: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        config = config or default_settings
        self.credentials = credentials
        self.api_url = config.gemini_api_url.rstrip("/")
        self.model = config.gemini_model
        self.timeout = config.gemini_timeout
        self.default_generation_config = config.generation_config()

        self.client = httpx.AsyncClient(
            timeout=self.timeout,
            transport=transport,
            limits=httpx.Limits(
                max_keepalive_connections=5, max_connections=10)
        )

    @property
    def endpoint(self) -> str:
        return f"{self.api_url}/v1beta/models/{self.model}:generateContent"

    async def generate(
        self,
        prompt: str,
        history: Sequence[ConversationEntry] = (),
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Отправляет инструкцию (и предыдущие реплики) в Gemini и возвращает
        текст ответа как есть, без разбора.

        Raises:
            MissingCredentialError: ключ API не настроен
            AnalysisServiceError: ошибка сети, HTTP или пустой ответ
        """
        api_key = self.credentials.get()
        if not api_key:
            raise MissingCredentialError()

        contents = [
            {
                "role": "model" if entry.role == Role.ASSISTANT else "user",
                "parts": [{"text": entry.content}],
            }
            for entry in history
        ]
        contents.append({"role": "user", "parts": [{"text": prompt}]})

        request_data = {
            "contents": contents,
            "generationConfig": generation_config or self.default_generation_config,
            "safetySettings": SAFETY_SETTINGS,
        }

        headers = {
            "Content-Type": "application/json",
            "x-goog-api-key": api_key,
        }

        logger.info(f"Sending analysis request to Gemini ({self.model}, {len(contents)} turns)")

        try:
            response = await self.client.post(self.endpoint, json=request_data, headers=headers)
        except httpx.TimeoutException as e:
            logger.error(f"Gemini request timed out: {e}")
            raise AnalysisServiceError(f"Gemini API request timed out after {self.timeout}s")
        except httpx.RequestError as e:
            logger.error(f"Gemini API request failed: {e}")
            raise AnalysisServiceError(f"Connection failed to Gemini API: {e}")

        if response.status_code != 200:
            message = self._error_message(response)
            logger.error(f"Gemini API error {response.status_code}: {message}")
            if response.status_code == 429:
                raise AnalysisServiceError(
                    "Gemini rate limit exceeded. Please try again later.")
            raise AnalysisServiceError(f"Gemini API error: {message}")

        try:
            result = response.json()
        except ValueError:
            raise AnalysisServiceError("Invalid API response format")

        text = self._extract_text(result)
        if not text:
            logger.error("No candidates text in Gemini response")
            raise AnalysisServiceError("Invalid API response format")

        logger.info(f"Gemini response received: {len(text)} characters")
        return text

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            data = None
        error = data.get("error") if isinstance(data, dict) else None
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        return response.reason_phrase or f"HTTP {response.status_code}"

    @staticmethod
    def _extract_text(result: Any) -> str:
        if not isinstance(result, dict):
            return ""
        candidates = result.get("candidates") or []
        if not candidates or not isinstance(candidates[0], dict):
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(p.get("text", "") for p in parts if isinstance(p, dict))

    async def close(self):
        """Закрывает HTTP-клиент"""
        try:
            await self.client.aclose()
            logger.debug("Gemini HTTP клиент закрыт")
        except Exception as e:
            logger.debug(f"Ошибка закрытия HTTP клиента: {e}")
