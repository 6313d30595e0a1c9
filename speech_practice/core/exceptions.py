"""
Иерархия исключений сервиса.

Ошибки сети и отсутствие ключа доходят до вызывающего кода (их видит
пользователь). Ошибки разбора ответа и хранилища обрабатываются на месте
и наружу не выходят.
"""
from fastapi import status


class SpeechPracticeException(Exception):
    """Базовое исключение приложения"""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail: str = "Speech practice error"

    def __init__(self, detail: str = None, status_code: int = None):
        self.detail = detail or self.default_detail
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.detail)


class MissingCredentialError(SpeechPracticeException):
    """Ключ API не настроен: анализ недоступен, запись продолжает работать"""
    status_code = status.HTTP_424_FAILED_DEPENDENCY
    default_detail = "API key not set"


class EmptyInputError(SpeechPracticeException):
    """Пустой транскрипт или текст, отклоняется до сетевого вызова"""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Transcript is empty"


class TextTooLongError(SpeechPracticeException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Text is too long"


class AnalysisServiceError(SpeechPracticeException):
    """Ошибка транспорта/HTTP при обращении к сервису анализа"""
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "Analysis service error"


class AnalysisInProgressError(SpeechPracticeException):
    """Для этой сессии уже выполняется анализ"""
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Analysis already in progress for this session"


class InvalidTransitionError(SpeechPracticeException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Invalid session state transition"


class MalformedResponseError(SpeechPracticeException):
    """Ответ сервиса не удалось разобрать (поглощается парсером)"""
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "Malformed analysis response"


class PersistenceError(SpeechPracticeException):
    """Хранилище недоступно или повреждено (поглощается хранилищем сессий)"""
    default_detail = "Storage error"
