import json
import re
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from speech_practice.core.exceptions import MalformedResponseError
from speech_practice.models.analysis import (
    AnalysisResult, Correction, TextAnalysisResult
)

logger = logging.getLogger(__name__)

# Ограничение на число очищенных пар скобок, которые пробуем раскодировать
MAX_DECODE_ATTEMPTS = 200


def fallback_analysis() -> AnalysisResult:
    """Нейтральный результат, когда ответ сервиса не удалось разобрать"""
    return AnalysisResult(
        overall_score=7,
        tone_feedback="Professional and engaged",
        corrections=[],
        feedback="",
        improvements=["Consider structuring responses in a more organized way"],
        strengths=["Clear communication detected"],
        is_fallback=True,
    )


def fallback_text_analysis() -> TextAnalysisResult:
    return TextAnalysisResult(
        grammar_score=7,
        style_score=7,
        corrections=[],
        strengths=["Text submitted for review"],
        improvements=["Try again later for a detailed review of grammar and style"],
        is_fallback=True,
    )


def _clean_json_candidate(content: str) -> str:
    """Заменяет «умные» кавычки и убирает хвостовые запятые перед } и ]"""
    s = content.replace('“', '"').replace('”', '"')
    s = s.replace("‘", "'").replace("’", "'")
    s = re.sub(r',\s*(?=[}\]])', '', s)
    return s


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """
    Находит JSON-объект внутри произвольного текста.

    Сначала с каждой '{' по порядку пробуется раскодировать объект как
    есть (хвост после него игнорируется). Если не вышло, перебираются пары
    скобок (первая '{', самая дальняя '}') с очисткой кавычек и
    хвостовых запятых. Ответ может быть обернут в текст или markdown.

    Returns:
        Словарь, или None если в тексте нет ни одной пары скобок

    Raises:
        MalformedResponseError: скобки есть, но валидного объекта нет
    """
    if not text or not isinstance(text, str):
        return None

    starts = [i for i, ch in enumerate(text) if ch == "{"]
    ends = [i for i, ch in enumerate(text) if ch == "}"]
    if not starts or not ends or ends[-1] < starts[0]:
        return None

    decoder = json.JSONDecoder()
    for start in starts:
        try:
            obj, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            continue
        if isinstance(obj, dict):
            return obj

    attempts = 0
    for start in starts:
        for end in reversed(ends):
            if end <= start:
                break
            candidate = text[start:end + 1]
            cleaned = _clean_json_candidate(candidate)
            if cleaned == candidate:
                # Без очистки этот вариант уже проверен raw_decode
                continue
            attempts += 1
            try:
                obj = json.loads(cleaned)
            except json.JSONDecodeError:
                obj = None
            if isinstance(obj, dict):
                return obj
            if attempts >= MAX_DECODE_ATTEMPTS:
                raise MalformedResponseError(
                    f"No decodable JSON object after {attempts} attempts")

    raise MalformedResponseError("Braces found but no valid JSON object")


def _field(data: Dict[str, Any], camel: str, snake: str, default: Any = None) -> Any:
    if camel in data:
        return data[camel]
    return data.get(snake, default)


def _score(data: Dict[str, Any], camel: str, snake: str) -> int:
    value = _field(data, camel, snake)
    # bool является подклассом int, но оценкой не является
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedResponseError(f"{camel} is missing or not numeric")
    if not 1 <= value <= 10:
        raise MalformedResponseError(f"{camel} out of range: {value}")
    return int(round(value))


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if item is not None and str(item).strip()]


def _corrections(value: Any) -> List[Correction]:
    """Некорректные элементы отбрасываются, остальные сохраняются по порядку"""
    result = []
    if not isinstance(value, list):
        return result
    for item in value:
        if not isinstance(item, dict):
            continue
        try:
            result.append(Correction.model_validate(
                {k: str(v) for k, v in item.items() if v is not None}))
        except ValidationError as e:
            logger.debug(f"Dropping malformed correction {item!r}: {e}")
    return result


class ResponseParser:
    """
    Разбор свободного текстового ответа сервиса анализа.

    parse() никогда не бросает исключений: при любой ошибке возвращается
    fallback_analysis().
    """

    def parse(self, raw_text: str) -> AnalysisResult:
        try:
            data = extract_json_object(raw_text)
            if data is None:
                raise MalformedResponseError("No JSON object found in response")
            return self._validate_analysis(data)
        except MalformedResponseError as e:
            logger.warning(f"Using fallback analysis: {e.detail}")
            logger.debug(f"Raw content: {str(raw_text)[:500]}...")
            return fallback_analysis()

    def parse_text_analysis(self, raw_text: str) -> TextAnalysisResult:
        try:
            data = extract_json_object(raw_text)
            if data is None:
                raise MalformedResponseError("No JSON object found in response")
            return TextAnalysisResult(
                grammar_score=_score(data, "grammarScore", "grammar_score"),
                style_score=_score(data, "styleScore", "style_score"),
                corrections=_corrections(data.get("corrections")),
                strengths=_string_list(data.get("strengths")),
                improvements=_string_list(data.get("improvements")),
            )
        except MalformedResponseError as e:
            logger.warning(f"Using fallback text analysis: {e.detail}")
            return fallback_text_analysis()

    @staticmethod
    def _validate_analysis(data: Dict[str, Any]) -> AnalysisResult:
        score = _score(data, "overallScore", "overall_score")

        improvements = data.get("improvements")
        if not isinstance(improvements, list):
            raise MalformedResponseError("improvements is missing or not a list")

        return AnalysisResult(
            overall_score=score,
            tone_feedback=str(_field(data, "toneFeedback", "tone_feedback", "") or ""),
            corrections=_corrections(data.get("corrections")),
            feedback=str(data.get("feedback") or ""),
            improvements=_string_list(improvements),
            strengths=_string_list(data.get("strengths")),
        )
