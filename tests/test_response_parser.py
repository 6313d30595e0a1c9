import pytest

from speech_practice.core.exceptions import MalformedResponseError
from speech_practice.services.response_parser import ResponseParser, extract_json_object


@pytest.fixture
def parser():
    return ResponseParser()


def test_text_without_json_gives_fallback(parser):
    result = parser.parse("Sorry, I cannot help with that.")

    assert result.overall_score == 7
    assert result.is_fallback is True
    assert result.tone_feedback == "Professional and engaged"
    assert result.improvements == ["Consider structuring responses in a more organized way"]


def test_json_surrounded_by_text(parser):
    result = parser.parse('prefix {"overallScore":8,"improvements":["x"]} suffix')

    assert result.overall_score == 8
    assert result.improvements == ["x"]
    assert result.is_fallback is False


def test_markdown_fenced_json(parser):
    raw = """Here is the analysis:
```json
{
    "toneFeedback": "Calm and clear",
    "overallScore": 9,
    "corrections": [
        {"type": "suggestion", "original": "um", "correction": "(pause)", "explanation": "Pause instead"}
    ],
    "feedback": "Well done",
    "strengths": ["Good pace"],
    "improvements": ["Vary intonation"]
}
```"""
    result = parser.parse(raw)

    assert result.overall_score == 9
    assert result.tone_feedback == "Calm and clear"
    assert result.corrections[0].correction == "(pause)"
    assert result.strengths == ["Good pace"]


def test_trailing_commas_and_smart_quotes_are_tolerated(parser):
    raw = '{“overallScore”: 6, “improvements”: [“Slow down”,],}'
    result = parser.parse(raw)

    assert result.overall_score == 6
    assert result.improvements == ["Slow down"]


@pytest.mark.parametrize("raw", [
    '{"overallScore": 8',
    '{"improvements": ["x"]}',
    '{"overallScore": 8}',
    '{"overallScore": 8, "improvements": "x"}',
    '{"overallScore": 11, "improvements": []}',
    '{"overallScore": true, "improvements": []}',
    '{"overallScore": "eight", "improvements": []}',
])
def test_invalid_responses_give_fallback(parser, raw):
    result = parser.parse(raw)
    assert result.is_fallback is True
    assert result.overall_score == 7


def test_malformed_corrections_are_dropped(parser):
    raw = '{"overallScore": 5, "improvements": [], "corrections": ["bad", {"original": "um", "correction": "pause"}]}'
    result = parser.parse(raw)

    assert len(result.corrections) == 1
    assert result.corrections[0].type == "suggestion"
    assert result.corrections[0].original == "um"


def test_snake_case_fields_are_accepted(parser):
    result = parser.parse('{"overall_score": 4, "tone_feedback": "Flat", "improvements": ["More energy"]}')
    assert result.overall_score == 4
    assert result.tone_feedback == "Flat"


def test_text_analysis(parser):
    raw = '{"grammarScore": 9, "styleScore": 6, "corrections": [{"type": "error", "original": "i", "correction": "I"}], "strengths": ["Concise"], "improvements": ["Vary sentences"]}'
    result = parser.parse_text_analysis(raw)

    assert result.grammar_score == 9
    assert result.style_score == 6
    assert result.corrections[0].type == "error"
    assert result.is_fallback is False


def test_text_analysis_fallback(parser):
    result = parser.parse_text_analysis("not json")
    assert result.grammar_score == 7
    assert result.style_score == 7
    assert result.is_fallback is True


def test_extract_json_object():
    assert extract_json_object("no braces here") is None
    assert extract_json_object("") is None
    assert extract_json_object('a {"k": 1} b') == {"k": 1}

    with pytest.raises(MalformedResponseError):
        extract_json_object("{not json at all}")


def test_json_after_prose_with_many_braces(parser):
    prose = "Template {placeholder} " * 150
    result = parser.parse(prose + '{"overallScore": 9, "improvements": ["Breathe"]}')

    assert result.is_fallback is False
    assert result.overall_score == 9


def test_cleaned_json_after_prose_with_many_braces():
    prose = "set {x} " * 120
    assert extract_json_object(prose + '{"k": [1, 2,],}') == {"k": [1, 2]}
