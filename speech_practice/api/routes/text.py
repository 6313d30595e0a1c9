from fastapi import APIRouter, Depends
from pydantic import BaseModel

from speech_practice.api.deps import get_text_analyzer
from speech_practice.models.analysis import TextAnalysisResult
from speech_practice.services.text_analyzer import TextAnalyzer

router = APIRouter(prefix="/api/v1", tags=["text"])


class TextRequest(BaseModel):
    text: str


@router.post("/text/analyze", response_model=TextAnalysisResult)
async def analyze_text(request: TextRequest, analyzer: TextAnalyzer = Depends(get_text_analyzer)):
    """Грамматика и стиль письменного текста"""
    return await analyzer.analyze(request.text)
