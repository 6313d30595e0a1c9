from fastapi import APIRouter, Depends

from speech_practice import __version__
from speech_practice.api.deps import get_practice
from speech_practice.services.context import PracticeContext

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(practice: PracticeContext = Depends(get_practice)):
    """Health check endpoint"""
    return {
        "status": "ok",
        "service": "Speech Practice API",
        "version": __version__,
        "features": {
            "gemini": practice.credentials.has_credential(),
            "model": practice.config.gemini_model,
        },
        "history_size": len(practice.sessions.history()),
    }
