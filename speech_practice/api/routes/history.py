from typing import List

from fastapi import APIRouter, Depends

from speech_practice.api.deps import get_session_store
from speech_practice.models.session import SessionRecord
from speech_practice.services.session_store import SessionStore

router = APIRouter(prefix="/api/v1", tags=["history"])


@router.get("/history", response_model=List[SessionRecord])
async def get_history(store: SessionStore = Depends(get_session_store)):
    """Сохраненные сессии, новые первыми"""
    return list(store.history())


@router.delete("/history")
async def clear_history(store: SessionStore = Depends(get_session_store)):
    cleared = store.clear()
    return {"cleared": cleared, "size": len(store.history())}
