import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from speech_practice.api.deps import get_credentials
from speech_practice.core.exceptions import EmptyInputError
from speech_practice.services.storage import CredentialStore

router = APIRouter(prefix="/api/v1", tags=["credential"])
logger = logging.getLogger(__name__)


class CredentialUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    api_key: str = Field(..., alias="apiKey")


@router.put("/credential")
async def save_credential(update: CredentialUpdate, credentials: CredentialStore = Depends(get_credentials)):
    """Сохраняет ключ API (значение в ответ не возвращается)"""
    if not credentials.set(update.api_key):
        raise EmptyInputError("API key is empty")
    return {"saved": True, "hasCredential": credentials.has_credential()}
