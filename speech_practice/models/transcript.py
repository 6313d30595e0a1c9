from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class TranscriptEvent(BaseModel):
    """Событие распознавания речи (промежуточное или финальное)"""
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True)

    text: str
    is_final: bool = False
    timestamp_ms: float = Field(ge=0, description="Время события, мс")
