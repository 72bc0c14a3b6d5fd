from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ChatTextRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    include_tts: bool = Field(default=False, alias="includeTts")

    @field_validator("message")
    @classmethod
    def _message_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("Message is required")
        return value.strip()


class Source(BaseModel):
    source: str
    snippet: str
    relevance: str


@dataclass(frozen=True)
class AnswerResult:
    response: str
    is_confident: bool
    avg_distance: float
