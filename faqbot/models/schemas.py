"""
Pydantic request / response schemas for the API.
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

from faqbot.knowledge.models import QuickReply
from faqbot.middleware.security import strip_html


# ── Chat ─────────────────────────────────────────────────
class ChatMessageRequest(BaseModel):
    message: str = Field(min_length=1, max_length=1000)
    user_id: Optional[str] = Field(default=None, min_length=1, max_length=100, pattern=r"^[A-Za-z0-9_-]+$")
    session_id: Optional[str] = Field(default=None, min_length=1, max_length=100)

    @field_validator("message", mode="before")
    @classmethod
    def clean_message(cls, value: Any) -> Any:
        if isinstance(value, str):
            return strip_html(value).strip()
        return value


class ChatMessageData(BaseModel):
    message: str
    user_id: str
    session_id: str
    timestamp: datetime
    source: str
    is_appointment: bool = False
    quick_replies: Optional[List[QuickReply]] = None


class ChatMessageResponse(BaseModel):
    success: bool = True
    data: ChatMessageData


# ── Knowledge Base ───────────────────────────────────────
class SearchRequest(BaseModel):
    query: str = Field(min_length=1, max_length=200)
    limit: int = Field(default=10, ge=1, le=20)

    @field_validator("query", mode="before")
    @classmethod
    def strip_query(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


class AnswerRequest(BaseModel):
    query: str = Field(min_length=1, max_length=1000)
    threshold: Optional[int] = Field(default=None, ge=0)

    @field_validator("query", mode="before")
    @classmethod
    def strip_query(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


class KnowledgeStats(BaseModel):
    total_faq: int = 0
    total_categories: int = 0
    total_quick_replies: int = 0
    search_index_size: int = 0
    last_loaded: Optional[str] = None
