"""
Immutable knowledge-base records and the decision objects handed to callers.
"""

from typing import List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Field


class FAQEntry(BaseModel):
    id: str
    question: str
    answer: str
    keywords: Tuple[str, ...] = ()
    category: str = "general"
    priority: int = 99

    class Config:
        frozen = True


class Category(BaseModel):
    id: str
    label: str

    class Config:
        frozen = True


class QuickReply(BaseModel):
    id: str
    title: str
    payload: str
    category: Optional[str] = None

    class Config:
        frozen = True


class KnowledgeBase(BaseModel):
    """One loaded snapshot of FAQ data. Categories are advisory only."""

    entries: Tuple[FAQEntry, ...] = ()
    categories: Tuple[Category, ...] = ()
    quick_replies: Tuple[QuickReply, ...] = ()

    class Config:
        frozen = True

    @property
    def is_empty(self) -> bool:
        return not self.entries


class SearchResult(BaseModel):
    entry: FAQEntry
    score: int = Field(ge=0)

    class Config:
        frozen = True


# ── Answer decisions ─────────────────────────────────────
class Found(BaseModel):
    kind: Literal["found"] = "found"
    answer: str
    source_question: str
    category: str
    confidence: int
    suggestions: List[QuickReply] = []


class Ambiguous(BaseModel):
    kind: Literal["ambiguous"] = "ambiguous"
    candidates: List[SearchResult]
    suggestions: List[QuickReply] = []


class NotFound(BaseModel):
    kind: Literal["not_found"] = "not_found"
    suggestions: List[QuickReply] = []


AnswerDecision = Union[Found, Ambiguous, NotFound]
