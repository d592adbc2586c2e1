"""
Turns ranked candidates into an answer decision.
"""

from typing import List, Optional

from faqbot.knowledge.models import (
    Ambiguous,
    AnswerDecision,
    Found,
    KnowledgeBase,
    NotFound,
    QuickReply,
    SearchResult,
)

SMART_ANSWER_LIMIT = 3
DEFAULT_SUGGESTION_COUNT = 4
CATEGORY_SUGGESTION_COUNT = 3


def quick_replies_for(kb: KnowledgeBase, category: Optional[str] = None) -> List[QuickReply]:
    if category is None:
        return list(kb.quick_replies)
    return [reply for reply in kb.quick_replies if reply.category == category]


def default_suggestions(kb: KnowledgeBase) -> List[QuickReply]:
    return quick_replies_for(kb)[:DEFAULT_SUGGESTION_COUNT]


def select_answer(results: List[SearchResult], kb: KnowledgeBase, threshold: int) -> AnswerDecision:
    """
    The threshold is inclusive: a best score equal to it is confident enough.
    Below it the candidates are offered for disambiguation.
    """
    if not results:
        return NotFound(suggestions=default_suggestions(kb))

    best = results[0]
    if best.score >= threshold:
        return Found(
            answer=best.entry.answer,
            source_question=best.entry.question,
            category=best.entry.category,
            confidence=best.score,
            suggestions=quick_replies_for(kb, best.entry.category)[:CATEGORY_SUGGESTION_COUNT],
        )

    return Ambiguous(candidates=list(results), suggestions=default_suggestions(kb))
