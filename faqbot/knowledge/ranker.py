"""
Scores FAQ entries against a query.

Two signals are summed per entry: a fixed bonus when the query and the
question contain one another, and per-token overlap through the inverted
index, where curated keyword hits and longer tokens weigh more.
"""

from typing import Dict, List

from faqbot.knowledge.index import InvertedIndex
from faqbot.knowledge.models import FAQEntry, KnowledgeBase, SearchResult
from faqbot.knowledge.tokenizer import MIN_TOKEN_LENGTH, Tokenizer

EXACT_MATCH_BONUS = 10
BASE_TOKEN_SCORE = 1
KEYWORD_BONUS = 2
LONG_TOKEN_BONUS = 1
LONG_TOKEN_LENGTH = 4


def token_score(token: str, entry: FAQEntry) -> int:
    score = BASE_TOKEN_SCORE
    if any(token in keyword.lower() for keyword in entry.keywords):
        score += KEYWORD_BONUS
    if len(token) >= LONG_TOKEN_LENGTH:
        score += LONG_TOKEN_BONUS
    return score


def search(
    query: str,
    kb: KnowledgeBase,
    index: InvertedIndex,
    tokenizer: Tokenizer,
    limit: int = 5,
) -> List[SearchResult]:
    """Return up to `limit` results, best score first, then lowest priority."""
    if limit <= 0:
        return []
    normalized = tokenizer.normalize(query or "")
    if not normalized or kb.is_empty:
        return []

    scores: Dict[int, int] = {}

    # single characters are substrings of nearly every question
    if len(normalized) >= MIN_TOKEN_LENGTH:
        for position, entry in enumerate(kb.entries):
            question = tokenizer.normalize(entry.question)
            if question and tokenizer.is_exact_match(normalized, question):
                scores[position] = scores.get(position, 0) + EXACT_MATCH_BONUS

    for token in tokenizer.query_terms(normalized, index):
        for position in index.lookup(token):
            scores[position] = scores.get(position, 0) + token_score(token, kb.entries[position])

    ranked = sorted(
        (position for position, score in scores.items() if score > 0),
        key=lambda position: (-scores[position], kb.entries[position].priority, position),
    )
    return [SearchResult(entry=kb.entries[p], score=scores[p]) for p in ranked[:limit]]
