"""
Inverted index: normalized token -> positions of the FAQ entries that produced it.
"""

from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Set

from faqbot.knowledge.models import KnowledgeBase
from faqbot.knowledge.tokenizer import Tokenizer


class InvertedIndex:
    """Read-only once built; a reload builds a new instance."""

    def __init__(self, postings: Mapping[str, FrozenSet[int]]):
        self._postings = MappingProxyType(dict(postings))

    def lookup(self, token: str) -> FrozenSet[int]:
        return self._postings.get(token, frozenset())

    def vocabulary(self) -> List[str]:
        return list(self._postings.keys())

    def __iter__(self):
        return iter(self._postings)

    def __contains__(self, token: str) -> bool:
        return token in self._postings

    def __len__(self) -> int:
        return len(self._postings)


def extract_domain_terms(answer: str, domain_terms: Iterable[str]) -> List[str]:
    lowered = answer.lower()
    return [term.lower() for term in domain_terms if term and term.lower() in lowered]


def build_index(kb: KnowledgeBase, tokenizer: Tokenizer, domain_terms: Iterable[str] = ()) -> InvertedIndex:
    """
    Index each entry by its question tokens, its curated keywords (whole,
    normalized) and whichever allow-listed domain terms its answer mentions.
    """
    domain_terms = tuple(domain_terms)
    postings: Dict[str, Set[int]] = {}

    def add(token: str, position: int) -> None:
        if token:
            postings.setdefault(token, set()).add(position)

    for position, entry in enumerate(kb.entries):
        for token in tokenizer.tokenize(entry.question):
            add(token, position)
        for keyword in entry.keywords:
            add(keyword.lower().strip(), position)
        for term in extract_domain_terms(entry.answer, domain_terms):
            add(term, position)

    return InvertedIndex({token: frozenset(ids) for token, ids in postings.items()})
