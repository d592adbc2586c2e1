"""
Locale-aware tokenization for the FAQ index.

Latin text is split on whitespace and padded with 3–6 character fragments so
that "appointments" still meets "appointment". CJK text has no reliable word
boundaries, so queries are matched by substring containment against the
index vocabulary instead.
"""

import re
from typing import Iterable, List, Tuple

MIN_TOKEN_LENGTH = 2
FRAGMENT_SOURCE_LENGTH = 4  # only words longer than this are fragmented
FRAGMENT_MIN = 3
FRAGMENT_MAX = 6

_LATIN_STRIP = re.compile(r"[^\w\s]")
_CJK_STRIP = re.compile(r"[^一-龥a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")

ENGLISH_DOMAIN_TERMS: Tuple[str, ...] = (
    "appointment", "booking", "doctor", "checkup", "examination", "treatment",
    "medication", "prescription", "insurance", "emergency", "outpatient",
    "inpatient", "surgery", "vaccination", "rehabilitation", "payment",
)

CHINESE_DOMAIN_TERMS: Tuple[str, ...] = (
    "预约", "挂号", "就诊", "医生", "检查", "治疗", "药物", "费用",
    "医保", "体检", "急诊", "门诊", "住院", "手术", "康复",
)


def _dedupe(tokens: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(tokens))


class Tokenizer:
    """Base strategy. Subclasses define normalization and splitting."""

    locale = "generic"
    domain_terms: Tuple[str, ...] = ()

    def normalize(self, text: str) -> str:
        raise NotImplementedError

    def tokenize(self, text: str) -> List[str]:
        raise NotImplementedError

    def query_terms(self, text: str, vocabulary: Iterable[str] = ()) -> List[str]:
        return self.tokenize(text)

    def is_exact_match(self, normalized_query: str, normalized_question: str) -> bool:
        return normalized_query in normalized_question


class LatinTokenizer(Tokenizer):
    locale = "en"
    domain_terms = ENGLISH_DOMAIN_TERMS

    def normalize(self, text: str) -> str:
        if not text:
            return ""
        cleaned = _LATIN_STRIP.sub(" ", text.lower())
        return _WHITESPACE.sub(" ", cleaned).strip()

    def tokenize(self, text: str) -> List[str]:
        tokens = []
        for word in self.normalize(text).split(" "):
            if len(word) < MIN_TOKEN_LENGTH:
                continue
            tokens.append(word)
            if len(word) > FRAGMENT_SOURCE_LENGTH:
                tokens.extend(self._fragments(word))
        return _dedupe(tokens)

    def query_terms(self, text: str, vocabulary: Iterable[str] = ()) -> List[str]:
        terms = self.tokenize(text)
        padded = f" {self.normalize(text)} "
        # multi-word keywords are indexed whole; match them on word boundaries
        terms.extend(term for term in vocabulary if " " in term and f" {term} " in padded)
        return _dedupe(terms)

    @staticmethod
    def _fragments(word: str) -> List[str]:
        fragments = []
        for start in range(len(word) - FRAGMENT_MIN + 1):
            longest = min(FRAGMENT_MAX, len(word) - start)
            for size in range(FRAGMENT_MIN, longest + 1):
                fragments.append(word[start:start + size])
        return fragments


class CJKTokenizer(Tokenizer):
    locale = "zh"
    domain_terms = CHINESE_DOMAIN_TERMS

    def normalize(self, text: str) -> str:
        if not text:
            return ""
        cleaned = _CJK_STRIP.sub(" ", text.lower())
        return _WHITESPACE.sub(" ", cleaned).strip()

    def tokenize(self, text: str) -> List[str]:
        normalized = self.normalize(text)
        if not normalized:
            return []
        return _dedupe(run for run in normalized.split(" ") if len(run) >= MIN_TOKEN_LENGTH)

    def query_terms(self, text: str, vocabulary: Iterable[str] = ()) -> List[str]:
        normalized = self.normalize(text)
        if not normalized:
            return []
        terms = self.tokenize(normalized)
        terms.extend(
            term for term in vocabulary
            if len(term) >= MIN_TOKEN_LENGTH and term in normalized
        )
        return _dedupe(terms)

    def is_exact_match(self, normalized_query: str, normalized_question: str) -> bool:
        return normalized_query in normalized_question or normalized_question in normalized_query


_TOKENIZERS = {
    "en": LatinTokenizer,
    "zh": CJKTokenizer,
}


def get_tokenizer(locale: str) -> Tokenizer:
    try:
        return _TOKENIZERS[locale]()
    except KeyError:
        raise ValueError(f"No tokenizer for locale '{locale}'")
