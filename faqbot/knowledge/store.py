"""
Knowledge store — owns the FAQ data, its inverted index and their reload lifecycle.

Every load produces a new Generation (knowledge base + index built from it).
Readers grab the current generation reference once per call; reload builds
the next generation completely before swapping the reference under a lock.
"""

import json
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from loguru import logger

from faqbot.knowledge.index import InvertedIndex, build_index
from faqbot.knowledge.models import (
    AnswerDecision,
    Category,
    FAQEntry,
    KnowledgeBase,
    QuickReply,
    SearchResult,
)
from faqbot.knowledge.ranker import search
from faqbot.knowledge.selector import (
    SMART_ANSWER_LIMIT,
    default_suggestions,
    quick_replies_for,
    select_answer,
)
from faqbot.knowledge.tokenizer import Tokenizer, get_tokenizer

DEFAULT_CATEGORY = "general"
DEFAULT_PRIORITY = 99


class KnowledgeSourceError(Exception):
    """The backing data could not be read or has the wrong shape."""


class UnknownLocaleError(KeyError):
    pass


# ── Sources ──────────────────────────────────────────────
class JsonFileSource:
    def __init__(self, path: str):
        self.path = path

    def read(self) -> Dict[str, Any]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            raise KnowledgeSourceError(f"{self.path}: {e}") from e

    def __repr__(self):
        return f"JsonFileSource({self.path!r})"


class StaticSource:
    def __init__(self, data: Dict[str, Any]):
        self.data = data

    def read(self) -> Dict[str, Any]:
        return self.data


# ── Parsing ──────────────────────────────────────────────
def _as_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def _parse_entry(raw: Any, position: int) -> Optional[FAQEntry]:
    if not isinstance(raw, dict):
        logger.warning(f"Skipping FAQ record #{position}: not an object")
        return None

    entry_id = _as_str(raw.get("id"))
    question = raw.get("question")
    answer = raw.get("answer")
    if entry_id is None or not isinstance(question, str) or not question.strip() \
            or not isinstance(answer, str) or not answer.strip():
        logger.warning(f"Skipping FAQ record #{position}: id, question and answer are required")
        return None

    keywords = raw.get("keywords") or []
    if not isinstance(keywords, list):
        keywords = []
    keywords = [k.strip() for k in keywords if isinstance(k, str) and k.strip()]

    priority = raw.get("priority", DEFAULT_PRIORITY)
    if isinstance(priority, bool) or not isinstance(priority, (int, float)):
        priority = DEFAULT_PRIORITY

    return FAQEntry(
        id=entry_id,
        question=question.strip(),
        answer=answer,
        keywords=keywords,
        category=_as_str(raw.get("category")) or DEFAULT_CATEGORY,
        priority=int(priority),
    )


def _parse_category(raw: Any) -> Optional[Category]:
    if isinstance(raw, str) and raw.strip():
        return Category(id=raw.strip(), label=raw.strip())
    if isinstance(raw, dict):
        category_id = _as_str(raw.get("id")) or _as_str(raw.get("name"))
        if category_id:
            label = _as_str(raw.get("label")) or _as_str(raw.get("name")) or category_id
            return Category(id=category_id, label=label)
    logger.warning(f"Skipping malformed category: {raw!r}")
    return None


def _parse_quick_reply(raw: Any, position: int) -> Optional[QuickReply]:
    if not isinstance(raw, dict) or _as_str(raw.get("title")) is None:
        logger.warning(f"Skipping quick reply #{position}: title is required")
        return None
    title = _as_str(raw.get("title"))
    return QuickReply(
        id=_as_str(raw.get("id")) or f"qr_{position}",
        title=title,
        payload=_as_str(raw.get("payload")) or title,
        category=_as_str(raw.get("category")),
    )


def _records(data: Dict[str, Any], *keys: str) -> List[Any]:
    for key in keys:
        value = data.get(key)
        if value is None:
            continue
        if not isinstance(value, list):
            raise KnowledgeSourceError(f"'{key}' must be a list")
        return value
    return []


def parse_knowledge_base(data: Any) -> KnowledgeBase:
    """Validate raw source data; malformed records are skipped, not fatal."""
    if not isinstance(data, dict):
        raise KnowledgeSourceError("knowledge base must be a JSON object")

    entries: List[FAQEntry] = []
    seen = set()
    for position, raw in enumerate(_records(data, "faq", "entries")):
        entry = _parse_entry(raw, position)
        if entry is None:
            continue
        if entry.id in seen:
            logger.warning(f"Skipping FAQ record #{position}: duplicate id '{entry.id}'")
            continue
        seen.add(entry.id)
        entries.append(entry)

    categories = [c for c in map(_parse_category, _records(data, "categories")) if c]
    quick_replies = [
        reply for reply in (
            _parse_quick_reply(raw, position)
            for position, raw in enumerate(_records(data, "quickReplies", "quick_replies"))
        ) if reply
    ]
    return KnowledgeBase(entries=entries, categories=categories, quick_replies=quick_replies)


# ── Generation / Store ───────────────────────────────────
class Generation:
    """One immutable snapshot: knowledge base plus the index derived from it."""

    __slots__ = ("kb", "index", "loaded_at")

    def __init__(self, kb: KnowledgeBase, index: InvertedIndex, loaded_at: Optional[datetime]):
        self.kb = kb
        self.index = index
        self.loaded_at = loaded_at


class KnowledgeStore:
    def __init__(
        self,
        source,
        tokenizer: Tokenizer,
        threshold: int = 3,
        domain_terms: Optional[Iterable[str]] = None,
        name: str = "knowledge",
    ):
        self.source = source
        self.tokenizer = tokenizer
        self.threshold = threshold
        self.domain_terms = tuple(tokenizer.domain_terms if domain_terms is None else domain_terms)
        self.name = name
        self._lock = threading.Lock()
        self._generation = Generation(KnowledgeBase(), InvertedIndex({}), None)

    # ── Lifecycle ────────────────────────────────────────
    @property
    def state(self) -> str:
        return "uninitialized" if self._generation.loaded_at is None else "loaded"

    @property
    def generation(self) -> Generation:
        return self._generation

    def _read(self) -> Optional[KnowledgeBase]:
        try:
            return parse_knowledge_base(self.source.read())
        except Exception as e:
            logger.warning(f"[{self.name}] failed to load knowledge base from {self.source!r}: {e}")
            return None

    def load(self) -> KnowledgeBase:
        """Read the source; any failure degrades to an empty knowledge base."""
        kb = self._read()
        return kb if kb is not None else KnowledgeBase()

    def reload(self) -> bool:
        """
        Build a new generation and publish it atomically.

        When the source fails and a non-empty generation is already published,
        that generation stays in service and False is returned.
        """
        with self._lock:
            kb = self._read()
            ok = kb is not None
            if not ok:
                if not self._generation.kb.is_empty:
                    logger.warning(f"[{self.name}] reload failed — keeping previous generation")
                    return False
                kb = KnowledgeBase()

            index = build_index(kb, self.tokenizer, self.domain_terms)
            self._generation = Generation(kb, index, datetime.now(timezone.utc))

        logger.info(
            f"[{self.name}] knowledge base loaded — faq={len(kb.entries)} "
            f"categories={len(kb.categories)} quick_replies={len(kb.quick_replies)} index={len(index)}"
        )
        return ok

    # ── Queries ──────────────────────────────────────────
    def search(self, query: str, limit: int = 5) -> List[SearchResult]:
        generation = self._generation
        results = search(query, generation.kb, generation.index, self.tokenizer, limit)
        logger.debug(
            f"[{self.name}] search '{(query or '')[:50]}' -> {len(results)} results, "
            f"top={results[0].score if results else 0}"
        )
        return results

    def get_smart_answer(self, query: str, threshold: Optional[int] = None) -> AnswerDecision:
        generation = self._generation
        results = search(query, generation.kb, generation.index, self.tokenizer, SMART_ANSWER_LIMIT)
        decision = select_answer(results, generation.kb, self.threshold if threshold is None else threshold)
        logger.info(
            f"[{self.name}] smart answer '{(query or '')[:50]}' -> {decision.kind}"
            f" (top={results[0].score if results else 0})"
        )
        return decision

    def get_entry(self, entry_id: str) -> Optional[FAQEntry]:
        return next((e for e in self._generation.kb.entries if e.id == entry_id), None)

    def entries_by_category(self, category: str) -> List[FAQEntry]:
        return [e for e in self._generation.kb.entries if e.category == category]

    def categories(self) -> List[Category]:
        return list(self._generation.kb.categories)

    def quick_replies(self, category: Optional[str] = None) -> List[QuickReply]:
        return quick_replies_for(self._generation.kb, category)

    def default_quick_replies(self) -> List[QuickReply]:
        return default_suggestions(self._generation.kb)

    def stats(self) -> Dict[str, Any]:
        generation = self._generation
        return {
            "total_faq": len(generation.kb.entries),
            "total_categories": len(generation.kb.categories),
            "total_quick_replies": len(generation.kb.quick_replies),
            "search_index_size": len(generation.index),
            "last_loaded": generation.loaded_at.isoformat() if generation.loaded_at else None,
        }


class KnowledgeRegistry:
    """Locale -> store. Created in the app lifespan; no module-level instance."""

    def __init__(self, stores: Optional[Dict[str, KnowledgeStore]] = None):
        self._stores: Dict[str, KnowledgeStore] = dict(stores or {})

    def register(self, locale: str, store: KnowledgeStore) -> None:
        self._stores[locale] = store

    def get(self, locale: str) -> KnowledgeStore:
        try:
            return self._stores[locale]
        except KeyError:
            raise UnknownLocaleError(locale)

    def locales(self) -> List[str]:
        return list(self._stores)

    def reload_all(self) -> Dict[str, bool]:
        return {locale: store.reload() for locale, store in self._stores.items()}

    @classmethod
    def from_settings(cls, settings) -> "KnowledgeRegistry":
        thresholds = {"zh": settings.FAQ_THRESHOLD_ZH, "en": settings.FAQ_THRESHOLD_EN}
        registry = cls()
        for locale, threshold in thresholds.items():
            registry.register(locale, KnowledgeStore(
                JsonFileSource(settings.faq_path(locale)),
                get_tokenizer(locale),
                threshold=threshold,
                name=f"knowledge-{locale}",
            ))
        return registry
