from faqbot.knowledge.index import build_index, extract_domain_terms
from faqbot.knowledge.models import FAQEntry, KnowledgeBase
from faqbot.knowledge.tokenizer import ENGLISH_DOMAIN_TERMS, LatinTokenizer


def _kb(*entries):
    return KnowledgeBase(entries=list(entries))


def test_question_tokens_and_keywords_are_indexed():
    kb = _kb(
        FAQEntry(id="hours", question="clinic hours", answer="9 to 6", keywords=["open"]),
        FAQEntry(id="addr", question="clinic address", answer="Main St", keywords=["location"]),
    )
    index = build_index(kb, LatinTokenizer())

    assert index.lookup("hours") == {0}
    assert index.lookup("open") == {0}
    assert index.lookup("location") == {1}
    assert index.lookup("clinic") == {0, 1}
    assert index.lookup("missing") == frozenset()


def test_keywords_are_indexed_whole_not_retokenized():
    kb = _kb(FAQEntry(id="flu", question="vaccines", answer="yes", keywords=["  Flu Shot "]))
    index = build_index(kb, LatinTokenizer())

    assert "flu shot" in index
    assert "shot" not in index


def test_answer_contributes_only_allow_listed_domain_terms():
    kb = _kb(FAQEntry(id="billing", question="billing", answer="We accept Insurance at the desk."))
    index = build_index(kb, LatinTokenizer(), ENGLISH_DOMAIN_TERMS)

    assert index.lookup("insurance") == {0}
    assert "accept" not in index
    assert "desk" not in index


def test_extract_domain_terms_is_case_insensitive():
    assert extract_domain_terms("Bring your PRESCRIPTION", ["prescription", "surgery"]) == ["prescription"]


def test_empty_knowledge_base_builds_empty_index():
    index = build_index(KnowledgeBase(), LatinTokenizer(), ENGLISH_DOMAIN_TERMS)
    assert len(index) == 0
    assert index.vocabulary() == []


def test_build_is_deterministic():
    kb = _kb(FAQEntry(id="a", question="clinic parking", answer="free", keywords=["car"]))
    first = build_index(kb, LatinTokenizer())
    second = build_index(kb, LatinTokenizer())
    assert sorted(first.vocabulary()) == sorted(second.vocabulary())
    assert all(first.lookup(t) == second.lookup(t) for t in first)
