import pytest

from faqbot.knowledge.tokenizer import CJKTokenizer, LatinTokenizer, get_tokenizer


def test_latin_normalize_strips_punctuation_and_collapses_whitespace():
    assert LatinTokenizer().normalize("  Hello,   World!! ") == "hello world"


def test_latin_tokenize_emits_fragments_for_long_words():
    assert LatinTokenizer().tokenize("hours") == ["hours", "hou", "hour", "our", "ours", "urs"]
    assert LatinTokenizer().tokenize("clinic") == [
        "clinic", "cli", "clin", "clini", "lin", "lini", "linic", "ini", "inic", "nic",
    ]


def test_latin_tokenize_drops_short_tokens_and_keeps_four_letter_words_whole():
    assert LatinTokenizer().tokenize("a I be book") == ["be", "book"]


def test_latin_tokenize_deduplicates():
    assert LatinTokenizer().tokenize("open open OPEN") == ["open"]


@pytest.mark.parametrize("text", ["", "   ", "!!!", None])
def test_empty_input_yields_no_tokens(text):
    assert LatinTokenizer().tokenize(text) == []
    assert CJKTokenizer().tokenize(text) == []


def test_cjk_keeps_runs_between_punctuation():
    tokenizer = CJKTokenizer()
    assert tokenizer.normalize("请问，营业时间？") == "请问 营业时间"
    assert tokenizer.tokenize("请问，营业时间？") == ["请问", "营业时间"]


def test_cjk_query_terms_match_vocabulary_by_containment():
    terms = CJKTokenizer().query_terms("请问营业时间是几点", ["营业时间", "几点", "挂号", "点"])
    assert "营业时间" in terms
    assert "几点" in terms
    assert "挂号" not in terms
    assert "点" not in terms


def test_cjk_exact_match_works_both_ways():
    tokenizer = CJKTokenizer()
    assert tokenizer.is_exact_match("营业时间", "营业时间是什么时候")
    assert tokenizer.is_exact_match("请问营业时间是什么时候呢", "营业时间是什么时候")
    assert not LatinTokenizer().is_exact_match("what are the clinic hours", "clinic hours")


def test_get_tokenizer():
    assert isinstance(get_tokenizer("en"), LatinTokenizer)
    assert isinstance(get_tokenizer("zh"), CJKTokenizer)
    with pytest.raises(ValueError):
        get_tokenizer("fr")


def test_latin_query_terms_include_multi_word_vocabulary_on_word_boundaries():
    vocabulary = ["flu shot", "how much", "shot", "lu sh"]
    terms = LatinTokenizer().query_terms("Where can I get a FLU SHOT?", vocabulary)

    assert "flu shot" in terms
    assert "how much" not in terms
    assert "lu sh" not in terms
    assert "shot" in terms
