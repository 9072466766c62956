"""
Unit tests for keyword extraction.
"""
from eldermind.lore.query_analyzer import STOPWORDS, QueryAnalyzer


def test_strips_stopwords_and_punctuation():
    analyzer = QueryAnalyzer()

    assert analyzer.extract_keywords("Tell me about Numidium") == {"numidium"}
    assert analyzer.extract_keywords("What happened at the Battle of Red Mountain?") == {
        "happened", "battle", "red", "mountain",
    }


def test_blank_and_none_yield_empty_set():
    analyzer = QueryAnalyzer()

    assert analyzer.extract_keywords(None) == frozenset()
    assert analyzer.extract_keywords("") == frozenset()
    assert analyzer.extract_keywords("   \t\n") == frozenset()


def test_short_tokens_dropped():
    analyzer = QueryAnalyzer()

    # "ok" and "go" are under three characters
    assert analyzer.extract_keywords("ok go Vivec") == {"vivec"}


def test_punctuation_splits_tokens():
    analyzer = QueryAnalyzer()

    assert analyzer.extract_keywords("Dagoth-Ur's heart!") == {"dagoth", "heart"}


def test_only_stopwords_yields_empty_set():
    analyzer = QueryAnalyzer()

    assert analyzer.extract_keywords("Who is the one?") == {"one"}
    assert analyzer.extract_keywords("what is it about") == frozenset()


def test_result_is_lowercase_and_deduplicated():
    analyzer = QueryAnalyzer()

    keywords = analyzer.extract_keywords("NUMIDIUM numidium Numidium")
    assert keywords == {"numidium"}
    assert all(k == k.lower() for k in keywords)


def test_custom_stopwords_and_min_length():
    analyzer = QueryAnalyzer(stopwords=frozenset({"dragon"}), min_length=2)

    assert analyzer.extract_keywords("Dragon of it") == {"of", "it"}


def test_default_stopwords_are_the_documented_list():
    assert "tell" in STOPWORDS
    assert "explain" in STOPWORDS
    assert "numidium" not in STOPWORDS
    assert len(STOPWORDS) == 29
