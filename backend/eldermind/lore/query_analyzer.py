"""
Lightweight query understanding for keyword retrieval.

Lore questions hinge on proper nouns ("Numidium", "Nerevar", "Red Mountain"),
so exact token matches are a strong signal. This is not an NLP pipeline: no
stemming, no phrases, no NER.

Example:
    "What happened at the Battle of Red Mountain?"
    -> {"happened", "battle", "red", "mountain"}
"""
import re
from typing import FrozenSet, Optional

STOPWORDS: FrozenSet[str] = frozenset({
    "the", "a", "an", "and", "or", "to", "of", "in", "on", "for", "with",
    "is", "are", "was", "were", "be", "been", "being",
    "what", "who", "when", "where", "why", "how",
    "tell", "me", "about", "explain", "give",
})

MIN_TOKEN_LENGTH = 3

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


class QueryAnalyzer:
    """Extracts a normalized keyword set from free text."""

    def __init__(self, stopwords: FrozenSet[str] = STOPWORDS, min_length: int = MIN_TOKEN_LENGTH):
        self.stopwords = stopwords
        self.min_length = min_length

    def extract_keywords(self, query: Optional[str]) -> FrozenSet[str]:
        if query is None or not query.strip():
            return frozenset()

        normalized = _NON_ALNUM.sub(" ", query.lower())

        return frozenset(
            token
            for token in _WHITESPACE.split(normalized)
            if len(token) >= self.min_length and token not in self.stopwords
        )
