"""
Keyword retriever for lore evidence (RAG-lite).

Scoring, per keyword, case-insensitive substring match:
- +2.0 if the keyword occurs in the title
- +1.0 if the keyword occurs in the body text
Both bonuses apply independently.

Ranking is a stable sort on score descending, so equal scores keep corpus
order. Only positive scores are returned; when nothing scores positively the
first `k` documents of the sorted corpus are returned instead, regardless of
score. A non-empty result is therefore NOT proof of relevance: the caller has
to gate on the top score.
"""
import time
from dataclasses import dataclass
from typing import AbstractSet, List

from eldermind.core.logging import get_logger
from eldermind.core.metrics import record_retrieval_latency
from eldermind.core.tracing import get_tracer, set_span_attribute
from eldermind.lore.corpus import Corpus, LoreDocument
from eldermind.lore.query_analyzer import QueryAnalyzer

logger = get_logger(__name__)

RETRIEVER_VERSION = "keyword-v1"

TITLE_WEIGHT = 2.0
BODY_WEIGHT = 1.0


class RetrievalError(Exception):
    """Raised when keyword extraction or corpus scoring fails."""


@dataclass(frozen=True)
class ScoredMatch:
    """A corpus document with its keyword score for one request."""
    document: LoreDocument
    score: float


class KeywordLoreRetriever:
    """Full-scan keyword retriever over an immutable corpus."""

    version = RETRIEVER_VERSION

    def __init__(self, corpus: Corpus, query_analyzer: QueryAnalyzer):
        self.corpus = corpus
        self.query_analyzer = query_analyzer

    @staticmethod
    def score(document: LoreDocument, keywords: AbstractSet[str]) -> float:
        title = (document.title or "").lower()
        body = (document.text or "").lower()

        score = 0.0
        for keyword in keywords:
            kw = keyword.lower()
            if kw in title:
                score += TITLE_WEIGHT
            if kw in body:
                score += BODY_WEIGHT
        return score

    def retrieve_top_k(self, query: str, k: int) -> List[ScoredMatch]:
        """
        Return at most `k` matches, best first.

        Raises:
            RetrievalError: if keyword extraction or scoring fails
        """
        if k <= 0:
            return []

        tracer = get_tracer()
        with tracer.start_as_current_span("lore.retrieve"):
            start = time.perf_counter()
            try:
                keywords = self.query_analyzer.extract_keywords(query)
                scored = [ScoredMatch(doc, self.score(doc, keywords)) for doc in self.corpus]
            except Exception as e:
                raise RetrievalError(f"keyword retrieval failed: {e}") from e

            # sorted() is stable: ties keep corpus order
            scored = sorted(scored, key=lambda m: m.score, reverse=True)

            matches = [m for m in scored if m.score > 0][:k]
            fallback = not matches
            if fallback:
                matches = scored[:k]

            duration = time.perf_counter() - start
            record_retrieval_latency(duration)
            set_span_attribute("lore.keywords_count", len(keywords))
            set_span_attribute("lore.corpus_size", len(self.corpus))
            set_span_attribute("lore.results_count", len(matches))
            set_span_attribute("lore.fallback", fallback)

            logger.debug(
                "lore_retrieval_candidates",
                keywords=sorted(keywords),
                candidates=[
                    {"id": m.document.id, "title": m.document.title, "score": m.score}
                    for m in scored[:k]
                ],
                fallback=fallback,
                latency_ms=round(duration * 1000, 3),
            )
            return matches
