"""
Lore retrieval and grounding.

Pipeline: QueryAnalyzer -> KeywordLoreRetriever -> LoreOrchestrator gating ->
LorePromptAssembler -> LLM gateway, with every decision recorded in a
DecisionLog.
"""
from .corpus import Corpus, JsonCorpusLoader, LoreDocument, load_corpus
from .decision import DecisionLog, FallbackReason, RetrievalDecision
from .orchestrator import LoreOrchestrator, extract_latest_user_message
from .prompt_assembler import LorePromptAssembler
from .query_analyzer import QueryAnalyzer
from .retriever import RETRIEVER_VERSION, KeywordLoreRetriever, RetrievalError, ScoredMatch

__all__ = [
    "Corpus",
    "JsonCorpusLoader",
    "LoreDocument",
    "load_corpus",
    "DecisionLog",
    "FallbackReason",
    "RetrievalDecision",
    "LoreOrchestrator",
    "extract_latest_user_message",
    "LorePromptAssembler",
    "QueryAnalyzer",
    "RETRIEVER_VERSION",
    "KeywordLoreRetriever",
    "RetrievalError",
    "ScoredMatch",
]
