"""
Startup wiring for the lore pipeline.

The corpus is loaded once; every component is built explicitly from the
resolved Settings and handed to the application state.
"""
from dataclasses import dataclass
from typing import Optional

from eldermind.core.config import Settings
from eldermind.core.logging import get_logger
from eldermind.core.metrics import set_corpus_size
from eldermind.lore.corpus import JsonCorpusLoader, load_corpus
from eldermind.lore.decision import DecisionLog
from eldermind.lore.orchestrator import LoreOrchestrator
from eldermind.lore.prompt_assembler import LorePromptAssembler
from eldermind.lore.query_analyzer import QueryAnalyzer
from eldermind.lore.retriever import KeywordLoreRetriever
from eldermind.services.ai.gateway import ChatService, OpenAILoreGateway
from eldermind.services.ai.llm_client import LLMClient, build_llm_client

logger = get_logger(__name__)


@dataclass
class LoreServices:
    orchestrator: LoreOrchestrator
    decision_log: DecisionLog
    llm_client: LLMClient


def build_lore_services(settings: Settings, llm_client: Optional[LLMClient] = None) -> LoreServices:
    """
    Build the orchestrator and its collaborators.

    Args:
        settings: Resolved settings
        llm_client: Pre-built client (tests pass one with a mock transport)
    """
    corpus = load_corpus(JsonCorpusLoader(settings.corpus_path))
    set_corpus_size(len(corpus))

    retriever = KeywordLoreRetriever(corpus, QueryAnalyzer())
    decision_log = DecisionLog(max_entries=settings.decision_log_size)
    client = llm_client or build_llm_client(settings)

    orchestrator = LoreOrchestrator(
        retriever=retriever,
        prompt_assembler=LorePromptAssembler(),
        gateway=OpenAILoreGateway(client),
        chat_service=ChatService(client),
        decision_log=decision_log,
        threshold=settings.retrieval_threshold,
        top_k=settings.retrieval_top_k,
        retrieval_enabled=settings.retrieval_enabled,
    )

    logger.info(
        "lore_services_ready",
        corpus_documents=len(corpus),
        retriever_version=retriever.version,
        threshold=settings.retrieval_threshold,
        top_k=settings.retrieval_top_k,
        retrieval_enabled=settings.retrieval_enabled,
        llm_model=settings.llm_model,
        llm_configured=bool(settings.llm_api_key),
    )
    return LoreServices(orchestrator=orchestrator, decision_log=decision_log, llm_client=client)
