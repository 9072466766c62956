"""
Lore orchestration (RAG-lite gating).

Responsibilities:
- Pick the canonical query (latest user-authored message)
- Retrieve evidence and decide whether it is relevant enough to inject
- Record the decision for observability, whatever the outcome
- Route to the grounded LLM gateway or the ungrounded chat fallback

NON-responsibilities:
- Does NOT store chat history
- Does NOT talk HTTP to the model (gateways do)

Gating checks run in order and the first hit short-circuits to the
ungrounded fallback:
    0. retrieval disabled by flag       -> DISABLED_BY_FLAG (not attempted)
    1. blank latest user query          -> NO_KEYWORDS (not attempted)
    2. retriever raised                 -> ERROR
    3. no matches                       -> EMPTY_CORPUS / NO_MATCHES
    4. top score below threshold        -> BELOW_THRESHOLD
    5. otherwise evidence is used
"""
from typing import List, Optional, Tuple

from eldermind.core.logging import get_logger
from eldermind.core.tracing import get_tracer, set_span_attribute
from eldermind.lore.answer_sections import parse_answer_sections
from eldermind.lore.decision import DecisionLog, FallbackReason, RetrievalDecision
from eldermind.lore.prompt_assembler import LorePromptAssembler
from eldermind.lore.retriever import KeywordLoreRetriever, ScoredMatch
from eldermind.models.chat import ChatRequest, ChatResponse, LoreSnippet
from eldermind.services.ai.gateway import ChatFallback, LoreLLMGateway

logger = get_logger(__name__)

DEFAULT_THRESHOLD = 0.15
DEFAULT_TOP_K = 4


def extract_latest_user_message(request: Optional[ChatRequest]) -> str:
    """
    Newest message with role "user"; failing that, the last message's content.
    """
    if request is None or not request.messages:
        return ""

    for message in reversed(request.messages):
        if (message.role or "").lower() == "user":
            return message.content or ""

    return request.messages[-1].content or ""


class LoreOrchestrator:
    """Coordinates retrieval, gating, prompt assembly and the LLM call."""

    def __init__(
        self,
        retriever: KeywordLoreRetriever,
        prompt_assembler: LorePromptAssembler,
        gateway: LoreLLMGateway,
        chat_service: ChatFallback,
        decision_log: DecisionLog,
        threshold: float = DEFAULT_THRESHOLD,
        top_k: int = DEFAULT_TOP_K,
        retrieval_enabled: bool = True,
    ):
        self.retriever = retriever
        self.prompt_assembler = prompt_assembler
        self.gateway = gateway
        self.chat_service = chat_service
        self.decision_log = decision_log
        self.threshold = threshold
        self.top_k = top_k
        self.retrieval_enabled = retrieval_enabled

    def decide(self, query: str) -> Tuple[RetrievalDecision, List[ScoredMatch]]:
        """
        Run retrieval and gating for one query.

        Returns the decision and the matches; matches are empty unless the
        decision is `used`.
        """
        version = self.retriever.version

        def skip(reason: FallbackReason, attempted: bool, matched_docs: int = 0, top_score: float = 0.0):
            decision = RetrievalDecision.skipped(
                reason,
                attempted=attempted,
                threshold=self.threshold,
                retriever_version=version,
                matched_docs=matched_docs,
                top_score=top_score,
            )
            return decision, []

        if not self.retrieval_enabled:
            return skip(FallbackReason.DISABLED_BY_FLAG, attempted=False)

        if not query or not query.strip():
            return skip(FallbackReason.NO_KEYWORDS, attempted=False)

        try:
            matches = self.retriever.retrieve_top_k(query, self.top_k)
        except Exception as e:
            logger.warning(
                "lore_retrieval_failed",
                error=str(e),
                error_type=type(e.__cause__ or e).__name__,
            )
            return skip(FallbackReason.ERROR, attempted=True)

        if not matches:
            reason = FallbackReason.EMPTY_CORPUS if len(self.retriever.corpus) == 0 else FallbackReason.NO_MATCHES
            return skip(reason, attempted=True)

        top_score = matches[0].score
        if not (top_score >= self.threshold):
            return skip(
                FallbackReason.BELOW_THRESHOLD,
                attempted=True,
                matched_docs=len(matches),
                top_score=top_score,
            )

        decision = RetrievalDecision.grounded(
            matched_docs=len(matches),
            top_score=top_score,
            threshold=self.threshold,
            retriever_version=version,
        )
        return decision, matches

    async def answer(self, request: ChatRequest, include_sources: bool) -> ChatResponse:
        """
        Answer the conversation, grounding it in lore evidence when relevant.

        Gateway errors are not caught here; the HTTP layer maps them.
        """
        tracer = get_tracer()
        with tracer.start_as_current_span("lore.answer"):
            query = extract_latest_user_message(request)
            decision, matches = self.decide(query)
            self.decision_log.record(decision, query)

            set_span_attribute("lore.retrieval_used", decision.used)
            set_span_attribute("lore.top_score", decision.top_score)
            if decision.fallback_reason is not None:
                set_span_attribute("lore.fallback_reason", decision.fallback_reason.value)

            if not decision.used:
                return await self.chat_service.respond(request)

            documents = [m.document for m in matches]
            evidence_block = self.prompt_assembler.build_evidence_block(documents)
            response = await self.gateway.generate_answer(request, evidence_block)

            reply = response.reply
            if include_sources:
                reply = reply + "\n\n" + self.prompt_assembler.build_sources_footer(documents)

            return response.model_copy(update={
                "reply": reply,
                "sections": parse_answer_sections(response.reply) or None,
                "sources": [
                    LoreSnippet(
                        id=m.document.id,
                        source=m.document.source,
                        title=m.document.title,
                        excerpt=m.document.text,
                        url=m.document.url,
                        score=m.score,
                    )
                    for m in matches
                ],
            })
