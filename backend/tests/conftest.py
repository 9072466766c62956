"""
Shared fixtures: a small in-memory corpus and stub LLM collaborators.
"""
import pytest

from eldermind.lore.corpus import Corpus, LoreDocument
from eldermind.lore.decision import DecisionLog
from eldermind.lore.orchestrator import LoreOrchestrator
from eldermind.lore.prompt_assembler import LorePromptAssembler
from eldermind.lore.query_analyzer import QueryAnalyzer
from eldermind.lore.retriever import KeywordLoreRetriever
from eldermind.models.chat import ChatResponse


class DummyGateway:
    """Records grounded calls and returns a canned reply."""

    def __init__(self, reply="## Answer (grounded)\nThe Numidium is a brass golem.", error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    async def generate_answer(self, request, evidence_block):
        self.calls.append((request, evidence_block))
        if self.error is not None:
            raise self.error
        return ChatResponse(reply=self.reply, prompt_tokens=120, completion_tokens=30)


class DummyChatService:
    """Records ungrounded calls and returns a canned reply."""

    def __init__(self, reply="I can only speak from general lore here.", error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    async def respond(self, request):
        self.calls.append(request)
        if self.error is not None:
            raise self.error
        return ChatResponse(reply=self.reply, prompt_tokens=40, completion_tokens=12)


@pytest.fixture
def documents():
    return [
        LoreDocument(
            id="numidium",
            source="UESP",
            title="Numidium",
            url="https://en.uesp.net/wiki/Lore:Numidium",
            text="an ancient brass golem",
        ),
        LoreDocument(
            id="dwemer",
            source="UESP",
            title="Dwemer",
            url="",
            text="The Dwemer built brass machines beneath Red Mountain.",
        ),
        LoreDocument(
            id="akatosh",
            source="InGameBook",
            title="Akatosh",
            url=None,
            text="The Dragon God of Time.",
        ),
        LoreDocument(
            id="red-mountain",
            source="UESP",
            title="Battle of Red Mountain",
            url="https://en.uesp.net/wiki/Lore:Battle_of_Red_Mountain",
            text="Nerevar fell and the Dwemer vanished.",
        ),
        LoreDocument(
            id="talos",
            source="UESP",
            title="Tiber Septim",
            url="https://en.uesp.net/wiki/Lore:Tiber_Septim",
            text="Founder of the Third Empire, later worshipped as Talos.",
        ),
    ]


@pytest.fixture
def corpus(documents):
    return Corpus(documents)


@pytest.fixture
def retriever(corpus):
    return KeywordLoreRetriever(corpus, QueryAnalyzer())


@pytest.fixture
def gateway():
    return DummyGateway()


@pytest.fixture
def chat_service():
    return DummyChatService()


@pytest.fixture
def decision_log():
    return DecisionLog(max_entries=10)


@pytest.fixture
def orchestrator(retriever, gateway, chat_service, decision_log):
    return LoreOrchestrator(
        retriever=retriever,
        prompt_assembler=LorePromptAssembler(),
        gateway=gateway,
        chat_service=chat_service,
        decision_log=decision_log,
        threshold=0.15,
        top_k=4,
    )
