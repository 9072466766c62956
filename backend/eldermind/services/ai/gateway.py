"""
Chat gateways over the LLM client.

- OpenAILoreGateway: grounded answers; the evidence block is appended to the
  persona system prompt
- ChatService: the ungrounded fallback, persona prompt plus history only

Both build the persona from ChatRequest.mode and return a ChatResponse with
the model's token accounting.
"""
from typing import Any, Dict, List, Optional, Protocol

from eldermind.core.logging import get_logger
from eldermind.models.chat import ChatRequest, ChatResponse
from eldermind.services.ai.llm_client import LLMClient, LLMGatewayError

logger = get_logger(__name__)

DEFAULT_MODE = "loremaster"

PERSONA_PROMPTS: Dict[str, str] = {
    "loremaster": (
        "You are ElderMind, a loremaster of The Elder Scrolls. Answer questions about "
        "Tamriel's history, people, places and artifacts clearly and accurately. "
        "When you are unsure, say so rather than guessing."
    ),
    "scholar": (
        "You are ElderMind, a scholar of the Imperial Library. Answer in a measured, "
        "academic register, distinguish established canon from in-universe belief, "
        "and point out where accounts disagree."
    ),
    "in-character": (
        "You are ElderMind, a wandering sage of Tamriel. Answer in character, as someone "
        "living in the world would, but never invent facts to fill gaps."
    ),
}

_CHAT_ROLES = frozenset({"system", "user", "assistant"})


class LoreLLMGateway(Protocol):
    async def generate_answer(self, request: ChatRequest, evidence_block: str) -> ChatResponse: ...


class ChatFallback(Protocol):
    async def respond(self, request: ChatRequest) -> ChatResponse: ...


def persona_prompt(mode: Optional[str]) -> str:
    """System prompt for a persona mode; unknown modes get the default persona."""
    key = (mode or "").strip().lower()
    return PERSONA_PROMPTS.get(key, PERSONA_PROMPTS[DEFAULT_MODE])


def build_messages(request: ChatRequest, evidence_block: Optional[str] = None) -> List[Dict[str, str]]:
    """
    OpenAI-style message list: persona (plus evidence) first, then history.

    Messages without content are dropped; unknown roles are sent as "user".
    """
    system = persona_prompt(request.mode)
    if evidence_block:
        system = f"{system}\n\n{evidence_block}"

    messages = [{"role": "system", "content": system}]
    for message in request.messages:
        if not message.content:
            continue
        role = (message.role or "").lower()
        messages.append({
            "role": role if role in _CHAT_ROLES else "user",
            "content": message.content,
        })
    return messages


def to_chat_response(data: Dict[str, Any]) -> ChatResponse:
    """
    Convert a chat completion payload into a ChatResponse.

    Raises:
        LLMGatewayError: if the payload has no message content
    """
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise LLMGatewayError("LLM response has no message content", retryable=False) from e
    if not isinstance(content, str):
        raise LLMGatewayError("LLM response has no message content", retryable=False)

    usage = data.get("usage") or {}
    return ChatResponse(
        reply=content,
        prompt_tokens=int(usage.get("prompt_tokens") or 0),
        completion_tokens=int(usage.get("completion_tokens") or 0),
    )


class OpenAILoreGateway:
    """Grounded answers: the evidence block rides in the system message."""

    def __init__(self, client: LLMClient):
        self.client = client

    async def generate_answer(self, request: ChatRequest, evidence_block: str) -> ChatResponse:
        data = await self.client.chat("lore", build_messages(request, evidence_block))
        return to_chat_response(data)


class ChatService:
    """Ungrounded chat used whenever gating rejects the evidence."""

    def __init__(self, client: LLMClient):
        self.client = client

    async def respond(self, request: ChatRequest) -> ChatResponse:
        data = await self.client.chat("chat", build_messages(request))
        return to_chat_response(data)
