"""
Request and response models for the chat endpoint.

These models define the wire contract with the frontend.
"""
from typing import List, Optional

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    """One turn of the conversation history."""
    role: Optional[str] = None  # "user" | "assistant" | "system"
    content: Optional[str] = None


class ChatRequest(BaseModel):
    """Conversation history plus the persona mode selected in the UI."""
    messages: List[ChatMessage] = Field(default_factory=list)
    mode: Optional[str] = None


class LoreSnippet(BaseModel):
    """A retrieved evidence snippet as shown to the user."""
    id: Optional[str] = None
    source: Optional[str] = None  # "UESP" | "InGameBook"
    title: Optional[str] = None
    excerpt: Optional[str] = None
    url: Optional[str] = None
    score: float = 0.0


class LoreAnswerSection(BaseModel):
    """One Markdown section of a grounded answer."""
    label: str
    text: str


class ChatResponse(BaseModel):
    """Reply text from the model plus token accounting."""
    reply: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    sections: Optional[List[LoreAnswerSection]] = None
    sources: Optional[List[LoreSnippet]] = None
