"""Pydantic models for API requests and responses."""

from .chat import ChatMessage, ChatRequest, ChatResponse, LoreSnippet, LoreAnswerSection

__all__ = ["ChatMessage", "ChatRequest", "ChatResponse", "LoreSnippet", "LoreAnswerSection"]
