"""
LLM access layer.

Talks to an OpenAI-compatible chat API. This package must not contain any
retrieval or gating logic: the lore orchestrator decides, gateways only call.
"""
