"""
Formats retrieved lore snippets into prompt text.

Two outputs:
- the evidence block injected into the model's system message, ending in a
  fixed set of grounding instructions and a response template
- a plain "Sources:" footer appended to the reply when the UI asks for it

Both are pure functions of the document list and its order.
"""
from typing import Optional, Sequence

from eldermind.lore.corpus import LoreDocument

NO_EVIDENCE_BLOCK = "LORE EVIDENCE:\n(No relevant sources retrieved.)\n"

EVIDENCE_HEADER = "LORE EVIDENCE (use this as grounding):\n"

SNIPPET_SEPARATOR = "\n---\n"

GROUNDING_INSTRUCTIONS = (
    "INSTRUCTIONS (follow strictly):\n"
    "1) Use ONLY the evidence snippets above for factual claims.\n"
    "2) If you must add outside Elder Scrolls knowledge, label it clearly as:\n"
    "   \"General lore knowledge (not from provided sources): ...\"\n"
    "3) If the evidence is uncertain, incomplete, or conflicting, say so explicitly.\n"
    "4) Do NOT invent dates, names, titles, or causes not present in evidence.\n"
    "5) Prefer quoting or paraphrasing the excerpts rather than expanding beyond them.\n"
)

RESPONSE_TEMPLATE = (
    "\nRESPONSE FORMAT (use Markdown headers):\n"
    "## Answer (grounded)\n"
    "## What the evidence supports\n"
    "## What is disputed or unknown\n"
    "## General lore knowledge (only if used, and clearly labeled)\n"
)


def _safe(value: Optional[str]) -> str:
    return "" if value is None else value


class LorePromptAssembler:
    """Renders evidence documents into the evidence block and sources footer."""

    def build_evidence_block(self, documents: Sequence[LoreDocument]) -> str:
        if not documents:
            return NO_EVIDENCE_BLOCK

        parts = [EVIDENCE_HEADER]
        for doc in documents:
            parts.append(SNIPPET_SEPARATOR)
            parts.append(f"Snippet ID: {_safe(doc.id)}\n")
            parts.append(f"Source: {_safe(doc.source)}\n")
            parts.append(f"Title: {_safe(doc.title)}\n")
            parts.append(f"Excerpt: {_safe(doc.text)}\n")
        parts.append(SNIPPET_SEPARATOR)
        parts.append(GROUNDING_INSTRUCTIONS)
        parts.append(RESPONSE_TEMPLATE)
        return "".join(parts)

    def build_sources_footer(self, documents: Sequence[LoreDocument]) -> str:
        if not documents:
            return ""

        lines = ["Sources:\n"]
        for doc in documents:
            line = f"- {_safe(doc.title)} ({_safe(doc.source)})"
            if doc.url and doc.url.strip():
                line += f" — {doc.url}"
            lines.append(line + "\n")
        return "".join(lines)
