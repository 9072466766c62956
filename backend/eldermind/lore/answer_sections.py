"""
Split a grounded Markdown reply into labeled sections.

The evidence block asks the model for `## `-headed sections; this turns them
into LoreAnswerSection objects so the UI can render them separately. Text
before the first header is ignored, and a reply without headers yields no
sections.
"""
import re
from typing import List

from eldermind.models.chat import LoreAnswerSection

_HEADER = re.compile(r"^##\s+(.+?)\s*$", re.MULTILINE)


def parse_answer_sections(reply: str) -> List[LoreAnswerSection]:
    headers = list(_HEADER.finditer(reply or ""))
    sections = []
    for i, header in enumerate(headers):
        end = headers[i + 1].start() if i + 1 < len(headers) else len(reply)
        body = reply[header.end():end].strip()
        sections.append(LoreAnswerSection(label=header.group(1), text=body))
    return sections
