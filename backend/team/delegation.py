"""
Delegation tag parsing.

An agent asks a teammate for help by writing a tag in its reply:

    [DELEGATE: Josh Check the profit margin on iPhone cases]

Grammar (the first valid tag in the text wins):

    tag     := "[" KEYWORD ":" WS* TARGET WS+ TASK "]"
    KEYWORD := "DELEGATE"            (case-insensitive)
    TARGET  := [A-Za-z0-9_]+
    TASK    := any characters except "]" and newline, possibly none
    WS      := whitespace, newlines included

A candidate that does not satisfy the grammar is skipped and the scan
continues after its opening bracket.
"""

import string
from dataclasses import dataclass
from typing import Optional

KEYWORD = "DELEGATE"
TARGET_CHARS = frozenset(string.ascii_letters + string.digits + "_")
OPENER = "[" + KEYWORD + ":"


@dataclass(frozen=True)
class DelegationRequest:
    """A request, extracted from a reply, for another agent to handle a task."""
    target_agent: str
    task: str


def format_delegation_tag(target_agent: str, task: str) -> str:
    """Render a tag that parse_delegation() accepts."""
    return f"[{KEYWORD}: {target_agent} {task}]"


def _parse_at(text: str, start: int) -> Optional[DelegationRequest]:
    """Parse a tag whose opener begins at ``start``; None if it is malformed."""
    pos = start + len(OPENER)
    end = len(text)

    while pos < end and text[pos].isspace():
        pos += 1

    target_start = pos
    while pos < end and text[pos] in TARGET_CHARS:
        pos += 1
    if pos == target_start:
        return None
    target = text[target_start:pos]

    if pos >= end or not text[pos].isspace():
        return None
    while pos < end and text[pos].isspace():
        pos += 1

    task_end = text.find("]", pos)
    if task_end == -1:
        return None
    task = text[pos:task_end]
    if "\n" in task or "\r" in task:
        return None

    return DelegationRequest(target_agent=target, task=task.strip())


def parse_delegation(text: str) -> Optional[DelegationRequest]:
    """
    Find the first delegation tag in ``text``.

    Args:
        text: Agent reply

    Returns:
        DelegationRequest for the first well-formed tag, or None
    """
    if not text:
        return None

    pos = text.find("[")
    while pos != -1:
        if text[pos:pos + len(OPENER)].upper() == OPENER:
            request = _parse_at(text, pos)
            if request is not None:
                return request
        pos = text.find("[", pos + 1)

    return None
