"""Recognition of ``/agent <name>`` and ``/critique <name>`` in comment bodies.

Directives are matched only in prose: fenced code blocks, inline code spans
and blockquoted lines are blanked out first, so a comment that quotes an
earlier ``/agent opus`` or shows one in a code sample does not re-trigger it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

AGENT = "agent"
CRITIQUE = "critique"

# Checked in this order; the first kind that matches wins.
_DIRECTIVE_PATTERNS = (
    (CRITIQUE, re.compile(r"(?<![\w/])/critique\s+(\w+)")),
    (AGENT, re.compile(r"(?<![\w/])/agent\s+(\w+)")),
)

_FENCE_RE = re.compile(r"^\s{0,3}(`{3,}|~{3,})")
_INLINE_CODE_RE = re.compile(r"(`+).+?\1", re.DOTALL)
_QUOTE_RE = re.compile(r"^\s{0,3}>")


@dataclass(frozen=True)
class CommandDirective:
    kind: str  # "agent" | "critique"
    target_agent: str
    actor: str = ""
    timestamp: str = ""


def strip_non_prose(body: str) -> str:
    """Blank out fenced code, blockquotes and inline code, keeping line structure."""
    kept: list[str] = []
    fence: str | None = None
    for line in body.splitlines():
        marker = _FENCE_RE.match(line)
        if fence is not None:
            if marker and marker.group(1)[0] == fence[0] and len(marker.group(1)) >= len(fence):
                fence = None
            kept.append("")
            continue
        if marker:
            fence = marker.group(1)
            kept.append("")
            continue
        if _QUOTE_RE.match(line):
            kept.append("")
            continue
        kept.append(line)
    return _INLINE_CODE_RE.sub(" ", "\n".join(kept))


def parse_directive(body: str | None, actor: str = "", timestamp: str = "") -> CommandDirective | None:
    """Return the directive in ``body``, or None if it carries no directive."""
    if not body:
        return None
    prose = strip_non_prose(body)
    for kind, pattern in _DIRECTIVE_PATTERNS:
        match = pattern.search(prose)
        if match:
            return CommandDirective(kind=kind, target_agent=match.group(1), actor=actor, timestamp=timestamp)
    return None
