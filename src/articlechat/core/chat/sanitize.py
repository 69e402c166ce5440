"""Prompt-injection sanitizer for untrusted chat text.

``sanitize_text`` is a pure, ordered sequence of rewrites applied to
every free-text field (message, history entries, article title and
content, FAQ context).  Injection attempts are replaced with a visible
``[FILTERED]`` marker rather than deleted so the rewrite can be audited
downstream.

Line-anchored patterns match at the start of any line (``re.MULTILINE``)
and keep the line break; step 7 flattens whitespace afterwards.
"""

import re

FILTER_MARKER = "[FILTERED]"
CODE_BLOCK_MARKER = "[CODE_BLOCK_REMOVED]"
REPEATED_MARKER = "[REPEATED_CONTENT]"

_LINE = re.IGNORECASE | re.MULTILINE

# 1. Role labels ("system:", "Assistant :") opening a line.
_ROLE_LABEL = re.compile(r"^[ \t]*(?:system|assistant|user)[ \t]*[:：][ \t]*", _LINE)

# 2. Attempts to discard or replace prior instructions.
_OVERRIDE_PHRASES = (
    re.compile(
        r"^[ \t]*(?:ignore|forget|disregard)\s+"
        r"(?:previous|above|all|instructions?|context|rules?)",
        _LINE,
    ),
    re.compile(
        r"^[ \t]*(?:now|instead|from now on)\s+"
        r"(?:act|behave|respond|pretend)\s+(?:as|like)",
        _LINE,
    ),
)

# 3. Context-boundary markers and new instruction blocks.
_BOUNDARY_MARKERS = (
    re.compile(
        r"^[ \t]*(?:─+|=+|\*+|-{3,}|#{3,})\s*(?:end|stop|break|new|start)\s*"
        r"(?:context|instructions?|prompt|system)",
        _LINE,
    ),
    re.compile(
        r"^[ \t]*[\[(]?(?:end|stop|break)\s*(?:of\s+)?"
        r"(?:context|instructions?|prompt|system)[\])]?",
        _LINE,
    ),
    re.compile(
        r"^[ \t]*(?:override|replace|update)\s+"
        r"(?:instructions?|rules?|context|system)",
        _LINE,
    ),
    re.compile(
        r"^[ \t]*</?(?:system|assistant|user|instruction|prompt)(?:[ \t][^>\n]*)?>"
        r".*?(?:</(?:system|assistant|user|instruction|prompt)>|$)",
        _LINE,
    ),
)
_INSTRUCTION_HEADER = re.compile(
    r"^[ \t]*(?:new\s+)?(?:instructions?|rules?|guidelines?|context)[ \t]*[:：][ \t]*",
    _LINE,
)

# 4. Literal escape sequences and fenced payloads.
_ESCAPE_SEQUENCE = re.compile(r"\\[nrt\"'`]")
_CODE_FENCE = re.compile(r"(?:```|''')[\s\S]*?(?:```|''')")
_BLOCK_COMMENT_MIN_CHARS = 80

# 5. Control characters other than whitespace, and invisible formatting.
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")
_INVISIBLE_CHARS = re.compile(r"[\ufeff\u200b-\u200d\u2060]")

# 6. A unit of up to 10 characters repeated more than 10 times.
_REPETITION = re.compile(r"(?=\S)(.{1,10})\1{10,}")

# 7. Whitespace runs.
_WHITESPACE = re.compile(r"\s+")


def _strip_block_comments(text: str) -> str:
    """Replace ``/* ... */`` regions with a body of 80+ chars by the marker.

    Each comment closes at the first ``*/`` after its opener.  Scanning
    stops at the first opener with no closer, so the work stays linear.
    """
    parts: list[str] = []
    pos = 0
    while True:
        start = text.find("/*", pos)
        if start < 0:
            break
        end = text.find("*/", start + 2)
        if end < 0:
            break
        if end - (start + 2) >= _BLOCK_COMMENT_MIN_CHARS:
            parts.append(text[pos:start])
            parts.append(CODE_BLOCK_MARKER)
        else:
            parts.append(text[pos : end + 2])
        pos = end + 2
    parts.append(text[pos:])
    return "".join(parts)


def sanitize_text(text: str) -> str:
    """Neutralize prompt-injection patterns in *text*.

    Returns an empty string for non-string input.
    """
    if not isinstance(text, str) or not text:
        return ""

    text = _ROLE_LABEL.sub("", text)

    for pattern in _OVERRIDE_PHRASES:
        text = pattern.sub(FILTER_MARKER, text)

    for pattern in _BOUNDARY_MARKERS:
        text = pattern.sub(FILTER_MARKER, text)
    text = _INSTRUCTION_HEADER.sub(f"{FILTER_MARKER}: ", text)

    text = _ESCAPE_SEQUENCE.sub(" ", text)
    text = _CODE_FENCE.sub(CODE_BLOCK_MARKER, text)
    text = _strip_block_comments(text)

    text = _CONTROL_CHARS.sub("", text)
    text = _INVISIBLE_CHARS.sub("", text)

    text = _REPETITION.sub(rf"\1{REPEATED_MARKER}", text)

    return _WHITESPACE.sub(" ", text).strip()
