"""
Briefsmith
Recovery parser for LLM output.

LLMs are asked for bare JSON but routinely wrap it in prose, fence it in
markdown, leave trailing commas or sprinkle comments. ``parse_llm_json``
recovers the structured value or raises ``ParseError``:

    1. Trim; take the first fenced code block if any.
    2. Otherwise slice the first balanced {...} / [...] span
       (bracket depth tracked jointly, string literals ignored).
    3. Strip stray text around the outermost brackets, trailing commas
       and // or /* */ comments, then json.loads.
    4. On failure retry once with the widest bracket region (>= 10 chars)
       of the original text.

Usage:
    from briefsmith.ai.parser import parse_llm_json
    data = parse_llm_json(llm_result["content"])
"""

import json
import logging
import re

from briefsmith.core.exceptions import ParseError

logger = logging.getLogger(__name__)

_CODE_BLOCK_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)
_LEADING_NOISE_RE = re.compile(r"^[^{\[]*")
_TRAILING_NOISE_RE = re.compile(r"[^}\]]*$")
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")
_STRING_LITERAL_RE = re.compile(r'"(?:\\.|[^"\\])*"')
_WIDEST_REGION_RE = re.compile(r"\{[\s\S]{10,}\}|\[[\s\S]{10,}\]")


def parse_llm_json(content: str):
    """
    Recover a JSON value from raw LLM output.

    Args:
        content: Raw generated text.

    Returns:
        The parsed dict or list.

    Raises:
        ParseError: carrying the first 200 chars of ``content`` and the cause.
    """
    if not content or not content.strip():
        raise ParseError(content, ValueError("content is empty"))

    cleaned = _isolate_candidate(content.strip())
    cleaned = _LEADING_NOISE_RE.sub("", cleaned)
    cleaned = _TRAILING_NOISE_RE.sub("", cleaned)
    cleaned = _repair(cleaned)

    try:
        parsed = json.loads(cleaned)
        logger.debug("Parsed LLM JSON on first attempt")
        return parsed
    except json.JSONDecodeError as first_error:
        logger.warning("LLM JSON extraction failed: %s", first_error)
        last_error = first_error

    region = _WIDEST_REGION_RE.search(content)
    if region:
        try:
            parsed = json.loads(_repair(region.group(0)))
            logger.debug("Parsed LLM JSON on second attempt")
            return parsed
        except json.JSONDecodeError as second_error:
            logger.error("LLM JSON second attempt also failed: %s", second_error)
            last_error = second_error

    raise ParseError(content, last_error)


def _isolate_candidate(text: str) -> str:
    """Return the first fenced block's body, else the first balanced span."""
    match = _CODE_BLOCK_RE.search(text)
    if match:
        return match.group(1).strip()

    span = find_balanced_span(text)
    if span is None:
        return text
    start, end = span
    return text[start:end]


def find_balanced_span(text: str) -> tuple[int, int] | None:
    """
    Locate the first bracket-balanced JSON span in ``text``.

    Braces and square brackets are counted separately and the span closes
    only when both counts are back to zero. Characters inside double-quoted
    strings are ignored; a backslash escapes the following character.

    Returns:
        (start, end) slice bounds, or None if no opening bracket exists or
        the brackets never balance.
    """
    start = -1
    for i, ch in enumerate(text):
        if ch in "{[":
            start = i
            break
    if start == -1:
        return None

    braces = 0
    brackets = 0
    in_string = False
    escape_next = False
    for i in range(start, len(text)):
        ch = text[i]
        if escape_next:
            escape_next = False
            continue
        if ch == "\\":
            escape_next = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue

        if ch == "{":
            braces += 1
        elif ch == "}":
            braces -= 1
        elif ch == "[":
            brackets += 1
        elif ch == "]":
            brackets -= 1

        if braces == 0 and brackets == 0:
            return start, i + 1
    return None


def _repair(text: str) -> str:
    """Drop trailing commas, then comments."""
    return strip_comments(drop_trailing_commas(text))


def drop_trailing_commas(text: str) -> str:
    """Remove commas directly before a closing bracket, outside string literals."""
    out = []
    last = 0
    for match in _STRING_LITERAL_RE.finditer(text):
        out.append(_TRAILING_COMMA_RE.sub(r"\1", text[last:match.start()]))
        out.append(match.group(0))
        last = match.end()
    out.append(_TRAILING_COMMA_RE.sub(r"\1", text[last:]))
    return "".join(out)


def strip_comments(text: str) -> str:
    """Remove // line comments and /* */ block comments outside string literals."""
    out = []
    i = 0
    n = len(text)
    in_string = False
    while i < n:
        ch = text[i]
        if in_string:
            out.append(ch)
            if ch == "\\" and i + 1 < n:
                out.append(text[i + 1])
                i += 2
                continue
            if ch == '"':
                in_string = False
            i += 1
            continue

        if ch == '"':
            in_string = True
            out.append(ch)
            i += 1
        elif text.startswith("//", i):
            newline = text.find("\n", i)
            i = n if newline == -1 else newline
        elif text.startswith("/*", i):
            close = text.find("*/", i + 2)
            if close == -1:
                # Unterminated block comment: keep the text so json.loads reports it
                out.append(text[i:])
                break
            i = close + 2
        else:
            out.append(ch)
            i += 1
    return "".join(out)
