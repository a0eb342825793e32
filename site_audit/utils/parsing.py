from __future__ import annotations

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

FENCE_RE = re.compile(r"```(?:json|JSON)?\s*(.*?)(?:```|$)", re.DOTALL)
CLOSERS = {"{": "}", "[": "]"}
MAX_REPAIR_ATTEMPTS = 64


class MalformedUpstreamData(ValueError):
    pass


def _strict(text: str) -> Any:
    return json.loads(text)


def _strip_wrapper(text: str) -> tuple[str, str]:
    """Return the outermost container and everything from its opening bracket on."""
    match = FENCE_RE.search(text)
    if match:
        text = match.group(1)
    starts = [i for i in (text.find("{"), text.find("[")) if i >= 0]
    if not starts:
        raise MalformedUpstreamData("no JSON container found")
    start = min(starts)
    tail = text[start:]
    end = tail.rfind(CLOSERS[tail[0]])
    if end > 0:
        return tail[: end + 1], tail
    return tail, tail


def _walk(text: str):
    """Yield (index, char, stack) for every structural character outside strings."""
    stack: list[str] = []
    in_string = False
    escaped = False
    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in CLOSERS:
            stack.append(ch)
            yield i, ch, stack
        elif ch in "}]":
            if stack:
                stack.pop()
            yield i, ch, stack
        elif ch == ",":
            yield i, ch, stack


def _close(prefix: str, stack: list[str]) -> str:
    prefix = prefix.rstrip()
    while prefix.endswith(","):
        prefix = prefix[:-1].rstrip()
    return prefix + "".join(CLOSERS[c] for c in reversed(stack))


def _balance(text: str) -> Any:
    # Every comma outside a string ends a complete value, as does every
    # closing bracket, so those are the only safe truncation points.
    cuts: list[tuple[int, list[str]]] = []
    final_stack: list[str] = []
    for i, ch, stack in _walk(text):
        if ch == ",":
            cuts.append((i, list(stack)))
        elif ch in "}]":
            cuts.append((i + 1, list(stack)))
        final_stack = list(stack)
    candidates = [_close(text, final_stack)]
    candidates.extend(_close(text[:cut], stack) for cut, stack in reversed(cuts[-MAX_REPAIR_ATTEMPTS:]))
    for candidate in candidates:
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue
    raise MalformedUpstreamData("bracket balancing failed")


def _per_record(text: str) -> Any:
    if not text or text[0] not in CLOSERS:
        raise MalformedUpstreamData("no top-level container")
    is_object = text[0] == "{"
    segments: list[str] = []
    start = 1
    for i, ch, stack in _walk(text):
        if i == 0:
            continue
        depth = len(stack)
        if ch == "," and depth == 1:
            segments.append(text[start:i])
            start = i + 1
        elif ch in "}]" and depth == 0:
            segments.append(text[start:i])
            start = len(text)
            break
    if start < len(text):
        segments.append(text[start:])

    recovered: Any = {} if is_object else []
    for segment in segments:
        segment = segment.strip()
        if not segment:
            continue
        try:
            if is_object:
                recovered.update(json.loads("{" + segment + "}"))
            else:
                recovered.append(json.loads(segment))
        except json.JSONDecodeError:
            logger.debug("dropped malformed record", extra={"record": segment[:80]})
    if not recovered:
        raise MalformedUpstreamData("no record could be recovered")
    return recovered


def recover_json(text: str) -> Any:
    """Parse JSON from an upstream that may wrap, truncate or mangle it.

    Stages run in order and the first one that succeeds wins: strict parse,
    wrapper stripping (Markdown fences and surrounding prose), bracket
    balancing after the last complete value, then per-record extraction.
    """
    if text is None:
        raise MalformedUpstreamData("empty upstream payload")
    try:
        return _strict(text)
    except json.JSONDecodeError:
        pass

    container, tail = _strip_wrapper(text)
    try:
        return _strict(container)
    except json.JSONDecodeError:
        pass
    for stage in (_balance, _per_record):
        try:
            result = stage(tail)
        except (json.JSONDecodeError, MalformedUpstreamData):
            continue
        logger.debug("recovered malformed upstream data", extra={"stage": stage.__name__})
        return result
    raise MalformedUpstreamData("upstream payload could not be recovered")
