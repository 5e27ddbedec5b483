# -*- coding: utf-8 -*-
"""Locate and decode the JSON object an LLM embedded in its reply.

Models wrap JSON with prose, markdown fences or several objects. The first
balanced ``{...}`` that decodes to a JSON object wins; a fenced block, when
present, is searched before the surrounding text.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List

from ..errors import MalformedResponseError

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", flags=re.IGNORECASE)


def _remove_trailing_commas(text: str) -> str:
    """Remove trailing commas in JSON while preserving string literals."""
    out: list[str] = []
    in_str = False
    escaped = False
    i = 0
    while i < len(text):
        ch = text[i]
        if in_str:
            out.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == "\"":
                in_str = False
            i += 1
            continue

        if ch == "\"":
            in_str = True
            out.append(ch)
            i += 1
            continue

        if ch == ",":
            j = i + 1
            while j < len(text) and text[j] in " \t\r\n":
                j += 1
            if j < len(text) and text[j] in "}]":
                i += 1
                continue

        out.append(ch)
        i += 1
    return "".join(out)


def iter_json_object_candidates(text: str) -> List[str]:
    """Extract balanced {...} candidates from arbitrary text, respecting string literals."""
    candidates: list[str] = []
    in_str = False
    escaped = False
    depth = 0
    start_idx: int | None = None

    for i, ch in enumerate(text):
        if in_str:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == "\"":
                in_str = False
            continue

        if ch == "\"" and depth > 0:
            in_str = True
            continue

        if ch == "{":
            if depth == 0:
                start_idx = i
            depth += 1
            continue

        if ch == "}":
            if depth > 0:
                depth -= 1
                if depth == 0 and start_idx is not None:
                    candidates.append(text[start_idx : i + 1])
                    start_idx = None
            continue

    return candidates


def _sanitize_json_like(text: str) -> str:
    # Curly quotes, trailing commas and non-finite floats are common LLM slips.
    cleaned = text
    cleaned = cleaned.replace("“", "\"").replace("”", "\"")
    cleaned = _remove_trailing_commas(cleaned)
    cleaned = re.sub(r"\bNaN\b", "null", cleaned)
    cleaned = re.sub(r"-?\bInfinity\b", "null", cleaned)
    return cleaned


def _search_regions(content: str) -> List[str]:
    regions: List[str] = []
    fenced = _FENCE_RE.search(content)
    if fenced:
        regions.append(fenced.group(1).strip())
    regions.append(content)
    return regions


def parse_model_json(content: str) -> Dict[str, Any]:
    """Return the first JSON object found in ``content``.

    Raises MalformedResponseError when no object can be located or decoded.
    """
    last_error: Exception | None = None
    found_any = False

    for region in _search_regions(content or ""):
        for candidate in iter_json_object_candidates(region):
            found_any = True
            for attempt in (candidate, _sanitize_json_like(candidate)):
                try:
                    parsed = json.loads(attempt)
                except json.JSONDecodeError as exc:
                    last_error = exc
                    continue
                if isinstance(parsed, dict):
                    return parsed

    if not found_any:
        raise MalformedResponseError("AI не вернул структурированный ответ")
    raise MalformedResponseError(f"AI вернул некорректный формат данных: {last_error}")
