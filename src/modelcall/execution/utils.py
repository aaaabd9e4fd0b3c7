from __future__ import annotations

"""
MIT License
Copyright (c) 2026 socioy
See LICENSE file for full license text.

Utility functions for model calls, including JSON extraction and backoff strategies.
"""
import asyncio
import json
import random
from typing import Any, Optional


def safe_json_loads(s: str) -> Optional[Any]:
    try:
        return json.loads(s)
    except Exception:
        return None


def _strip_fenced_code_block(text: str) -> str:
    """
    If `text` starts with a fenced code block (``` or ~~~), return the content inside.
    Otherwise return the original text stripped.
    """
    t = (text or "").strip()
    if not t:
        return t

    lines = t.splitlines()
    first = lines[0].lstrip()
    if first.startswith("```"):
        fence = "```"
    elif first.startswith("~~~"):
        fence = "~~~"
    else:
        return t

    # Opening fence line may carry a language tag, e.g. ```json
    body_lines = lines[1:]
    close_idx = None
    for i, line in enumerate(body_lines):
        if line.lstrip().startswith(fence):
            close_idx = i
            break

    if close_idx is None:
        return "\n".join(body_lines).strip()
    return "\n".join(body_lines[:close_idx]).strip()


def extract_json_object(text: str) -> Optional[str]:
    """
    Best-effort extraction of the first JSON object/array from a larger text blob.

    Handles markdown fenced blocks, nested braces/brackets and braces inside
    quoted strings. Returns the substring, or None.
    """
    if not text:
        return None

    t = _strip_fenced_code_block(text)
    if not t:
        return None

    starts = [i for i in (t.find("{"), t.find("[")) if i != -1]
    if not starts:
        return None
    start = min(starts)

    stack = [t[start]]
    in_string = False
    escape = False

    for i in range(start + 1, len(t)):
        ch = t[i]

        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch in "{[":
            stack.append(ch)
        elif ch in "}]":
            top = stack[-1]
            if (ch == "}" and top == "{") or (ch == "]" and top == "["):
                stack.pop()
                if not stack:
                    return t[start : i + 1]
            # Mismatched closer: ignore and keep scanning.

    return None


def backoff_delay(
    attempt: int, base_s: float, jitter_s: float, *, factor: float = 2.0
) -> float:
    """
    Exponential backoff with jitter.
    attempt=0 => base, attempt=1 => factor*base, etc.
    """
    exp = base_s * (factor ** attempt)
    jitter = random.uniform(0.0, jitter_s) if jitter_s > 0 else 0.0
    return exp + jitter


def run_sync(coro):
    """
    Run an async coroutine from sync context.
    If already inside a running event loop, raise a clear error.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)

    coro.close()
    raise RuntimeError(
        "Cannot use *_sync functions inside a running event loop. Use async functions instead."
    )
