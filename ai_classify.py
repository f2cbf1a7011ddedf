"""
ai_classify.py - complaint categorisation
==========================================
Turns a free-text complaint into a short problem keyword (the merge key) and
one department from the reference list, using Claude.
"""
import json
import logging
import re
from functools import lru_cache

import anthropic

from config import ANTHROPIC_API_KEY, ANTHROPIC_MODEL
from errors import UpstreamError, ValidationError

logger = logging.getLogger(__name__)

MIN_DESCRIPTION_LENGTH = 15


@lru_cache(maxsize=1)
def _get_client() -> anthropic.Anthropic:
    return anthropic.Anthropic(api_key=ANTHROPIC_API_KEY)


def _build_prompt(description: str, departments: list[str]) -> str:
    listed = ", ".join(f'"{d}"' for d in departments)
    return f"""Analyse the following civic complaint.

Complaint:
{description}

Departments: [{listed}]

Reply with JSON only (no prose):
{{"keyword": "one CamelCase keyword naming the issue, e.g. Pothole or GarbageOverflow",
  "department": "the single most relevant department, copied exactly from the list"}}"""


def parse_reply(text: str, departments: list[str]) -> tuple[str, str] | None:
    match = re.search(r"\{.*\}", text, re.DOTALL)
    if not match:
        return None
    try:
        result = json.loads(match.group())
    except json.JSONDecodeError:
        return None
    keyword    = str(result.get("keyword", "")).strip()
    department = result.get("department")
    if not keyword or department not in departments:
        return None
    return keyword, department


def classify_complaint(description: str, departments: list[str]) -> tuple[str, str]:
    """
    Returns (keyword, department). Raises ValidationError for a description
    that is too short and UpstreamError when the model is unreachable or
    answers outside the department list.
    """
    if len((description or "").strip()) < MIN_DESCRIPTION_LENGTH:
        raise ValidationError(
            f"Please provide a more detailed description (at least {MIN_DESCRIPTION_LENGTH} characters)."
        )

    try:
        message = _get_client().messages.create(
            model=ANTHROPIC_MODEL,
            max_tokens=256,
            messages=[{"role": "user", "content": _build_prompt(description, departments)}],
        )
        text = message.content[0].text
    except anthropic.AnthropicError as e:
        logger.error("Complaint categorisation failed: %s", e)
        raise UpstreamError("Could not analyse the description")

    parsed = parse_reply(text, departments)
    if parsed is None:
        logger.warning("Unusable categorisation reply: %r", text[:200])
        raise UpstreamError("Could not analyse the description")
    return parsed
