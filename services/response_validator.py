"""
Model output validation.

Last line of defense between free-form model text and the client: anything
structurally invalid or policy-violating raises ``InvalidFormatError``;
anything well-formed is returned bounded (score clamped, message truncated).
"""

import json
import logging
import math
import re
from typing import Any, Dict

from constants.limits import INTENT_SCORE_MAX, INTENT_SCORE_MIN, MAX_SUGGESTION_LENGTH
from core.exceptions import InvalidFormatError
from models.suggestion import NEXT_ACTIONS, Suggestion

logger = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r"^```[a-zA-Z]*\s*")
_FENCE_CLOSE = re.compile(r"\s*```$")

# Self-disclosure and leaked prompt language
FORBIDDEN_META_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"\bas an? (ai|artificial intelligence)\b",
        r"\b(ai|artificial intelligence) (language )?model\b",
        r"\bas a (large )?language model\b",
        r"\bi(?: am|'m) an? (ai|bot|chatbot|virtual assistant|language model)\b",
        r"\b(my|your) (system|developer) (prompt|instructions|message)\b",
        r"\bdeveloper (prompt|instructions|message)\b",
        r"\bsystem prompt\b",
        r"\bignore (all )?(previous|prior|above) instructions\b",
        r"\boutput rules\b",
        r"\b(chatgpt|openai)\b",
    )
]

# Vehicle-sale vocabulary only makes sense when the user is selling
VEHICLE_SALE_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"\btest[- ]drive\b",
        r"\bmileage\b",
        r"\bodometer\b",
        r"\bvin( number)?\b",
        r"\bcarfax\b",
        r"\bpink slip\b",
        r"\bsmog (check|certificate)\b",
        r"\bclean title\b",
    )
]

SELL_GOAL = "sell_item"


def strip_code_fence(raw_text: str) -> str:
    cleaned = raw_text.strip()
    if cleaned.startswith("```"):
        cleaned = _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", cleaned, count=1))
    return cleaned.strip()


def _require_text(payload: Dict[str, Any], field: str) -> str:
    value = payload.get(field)
    if not isinstance(value, str) or not value.strip():
        raise InvalidFormatError(
            message=f"Model response field '{field}' must be a non-empty string",
            details={"field": field},
        )
    return value.strip()


def _require_score(payload: Dict[str, Any]) -> float:
    value = payload.get("intentScore")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidFormatError(
            message="Model response field 'intentScore' must be a number",
            details={"field": "intentScore"},
        )
    if isinstance(value, int):
        # JSON integers are unbounded; clamp before converting
        return float(min(INTENT_SCORE_MAX, max(INTENT_SCORE_MIN, value)))
    if not math.isfinite(value):
        raise InvalidFormatError(
            message="Model response field 'intentScore' must be a finite number",
            details={"field": "intentScore"},
        )
    return min(INTENT_SCORE_MAX, max(INTENT_SCORE_MIN, value))


def _require_next_action(payload: Dict[str, Any]) -> str:
    value = payload.get("nextAction")
    action = value.strip().lower() if isinstance(value, str) else None
    if action not in NEXT_ACTIONS:
        raise InvalidFormatError(
            message=f"Model response field 'nextAction' must be one of {', '.join(NEXT_ACTIONS)}",
            details={"field": "nextAction", "value": value},
        )
    return action


def _check_policy(message: str, conversation_goal: str) -> None:
    for pattern in FORBIDDEN_META_PATTERNS:
        if pattern.search(message):
            raise InvalidFormatError(
                message="Model response contains forbidden meta-content",
                details={"pattern": pattern.pattern},
            )

    if conversation_goal != SELL_GOAL:
        for pattern in VEHICLE_SALE_PATTERNS:
            if pattern.search(message):
                raise InvalidFormatError(
                    message="Model response is inconsistent with the conversation goal",
                    details={"pattern": pattern.pattern, "goal": conversation_goal},
                )


def parse_model_response(raw_text: str, conversation_goal: str) -> Suggestion:
    """
    Parse and sanitize raw model text into a Suggestion.

    Args:
        raw_text: Model output, optionally wrapped in a code fence
        conversation_goal: Goal the prompt was built for

    Returns:
        Suggestion with intentScore clamped to [0, 1] and the message
        truncated to 200 characters

    Raises:
        InvalidFormatError: On non-JSON, missing or mistyped fields, unknown
            nextAction, forbidden meta-content or goal-inconsistent content
    """
    cleaned = strip_code_fence(raw_text or "")

    try:
        payload = json.loads(cleaned)
    except ValueError as e:
        raise InvalidFormatError(
            message=f"Model returned invalid JSON: {e}",
            details={"raw": cleaned[:500]},
        ) from e

    if not isinstance(payload, dict):
        raise InvalidFormatError(message="Model response is not a JSON object")

    message = _require_text(payload, "suggestedMessage")
    reasoning = _require_text(payload, "reasoning")
    intent_score = _require_score(payload)
    next_action = _require_next_action(payload)

    _check_policy(message, conversation_goal)

    return Suggestion(
        suggested_message=message[:MAX_SUGGESTION_LENGTH].strip(),
        intent_score=intent_score,
        reasoning=reasoning,
        next_action=next_action,
    )
