"""
Identity extraction from upstream user payloads.

The upstream returns the authenticated principal in several shapes: at top
level, nested under ``user``, or with a Mongo-style ``_id``. Each shape is an
extraction strategy; strategies are tried in order and the first present
value wins.
"""

import json
from typing import Any, Callable, List, Optional

Strategy = Callable[[dict], Any]


def _nested(key: str, field: str) -> Strategy:
    def extract(payload: dict) -> Any:
        inner = payload.get(key)
        if isinstance(inner, dict):
            return inner.get(field)
        return None

    return extract


ID_STRATEGIES: List[Strategy] = [
    lambda payload: payload.get("id"),
    _nested("user", "id"),
    lambda payload: payload.get("_id"),
]

EMAIL_STRATEGIES: List[Strategy] = [
    lambda payload: payload.get("email"),
    _nested("user", "email"),
]


def _first_present(payload: Any, strategies: List[Strategy]) -> Optional[Any]:
    if not isinstance(payload, dict):
        return None
    for strategy in strategies:
        value = strategy(payload)
        if value is None or value == "":
            continue
        return value
    return None


def extract_user_id(payload: Any) -> Optional[str]:
    """Return the upstream account id as a string, or None."""
    value = _first_present(payload, ID_STRATEGIES)
    # bool is an int subclass but never a valid id
    if value is None or isinstance(value, (bool, dict, list)):
        return None
    return str(value)


def extract_email(payload: Any) -> Optional[str]:
    """Return the account email exactly as the upstream sent it, or None."""
    value = _first_present(payload, EMAIL_STRATEGIES)
    if isinstance(value, str):
        return value
    return None


def load_json_object(content: bytes) -> Optional[dict]:
    """Decode an upstream body, returning None unless it is a JSON object."""
    try:
        payload = json.loads(content)
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None
