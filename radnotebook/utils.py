"""
Small request helpers shared by the API blueprints
"""
from typing import Any, Dict, Iterable, Optional

from flask import request


def json_body() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def sanitize_updates(payload: Dict[str, Any], allowed: Iterable[str]) -> Dict[str, Any]:
    """Keep only whitelisted fields that were actually sent"""
    return {field: payload[field] for field in allowed if field in payload}


def bearer_token(req=None) -> Optional[str]:
    """Token from an Authorization header, "" when the header is malformed, None when absent"""
    req = req or request
    header = (req.headers.get("Authorization") or "").strip()
    if not header:
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return ""
    return token.strip()


def clamp_int(value: Any, default: int, lo: int, hi: int) -> int:
    try:
        n = int(value)
    except (TypeError, ValueError):
        return default
    return max(lo, min(hi, n))


def text_fields_ok(payload: Dict[str, Any], fields: Iterable[str], required: Iterable[str] = ()) -> bool:
    """Fields that were sent must be strings or null; `required` ones must be non-blank strings"""
    required = set(required)
    for field in fields:
        if field not in payload:
            continue
        value = payload[field]
        if field in required:
            if not (isinstance(value, str) and value.strip()):
                return False
        elif value is not None and not isinstance(value, str):
            return False
    return True
