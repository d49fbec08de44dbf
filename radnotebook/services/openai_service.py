"""OpenAI-compatible AI gateway wrapper.

Sends report text to the gateway's chat completions endpoint and returns the
three-way categorization used by the notebook: explicit findings, implied
concerns and hedging language.
"""
from __future__ import annotations

import json
import re
from typing import Any, Dict, Optional, Tuple

from flask import current_app
from openai import APIConnectionError, APIStatusError, OpenAI

CATEGORIES = ("explicit", "implied", "hedging")

SYSTEM_PROMPT = """You sort the wording of a radiology report excerpt into three categories.
Do not diagnose, recommend treatment or add information that is not in the text.

1. explicit: findings stated directly
2. implied: concerns suggested by the wording without certainty
3. hedging: cautious, legal or non-actionable phrasing

Use short neutral bullet points. Write "None stated." for an empty category.
Reply with JSON only:
{"explicit": "• ...", "implied": "• ...", "hedging": "• ..."}"""

_FENCED = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


class GatewayError(Exception):
    """The AI gateway answered with an error or could not be reached"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def client_ready() -> Tuple[bool, str]:
    key = (current_app.config.get("AI_GATEWAY_API_KEY") or "").strip()
    if not key:
        return False, "AI_GATEWAY_API_KEY is missing"
    return True, ""


def model_name() -> str:
    return (current_app.config.get("AI_GATEWAY_MODEL") or "").strip() or "google/gemini-2.5-flash"


def get_client() -> Optional[OpenAI]:
    ok, _ = client_ready()
    if not ok:
        return None
    return OpenAI(
        api_key=current_app.config["AI_GATEWAY_API_KEY"].strip(),
        base_url=current_app.config["AI_GATEWAY_URL"],
        timeout=current_app.config.get("AI_GATEWAY_TIMEOUT", 60),
        max_retries=0,
    )


def parse_categorization(content: Optional[str]) -> Dict[str, Any]:
    """Parse the model reply; an unparseable reply is kept whole under "explicit"."""
    text = (content or "").strip()
    m = _FENCED.search(text)
    candidate = m.group(1) if m else text
    try:
        obj = json.loads(candidate.strip())
    except (TypeError, ValueError):
        obj = None
    if not isinstance(obj, dict):
        return {"explicit": content or "", "implied": "", "hedging": ""}
    return {key: obj.get(key) or "" for key in CATEGORIES}


def categorize_report(report_text: str) -> Dict[str, Any]:
    client = get_client()
    if client is None:
        _, msg = client_ready()
        raise GatewayError(msg or "Client not available")
    try:
        res = client.chat.completions.create(
            model=model_name(),
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": report_text},
            ],
        )
    except APIStatusError as e:
        raise GatewayError(f"AI gateway error: {e.status_code}", status_code=e.status_code) from e
    except APIConnectionError as e:
        raise GatewayError(f"AI gateway unreachable: {type(e).__name__}") from e

    content = res.choices[0].message.content if res.choices else None
    return parse_categorization(content)
