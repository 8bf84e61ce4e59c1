"""
Optional entity enhancement through an LLM chat-completions API.

Provides:
- EntityEnhancer client (OpenAI-compatible endpoint, via requests)
- Normalization of returned categories to the local entity convention
"""

import json
import logging
import re
from typing import Dict, List, Optional

import requests

from .config import EnhancementConfig
from .entities import CATEGORIES, NONE_SENTINEL, strip_sentinel

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert at extracting medical entities from text. "
    "Always respond with valid JSON."
)

USER_PROMPT = """Extract and categorize entities from this medical text. Focus on Nigerian names, ages, dates, medications, symptoms, vital signs, addresses, and phone numbers.

Text: "{text}"

Please respond with a JSON object containing:
- names: Array of Nigerian names found (if none, return ["None"])
- ages: Array of ages found (if none, return ["None"])
- dates: Array of dates found (if none, return ["None"])
- medications: Array of medications found (if none, return ["None"])
- symptoms: Array of symptoms found (if none, return ["None"])
- vitals: Array of vital signs found (if none, return ["None"])
- addresses: Array of addresses found (if none, return ["None"])
- phoneNumbers: Array of phone numbers found (if none, return ["None"])

Be very precise. If an entity type is not found, use ["None"]. For Nigerian names, focus on Yoruba, Igbo, Hausa, and common Nigerian names."""

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def parse_entity_response(content: str) -> Optional[Dict[str, List[str]]]:
    """
    Parse a model reply into the eight categories.

    Missing or empty categories become ``["None"]``. Returns None when the
    reply is not a JSON object.
    """
    if not content:
        return None
    cleaned = _FENCE.sub("", content.strip())
    try:
        data = json.loads(cleaned)
    except ValueError:
        logger.warning(f"Enhancement reply is not JSON: {content[:200]!r}")
        return None
    if not isinstance(data, dict):
        logger.warning("Enhancement reply is not a JSON object")
        return None

    result = {}
    for category in CATEGORIES:
        raw = data.get(category)
        if raw is None and category == "phoneNumbers":
            raw = data.get("phone_numbers")
        values = strip_sentinel(raw if isinstance(raw, (list, str)) else None)
        result[category] = values or [NONE_SENTINEL]
    return result


class EntityEnhancer:
    """Entity extraction via a chat-completions API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4",
        temperature: float = 0.3,
        max_tokens: int = 1000,
        timeout_seconds: float = 30.0,
        api_url: str = "https://api.openai.com/v1/chat/completions",
        session: Optional[requests.Session] = None
    ):
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout_seconds = timeout_seconds
        self.api_url = api_url
        self.session = session

    @classmethod
    def from_config(cls, config: EnhancementConfig) -> "EntityEnhancer":
        return cls(
            api_key=config.api_key,
            model=config.model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            timeout_seconds=config.timeout_seconds,
            api_url=config.api_url,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def enhance_entities(self, text: str) -> Optional[Dict[str, List[str]]]:
        """
        Ask the service for the eight entity categories.

        Returns:
            Category mapping using the "None" sentinel, or None when the
            service is not configured, unreachable or replies badly
        """
        if not self.is_configured:
            logger.debug("Enhancement service not configured, skipping")
            return None
        if not text or not text.strip():
            return None

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": USER_PROMPT.format(text=text)},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

        try:
            post = self.session.post if self.session is not None else requests.post
            response = post(
                self.api_url,
                headers=headers,
                json=payload,
                timeout=self.timeout_seconds
            )
            response.raise_for_status()
            data = response.json()
            content = data["choices"][0]["message"]["content"]

        except requests.exceptions.RequestException as e:
            logger.warning(f"Enhancement API error: {e}")
            return None
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.warning(f"Unexpected enhancement response: {e}")
            return None

        result = parse_entity_response(content)
        if result is not None:
            found = [c for c in CATEGORIES if result[c] != [NONE_SENTINEL]]
            logger.info(f"Enhancement service returned {len(found)} categories")
        return result
