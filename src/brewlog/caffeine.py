"""Caffeine estimates for drinks.

Two sources: a static lookup table of common coffee drinks, and an
optional LLM estimator for anything else. The estimator never raises;
every failure (no API key, HTTP error, timeout, unparseable reply) comes
back as None.
"""

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

OPENAI_API_URL = "https://api.openai.com/v1/chat/completions"
DEFAULT_MODEL = "gpt-5-mini"
DEFAULT_TIMEOUT_SECONDS = 15.0

SYSTEM_PROMPT = (
    "You are a caffeine content expert. Given a drink name, reply with your best "
    "estimate of the caffeine content in milligrams for a standard single serving. "
    "Reply with ONLY an integer. For non-caffeinated drinks reply 0."
)

# mg per standard serving, keys lowercase
CAFFEINE_MG: dict[str, int] = {
    "double espresso": 126,
    "triple espresso": 189,
    "cold brew": 200,
    "drip coffee": 95,
    "filter coffee": 95,
    "flat white": 130,
    "cappuccino": 130,
    "americano": 95,
    "cortado": 63,
    "macchiato": 63,
    "espresso": 63,
    "mocha": 130,
    "latte": 130,
    "matcha": 70,
    "chai": 50,
    "decaf": 3,
    "hot chocolate": 5,
    "tea": 47,
    "coffee": 95,
}

# Longest key first so "double espresso" wins over "espresso"
_BY_LENGTH = sorted(CAFFEINE_MG.items(), key=lambda kv: len(kv[0]), reverse=True)


def resolve_caffeine_mg(drink_name: str) -> int:
    """Caffeine for a drink by longest substring match; 0 when unrecognised."""
    lower = drink_name.lower()
    for name, mg in _BY_LENGTH:
        if name in lower:
            return mg
    return 0


def _parse_reply(data: Any) -> int | None:
    text: Any = ""
    try:
        text = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        try:
            text = data["output"][0]["content"][0]["text"]
        except (KeyError, IndexError, TypeError):
            return None
    try:
        mg = int(str(text).strip())
    except ValueError:
        logger.warning("Unparseable caffeine estimate: %r", text)
        return None
    return mg if mg >= 0 else None


class CaffeineEstimator:
    """
    LLM-backed caffeine estimates.

    Args:
        api_key: OpenAI API key; without one every estimate is None
        model: Chat model name
        timeout: Seconds before the request is abandoned
        transport: Optional httpx transport (tests)
    """

    def __init__(
        self,
        api_key: str | None,
        model: str = DEFAULT_MODEL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._transport = transport

    async def estimate(self, drink_name: str) -> int | None:
        """Estimated mg of caffeine in one serving, or None if unavailable."""
        if not self.api_key:
            return None

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": f'How many mg of caffeine in "{drink_name}"?'},
            ],
            "max_completion_tokens": 2048,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    OPENAI_API_URL,
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
            if response.status_code != 200:
                logger.warning(
                    "Caffeine estimator returned %s: %s", response.status_code, response.text
                )
                return None
            return _parse_reply(response.json())
        except Exception as e:
            logger.warning("Caffeine estimator request failed: %s", e)
            return None
