"""Routing of market-price questions and the strict price lookup behind it."""

import asyncio
import logging
import re
from typing import Optional

import requests

from . import config
from .languages import answer_directive
from .prompts import price_grounding, price_instruction

logger = logging.getLogger(__name__)

_PRICE_PATTERN = re.compile(r"(price|rate|cost).*\b(in|at|of)\b(.*\b(today|now|current))?", re.IGNORECASE)
_MANDI_PATTERN = re.compile(r"\bmandi\b", re.IGNORECASE)
_COMMODITY_MARKET_PATTERN = re.compile(
    r"^\s*(?P<commodity>.+?)\s+(?:price|rate|cost)s?\s+(?:in|at)\s+(?:the\s+)?(?P<market>.+?)"
    r"(?:\s+(?:mandi|market))?(?:\s+(?:today|now|current))?\s*[?.!]*\s*$",
    re.IGNORECASE,
)


def is_price_query(text: str) -> bool:
    """
    Heuristic: a price word followed by a locative preposition, or any mention of a mandi.
    A wrong answer only changes which service handles the question.
    """
    return bool(_PRICE_PATTERN.search(text) or _MANDI_PATTERN.search(text))


def extract_commodity_and_market(text: str) -> Optional[tuple[str, str]]:
    """Pull (commodity, market) out of questions shaped like 'Onion price in Lasalgaon today'."""
    match = _COMMODITY_MARKET_PATTERN.match(text)
    if not match:
        return None
    commodity = match.group('commodity').strip()
    market = match.group('market').strip()
    if not commodity or not market:
        return None
    return commodity, market


class AgmarknetClient:
    """Latest mandi arrivals from the data.gov.in Agmarknet resource."""

    def __init__(self, api_key: str, url: str = config.AGMARKNET_API_URL, timeout: float = 10,
                 session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch_latest_price(self, commodity: str, market: str) -> Optional[str]:
        """
        :return: one-line description of the most recent record, None if there is no record
        :raises requests.RequestException: on transport or HTTP errors
        """
        params = {
            'api-key': self.api_key,
            'format': 'json',
            'filters[commodity]': commodity.title(),
            'filters[market]': market.title(),
            'sort[arrival_date]': 'desc',
            'limit': 1,
        }
        response = self.session.get(self.url, params=params, timeout=self.timeout)
        response.raise_for_status()
        records = response.json().get('records') or []
        if not records:
            return None
        record = records[0]
        return f"{commodity} price in {market} on {record['arrival_date']}: ₹{record['modal_price']} per quintal."


class PriceLookup:

    def __init__(self, completion, agmarknet: Optional[AgmarknetClient] = None):
        """
        :param completion: ChatCompletionInterface used for single-turn answers
        :param agmarknet: optional live price source used to ground the answer
        """
        self.completion = completion
        self.agmarknet = agmarknet

    async def lookup(self, text: str, language: str) -> str:
        question = _strip_directive(text, language)
        prompt = f"{answer_directive(language)} {question}"
        record = await self._live_record(question)
        if record:
            prompt = f"{prompt}\n{price_grounding(record)}"
        return await self.completion.complete(price_instruction(language), prompt)

    async def _live_record(self, question: str) -> Optional[str]:
        if self.agmarknet is None:
            return None
        parsed = extract_commodity_and_market(question)
        if parsed is None:
            return None
        try:
            return await asyncio.to_thread(self.agmarknet.fetch_latest_price, *parsed)
        except (requests.RequestException, ValueError, KeyError) as e:
            logger.warning(f"Agmarknet lookup failed for {parsed}: {e}")
            return None


def _strip_directive(text: str, language: str) -> str:
    text = text.strip()
    directive = answer_directive(language)
    if text.startswith(directive):
        text = text[len(directive):].strip()
    return text
