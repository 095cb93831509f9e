# ABOUTME: Card extraction from sanitized HTML through a generative text model driven by dspy
# ABOUTME: Parses a JSON card array out of free-form model output, degrading to an empty result

import asyncio
import json
import re
from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import urljoin

import dspy
from pydantic import ValidationError

from xtrade_scraper.config import Config, get_config
from xtrade_scraper.extraction.base import ExtractedCard, PageAnalysis, SelectorSet
from xtrade_scraper.extraction.html import clean_html, prepare_html
from xtrade_scraper.utils.errors import ConfigurationError
from xtrade_scraper.utils.logging import get_logger, log_api_call
from xtrade_scraper.utils.retry import LLM_API_RETRY, RetryPolicy, with_retry

logger = get_logger(__name__)

MAX_ANALYSIS_HTML_CHARS = 50_000

_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")

_OPTIONAL_FIELDS = {
    "series": "series",
    "memberName": "member_name",
    "groupName": "group_name",
    "rarity": "rarity",
    "releaseDate": "release_date",
    "sourceUrl": "source_url",
}

CARD_EXTRACTION_PROMPT = """Extract the card information contained in the HTML below.

{custom_prompt}

HTML:
```html
{html}
```

Answer with a JSON array only. Each card must look like:
[
  {{
    "name": "card name (required)",
    "imageUrl": "image URL (required, absolute)",
    "series": "series name (optional)",
    "memberName": "member name (optional)",
    "groupName": "group name (optional)",
    "rarity": "rarity (optional)"
  }}
]

Rules:
- Image URLs must be absolute; join relative URLs with the page's base URL
- Skip cards without an image"""

PAGE_ANALYSIS_PROMPT = """Decide whether this HTML is a card listing page.

HTML (excerpt):
```html
{html}
```

Answer with JSON in this shape:
{{
  "isCardListPage": true or false,
  "suggestedSelectors": {{
    "cardList": "CSS selector for the card list",
    "cardName": "CSS selector for the card name",
    "cardImage": "CSS selector for the card image"
  }},
  "reason": "why"
}}"""


def default_prompt(group_name: str | None = None, category: str | None = None) -> str:
    """Prompt used for sources that do not configure their own."""
    return (
        "Extract the photocard information from this page.\n"
        f"- Group: {group_name or 'unknown'}\n"
        f"- Category: {category or 'unknown'}"
    )


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def parse_cards(text: str, base_url: str | None = None) -> list[ExtractedCard]:
    """Parse the first JSON array in ``text`` into validated cards.

    Never raises: missing or undecodable arrays give an empty list, and entries
    without a non-empty string ``name`` and ``imageUrl`` are discarded.
    """
    match = _JSON_ARRAY.search(text)
    if not match:
        logger.warning("No JSON array found in model response", response_preview=text[:200])
        return []

    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        logger.warning("Failed to parse JSON from model response", json_error=str(e))
        return []

    if not isinstance(parsed, list):
        return []

    cards: list[ExtractedCard] = []
    for index, item in enumerate(parsed):
        if not isinstance(item, dict):
            continue
        name = _optional_str(item.get("name"))
        image_url = _optional_str(item.get("imageUrl"))
        if name is None or image_url is None:
            logger.debug("Discarding incomplete card entry", item_index=index)
            continue

        if base_url:
            image_url = urljoin(base_url, image_url)

        fields = {attr: _optional_str(item.get(key)) for key, attr in _OPTIONAL_FIELDS.items()}
        try:
            cards.append(ExtractedCard(name=name, image_url=image_url, **fields))
        except ValidationError as e:
            logger.debug("Discarding invalid card entry", item_index=index, validation_error=str(e))

    return cards


def parse_page_analysis(text: str) -> PageAnalysis:
    """Parse the first JSON object in ``text``; anything unusable means "not a listing"."""
    match = _JSON_OBJECT.search(text)
    if not match:
        return PageAnalysis(is_card_list_page=False)

    try:
        result = json.loads(match.group(0))
    except json.JSONDecodeError:
        return PageAnalysis(is_card_list_page=False)

    if not isinstance(result, dict):
        return PageAnalysis(is_card_list_page=False)

    selectors = None
    raw_selectors = result.get("suggestedSelectors")
    if isinstance(raw_selectors, dict):
        try:
            selectors = SelectorSet.model_validate(raw_selectors)
        except ValidationError:
            selectors = None

    return PageAnalysis(
        is_card_list_page=result.get("isCardListPage") is True,
        suggested_selectors=selectors,
        reason=_optional_str(result.get("reason")),
    )


def create_language_model(config: Config | None = None) -> dspy.LM:
    """Build the model handle used by CardExtractor.

    Raises:
        ConfigurationError: if no API key is configured
    """
    config = config or get_config()
    if not config.llm_api_key:
        raise ConfigurationError("LLM API key required - set XTRADE_SCRAPER_LLM_API_KEY")

    # Retries are owned by LLM_API_RETRY, not by LiteLLM
    return dspy.LM(
        config.llm_model,
        api_key=config.llm_api_key,
        max_tokens=config.llm_max_tokens,
        temperature=0.0,
        num_retries=0,
        cache=False,
    )


class CardExtractor:
    """Turns raw page HTML into candidate cards with one model request per page."""

    def __init__(
        self,
        lm: Any,
        max_html_chars: int = 100_000,
        retry_policy: RetryPolicy = LLM_API_RETRY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.lm = lm
        self.max_html_chars = max_html_chars
        self.retry_policy = retry_policy
        self._sleep = sleep
        self.logger = get_logger(__name__)

    async def extract_cards(self, html: str, prompt: str, base_url: str | None = None) -> list[ExtractedCard]:
        cleaned = prepare_html(html, self.max_html_chars)
        full_prompt = CARD_EXTRACTION_PROMPT.format(custom_prompt=prompt, html=cleaned)

        self.logger.info(
            "Requesting card extraction",
            html_chars=len(html),
            sanitized_chars=len(cleaned),
            truncated=len(cleaned) > self.max_html_chars,
        )
        text = await self._complete(full_prompt)
        cards = parse_cards(text, base_url=base_url)
        self.logger.info("Card extraction finished", cards_found=len(cards))
        return cards

    async def analyze_page_structure(self, html: str) -> PageAnalysis:
        # Selector suggestions need class and id attributes, so the page is not reduced
        cleaned = clean_html(html)[:MAX_ANALYSIS_HTML_CHARS]
        text = await self._complete(PAGE_ANALYSIS_PROMPT.format(html=cleaned))
        return parse_page_analysis(text)

    async def _complete(self, prompt: str) -> str:
        outputs = await with_retry(lambda: self._request(prompt), self.retry_policy, sleep=self._sleep)
        if not outputs:
            return ""
        first = outputs[0]
        if isinstance(first, dict):
            return str(first.get("text") or "")
        return str(first)

    @log_api_call("llm")
    async def _request(self, prompt: str) -> list[Any]:
        return await self.lm.acall(messages=[{"role": "user", "content": prompt}])
