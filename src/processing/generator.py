import json
import logging
import random
import re
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from json_repair import repair_json
from pydantic import ValidationError

from core.entities import ContextSnapshot, FishRecord
from core.errors import GenerationError
from core.game_stats import roll_stats
from core.schemas import DEFAULT_FISH, FishDescription, ParsedFish
from ingestion.base import NewsItem
from services.llm import OllamaClient
from workflows.base import Generator

logger = logging.getLogger(__name__)

ECONOMIC_CATEGORIES = ("business", "economy", "finance", "crypto", "markets")


def _extract_json(content: str) -> str:
    """
    Extract the JSON object from an LLM response, stripping markdown code blocks if present.
    """
    content = content.strip()

    pattern = r'^```(?:json)?\s*\n?(.*?)\n?```$'
    match = re.match(pattern, content, re.DOTALL)
    if match:
        content = match.group(1).strip()

    start = content.find("{")
    end = content.rfind("}")
    if start != -1 and end > start:
        return content[start:end + 1]

    # No closing brace: let the repair step try to finish the object
    if start != -1:
        return content[start:]

    return content


def _load_object(content: str) -> Optional[Dict[str, Any]]:
    try:
        data = json.loads(content)
    except json.JSONDecodeError:
        repaired = repair_json(content)
        try:
            data = json.loads(repaired)
        except json.JSONDecodeError:
            return None
        logger.info("Repaired malformed JSON in LLM response")

    return data if isinstance(data, dict) else None


def parse_fish_response(content: str) -> ParsedFish:
    """
    Parse the LLM response into a fish description.

    Missing or empty fields are filled from DEFAULT_FISH and the result is
    marked degraded. Raises GenerationError when no JSON object can be
    recovered at all.
    """
    if not content or not content.strip():
        raise GenerationError("Empty response from LLM")

    data = _load_object(_extract_json(content))
    if data is None:
        raise GenerationError(
            "LLM response contains no usable JSON object",
            details={"content": content[:500]},
        )

    fields: Dict[str, str] = {}
    missing: List[str] = []
    for key, default in DEFAULT_FISH.items():
        value = data.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(value)
        if isinstance(value, str) and value.strip():
            fields[key] = value.strip()
        else:
            fields[key] = default
            missing.append(key)

    if len(missing) == len(DEFAULT_FISH):
        raise GenerationError("LLM response has none of the fish fields")

    try:
        fish = FishDescription.model_validate(fields)
    except ValidationError as e:
        raise GenerationError(f"Invalid fish description: {e}") from e

    if missing:
        logger.warning(f"Fish description missing fields, using defaults: {', '.join(missing)}")

    return ParsedFish(fish=fish, degraded=bool(missing), missing_fields=missing)


def describe_sentiment(sentiment: float) -> str:
    if sentiment > 0.3:
        return "positive"
    if sentiment < -0.3:
        return "negative"
    return "neutral"


def infer_theme(items: List[NewsItem]) -> str:
    """Most frequent meaningful words across the headlines, with their categories."""
    categories = ", ".join(dict.fromkeys(item.category for item in items))
    words = Counter()
    for item in items:
        for word in item.headline.split():
            word = word.lower().strip(".,;:!?\"'()[]{}")
            if len(word) > 4:
                words[word] += 1
    top_words = ", ".join(word for word, _ in words.most_common(3))
    return f"A fish that combines elements from {categories} news with themes of {top_words}"


def build_fish_prompt(reason: str, context: ContextSnapshot, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    lines = [f"CURRENT DATE: {now.strftime('%B %d, %Y')}", ""]

    primary = context.primary_news
    if primary:
        lines += [
            f"PRIMARY NEWS HEADLINE: {primary.headline}",
            f"CATEGORY: {primary.category}",
            f"SENTIMENT: {describe_sentiment(primary.sentiment)}",
            "",
        ]

    if context.merged_news:
        lines.append("RELATED NEWS HEADLINES:")
        for i, item in enumerate(context.merged_news, start=1):
            lines += [
                f"{i}. {item.headline}",
                f"   CATEGORY: {item.category}",
                f"   SENTIMENT: {describe_sentiment(item.sentiment)}",
            ]
        lines.append("")

    news = context.news_items()
    if any(any(c in item.category for c in ECONOMIC_CATEGORIES) for item in news):
        if context.crypto:
            lines.append(
                f"BITCOIN PRICE: ${context.crypto.price_usd:.2f} ({context.crypto.change_24h:.2f}% change)"
            )
        if context.gold:
            lines.append(
                f"GOLD PRICE: ${context.gold.price_usd:.2f} per ounce ({context.gold.change_24h:.2f}% change)"
            )
        if context.oil:
            lines.append(
                f"OIL PRICE: ${context.oil.price_usd:.2f} per barrel ({context.oil.change_24h:.2f}% change)"
            )
        lines.append("")

    if context.weather:
        lines.append(f"CURRENT WEATHER: {context.weather.condition}, {context.weather.temp_c:.1f}°C")
        if context.weather.is_extreme:
            lines.append("EXTREME WEATHER ALERT: This is unusual weather")
        lines.append("")

    if context.merged_news and primary:
        lines.append(f"CONTEXTUAL THEME: Create a fish inspired by the following theme: {infer_theme(news)}")
    elif primary:
        lines.append(f"CONTEXTUAL THEME: Create a fish inspired by {primary.category} news: {primary.headline}")

    context_text = "\n".join(lines)

    return f"""You are a creative AI that designs unique and imaginative fish species based on real-world contextual data.

Current Context:
{context_text}

Why this fish is being created: {reason}

Design a fish that reflects the context above. Your fish should have:
1. A creative name that's humorous, punny, or references the news/data
2. A detailed appearance description
3. Habitat and diet that make sense for this fish
4. A colorful and distinctive look that relates to the news or weather
5. An interesting effect or quality that makes this fish special

Do not provide rarity, size, weight, value or catch chance; these are generated separately.

Respond with ONLY a JSON object with these fields:
{{
  "name": "The fish's creative name",
  "description": "Detailed, imaginative description",
  "appearance": "Physical characteristics and notable features",
  "color": "Primary colors and patterns",
  "diet": "What the fish eats",
  "habitat": "Where the fish lives",
  "effect": "Special quality or effect",
  "favorite_weather": "Weather condition this fish prefers",
  "existence_reason": "Brief explanation of why this fish evolved or exists"
}}"""


class FishGenerator(Generator):
    """
    Generates fish with an Ollama model and rolls their stats.
    """

    def __init__(
        self,
        llm: OllamaClient,
        min_context_sources: int = 2,
        rng: Optional[random.Random] = None,
    ):
        self.llm = llm
        self.min_context_sources = min_context_sources
        self.rng = rng or random.Random()

    def validate_context(self, context: ContextSnapshot) -> None:
        if context.primary_news is None:
            raise GenerationError("No news data available for fish generation")

        available = context.sources_available()
        if available < self.min_context_sources:
            raise GenerationError(
                f"Insufficient context: {available} non-news sources, need {self.min_context_sources}",
                details={"available": available},
            )

    async def generate(self, reason: str, context: ContextSnapshot) -> FishRecord:
        self.validate_context(context)

        prompt = build_fish_prompt(reason, context)
        try:
            response = await self.llm.complete(prompt)
        except Exception as e:
            raise GenerationError(f"LLM call failed: {e}", reason=reason) from e

        logger.info(f"LLM response received (latency: {response['latency_ms']}ms)")
        logger.debug(f"Raw response: {response['content'][:500]}...")

        parsed = parse_fish_response(response["content"])
        stats = roll_stats(self.rng)

        used_articles = [
            {
                "headline": item.headline,
                "source": item.source,
                "category": item.category,
                "url": item.url,
            }
            for item in context.news_items()
        ]

        return FishRecord(
            **parsed.fish.model_dump(),
            rarity=stats.rarity,
            length_m=stats.length_m,
            weight_kg=stats.weight_kg,
            catch_chance=stats.catch_chance,
            value=stats.value,
            generation_reason=reason,
            degraded=parsed.degraded,
            used_articles=used_articles,
        )
