"""
Pydantic schemas for the LLM fish description
"""
from typing import Dict, List

from pydantic import BaseModel, Field


DEFAULT_FISH: Dict[str, str] = {
    "name": "Mysterious Fish",
    "description": "A mysterious fish that appeared suddenly in the depths.",
    "appearance": "Shimmering scales with an otherworldly glow.",
    "color": "Iridescent blue",
    "diet": "Small aquatic organisms and plankton",
    "habitat": "Unknown depths",
    "effect": "Provides a sense of wonder when caught.",
    "favorite_weather": "Cloudy",
    "existence_reason": "Appeared due to mysterious oceanic currents",
}


class FishDescription(BaseModel):
    """
    Pydantic schema for the creative part of a fish, as returned by the LLM.
    Numeric stats are rolled separately and never taken from the model.
    """
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    appearance: str
    color: str
    diet: str
    habitat: str
    effect: str
    favorite_weather: str
    existence_reason: str


class ParsedFish(BaseModel):
    """
    Result of parsing an LLM response.
    `degraded` is set when required fields had to be filled from defaults.
    """
    fish: FishDescription
    degraded: bool = False
    missing_fields: List[str] = []
