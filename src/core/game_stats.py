"""
Programmatic fish stats: rarity, size, weight, catch chance and value.
The LLM only describes the fish; every number comes from these rolls.
"""
import random
from dataclasses import dataclass
from typing import List, Optional, Tuple

SEAWATER_DENSITY = 1025  # kg/m^3


@dataclass(frozen=True)
class RarityTier:
    name: str
    weight: int  # relative chance, percent
    catch_range: Tuple[float, float]
    value_multiplier: float


RARITY_TABLE: List[RarityTier] = [
    RarityTier("Common", 50, (60.0, 90.0), 1.0),
    RarityTier("Uncommon", 25, (40.0, 60.0), 3.0),
    RarityTier("Rare", 15, (20.0, 40.0), 6.0),
    RarityTier("Epic", 8, (10.0, 20.0), 12.0),
    RarityTier("Legendary", 2, (1.0, 10.0), 25.0),
]

# (percent chance, min length m, max length m)
SIZE_TABLE: List[Tuple[int, float, float]] = [
    (1, 0.01, 0.05),
    (4, 0.05, 0.15),
    (75, 0.15, 1.0),
    (15, 1.0, 3.0),
    (4, 3.0, 10.0),
    (1, 10.0, 25.0),
]


@dataclass(frozen=True)
class FishStats:
    rarity: str
    length_m: float
    weight_kg: float
    catch_chance: float
    value: float


def roll_rarity(rng: random.Random) -> RarityTier:
    return rng.choices(RARITY_TABLE, weights=[tier.weight for tier in RARITY_TABLE], k=1)[0]


def roll_length(rng: random.Random) -> float:
    low, high = rng.choices(
        [(low, high) for _, low, high in SIZE_TABLE],
        weights=[chance for chance, _, _ in SIZE_TABLE],
        k=1,
    )[0]
    return round(rng.uniform(low, high), 3)


def shape_factor(length_m: float, rng: random.Random) -> float:
    """Fraction of the length cube the body fills; long fish are slimmer."""
    if length_m < 0.1:
        return rng.uniform(0.4, 0.6)
    if length_m < 0.5:
        return rng.uniform(0.3, 0.5)
    if length_m < 2.0:
        return rng.uniform(0.2, 0.35)
    if length_m < 5.0:
        return rng.uniform(0.15, 0.25)
    return rng.uniform(0.1, 0.15)


def estimate_weight(length_m: float, rng: random.Random) -> float:
    weight = length_m ** 3 * SEAWATER_DENSITY * shape_factor(length_m, rng)
    return round(weight * rng.uniform(0.95, 1.05), 3)


def roll_stats(rng: Optional[random.Random] = None) -> FishStats:
    """Roll a complete set of stats for one fish."""
    rng = rng or random.Random()

    tier = roll_rarity(rng)
    length = roll_length(rng)
    weight = estimate_weight(length, rng)
    catch_chance = round(rng.uniform(*tier.catch_range), 1)
    value = round(length * 10 * tier.value_multiplier, 2)

    return FishStats(
        rarity=tier.name,
        length_m=length,
        weight_kg=weight,
        catch_chance=catch_chance,
        value=value,
    )
