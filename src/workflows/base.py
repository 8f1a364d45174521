"""
Contains base class for fish generators
"""
from abc import ABC, abstractmethod

from core.entities import ContextSnapshot, FishRecord


class Generator(ABC):
    """
    Turns a provenance reason plus the freshest context into one fish.
    This is the expensive, rate-limited call the coordinator gates.
    """

    @abstractmethod
    async def generate(self, reason: str, context: ContextSnapshot) -> FishRecord:
        """
        Generate a fish.
        Raises GenerationError when the call fails or the result is unusable.
        """
        raise NotImplementedError
