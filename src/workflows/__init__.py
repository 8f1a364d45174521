"""
Workflows module - coordination of fish generation.
"""
from workflows.base import Generator
from workflows.coordinator import (
    CoordinatorSettings,
    CoordinatorState,
    GenerationCoordinator,
    ProcessorState,
)
from workflows.processor import QueueProcessor
from workflows.queue import GenerationQueue

__all__ = [
    "Generator",
    "CoordinatorSettings",
    "CoordinatorState",
    "GenerationCoordinator",
    "ProcessorState",
    "QueueProcessor",
    "GenerationQueue",
]
