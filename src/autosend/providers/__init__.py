"""Adapters for the generation and messaging dispatch collaborators."""

from .base import DispatchClient, GenerationProvider
from .providers_factory import create_dispatcher, create_generator

__all__ = [
    "DispatchClient",
    "GenerationProvider",
    "create_dispatcher",
    "create_generator",
]
