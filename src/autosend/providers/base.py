"""Base interfaces for external collaborators invoked by the tick processor.

The tick processor treats both collaborators as single blocking calls: it
wraps every call in its own deadline and counts any exception as a failed
invocation. Adapters should raise :class:`~src.autosend.exceptions.GenerationError`
or :class:`~src.autosend.exceptions.DispatchError` with a readable message;
the error taxonomy beyond that is opaque to the core.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping

from ..domain.models import Channel, DispatchReceipt, GenerationResult


class GenerationProvider(ABC):
    """Produces channel content through an external text generation service."""

    provider_id: str

    @abstractmethod
    async def generate(
        self, channel: Channel, context: Mapping[str, Any]
    ) -> GenerationResult:
        """Generate one piece of content for ``channel``.

        ``context`` carries the firing metadata (slot id, occurrence date,
        invocation index) so adapters can tag their requests.
        """

    async def aclose(self) -> None:
        """Release network resources held by the adapter."""


class DispatchClient(ABC):
    """Delivers generated content to a messaging destination."""

    @abstractmethod
    async def send(self, channel: Channel, content: str) -> DispatchReceipt:
        """Send ``content`` on behalf of ``channel``."""

    async def aclose(self) -> None:
        """Release network resources held by the client."""
