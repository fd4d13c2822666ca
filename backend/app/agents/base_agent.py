"""
Base Agent
==========

Abstract base class for all specialised shopping agents.

Every agent must be able to:
1. Identify itself for routing and analytics   (``name``)
2. Answer a free-text query with context       (``process``)

Expected "not found" situations are answered with ``success=True``
and guidance text; ``success=False`` is reserved for backend failures.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from backend.app.schema.agent_schema import AgentResponse, QueryContext


class BaseAgent(ABC):
    """Common contract that every agent must honour."""

    #: Label recorded as ``agent_used`` in responses and analytics.
    name: str = "agent"

    @abstractmethod
    def process(self, query: str, context: QueryContext) -> AgentResponse:
        """Handle *query* and return a user-facing response.

        Parameters
        ----------
        query : str
            The shopper's raw message.
        context : QueryContext
            User, product and session identifiers for this request.
        """

    def respond(self, response: str, success: bool = True, **kwargs) -> AgentResponse:
        """Build an :class:`AgentResponse` stamped with this agent's name."""
        return AgentResponse(success=success, response=response, agent_used=self.name, **kwargs)
