"""
Models for routing decisions.

A ``RoutingResult`` is produced by either routing strategy: the heuristic
classifier fills it from scores, the function-calling orchestrator fills it
from the tool the remote agent chose.
"""

from typing import Optional

from pydantic import BaseModel, Field

from fabric_router.model.registry import AgentDescriptor


class AgentScore(BaseModel):
    """Relevance score for one agent during routing evaluation."""
    agent_id: str
    agent_name: str
    score: float = Field(ge=0.0, le=1.0)
    reason: str = ""


class RoutingResult(BaseModel):
    """Result of the routing decision."""
    selected_agent: Optional[AgentDescriptor] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    reasoning: str = ""
    alternatives: list[AgentScore] = Field(default_factory=list)

    @property
    def selected_agent_id(self) -> Optional[str]:
        return self.selected_agent.id if self.selected_agent else None

    @property
    def is_successful(self) -> bool:
        return self.selected_agent is not None and self.confidence > 0
