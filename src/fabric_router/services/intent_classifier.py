"""
Heuristic intent classifier.

Scores every enabled agent against a query with fixed lexical weights:

- domain keyword match: 0.2 per domain found in the query, capped at 0.4
- example query similarity: best Jaccard word-set overlap x 0.3
- description relevance: share of query words (> 2 chars) found in the description x 0.2
- data source mention: flat 0.1 if any data source name appears in the query

The top agent is selected when it clears the confidence threshold; otherwise
the default agent (if configured) or the best match is selected, always
reporting the top score as the confidence.
"""

import logging
from typing import Optional

from fabric_router.integration.mcp_client import ProtocolClient
from fabric_router.model.registry import AgentDescriptor, AgentRegistry
from fabric_router.model.routing import AgentScore, RoutingResult

logger = logging.getLogger(__name__)

DOMAIN_MATCH_WEIGHT = 0.2
DOMAIN_MATCH_CAP = 0.4
EXAMPLE_SIMILARITY_WEIGHT = 0.3
DESCRIPTION_WEIGHT = 0.2
DATA_SOURCE_BONUS = 0.1
MIN_DESCRIPTION_WORD_LENGTH = 3


def tokenize(text: str) -> set[str]:
    return set(text.lower().split())


def jaccard_similarity(left: set[str], right: set[str]) -> float:
    union = left | right
    if not union:
        return 0.0
    return len(left & right) / len(union)


def example_similarity(query: str, examples: list[str]) -> float:
    """Best Jaccard similarity between the query and any example query."""
    if not examples:
        return 0.0
    query_words = tokenize(query)
    return max(jaccard_similarity(query_words, tokenize(example)) for example in examples)


def description_relevance(query: str, description: str) -> float:
    """Fraction of meaningful query words that occur inside the description."""
    if not description:
        return 0.0
    query_words = {w for w in tokenize(query) if len(w) >= MIN_DESCRIPTION_WORD_LENGTH}
    if not query_words:
        return 0.0
    description_lower = description.lower()
    matches = sum(1 for word in query_words if word in description_lower)
    return matches / len(query_words)


def score_agent(query: str, agent: AgentDescriptor) -> tuple[float, str]:
    """
    Calculate the relevance score for one agent.

    Returns:
        Tuple of (score clamped to [0, 1], human-readable reason)
    """
    query_lower = query.lower()
    reasons = []
    total = 0.0

    domain_matches = sum(1 for d in agent.domains if d.lower() in query_lower)
    if domain_matches > 0:
        total += min(domain_matches * DOMAIN_MATCH_WEIGHT, DOMAIN_MATCH_CAP)
        reasons.append(f"Domain match: {domain_matches} keywords")

    example_score = example_similarity(query_lower, agent.example_queries)
    if example_score > 0:
        total += example_score * EXAMPLE_SIMILARITY_WEIGHT
        reasons.append(f"Similar to example queries ({example_score:.0%})")

    description_score = description_relevance(query_lower, agent.description)
    if description_score > 0:
        total += description_score * DESCRIPTION_WEIGHT
        reasons.append(f"Description relevance ({description_score:.0%})")

    if any(ds.name and ds.name.lower() in query_lower for ds in agent.data_sources):
        total += DATA_SOURCE_BONUS
        reasons.append("Data source match")

    reason = "; ".join(reasons) if reasons else "No strong matches"
    return min(max(total, 0.0), 1.0), reason


class IntentClassifier:
    """Classifies user intent and selects the appropriate Fabric Data Agent."""

    def __init__(self, protocol_client: Optional[ProtocolClient] = None):
        """
        Args:
            protocol_client: Needed only for ``validate_all``
        """
        self.protocol_client = protocol_client

    def score_agents(self, query: str, registry: AgentRegistry) -> list[AgentScore]:
        """Score every enabled agent, ranked descending; ties keep registry order."""
        scores = []
        for agent in registry.enabled_agents():
            score, reason = score_agent(query, agent)
            scores.append(
                AgentScore(agent_id=agent.id, agent_name=agent.name, score=score, reason=reason)
            )
        return sorted(scores, key=lambda s: s.score, reverse=True)

    def classify(self, query: str, registry: AgentRegistry) -> RoutingResult:
        """
        Classify the user query and return the routing decision.

        Args:
            query: User query
            registry: Agent registry with routing policy

        Returns:
            RoutingResult; empty with reasoning "no enabled agents" when
            nothing is enabled
        """
        enabled = {agent.id: agent for agent in registry.enabled_agents()}
        if not enabled:
            logger.warning("No enabled agents found")
            return RoutingResult(reasoning="no enabled agents")

        scores = self.score_agents(query, registry)
        top = scores[0]
        policy = registry.routing
        result = RoutingResult(alternatives=scores, confidence=top.score)

        if top.score >= policy.confidence_threshold:
            result.selected_agent = enabled[top.agent_id]
            result.reasoning = top.reason
            logger.info(
                f"Selected agent {result.selected_agent.name} "
                f"with confidence {result.confidence:.0%}"
            )
        elif policy.default_agent_id and policy.default_agent_id in enabled:
            result.selected_agent = enabled[policy.default_agent_id]
            result.reasoning = (
                f"Below confidence threshold ({policy.confidence_threshold:.0%}), "
                f"using default agent"
            )
            logger.info(
                f"Using default agent {policy.default_agent_id} "
                f"(confidence {result.confidence:.0%} below threshold)"
            )
        else:
            result.selected_agent = enabled[top.agent_id]
            result.reasoning = f"Best match (below threshold): {top.reason}"
            logger.info(
                f"Selected best match {result.selected_agent.name} "
                f"with low confidence {result.confidence:.0%}"
            )

        return result

    async def validate_all(self, registry: AgentRegistry) -> dict[str, bool]:
        """
        Check connectivity to every enabled agent.

        Failures are recorded as False and never propagated.
        """
        if self.protocol_client is None:
            raise ValueError("validate_all requires a protocol client")

        results: dict[str, bool] = {}
        for agent in registry.enabled_agents():
            try:
                is_connected = await self.protocol_client.test_connectivity(agent)
            except Exception as e:
                logger.warning(f"Connectivity check raised for agent {agent.id}: {e}")
                is_connected = False
            results[agent.id] = is_connected
            logger.info(f"Agent {agent.name} connectivity: {'OK' if is_connected else 'FAILED'}")
        return results
