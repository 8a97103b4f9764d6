"""
Routing strategies.

Two independent strategies sit behind the ``Router`` interface:

- ``ConversationOrchestrator`` (services/orchestrator.py): a remote LLM
  agent picks the downstream agent through function calling
- ``RuleBasedRouter``: the local ``IntentClassifier`` picks the agent and
  the router queries it directly

The strategy is selected by configuration in ``router_factory``.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable
from typing import Optional, TypeVar

from fabric_router.exceptions import ConfigurationError, QueryCancelledError
from fabric_router.integration.mcp_client import ProtocolClient
from fabric_router.model.registry import AgentRegistry
from fabric_router.model.responses import AgentResponse, RouterResponse
from fabric_router.services.intent_classifier import IntentClassifier

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def until_cancelled(awaitable: Awaitable[T], cancel_event: Optional[asyncio.Event]) -> T:
    """
    Await ``awaitable`` unless ``cancel_event`` fires first.

    Raises:
        QueryCancelledError: If the event is set before the awaitable finishes
    """
    if cancel_event is None:
        return await awaitable
    if cancel_event.is_set():
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise QueryCancelledError("Query cancelled")

    task = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(cancel_event.wait())
    try:
        done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        waiter.cancel()
        if not task.done():
            task.cancel()

    if task in done:
        return task.result()
    raise QueryCancelledError("Query cancelled")


class Router(ABC):
    """Routes a user query to one downstream agent and returns its answer."""

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the router; raises ``ConfigurationError`` when it cannot route."""

    @abstractmethod
    async def process_query(
        self, query: str, cancel_event: Optional[asyncio.Event] = None
    ) -> RouterResponse:
        """Route and answer one query."""

    @abstractmethod
    def clear_session(self) -> None:
        """Forget conversation context, if the strategy keeps any."""


class RuleBasedRouter(Router):
    """Stateless router driven by the heuristic intent classifier."""

    def __init__(
        self,
        registry: AgentRegistry,
        classifier: IntentClassifier,
        protocol_client: ProtocolClient,
    ):
        self.registry = registry
        self.classifier = classifier
        self.protocol_client = protocol_client

    async def initialize(self) -> None:
        enabled = self.registry.enabled_agents()
        if not enabled:
            raise ConfigurationError("No enabled Fabric Data Agents configured")
        self.registry.validate_endpoints()
        logger.info(f"Rule-based router initialized with {len(enabled)} agents")

    async def process_query(
        self, query: str, cancel_event: Optional[asyncio.Event] = None
    ) -> RouterResponse:
        start = time.perf_counter()
        response = RouterResponse(query=query)

        try:
            if cancel_event is not None and cancel_event.is_set():
                raise QueryCancelledError("Query cancelled")
            response.routing = self.classifier.classify(query, self.registry)
            agent = response.routing.selected_agent
            if agent is None:
                response.agent_response = AgentResponse(
                    is_success=False, error_message=response.routing.reasoning
                )
            else:
                logger.info(
                    f"Routed to {response.routing.selected_agent_id}: {response.routing.reasoning}"
                )
                response.agent_response = await until_cancelled(
                    self.protocol_client.query(agent, query), cancel_event
                )
        except QueryCancelledError:
            logger.info("Query cancelled by caller")
            raise
        except Exception as e:
            logger.error(f"Error processing query: {e}", exc_info=True)
            response.agent_response = AgentResponse(is_success=False, error_message=str(e))
        finally:
            response.total_execution_time = time.perf_counter() - start

        return response

    def clear_session(self) -> None:
        pass
