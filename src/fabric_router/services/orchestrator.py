"""
Conversation Orchestrator.

Routes queries through a remote router agent that selects downstream Fabric
Data Agents with function calling:

1. The router persona is created once, with one function tool per enabled
   agent plus ``list_available_agents``
2. Each query is appended to the current session and a run is started
3. The run is driven through its lifecycle: polled while queued or in
   progress, its pending function calls dispatched while it requires
   action, and its final message read once completed

The orchestrator owns exactly one session at a time. Use one orchestrator
per conversation.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Optional

from fabric_router.exceptions import ConfigurationError, QueryCancelledError, RunFailure
from fabric_router.integration.agent_run_service import AgentRunService
from fabric_router.model.registry import AgentDescriptor, AgentRegistry
from fabric_router.model.responses import AgentResponse, RouterResponse
from fabric_router.model.routing import RoutingResult
from fabric_router.model.run import Run, RunStatus, Session
from fabric_router.prompts.router_instructions import build_router_instructions
from fabric_router.services.intent_classifier import IntentClassifier
from fabric_router.services.router import Router, until_cancelled
from fabric_router.services.tool_dispatcher import ToolDispatcher

logger = logging.getLogger(__name__)

FUNCTION_CALL_CONFIDENCE = 1.0


class ConversationOrchestrator(Router):
    """Function-calling router backed by a remote agent-run service."""

    def __init__(
        self,
        registry: AgentRegistry,
        dispatcher: ToolDispatcher,
        run_service: AgentRunService,
        classifier: Optional[IntentClassifier] = None,
        agent_name: str = "FabricDataAgentRouter",
        poll_interval: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the orchestrator.

        Args:
            registry: Agent registry and routing policy
            dispatcher: Executes function calls against downstream agents
            run_service: Remote agent-run service
            classifier: Optional heuristic classifier; its ranked scores are
                reported as routing alternatives
            agent_name: Name of the remote router persona
            poll_interval: Seconds between run status polls
            clock: Monotonic clock used for the run timeout
            sleep: Awaitable sleep used between polls
        """
        self.registry = registry
        self.dispatcher = dispatcher
        self.run_service = run_service
        self.classifier = classifier
        self.agent_name = agent_name
        self.poll_interval = poll_interval
        self._clock = clock
        self._sleep = sleep
        self._router_agent_id: Optional[str] = None
        self._session: Optional[Session] = None

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def is_initialized(self) -> bool:
        return self._router_agent_id is not None

    async def initialize(self) -> None:
        """
        Create the remote router persona.

        Raises:
            ConfigurationError: If no agent is enabled, an endpoint does not
                resolve, or the run service rejects the persona
        """
        enabled = self.registry.enabled_agents()
        if not enabled:
            raise ConfigurationError("No enabled Fabric Data Agents configured")
        self.registry.validate_endpoints()

        try:
            self._router_agent_id = await self.run_service.create_agent(
                name=self.agent_name,
                instructions=build_router_instructions(enabled),
                tools=self.dispatcher.tool_definitions(),
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise ConfigurationError(f"Failed to create router agent: {e}") from e

        logger.info(f"Router agent created: {self._router_agent_id}")
        logger.info(f"Registered {len(enabled)} agent tools")

    def clear_session(self) -> None:
        """Drop the current session; the next query starts a new conversation."""
        if self._session is not None:
            logger.info(f"Cleared session {self._session.id}")
        self._session = None

    # =========================================================================
    # Query Processing
    # =========================================================================

    async def process_query(
        self, query: str, cancel_event: Optional[asyncio.Event] = None
    ) -> RouterResponse:
        """
        Route one query through the remote router agent.

        Args:
            query: User query
            cancel_event: Set by the caller to abandon the query

        Returns:
            RouterResponse; failures are reported in ``agent_response``

        Raises:
            QueryCancelledError: If ``cancel_event`` fired before completion
        """
        start = self._clock()
        response = RouterResponse(query=query)
        invoked: list[AgentDescriptor] = []
        run_start = start

        try:
            if not self.is_initialized:
                raise ConfigurationError("Router agent not initialized. Call initialize first.")

            session = await until_cancelled(self._ensure_session(), cancel_event)
            response.session_id = session.id

            await until_cancelled(
                self.run_service.add_user_message(session.id, query), cancel_event
            )
            run = await until_cancelled(
                self.run_service.start_run(session.id, self._router_agent_id), cancel_event
            )
            logger.debug(f"Started run {run.id} on session {session.id}")

            run_start = self._clock()
            content = await self._drive_run(run, cancel_event, invoked)
            response.agent_response = AgentResponse(
                content=content or "",
                is_success=content is not None,
                error_message=None if content is not None else "No response from router agent",
            )
        except QueryCancelledError:
            logger.info("Query cancelled by caller")
            raise
        except RunFailure as e:
            logger.error(f"Router run failed: {e}")
            response.agent_response = AgentResponse(is_success=False, error_message=str(e))
        except Exception as e:
            logger.error(f"Error processing query: {e}", exc_info=True)
            response.agent_response = AgentResponse(is_success=False, error_message=str(e))
        finally:
            now = self._clock()
            response.agent_response.execution_time = now - run_start
            response.total_execution_time = now - start

        response.routing = self._routing_result(query, invoked)
        if invoked:
            response.agent_response.agent_id = invoked[-1].id
        return response

    async def _ensure_session(self) -> Session:
        if self._session is None:
            self._session = await self.run_service.create_session()
            logger.info(f"Created new session: {self._session.id}")
        return self._session

    async def _drive_run(
        self,
        run: Run,
        cancel_event: Optional[asyncio.Event],
        invoked: list[AgentDescriptor],
    ) -> Optional[str]:
        """
        Drive a run to a terminal status.

        Agents resolved from dispatched function calls are appended to
        ``invoked`` as they are called.

        Returns:
            Text of the final agent message, or None if there is none

        Raises:
            RunFailure: If the run ends failed, cancelled or expired, or times out
        """
        timeout = self.registry.routing.timeout_seconds
        deadline = self._clock() + timeout

        while True:
            if run.status in (RunStatus.QUEUED, RunStatus.IN_PROGRESS):
                if self._clock() >= deadline:
                    raise RunFailure(RunStatus.FAILED.value, f"timed out after {timeout:g} seconds")
                await until_cancelled(self._sleep(self.poll_interval), cancel_event)
                run = await until_cancelled(self.run_service.get_run(run), cancel_event)

            elif run.status == RunStatus.REQUIRES_ACTION:
                for call in run.pending_calls:
                    logger.info(
                        f"Executing function: {call.function_name} with args: {call.arguments_json}"
                    )
                    agent = self.dispatcher.resolve_agent(call.function_name)
                    if agent is not None:
                        invoked.append(agent)

                outputs = await until_cancelled(
                    self.dispatcher.dispatch_all(run.pending_calls), cancel_event
                )
                run = await until_cancelled(
                    self.run_service.submit_tool_outputs(run, outputs), cancel_event
                )

            elif run.status.is_terminal and run.status != RunStatus.COMPLETED:
                raise RunFailure(run.status.value, run.last_error)

            else:
                return await until_cancelled(
                    self.run_service.get_latest_agent_message(run.session_id), cancel_event
                )

    def _routing_result(self, query: str, invoked: list[AgentDescriptor]) -> RoutingResult:
        if invoked:
            result = RoutingResult(
                selected_agent=invoked[-1],
                confidence=FUNCTION_CALL_CONFIDENCE,
                reasoning="selected via function call",
            )
        else:
            result = RoutingResult(
                selected_agent=None,
                confidence=0.0,
                reasoning="no agent function was called",
            )

        if self.classifier is not None:
            result.alternatives = self.classifier.score_agents(query, self.registry)
        return result
