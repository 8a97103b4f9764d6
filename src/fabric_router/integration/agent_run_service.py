"""
Remote agent-run service.

The function-calling router drives a hosted "assistant" through the
thread/run lifecycle. ``AgentRunService`` is the seam the orchestrator talks
to; ``AzureAssistantsRunService`` implements it on the Azure OpenAI
Assistants API.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from openai import AsyncAzureOpenAI

from fabric_router.integration.token_cache import TokenCache
from fabric_router.model.run import PendingCall, Run, RunStatus, Session, ToolOutput

logger = logging.getLogger(__name__)

_STATUS_MAP = {
    "queued": RunStatus.QUEUED,
    "in_progress": RunStatus.IN_PROGRESS,
    "requires_action": RunStatus.REQUIRES_ACTION,
    "completed": RunStatus.COMPLETED,
    "failed": RunStatus.FAILED,
    "incomplete": RunStatus.FAILED,
    "cancelling": RunStatus.CANCELLED,
    "cancelled": RunStatus.CANCELLED,
    "expired": RunStatus.EXPIRED,
}


class AgentRunService(ABC):
    """Operations the orchestrator needs from a hosted agent-run service."""

    @abstractmethod
    async def create_agent(self, name: str, instructions: str, tools: list[dict[str, Any]]) -> str:
        """Create the router persona and return its id."""

    @abstractmethod
    async def create_session(self) -> Session:
        """Open a new conversation thread."""

    @abstractmethod
    async def add_user_message(self, session_id: str, text: str) -> None:
        """Append a user turn to the conversation."""

    @abstractmethod
    async def start_run(self, session_id: str, agent_id: str) -> Run:
        """Start processing the conversation with the given agent."""

    @abstractmethod
    async def get_run(self, run: Run) -> Run:
        """Fetch the current state of a run."""

    @abstractmethod
    async def submit_tool_outputs(self, run: Run, outputs: list[ToolOutput]) -> Run:
        """Answer every pending call of a paused run and resume it."""

    @abstractmethod
    async def get_latest_agent_message(self, session_id: str) -> Optional[str]:
        """Text of the most recent agent-authored message, if any."""


class AzureAssistantsRunService(AgentRunService):
    """
    Agent-run service backed by the Azure OpenAI Assistants API.

    Authenticates with an API key when one is configured, otherwise with an
    Entra ID token from ``token_cache``.
    """

    def __init__(
        self,
        endpoint: str,
        model: str,
        api_version: str,
        api_key: Optional[str] = None,
        token_cache: Optional[TokenCache] = None,
        client: Optional[AsyncAzureOpenAI] = None,
    ):
        self.model = model
        if client is not None:
            self._client = client
        elif api_key:
            self._client = AsyncAzureOpenAI(
                api_key=api_key, api_version=api_version, azure_endpoint=endpoint
            )
        elif token_cache is not None:
            self._client = AsyncAzureOpenAI(
                azure_ad_token_provider=token_cache,
                api_version=api_version,
                azure_endpoint=endpoint,
            )
        else:
            raise ValueError("Azure OpenAI requires an API key or a token cache")
        logger.info("Azure OpenAI Assistants client initialized")
        logger.info(f"Endpoint: {endpoint}")
        logger.info(f"Default model: {model}")

    async def close(self) -> None:
        await self._client.close()

    async def create_agent(self, name: str, instructions: str, tools: list[dict[str, Any]]) -> str:
        assistant = await self._client.beta.assistants.create(
            model=self.model,
            name=name,
            instructions=instructions,
            tools=tools,
        )
        return assistant.id

    async def create_session(self) -> Session:
        thread = await self._client.beta.threads.create()
        return Session(id=thread.id)

    async def add_user_message(self, session_id: str, text: str) -> None:
        await self._client.beta.threads.messages.create(
            thread_id=session_id, role="user", content=text
        )

    async def start_run(self, session_id: str, agent_id: str) -> Run:
        remote = await self._client.beta.threads.runs.create(
            thread_id=session_id, assistant_id=agent_id
        )
        return self._to_run(remote)

    async def get_run(self, run: Run) -> Run:
        remote = await self._client.beta.threads.runs.retrieve(
            run_id=run.id, thread_id=run.session_id
        )
        return self._to_run(remote)

    async def submit_tool_outputs(self, run: Run, outputs: list[ToolOutput]) -> Run:
        remote = await self._client.beta.threads.runs.submit_tool_outputs(
            run_id=run.id,
            thread_id=run.session_id,
            tool_outputs=[
                {"tool_call_id": output.call_id, "output": output.result_text}
                for output in outputs
            ],
        )
        return self._to_run(remote)

    async def get_latest_agent_message(self, session_id: str) -> Optional[str]:
        page = await self._client.beta.threads.messages.list(
            thread_id=session_id, order="desc", limit=20
        )
        for message in page.data:
            if message.role != "assistant":
                continue
            for content in message.content:
                if content.type == "text":
                    return content.text.value
            return None
        return None

    @staticmethod
    def _to_run(remote: Any) -> Run:
        status = _STATUS_MAP.get(remote.status)
        if status is None:
            logger.warning(f"Unknown run status '{remote.status}', treating as failed")
            status = RunStatus.FAILED

        pending_calls = []
        required_action = getattr(remote, "required_action", None)
        if status == RunStatus.REQUIRES_ACTION and required_action is not None:
            for tool_call in required_action.submit_tool_outputs.tool_calls:
                arguments = tool_call.function.arguments
                if not isinstance(arguments, str):
                    arguments = json.dumps(arguments or {})
                pending_calls.append(
                    PendingCall(
                        id=tool_call.id,
                        function_name=tool_call.function.name,
                        arguments_json=arguments or "{}",
                    )
                )

        last_error = getattr(remote, "last_error", None)
        return Run(
            id=remote.id,
            session_id=remote.thread_id,
            status=status,
            pending_calls=pending_calls,
            last_error=last_error.message if last_error is not None else None,
        )
