"""Interactive shell for routing queries to Fabric Data Agents."""

import asyncio
import logging
from typing import Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.history import InMemoryHistory
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from fabric_router.model.registry import AgentRegistry
from fabric_router.model.responses import RouterResponse
from fabric_router.services.intent_classifier import IntentClassifier
from fabric_router.services.router import Router

logger = logging.getLogger(__name__)

HELP_TEXT = """
## Commands

- `quit` or `exit` - Exit the shell
- `clear` - Start a new conversation
- `agents` - List enabled Fabric Data Agents
- `validate` - Check connectivity to every agent
- `help` - Show this help message

Anything else is sent to the router as a query.
"""


class RouterShell:
    """Interactive query loop around a ``Router``."""

    def __init__(
        self,
        router: Optional[Router],
        registry: AgentRegistry,
        classifier: Optional[IntentClassifier] = None,
        console: Optional[Console] = None,
    ):
        """
        Args:
            router: Initialized router; None when only validating
            registry: Agent registry, for the ``agents`` command
            classifier: Classifier with a protocol client, for ``validate``
            console: Output console
        """
        self.router = router
        self.registry = registry
        self.classifier = classifier
        self.console = console or Console()
        self.running = False

    def print_banner(self) -> None:
        self.console.print("=" * 70, style="bold cyan")
        self.console.print("  Fabric Data Agent Router", style="bold cyan", justify="center")
        self.console.print("=" * 70, style="bold cyan")
        self.console.print("Type your question or 'help' for available commands", style="dim")

    def print_help(self) -> None:
        self.console.print(Panel(Markdown(HELP_TEXT), title="Help", border_style="blue"))

    def print_agents(self) -> None:
        table = Table(title="Available Fabric Data Agents")
        table.add_column("ID", style="cyan")
        table.add_column("Name", style="green")
        table.add_column("Domains")
        for agent in self.registry.enabled_agents():
            table.add_row(agent.id, agent.name, ", ".join(agent.domains))
        self.console.print(table)

    async def validate(self) -> dict[str, bool]:
        """Check connectivity for every enabled agent and print the results."""
        if self.classifier is None:
            self.console.print("Validation is not available", style="yellow")
            return {}

        self.console.print("Validating agent connectivity...", style="yellow")
        results = await self.classifier.validate_all(self.registry)
        for agent_id, is_connected in results.items():
            status = "[green]OK[/green]" if is_connected else "[red]FAILED[/red]"
            self.console.print(f"  {agent_id}: {status}")
        return results

    def print_response(self, response: RouterResponse) -> None:
        routing = response.routing
        agent_name = routing.selected_agent.name if routing.selected_agent else "none"
        self.console.print(
            f"[dim]Agent: {agent_name} | Confidence: {routing.confidence:.0%} | "
            f"Time: {response.total_execution_time:.2f}s[/dim]"
        )

        if response.agent_response.is_success:
            self.console.print(
                Panel(Markdown(response.agent_response.content), title="Answer", border_style="green")
            )
        else:
            self.console.print(
                f"Error: {response.agent_response.error_message}", style="bold red"
            )

    async def handle_input(self, text: str) -> bool:
        """
        Handle one line of input.

        Returns:
            True to continue, False to exit
        """
        command = text.strip()
        if not command:
            return True

        lowered = command.lower()
        if lowered in ("quit", "exit"):
            self.console.print("Goodbye!", style="cyan")
            return False
        if lowered == "clear":
            self.router.clear_session()
            self.console.print("Conversation cleared. Starting new session.", style="green")
            return True
        if lowered == "help":
            self.print_help()
            return True
        if lowered == "agents":
            self.print_agents()
            return True
        if lowered == "validate":
            await self.validate()
            return True

        response = await self.router.process_query(command)
        self.print_response(response)
        return True

    async def run(self) -> None:
        """Run the interactive loop until the user exits."""
        self.print_banner()
        prompt_session = PromptSession(history=InMemoryHistory())
        self.running = True

        while self.running:
            try:
                user_input = await prompt_session.prompt_async("\nYou: ")
                self.running = await self.handle_input(user_input)
            except (KeyboardInterrupt, EOFError):
                self.console.print("\nGoodbye!", style="cyan")
                self.running = False
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Shell error: {e}", exc_info=True)
                self.console.print(f"Error: {e}", style="bold red")


__all__ = ["RouterShell"]
