"""Console chat over the conversation controller.

Usage:
    python -m agentdesk.client [--server URL] [--conversation ID]
"""

import asyncio
from typing import Optional, Set

import click

from ..exceptions import ConversationApiError
from ..utils.logger import setup_logger
from .api import ConversationApiClient
from .controller import ClientState, ConversationController, POLL_INTERVAL


class ConsoleView:
    """Prints confirmed entries and status changes once each."""

    def __init__(self):
        self._printed: Set[str] = set()
        self._last_status: Optional[str] = None
        self._last_error: Optional[str] = None

    def render(self, state: ClientState):
        for entry in state.server_messages:
            if entry.uuid in self._printed:
                continue
            self._printed.add(entry.uuid)
            for block in entry.contents():
                if block.type == "text":
                    click.echo(f"[{entry.role}] {block.content}")
                elif block.type == "tool_use":
                    click.echo(f"[{entry.role}] ⚙ {block.tool_name} {block.content}")

        if state.status != self._last_status:
            self._last_status = state.status
            if state.status == "running":
                click.echo("… processing")
            elif state.status == "completed":
                click.echo("✓ done")

        if state.error_message and state.error_message != self._last_error:
            click.echo(f"✗ {state.error_message}", err=True)
        self._last_error = state.error_message


async def run_console(server: str, conversation_id: Optional[str], poll_interval: float):
    view = ConsoleView()
    async with ConversationApiClient(server) as api:
        controller = ConversationController(api, poll_interval=poll_interval, on_change=view.render)
        if conversation_id:
            await controller.attach(conversation_id)

        try:
            while True:
                line = (await asyncio.to_thread(input, "> ")).strip()
                if line in ("/quit", "/exit"):
                    break
                if not line:
                    continue
                if not controller.state.can_submit:
                    click.echo("Agent is still working, please wait.")
                    continue
                await controller.submit(line)
                if controller.state.conversation_id:
                    click.echo(f"(conversation {controller.state.conversation_id})")
        except (EOFError, KeyboardInterrupt):
            pass
        finally:
            await controller.close()


@click.command()
@click.option("--server", default="http://localhost:7788", show_default=True, help="AgentDesk server URL.")
@click.option("--conversation", "conversation_id", default=None, help="Existing conversation ID to attach to.")
@click.option(
    "--poll-interval",
    type=click.FloatRange(min=0, min_open=True),
    default=POLL_INTERVAL,
    show_default=True,
    help="Seconds between polls while the agent is working.",
)
@click.option("--log-level", default="WARNING", show_default=True, help="Client log level.")
def main(server: str, conversation_id: Optional[str], poll_interval: float, log_level: str):
    """Chat with a sandboxed coding agent.

    Type /quit or /exit to leave.
    """
    setup_logger("agentdesk", log_level=log_level)
    try:
        asyncio.run(run_console(server, conversation_id, poll_interval))
    except ConversationApiError as e:
        raise click.ClickException(str(e)) from None


if __name__ == "__main__":
    main()
