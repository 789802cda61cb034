"""Interactive terminal chat for the On-Demand client"""

import asyncio
import logging
import signal
from typing import List, Optional

from rich.console import Console
from rich.live import Live
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt
from rich.text import Text

from chat import Conversation, ConversationState, Message, Role
from providers import BaseProvider, OnDemandProvider
from utils.debug_console import create_debug_console, setup_debug_logging

logger = logging.getLogger(__name__)

QUIT_COMMANDS = ("/quit", "/exit")
CLEAR_COMMAND = "/clear"


class ChatCLI:
    """Terminal presentation layer for a Conversation"""

    def __init__(
        self,
        debug: bool = False,
        stream_trace_enabled: bool = False,
        provider: Optional[BaseProvider] = None,
        console: Optional[Console] = None,
    ):
        self.debug = debug
        self.stream_trace_enabled = stream_trace_enabled

        debug_logger = setup_debug_logging() if debug else None
        self.console = console or create_debug_console(debug_enabled=debug, debug_logger=debug_logger)

        self.conversation = Conversation(
            provider or OnDemandProvider(),
            stream_trace_enabled=stream_trace_enabled,
        )

        if debug:
            self.console.print("[yellow]Debug mode enabled - verbose logging will be written to chat_debug.log[/yellow]")
        if stream_trace_enabled:
            self.console.print("[yellow]Stream tracing enabled - raw SSE chunks will be logged to disk[/yellow]")

        self.loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self.loop)

    def display_header(self):
        self.console.print(Panel.fit(
            "[bold cyan]On-Demand Chat[/bold cyan]\n"
            "[dim]Ctrl+C stops an answer, /clear dismisses errors, /quit exits[/dim]",
            border_style="cyan"
        ))

    def render_pending(self, messages: List[Message]) -> Text:
        for message in reversed(messages):
            if message.role is Role.PENDING:
                return Text(message.content, style="dim italic")
        return Text("")

    def display_answer(self, message: Message):
        self.console.print(Panel(Markdown(message.content or "_(empty answer)_"), title="Assistant", border_style="green"))

    def display_error(self):
        if self.conversation.error:
            self.console.print(f"[red]✗ {self.conversation.error}[/red]")

    async def ask(self, text: str) -> Optional[ConversationState]:
        """Submit one query while showing the streaming placeholder live"""
        with Live(Text(""), console=self.console, refresh_per_second=12, transient=True) as live:
            def on_change(messages: List[Message], error: Optional[str]):
                live.update(self.render_pending(messages))

            unsubscribe = self.conversation.subscribe(on_change)
            try:
                outcome = await self.conversation.submit_query(text)
            finally:
                unsubscribe()

        if outcome is ConversationState.COMPLETED:
            self.display_answer(self.conversation.messages[-1])
        elif outcome is ConversationState.FAILED:
            self.display_error()
        elif outcome is ConversationState.CANCELLED:
            self.console.print("[yellow]Generation stopped[/yellow]")
        return outcome

    def _on_interrupt(self):
        if self.conversation.stop_generation():
            logger.info("Interrupted during query, waiting for the stream to close")

    def _install_interrupt_handler(self) -> bool:
        """Deliver Ctrl+C to the loop as a callback while a query runs"""
        try:
            self.loop.add_signal_handler(signal.SIGINT, self._on_interrupt)
        except (NotImplementedError, RuntimeError, ValueError):
            # Windows loops and non-main threads fall back to KeyboardInterrupt
            return False
        return True

    def run_query(self, text: str) -> Optional[ConversationState]:
        """Run ``ask`` on the CLI loop; Ctrl+C cancels instead of exiting"""
        task = self.loop.create_task(self.ask(text))
        handler_installed = self._install_interrupt_handler()
        try:
            return self.loop.run_until_complete(task)
        except KeyboardInterrupt:
            if not self.conversation.stop_generation():
                raise
            logger.info("Interrupted during query, waiting for the stream to close")
            return self.loop.run_until_complete(task)
        finally:
            if handler_installed:
                self.loop.remove_signal_handler(signal.SIGINT)

    def run(self):
        """Main chat loop"""
        self.display_header()

        while True:
            session_id = self.conversation.session_id
            prompt = f"[cyan]You[/cyan] [dim]({session_id[:8]}...)[/dim]" if session_id else "[cyan]You[/cyan]"
            text = Prompt.ask(prompt, console=self.console)
            command = text.strip().lower()

            if command in QUIT_COMMANDS:
                self.console.print("Goodbye!")
                break
            if command == CLEAR_COMMAND:
                self.conversation.clear_error()
                continue
            if not command:
                continue

            self.run_query(text)

        self.loop.close()
