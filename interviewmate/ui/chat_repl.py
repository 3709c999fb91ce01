"""Line-based console for knowledge-base chat."""

import asyncio
import logging
import shlex
from typing import List, Optional

from rich.console import Console
from rich.live import Live
from rich.text import Text

from ..services.error_reporter import ErrorReporter
from ..services.knowledge_chat_service import KnowledgeChatService

logger = logging.getLogger(__name__)

HELP_TEXT = (
    "Commands: /attach PATH [PATH ...]  /files  /unstage N  /clear  /quit\n"
    "Anything else is sent with the attached files."
)


class ChatRepl:
    """Reads chat input from the terminal and reveals replies as they arrive."""

    def __init__(self, service: KnowledgeChatService, errors: ErrorReporter, console: Optional[Console] = None):
        self.service = service
        self.errors = errors
        self.console = console or Console()
        self.running = False

    async def run(self) -> None:
        self.running = True
        self.console.print("InterviewMate knowledge chat", style="bold blue")
        self.console.print(HELP_TEXT, style="dim")
        self.console.print(f"Knowledge base: {len(self.service.knowledge_base)} items, "
                           f"history: {len(self.service.conversation_log)} turns", style="dim")

        while self.running:
            try:
                line = await asyncio.to_thread(self.console.input, self._prompt())
            except (EOFError, KeyboardInterrupt):
                break
            await self.handle_line(line)
            self._show_errors()

        self.service.renderer.cancel()
        logger.info("Chat REPL ended")

    async def handle_line(self, line: str) -> None:
        """Run one REPL command or send the line as a chat message."""
        stripped = line.strip()
        if stripped.startswith("/"):
            await self._handle_command(stripped)
            return

        if not stripped and not self.service.staging.staged:
            return
        if await self.service.send(stripped):
            await self._show_reveal()

    async def _handle_command(self, line: str) -> None:
        try:
            parts: List[str] = shlex.split(line)
        except ValueError as e:
            self.console.print(f"Could not parse command: {e}", style="red")
            return
        command, args = parts[0].lower(), parts[1:]

        if command in ("/quit", "/exit"):
            self.running = False
        elif command == "/attach":
            if not args:
                self.console.print("Usage: /attach PATH [PATH ...]", style="yellow")
                return
            staged = await self.service.stage_files(args)
            for upload in staged:
                if upload.is_usable:
                    self.console.print(f"Attached {upload.name} ({upload.mime_type})", style="green")
        elif command == "/files":
            self._print_staged()
        elif command == "/unstage":
            try:
                removed = self.service.unstage(int(args[0]) - 1)
            except (IndexError, ValueError):
                self.console.print("Usage: /unstage N (see /files)", style="yellow")
                return
            self.console.print(f"Removed {removed.name}", style="dim")
        elif command == "/clear":
            if self.service.clear_chat():
                self.console.print("Chat history cleared", style="dim")
        elif command == "/help":
            self.console.print(HELP_TEXT, style="dim")
        else:
            self.console.print(f"Unknown command: {command}", style="yellow")

    async def _show_reveal(self) -> None:
        display = self.service.display
        with Live(Text(""), console=self.console, refresh_per_second=30) as live:
            while self.service.renderer.is_revealing:
                live.update(Text(display.text.rstrip("\n"), style="white"))
                await asyncio.sleep(self.service.renderer.tick)
            live.update(Text(display.text.rstrip("\n"), style="white"))
        self.console.print()

    def _print_staged(self) -> None:
        staged = self.service.staging.staged
        if not staged:
            self.console.print("No files attached", style="dim")
            return
        for number, upload in enumerate(staged, start=1):
            status = "" if upload.is_usable else f"  (unreadable: {upload.error})"
            self.console.print(f"{number}. {upload.name}{status}")

    def _prompt(self) -> str:
        count = len(self.service.staging.staged)
        files = f"[dim]({count} files)[/dim] " if count else ""
        return f"{files}[bold green]you>[/bold green] "

    def _show_errors(self) -> None:
        if self.errors.banner:
            self.console.print(self.errors.banner, style="bold black on yellow")
            self.errors.clear_banner()
        if self.errors.message:
            self.console.print(self.errors.message, style="bold red")
            self.errors.clear()
