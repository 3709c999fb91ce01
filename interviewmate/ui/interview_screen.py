"""Rich live console screen for interview mode."""

import asyncio
import logging
from typing import Optional, Set

import click
from rich.align import Align
from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.text import Text

from ..errors import InterviewMateError
from ..services.error_reporter import ErrorReporter
from ..services.interview_service import InterviewService
from .keyboard_input import KeyboardInputHandler

logger = logging.getLogger(__name__)

# Raw terminal mode delivers Ctrl+C as a character instead of SIGINT
CTRL_C = "\x03"


def format_elapsed(seconds: float) -> str:
    """Format a recording duration as MM:SS, or H:MM:SS past an hour."""
    total = int(seconds)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def tail_lines(text: str, max_lines: int) -> str:
    """Keep the last ``max_lines`` lines so the newest text stays visible."""
    if max_lines <= 0:
        return ""
    lines = text.split("\n")
    return "\n".join(lines[-max_lines:])


class InterviewScreen:
    """Live transcript and assistant panels driven by single-key commands."""

    def __init__(self, service: InterviewService, errors: ErrorReporter, console: Optional[Console] = None):
        """Initialize interview screen.

        Args:
            service: Interview service to drive
            errors: Error reporter whose banner and message are shown in the header
            console: Rich console; a new one is created if omitted
        """
        self.service = service
        self.errors = errors
        self.console = console or Console()
        self.running = False
        self.input_handler: Optional[KeyboardInputHandler] = None
        self.edit_requested = False
        self._tasks: Set[asyncio.Task] = set()

        logger.info("InterviewScreen initialized")

    def create_layout(self) -> Layout:
        """Create the main UI layout."""
        layout = Layout()

        layout.split_column(
            Layout(name="header", size=4),
            Layout(name="main", ratio=1),
            Layout(name="footer", size=3)
        )

        layout["main"].split_row(
            Layout(name="transcript_panel", ratio=1),
            Layout(name="assistant_panel", ratio=1)
        )

        return layout

    def update_header(self, layout: Layout) -> None:
        title = Text("InterviewMate", style="bold blue")
        if self.service.is_recording:
            status = (f"REC {format_elapsed(self.service.recording_seconds())}", "bold red")
        else:
            status = ("STOPPED", "bold yellow")
        auto = ("AUTO ON", "bold green") if self.service.scheduler.enabled else ("AUTO OFF", "dim")
        loading = ("  |  Thinking...", "italic cyan") if self.service.is_loading else ""

        header_text = Text.assemble(title, "  |  ", status, "  |  ", auto, loading)
        notice = Text("")
        if self.errors.banner:
            notice = Text(self.errors.banner, style="bold black on yellow")
        elif self.errors.message:
            notice = Text(self.errors.message, style="bold red")

        layout["header"].update(Panel(
            Align.center(Text.assemble(header_text, "\n", notice)),
            style="bright_blue"
        ))

    def update_transcript_panel(self, layout: Layout, max_lines: int) -> None:
        accumulator = self.service.accumulator
        processed = accumulator.text[:accumulator.processed_index]
        unsent = accumulator.unsent_text()

        if not accumulator.text:
            body = Text("Press 'r' to start recording", style="dim white italic")
        else:
            body = Text.assemble((processed, "dim"), (unsent, "white"))
            if body.plain.count("\n") >= max_lines:
                # Only the tail fits; the processed/unsent split is kept for it
                visible = tail_lines(body.plain, max_lines)
                split = max(0, len(processed) - (len(body.plain) - len(visible)))
                body = Text.assemble((visible[:split], "dim"), (visible[split:], "white"))

        layout["transcript_panel"].update(Panel(
            body,
            title="Transcript",
            subtitle=f"{len(unsent)} unsent chars",
            border_style="blue"
        ))

    def update_assistant_panel(self, layout: Layout, max_lines: int) -> None:
        text = self.service.display.text
        if text:
            body = Text(tail_lines(text, max_lines), style="white")
        else:
            body = Text("Press 'g' to ask, or 'a' to let pauses ask for you", style="dim white italic")

        layout["assistant_panel"].update(Panel(body, title="Assistant", border_style="green"))

    def update_footer(self, layout: Layout) -> None:
        controls = Text.assemble(
            ("R", "bold green"), " Start/Stop  ",
            ("A", "bold cyan"), " Auto-submit  ",
            ("G", "bold blue"), " Ask  ",
            ("C", "bold yellow"), " Clear transcript  ",
            ("E", "bold magenta"), " Edit transcript  ",
            ("X", "bold yellow"), " Clear answers  ",
            ("Q", "bold red"), " Quit"
        )

        layout["footer"].update(Panel(Align.center(controls), style="bright_black"))

    def update_display(self, layout: Layout) -> None:
        # Borders, header and footer take the rest of the screen
        max_lines = max(1, self.console.size.height - 9)
        self.update_header(layout)
        self.update_transcript_panel(layout, max_lines)
        self.update_assistant_panel(layout, max_lines)
        self.update_footer(layout)

    def handle_key_input(self, key: str) -> None:
        """Dispatch one keypress; runs on the event loop."""
        logger.debug(f"Handling key input: {key!r}")
        if key in ("q", CTRL_C):
            logger.info("Quit key pressed")
            self.running = False
        elif key == "r":
            self.errors.clear()
            if self.service.is_recording:
                self._spawn(self.service.stop_recording())
            else:
                self._spawn(self.service.start_recording())
        elif key == "a":
            enabled = self.service.toggle_auto_submit()
            logger.info(f"Auto-submit toggled {'on' if enabled else 'off'}")
        elif key == "g":
            self.errors.clear()
            self._spawn(self.service.ask())
        elif key == "c":
            self.service.clear_transcript()
        elif key == "x":
            self.service.clear_display()
        elif key == "e":
            self.edit_requested = True
        else:
            logger.debug(f"Unhandled key: {key!r}")

    async def edit_transcript(self, live: Optional[Live] = None) -> bool:
        """Open the transcript in $EDITOR and apply the edited text.

        Fragments committed while the editor is open are appended to the
        edited text. Returns True if the transcript was replaced.
        """
        original = self.service.accumulator.text
        if self.input_handler:
            self.input_handler.stop()
        if live:
            live.stop()
        try:
            edited = await asyncio.to_thread(click.edit, original, require_save=True, extension=".txt")
        except click.ClickException as e:
            self.errors.report(InterviewMateError(f"Transcript editor failed: {e.message}",
                                                  user_message="Could not open an editor. Set $EDITOR and try again."))
            return False
        finally:
            if live:
                live.start(refresh=True)
            if self.input_handler:
                self.input_handler.start()

        if edited is None:
            logger.info("Transcript edit cancelled")
            return False

        current = self.service.accumulator.text
        late = current[len(original):] if current.startswith(original) else ""
        self.service.set_transcript(edited.rstrip("\n") + late)
        logger.info(f"Transcript edited ({len(self.service.accumulator.text)} chars)")
        return True

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            self.errors.report(task.exception())

    async def run(self) -> None:
        """Run the interview screen until 'q' is pressed."""
        self.running = True
        layout = self.create_layout()
        self.service.check_configuration()

        self.input_handler = KeyboardInputHandler(self.handle_key_input)
        self.input_handler.start()

        try:
            with Live(layout, console=self.console, refresh_per_second=10, screen=True) as live:
                while self.running:
                    if self.edit_requested:
                        self.edit_requested = False
                        await self.edit_transcript(live)
                    self.update_display(layout)
                    await asyncio.sleep(0.1)
        finally:
            await self.cleanup()

    async def cleanup(self) -> None:
        self.running = False
        if self.input_handler:
            self.input_handler.stop()

        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        await self.service.close()
        logger.info("InterviewScreen cleanup completed")
