"""Main application entry point for InterviewMate."""

import sys
import asyncio
import argparse
import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.table import Table

from . import __version__
from .chat.client import ChatClient
from .config import InterviewMateConfig, SETTINGS_KEYS
from .errors import ConfigurationError, InterviewMateError
from .services.error_reporter import ErrorReporter
from .services.interview_service import InterviewService
from .services.knowledge_chat_service import KnowledgeChatService
from .storage.knowledge_base import KnowledgeBase, ConversationLog
from .storage.state_store import StateStore

logger = logging.getLogger(__name__)

SECRET_SETTINGS = ("chat_api_key",)


class Application:
    """Wires configuration, persisted state and the provider clients together."""

    def __init__(self, config_path: Optional[str], log_level: Optional[str] = None,
                 console_logging: Optional[bool] = None):
        self.config = InterviewMateConfig(config_path)
        level = log_level or self.config.get('logging.level', 'INFO')
        setup_logging(self.config, level, console_logging)
        self.console = Console()

    def init(self) -> None:
        logger.info("Initializing services...")
        self.store = StateStore(self.config.get_data_directory())
        self.knowledge_base = KnowledgeBase(self.store)
        self.conversation_log = ConversationLog(self.store)
        self.chat_client = ChatClient(self.config.get('chat.timeout_seconds', 60.0))
        self.errors = ErrorReporter()

    def interview_service(self) -> InterviewService:
        return InterviewService(
            self.config,
            self.knowledge_base,
            self.conversation_log,
            self.chat_client,
            self.errors,
        )

    def knowledge_chat_service(self) -> KnowledgeChatService:
        return KnowledgeChatService(
            self.config,
            self.knowledge_base,
            self.conversation_log,
            self.chat_client,
            self.errors,
        )


def setup_logging(config, level: str = "INFO", console_output: Optional[bool] = None) -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path', 'data/logs/interviewmate.log')
    if console_output is None:
        console_output = config.get('logging.console_output', True)

    log_dir = Path(log_file_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    )
    file_handler.setFormatter(file_formatter)
    handlers.append(file_handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)  # Only show warnings and above on console
        console_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        console_handler.setFormatter(console_formatter)
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger = logging.getLogger(__name__)
    logger.info("=" * 50)
    logger.info("InterviewMate application starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


async def run_interview(app: Application) -> None:
    from .ui.interview_screen import InterviewScreen

    service = app.interview_service()
    await InterviewScreen(service, app.errors, app.console).run()


async def run_chat(app: Application) -> None:
    from .ui.chat_repl import ChatRepl

    await ChatRepl(app.knowledge_chat_service(), app.errors, app.console).run()


async def run_kb_add(app: Application, path: Optional[str], text: Optional[str]) -> int:
    service = app.knowledge_chat_service()
    if text is not None:
        added = service.add_knowledge_text(text)
    else:
        added = await service.add_knowledge_file(path)

    if not added:
        message = app.errors.message or "Nothing to add."
        app.console.print(message, style="bold red")
        return 1
    app.console.print(f"Knowledge base now holds {len(app.knowledge_base)} items", style="green")
    return 0


def show_knowledge_base(app: Application) -> None:
    table = Table(title="Knowledge base", show_header=True, header_style="bold magenta")
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Kind", style="cyan")
    table.add_column("Content", style="white")

    for number, item in enumerate(app.knowledge_base.items, start=1):
        if item.startswith("data:image"):
            table.add_row(str(number), "image", f"{len(item)} bytes (data URL)")
        else:
            preview = item if len(item) <= 80 else item[:77] + "..."
            table.add_row(str(number), "text", preview.replace("\n", " "))

    app.console.print(table)
    app.console.print(f"Conversation history: {len(app.conversation_log)} turns", style="dim")


def show_settings(app: Application) -> None:
    settings = app.config.get_settings()
    table = Table(title=f"Settings ({app.config.config_file})", show_header=True, header_style="bold magenta")
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="white")

    for name, value in settings.model_dump().items():
        if name in SECRET_SETTINGS and value:
            value = value[:4] + "..." + value[-4:] if len(value) > 12 else "****"
        table.add_row(name, str(value) if value != "" else "-")

    app.console.print(table)
    if not settings.is_complete:
        app.console.print(ConfigurationError.user_message, style="bold yellow")


async def run_settings_test(app: Application) -> int:
    result = await app.chat_client.test_api_config(app.config.get_settings().model_dump())
    if result["success"]:
        app.console.print("Chat API configuration works", style="bold green")
        return 0
    app.console.print(f"Chat API test failed: {result['error']}", style="bold red")
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="InterviewMate - live interview transcription with an AI assistant",
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration YAML file (default: interviewmate.yaml)"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (default: from config, INFO)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"InterviewMate v{__version__}"
    )

    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("interview", help="Live transcription with auto-submitted questions")
    commands.add_parser("chat", help="Chat with the knowledge base and uploaded files")

    kb = commands.add_parser("kb", help="Manage the knowledge base")
    kb_commands = kb.add_subparsers(dest="kb_command", required=True)
    kb_add = kb_commands.add_parser("add", help="Add a document, image or text")
    source = kb_add.add_mutually_exclusive_group(required=True)
    source.add_argument("path", nargs="?", help="PDF, image or text file")
    source.add_argument("--text", type=str, help="Add TEXT as an item")
    kb_commands.add_parser("list", help="List knowledge base items")
    kb_commands.add_parser("clear-chat", help="Clear the conversation history")

    settings = commands.add_parser("settings", help="Show or change provider settings")
    settings_commands = settings.add_subparsers(dest="settings_command", required=True)
    settings_commands.add_parser("show", help="Show current settings")
    settings_set = settings_commands.add_parser("set", help="Change one setting")
    settings_set.add_argument("key", choices=sorted(SETTINGS_KEYS))
    settings_set.add_argument("value")
    settings_commands.add_parser("test", help="Send a minimal request with the current settings")

    return parser


def run_command(app: Application, args: argparse.Namespace) -> int:
    if args.command == "interview":
        asyncio.run(run_interview(app))
    elif args.command == "chat":
        asyncio.run(run_chat(app))
    elif args.command == "kb":
        if args.kb_command == "add":
            return asyncio.run(run_kb_add(app, args.path, args.text))
        if args.kb_command == "list":
            show_knowledge_base(app)
        elif args.kb_command == "clear-chat":
            app.conversation_log.clear()
            app.console.print("Conversation history cleared", style="green")
    elif args.command == "settings":
        if args.settings_command == "show":
            show_settings(app)
        elif args.settings_command == "set":
            app.config.update_settings({args.key: args.value})
            app.console.print(f"{args.key} updated", style="green")
        elif args.settings_command == "test":
            return asyncio.run(run_settings_test(app))
    return 0


def main() -> None:
    """Main entry point for InterviewMate application."""
    args = build_parser().parse_args()

    # Console log output would tear the full-screen interview display
    console_logging = False if args.command == "interview" else None
    app = Application(args.config, args.log_level, console_logging)
    try:
        app.init()
        sys.exit(run_command(app, args))
    except KeyboardInterrupt:
        print("\nGoodbye!")
    except InterviewMateError as e:
        logger.error(f"Application error: {e}")
        app.console.print(f"Error: {e}", style="bold red")
        sys.exit(1)


if __name__ == "__main__":
    main()
