"""Application entrypoint - interactive study assistant chat in the terminal."""

import asyncio
import logging
import sys
import uuid

import structlog

from tabe_assistant.assistant import (
    ConversationMemoryManager,
    RequestDispatcher,
    StreamingChat,
    StreamResult,
)
from tabe_assistant.assistant.errors import AssistantError
from tabe_assistant.assistant.formatter import error_message, format_side_effects
from tabe_assistant.auth.token_supplier import AuthSession, SessionTokenSupplier
from tabe_assistant.config import Settings, get_settings
from tabe_assistant.personas.service import PersonaService


def configure_logging(
    log_level: str = "INFO",
    log_file: str = "",
    log_file_max_bytes: int = 10_485_760,
    log_file_backup_count: int = 5,
) -> None:
    """Configure structlog and standard library logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to log file. Empty string = console only.
        log_file_max_bytes: Max size per log file before rotation (default: 10 MB)
        log_file_backup_count: Number of rotated backup files to keep (default: 5)
    """
    from logging.handlers import RotatingFileHandler
    from pathlib import Path

    level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.root
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    # Console logs go to stderr so they never interleave with streamed answers
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            filename=log_file,
            maxBytes=log_file_max_bytes,
            backupCount=log_file_backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter("%(message)s"))
        root_logger.addHandler(file_handler)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            # JSON for files, human-readable for the console
            structlog.processors.JSONRenderer() if log_file else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


logger = structlog.get_logger()


def create_chat(settings: Settings) -> tuple[StreamingChat, RequestDispatcher, SessionTokenSupplier]:
    """Wire the token supplier, dispatcher and streaming facade."""
    session = None
    if settings.access_token:
        session = AuthSession(
            access_token=settings.access_token,
            refresh_token=settings.refresh_token,
        )
    else:
        logger.warning("assistant_not_authenticated", reason="ASSISTANT_ACCESS_TOKEN not set")

    token_supplier = SessionTokenSupplier(
        base_url=settings.api_url,
        api_key=settings.api_key,
        session=session,
        timeout=settings.timeout,
    )
    dispatcher = RequestDispatcher(settings, token_supplier)
    return StreamingChat(dispatcher), dispatcher, token_supplier


async def ask(
    chat: StreamingChat,
    memory: ConversationMemoryManager,
    session_id: str,
    persona_id: str,
    question: str,
) -> StreamResult | None:
    """Stream one answer to stdout and record the exchange on success."""
    history = memory.to_chat_messages(session_id, next_question=question)

    def on_delta(text: str) -> None:
        sys.stdout.write(text)
        sys.stdout.flush()

    def on_complete(result: StreamResult) -> None:
        sys.stdout.write("\n")
        notes = format_side_effects(result)
        if notes:
            sys.stdout.write(f"{notes}\n")
        memory.add_exchange(session_id, question, result.content)

    def on_error(error: AssistantError) -> None:
        sys.stdout.write(f"\n⚠️  {error_message(error)}\n")

    return await chat.stream_message(history, persona_id, on_delta, on_complete, on_error)


async def run_chat(settings: Settings) -> None:
    """Run the interactive chat loop until /quit or end of input."""
    personas = PersonaService(settings.personas_config_path)
    persona = personas.resolve(settings.persona_id)
    memory = ConversationMemoryManager(
        ttl=settings.memory_ttl,
        maxsize=settings.memory_maxsize,
        max_messages=settings.memory_max_messages,
    )
    chat, dispatcher, token_supplier = create_chat(settings)
    session_id = str(uuid.uuid4())

    logger.info("chat_session_started", persona_id=persona.id, session_id=session_id)
    print(f"{persona.avatar_emoji} {persona.name} · /reset para reiniciar, /quit para salir")

    try:
        while True:
            try:
                line = await asyncio.to_thread(input, "> ")
            except EOFError:
                break

            question = line.strip()
            if not question:
                continue
            if question == "/quit":
                break
            if question == "/reset":
                memory.clear(session_id)
                print("Conversación reiniciada.")
                continue

            await ask(chat, memory, session_id, persona.id, question)
    finally:
        await dispatcher.close()
        await token_supplier.close()


def main() -> None:
    """Run the study assistant chat."""
    settings = get_settings()
    configure_logging(
        log_level=settings.log_level,
        log_file=settings.log_file,
        log_file_max_bytes=settings.log_file_max_bytes,
        log_file_backup_count=settings.log_file_backup_count,
    )

    logger.info(
        "starting_assistant_chat",
        stream_url=settings.stream_url,
        log_level=settings.log_level,
    )

    try:
        asyncio.run(run_chat(settings))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
