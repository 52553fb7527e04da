"""アプリケーションのエントリポイント

Usage:
    phasechat subject R1 --context-file analysis.txt
    phasechat send --owner U1 --subject R1 "We need to talk about the rent."
    phasechat chat --owner U1 --subject R1
    phasechat retry --owner U1 --subject R1
    phasechat history --owner U1 --subject R1 --format json
    phasechat clear --owner U1 --subject R1
"""

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

from phasechat.application.services import ConversationOrchestrator
from phasechat.config import Config, ConfigError, LoggingConfig, load_config
from phasechat.domain.entities import ConversationHistory, Event, EventType, TurnResult
from phasechat.domain.exceptions import PendingMessageError, PhaseChatError
from phasechat.infrastructure.events import EventDispatcher, event_handler
from phasechat.infrastructure.llm import LiteLLMModelGateway, LLMClient
from phasechat.infrastructure.persistence import (
    DatabaseManager,
    SQLiteConversationRepository,
    SQLiteSubjectContextRepository,
)

# Default logging for early startup
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

QUIT_COMMANDS = {"/quit", "/exit"}
RETRY_COMMAND = "/retry"


def configure_logging(config: LoggingConfig | None) -> None:
    """Configure logging based on config.

    Args:
        config: Logging configuration. If None, uses defaults.
    """
    if config is None:
        return

    root_logger = logging.getLogger()
    level = getattr(logging, config.level.upper(), logging.INFO)
    root_logger.setLevel(level)

    if root_logger.handlers:
        formatter = logging.Formatter(config.format)
        for handler in root_logger.handlers:
            handler.setFormatter(formatter)

    if config.loggers:
        for logger_name, logger_level in config.loggers.items():
            individual_level = getattr(logging, logger_level.upper(), logging.INFO)
            logging.getLogger(logger_name).setLevel(individual_level)
            logger.debug(
                "Set logger '%s' to level %s", logger_name, logger_level.upper()
            )


@event_handler(EventType.NEW_REPLY)
async def log_new_reply(event: Event) -> None:
    """NEW_REPLY イベントをログに出力する"""
    phase = event.payload.get("phase_completed")
    if phase:
        logger.info(
            "Phase %s completed for %s",
            phase["phase_number"],
            event.payload["conversation_ref"],
        )
    else:
        logger.debug("New reply for %s", event.payload["conversation_ref"])


def build_orchestrator(
    config: Config,
    db_manager: DatabaseManager,
    dispatcher: EventDispatcher | None = None,
) -> ConversationOrchestrator:
    """依存関係を組み立てて ConversationOrchestrator を生成する

    Args:
        config: アプリケーション設定
        db_manager: 初期化済みのデータベース管理
        dispatcher: 通知先（省略時は新規作成）

    Returns:
        ConversationOrchestrator
    """
    llm_config = config.llm["default"]
    debug_llm_messages = bool(config.logging and config.logging.debug_llm_messages)
    gateway = LiteLLMModelGateway(
        LLMClient(llm_config),
        config.persona,
        debug_llm_messages=debug_llm_messages,
    )

    if dispatcher is None:
        dispatcher = EventDispatcher()
        dispatcher.register_handler(log_new_reply)

    return ConversationOrchestrator(
        conversation_repository=SQLiteConversationRepository(db_manager.get_session),
        subject_context_repository=SQLiteSubjectContextRepository(
            db_manager.get_session
        ),
        model_gateway=gateway,
        notifier=dispatcher,
        generation_timeout=llm_config.timeout_seconds,
    )


def create_parser() -> argparse.ArgumentParser:
    """CLIパーサーを作成"""
    parser = argparse.ArgumentParser(
        prog="phasechat",
        description="Phase-based conversation memory for LLM chats",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config",
        default="config.yaml",
        help="設定ファイルのパス (default: config.yaml)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subject_parser = subparsers.add_parser("subject", help="対象を登録・更新")
    subject_parser.add_argument("subject_id", help="対象 ID")
    context_group = subject_parser.add_mutually_exclusive_group()
    context_group.add_argument("--context", help="背景コンテキスト")
    context_group.add_argument(
        "--context-file", type=Path, help="背景コンテキストを読み込むファイル"
    )

    def add_conversation_args(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("--owner", required=True, help="所有者 ID")
        sub.add_argument("--subject", required=True, help="対象 ID")

    send_parser = subparsers.add_parser("send", help="メッセージを1件送信")
    add_conversation_args(send_parser)
    send_parser.add_argument("message", help="送信するメッセージ")

    retry_parser = subparsers.add_parser("retry", help="未返答のメッセージを再試行")
    add_conversation_args(retry_parser)

    chat_parser = subparsers.add_parser("chat", help="対話モード")
    add_conversation_args(chat_parser)

    history_parser = subparsers.add_parser("history", help="会話履歴を表示")
    add_conversation_args(history_parser)
    history_parser.add_argument(
        "--format",
        choices=["text", "json"],
        default="text",
        help="出力形式 (default: text)",
    )

    clear_parser = subparsers.add_parser("clear", help="会話履歴を削除")
    add_conversation_args(clear_parser)

    return parser


def print_turn(result: TurnResult) -> None:
    """ターン結果を出力"""
    print(f"Assistant: {result.reply}")
    if result.phase_completed:
        print(
            f"[PHASE {result.phase_completed.phase_number} COMPLETE] "
            f"{result.phase_completed.summary}"
        )


def print_history(history: ConversationHistory, output_format: str) -> None:
    """会話履歴を出力"""
    if output_format == "json":
        data = {
            "messages": [
                {
                    "role": m.role.value,
                    "content": m.content,
                    "timestamp": m.timestamp.isoformat(),
                }
                for m in history.messages
            ],
            "phases": [p.to_dict() for p in history.phases],
        }
        print(json.dumps(data, ensure_ascii=False, indent=2))
        return

    if history.is_empty():
        print("(no history)")
        return
    for phase in history.phases:
        print(f"[PHASE {phase.phase_number} SUMMARY]: {phase.summary}")
    if history.phases:
        print()
    for message in history.messages:
        timestamp = message.timestamp.strftime("%Y-%m-%d %H:%M:%S")
        print(f"[{timestamp}] {message.role.label}: {message.content}")


async def run_chat(
    orchestrator: ConversationOrchestrator, owner_id: str, subject_id: str
) -> None:
    """対話モード（EOF または /quit で終了、/retry で未返答メッセージを再試行）"""
    print("Type a message, /retry to answer the last message again, /quit to exit.")
    while True:
        try:
            line = await asyncio.to_thread(input, "> ")
        except EOFError:
            break
        text = line.strip()
        if not text:
            continue
        if text in QUIT_COMMANDS:
            break
        try:
            if text == RETRY_COMMAND:
                result = await orchestrator.retry_turn(owner_id, subject_id)
            else:
                result = await orchestrator.handle_turn(owner_id, subject_id, text)
        except PendingMessageError as e:
            logger.error("Turn failed: %s", e)
            print("The last message is still unanswered. Type /retry to answer it.")
        except PhaseChatError as e:
            logger.error("Turn failed: %s", e)
        else:
            print_turn(result)


async def execute(args: argparse.Namespace, config: Config) -> None:
    """サブコマンドを実行する"""
    async with DatabaseManager(config.memory.database_path) as db_manager:
        if args.command == "subject":
            context = args.context
            if args.context_file is not None:
                context = args.context_file.read_text(encoding="utf-8")
            repository = SQLiteSubjectContextRepository(db_manager.get_session)
            await repository.save_context(args.subject_id, context)
            print(f"Saved subject {args.subject_id}")
            return

        orchestrator = build_orchestrator(config, db_manager)
        if args.command == "send":
            print_turn(
                await orchestrator.handle_turn(args.owner, args.subject, args.message)
            )
        elif args.command == "retry":
            print_turn(await orchestrator.retry_turn(args.owner, args.subject))
        elif args.command == "chat":
            await run_chat(orchestrator, args.owner, args.subject)
        elif args.command == "history":
            print_history(
                await orchestrator.get_history(args.owner, args.subject), args.format
            )
        elif args.command == "clear":
            await orchestrator.clear_history(args.owner, args.subject)
            print("Chat history cleared")


async def main(argv: Sequence[str] | None = None) -> int:
    """アプリケーションを起動する

    Returns:
        終了コード
    """
    args = create_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except (ConfigError, FileNotFoundError) as e:
        logger.error("Failed to load config: %s", e)
        return 1

    configure_logging(config.logging)

    if "default" not in config.llm:
        logger.error("No 'default' LLM config found")
        return 1

    try:
        await execute(args, config)
    except PhaseChatError as e:
        logger.error("%s failed: %s", args.command, e)
        return 1
    return 0


def run() -> None:
    """Run the async main function."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("Shutting down...")


if __name__ == "__main__":
    run()
