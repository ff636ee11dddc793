"""Command-line entry point for the mail agent."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from mail_agent.core import AppSettings, configure_logging, load_app_settings
from mail_agent.core.models import MailMessage
from mail_agent.intelligence import (
    ChatCompletionClient,
    LLMClassifier,
    MailAnalysisService,
    TextAnalysisEngine,
)
from mail_agent.storage import SqliteResponseLog


def build_parser() -> argparse.ArgumentParser:
    """Create and configure the CLI argument parser."""
    parser = argparse.ArgumentParser(description="Mail agent analysis tools")
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to a .env file containing configuration overrides.",
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="info",
        choices=["info", "analyze", "logs"],
        help="Operation to execute.",
    )
    parser.add_argument(
        "--input",
        dest="input_path",
        type=Path,
        default=None,
        help="JSON file holding a list of messages for the analyze command.",
    )
    parser.add_argument(
        "--top-k",
        dest="top_k",
        type=int,
        default=None,
        help="Number of keywords to keep per message.",
    )
    parser.add_argument(
        "--local-only",
        dest="local_only",
        action="store_true",
        help="Skip the LLM and use local analysis only.",
    )
    parser.add_argument(
        "--search",
        dest="search",
        default=None,
        help="Filter the logs command by subject, sender or content.",
    )
    parser.add_argument(
        "--limit",
        dest="limit",
        type=int,
        default=20,
        help="Limit for logs listing; set to 0 for no limit (default: 20).",
    )
    return parser


def execute(args: argparse.Namespace, settings: AppSettings) -> int:
    """Execute the requested CLI command and return the exit status."""
    command = args.command
    if command == "info":
        llm_state = settings.llm.model if settings.llm.enabled else "disabled"
        print("Mail agent is ready.")
        print(f"LLM: {llm_state} ({settings.llm.base_url})")
        print(f"VIP senders: {', '.join(settings.analysis.vip_senders)}")
        print(f"Response log: {settings.storage.response_log_path}")
        return 0
    if command == "analyze":
        if args.input_path is None:
            print("The analyze command requires --input.", file=sys.stderr)
            return 2
        return _run_analyze(
            settings, args.input_path, top_k=args.top_k, local_only=args.local_only
        )
    if command == "logs":
        return _run_logs(settings, search=args.search, limit=args.limit)
    return 2


def main() -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()

    settings = load_app_settings(env_file=args.env_file)
    configure_logging(settings.logging)
    raise SystemExit(execute(args, settings))


def load_messages(path: Path) -> list[MailMessage]:
    """Read a JSON array of ``{subject, from, date, body}`` objects."""
    raw = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(raw, list):
        raise ValueError("Input must be a JSON array of messages")
    messages: list[MailMessage] = []
    for item in raw:
        if not isinstance(item, dict):
            raise ValueError("Each message must be a JSON object")
        messages.append(
            MailMessage(
                subject=str(item.get("subject") or ""),
                sender=str(item.get("from") or item.get("sender") or ""),
                date=item.get("date"),
                body=str(item.get("body") or ""),
            )
        )
    return messages


def _run_analyze(
    settings: AppSettings, input_path: Path, *, top_k: int | None, local_only: bool
) -> int:
    """Analyse messages from ``input_path`` and print the results as JSON."""
    try:
        messages = load_messages(input_path)
    except (OSError, ValueError) as exc:
        print(f"Could not read messages: {exc}", file=sys.stderr)
        return 1

    llm_client = None
    classifier = None
    if settings.llm.enabled and not local_only:
        llm_client = ChatCompletionClient(settings.llm)
        classifier = LLMClassifier(llm_client)
    service = MailAnalysisService(TextAnalysisEngine(settings.analysis), classifier)

    try:
        report = _build_report(service, messages, top_k)
    finally:
        if llm_client is not None:
            llm_client.close()
    print(json.dumps(report, ensure_ascii=False, indent=2))
    return 0


def _build_report(
    service: MailAnalysisService, messages: list[MailMessage], top_k: int | None
) -> dict[str, Any]:
    keywords = asyncio.run(service.extract_keywords_batch(messages, top_k))
    return {
        "messages": [
            {
                "subject": message.subject,
                "from": message.sender,
                "keywords": [
                    {"text": item.text, "score": item.score}
                    for item in analysis.keywords
                ],
                "priorityScore": service.engine.calculate_priority(
                    message
                ).priority_score,
                "topic": service.engine.classify_topic(message),
            }
            for message, analysis in zip(messages, keywords)
        ],
        "topics": [
            {"name": topic.name, "percentage": topic.percentage}
            for topic in service.classify_topics(messages).topics
        ],
    }


def _run_logs(settings: AppSettings, *, search: str | None, limit: int) -> int:
    """List stored AI responses, optionally filtered by ``search``."""
    limit_value = None if limit <= 0 else limit
    with SqliteResponseLog(settings.storage) as response_log:
        if search:
            records = response_log.search(search)[:limit_value]
        else:
            records = response_log.list_recent(limit_value)

    if not records:
        print("No AI responses logged.")
        return 0

    print(f"Showing {len(records)} AI response(s):")
    header = f"{'ID':>4}  {'Logged at':<20}  {'From':<28}  Subject"
    print(header)
    print("-" * len(header))
    for record in records:
        logged_at = (
            record.created_at.isoformat(timespec="minutes") if record.created_at else "-"
        )
        print(
            f"{record.id:>4}  {logged_at:<20}  {record.sender[:28]:<28}  {record.subject}"
        )
    return 0


if __name__ == "__main__":
    main()
