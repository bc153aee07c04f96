"""Parrot CLI - command-line interface for the auto-reply pipeline.

Usage:
    parrot import "WhatsApp Chat - Ana.zip" --enable-auto-reply
    parrot profile Ana
    parrot embed Ana
    parrot decide Ana "bora almoçar?"
    parrot reply Ana "bora almoçar?"
    parrot stats --check-backend
    parrot config --set backend=cloud-a
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, NoReturn

import orjson
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from parrot.backends import create_ollama_client
from parrot.config import (
    BACKEND_DISPLAY_NAMES,
    CONFIG_PATH,
    ParrotConfig,
    load_config,
    save_config,
)
from parrot.context import AppContext
from parrot.contracts.messages import Contact
from parrot.errors import ConfigurationError, ParrotError
from parrot.history.chat_parser import ChatParser
from parrot.history.whatsapp_db import DEFAULT_DB_PATH, WhatsAppDatabase

console = Console()
logger = logging.getLogger(__name__)

PROFILE_LIST_LIMIT = 8


def _format_error(error: ParrotError) -> None:
    """Print a user-friendly error with a hint for the common cases."""
    console.print(f"[red]Error: {error.message}[/red]")

    code = error.code.value
    if code == "BKD_NOT_CONFIGURED":
        console.print("[yellow]Set an API key with 'parrot config --set openai.api_key=...'[/yellow]")
        console.print("[yellow]or switch to the local backend: 'parrot config --set backend=local'[/yellow]")
    elif code == "STO_DB_NOT_FOUND":
        console.print("[yellow]Is WhatsApp Desktop installed? Pass --whatsapp-db to point at ChatStorage.sqlite.[/yellow]")
    elif code.startswith("GEN_"):
        console.print("[yellow]Check that the generation backend is running and reachable.[/yellow]")

    if error.details:
        logger.debug("Error details: %s", error.details)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging based on verbosity level.

    Args:
        verbose: If True, set DEBUG level; otherwise WARNING.
    """
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )


def _load(args: argparse.Namespace) -> ParrotConfig:
    return load_config(args.config)


def _context(args: argparse.Namespace) -> AppContext:
    return AppContext.from_config(_load(args))


def _require_contact(ctx: AppContext, name: str) -> Contact | None:
    contact = ctx.store.get_contact_by_name(name)
    if contact is None:
        console.print(f"[red]Unknown contact: {name}[/red]")
        console.print("[yellow]Run 'parrot stats' to list imported contacts.[/yellow]")
    return contact


# =============================================================================
# Commands
# =============================================================================


def cmd_import(args: argparse.Namespace) -> int:
    """Import chat history from exports or from the WhatsApp database."""
    if not args.paths and not args.whatsapp_chat:
        console.print("[red]Nothing to import: pass export files or --whatsapp-chat[/red]")
        return 1

    ctx = _context(args)
    try:
        table = Table(title="Import")
        table.add_column("Contact", style="bold")
        table.add_column("Type")
        table.add_column("Parsed", justify="right")
        table.add_column("Added", justify="right")

        parser = ChatParser(user_name=ctx.config.user_name)
        for path in args.paths:
            name, parsed = parser.parse_file(Path(path))
            if args.name:
                name = args.name
            is_group = args.group or parser.is_group_chat(parsed)
            contact = ctx.store.add_contact(
                name, is_group=is_group, auto_reply_enabled=args.enable_auto_reply
            )
            added = ctx.store.insert_messages(parser.convert_to_messages(parsed, contact.id))
            ctx.invalidate_correspondent(contact.id)
            table.add_row(name, "group" if is_group else "contact", str(len(parsed)), str(added))

        if args.whatsapp_chat:
            wa_db = WhatsAppDatabase(Path(args.whatsapp_db) if args.whatsapp_db else DEFAULT_DB_PATH)
            try:
                chat = wa_db.find_chat(args.whatsapp_chat)
                if chat is None:
                    console.print(f"[red]WhatsApp chat not found: {args.whatsapp_chat}[/red]")
                    return 1
                contact = ctx.store.add_contact(
                    args.name or chat.name,
                    is_group=chat.is_group,
                    auto_reply_enabled=args.enable_auto_reply,
                )
                fetched = wa_db.get_messages(chat.id, limit=args.limit)
                rebased = [replace(m, id=0, correspondent_id=contact.id) for m in fetched]
                added = ctx.store.insert_messages(rebased)
                ctx.invalidate_correspondent(contact.id)
                table.add_row(
                    contact.name,
                    "group" if chat.is_group else "contact",
                    str(len(fetched)),
                    str(added),
                )
            finally:
                wa_db.close()

        console.print(table)
        return 0
    finally:
        ctx.close()


def cmd_profile(args: argparse.Namespace) -> int:
    """Build (or show the cached) style profile for a contact."""
    ctx = _context(args)
    try:
        contact = _require_contact(ctx, args.contact)
        if contact is None:
            return 1

        profile = None if args.refresh else contact.style_profile
        if profile is None:
            messages = ctx.store.get_messages(contact.id, limit=ctx.config.rag.max_messages)
            if args.refresh:
                ctx.style_analyzer.invalidate(contact.id)
            profile = ctx.style_analyzer.profile_for(contact.id, messages)
            ctx.store.save_style_profile(contact.id, profile)

        if args.json:
            console.print_json(profile.to_json())
            return 0

        table = Table(title=f"Style profile: {contact.name}")
        table.add_column("Trait", style="bold")
        table.add_column("Value")
        table.add_row("Average reply length", f"{profile.avg_response_length} chars")
        table.add_row("Words per message", f"{profile.avg_words_per_message:.1f}")
        table.add_row("Emoji frequency", f"{profile.emoji_frequency:.0%}")
        table.add_row("Laugh", profile.laugh_style or "-")
        table.add_row("Formality", f"{profile.formality_level:.2f}")
        table.add_row("Capitalization", profile.capitalization_style)
        table.add_row("Abbreviations", "yes" if profile.uses_abbreviations else "no")
        for label, values in (
            ("Greetings", profile.greetings),
            ("Signature phrases", profile.signature_phrases),
            ("Favorite emojis", profile.favorite_emojis),
            ("Never uses", profile.never_uses),
        ):
            table.add_row(label, ", ".join(values[:PROFILE_LIST_LIMIT]) or "-")
        console.print(table)
        return 0
    finally:
        ctx.close()


def cmd_embed(args: argparse.Namespace) -> int:
    """Generate embeddings for a contact's conversation history."""
    ctx = _context(args)
    try:
        contact = _require_contact(ctx, args.contact)
        if contact is None:
            return 1

        if not ctx.rag.is_configured:
            console.print("[yellow]Embedding backend is not configured, nothing to do.[/yellow]")
            return 1

        def report(done: int, total: int) -> None:
            console.print(f"  embedded {done}/{total}", highlight=False)

        stats = asyncio.run(ctx.rag.generate_embeddings(contact.id, progress=report))
        if stats.skipped:
            console.print(f"[yellow]Skipped: {stats.skipped_reason}[/yellow]")
            return 1

        table = Table(title=f"Embeddings: {contact.name}")
        table.add_column("Metric", style="bold")
        table.add_column("Value", justify="right")
        table.add_row("Messages loaded", str(stats.messages_loaded))
        table.add_row("Threads embedded", f"{stats.threads_embedded}/{stats.threads_found}")
        table.add_row("Pairs embedded", f"{stats.pairs_embedded}/{stats.pairs_found}")
        table.add_row("Failed batches", str(stats.failed_batches))
        console.print(table)
        return 0 if stats.failed_batches == 0 else 1
    finally:
        ctx.close()


def cmd_decide(args: argparse.Namespace) -> int:
    """Show whether an incoming message would be answered."""
    ctx = _context(args)
    try:
        contact = _require_contact(ctx, args.contact)
        if contact is None:
            return 1

        recent = ctx.store.get_messages(contact.id, limit=10)
        decision = ctx.decider.should_respond(args.message, contact, recent)
        verdict = "[green]RESPOND[/green]" if decision.should_respond else "[red]SKIP[/red]"
        confidence = decision.confidence.value if decision.confidence else "-"
        console.print(
            Panel(
                f"{verdict}\nConfidence: {confidence}\nReason: {decision.reason}",
                title=f"Decision for {contact.name}",
            )
        )
        return 0
    finally:
        ctx.close()


def cmd_reply(args: argparse.Namespace) -> int:
    """Generate a reply to a message as the profiled user."""
    ctx = _context(args)
    try:
        contact = _require_contact(ctx, args.contact)
        if contact is None:
            return 1

        reply = asyncio.run(ctx.reply_generator.generate_response(contact, args.message))
        if reply is None:
            console.print("[dim]No reply (skipped or not enough history).[/dim]")
            return 0

        provider = BACKEND_DISPLAY_NAMES.get(ctx.config.backend, ctx.config.backend)
        console.print(Panel(reply, title=f"Reply to {contact.name}", subtitle=provider))
        return 0
    finally:
        ctx.close()


def _backend_status(config: ParrotConfig) -> str:
    """Reachability of the local server, or whether the cloud key is set."""
    if config.backend == "local":
        reachable = asyncio.run(create_ollama_client(config).is_available())
        return "[green]reachable[/green]" if reachable else "[red]unreachable[/red]"
    if config.backend == "cloud-a":
        configured = config.is_openai_configured
    else:
        configured = config.is_maritaca_configured
    return "[green]configured[/green]" if configured else "[red]missing API key[/red]"


def cmd_stats(args: argparse.Namespace) -> int:
    """Show store and index statistics."""
    ctx = _context(args)
    try:
        stats = ctx.store.get_stats()

        summary = Table(title="Parrot Stats")
        summary.add_column("Metric", style="bold")
        summary.add_column("Value", justify="right")
        summary.add_row("Contacts", str(stats["contacts"]))
        summary.add_row("Groups", str(stats["groups"]))
        summary.add_row("Auto-reply enabled", str(stats["auto_reply_enabled"]))
        summary.add_row("Messages", str(stats["messages"]))
        summary.add_row("Embedded pairs", str(ctx.vector_store.count))
        summary.add_row("Embedded conversations", str(ctx.vector_store.conversation_count))
        if args.check_backend:
            summary.add_row("Backend", ctx.config.current_provider_name)
            summary.add_row("Backend status", _backend_status(ctx.config))
        console.print(summary)

        contacts = ctx.store.list_contacts()
        if contacts:
            table = Table(title="Contacts")
            table.add_column("Name", style="bold")
            table.add_column("Type")
            table.add_column("Auto-reply")
            table.add_column("Messages", justify="right")
            table.add_column("Embeddings", justify="right")
            for contact in contacts:
                table.add_row(
                    contact.name,
                    "group" if contact.is_group else "contact",
                    "[green]on[/green]" if contact.auto_reply_enabled else "[dim]off[/dim]",
                    str(ctx.store.get_message_count(contact.id)),
                    str(ctx.vector_store.count_for_correspondent(contact.id)),
                )
            console.print(table)
        return 0
    finally:
        ctx.close()


def cmd_auto_reply(args: argparse.Namespace) -> int:
    """Turn auto-reply on or off for a contact."""
    ctx = _context(args)
    try:
        contact = _require_contact(ctx, args.contact)
        if contact is None:
            return 1
        enabled = args.state == "on"
        ctx.store.set_auto_reply(contact.id, enabled)
        console.print(f"Auto-reply for {contact.name}: {'on' if enabled else 'off'}")
        return 0
    finally:
        ctx.close()


def _parse_value(raw: str) -> Any:
    """JSON value if ``raw`` parses as one, the plain string otherwise."""
    try:
        return orjson.loads(raw)
    except orjson.JSONDecodeError:
        return raw


def apply_setting(config: ParrotConfig, assignment: str) -> ParrotConfig:
    """Return a copy of ``config`` with one dotted ``key=value`` applied.

    Raises:
        ConfigurationError: If the assignment is malformed, the key is
            unknown, or the value fails validation.
    """
    key, sep, raw = assignment.partition("=")
    if not sep or not key:
        raise ConfigurationError(f"Expected key=value, got: {assignment!r}")

    data = config.model_dump()
    target = data
    parts = key.split(".")
    for part in parts[:-1]:
        if not isinstance(target.get(part), dict):
            raise ConfigurationError(f"Unknown config section: {part}", config_key=key)
        target = target[part]
    if parts[-1] not in target:
        raise ConfigurationError(f"Unknown config key: {key}", config_key=key)
    target[parts[-1]] = _parse_value(raw)

    try:
        return ParrotConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid value for {key}: {raw}", config_key=key, cause=e) from e


def cmd_config(args: argparse.Namespace) -> int:
    """Show or change settings."""
    path = args.config or CONFIG_PATH
    if args.set:
        config = load_config(path, apply_env=False)
        for assignment in args.set:
            config = apply_setting(config, assignment)
        if not save_config(config, path):
            console.print(f"[red]Could not write {path}[/red]")
            return 1
        console.print(f"[green]Saved {path}[/green]")

    config = load_config(path, apply_env=False)
    shown = config.model_dump()
    for section in ("openai", "maritaca"):
        if shown[section]["api_key"]:
            shown[section]["api_key"] = "***"
    console.print(Panel.fit(orjson.dumps(shown, option=orjson.OPT_INDENT_2).decode(), title=str(path)))
    return 0


# =============================================================================
# Parser
# =============================================================================


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    from parrot import __version__

    parser = argparse.ArgumentParser(
        prog="parrot",
        description="Parrot - auto-replies that sound like you",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  parrot import "WhatsApp Chat - Ana.zip"    Import an exported chat
  parrot reply Ana "bora?"                    Generate a reply
  parrot stats                                Show what is stored

For more help on a command:
  parrot <command> --help
""",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "--config", type=Path, default=None, metavar="PATH", help="config file (default: ~/.parrot/config.json)"
    )

    subparsers = parser.add_subparsers(dest="command", title="commands", metavar="<command>")

    # Import command
    import_parser = subparsers.add_parser(
        "import",
        help="import chat history",
        description="Import WhatsApp chat exports (.txt or .zip) or a chat from the WhatsApp database.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  parrot import "WhatsApp Chat - Ana.zip"
  parrot import chat.txt --name "Família" --group
  parrot import --whatsapp-chat Ana --enable-auto-reply
""",
    )
    import_parser.add_argument("paths", nargs="*", metavar="EXPORT", help="exported chat files")
    import_parser.add_argument("--name", help="contact name (default: from the file name)")
    import_parser.add_argument(
        "--group", action="store_true", help="mark as a group (default: detected from senders)"
    )
    import_parser.add_argument(
        "--enable-auto-reply", action="store_true", help="enable auto-reply for new contacts"
    )
    import_parser.add_argument("--whatsapp-chat", metavar="NAME", help="chat to read from the WhatsApp database")
    import_parser.add_argument("--whatsapp-db", metavar="PATH", help="path to ChatStorage.sqlite")
    import_parser.add_argument(
        "--limit", type=int, default=1000, help="messages to read from the WhatsApp database (default: 1000)"
    )
    import_parser.set_defaults(func=cmd_import)

    # Profile command
    profile_parser = subparsers.add_parser(
        "profile",
        help="show a contact's style profile",
        description="Analyze how you write to a contact and cache the result.",
    )
    profile_parser.add_argument("contact", help="contact name")
    profile_parser.add_argument("--refresh", action="store_true", help="rebuild even if cached")
    profile_parser.add_argument("--json", action="store_true", help="print the profile as JSON")
    profile_parser.set_defaults(func=cmd_profile)

    # Embed command
    embed_parser = subparsers.add_parser(
        "embed",
        help="embed a contact's history for retrieval",
        description="Generate embeddings for conversation threads and reply pairs.",
    )
    embed_parser.add_argument("contact", help="contact name")
    embed_parser.set_defaults(func=cmd_embed)

    # Decide command
    decide_parser = subparsers.add_parser(
        "decide",
        help="check whether a message would be answered",
        description="Run the response decision rules without generating.",
    )
    decide_parser.add_argument("contact", help="contact name")
    decide_parser.add_argument("message", help="incoming message text")
    decide_parser.set_defaults(func=cmd_decide)

    # Reply command
    reply_parser = subparsers.add_parser(
        "reply",
        help="generate a reply",
        description="Generate a reply in your style to an incoming message.",
    )
    reply_parser.add_argument("contact", help="contact name")
    reply_parser.add_argument("message", help="incoming message text")
    reply_parser.set_defaults(func=cmd_reply)

    # Stats command
    stats_parser = subparsers.add_parser("stats", help="show stored contacts and counts")
    stats_parser.add_argument(
        "--check-backend", action="store_true", help="also check the generation backend"
    )
    stats_parser.set_defaults(func=cmd_stats)

    # Auto-reply command
    auto_parser = subparsers.add_parser("auto-reply", help="turn auto-reply on or off for a contact")
    auto_parser.add_argument("contact", help="contact name")
    auto_parser.add_argument("state", choices=["on", "off"])
    auto_parser.set_defaults(func=cmd_auto_reply)

    # Config command
    config_parser = subparsers.add_parser(
        "config",
        help="show or change settings",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  parrot config
  parrot config --set backend=cloud-a --set openai.api_key=sk-...
  parrot config --set use_rag=true
""",
    )
    config_parser.add_argument(
        "--set", action="append", metavar="KEY=VALUE", help="set a (dotted) key; repeatable"
    )
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:]).

    Returns:
        Exit code.
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    if not args.command:
        parser.print_help()
        return 0

    return args.func(args)


def run() -> NoReturn:
    """Run the CLI and exit with the appropriate code."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        console.print("\n[dim]Interrupted.[/dim]")
        sys.exit(130)
    except ParrotError as e:
        _format_error(e)
        logger.debug("Parrot error", exc_info=True)
        sys.exit(1)
    except Exception as e:
        logger.exception("Unexpected error")
        console.print(f"[red]Unexpected error: {e}[/red]")
        sys.exit(1)
