# ABOUTME: CLI entry point for the newsletter subscription service.
# ABOUTME: Provides subcommands: serve, init-db, create-editor, create-newsletter, list-subscribers.

import argparse
import asyncio
import logging
import sys

import structlog

from newsletter_service.config import get_settings


def configure_logging() -> None:
    """Configure structlog for console or JSON output."""
    settings = get_settings()

    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == "json":
        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.add_log_level,
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(log_level),
        )
    else:
        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
                structlog.processors.add_log_level,
                structlog.dev.ConsoleRenderer(colors=True),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(log_level),
        )


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "newsletter_service.web.app:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_config=None,
    )
    return 0


async def _init_db() -> None:
    from newsletter_service.db.session import close_db, init_db

    try:
        await init_db()
    finally:
        await close_db()


def cmd_init_db(_args: argparse.Namespace) -> int:
    """Create all tables directly from the ORM models.

    Intended for local development; deployments run ``alembic upgrade head``.
    """
    log = structlog.get_logger()
    try:
        asyncio.run(_init_db())
    except Exception:
        log.exception("cmd_init_db_failed")
        return 1
    log.info("cmd_init_db_complete")
    return 0


async def _create_editor(external_id: str, email: str) -> str:
    from newsletter_service.db.repository import EditorRepository
    from newsletter_service.db.session import close_db, get_session

    try:
        async with get_session() as session:
            editor = await EditorRepository(session).create(external_id, email)
            return editor.id
    finally:
        await close_db()


def cmd_create_editor(args: argparse.Namespace) -> int:
    """Register an editor by their identity-provider uid."""
    log = structlog.get_logger()
    try:
        editor_id = asyncio.run(_create_editor(args.uid, args.email))
    except Exception:
        log.exception("cmd_create_editor_failed", uid=args.uid)
        return 1
    log.info("cmd_create_editor_complete", editor_id=editor_id)
    print(editor_id)
    return 0


async def _create_newsletter(editor_uid: str, name: str, description: str | None) -> str | None:
    from newsletter_service.db.repository import EditorRepository, NewsletterRepository
    from newsletter_service.db.session import close_db, get_session

    try:
        async with get_session() as session:
            editor = await EditorRepository(session).get_by_external_id(editor_uid)
            if editor is None:
                return None
            newsletter = await NewsletterRepository(session).create(editor.id, name, description)
            return newsletter.id
    finally:
        await close_db()


def cmd_create_newsletter(args: argparse.Namespace) -> int:
    """Create a newsletter owned by an existing editor."""
    log = structlog.get_logger()
    try:
        newsletter_id = asyncio.run(
            _create_newsletter(args.editor_uid, args.name, args.description)
        )
    except Exception:
        log.exception("cmd_create_newsletter_failed", editor_uid=args.editor_uid)
        return 1

    if newsletter_id is None:
        log.error("editor_not_found", editor_uid=args.editor_uid)
        return 1

    log.info("cmd_create_newsletter_complete", newsletter_id=newsletter_id)
    print(newsletter_id)
    return 0


async def _active_emails(newsletter_id: str) -> list[str]:
    from newsletter_service.db.repository import (
        NewsletterRepository,
        SubscriberRepository,
        SubscriptionTokenRepository,
    )
    from newsletter_service.db.session import close_db, get_session
    from newsletter_service.email.sender import EmailSender
    from newsletter_service.services.notifier import EmailNotifier
    from newsletter_service.services.subscription_service import SubscriptionService

    settings = get_settings()
    try:
        async with get_session() as session:
            service = SubscriptionService(
                subscribers=SubscriberRepository(session),
                tokens=SubscriptionTokenRepository(session),
                newsletters=NewsletterRepository(session),
                notifier=EmailNotifier(EmailSender(settings), settings.app_base_url),
                timeout=settings.operation_timeout_seconds,
            )
            return await service.active_emails(newsletter_id)
    finally:
        await close_db()


def cmd_list_subscribers(args: argparse.Namespace) -> int:
    """Print the addresses of all active subscribers, one per line."""
    from newsletter_service.errors import ServiceError

    log = structlog.get_logger()
    try:
        emails = asyncio.run(_active_emails(args.newsletter_id))
    except ServiceError as e:
        log.error("cmd_list_subscribers_failed", kind=e.kind.value, message=e.message)
        return 1

    for email in emails:
        print(email)
    log.info("cmd_list_subscribers_complete", count=len(emails))
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="newsletter_service",
        description="Newsletter subscription service",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # serve command
    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP API",
    )
    serve_parser.add_argument("--host", type=str, help="Bind address (default from settings)")
    serve_parser.add_argument("--port", type=int, help="Bind port (default from settings)")

    # init-db command
    subparsers.add_parser(
        "init-db",
        help="Create database tables from the models (development only)",
    )

    # create-editor command
    editor_parser = subparsers.add_parser(
        "create-editor",
        help="Register an editor",
    )
    editor_parser.add_argument("--uid", required=True, help="Identity-provider uid of the editor")
    editor_parser.add_argument("--email", required=True, help="Editor email address")

    # create-newsletter command
    newsletter_parser = subparsers.add_parser(
        "create-newsletter",
        help="Create a newsletter for an editor",
    )
    newsletter_parser.add_argument("--editor-uid", required=True, help="Owner's identity uid")
    newsletter_parser.add_argument("--name", required=True, help="Newsletter name")
    newsletter_parser.add_argument("--description", help="Optional description")

    # list-subscribers command
    list_parser = subparsers.add_parser(
        "list-subscribers",
        help="Print active subscriber emails of a newsletter",
    )
    list_parser.add_argument("newsletter_id", help="Newsletter ID")

    return parser


COMMANDS = {
    "serve": cmd_serve,
    "init-db": cmd_init_db,
    "create-editor": cmd_create_editor,
    "create-newsletter": cmd_create_newsletter,
    "list-subscribers": cmd_list_subscribers,
}


def main() -> int:
    """Main entry point."""
    configure_logging()

    parser = create_parser()
    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        return 1

    return COMMANDS[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
