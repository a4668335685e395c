#!/usr/bin/env python3
"""
Command line entry point for the OAuth session coordinator
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Callable, Sequence

from .api.request import APIRequest
from .application_context import ApplicationContext
from .auth_token.coordinator import SessionCoordinator
from .auth_token.types import ClientOption
from .config import get_config_path, load_config
from .errors.handling import log_error
from .errors.internal import ConfigurationError
from .errors.session import BlockedError, ImplausibleStateError, InteractivePresentationError
from .logging_config import LoggerConfigurator
from .utils import mask_token

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_BLOCKED = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="oauth_session", description="Manage the stored OAuth session"
    )
    parser.add_argument(
        "--config", default=None, help="Config file (default: $OAUTH_SESSION_CONF_FILE)"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    status = sub.add_parser("status", help="Show or resolve the authentication status")
    status.add_argument("--refresh", action="store_true", help="Refresh an expired token")
    status.add_argument("--reauth", action="store_true", help="Sign in again if needed")
    status.add_argument("--online", action="store_true", help="Validate the token online")

    sub.add_parser("sign-in", help="Run interactive sign-in now")
    sub.add_parser("sign-out", help="Revoke and forget the stored credential")

    authorize = sub.add_parser("authorize", help="Print the authorization header for a request")
    authorize.add_argument("url")
    authorize.add_argument("--method", default="GET")
    authorize.add_argument(
        "--show-token", action="store_true", help="Print the full header value"
    )
    return parser


def _status_options(args: argparse.Namespace) -> frozenset[ClientOption]:
    options = set()
    if args.refresh:
        options.add(ClientOption.REFRESH_IF_NEEDED)
    if args.reauth:
        options.add(ClientOption.REAUTHENTICATE_IF_NEEDED)
    if args.online:
        options.add(ClientOption.REQUIRE_ONLINE_VALIDATION)
    return frozenset(options)


async def execute(
    coordinator: SessionCoordinator,
    args: argparse.Namespace,
    out: Callable[[str], None] = print,
) -> int:
    """Run one parsed command against ``coordinator``; returns the exit code."""
    try:
        if args.command == "status":
            options = _status_options(args)
            if options:
                status = await coordinator.update_authentication_status(options)
            else:
                status = await coordinator.current_status()
            subject = await coordinator.subject_identifier()
            out(f"status={status.value} subject={subject or '-'}")
            return EXIT_OK

        if args.command == "sign-in":
            record = await coordinator.perform_interactive_authentication()
            out(f"✅ Signed in subject={record.subject_identifier or '-'}")
            return EXIT_OK

        if args.command == "sign-out":
            await coordinator.sign_out()
            out("🚪 Signed out")
            return EXIT_OK

        if args.command == "authorize":
            request = await coordinator.authorize(APIRequest(args.method.upper(), args.url))
            value = request.header(coordinator.header_name) or ""
            if not args.show_token:
                scheme, _, token = value.partition(" ")
                value = f"{scheme} {mask_token(token)}" if token else mask_token(scheme)
            out(f"{coordinator.header_name}: {value}")
            return EXIT_OK
    except BlockedError as e:
        out(f"⛔ Blocked: retry with {e.requiring.value} allowed")
        return EXIT_BLOCKED
    except InteractivePresentationError as e:
        log_error("Interactive sign-in unavailable", e)
        return EXIT_ERROR

    raise ValueError(f"Unknown command: {args.command}")


async def main(argv: Sequence[str] | None = None) -> int:
    """Parse arguments, wire the application context and run one command."""
    args = build_parser().parse_args(argv)
    try:
        config = load_config(args.config or get_config_path())
    except ConfigurationError as e:
        log_error("Configuration error", e)
        return EXIT_ERROR

    ctx = await ApplicationContext.create(config)
    try:
        await ctx.start()
        coordinator = ctx.coordinator
        if coordinator is None:
            raise ImplausibleStateError("Application context has no session coordinator")
        return await execute(coordinator, args)
    except asyncio.CancelledError:
        raise
    except Exception as e:
        log_error("Command failed", e, {"command": args.command})
        return EXIT_ERROR
    finally:
        await ctx.shutdown()


def run(argv: Sequence[str] | None = None) -> None:
    """Synchronous entry point; exits with the command's status code."""
    LoggerConfigurator().configure()
    try:
        code = asyncio.run(main(argv))
    except KeyboardInterrupt:
        logging.warning("⌨️ Interrupted by user")
        code = EXIT_ERROR
    sys.exit(code)


if __name__ == "__main__":
    run()
