"""CLI entry point and argument parsing"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from bahn_auth import AuthError, TokenManager, exit_code_for, select_acquirer
from bahn_auth.acquirers import LOGIN_MODES
from bahn_auth.errors import EXIT_FAILURE, EXIT_NETWORK, EXIT_OK
from cli import __version__
from cli import auth_handlers
from cli.debug_setup import setup_logging
from cli.output import OutputWriter

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bahn", description="Deutsche Bahn command line client")
    parser.add_argument("--human", action="store_true", help="Human-readable output instead of JSON")
    parser.add_argument("--quiet", "-q", action="store_true", help="Suppress progress messages")
    parser.add_argument("--debug", "-d", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    commands = parser.add_subparsers(dest="command", metavar="<command>")
    commands.required = True

    auth = commands.add_parser("auth", help="Manage bahn.de authentication")
    auth_commands = auth.add_subparsers(dest="auth_command", metavar="<auth command>")
    auth_commands.required = True

    login = auth_commands.add_parser("login", help="Log in through the browser (OIDC + PKCE)")
    login.add_argument(
        "--mode",
        choices=LOGIN_MODES,
        default=None,
        help="How the login callback is received (default: BAHN_LOGIN_MODE or auto)",
    )
    auth_commands.add_parser("status", help="Show current auth state")
    token = auth_commands.add_parser("token", help="Store a JWT access token obtained manually")
    token.add_argument("jwt", help="JWT access token to store")
    auth_commands.add_parser("refresh", help="Renew the token through the browser session cookies")
    auth_commands.add_parser("clear", help="Remove stored credentials")

    return parser


def build_manager(args: argparse.Namespace, out: OutputWriter) -> TokenManager:
    acquirer = None
    if args.auth_command == "login":
        acquirer = select_acquirer(
            mode=args.mode,
            on_status=out.info,
            on_prompt=out.prompt,
            reader=out.err_console.input,
        )
    return TokenManager(acquirer=acquirer)


async def dispatch(args: argparse.Namespace, manager: TokenManager) -> auth_handlers.Result:
    command = args.auth_command
    if command == "login":
        return await auth_handlers.handle_login(manager)
    if command == "status":
        return auth_handlers.handle_status(manager)
    if command == "token":
        return auth_handlers.handle_token(manager, args.jwt)
    if command == "refresh":
        return await auth_handlers.handle_refresh(manager)
    if command == "clear":
        return auth_handlers.handle_clear(manager)
    raise ValueError(f"unknown auth command: {command}")


def run(argv: Optional[List[str]] = None, out: Optional[OutputWriter] = None) -> int:
    """Run one command and return its exit code"""
    args = build_parser().parse_args(argv)
    setup_logging(debug=args.debug)
    out = out or OutputWriter(human=args.human, quiet=args.quiet)

    try:
        manager = build_manager(args, out)
        payload, human = asyncio.run(dispatch(args, manager))
    except KeyboardInterrupt:
        out.error("interrupted by user")
        return EXIT_FAILURE
    except Exception as e:
        code = exit_code_for(e)
        message = str(e)
        remediation = e.remediation if isinstance(e, AuthError) else None
        kind = e.kind if isinstance(e, AuthError) else ("network_error" if code == EXIT_NETWORK else "error")
        logger.debug("Command failed", exc_info=True)
        out.error(message, remediation)
        out.error_json(kind, message, remediation)
        return code

    out.emit(payload, human)
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI"""
    sys.exit(run(argv))


if __name__ == "__main__":
    main()
