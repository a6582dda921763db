"""Command-line interface for the user administration service."""

from __future__ import annotations
import argparse
import logging
import os
import sys
from typing import Sequence

from useradmin.database import Database, resolve_database_path

logger = logging.getLogger("useradmin.main")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="User administration utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-db", help="Initialise the users database")

    serve_parser = subparsers.add_parser("serve", help="Start the admin users API")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address for the API")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for the HTTP API (default: 8000)",
    )
    serve_parser.add_argument(
        "--ssl-certfile",
        default=None,
        help="Path to the TLS certificate chain in PEM format",
    )
    serve_parser.add_argument(
        "--ssl-keyfile",
        default=None,
        help="Path to the TLS private key in PEM format",
    )

    admin_parser = subparsers.add_parser(
        "admin", help="Launch the interactive user administration console"
    )
    admin_parser.add_argument(
        "--api-url",
        default=None,
        help=(
            "Base URL of the admin API (default: USERADMIN_API_URL, the "
            "USERADMIN_CONFIG file, or http://localhost:8000/api/v1)"
        ),
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "admin", "init-db"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _initialise_database() -> Database:
    db_path = resolve_database_path(os.getenv("USERADMIN_DB_PATH"))
    database = Database(db_path)
    database.initialize()
    logger.info("Database initialised at %s", db_path)
    return database


def _serve(
    *,
    host: str,
    port: int,
    ssl_certfile: str | None,
    ssl_keyfile: str | None,
) -> None:
    from useradmin.application import create_application
    import uvicorn

    if bool(ssl_certfile) ^ bool(ssl_keyfile):
        raise SystemExit("Both --ssl-certfile and --ssl-keyfile must be provided together.")

    database = _initialise_database()
    protocol = "https" if ssl_certfile and ssl_keyfile else "http"
    logger.info("Starting admin users API on %s://%s:%s", protocol, host, port)

    app = create_application(database=database)
    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level="info",
        ssl_certfile=ssl_certfile,
        ssl_keyfile=ssl_keyfile,
    )


def _run_admin_console(api_url: str | None) -> None:
    from useradmin.client import create_users_client
    from useradmin.config import resolve_client_settings
    from useradmin.console import AdminConsole
    from useradmin.controller import UsersController

    try:
        settings = resolve_client_settings(api_url=api_url)
    except (OSError, ValueError) as exc:
        raise SystemExit(f"Invalid client configuration: {exc}") from exc

    logger.info("Using admin API at %s", settings.api_url)
    client = create_users_client(
        settings.api_url,
        timeout=settings.timeout,
        verify=settings.verify,
    )
    controller = UsersController(client, preview_dir=settings.preview_dir)
    AdminConsole(controller).run()


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)

    if args.command == "serve":
        _serve(
            host=args.host,
            port=args.port,
            ssl_certfile=args.ssl_certfile,
            ssl_keyfile=args.ssl_keyfile,
        )
    elif args.command == "admin":
        _run_admin_console(args.api_url)
    elif args.command == "init-db":
        _initialise_database()
        print("Database initialisation complete.")


if __name__ == "__main__":
    main()
