"""
Command Line Interface for the 123pan offline driver.
"""

import argparse
import asyncio
import logging
import sys

from .config import Settings
from .driver import Pan123Driver
from .exceptions import ConfigurationError
from .models import Episode, Show
from .store import SharedState

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO"):
    """Configure logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pan123-offline",
        description="pan123-offline - 123pan offline download backend with post-download renaming",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start the admin server and poller
  pan123-offline serve --port 8080

  # Check credentials
  pan123-offline login --username user@example.com --password mypassword

  # Submit a magnet link (or a .torrent file) to /Show/S1
  pan123-offline submit ./episode.torrent --save-path /Show/S1 --name "Show S01E01"

  # List offline tasks
  pan123-offline list

Environment Variables:
  PAN123_USERNAME          - 123pan account (email or phone number)
  PAN123_PASSWORD          - 123pan password
  HOST                     - Server bind address (default: 0.0.0.0)
  PORT                     - Server port (default: 8080)
  API_KEY                  - Require this X-Api-Key on admin endpoints
  POLL_INTERVAL            - Seconds between reconciliation polls (default: 60)
  DOWNLOAD_PATH_TEMPLATE   - Save path for test downloads (default: /)
  LOG_LEVEL                - Logging level (default: INFO)
  LOG_FILE                 - Log file path (enables rotation)
  LOG_FORMAT               - Log format: text or json (default: text)
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Start the admin server")
    serve_parser.add_argument(
        "--host", "-H", default="0.0.0.0", help="Host to bind to"
    )
    serve_parser.add_argument(
        "--port", "-p", type=int, default=8080, help="Port to listen on"
    )
    serve_parser.add_argument(
        "--username", "-u", help="123pan username (or use PAN123_USERNAME env var)"
    )
    serve_parser.add_argument(
        "--password", help="123pan password (or use PAN123_PASSWORD env var)"
    )
    serve_parser.add_argument(
        "--api-key", help="Require this X-Api-Key header on admin endpoints"
    )
    serve_parser.add_argument(
        "--poll-interval", type=float, default=60.0,
        help="Seconds between reconciliation polls (0 disables)"
    )
    serve_parser.add_argument(
        "--log-level", "-l", default="INFO", help="Log level"
    )
    serve_parser.add_argument(
        "--log-file", help="Log file path (enables rotation)"
    )
    serve_parser.add_argument(
        "--log-format", choices=["text", "json"], default="text",
        help="Log format: text or json"
    )
    serve_parser.add_argument(
        "--reload", action="store_true", help="Enable auto-reload (dev mode)"
    )

    # Login command
    login_parser = subparsers.add_parser("login", help="Test 123pan login")
    login_parser.add_argument("--username", "-u", help="123pan username")
    login_parser.add_argument("--password", help="123pan password")

    # Submit command
    submit_parser = subparsers.add_parser("submit", help="Submit an offline download")
    submit_parser.add_argument("torrent", help="Path to a .torrent file or a file holding a magnet link")
    submit_parser.add_argument("--save-path", "-s", default="/", help="Remote folder, e.g. /Show/S1")
    submit_parser.add_argument("--name", "-n", required=True, help="Target name for the downloaded files")
    submit_parser.add_argument("--username", "-u", help="123pan username")
    submit_parser.add_argument("--password", help="123pan password")

    # List command
    list_parser = subparsers.add_parser("list", help="List 123pan offline tasks")
    list_parser.add_argument("--username", "-u", help="123pan username")
    list_parser.add_argument("--password", help="123pan password")

    return parser


def main():
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()

    try:
        if args.command == "serve":
            run_server(args)
        elif args.command == "login":
            asyncio.run(run_login(args))
        elif args.command == "submit":
            asyncio.run(run_submit(args))
        elif args.command == "list":
            asyncio.run(run_list(args))
        else:
            parser.print_help()
            sys.exit(1)
    except ConfigurationError as e:
        print(f"  {e}", file=sys.stderr)
        sys.exit(1)


def run_server(args):
    """Run the admin server."""
    import os
    import uvicorn

    setup_logging(args.log_level)

    # Set environment variables for the server
    if args.username:
        os.environ["PAN123_USERNAME"] = args.username
    if args.password:
        os.environ["PAN123_PASSWORD"] = args.password
    if args.api_key:
        os.environ["API_KEY"] = args.api_key

    os.environ["HOST"] = args.host
    os.environ["PORT"] = str(args.port)
    os.environ["POLL_INTERVAL"] = str(args.poll_interval)
    os.environ["LOG_LEVEL"] = args.log_level
    if args.log_file:
        os.environ["LOG_FILE"] = args.log_file
    os.environ["LOG_FORMAT"] = args.log_format

    logger.info(f"Starting 123pan offline driver on {args.host}:{args.port}")

    uvicorn.run(
        "pan123_offline.server:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level.lower(),
    )


def _settings_from(args) -> Settings:
    return Settings().with_credentials(args.username, args.password).require_credentials()


async def run_login(args):
    """Test 123pan login."""
    setup_logging("INFO")

    settings = _settings_from(args)
    driver = Pan123Driver(SharedState(), settings)
    try:
        if await driver.login(True, settings):
            print(f"  Logged in to 123pan as {settings.pan123_username}")
        else:
            print("  Login failed, check the logs above")
            sys.exit(1)
    finally:
        await driver.close()


async def run_submit(args):
    """Submit a torrent or magnet link as an offline download."""
    setup_logging("INFO")

    settings = _settings_from(args)
    driver = Pan123Driver(SharedState(), settings)
    try:
        episode = Episode(title=args.name, rename=args.name)
        ok = await driver.download(Show(title=args.name), episode, args.save_path, args.torrent, False)
        if ok:
            print(f"  Offline task created for {args.name} in {args.save_path}")
        else:
            print("  Submission failed, check the logs above")
            sys.exit(1)
    finally:
        await driver.close()


async def run_list(args):
    """List 123pan offline tasks."""
    setup_logging("INFO")

    settings = _settings_from(args)
    driver = Pan123Driver(SharedState(), settings)
    try:
        tasks = await driver.get_torrents_infos()

        if not tasks:
            print("No offline tasks found.")
            return

        print(f"\nFound {len(tasks)} task(s):\n")
        print(f"{'Name':<40} {'Size':>10} {'Progress':>8} {'State':<12} {'ID':<12}")
        print("-" * 86)

        for t in tasks:
            size_str = f"{t.size_bytes / 1e6:.1f}MB" if t.size_bytes < 1e9 else f"{t.size_bytes / 1e9:.2f}GB"
            progress_str = f"{t.progress:.1f}%"
            name = t.display_name[:37] + "..." if len(t.display_name) > 40 else t.display_name
            print(f"{name:<40} {size_str:>10} {progress_str:>8} {t.state.value:<12} {t.task_id:<12}")

    finally:
        await driver.close()


if __name__ == "__main__":
    main()
